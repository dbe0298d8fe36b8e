"""
Cas d'usage 'payments': orchestre normalizer, pricing, discounts, cart_codec, metadata et stripe.
"""
import logging
from typing import Any, Dict, Optional
from uuid import uuid4

from tourpay.bookings import reconciler
from tourpay.config import MAX_CART_ITEMS, SETTLEMENT_CURRENCY
from tourpay.discounts import service as discount_service
from tourpay.errors import CartTooLarge, ValidationError
from tourpay.pricing.normalizer import normalize_cart
from tourpay.pricing.totals import compute_breakdown, to_minor_units
from tourpay.utils.validators import is_valid_email

from . import cart_codec
from . import metadata as meta
from . import stripe_client
from .schemas import CheckoutRequest, CustomerIn

logger = logging.getLogger(__name__)


def validate_customer(customer: Optional[CustomerIn]) -> CustomerIn:
    """Nom, prénom et e-mail obligatoires; e-mail au format simple."""
    if customer is None:
        raise ValidationError("Customer information is incomplete")
    first = (customer.firstName or "").strip()
    last = (customer.lastName or "").strip()
    email = (customer.email or "").strip()
    if not first or not last or not email:
        raise ValidationError("Customer information is incomplete")
    if not is_valid_email(email):
        raise ValidationError("Please provide a valid email address")
    return customer


def new_idempotency_key() -> str:
    # Une clé par appel de checkout; seule la relance réseau interne la réutilise
    return f"checkout-{uuid4().hex}"


def create_checkout_intent(payload: CheckoutRequest) -> Dict[str, Any]:
    """
    Prépare un PaymentIntent Stripe à partir du panier brut.
    Étapes:
      1) Valider le client puis normaliser le panier (formes client non fiables)
      2) Résoudre le code promo (lecture seule, invalide -> aucune remise)
      3) Calculer le PricingBreakdown faisant foi
      4) Encoder le panier en slots compacts puis construire les métadonnées
      5) Créer l'intent (montant en centimes, devise de règlement fixe)
    Retour: {success, transactionClientSecret, transactionId, pricing}
    Erreurs: ValidationError / InvalidAmount / CartTooLarge (4xx), GatewayError (4xx/5xx).
    """
    customer = validate_customer(payload.customer)
    items = normalize_cart(payload.cart or [])
    if not items:
        raise ValidationError("Your cart is empty")
    if len(items) > MAX_CART_ITEMS:
        raise CartTooLarge(f"A single payment can include at most {MAX_CART_ITEMS} tours")

    discount = discount_service.resolve_discount(payload.discountCode)
    pricing = compute_breakdown(items, discount, currency=SETTLEMENT_CURRENCY)
    applied_code = discount.code if discount is not None and pricing.discount > 0 else None

    slots = cart_codec.encode_cart(items)
    metadata = meta.build_metadata(
        customer=customer,
        items=items,
        pricing=pricing,
        discount_code=applied_code,
        cart_slots=slots,
    )
    amount = to_minor_units(pricing.total)
    currency = SETTLEMENT_CURRENCY.lower()
    intent = stripe_client.create_payment_intent(
        amount=amount,
        currency=currency,
        metadata=metadata,
        receipt_email=metadata["customer_email"],
        description=f"Booking for {len(items)} tour(s)",
        idempotency_key=new_idempotency_key(),
    )
    logger.info(
        "payments.checkout intent=%s amount=%s items=%s slots=%s discount=%s",
        intent.get("id"), amount, len(items), len(slots), applied_code or meta.NO_DISCOUNT,
    )
    return {
        "success": True,
        "transactionClientSecret": intent.get("client_secret"),
        "transactionId": intent.get("id"),
        "pricing": pricing.to_dict(),
    }


def confirm_payment_intent(payment_intent_id: str) -> Dict[str, Any]:
    """
    Alternative sans webhook: récupère l'intent, exige status='succeeded' puis réconcilie.
    """
    if not payment_intent_id:
        raise ValidationError("payment_intent_id is required")
    intent = stripe_client.retrieve_payment_intent(payment_intent_id)
    status = intent.get("status") or ""
    if status != "succeeded":
        raise ValidationError(f"Payment not confirmed (status={status})")
    return reconciler.reconcile_payment(intent)
