"""
Adaptateur Stripe: centralise les appels, la configuration et la traduction des erreurs Stripe.

Seul ce module connaît les exceptions du SDK; il les convertit en GatewayError
(InvalidRequest / ServiceUnavailable / Misconfiguration) pour le reste du code.
"""
import json
import logging
from typing import Any, Dict, Optional

import stripe
from fastapi import HTTPException, Request

from tourpay.config import (
    GATEWAY_MAX_RETRIES,
    GATEWAY_TIMEOUT_SECONDS,
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
)
from tourpay.errors import GatewayError, InvalidRequest, Misconfiguration, ServiceUnavailable

logger = logging.getLogger(__name__)

_http_client = None


# module tourpay.payments.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY (Misconfiguration si absente).
    - Client HTTP à timeout borné; les relances du SDK sont désactivées (gérées ici, une seule).
    """
    global _http_client
    if not STRIPE_SECRET_KEY:
        logger.critical("payments.stripe STRIPE_SECRET_KEY is not configured")
        raise Misconfiguration()
    stripe.api_key = STRIPE_SECRET_KEY
    stripe.max_network_retries = 0
    if _http_client is None:
        _http_client = stripe.RequestsClient(timeout=GATEWAY_TIMEOUT_SECONDS)
    stripe.default_http_client = _http_client
    return stripe


def as_dict(obj: Any) -> Dict[str, Any]:
    """StripeObject -> dict (récursif quand le SDK le permet)."""
    if obj is None:
        return {}
    for name in ("to_dict_recursive", "to_dict"):
        fn = getattr(obj, name, None)
        if callable(fn):
            return fn()
    return dict(obj)


def _translate(e: Exception) -> GatewayError:
    if isinstance(e, (stripe.AuthenticationError, stripe.PermissionError)):
        # Alerte d'astreinte: identifiants Stripe invalides; jamais de détail côté client
        logger.critical("payments.stripe misconfiguration error=%s", type(e).__name__)
        return Misconfiguration()
    if isinstance(e, (stripe.InvalidRequestError, stripe.CardError, stripe.IdempotencyError)):
        logger.warning("payments.stripe request rejected error=%s code=%s", type(e).__name__, getattr(e, "code", None))
        return InvalidRequest()
    if isinstance(e, (stripe.APIConnectionError, stripe.RateLimitError, stripe.APIError)):
        logger.error("payments.stripe unavailable error=%s", type(e).__name__)
        return ServiceUnavailable()
    logger.error("payments.stripe unexpected error=%s", type(e).__name__)
    return GatewayError()


def create_payment_intent(
    *,
    amount: int,
    currency: str,
    metadata: Dict[str, str],
    receipt_email: Optional[str] = None,
    description: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Crée un PaymentIntent Stripe.
    - amount: entier en unités mineures (centimes)
    - currency: devise de règlement
    - metadata: sac de métadonnées déjà borné (payments.metadata.build_metadata)
    - idempotency_key: réutilisée lors de la relance, une relance ne peut donc pas doubler un débit
    Relance au plus GATEWAY_MAX_RETRIES fois, uniquement sur erreur réseau (APIConnectionError).
    Retour: dict intent (ex: {"id": "pi_...", "client_secret": "pi_..._secret_...", ...})
    """
    require_stripe()
    attempts = 1 + max(0, GATEWAY_MAX_RETRIES)
    for attempt in range(1, attempts + 1):
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency.lower(),
                metadata=metadata,
                receipt_email=receipt_email or None,
                description=description,
                automatic_payment_methods={"enabled": True},
                idempotency_key=idempotency_key,
            )
            return as_dict(intent)
        except stripe.APIConnectionError as e:
            if attempt < attempts:
                logger.warning("payments.stripe connection error attempt=%s/%s, retrying", attempt, attempts)
                continue
            raise _translate(e) from e
        except stripe.StripeError as e:
            raise _translate(e) from e
    raise ServiceUnavailable()


def retrieve_payment_intent(payment_intent_id: str) -> Dict[str, Any]:
    """
    Récupère un PaymentIntent par son identifiant.
    Retour: dict incluant "id", "status", "amount", "metadata", etc.
    """
    require_stripe()
    try:
        return as_dict(stripe.PaymentIntent.retrieve(payment_intent_id))
    except stripe.StripeError as e:
        raise _translate(e) from e


async def parse_event(request: Request) -> Dict[str, Any]:
    """
    Parse et valide un événement Stripe signé (webhook).
    - Lit le body brut + en-tête Stripe-Signature
    - Valide la signature via Webhook.construct_event (STRIPE_WEBHOOK_SECRET)
    Retour: l'événement sous forme de dict si la signature est valide.
    """
    if not STRIPE_WEBHOOK_SECRET:
        logger.critical("payments.webhook STRIPE_WEBHOOK_SECRET is not configured")
        raise HTTPException(status_code=500, detail="Webhook not configured")
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        raise HTTPException(status_code=400, detail="No signature found")
    try:
        stripe.Webhook.construct_event(payload, sig_header, STRIPE_WEBHOOK_SECRET)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning("payments.webhook signature verification failed: %s", e)
        raise HTTPException(status_code=400, detail="Invalid Stripe webhook signature")
    return json.loads(payload.decode("utf-8"))
