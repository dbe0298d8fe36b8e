import logging
from typing import Any, Dict

from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse

from tourpay.utils.rate_limit import optional_rate_limit
from tourpay.payments import stripe_client
from tourpay.payments import service as payments_service
from tourpay.payments.schemas import CheckoutRequest, CheckoutResponse, ConfirmRequest
from tourpay.bookings import reconciler

logger = logging.getLogger(__name__)
checkout_router = APIRouter(prefix="/api/v1/checkout", tags=["Checkout API"])
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])

# module tourpay.payments.views
@checkout_router.post(
    "/create-payment-intent",
    response_model=CheckoutResponse,
    dependencies=[Depends(optional_rate_limit(times=10, seconds=60))],
)
def create_payment_intent(payload: CheckoutRequest) -> Dict[str, Any]:
    """
    Crée un PaymentIntent Stripe pour le panier soumis par le formulaire de checkout.
    - Entrée JSON: { "customer": {...}, "cart": [ ... ], "discountCode": "..." }
    - Sécurité: rate limit (10 req / 60s par IP)
    - Le prix est toujours recalculé côté serveur (les totaux du client sont ignorés)
    - Réponse: {success, transactionClientSecret, transactionId, pricing}
    - Erreurs: {success: false, message} (400/413 validation, 400/500/502/503 passerelle)
    """
    return payments_service.create_checkout_intent(payload)

@router.post("/webhook", include_in_schema=False)
async def webhook_stripe(request: Request):
    """
    Webhook Stripe: payment_intent.succeeded crée la réservation (exactement une fois).
    - Signature: valide via stripe_client.parse_event (Stripe-Signature + STRIPE_WEBHOOK_SECRET)
    - Une fois la signature valide, répond toujours 200 (un échec de traitement est loggé,
      Stripe ne redélivre donc pas indéfiniment un problème de données)
    - Réponses: {"received": true, "result": {...}} ou {"received": true, "result": null}
    - Erreurs: 400 si signature absente/invalide, 500 si secret non configuré
    """
    event = await stripe_client.parse_event(request)
    try:
        result = reconciler.handle_event(event)
    except Exception:
        logger.exception("payments.webhook processing failed type=%s id=%s", event.get("type"), event.get("id"))
        return {"received": True, "result": {"created": False, "reason": "processing_error"}}
    logger.info("payments.webhook type=%s result=%s", event.get("type"), result)
    return {"received": True, "result": result}

@router.post("/confirm")
def confirm_payment(payload: ConfirmRequest) -> Any:
    """
    Alternative sans webhook: confirme le PaymentIntent et crée la réservation.
    - Vérifie status='succeeded' puis applique la même réconciliation que le webhook
    - Erreurs: 400 si paiement non confirmé, 422 si la réservation n'a pas pu être créée
      (métadonnées absentes ou invalides)
    """
    result = payments_service.confirm_payment_intent(payload.payment_intent_id)
    if result.get("reason") not in reconciler.BOOKED_REASONS:
        return JSONResponse(
            status_code=422,
            content={"success": False, "message": "Booking could not be created for this payment", **result},
        )
    return {"success": True, **result}
