"""Réconciliation paiement -> réservation.
Rôles:
- Sur payment_intent.succeeded: relire les métadonnées, décoder le panier et créer exactement une réservation.
- Idempotence: une réservation existante pour le payment_id est un no-op (Stripe peut redélivrer);
  la contrainte unique sur payment_id tranche les livraisons concurrentes.
- Le PricingBreakdown convenu au checkout (métadonnées) fait foi; il n'est jamais recalculé.
- Le compteur d'utilisation du code promo n'est incrémenté qu'après création effective.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from tourpay.bookings import repository
from tourpay.bookings.references import booking_reference
from tourpay.config import SERVICE_FEE_RATE, TAX_RATE
from tourpay.discounts import service as discount_service
from tourpay.payments.cart_codec import CartDecodeError, decode_cart_items
from tourpay.payments.metadata import BookingMetadata, read_booking_metadata
from tourpay.pricing.models import CartLineItem
from tourpay.pricing.pricer import item_subtotal, quantize2, to_decimal

logger = logging.getLogger(__name__)

CONFIRMED = "Confirmed"
REFUNDED = "Refunded"

# Issues de reconcile_payment pour lesquelles une réservation existe pour le paiement
BOOKED_REASONS = ("created", "already_confirmed", "already_exists_concurrent")


def _items_payload(items: List[CartLineItem], intent: BookingMetadata) -> List[Dict[str, Any]]:
    """
    Détail par ligne (à titre informatif; les totaux de la réservation viennent des métadonnées).
    La remise est attribuée entièrement à une ligne unique, sinon au prorata du sous-total de la ligne.
    """
    pricing = intent.pricing
    total_discount = to_decimal(pricing.discount)
    order_subtotal = to_decimal(pricing.subtotal)
    charge_rate = 1 + to_decimal(SERVICE_FEE_RATE) + to_decimal(TAX_RATE)
    payload: List[Dict[str, Any]] = []
    for index, item in enumerate(items):
        subtotal = quantize2(item_subtotal(item))
        if len(items) == 1:
            share = total_discount
        elif order_subtotal > 0:
            share = quantize2(subtotal / order_subtotal * total_discount)
        else:
            share = Decimal(0)
        payload.append({
            "index": index,
            "tour_id": item.tour_id,
            "date": item.selected_date,
            "time": item.selected_time or "10:00",
            "adults": item.adult_qty,
            "children": item.child_qty,
            "infants": item.infant_qty,
            "base_price": item.base_price,
            "booking_option": (
                {"id": item.booking_option.id, "title": item.booking_option.title, "price": item.base_price}
                if item.booking_option else None
            ),
            "add_ons": [
                {"id": a.add_on_id, "title": a.title or "Add-on", "quantity": a.quantity, "price": a.unit_price, "per_guest": a.per_guest}
                for a in item.add_ons
            ],
            "subtotal": float(subtotal),
            "discount_share": float(share),
            "total": float(quantize2(max(Decimal(0), subtotal * charge_rate - share))),
        })
    return payload


def build_booking_row(payment_id: str, intent: BookingMetadata, items: List[CartLineItem], currency: str) -> Dict[str, Any]:
    pricing = intent.pricing
    first = items[0]
    return {
        "booking_reference": booking_reference(payment_id, 0),
        "payment_id": payment_id,
        "status": CONFIRMED,
        "payment_method": "card",
        "customer_email": intent.customer_email,
        "customer_first_name": intent.customer_first_name,
        "customer_last_name": intent.customer_last_name,
        "customer_phone": intent.customer_phone or None,
        "special_requests": intent.special_requests or None,
        "hotel_pickup_details": intent.hotel_pickup_details or None,
        "hotel_pickup_location": intent.hotel_pickup_location,
        "tour_date": first.selected_date or None,
        "tour_time": first.selected_time or "10:00",
        "guests": sum(i.adult_qty + i.child_qty + i.infant_qty for i in items),
        "items": _items_payload(items, intent),
        "subtotal": pricing.subtotal,
        "service_fee": pricing.service_fee,
        "tax": pricing.tax,
        "discount_amount": pricing.discount,
        "total_price": pricing.total,
        "currency": (pricing.currency or currency or "").upper(),
        "discount_code": intent.discount_code,
    }


def _same_booking(existing: Dict[str, Any], row: Dict[str, Any]) -> bool:
    try:
        same_total = quantize2(float(existing.get("total_price") or 0)) == quantize2(row["total_price"])
    except (TypeError, ValueError):
        same_total = False
    return existing.get("payment_id") == row["payment_id"] and same_total


def reconcile_payment(payment_intent: Dict[str, Any]) -> Dict[str, Any]:
    """
    Crée la réservation d'un PaymentIntent confirmé, au plus une fois.
    Retourne {"created": bool, "reason": ..., "bookingId"?: ...} avec reason parmi:
    no_booking_data, already_confirmed, missing_customer_data, invalid_cart_data,
    already_exists_concurrent, duplicate_mismatch, created.
    """
    payment_id = str(payment_intent.get("id") or "")
    intent = read_booking_metadata(payment_intent.get("metadata"), payment_intent.get("amount"))
    if not intent.has_booking_data:
        logger.info("bookings.reconcile no booking data payment_id=%s", payment_id)
        return {"created": False, "reason": "no_booking_data"}

    existing = repository.get_booking_by_payment_id(payment_id)
    if existing:
        logger.info("bookings.reconcile already confirmed payment_id=%s ref=%s", payment_id, existing.get("booking_reference"))
        return {"created": False, "reason": "already_confirmed", "bookingId": existing.get("booking_reference")}

    if not intent.has_customer:
        logger.error("bookings.reconcile missing customer data payment_id=%s", payment_id)
        return {"created": False, "reason": "missing_customer_data"}

    try:
        items = decode_cart_items(intent.cart_slots)
    except CartDecodeError as e:
        logger.error("bookings.reconcile invalid cart data payment_id=%s: %s", payment_id, e)
        return {"created": False, "reason": "invalid_cart_data"}
    if not items:
        logger.error("bookings.reconcile empty cart payment_id=%s", payment_id)
        return {"created": False, "reason": "invalid_cart_data"}

    row = build_booking_row(payment_id, intent, items, str(payment_intent.get("currency") or ""))
    inserted = repository.insert_booking(row)
    if inserted is None:
        # Livraison concurrente: l'autre insertion a gagné sur la contrainte unique
        existing = repository.get_booking_by_payment_id(payment_id)
        if existing and _same_booking(existing, row):
            logger.info("bookings.reconcile concurrent duplicate ignored payment_id=%s", payment_id)
            return {"created": False, "reason": "already_exists_concurrent", "bookingId": existing.get("booking_reference")}
        logger.error("bookings.reconcile duplicate does not match payment_id=%s", payment_id)
        return {"created": False, "reason": "duplicate_mismatch"}

    if intent.discount_code and not discount_service.record_usage(intent.discount_code):
        logger.warning("bookings.reconcile discount usage not recorded code=%s payment_id=%s", intent.discount_code, payment_id)

    logger.info("bookings.reconcile created ref=%s payment_id=%s items=%s", row["booking_reference"], payment_id, len(items))
    return {"created": True, "reason": "created", "bookingId": row["booking_reference"]}


def mark_refunded(charge: Dict[str, Any]) -> Dict[str, Any]:
    """Statut 'Refunded' uniquement pour un remboursement total (charge.refunded=true)."""
    payment_id = charge.get("payment_intent")
    if not payment_id:
        return {"updated": False, "reason": "no_payment_intent"}
    if not charge.get("refunded"):
        logger.info(
            "bookings.refund partial payment_id=%s amount_refunded=%s amount=%s",
            payment_id, charge.get("amount_refunded"), charge.get("amount"),
        )
        return {"updated": False, "reason": "partial_refund"}
    updated = repository.update_booking_status(str(payment_id), REFUNDED)
    logger.info("bookings.refund payment_id=%s updated=%s", payment_id, updated)
    return {"updated": updated, "reason": "refunded" if updated else "booking_not_found"}


def handle_event(event: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Distribue un événement Stripe vérifié.
    - payment_intent.succeeded -> reconcile_payment
    - payment_intent.payment_failed -> log
    - charge.refunded -> statut 'Refunded' si le remboursement est total
    Retourne le résultat du traitement, None si l'événement est ignoré.
    """
    event_type = (event or {}).get("type")
    obj = ((event or {}).get("data") or {}).get("object") or {}
    if event_type == "payment_intent.succeeded":
        return reconcile_payment(obj)
    if event_type == "payment_intent.payment_failed":
        logger.info("payments.webhook payment failed payment_id=%s", obj.get("id"))
        return None
    if event_type == "charge.refunded":
        return mark_refunded(obj)
    logger.info("payments.webhook unhandled event type=%s", event_type)
    return None
