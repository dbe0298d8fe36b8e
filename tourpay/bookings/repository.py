# module tourpay.bookings.repository
from typing import Any, Dict, Optional
import logging

from postgrest.exceptions import APIError

import tourpay.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def _error_code(e: APIError) -> Optional[str]:
    code = getattr(e, "code", None)
    if code:
        return str(code)
    if e.args and isinstance(e.args[0], dict):
        return e.args[0].get("code")
    return None


def get_booking_by_payment_id(payment_id: str) -> Optional[Dict[str, Any]]:
    """
    Récupère la réservation liée à un PaymentIntent (payment_id unique).
    """
    if not payment_id:
        return None
    res = (
        supabase_client.get_service_supabase()
        .table("bookings")
        .select("*")
        .eq("payment_id", payment_id)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None


def insert_booking(row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    # Client service-role (webhook, pas d'utilisateur connecté).
    # Retourne None en cas de doublon (23505): le reconciler traite 'already_exists_concurrent'.
    try:
        res = supabase_client.get_service_supabase().table("bookings").insert(row).execute()
    except APIError as e:
        if _error_code(e) == UNIQUE_VIOLATION:
            logger.info("bookings.repository duplicate payment_id=%s", row.get("payment_id"))
            return None
        logger.exception("bookings.repository.insert_booking failed payment_id=%s", row.get("payment_id"))
        raise
    data = res.data or []
    if isinstance(data, list):
        return data[0] if data else row
    return data or row


def update_booking_status(payment_id: str, status: str) -> bool:
    """Met à jour le statut (ex: 'Refunded'); True si une ligne a été modifiée."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("bookings")
            .update({"status": status})
            .eq("payment_id", payment_id)
            .execute()
        )
        return bool(res.data)
    except Exception:
        logger.exception("bookings.repository.update_booking_status failed payment_id=%s", payment_id)
        return False
