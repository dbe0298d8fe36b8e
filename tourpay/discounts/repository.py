"""
Accès aux données pour la feature 'discounts' (table 'discounts').
"""
from datetime import datetime
from typing import Any, Dict, Optional
import logging

import tourpay.infra.supabase_client as supabase_client
from tourpay.pricing.models import DiscountCode

logger = logging.getLogger(__name__)

DISCOUNT_COLUMNS = "code, discount_type, value, is_active, expires_at, usage_limit, times_used"


def _parse_datetime(raw: Any) -> Optional[datetime]:
    if not raw:
        return None
    if isinstance(raw, datetime):
        return raw
    try:
        return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        logger.warning("discounts.repository unparsable expires_at=%s", raw)
        return None


def _optional_int(raw: Any) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def row_to_discount(row: Dict[str, Any]) -> DiscountCode:
    """Convertit une ligne Supabase en DiscountCode."""
    discount_type = str(row.get("discount_type") or "percentage").lower()
    try:
        value = float(row.get("value") or 0)
    except (TypeError, ValueError):
        value = 0.0
    return DiscountCode(
        code=str(row.get("code") or "").upper(),
        discount_type="fixed" if discount_type == "fixed" else "percentage",
        value=value,
        is_active=bool(row.get("is_active", True)),
        expires_at=_parse_datetime(row.get("expires_at")),
        usage_limit=_optional_int(row.get("usage_limit")),
        times_used=_optional_int(row.get("times_used")) or 0,
    )


def fetch_discount_by_code(code: str) -> Optional[DiscountCode]:
    """
    Lecture unique par code normalisé (les codes sont stockés en majuscules).
    - Retourne None si absent ou en cas d'erreur de lecture.
    """
    if not code:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("discounts")
            .select(DISCOUNT_COLUMNS)
            .eq("code", code.upper())
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return row_to_discount(rows[0]) if rows else None
    except Exception:
        logger.exception("discounts.repository.fetch_discount_by_code failed code=%s", code)
        return None


def increment_usage(code: str) -> bool:
    """
    Incrément atomique via la fonction Postgres increment_discount_usage (un seul UPDATE côté base).
    Retourne True si une ligne a été mise à jour.
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .rpc("increment_discount_usage", {"discount_code": code.upper()})
            .execute()
        )
        return bool(res.data)
    except Exception:
        logger.exception("discounts.repository.increment_usage failed code=%s", code)
        return False
