"""Couche service des codes promo.
Rôles:
- Valider un code (actif, non expiré, quota non atteint) et calculer la remise.
- Résoudre un code saisi au checkout: un code invalide donne silencieusement 0 de remise.
- Vérifier un code pour l'affichage (statut + raison), sans effet de bord.
- Incrémenter le compteur d'utilisation: réservé au reconciler, après création d'une réservation.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
import logging

from tourpay.discounts import repository
from tourpay.pricing.models import DiscountCode
from tourpay.pricing.pricer import quantize2, round2, to_decimal

logger = logging.getLogger(__name__)

NO_DISCOUNT_CODE = "none"


def normalize_code(code: Optional[str]) -> str:
    cleaned = (code or "").strip().upper()
    if cleaned == NO_DISCOUNT_CODE.upper():
        return ""
    return cleaned


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def invalid_reason(discount: DiscountCode, now: Optional[datetime] = None) -> Optional[str]:
    """Retourne None si le code est utilisable, sinon la raison ('inactive', 'expired', 'exhausted')."""
    now = _aware(now or datetime.now(timezone.utc))
    if not discount.is_active:
        return "inactive"
    if discount.expires_at is not None and now > _aware(discount.expires_at):
        return "expired"
    if discount.usage_limit is not None and discount.times_used >= discount.usage_limit:
        return "exhausted"
    return None


def is_valid(discount: Optional[DiscountCode], now: Optional[datetime] = None) -> bool:
    return discount is not None and invalid_reason(discount, now) is None


def compute_discount(subtotal: float, discount: Optional[DiscountCode], now: Optional[datetime] = None) -> float:
    """
    Montant de la remise, arrondi au centime.
    - percentage: subtotal x value / 100
    - fixed: value
    Un code absent ou invalide donne 0.0 (jamais d'erreur).
    """
    if not is_valid(discount, now):
        return 0.0
    value = to_decimal(max(float(discount.value), 0.0))
    if discount.discount_type == "percentage":
        return round2(quantize2(subtotal) * value / 100)
    return round2(value)


def resolve_discount(code: Optional[str]) -> Optional[DiscountCode]:
    """
    Lecture seule du code promo pour le checkout.
    - Recherche insensible à la casse.
    - Code inconnu/invalide/erreur de lecture -> None (le checkout n'est jamais bloqué).
    """
    normalized = normalize_code(code)
    if not normalized:
        return None
    discount = repository.fetch_discount_by_code(normalized)
    if discount is None:
        logger.info("discounts.resolve unknown code=%s", normalized)
        return None
    reason = invalid_reason(discount)
    if reason:
        logger.info("discounts.resolve ignored code=%s reason=%s", normalized, reason)
        return None
    return discount


_REASON_MESSAGES = {
    "inactive": "This coupon is no longer active",
    "expired": "This coupon has expired",
    "exhausted": "This coupon has reached its usage limit",
}


def verify_discount(code: Optional[str]) -> Tuple[str, Dict[str, Any]]:
    """
    Vérification pour l'UI (endpoint /discounts/verify).
    Retourne (status, payload) avec status in {'missing', 'not_found', 'invalid', 'valid'}.
    """
    normalized = normalize_code(code)
    if not normalized:
        return "missing", {"error": "Coupon code is required"}
    discount = repository.fetch_discount_by_code(normalized)
    if discount is None:
        return "not_found", {"error": "Invalid coupon code"}
    reason = invalid_reason(discount)
    if reason:
        return "invalid", {"error": _REASON_MESSAGES[reason], "reason": reason}
    return "valid", {
        "data": {
            "code": discount.code,
            "discountType": discount.discount_type,
            "value": discount.value,
        }
    }


def record_usage(code: Optional[str]) -> bool:
    """Incrément atomique du compteur d'utilisation (appelé uniquement par le reconciler)."""
    normalized = normalize_code(code)
    if not normalized:
        return False
    return repository.increment_usage(normalized)
