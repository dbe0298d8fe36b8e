"""
Sérialisation/désérialisation des métadonnées Stripe du PaymentIntent.

Clés fixes, valeurs toujours des chaînes de 500 caractères maximum, nombre de clés borné.
Le reconciler relit exactement ce qui a été écrit ici (read_booking_metadata).
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from tourpay.config import (
    CART_DATA_SLOTS,
    HOTEL_PICKUP_DETAILS_MAX,
    HOTEL_PICKUP_LOCATION_MAX,
    METADATA_MAX_KEYS,
    METADATA_VALUE_MAX,
    SETTLEMENT_CURRENCY,
    SPECIAL_REQUESTS_MAX,
    TOURS_SUMMARY_MAX,
)
from tourpay.pricing.models import CartLineItem, PricingBreakdown
from tourpay.utils.validators import clean_text

logger = logging.getLogger(__name__)

NO_DISCOUNT = "none"
CART_SLOT_KEYS = ["cart_data"] + [f"cart_data_{n}" for n in range(2, CART_DATA_SLOTS + 1)]


def pickup_location_json(location: Optional[Dict[str, Any]], limit: int = HOTEL_PICKUP_LOCATION_MAX) -> str:
    """
    JSON compact du point de prise en charge.
    - Retire 'address' puis 'name' tant que le JSON dépasse la limite.
    - Retourne "" si les coordonnées seules ne tiennent pas ou sont absentes.
    """
    if not location or location.get("lat") is None or location.get("lng") is None:
        return ""
    data = {k: location.get(k) for k in ("lat", "lng", "name", "address") if location.get(k) not in (None, "")}
    for optional in (None, "address", "name"):
        if optional:
            data.pop(optional, None)
        encoded = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
        if len(encoded) <= limit:
            return encoded
    return ""


def tours_summary(items: Sequence[CartLineItem], limit: int = TOURS_SUMMARY_MAX) -> str:
    return clean_text(", ".join(item.title or item.tour_id for item in items), limit)


def _money(value: float) -> str:
    return f"{value:.2f}"


def check_limits(metadata: Dict[str, str]) -> None:
    """Garde-fou: lève ValueError si une contrainte Stripe n'est pas respectée."""
    if len(metadata) > METADATA_MAX_KEYS:
        raise ValueError(f"metadata has {len(metadata)} keys (max {METADATA_MAX_KEYS})")
    for key, value in metadata.items():
        if not isinstance(value, str):
            raise ValueError(f"metadata[{key}] must be a string")
        if len(value) > METADATA_VALUE_MAX:
            raise ValueError(f"metadata[{key}] exceeds {METADATA_VALUE_MAX} characters")


def build_metadata(
    *,
    customer: Any,
    items: Sequence[CartLineItem],
    pricing: PricingBreakdown,
    discount_code: Optional[str],
    cart_slots: Sequence[str],
) -> Dict[str, str]:
    """
    Construit le sac de métadonnées complet du PaymentIntent.
    - customer: objet avec firstName, lastName, email, phone, specialRequests,
      hotelPickupDetails, hotelPickupLocation (déjà validé par le service).
    - cart_slots: sortie de cart_codec.encode_cart (au plus CART_DATA_SLOTS chaînes).
    - discount_code: code appliqué (remise > 0) ou None -> "none".
    """
    if len(cart_slots) > len(CART_SLOT_KEYS):
        raise ValueError("too many cart slots")
    first_name = clean_text(customer.firstName, METADATA_VALUE_MAX)
    last_name = clean_text(customer.lastName, METADATA_VALUE_MAX)
    location = customer.hotelPickupLocation
    if location is not None and hasattr(location, "model_dump"):
        location = location.model_dump()

    metadata: Dict[str, str] = {
        "has_booking_data": "true",
        "customer_email": clean_text(customer.email, METADATA_VALUE_MAX),
        "customer_first_name": first_name,
        "customer_last_name": last_name,
        "customer_name": clean_text(f"{first_name} {last_name}", METADATA_VALUE_MAX),
        "customer_phone": clean_text(customer.phone, METADATA_VALUE_MAX),
        "special_requests": clean_text(customer.specialRequests, SPECIAL_REQUESTS_MAX),
        "hotel_pickup_details": clean_text(customer.hotelPickupDetails, HOTEL_PICKUP_DETAILS_MAX),
        "hotel_pickup_location": pickup_location_json(location),
        "tours": tours_summary(items),
        "item_count": str(len(items)),
        "pricing_subtotal": _money(pricing.subtotal),
        "pricing_service_fee": _money(pricing.service_fee),
        "pricing_tax": _money(pricing.tax),
        "pricing_discount": _money(pricing.discount),
        "pricing_total": _money(pricing.total),
        "pricing_currency": pricing.currency.upper(),
        "discount_code": (discount_code or "").upper() or NO_DISCOUNT,
    }
    for key, slot in zip(CART_SLOT_KEYS, cart_slots):
        metadata[key] = slot
    check_limits(metadata)
    return metadata


@dataclass
class BookingMetadata:
    """Intention de réservation relue depuis les métadonnées d'un PaymentIntent."""
    has_booking_data: bool
    customer_email: str = ""
    customer_first_name: str = ""
    customer_last_name: str = ""
    customer_phone: str = ""
    special_requests: str = ""
    hotel_pickup_details: str = ""
    hotel_pickup_location: Optional[Dict[str, Any]] = None
    discount_code: Optional[str] = None
    pricing: Optional[PricingBreakdown] = None
    cart_slots: List[str] = field(default_factory=list)

    @property
    def has_customer(self) -> bool:
        return bool(self.customer_email and self.customer_first_name and self.customer_last_name)


def _float(raw: Any, default: float = 0.0) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


def read_booking_metadata(metadata: Optional[Dict[str, Any]], amount_minor: Optional[int] = None) -> BookingMetadata:
    """
    Relit les métadonnées écrites par build_metadata.
    - pricing: le breakdown convenu au checkout (jamais recalculé); total de secours = amount / 100.
    - hotel_pickup_location: JSON toléré invalide (None + log).
    """
    meta = dict(metadata or {})
    if meta.get("has_booking_data") != "true":
        return BookingMetadata(has_booking_data=False)

    location = None
    raw_location = meta.get("hotel_pickup_location")
    if raw_location:
        try:
            location = json.loads(raw_location)
        except (TypeError, ValueError):
            logger.warning("payments.metadata unparsable hotel_pickup_location")

    fallback_total = (amount_minor or 0) / 100
    pricing = PricingBreakdown(
        subtotal=_float(meta.get("pricing_subtotal")),
        service_fee=_float(meta.get("pricing_service_fee")),
        tax=_float(meta.get("pricing_tax")),
        discount=_float(meta.get("pricing_discount")),
        total=_float(meta.get("pricing_total"), fallback_total),
        currency=str(meta.get("pricing_currency") or SETTLEMENT_CURRENCY).upper(),
    )
    code = str(meta.get("discount_code") or "").strip()
    return BookingMetadata(
        has_booking_data=True,
        customer_email=str(meta.get("customer_email") or "").strip(),
        customer_first_name=str(meta.get("customer_first_name") or "").strip(),
        customer_last_name=str(meta.get("customer_last_name") or "").strip(),
        customer_phone=str(meta.get("customer_phone") or ""),
        special_requests=str(meta.get("special_requests") or ""),
        hotel_pickup_details=str(meta.get("hotel_pickup_details") or ""),
        hotel_pickup_location=location if isinstance(location, dict) else None,
        discount_code=code.upper() if code and code.lower() != NO_DISCOUNT else None,
        pricing=pricing,
        cart_slots=[str(meta[key]) for key in CART_SLOT_KEYS if meta.get(key)],
    )
