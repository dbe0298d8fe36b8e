"""
Modèle de données du panier et de la tarification.

Les CartLineItem sont éphémères (construits à chaque requête, jamais persistés tels quels).
Toutes les quantités et tous les prix ont déjà traversé le normalizer: entiers >= 0, floats finis >= 0.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

DiscountType = Literal["percentage", "fixed"]


@dataclass(frozen=True)
class BookingOption:
    id: str
    title: str = ""
    price: float = 0.0


@dataclass(frozen=True)
class AddOnSelection:
    add_on_id: str
    quantity: int
    unit_price: float = 0.0
    per_guest: bool = False
    title: str = ""


@dataclass(frozen=True)
class CartLineItem:
    tour_id: str
    base_price: float
    adult_qty: int = 1
    child_qty: int = 0
    infant_qty: int = 0
    selected_date: str = ""
    selected_time: str = ""
    title: str = ""
    booking_option: Optional[BookingOption] = None
    add_ons: List[AddOnSelection] = field(default_factory=list)

    @property
    def paying_guests(self) -> int:
        return self.adult_qty + self.child_qty


@dataclass(frozen=True)
class DiscountCode:
    code: str
    discount_type: DiscountType
    value: float
    is_active: bool = True
    expires_at: Optional[datetime] = None
    usage_limit: Optional[int] = None
    times_used: int = 0


@dataclass(frozen=True)
class PricingBreakdown:
    subtotal: float
    service_fee: float
    tax: float
    discount: float
    total: float
    currency: str = "USD"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subtotal": self.subtotal,
            "serviceFee": self.service_fee,
            "tax": self.tax,
            "discount": self.discount,
            "total": self.total,
            "currency": self.currency,
        }
