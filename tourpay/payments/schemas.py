"""
Schémas d'entrée/sortie de l'API checkout.

Volontairement permissifs: les champs client sont optionnels ici et vérifiés par le service
(message précis en 400), et le panier reste une liste brute confiée au normalizer.
"""
import math
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class PickupLocation(BaseModel):
    """Coordonnées non interprétables -> None; pickup_location_json écarte alors la position."""
    model_config = ConfigDict(extra="ignore")

    lat: Optional[float] = None
    lng: Optional[float] = None
    name: Optional[str] = None
    address: Optional[str] = None

    @field_validator("lat", "lng", mode="before")
    def coordinate(cls, v: Any) -> Optional[float]:
        if isinstance(v, bool):
            return None
        try:
            value = float(v)
        except (TypeError, ValueError):
            return None
        return value if math.isfinite(value) else None

    @field_validator("name", "address", mode="before")
    def label(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) else None


class CustomerIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    specialRequests: Optional[str] = None
    hotelPickupDetails: Optional[str] = None
    hotelPickupLocation: Optional[PickupLocation] = None

    @field_validator("hotelPickupLocation", mode="before")
    def pickup_location_shape(cls, v: Any) -> Any:
        # Position optionnelle: une forme inattendue (chaîne, liste...) est ignorée, jamais rejetée
        return v if isinstance(v, (dict, PickupLocation)) else None


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    customer: Optional[CustomerIn] = None
    cart: Optional[List[Any]] = None
    discountCode: Optional[str] = None


class PricingOut(BaseModel):
    subtotal: float
    serviceFee: float
    tax: float
    discount: float
    total: float
    currency: str


class CheckoutResponse(BaseModel):
    success: bool = True
    transactionClientSecret: str
    transactionId: str
    pricing: PricingOut


class ConfirmRequest(BaseModel):
    payment_intent_id: str
