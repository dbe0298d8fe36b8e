"""
Totalisation d'une commande.

subtotal    = round2(somme des price(item))
serviceFee  = round2(subtotal x 0.03)
tax         = round2(subtotal x 0.05)
discount    = remise du code promo (0 si invalide)
total       = round2(max(0, subtotal + serviceFee + tax - discount))
Chaque ligne est arrondie indépendamment avant la somme finale.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from tourpay.config import SERVICE_FEE_RATE, SETTLEMENT_CURRENCY, TAX_RATE
from tourpay.discounts.service import compute_discount
from tourpay.errors import InvalidAmount
from .models import CartLineItem, DiscountCode, PricingBreakdown
from .pricer import item_subtotal, quantize2, to_decimal


def compute_subtotal(items: List[CartLineItem]) -> Decimal:
    return quantize2(sum((item_subtotal(item) for item in items), Decimal(0)))


def compute_breakdown(
    items: List[CartLineItem],
    discount: Optional[DiscountCode] = None,
    *,
    currency: str = SETTLEMENT_CURRENCY,
    now: Optional[datetime] = None,
    require_positive: bool = True,
) -> PricingBreakdown:
    """
    Calcule le PricingBreakdown faisant foi pour un panier déjà normalisé.
    - Lève InvalidAmount si le panier est vide, ou si le total est <= 0 (require_positive).
    - Le total est toujours plancher à 0, même quand la remise dépasse sous-total + frais.
    """
    if not items:
        raise InvalidAmount("Your cart is empty")
    subtotal = compute_subtotal(items)
    service_fee = quantize2(subtotal * to_decimal(SERVICE_FEE_RATE))
    tax = quantize2(subtotal * to_decimal(TAX_RATE))
    discount_amount = quantize2(compute_discount(float(subtotal), discount, now))
    total = quantize2(max(Decimal(0), subtotal + service_fee + tax - discount_amount))
    if require_positive and total <= 0:
        raise InvalidAmount()
    return PricingBreakdown(
        subtotal=float(subtotal),
        service_fee=float(service_fee),
        tax=float(tax),
        discount=float(discount_amount),
        total=float(total),
        currency=currency.upper(),
    )


def to_minor_units(amount: float) -> int:
    """Montant en centimes (entier), sans dérive flottante."""
    return int(quantize2(amount) * 100)
