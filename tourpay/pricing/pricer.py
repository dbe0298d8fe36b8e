"""
Tarification d'une ligne de panier.

price(item) = basePrice x adultes + (basePrice / 2) x enfants + total des add-ons
add-ons     = somme(prix unitaire x multiplicateur x quantité), multiplicateur = adultes + enfants si perGuest, sinon 1

Le calcul interne se fait en Decimal (à partir du repr des floats) pour rester exact et reproductible;
les arrondis sont au centime, demi vers le haut.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from .models import CartLineItem

CENT = Decimal("0.01")
# Règle métier: un enfant paie exactement la moitié du tarif adulte
CHILD_PRICE_RATIO = Decimal("0.5")


def to_decimal(value: Union[int, float, Decimal]) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(repr(value)) if isinstance(value, float) else Decimal(value)


def quantize2(value: Union[int, float, Decimal]) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round2(value: Union[int, float, Decimal]) -> float:
    return float(quantize2(value))


def add_ons_total(item: CartLineItem) -> Decimal:
    multiplier_per_guest = item.paying_guests
    total = Decimal(0)
    for add_on in item.add_ons:
        if add_on.quantity <= 0:
            continue
        multiplier = multiplier_per_guest if add_on.per_guest else 1
        total += to_decimal(add_on.unit_price) * multiplier * add_on.quantity
    return total


def item_subtotal(item: CartLineItem) -> Decimal:
    """Sous-total exact (non arrondi) d'une ligne."""
    base = to_decimal(item.base_price)
    return base * item.adult_qty + base * CHILD_PRICE_RATIO * item.child_qty + add_ons_total(item)


def price_item(item: CartLineItem) -> float:
    return round2(item_subtotal(item))
