"""
Normalisation défensive du panier client.

Le panier peut venir d'un ancien code front ou d'un état local corrompu: aucune forme n'est supposée.
- Quantités: nombre, chaîne numérique, ou objet imbriquant quantity/qty/count (déballé récursivement,
  profondeur bornée). Tout ce qui n'est pas interprétable vaut 0.
- Add-ons: liste [{id, quantity, ...}] ou dict {id: quantité | {quantity, price, ...}}.
- Montants: NaN/Infinity/négatifs/non interprétables valent 0.0.
Au-delà de ce module, seules des valeurs canoniques circulent (CartLineItem).
"""
import math
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Union

from .models import AddOnSelection, BookingOption, CartLineItem

MAX_UNWRAP_DEPTH = 5
QUANTITY_KEYS = ("quantity", "qty", "count")

# Alias acceptés pour chaque champ d'une ligne de panier (forme canonique, forme front historique)
TOUR_ID_KEYS = ("tourId", "tour_id", "_id", "id")
ADULT_KEYS = ("adultQty", "adults", "quantity")
CHILD_KEYS = ("childQty", "children", "childQuantity")
INFANT_KEYS = ("infantQty", "infants", "infantQuantity")
ADD_ON_KEYS = ("addOns", "selectedAddOns")


@dataclass(frozen=True)
class NumericQuantity:
    value: float


@dataclass(frozen=True)
class ObjectQuantity:
    payload: Mapping[str, Any]


Quantity = Union[NumericQuantity, ObjectQuantity, None]


def _parse_number(raw: Any) -> Optional[float]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        try:
            return float(raw.strip())
        except ValueError:
            return None
    return None


def classify_quantity(raw: Any) -> Quantity:
    """Classe une quantité brute: NumericQuantity, ObjectQuantity ou None (forme inconnue)."""
    if isinstance(raw, Mapping):
        return ObjectQuantity(raw)
    number = _parse_number(raw)
    if number is None:
        return None
    return NumericQuantity(number)


def to_count(raw: Any, _depth: int = 0) -> int:
    """
    Convertit une quantité hétérogène en entier >= 0.
    - 2, "2", {"quantity": 2}, {"qty": {"count": "2"}} -> 2
    - None, "abc", NaN, -3, objets trop profonds -> 0
    """
    quantity = classify_quantity(raw)
    if isinstance(quantity, NumericQuantity):
        value = quantity.value
        if not math.isfinite(value) or value <= 0:
            return 0
        return int(value)
    if isinstance(quantity, ObjectQuantity):
        if _depth >= MAX_UNWRAP_DEPTH:
            return 0
        for key in QUANTITY_KEYS:
            if key in quantity.payload:
                return to_count(quantity.payload[key], _depth + 1)
    return 0


def to_money(raw: Any) -> float:
    number = _parse_number(raw)
    if number is None or not math.isfinite(number) or number < 0:
        return 0.0
    return number


def _first(data: Mapping[str, Any], keys) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _text(raw: Any) -> str:
    if raw is None:
        return ""
    return str(raw).strip()


def _add_on_from(add_on_id: str, raw: Any, details: Mapping[str, Any]) -> Optional[AddOnSelection]:
    qty = to_count(raw)
    if not add_on_id or qty <= 0:
        return None
    detail = details.get(add_on_id) if isinstance(details, Mapping) else None
    detail = detail if isinstance(detail, Mapping) else {}
    entry = raw if isinstance(raw, Mapping) else {}
    price = _first(detail, ("price", "unitPrice"))
    if price is None:
        price = _first(entry, ("price", "unitPrice", "p"))
    per_guest = _first(detail, ("perGuest", "pg"))
    if per_guest is None:
        per_guest = _first(entry, ("perGuest", "pg"))
    title = _first(detail, ("title", "t")) or _first(entry, ("title", "t"))
    return AddOnSelection(
        add_on_id=add_on_id,
        quantity=qty,
        unit_price=to_money(price),
        per_guest=bool(per_guest),
        title=_text(title),
    )


def normalize_add_ons(raw: Any, details: Optional[Mapping[str, Any]] = None) -> List[AddOnSelection]:
    """
    Accepte les deux formes d'add-ons et ignore les quantités nulles/négatives.
    - liste: [{"id": "a1", "quantity": 2, "price": 5, "perGuest": true}, ...]
    - dict:  {"a1": 2, "a2": {"quantity": 1, "price": 10}}
    details: selectedAddOnDetails optionnel {id: {title, price, perGuest}}.
    """
    details = details if isinstance(details, Mapping) else {}
    selections: List[AddOnSelection] = []
    if isinstance(raw, list):
        for entry in raw:
            if not isinstance(entry, Mapping):
                continue
            add_on_id = _text(_first(entry, ("id", "addOnId", "_id")))
            selection = _add_on_from(add_on_id, entry, details)
            if selection:
                selections.append(selection)
    elif isinstance(raw, Mapping):
        for add_on_id, value in raw.items():
            selection = _add_on_from(_text(add_on_id), value, details)
            if selection:
                selections.append(selection)
    return selections


def _booking_option(raw: Any) -> Optional[BookingOption]:
    if not isinstance(raw, Mapping):
        return None
    option_id = _text(_first(raw, ("id", "_id")))
    if not option_id:
        return None
    return BookingOption(id=option_id, title=_text(raw.get("title")), price=to_money(raw.get("price")))


def resolve_base_price(raw: Mapping[str, Any], option: Optional[BookingOption]) -> float:
    """Prix de base: option choisie -> prix remisé -> prix catalogue -> 0."""
    if option and option.price > 0:
        return option.price
    for key in ("discountPrice", "price", "basePrice"):
        price = to_money(raw.get(key))
        if price > 0:
            return price
    return 0.0


def normalize_cart_item(raw: Any) -> Optional[CartLineItem]:
    """Construit un CartLineItem canonique; None si la ligne n'identifie aucun tour."""
    if not isinstance(raw, Mapping):
        return None
    tour_id = _text(_first(raw, TOUR_ID_KEYS))
    if not tour_id:
        return None
    option = _booking_option(raw.get("selectedBookingOption") or raw.get("bookingOption"))
    add_ons = normalize_add_ons(_first(raw, ADD_ON_KEYS), raw.get("selectedAddOnDetails"))
    return CartLineItem(
        tour_id=tour_id,
        base_price=resolve_base_price(raw, option),
        adult_qty=max(1, to_count(_first(raw, ADULT_KEYS))),
        child_qty=to_count(_first(raw, CHILD_KEYS)),
        infant_qty=to_count(_first(raw, INFANT_KEYS)),
        selected_date=_text(_first(raw, ("selectedDate", "date"))),
        selected_time=_text(_first(raw, ("selectedTime", "time"))),
        title=_text(raw.get("title")),
        booking_option=option,
        add_ons=add_ons,
    )


def normalize_cart(raw_cart: Any) -> List[CartLineItem]:
    if not isinstance(raw_cart, list):
        return []
    items = [normalize_cart_item(raw) for raw in raw_cart]
    return [item for item in items if item is not None]
