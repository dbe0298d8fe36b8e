"""
Encodage compact du panier pour les métadonnées Stripe.

Chaque ligne devient une entrée à clés courtes:
    {i, t, a, c, n, d, tm, bp, bo, bot, ao: [{id, q, p, pg, t}]}
Le tableau JSON est découpé en slots de 500 caractères maximum, uniquement aux frontières d'entrées
(après la virgule qui suit une entrée complète). La concaténation des slots redonne toujours le texte
du tableau d'origine: un slot n'est jamais interprété seul.
Si le panier ne tient pas dans les slots prévus, CartTooLarge est levée (pas de troncature silencieuse).
"""
import json
from typing import Any, Dict, List, Sequence

from tourpay.config import CART_DATA_SLOTS, METADATA_VALUE_MAX
from tourpay.errors import CartTooLarge
from tourpay.pricing.models import CartLineItem
from tourpay.pricing.normalizer import normalize_cart_item

TITLE_MAX = 40
_SEPARATORS = (",", ":")


class CartDecodeError(ValueError):
    pass


def _number(value: float):
    # 100.0 -> 100 : quelques octets gagnés par entrée
    return int(value) if float(value).is_integer() else value


def to_compact_entry(index: int, item: CartLineItem) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "i": index,
        "t": item.tour_id,
        "a": item.adult_qty,
        "c": item.child_qty,
    }
    if item.infant_qty:
        entry["n"] = item.infant_qty
    entry["d"] = item.selected_date
    entry["tm"] = item.selected_time
    entry["bp"] = _number(item.base_price)
    if item.booking_option:
        entry["bo"] = item.booking_option.id
        if item.booking_option.title:
            entry["bot"] = item.booking_option.title[:TITLE_MAX]
    add_ons = []
    for add_on in item.add_ons:
        if add_on.quantity <= 0:
            continue
        compact = {"id": add_on.add_on_id, "q": add_on.quantity, "p": _number(add_on.unit_price)}
        if add_on.per_guest:
            compact["pg"] = 1
        if add_on.title:
            compact["t"] = add_on.title[:TITLE_MAX]
        add_ons.append(compact)
    if add_ons:
        entry["ao"] = add_ons
    return entry


def entry_to_raw(entry: Dict[str, Any]) -> Dict[str, Any]:
    """Inverse de to_compact_entry, sous la forme acceptée par le normalizer."""
    raw: Dict[str, Any] = {
        "tourId": entry.get("t"),
        "basePrice": entry.get("bp"),
        "adultQty": entry.get("a"),
        "childQty": entry.get("c"),
        "infantQty": entry.get("n"),
        "selectedDate": entry.get("d"),
        "selectedTime": entry.get("tm"),
        "addOns": [
            {
                "id": ao.get("id"),
                "quantity": ao.get("q"),
                "price": ao.get("p"),
                "perGuest": bool(ao.get("pg")),
                "title": ao.get("t"),
            }
            for ao in (entry.get("ao") or [])
            if isinstance(ao, dict)
        ],
    }
    if entry.get("bo"):
        # bp est déjà le prix résolu (option prioritaire): on le réattache à l'option
        raw["bookingOption"] = {"id": entry.get("bo"), "title": entry.get("bot") or "", "price": entry.get("bp")}
    return raw


def serialize_entries(items: Sequence[CartLineItem]) -> List[str]:
    return [
        json.dumps(to_compact_entry(index, item), separators=_SEPARATORS, ensure_ascii=False)
        for index, item in enumerate(items)
    ]


def encode_cart(
    items: Sequence[CartLineItem],
    *,
    slot_size: int = METADATA_VALUE_MAX,
    max_slots: int = CART_DATA_SLOTS,
) -> List[str]:
    """
    Sérialise le panier et le répartit sur au plus max_slots chaînes de slot_size caractères.
    - Panier court: un seul slot contenant le tableau complet.
    - Sinon: découpage glouton aux frontières d'entrées.
    - Lève CartTooLarge si une entrée seule dépasse un slot ou si les slots ne suffisent pas.
    """
    entries = serialize_entries(items)
    if not entries:
        return ["[]"]
    pieces = [entry + "," for entry in entries]
    pieces[0] = "[" + pieces[0]
    pieces[-1] = pieces[-1][:-1] + "]"

    slots: List[str] = []
    current = ""
    for piece in pieces:
        if len(piece) > slot_size:
            raise CartTooLarge("One of the items in your cart has too many details to be booked online")
        if current and len(current) + len(piece) > slot_size:
            slots.append(current)
            current = ""
        current += piece
    slots.append(current)
    if len(slots) > max_slots:
        raise CartTooLarge()
    return slots


def decode_cart(slots: Sequence[str]) -> List[Dict[str, Any]]:
    """Concatène tous les slots présents puis parse le tableau d'entrées compactes."""
    text = "".join(slot for slot in slots if slot)
    if not text:
        raise CartDecodeError("cart data is empty")
    try:
        entries = json.loads(text)
    except json.JSONDecodeError as e:
        raise CartDecodeError(f"cart data is not valid JSON: {e}") from e
    if not isinstance(entries, list):
        raise CartDecodeError("cart data is not a list")
    return [entry for entry in entries if isinstance(entry, dict)]


def decode_cart_items(slots: Sequence[str]) -> List[CartLineItem]:
    """Décode puis repasse chaque entrée par le normalizer (mêmes quantités que le pricer)."""
    items = [normalize_cart_item(entry_to_raw(entry)) for entry in decode_cart(slots)]
    return [item for item in items if item is not None]
