import math

import pytest

from tourpay.pricing.normalizer import (
    MAX_UNWRAP_DEPTH,
    NumericQuantity,
    ObjectQuantity,
    classify_quantity,
    normalize_add_ons,
    normalize_cart,
    normalize_cart_item,
    to_count,
    to_money,
)


@pytest.mark.parametrize("raw, expected", [
    (2, 2),
    ("3", 3),
    (" 4 ", 4),
    (2.9, 2),
    ({"quantity": 2}, 2),
    ({"qty": "5"}, 5),
    ({"count": {"quantity": {"qty": 1}}}, 1),
    (None, 0),
    ("abc", 0),
    (-3, 0),
    (float("nan"), 0),
    (float("inf"), 0),
    (True, 0),
    ([1, 2], 0),
    ({"other": 4}, 0),
])
def test_to_count_shapes(raw, expected):
    assert to_count(raw) == expected


def test_to_count_depth_cap():
    nested = 7
    for _ in range(MAX_UNWRAP_DEPTH + 1):
        nested = {"quantity": nested}
    assert to_count(nested) == 0
    # Juste sous la limite: déballé
    shallow = 7
    for _ in range(MAX_UNWRAP_DEPTH):
        shallow = {"quantity": shallow}
    assert to_count(shallow) == 7


def test_classify_quantity():
    assert classify_quantity("2") == NumericQuantity(2.0)
    assert isinstance(classify_quantity({"qty": 1}), ObjectQuantity)
    assert classify_quantity("x") is None


def test_to_money_normalizes_bad_inputs():
    assert to_money("12.5") == 12.5
    assert to_money(-1) == 0.0
    assert to_money(float("nan")) == 0.0
    assert to_money(math.inf) == 0.0
    assert to_money(None) == 0.0


def test_add_ons_list_shape_skips_zero_and_negative():
    add_ons = normalize_add_ons([
        {"id": "lunch", "quantity": 2, "price": 15, "perGuest": False},
        {"id": "photos", "quantity": 0, "price": 30},
        {"id": "boat", "quantity": -1, "price": 30},
        "garbage",
    ])
    assert [a.add_on_id for a in add_ons] == ["lunch"]
    assert add_ons[0].quantity == 2
    assert add_ons[0].unit_price == 15.0


def test_add_ons_map_shape_with_details():
    add_ons = normalize_add_ons(
        {"lunch": 1, "transfer": {"quantity": "2"}, "skip": 0},
        {"lunch": {"price": 20, "perGuest": True, "title": "Lunch"}, "transfer": {"price": 7.5}},
    )
    by_id = {a.add_on_id: a for a in add_ons}
    assert set(by_id) == {"lunch", "transfer"}
    assert by_id["lunch"].per_guest is True
    assert by_id["lunch"].title == "Lunch"
    assert by_id["transfer"].quantity == 2
    assert by_id["transfer"].unit_price == 7.5


def test_cart_item_aliases_and_adult_minimum():
    item = normalize_cart_item({
        "_id": "tour-1",
        "price": "100",
        "adults": 0,
        "children": {"qty": 2},
        "infants": "1",
        "date": "2026-11-02",
        "time": "09:30",
        "title": " Desert Safari ",
    })
    assert item.tour_id == "tour-1"
    assert item.adult_qty == 1
    assert item.child_qty == 2
    assert item.infant_qty == 1
    assert item.selected_date == "2026-11-02"
    assert item.selected_time == "09:30"
    assert item.title == "Desert Safari"


def test_base_price_resolution_order():
    with_option = normalize_cart_item({
        "tourId": "t", "price": 100, "discountPrice": 80,
        "selectedBookingOption": {"id": "vip", "title": "VIP", "price": 150},
    })
    assert with_option.base_price == 150.0
    assert with_option.booking_option.id == "vip"
    assert normalize_cart_item({"tourId": "t", "price": 100, "discountPrice": 80}).base_price == 80.0
    assert normalize_cart_item({"tourId": "t", "price": 100}).base_price == 100.0
    assert normalize_cart_item({"tourId": "t", "price": "NaN"}).base_price == 0.0


def test_normalize_cart_drops_unidentified_lines():
    items = normalize_cart([{"tourId": "a", "price": 10}, {"price": 10}, None, "x"])
    assert [i.tour_id for i in items] == ["a"]
    assert normalize_cart({"not": "a list"}) == []
