import json

import pytest

from tourpay.config import CART_DATA_SLOTS, METADATA_MAX_KEYS
from tourpay.payments.metadata import (
    CART_SLOT_KEYS,
    build_metadata,
    check_limits,
    pickup_location_json,
    read_booking_metadata,
)
from tourpay.payments.schemas import CustomerIn
from tourpay.pricing.models import CartLineItem, PricingBreakdown

PRICING = PricingBreakdown(subtotal=250.0, service_fee=7.5, tax=12.5, discount=25.0, total=245.0, currency="USD")
ITEMS = [CartLineItem(tour_id="t1", base_price=100.0, adult_qty=2, child_qty=1, title="Desert Safari")]


def _customer(**kwargs):
    data = {"firstName": " Ana ", "lastName": "Silva", "email": "ana@example.com", "phone": "+971500000000"}
    data.update(kwargs)
    return CustomerIn(**data)


def test_build_metadata_fixed_keys_and_strings():
    metadata = build_metadata(customer=_customer(), items=ITEMS, pricing=PRICING, discount_code="save10", cart_slots=["[]"])
    assert metadata["has_booking_data"] == "true"
    assert metadata["customer_first_name"] == "Ana"
    assert metadata["customer_name"] == "Ana Silva"
    assert metadata["pricing_service_fee"] == "7.50"
    assert metadata["pricing_total"] == "245.00"
    assert metadata["pricing_currency"] == "USD"
    assert metadata["discount_code"] == "SAVE10"
    assert metadata["tours"] == "Desert Safari"
    assert metadata["item_count"] == "1"
    assert metadata["cart_data"] == "[]"
    assert "cart_data_2" not in metadata
    assert all(isinstance(v, str) and len(v) <= 500 for v in metadata.values())


def test_no_discount_sentinel():
    metadata = build_metadata(customer=_customer(), items=ITEMS, pricing=PRICING, discount_code=None, cart_slots=["[]"])
    assert metadata["discount_code"] == "none"


def test_free_text_is_truncated_never_rejected():
    metadata = build_metadata(
        customer=_customer(specialRequests="x" * 2000, hotelPickupDetails="y" * 800),
        items=ITEMS, pricing=PRICING, discount_code=None, cart_slots=["[]"],
    )
    assert metadata["special_requests"] == "x" * 500
    assert metadata["hotel_pickup_details"] == "y" * 500


def test_pickup_location_drops_optional_fields_until_it_fits():
    location = {"lat": 25.2, "lng": 55.27, "name": "Hotel " + "n" * 100, "address": "a" * 480}
    encoded = pickup_location_json(location)
    assert len(encoded) <= 500
    assert json.loads(encoded) == {"lat": 25.2, "lng": 55.27, "name": "Hotel " + "n" * 100}
    assert pickup_location_json({"lat": 25.2, "lng": 55.27, "name": "n" * 600}) == '{"lat":25.2,"lng":55.27}'
    assert pickup_location_json({"name": "no coordinates"}) == ""
    assert pickup_location_json(None) == ""


@pytest.mark.parametrize("location", [
    {"lat": "abc", "lng": 55.27, "name": "Atlantis"},
    {"lat": None, "lng": None},
    {"lat": float("nan"), "lng": 55.27},
    {"name": ["not", "text"]},
    "Atlantis, Palm Jumeirah",
    [25.2, 55.27],
])
def test_malformed_pickup_location_is_dropped(location):
    metadata = build_metadata(
        customer=_customer(hotelPickupLocation=location),
        items=ITEMS, pricing=PRICING, discount_code=None, cart_slots=["[]"],
    )
    assert metadata["hotel_pickup_location"] == ""


def test_pickup_coordinates_given_as_strings_are_kept():
    customer = _customer(hotelPickupLocation={"lat": "25.2", "lng": "55.27", "address": 12})
    assert customer.hotelPickupLocation.lat == 25.2
    assert customer.hotelPickupLocation.address is None


def test_check_limits():
    with pytest.raises(ValueError):
        check_limits({"k": "v" * 501})
    with pytest.raises(ValueError):
        check_limits({f"k{i}": "v" for i in range(51)})
    check_limits({"k": "v" * 500})


def test_read_back_matches_what_was_written():
    customer = _customer(hotelPickupLocation={"lat": 25.2, "lng": 55.27, "name": "Atlantis"})
    metadata = build_metadata(
        customer=customer, items=ITEMS, pricing=PRICING, discount_code="SAVE10", cart_slots=["[{", "}]"],
    )
    intent = read_booking_metadata(metadata)
    assert intent.has_booking_data
    assert intent.has_customer
    assert intent.customer_email == "ana@example.com"
    assert intent.hotel_pickup_location == {"lat": 25.2, "lng": 55.27, "name": "Atlantis"}
    assert intent.pricing == PRICING
    assert intent.discount_code == "SAVE10"
    assert intent.cart_slots == ["[{", "}]"]
    assert len(CART_SLOT_KEYS) == CART_DATA_SLOTS


def test_all_cart_slots_fit_the_key_budget():
    slots = ["[" + "{}," * 10] + ["{}," * 10] * (CART_DATA_SLOTS - 2) + ["{}]"]
    metadata = build_metadata(customer=_customer(), items=ITEMS, pricing=PRICING, discount_code=None, cart_slots=slots)
    assert len(metadata) <= METADATA_MAX_KEYS
    assert metadata[f"cart_data_{CART_DATA_SLOTS}"] == "{}]"
    assert read_booking_metadata(metadata).cart_slots == slots


def test_read_back_without_booking_flag():
    assert read_booking_metadata({"foo": "bar"}).has_booking_data is False
    assert read_booking_metadata(None).has_booking_data is False


def test_read_back_total_falls_back_to_amount():
    intent = read_booking_metadata({"has_booking_data": "true", "discount_code": "none"}, amount_minor=12345)
    assert intent.pricing.total == 123.45
    assert intent.discount_code is None
    assert intent.has_customer is False
