from datetime import datetime, timedelta, timezone

from tourpay.pricing.models import DiscountCode

URL = "/api/v1/discounts/verify"


def test_verify_missing_code(client):
    res = client.post(URL, json={})
    assert res.status_code == 400
    assert res.json() == {"success": False, "error": "Coupon code is required"}


def test_verify_unknown_code(client):
    res = client.post(URL, json={"code": "NOPE"})
    assert res.status_code == 404
    assert res.json()["success"] is False


def test_verify_expired_code(client, monkeypatch):
    expired = DiscountCode(
        code="OLD", discount_type="fixed", value=5,
        expires_at=datetime.now(timezone.utc) - timedelta(days=1),
    )
    monkeypatch.setattr("tourpay.discounts.repository.fetch_discount_by_code", lambda code: expired)
    res = client.post(URL, json={"code": "old"})
    assert res.status_code == 400
    assert res.json()["reason"] == "expired"


def test_verify_valid_code(client, monkeypatch):
    monkeypatch.setattr(
        "tourpay.discounts.repository.fetch_discount_by_code",
        lambda code: DiscountCode(code="SAVE10", discount_type="percentage", value=10),
    )
    res = client.post(URL, json={"code": "save10"})
    assert res.status_code == 200
    assert res.json() == {"success": True, "data": {"code": "SAVE10", "discountType": "percentage", "value": 10}}


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"ok": True}
