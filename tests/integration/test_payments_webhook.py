import hashlib
import hmac
import json
import time

import pytest

from tourpay.payments.schemas import CheckoutRequest
from tourpay.payments.service import create_checkout_intent

WEBHOOK_URL = "/api/v1/payments/webhook"
SECRET = "whsec_test_secret"


def _sign(payload: str, secret: str = SECRET) -> str:
    timestamp = int(time.time())
    signature = hmac.new(secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture()
def webhook_secret(monkeypatch):
    monkeypatch.setattr("tourpay.payments.stripe_client.STRIPE_WEBHOOK_SECRET", SECRET)


@pytest.fixture()
def succeeded_event(fake_stripe):
    create_checkout_intent(CheckoutRequest(
        customer={"firstName": "Ana", "lastName": "Silva", "email": "ana@example.com"},
        cart=[{"tourId": "desert-safari", "price": 100, "adultQty": 2, "childQty": 1}],
    ))
    call = fake_stripe[0]
    return {
        "id": "evt_1",
        "type": "payment_intent.succeeded",
        "data": {"object": {
            "id": "pi_webhook_1",
            "status": "succeeded",
            "amount": call["amount"],
            "currency": call["currency"],
            "metadata": call["metadata"],
        }},
    }


def _post(client, event, secret=SECRET):
    payload = json.dumps(event)
    return client.post(
        WEBHOOK_URL,
        content=payload,
        headers={"Stripe-Signature": _sign(payload, secret), "Content-Type": "application/json"},
    )


def test_webhook_creates_booking_once(client, webhook_secret, succeeded_event, bookings_table):
    first = _post(client, succeeded_event)
    second = _post(client, succeeded_event)

    assert first.status_code == 200
    assert first.json()["result"]["created"] is True
    assert second.status_code == 200
    assert second.json() == {
        "received": True,
        "result": {"created": False, "reason": "already_confirmed", "bookingId": first.json()["result"]["bookingId"]},
    }
    assert len(bookings_table.rows) == 1
    assert bookings_table.rows[0]["total_price"] == 270.0


def test_webhook_rejects_bad_signature(client, webhook_secret, succeeded_event, bookings_table):
    res = _post(client, succeeded_event, secret="whsec_wrong")
    assert res.status_code == 400
    assert bookings_table.rows == []


def test_webhook_requires_signature_header(client, webhook_secret):
    res = client.post(WEBHOOK_URL, json={"type": "payment_intent.succeeded"})
    assert res.status_code == 400
    assert res.json()["detail"] == "No signature found"


def test_webhook_without_configured_secret_is_500(client, monkeypatch):
    monkeypatch.setattr("tourpay.payments.stripe_client.STRIPE_WEBHOOK_SECRET", "")
    res = client.post(WEBHOOK_URL, json={}, headers={"Stripe-Signature": "t=1,v1=abc"})
    assert res.status_code == 500


def test_webhook_acknowledges_processing_failure(client, webhook_secret, succeeded_event, monkeypatch):
    def _boom(payment_intent):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr("tourpay.bookings.reconciler.reconcile_payment", _boom)
    res = _post(client, succeeded_event)
    assert res.status_code == 200
    assert res.json()["result"] == {"created": False, "reason": "processing_error"}


def test_webhook_ignores_unrelated_events(client, webhook_secret, bookings_table):
    res = _post(client, {"id": "evt_2", "type": "customer.created", "data": {"object": {"id": "cus_1"}}})
    assert res.status_code == 200
    assert res.json() == {"received": True, "result": None}


def test_confirm_endpoint_reconciles(client, succeeded_event, bookings_table, monkeypatch):
    intent = succeeded_event["data"]["object"]
    monkeypatch.setattr("tourpay.payments.stripe_client.retrieve_payment_intent", lambda pid: intent)
    res = client.post("/api/v1/payments/confirm", json={"payment_intent_id": "pi_webhook_1"})
    assert res.status_code == 200
    assert res.json()["success"] is True
    assert res.json()["created"] is True
    assert len(bookings_table.rows) == 1


def test_confirm_endpoint_reports_failed_reconcile(client, succeeded_event, bookings_table, monkeypatch):
    intent = dict(succeeded_event["data"]["object"])
    intent["metadata"] = dict(intent["metadata"], cart_data='[{"i":0,"t":')
    monkeypatch.setattr("tourpay.payments.stripe_client.retrieve_payment_intent", lambda pid: intent)
    res = client.post("/api/v1/payments/confirm", json={"payment_intent_id": "pi_webhook_1"})
    assert res.status_code == 422
    assert res.json()["success"] is False
    assert res.json()["reason"] == "invalid_cart_data"
    assert bookings_table.rows == []


def test_confirm_endpoint_is_success_for_existing_booking(client, succeeded_event, bookings_table, monkeypatch):
    intent = succeeded_event["data"]["object"]
    monkeypatch.setattr("tourpay.payments.stripe_client.retrieve_payment_intent", lambda pid: intent)
    client.post("/api/v1/payments/confirm", json={"payment_intent_id": "pi_webhook_1"})
    res = client.post("/api/v1/payments/confirm", json={"payment_intent_id": "pi_webhook_1"})
    assert res.status_code == 200
    assert res.json()["success"] is True
    assert res.json()["reason"] == "already_confirmed"
    assert len(bookings_table.rows) == 1


def test_confirm_endpoint_rejects_unpaid_intent(client, monkeypatch):
    monkeypatch.setattr(
        "tourpay.payments.stripe_client.retrieve_payment_intent",
        lambda pid: {"id": pid, "status": "processing"},
    )
    res = client.post("/api/v1/payments/confirm", json={"payment_intent_id": "pi_1"})
    assert res.status_code == 400
    assert res.json()["success"] is False
