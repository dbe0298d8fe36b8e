import os

# Avant l'import de l'app: pas de Redis ni de vraie clé en tests
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import pytest
from typing import Any, Dict, Generator, List, Optional
from fastapi.testclient import TestClient
from unittest.mock import MagicMock
from postgrest.exceptions import APIError

from tourpay.app import app as fastapi_app

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


class FakeBookingsTable:
    """
    Table 'bookings' en mémoire: reproduit la contrainte unique sur payment_id (code 23505).
    """
    def __init__(self):
        self.rows: List[Dict[str, Any]] = []
        self.insert_attempts = 0

    def get_by_payment_id(self, payment_id: str) -> Optional[Dict[str, Any]]:
        for row in self.rows:
            if row.get("payment_id") == payment_id:
                return dict(row)
        return None

    def insert(self, row: Dict[str, Any]) -> Dict[str, Any]:
        self.insert_attempts += 1
        if self.get_by_payment_id(row.get("payment_id")) is not None:
            raise APIError({
                "code": "23505",
                "message": 'duplicate key value violates unique constraint "bookings_payment_id_key"',
                "details": None,
                "hint": None,
            })
        self.rows.append(dict(row))
        return dict(row)

    def update_status(self, payment_id: str, status: str) -> bool:
        for row in self.rows:
            if row.get("payment_id") == payment_id:
                row["status"] = status
                return True
        return False


@pytest.fixture()
def bookings_table(monkeypatch) -> FakeBookingsTable:
    """Remplace les accès Supabase du repository bookings par la table en mémoire."""
    table = FakeBookingsTable()

    def _insert(row):
        try:
            return table.insert(row)
        except APIError as e:
            if e.code == "23505":
                return None
            raise

    monkeypatch.setattr("tourpay.bookings.repository.get_booking_by_payment_id", table.get_by_payment_id)
    monkeypatch.setattr("tourpay.bookings.repository.insert_booking", _insert)
    monkeypatch.setattr("tourpay.bookings.repository.update_booking_status", table.update_status)
    return table


@pytest.fixture()
def discount_usage(monkeypatch) -> List[str]:
    """Enregistre les appels d'incrément du compteur promo au lieu d'appeler la RPC."""
    calls: List[str] = []

    def _increment(code):
        calls.append(code)
        return True

    monkeypatch.setattr("tourpay.discounts.repository.increment_usage", _increment)
    return calls


@pytest.fixture()
def fake_stripe(monkeypatch) -> List[Dict[str, Any]]:
    """
    Remplace stripe_client.create_payment_intent: enregistre les arguments et renvoie un intent factice.
    """
    calls: List[Dict[str, Any]] = []

    def _create(**kwargs):
        calls.append(kwargs)
        n = len(calls)
        return {
            "id": f"pi_test_{n}",
            "client_secret": f"pi_test_{n}_secret_abc",
            "amount": kwargs["amount"],
            "currency": kwargs["currency"],
            "metadata": kwargs["metadata"],
            "status": "requires_payment_method",
        }

    monkeypatch.setattr("tourpay.payments.stripe_client.create_payment_intent", _create)
    return calls


# Aucun test ne doit joindre Supabase
@pytest.fixture(scope="function", autouse=True)
def mock_db_dependency(monkeypatch):
    monkeypatch.setattr("tourpay.infra.supabase_client.get_service_supabase", lambda: MagicMock())
    monkeypatch.setattr("tourpay.discounts.repository.fetch_discount_by_code", lambda code: None)
