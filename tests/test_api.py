import os
import time

import pytest
from fastapi.testclient import TestClient

from checkout.errors import GatewayError
from checkout.main import app as fastapi_app
from checkout.models import Order


class StubGateway:
    def __init__(self, statuses=None, create_error=None):
        self.statuses = list(statuses or [])
        self.create_error = create_error
        self.create_calls = []

    async def create_order(self, total, description=None, items=None):
        self.create_calls.append((total, description))
        if self.create_error is not None:
            raise self.create_error
        return Order(id=42, total=total, description=description, status="pending",
                     payment_link="https://pay.example/o/42")

    async def fetch_status(self, order_id):
        status = self.statuses.pop(0) if self.statuses else "pending"
        return Order(id=order_id, total=200, status=status)


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def client(mocker, gateway):
    mocker.patch.dict(os.environ, {"CHECKOUT_POLL_INTERVAL_S": "0.01"})
    mocker.patch("checkout.main.OrderGateway", return_value=gateway)
    with TestClient(fastapi_app) as c:
        yield c


def wait_for_phase(client, phase, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        session = client.get("/checkout/session").json()
        if session["phase"] == phase:
            return session
        time.sleep(0.01)
    raise AssertionError(f"session never reached {phase}")


def test_initial_session_is_idle(client):
    response = client.get("/checkout/session")

    assert response.status_code == 200
    assert response.json()["phase"] == "idle"
    assert response.json()["order"] is None


def test_confirm_order_starts_polling(client, gateway):
    response = client.post("/checkout/orders", json={"quantity": 2})

    assert response.status_code == 202
    body = response.json()
    assert body["phase"] == "polling"
    assert body["amount"] == 200
    assert body["order"]["id"] == 42
    assert body["order"]["payment_link"] == "https://pay.example/o/42"
    assert gateway.create_calls == [(200, "Brussels Matcha Tea")]


def test_confirm_order_twice_conflicts(client, gateway):
    client.post("/checkout/orders", json={"quantity": 1})
    response = client.post("/checkout/orders", json={"quantity": 1})

    assert response.status_code == 409
    assert len(gateway.create_calls) == 1


def test_confirm_order_rejects_bad_quantity(client, gateway):
    response = client.post("/checkout/orders", json={"quantity": 0})

    assert response.status_code == 422
    assert gateway.create_calls == []


def test_qr_code_available_once_link_exists(client):
    assert client.get("/checkout/session/qr").status_code == 404

    client.post("/checkout/orders", json={"quantity": 1})
    response = client.get("/checkout/session/qr")

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content.startswith(b"\x89PNG")


def test_abort_session(client):
    client.post("/checkout/orders", json={"quantity": 1})

    response = client.post("/checkout/session/abort")

    assert response.status_code == 200
    assert response.json()["phase"] == "aborted"
    assert fastapi_app.state.controller.has_pending_timer is False


def test_paid_then_new_order(client, gateway):
    gateway.statuses = ["pending", "paid"]
    client.post("/checkout/orders", json={"quantity": 1, "description": "Gift box"})

    session = wait_for_phase(client, "paid")
    assert session["order"]["status"] == "paid"
    assert session["order"]["payment_link"] == "https://pay.example/o/42"

    # a settled session is replaced by a fresh one
    response = client.post("/checkout/orders", json={"quantity": 3})
    assert response.status_code == 202
    assert response.json()["amount"] == 300
    assert gateway.create_calls == [(100, "Gift box"), (300, "Brussels Matcha Tea")]


def test_creation_failure_is_reported(client, gateway):
    gateway.create_error = GatewayError("Failed to create order")

    response = client.post("/checkout/orders", json={"quantity": 1})

    assert response.status_code == 202
    assert response.json()["phase"] == "failed"
    assert response.json()["error"] == "Failed to create order"
