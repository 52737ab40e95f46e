from __future__ import annotations

import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

CART = {
    "address_id": "addr-1",
    "items": [
        {"medicine_id": "med-1", "pharmacy_id": "ph-1", "quantity": 2, "unit_price": "10.00"}
    ],
}


@pytest.fixture()
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    db_path = tmp_path / "sehaty_checkout.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")
    monkeypatch.setenv("SEHATY_DB_AUTO_CREATE", "true")
    monkeypatch.setenv("SEHATY_ORDERS_CLIENT", "mock")
    monkeypatch.setenv("SEHATY_REDIRECTOR", "mock")
    monkeypatch.setenv("SEHATY_MOCK_BROWSER_RESULT", "pending")
    monkeypatch.setenv("SEHATY_POLL_INTERVAL_S", "0.02")
    monkeypatch.setenv("SEHATY_REDIRECT_DELAY_S", "0")
    monkeypatch.delenv("SEHATY_LAUNCH_URL", raising=False)

    from services.checkout.app.main import app

    with TestClient(app) as c:
        yield c


def _checkout(client: TestClient, method: str) -> dict:
    response = client.post("/v1/checkout", json={**CART, "payment_method": method})
    assert response.status_code == 200, response.text
    return response.json()


def _wait_for_state(client: TestClient, session_id: str, states: set[str]) -> dict:
    for _ in range(200):
        data = client.get(f"/v1/checkout/{session_id}").json()
        if data["state"] in states:
            return data
        time.sleep(0.01)
    raise AssertionError(f"session {session_id} never reached {states}")


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_draft_preview_returns_totals(client: TestClient) -> None:
    response = client.post("/v1/checkout/draft", json=CART)
    assert response.status_code == 200

    data = response.json()
    assert data["subtotal"] == "20.00"
    assert data["delivery_fee"] == "25.00"
    assert data["total"] == "45.00"
    assert data["payment_method"] == "cash"
    assert data["item_count"] == 1


def test_draft_validation_errors_are_422(client: TestClient) -> None:
    response = client.post("/v1/checkout", json={**CART, "address_id": None})
    assert response.status_code == 422
    assert "delivery address" in response.json()["detail"]

    response = client.post("/v1/checkout/draft", json={"address_id": "addr-1", "items": []})
    assert response.status_code == 422


def test_cash_checkout_succeeds_immediately(client: TestClient) -> None:
    data = _checkout(client, "cash")

    assert data["state"] == "resolved_paid"
    assert data["evidence_source"] == "none"
    assert data["outcome"]["type"] == "SUCCESS"
    assert data["outcome"]["total_display"] == "EGP 45.00"


def test_card_checkout_settles_by_deep_link(client: TestClient) -> None:
    data = _checkout(client, "card")
    session_id = data["session_id"]
    order_id = data["order_id"]
    assert data["outcome"]["type"] == "PENDING"

    _wait_for_state(client, session_id, {"awaiting_completion"})

    delivered = client.post(
        "/v1/deep-links", json={"url": f"sehaty://payment-complete/{order_id}"}
    )
    assert delivered.status_code == 200
    assert delivered.json()["delivered_to"] == 1

    done = _wait_for_state(client, session_id, {"resolved_paid", "resolved_failed"})
    assert done["state"] == "resolved_paid"
    assert done["evidence_source"] == "deep_link"
    assert done["outcome"]["type"] == "SUCCESS"

    again = client.post("/v1/deep-links", json={"url": f"sehaty://payment-complete/{order_id}"})
    assert again.json()["delivered_to"] == 0


def test_card_checkout_settles_by_poll(client: TestClient) -> None:
    from services.checkout.app.services.runtime import get_runtime

    data = _checkout(client, "card")
    session_id = data["session_id"]
    _wait_for_state(client, session_id, {"awaiting_completion"})

    get_runtime().orders.settle(data["order_id"])

    done = _wait_for_state(client, session_id, {"resolved_paid", "resolved_failed"})
    assert done["state"] == "resolved_paid"
    assert done["evidence_source"] == "poll"


def test_deep_link_for_unknown_order_leaves_session_waiting(client: TestClient) -> None:
    data = _checkout(client, "card")
    session_id = data["session_id"]
    _wait_for_state(client, session_id, {"awaiting_completion"})

    response = client.post("/v1/deep-links", json={"url": "sehaty://payment-complete/other"})
    assert response.status_code == 200

    assert client.get(f"/v1/checkout/{session_id}").json()["state"] == "awaiting_completion"


def test_retry_rejected_while_in_progress(client: TestClient) -> None:
    data = _checkout(client, "card")

    response = client.post(f"/v1/checkout/{data['session_id']}/retry", json={})
    assert response.status_code == 409


def test_retry_rejected_when_already_paid(client: TestClient) -> None:
    data = _checkout(client, "cash")

    response = client.post(f"/v1/checkout/{data['session_id']}/retry", json={})
    assert response.status_code == 409


def test_cancel_abandons_and_shows_pending(client: TestClient) -> None:
    data = _checkout(client, "card")
    session_id = data["session_id"]

    response = client.delete(f"/v1/checkout/{session_id}")
    assert response.status_code == 200
    assert response.json()["state"] == "abandoned"
    assert response.json()["outcome"]["type"] == "PENDING"


def test_unknown_session_is_404(client: TestClient) -> None:
    assert client.get("/v1/checkout/missing").status_code == 404
    assert client.delete("/v1/checkout/missing").status_code == 404
    assert client.post("/v1/checkout/missing/retry", json={}).status_code == 404


def test_order_details_passthrough(client: TestClient) -> None:
    data = _checkout(client, "cash")

    response = client.get(f"/v1/orders/{data['order_id']}")
    assert response.status_code == 200
    assert response.json()["order"]["_id"] == data["order_id"]

    assert client.get("/v1/orders/missing").status_code == 404


def test_card_cancel_then_retry_with_cash(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    from services.checkout.app.services.redirector_mock import MockPaymentRedirector
    from services.checkout.app.services.runtime import get_runtime

    monkeypatch.setattr(get_runtime().flow, "_redirector", MockPaymentRedirector("cancel"))

    data = _checkout(client, "card")
    failed = _wait_for_state(client, data["session_id"], {"resolved_paid", "resolved_failed"})

    assert failed["state"] == "resolved_failed"
    assert failed["outcome"]["type"] == "FAILED"
    assert failed["outcome"]["title"] == "Payment Processing Failed"

    retry = client.post(
        f"/v1/checkout/{data['session_id']}/retry", json={"payment_method": "cash"}
    )
    assert retry.status_code == 200
    assert retry.json()["session_id"] != data["session_id"]
    assert retry.json()["state"] == "resolved_paid"


@pytest.mark.parametrize(
    ("exc", "status"),
    [
        ("transient", 503),
        ("rejected", 422),
        ("expired", 401),
    ],
)
def test_submission_errors_are_mapped(
    client: TestClient, monkeypatch: pytest.MonkeyPatch, exc: str, status: int
) -> None:
    from services.checkout.app.services.orders_base import (
        RejectedError,
        SessionExpiredError,
        TransientError,
    )
    from services.checkout.app.services.runtime import get_runtime

    errors = {
        "transient": TransientError("Network error. Please check your internet connection."),
        "rejected": RejectedError(
            "Validation failed", status_code=400, validation_errors=[{"field": "address"}]
        ),
        "expired": SessionExpiredError(),
    }

    async def _fail(draft):
        raise errors[exc]

    orders = get_runtime().orders
    monkeypatch.setattr(orders, "submit", _fail)

    response = client.post("/v1/checkout", json={**CART, "payment_method": "card"})
    assert response.status_code == status

    if exc == "rejected":
        detail = response.json()["detail"]
        assert detail["validation_errors"] == [{"field": "address"}]
        assert detail["outcome"]["type"] == "FAILED"
        assert detail["outcome"]["title"] == "Payment Processing Failed"
    assert not orders.cart_cleared


def test_foreground_without_launch_url(client: TestClient) -> None:
    response = client.post("/v1/app/foreground")
    assert response.status_code == 200
    assert response.json() == {"delivered_to": 0}
