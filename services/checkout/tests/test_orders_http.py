from __future__ import annotations

import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from packages.shared.schemas.checkout import PaymentMethod, PaymentStatus
from services.checkout.app.models.checkout import CartLineItemInput
from services.checkout.app.services.draft_builder import build_order_draft
from services.checkout.app.services.orders_base import (
    RejectedError,
    SessionExpiredError,
    TransientError,
)
from services.checkout.app.services.orders_http import ClientConfig, HttpOrdersClient

BASE_URL = "https://api.test/api"


def _client(handler, *, token: str | None = "tok", on_unauthorized=None) -> HttpOrdersClient:
    cfg = ClientConfig(
        base_url=BASE_URL,
        token_provider=lambda: token,
        on_unauthorized=on_unauthorized,
    )
    return HttpOrdersClient(cfg, transport=httpx.MockTransport(handler))


def _card_draft():
    items = [
        CartLineItemInput(
            medicine_id="med-1", pharmacy_id="ph-1", quantity=2, unit_price=Decimal("10")
        )
    ]
    return build_order_draft("addr-1", items, PaymentMethod.CARD)


def _run(coro):
    return asyncio.run(coro)


def test_submit_posts_order_and_reads_payment_redirect() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            201,
            json={
                "order": {
                    "_id": "ord-1",
                    "paymentStatus": "pending",
                    "paymentUrl": "https://accept.paymob.com/iframe/1",
                    "deepLink": "sehaty://payment-complete/ord-1",
                }
            },
        )

    async def scenario():
        client = _client(handler)
        try:
            return await client.submit(_card_draft())
        finally:
            await client.aclose()

    order = _run(scenario())

    assert order.order_id == "ord-1"
    assert order.payment_status == PaymentStatus.PENDING
    assert order.redirect_url == "https://accept.paymob.com/iframe/1"
    assert order.return_deep_link == "sehaty://payment-complete/ord-1"
    assert order.total == Decimal("45.00")

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/api/orders"
    assert request.headers["Authorization"] == "Bearer tok"
    body = json.loads(request.content)
    assert body["paymentMethod"] == "paymob"
    assert body["total"] == 45.0


def test_submit_without_token_sends_no_auth_header() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"_id": "ord-2"})

    async def scenario():
        client = _client(handler, token=None)
        try:
            return await client.submit(_card_draft())
        finally:
            await client.aclose()

    order = _run(scenario())

    assert order.order_id == "ord-2"
    assert "Authorization" not in seen[0].headers


def test_submit_response_without_id_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True})

    async def scenario():
        client = _client(handler)
        try:
            await client.submit(_card_draft())
        finally:
            await client.aclose()

    with pytest.raises(TransientError, match="Unexpected order response"):
        _run(scenario())


def test_verify_payment_reads_is_paid() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/orders/ord-1/verify-payment"
        return httpx.Response(200, json={"isPaid": True})

    async def scenario():
        client = _client(handler)
        try:
            return await client.verify_payment("ord-1")
        finally:
            await client.aclose()

    assert _run(scenario()) is True


def test_get_order_populates_items_and_validates_shape() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["populate"] == "items.medicineId"
        if request.url.path.endswith("ord-1"):
            return httpx.Response(200, json={"order": {"_id": "ord-1", "items": []}})
        return httpx.Response(200, json={"order": None})

    async def scenario(order_id: str):
        client = _client(handler)
        try:
            return await client.get_order(order_id)
        finally:
            await client.aclose()

    assert _run(scenario("ord-1"))["order"]["_id"] == "ord-1"
    with pytest.raises(TransientError, match="Invalid order data"):
        _run(scenario("ord-2"))


def test_unauthorized_calls_hook_and_raises_session_expired() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "jwt expired"})

    async def scenario():
        client = _client(handler, on_unauthorized=lambda: calls.append("logout"))
        try:
            await client.verify_payment("ord-1")
        finally:
            await client.aclose()

    with pytest.raises(SessionExpiredError) as exc_info:
        _run(scenario())

    assert calls == ["logout"]
    assert exc_info.value.status_code == 401
    assert "session has expired" in exc_info.value.message


@pytest.mark.parametrize(
    ("body", "message", "errors"),
    [
        ({"message": "Medicine out of stock"}, "Medicine out of stock", []),
        (
            {"message": "ignored", "errors": [{"field": "address", "msg": "required"}]},
            "Validation failed",
            [{"field": "address", "msg": "required"}],
        ),
        ({}, "Request failed with status 400", []),
    ],
)
def test_client_errors_map_to_rejected(body: dict, message: str, errors: list) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json=body)

    async def scenario():
        client = _client(handler)
        try:
            await client.submit(_card_draft())
        finally:
            await client.aclose()

    with pytest.raises(RejectedError) as exc_info:
        _run(scenario())

    assert exc_info.value.message == message
    assert exc_info.value.validation_errors == errors
    assert exc_info.value.status_code == 400


def _server_error(request: httpx.Request) -> httpx.Response:
    return httpx.Response(503, text="upstream down")


def _connect_error(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("refused", request=request)


def _read_timeout(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadTimeout("slow", request=request)


@pytest.mark.parametrize("handler", [_server_error, _connect_error, _read_timeout])
def test_server_and_network_errors_are_transient(handler) -> None:
    async def scenario():
        client = _client(handler)
        try:
            await client.clear_cart()
        finally:
            await client.aclose()

    with pytest.raises(TransientError):
        _run(scenario())


def test_clear_cart_sends_delete() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    async def scenario():
        client = _client(handler)
        try:
            await client.clear_cart()
        finally:
            await client.aclose()

    _run(scenario())

    assert seen[0].method == "DELETE"
    assert seen[0].url.path == "/api/cart"


@pytest.mark.parametrize("body", [{"isPaid": "false"}, {"isPaid": 1}, {}])
def test_verify_payment_rejects_non_boolean_is_paid(body: dict) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body)

    async def scenario():
        client = _client(handler)
        try:
            return await client.verify_payment("ord-1")
        finally:
            await client.aclose()

    with pytest.raises(TransientError, match="Unexpected verify-payment response"):
        _run(scenario())


def test_client_config_from_settings_carries_unauthorized_hook() -> None:
    from services.checkout.app.config import CheckoutSettings

    calls: list[str] = []
    cfg = ClientConfig.from_settings(
        CheckoutSettings.from_env(), on_unauthorized=lambda: calls.append("expired")
    )

    assert cfg.on_unauthorized is not None
    cfg.on_unauthorized()
    assert calls == ["expired"]
