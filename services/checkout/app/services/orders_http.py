from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from packages.shared.schemas.checkout import Order, OrderDraft
from services.checkout.app.config import CheckoutSettings
from services.checkout.app.services.orders_base import (
    RejectedError,
    SessionExpiredError,
    TransientError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Everything the orders client needs from its host.

    `token_provider` is called per request so a refreshed token is picked up without
    rebuilding the client. `on_unauthorized` runs once per 401 response.
    """

    base_url: str
    timeout_s: float = 10.0
    token_provider: Callable[[], str | None] | None = None
    on_unauthorized: Callable[[], None] | None = None

    @classmethod
    def from_settings(
        cls,
        settings: CheckoutSettings,
        *,
        on_unauthorized: Callable[[], None] | None = None,
    ) -> "ClientConfig":
        token = settings.api_token
        return cls(
            base_url=settings.api_base_url,
            timeout_s=settings.api_timeout_s,
            token_provider=lambda: token,
            on_unauthorized=on_unauthorized,
        )


class HttpOrdersClient:
    """Orders backend client over HTTP/JSON with bearer auth."""

    name = "HTTP"

    def __init__(self, cfg: ClientConfig, *, transport: httpx.AsyncBaseTransport | None = None):
        self._cfg = cfg
        self._client = httpx.AsyncClient(
            base_url=cfg.base_url,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            timeout=httpx.Timeout(cfg.timeout_s),
            transport=transport,
        )

    async def submit(self, draft: OrderDraft) -> Order:
        data = await self._request("POST", "/orders", json=draft.to_payload())
        try:
            order = Order.from_response(data, draft)
        except ValueError as e:
            raise TransientError(f"Unexpected order response: {e}") from e

        logger.info(
            "order submitted order_id=%s method=%s total=%s",
            order.order_id,
            order.payment_method.value,
            order.total,
        )
        return order

    async def verify_payment(self, order_id: str) -> bool:
        data = await self._request("GET", f"/orders/{order_id}/verify-payment")
        is_paid = data.get("isPaid")
        if not isinstance(is_paid, bool):
            raise TransientError(f"Unexpected verify-payment response: isPaid={is_paid!r}")
        return is_paid

    async def get_order(self, order_id: str) -> dict[str, Any]:
        data = await self._request(
            "GET", f"/orders/{order_id}", params={"populate": "items.medicineId"}
        )
        if not isinstance(data.get("order"), dict) or "items" not in data["order"]:
            raise TransientError("Invalid order data received")
        return data

    async def clear_cart(self) -> None:
        await self._request("DELETE", "/cart")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        headers: dict[str, str] = {}
        token = self._cfg.token_provider() if self._cfg.token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"

        logger.debug("API request %s %s", method, path)
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientError(f"Request timed out: {method} {path}") from e
        except httpx.TransportError as e:
            raise TransientError(
                "Network error. Please check your internet connection."
            ) from e

        if response.status_code == 401:
            logger.warning("API %s %s returned 401, session expired", method, path)
            if self._cfg.on_unauthorized is not None:
                self._cfg.on_unauthorized()
            raise SessionExpiredError()

        if response.status_code >= 500:
            raise TransientError(
                f"Server error ({response.status_code}). Please try again later."
            )

        body = _json_or_empty(response)
        if response.status_code >= 400:
            raise _rejected_from_body(response.status_code, body)

        return body


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError:
        return {}
    if isinstance(data, dict):
        return data
    return {"data": data}


def _rejected_from_body(status_code: int, body: dict[str, Any]) -> RejectedError:
    errors = body.get("errors")
    if isinstance(errors, list) and errors:
        return RejectedError(
            "Validation failed",
            status_code=status_code,
            validation_errors=[e for e in errors if isinstance(e, dict)],
        )

    message = body.get("message") or f"Request failed with status {status_code}"
    return RejectedError(str(message), status_code=status_code)
