from __future__ import annotations

import os
from collections.abc import Callable

from services.checkout.app.config import CheckoutSettings
from services.checkout.app.services.orders_base import OrdersClient
from services.checkout.app.services.orders_mock import MockOrdersClient


def get_orders_client(
    settings: CheckoutSettings,
    *,
    on_unauthorized: Callable[[], None] | None = None,
) -> OrdersClient:
    """Select an orders client based on env vars.

    Defaults to the in-memory mock so tests and local dev never reach the real backend
    unless explicitly configured otherwise. `on_unauthorized` runs on every 401 from the
    real backend; the mock never returns one.
    """

    mode = os.getenv("SEHATY_ORDERS_CLIENT", "mock").strip().lower()

    if mode == "mock":
        return MockOrdersClient()

    if mode == "http":
        from services.checkout.app.services.orders_http import ClientConfig, HttpOrdersClient

        return HttpOrdersClient(
            ClientConfig.from_settings(settings, on_unauthorized=on_unauthorized)
        )

    raise ValueError(f"Unknown SEHATY_ORDERS_CLIENT={mode!r}. Expected mock or http.")
