from __future__ import annotations

import logging

from services.checkout.app.config import CheckoutSettings
from services.checkout.app.services.audit import record_event
from services.checkout.app.services.checkout_flow import CheckoutFlow
from services.checkout.app.services.deep_links import DeepLinkHub
from services.checkout.app.services.orders_base import OrdersClient
from services.checkout.app.services.orders_factory import get_orders_client
from services.checkout.app.services.reconciler import EventSink
from services.checkout.app.services.redirector_base import PaymentRedirector
from services.checkout.app.services.redirector_factory import get_payment_redirector
from services.checkout.app.services.store import InMemoryStore

logger = logging.getLogger(__name__)


class CheckoutRuntime:
    """Long-lived collaborators shared by every checkout attempt in this process."""

    def __init__(
        self,
        *,
        settings: CheckoutSettings,
        orders: OrdersClient,
        redirector: PaymentRedirector,
        hub: DeepLinkHub,
        on_event: EventSink | None = None,
    ) -> None:
        self.settings = settings
        self.orders = orders
        self.redirector = redirector
        self.hub = hub
        self.store = InMemoryStore(retention_s=settings.attempt_retention_s)
        self.flow = CheckoutFlow(
            orders=orders,
            redirector=redirector,
            hub=hub,
            settings=settings,
            on_event=on_event,
        )

    @classmethod
    def from_env(cls) -> "CheckoutRuntime":
        settings = CheckoutSettings.from_env()
        runtime: CheckoutRuntime | None = None

        def on_unauthorized() -> None:
            if runtime is not None:
                runtime.session_expired()

        runtime = cls(
            settings=settings,
            orders=get_orders_client(settings, on_unauthorized=on_unauthorized),
            redirector=get_payment_redirector(),
            hub=DeepLinkHub(launch_url=settings.launch_url),
            on_event=record_event,
        )
        return runtime

    def session_expired(self) -> None:
        """The backend rejected our token: stop every checkout that is still running.

        The user has to log in again before any of them can settle from this side. Orders
        already submitted may still be paid by the provider.
        """

        live = [a for a in self.store.all_attempts() if not a.session.finished]
        logger.warning("orders backend returned 401, tearing down %d live checkouts", len(live))
        for attempt in live:
            attempt.teardown()

    async def aclose(self) -> None:
        for attempt in self.store.all_attempts():
            attempt.teardown()
        await self.orders.aclose()


_RUNTIME: CheckoutRuntime | None = None


def start_runtime() -> CheckoutRuntime:
    global _RUNTIME

    _RUNTIME = CheckoutRuntime.from_env()
    logger.info(
        "checkout runtime started orders=%s redirector=%s platform=%s",
        _RUNTIME.orders.name,
        _RUNTIME.redirector.name,
        _RUNTIME.settings.platform,
    )
    return _RUNTIME


async def stop_runtime() -> None:
    global _RUNTIME

    if _RUNTIME is not None:
        await _RUNTIME.aclose()
        _RUNTIME = None


def get_runtime() -> CheckoutRuntime:
    if _RUNTIME is None:
        return start_runtime()
    return _RUNTIME
