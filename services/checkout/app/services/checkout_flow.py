from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from packages.shared.schemas.checkout import (
    EvidenceSource,
    Order,
    OrderDraft,
    PaymentMethod,
    SessionState,
)
from packages.shared.schemas.events import EventTypeV1
from services.checkout.app.config import CheckoutSettings
from services.checkout.app.services.deep_links import DeepLinkHub
from services.checkout.app.services.orders_base import (
    OrdersClient,
    OrdersClientError,
    RejectedError,
)
from services.checkout.app.services.reconciler import (
    CompletionReconciler,
    EventSink,
    ReconciliationSession,
)
from services.checkout.app.services.redirector_base import PaymentRedirector

logger = logging.getLogger(__name__)


@dataclass
class CheckoutAttempt:
    draft: OrderDraft
    order: Order
    session: ReconciliationSession
    reconciler: CompletionReconciler | None = None
    task: asyncio.Task[ReconciliationSession] | None = field(default=None, repr=False)

    @property
    def session_id(self) -> str:
        return self.session.session_id

    def teardown(self) -> None:
        if self.reconciler is not None:
            self.reconciler.teardown()


class CheckoutFlow:
    """One place that turns a draft into a settled (or failed) order."""

    def __init__(
        self,
        *,
        orders: OrdersClient,
        redirector: PaymentRedirector,
        hub: DeepLinkHub,
        settings: CheckoutSettings,
        on_event: EventSink | None = None,
    ) -> None:
        self._orders = orders
        self._redirector = redirector
        self._hub = hub
        self._settings = settings
        self._on_event = on_event

    async def submit(self, draft: OrderDraft) -> CheckoutAttempt:
        """Create the order. Cash orders come back already resolved.

        Raises `TransientError` or `RejectedError` from the orders client unchanged. The
        cart is untouched when this raises.
        """

        try:
            order = await self._orders.submit(draft)
        except OrdersClientError as e:
            logger.warning("order submission failed: %s: %s", type(e).__name__, e)
            raise

        session = ReconciliationSession(order_id=order.order_id)
        attempt = CheckoutAttempt(draft=draft, order=order, session=session)
        self._emit(
            session,
            EventTypeV1.ORDER_SUBMITTED,
            {
                "payment_method": draft.payment_method.value,
                "total": str(draft.total),
                "orders_client": self._orders.name,
            },
        )

        if draft.payment_method == PaymentMethod.CASH:
            session.resolve(paid=True, evidence=EvidenceSource.NONE)
            self._emit(
                session,
                EventTypeV1.SESSION_RESOLVED,
                {"state": session.state.value, "evidence_source": EvidenceSource.NONE.value},
            )
            await self._after_paid(attempt)
            return attempt

        if not order.redirect_url or not order.return_deep_link:
            raise RejectedError(
                f"Order {order.order_id} was created without a payment link. "
                "Please try again or choose cash on delivery."
            )

        attempt.reconciler = CompletionReconciler(
            session,
            order,
            orders=self._orders,
            redirector=self._redirector,
            hub=self._hub,
            platform=self._settings.platform,
            poll_interval_s=self._settings.poll_interval_s,
            max_wait_s=self._settings.max_wait_s,
            redirect_delay_s=self._settings.redirect_delay_s,
            on_event=self._on_event,
        )
        return attempt

    async def complete(self, attempt: CheckoutAttempt) -> ReconciliationSession:
        if attempt.reconciler is None:
            return attempt.session

        session = await attempt.reconciler.run()
        if session.state == SessionState.RESOLVED_PAID:
            await self._after_paid(attempt)
        return session

    def start(self, attempt: CheckoutAttempt) -> None:
        """Reconcile in the background. No-op for attempts that are already resolved."""

        if attempt.reconciler is not None and attempt.task is None:
            attempt.task = asyncio.create_task(self.complete(attempt))

    async def checkout(self, draft: OrderDraft) -> CheckoutAttempt:
        attempt = await self.submit(draft)
        await self.complete(attempt)
        return attempt

    async def _after_paid(self, attempt: CheckoutAttempt) -> None:
        try:
            await self._orders.clear_cart()
        except OrdersClientError as e:
            logger.warning("could not clear cart after order %s: %s", attempt.order.order_id, e)
            return

        self._emit(attempt.session, EventTypeV1.CART_CLEARED, {})

    def _emit(self, session: ReconciliationSession, event_type: EventTypeV1, payload: dict) -> None:
        if self._on_event is not None:
            self._on_event(session.session_id, session.order_id, event_type, payload)
