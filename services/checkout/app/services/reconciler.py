"""Client-side payment reconciliation for card orders.

Two independent channels watch the same fact, "has this order's payment settled?":
inbound deep links carrying `payment-complete/<orderId>` and a fixed-interval poll of
`verify-payment`. The hosted browser's own verdict is a third, weaker signal. Whichever
resolves the session first wins; everything else is cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from packages.shared.schemas.checkout import EvidenceSource, Order, SessionState
from packages.shared.schemas.events import EventTypeV1
from services.checkout.app.services.deep_links import (
    DeepLinkHub,
    Subscription,
    parse_completion_link,
)
from services.checkout.app.services.orders_base import OrdersClient, OrdersClientError
from services.checkout.app.services.redirector_base import (
    BrowserOutcome,
    BrowserResultType,
    PaymentRedirector,
    open_payment_page,
)

logger = logging.getLogger(__name__)

# (session_id, order_id, event_type, payload)
EventSink = Callable[[str, str | None, EventTypeV1, dict[str, Any]], None]

_RESOLVED = {SessionState.RESOLVED_PAID, SessionState.RESOLVED_FAILED}


@dataclass(frozen=True, slots=True)
class Transition:
    from_state: SessionState
    to_state: SessionState
    evidence_source: EvidenceSource
    at: datetime


class ReconciliationSession:
    """State of one in-flight order's reconciliation.

    Once resolved (or abandoned) the state never changes again.
    """

    def __init__(self, order_id: str, session_id: str | None = None) -> None:
        self.session_id = session_id or uuid4().hex
        self.order_id = order_id
        self.state = SessionState.AWAITING_REDIRECT
        self.evidence_source = EvidenceSource.NONE
        self.history: list[Transition] = []

    @property
    def resolved(self) -> bool:
        return self.state in _RESOLVED

    @property
    def finished(self) -> bool:
        return self.resolved or self.state == SessionState.ABANDONED

    @property
    def finished_at(self) -> datetime | None:
        if not self.finished or not self.history:
            return None
        return self.history[-1].at

    def begin_completion(self) -> bool:
        if self.state != SessionState.AWAITING_REDIRECT:
            return False
        self._move(SessionState.AWAITING_COMPLETION, EvidenceSource.NONE)
        return True

    def resolve(self, *, paid: bool, evidence: EvidenceSource) -> bool:
        if self.finished:
            return False
        self.evidence_source = evidence
        self._move(
            SessionState.RESOLVED_PAID if paid else SessionState.RESOLVED_FAILED, evidence
        )
        return True

    def abandon(self) -> bool:
        if self.finished:
            return False
        self._move(SessionState.ABANDONED, EvidenceSource.NONE)
        return True

    def _move(self, to_state: SessionState, evidence: EvidenceSource) -> None:
        self.history.append(
            Transition(
                from_state=self.state,
                to_state=to_state,
                evidence_source=evidence,
                at=datetime.now(timezone.utc),
            )
        )
        self.state = to_state


class CompletionReconciler:
    def __init__(
        self,
        session: ReconciliationSession,
        order: Order,
        *,
        orders: OrdersClient,
        redirector: PaymentRedirector,
        hub: DeepLinkHub,
        platform: str = "android",
        poll_interval_s: float = 5.0,
        max_wait_s: float | None = None,
        redirect_delay_s: float = 0.0,
        on_event: EventSink | None = None,
    ) -> None:
        if not order.redirect_url or not order.return_deep_link:
            raise ValueError(f"Order {order.order_id} has no payment redirect to reconcile")

        self.session = session
        self._order = order
        self._orders = orders
        self._redirector = redirector
        self._hub = hub
        self._platform = platform
        self._poll_interval_s = poll_interval_s
        self._max_wait_s = max_wait_s
        self._redirect_delay_s = redirect_delay_s
        self._on_event = on_event

        self._done = asyncio.Event()
        self._subscription: Subscription | None = None
        self._poll_task: asyncio.Task[None] | None = None
        self._browser_task: asyncio.Task[BrowserOutcome] | None = None

    async def run(self) -> ReconciliationSession:
        """Drive the session to a final state and release every resource on the way out."""

        self._subscription = self._hub.subscribe(self.on_deep_link)
        launch_url = self._hub.take_launch_url()
        if launch_url is not None:
            self.on_deep_link(launch_url)

        try:
            if self._redirect_delay_s and not self.session.finished:
                await self._wait_done(self._redirect_delay_s)

            if self.session.begin_completion():
                self._open_channels()
                if not await self._wait_done(self._max_wait_s):
                    logger.warning(
                        "order %s still unpaid after %ss, giving up on reconciliation",
                        self.session.order_id,
                        self._max_wait_s,
                    )
                    self._abandon(reason="max_wait")
        except asyncio.CancelledError:
            self._abandon(reason="cancelled")
            raise
        finally:
            self._release()

        return self.session

    def teardown(self) -> None:
        """Host went away: abandon if unresolved and stop both channels now."""

        self._abandon(reason="teardown")
        self._release()

    def on_deep_link(self, url: str) -> None:
        order_id = parse_completion_link(url)
        if order_id is None or order_id != self.session.order_id:
            logger.debug("ignoring deep link %s for session %s", url, self.session.session_id)
            self._emit(EventTypeV1.DEEP_LINK_IGNORED, {"url": url})
            return

        self._emit(EventTypeV1.DEEP_LINK_RECEIVED, {"url": url})
        self._resolve(paid=True, evidence=EvidenceSource.DEEP_LINK)

    def on_poll_result(self, is_paid: bool) -> None:
        if is_paid:
            self._resolve(paid=True, evidence=EvidenceSource.POLL)

    def on_browser_outcome(self, outcome: BrowserOutcome) -> None:
        self._emit(
            EventTypeV1.BROWSER_CLOSED,
            {"type": outcome.type.value, "url": outcome.url, "tentative": outcome.tentative},
        )

        if parse_completion_link(outcome.url) == self.session.order_id:
            self._resolve(paid=True, evidence=EvidenceSource.BROWSER_RESULT)
        elif outcome.type == BrowserResultType.SUCCESS:
            # The provider's webhook is authoritative; keep waiting on the other channels.
            logger.info("browser reported success without completion url, still waiting")
        else:
            self._resolve(paid=False, evidence=EvidenceSource.BROWSER_RESULT)

    def _open_channels(self) -> None:
        self._browser_task = asyncio.create_task(
            open_payment_page(
                self._redirector,
                self._order.redirect_url or "",
                self._order.return_deep_link or "",
                platform=self._platform,
                hub=self._hub,
            )
        )
        self._browser_task.add_done_callback(self._on_browser_task_done)
        self._emit(EventTypeV1.REDIRECT_OPENED, {"redirector": self._redirector.name})

        self._poll_task = asyncio.create_task(self._poll_loop())

    async def _poll_loop(self) -> None:
        order_id = self.session.order_id
        while not self.session.finished:
            try:
                is_paid = await self._orders.verify_payment(order_id)
            except OrdersClientError as e:
                logger.warning("payment status poll failed for order %s: %s", order_id, e)
                self._emit(EventTypeV1.POLL_FAILED, {"error": str(e)})
            else:
                self.on_poll_result(is_paid)
                if self.session.finished:
                    return

            await asyncio.sleep(self._poll_interval_s)

    def _on_browser_task_done(self, task: asyncio.Task[BrowserOutcome]) -> None:
        if task.cancelled():
            return

        exc = task.exception()
        if self.session.finished:
            return

        if exc is not None:
            logger.error("payment browser failed for order %s: %s", self.session.order_id, exc)
            self._emit(EventTypeV1.BROWSER_CLOSED, {"error": str(exc)})
            self._resolve(paid=False, evidence=EvidenceSource.BROWSER_RESULT)
            return

        self.on_browser_outcome(task.result())

    def _resolve(self, *, paid: bool, evidence: EvidenceSource) -> None:
        if not self.session.resolve(paid=paid, evidence=evidence):
            return

        logger.info(
            "order %s resolved %s via %s",
            self.session.order_id,
            self.session.state.value,
            evidence.value,
        )
        self._emit(
            EventTypeV1.SESSION_RESOLVED,
            {"state": self.session.state.value, "evidence_source": evidence.value},
        )
        self._done.set()
        self._release()

    def _abandon(self, *, reason: str) -> None:
        if self.session.abandon():
            logger.info("order %s reconciliation abandoned (%s)", self.session.order_id, reason)
            self._emit(EventTypeV1.SESSION_ABANDONED, {"reason": reason})
        self._done.set()

    def _release(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()

        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None

        for task in (self._poll_task, self._browser_task):
            if task is not None and task is not current and not task.done():
                task.cancel()

    async def _wait_done(self, timeout_s: float | None) -> bool:
        try:
            await asyncio.wait_for(self._done.wait(), timeout=timeout_s)
        except asyncio.TimeoutError:
            return False
        return True

    def _emit(self, event_type: EventTypeV1, payload: dict[str, Any]) -> None:
        if self._on_event is not None:
            self._on_event(self.session.session_id, self.session.order_id, event_type, payload)
