from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from services.checkout.app.services.checkout_flow import CheckoutAttempt

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Attempts by session id.

    Finished attempts are kept for `retention_s` so clients can read the outcome and retry,
    then dropped on the next save. Unfinished attempts are never dropped.
    """

    def __init__(self, retention_s: float = 3600.0) -> None:
        self._attempts: dict[str, CheckoutAttempt] = {}
        self._retention = timedelta(seconds=retention_s)

    def save_attempt(self, attempt: CheckoutAttempt) -> None:
        self.prune()
        self._attempts[attempt.session_id] = attempt

    def get_attempt(self, session_id: str) -> CheckoutAttempt | None:
        return self._attempts.get(session_id)

    def all_attempts(self) -> list[CheckoutAttempt]:
        return list(self._attempts.values())

    def prune(self, now: datetime | None = None) -> int:
        cutoff = (now or datetime.now(timezone.utc)) - self._retention
        expired = [
            session_id
            for session_id, attempt in self._attempts.items()
            if attempt.session.finished_at is not None and attempt.session.finished_at <= cutoff
        ]
        for session_id in expired:
            del self._attempts[session_id]

        if expired:
            logger.debug("dropped %d finished checkout attempts", len(expired))
        return len(expired)
