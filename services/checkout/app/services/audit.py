from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError

from packages.shared.schemas.checkout import EvidenceSource, SessionState
from packages.shared.schemas.events import EventTypeV1
from services.checkout.app.db.database import session_scope
from services.checkout.app.db.models import CheckoutRecord, EventLog

logger = logging.getLogger(__name__)

_FINAL_EVENTS = {EventTypeV1.SESSION_RESOLVED, EventTypeV1.SESSION_ABANDONED}


def record_event(
    session_id: str,
    order_id: str | None,
    event_type: EventTypeV1,
    payload: dict[str, Any],
) -> None:
    """Append a diagnostic event and keep the attempt row's state current.

    Called synchronously from reconciler callbacks on the event loop, so each call blocks
    the loop for one small commit. That is fine for the local sqlite default; point
    DATABASE_URL at a remote database only with that cost in mind.

    A failed write is logged and dropped; diagnostics never fail a checkout.
    """

    try:
        with session_scope() as db:
            if event_type == EventTypeV1.ORDER_SUBMITTED:
                db.add(
                    CheckoutRecord(
                        id=session_id,
                        order_id=order_id or "",
                        payment_method=str(payload.get("payment_method", "")),
                        total=str(payload.get("total", "")),
                        state=SessionState.AWAITING_REDIRECT.value,
                        evidence_source=EvidenceSource.NONE.value,
                    )
                )
            elif event_type in _FINAL_EVENTS:
                _finish_record(db.get(CheckoutRecord, session_id), payload)

            db.add(
                EventLog(
                    id=uuid4().hex,
                    session_id=session_id,
                    order_id=order_id,
                    event_type=event_type.value,
                    event_payload_json=payload,
                )
            )
    except SQLAlchemyError:
        logger.exception("failed to record %s for session %s", event_type.value, session_id)


def _finish_record(record: CheckoutRecord | None, payload: dict[str, Any]) -> None:
    if record is None:
        return
    record.state = str(payload.get("state", SessionState.ABANDONED.value))
    record.evidence_source = str(payload.get("evidence_source", EvidenceSource.NONE.value))
    record.finished_at = datetime.now(timezone.utc)
