from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from services.checkout.app.db.database import get_db
from services.checkout.app.db.models import CheckoutRecord, EventLog
from services.checkout.app.models.audit import CheckoutRecordOut, EventOut
from sqlalchemy.orm import Session

router = APIRouter()


@router.get("/v1/checkout/{session_id}/events", response_model=CheckoutRecordOut)
def get_checkout_events(session_id: str, db: Session = Depends(get_db)) -> CheckoutRecordOut:
    record = db.get(CheckoutRecord, session_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Checkout session not found")

    events = (
        db.query(EventLog)
        .filter(EventLog.session_id == session_id)
        .order_by(EventLog.created_at.asc())
        .all()
    )

    return CheckoutRecordOut(
        session_id=record.id,
        order_id=record.order_id,
        payment_method=record.payment_method,
        total=record.total,
        state=record.state,
        evidence_source=record.evidence_source,
        created_at=record.created_at.isoformat(),
        finished_at=record.finished_at.isoformat() if record.finished_at else None,
        events=[
            EventOut(
                id=e.id,
                session_id=e.session_id,
                order_id=e.order_id,
                event_type=e.event_type,
                payload=e.event_payload_json,
                created_at=e.created_at.isoformat(),
            )
            for e in events
        ],
    )
