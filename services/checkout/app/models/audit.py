from __future__ import annotations

from pydantic import BaseModel, Field

from packages.shared.schemas.events import EventV1


class EventOut(EventV1):
    pass


class CheckoutRecordOut(BaseModel):
    session_id: str
    order_id: str
    payment_method: str
    total: str

    state: str
    evidence_source: str

    created_at: str
    finished_at: str | None = None

    events: list[EventOut] = Field(default_factory=list)
