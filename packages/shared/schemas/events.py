"""Shared checkout event schema (v1).

The service stores an append-only diagnostic log per checkout attempt so support can see
which signal settled a payment.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventTypeV1(str, Enum):
    ORDER_SUBMITTED = "ORDER_SUBMITTED"
    REDIRECT_OPENED = "REDIRECT_OPENED"
    BROWSER_CLOSED = "BROWSER_CLOSED"
    DEEP_LINK_RECEIVED = "DEEP_LINK_RECEIVED"
    DEEP_LINK_IGNORED = "DEEP_LINK_IGNORED"
    POLL_FAILED = "POLL_FAILED"
    SESSION_RESOLVED = "SESSION_RESOLVED"
    SESSION_ABANDONED = "SESSION_ABANDONED"
    CART_CLEARED = "CART_CLEARED"


class EventV1(BaseModel):
    id: str
    session_id: str
    order_id: str | None = None

    event_type: EventTypeV1
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: str
