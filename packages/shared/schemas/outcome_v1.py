"""Shared checkout outcome payload schema (v1).

The mobile app renders these payloads for the success, failure and pending screens.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from packages.shared.schemas.checkout import EvidenceSource, PaymentMethod, SessionState


class OutcomeTypeV1(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PENDING = "PENDING"


class OutcomeActionTypeV1(str, Enum):
    TRACK_ORDER = "TRACK_ORDER"
    VIEW_ORDERS = "VIEW_ORDERS"
    CONTINUE_SHOPPING = "CONTINUE_SHOPPING"
    RETRY = "RETRY"
    CHANGE_METHOD = "CHANGE_METHOD"
    RETURN_TO_CART = "RETURN_TO_CART"
    CONTACT_SUPPORT = "CONTACT_SUPPORT"


class OutcomeActionV1(BaseModel):
    type: OutcomeActionTypeV1
    label: str
    payload: dict[str, Any] = Field(default_factory=dict)


class OutcomeDetailV1(BaseModel):
    """One "what went wrong" entry on the failure screen."""

    title: str
    description: str


class OutcomeCardV1(BaseModel):
    version: str = "1"
    type: OutcomeTypeV1

    title: str
    summary: str

    session_id: str | None = None
    order_id: str | None = None
    state: SessionState | None = None
    evidence_source: EvidenceSource | None = None

    payment_method: PaymentMethod | None = None
    total_display: str | None = None

    details: list[OutcomeDetailV1] = Field(default_factory=list, max_length=4)
    actions: list[OutcomeActionV1] = Field(default_factory=list, max_length=4)
