from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from packages.shared.schemas.checkout import EvidenceSource, PaymentMethod, SessionState
from packages.shared.schemas.outcome_v1 import OutcomeCardV1


class CartLineItemInput(BaseModel):
    # Left optional so the draft builder can report missing ids itself.
    medicine_id: str | None = None
    pharmacy_id: str | None = None
    quantity: int
    unit_price: Decimal
    name: str | None = None


class CheckoutDraftRequest(BaseModel):
    address_id: str | None = None
    items: list[CartLineItemInput] = Field(default_factory=list)
    payment_method: PaymentMethod = PaymentMethod.CASH


class CheckoutDraftResponse(BaseModel):
    address_id: str
    payment_method: PaymentMethod
    subtotal: Decimal
    delivery_fee: Decimal
    total: Decimal
    item_count: int


class CheckoutRetryRequest(BaseModel):
    payment_method: PaymentMethod | None = None


class CheckoutStatusResponse(BaseModel):
    session_id: str
    order_id: str | None = None
    state: SessionState
    evidence_source: EvidenceSource
    outcome: OutcomeCardV1


class DeepLinkRequest(BaseModel):
    url: str = Field(..., min_length=1)


class DeepLinkResponse(BaseModel):
    delivered_to: int
