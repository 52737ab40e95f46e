"""Shared checkout schema.

Wire types exchanged between the checkout service, its clients and the orders backend.
Money is carried as Decimal quantized to piastres (2 dp).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

CENTS = Decimal("0.01")


def quantize_money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class SessionState(str, Enum):
    AWAITING_REDIRECT = "awaiting_redirect"
    AWAITING_COMPLETION = "awaiting_completion"
    RESOLVED_PAID = "resolved_paid"
    RESOLVED_FAILED = "resolved_failed"
    ABANDONED = "abandoned"


class EvidenceSource(str, Enum):
    DEEP_LINK = "deep_link"
    POLL = "poll"
    BROWSER_RESULT = "browser_result"
    NONE = "none"


class OrderLineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    medicine_id: str
    pharmacy_id: str
    quantity: int = Field(..., ge=1)
    unit_price: Decimal = Field(..., ge=0)

    @property
    def line_total(self) -> Decimal:
        return quantize_money(self.unit_price * self.quantity)


class OrderDraft(BaseModel):
    """A not-yet-submitted order. Built fresh per checkout attempt and never mutated."""

    model_config = ConfigDict(frozen=True)

    address_id: str
    line_items: tuple[OrderLineItem, ...] = Field(..., min_length=1)
    subtotal: Decimal
    delivery_fee: Decimal
    total: Decimal
    payment_method: PaymentMethod

    def to_payload(self) -> dict[str, Any]:
        """Render the body expected by ``POST /orders``."""

        return {
            "address": self.address_id,
            "items": [
                {
                    "medicineId": item.medicine_id,
                    "pharmacyId": item.pharmacy_id,
                    "quantity": item.quantity,
                    "price": float(item.unit_price),
                }
                for item in self.line_items
            ],
            "paymentMethod": _WIRE_PAYMENT_METHODS[self.payment_method],
            "subtotal": float(self.subtotal),
            "deliveryFee": float(self.delivery_fee),
            "total": float(self.total),
            "status": PaymentStatus.PENDING.value,
        }


# The backend names the hosted card provider rather than the method.
_WIRE_PAYMENT_METHODS = {
    PaymentMethod.CASH: "cash",
    PaymentMethod.CARD: "paymob",
}


class Order(BaseModel):
    """Client-side, read-only projection of a server-owned order."""

    model_config = ConfigDict(frozen=True)

    order_id: str
    payment_method: PaymentMethod
    total: Decimal
    payment_status: PaymentStatus = PaymentStatus.PENDING
    redirect_url: str | None = None
    return_deep_link: str | None = None

    @classmethod
    def from_response(cls, data: dict[str, Any], draft: OrderDraft) -> "Order":
        """Build the projection from a ``POST /orders`` response body.

        The backend is inconsistent about wrapping, so ``{"order": {...}}`` is accepted too.
        """

        if isinstance(data.get("order"), dict):
            data = {**data["order"], **{k: v for k, v in data.items() if k != "order"}}

        order_id = data.get("_id") or data.get("id")
        if not order_id:
            raise ValueError(f"Order response is missing an id: {data!r}")

        status = str(data.get("paymentStatus") or PaymentStatus.PENDING.value).lower()
        try:
            payment_status = PaymentStatus(status)
        except ValueError:
            payment_status = PaymentStatus.PENDING

        return cls(
            order_id=str(order_id),
            payment_method=draft.payment_method,
            total=draft.total,
            payment_status=payment_status,
            redirect_url=data.get("paymentUrl") or None,
            return_deep_link=data.get("deepLink") or None,
        )
