from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from packages.shared.schemas.checkout import (
    OrderDraft,
    OrderLineItem,
    PaymentMethod,
    quantize_money,
)
from services.checkout.app.models.checkout import CartLineItemInput

DEFAULT_DELIVERY_FEE = Decimal("25")


class DraftValidationError(Exception):
    """The cart or address cannot be turned into an order. Raised before any network call."""


def build_order_draft(
    address_id: str | None,
    items: Sequence[CartLineItemInput],
    payment_method: PaymentMethod,
    delivery_fee: Decimal = DEFAULT_DELIVERY_FEE,
) -> OrderDraft:
    if not address_id:
        raise DraftValidationError("Please select a delivery address to continue.")

    if not items:
        raise DraftValidationError("No items in cart")

    line_items: list[OrderLineItem] = []
    pharmacy_id: str | None = None
    for item in items:
        if not item.medicine_id or not item.pharmacy_id:
            raise DraftValidationError("Invalid item data in cart")

        if pharmacy_id is None:
            pharmacy_id = item.pharmacy_id
        elif item.pharmacy_id != pharmacy_id:
            raise DraftValidationError(
                "All items must come from the same pharmacy. "
                f"Expected {pharmacy_id!r}, got {item.pharmacy_id!r}"
            )

        if item.quantity < 1:
            raise DraftValidationError(f"Invalid quantity for {item.medicine_id!r}")
        if item.unit_price < 0:
            raise DraftValidationError(f"Invalid price for {item.medicine_id!r}")

        line_items.append(
            OrderLineItem(
                medicine_id=item.medicine_id,
                pharmacy_id=item.pharmacy_id,
                quantity=item.quantity,
                unit_price=quantize_money(item.unit_price),
            )
        )

    subtotal = quantize_money(sum((i.line_total for i in line_items), Decimal("0")))
    fee = quantize_money(delivery_fee)

    return OrderDraft(
        address_id=address_id,
        line_items=tuple(line_items),
        subtotal=subtotal,
        delivery_fee=fee,
        total=quantize_money(subtotal + fee),
        payment_method=payment_method,
    )
