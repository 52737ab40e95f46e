from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from packages.shared.schemas.checkout import PaymentMethod
from services.checkout.app.models.checkout import CartLineItemInput
from services.checkout.app.services.draft_builder import DraftValidationError, build_order_draft


def _item(**overrides) -> CartLineItemInput:
    data = {
        "medicine_id": "med-1",
        "pharmacy_id": "ph-1",
        "quantity": 2,
        "unit_price": Decimal("10.00"),
    }
    data.update(overrides)
    return CartLineItemInput(**data)


def test_build_draft_computes_totals_with_delivery_fee() -> None:
    draft = build_order_draft("addr-1", [_item()], PaymentMethod.CASH)

    assert draft.subtotal == Decimal("20.00")
    assert draft.delivery_fee == Decimal("25.00")
    assert draft.total == Decimal("45.00")
    assert draft.total == draft.subtotal + draft.delivery_fee


def test_build_draft_rounds_to_two_places() -> None:
    items = [
        _item(unit_price=Decimal("3.335"), quantity=3),
        _item(medicine_id="med-2", unit_price=Decimal("0.10"), quantity=1),
    ]
    draft = build_order_draft("addr-1", items, PaymentMethod.CARD, delivery_fee=Decimal("0"))

    # 3.34 * 3 + 0.10
    assert draft.subtotal == Decimal("10.12")
    assert draft.total == Decimal("10.12")
    assert str(draft.total) == "10.12"


def test_draft_payload_uses_backend_field_names() -> None:
    draft = build_order_draft("addr-1", [_item()], PaymentMethod.CARD)
    payload = draft.to_payload()

    assert payload["address"] == "addr-1"
    assert payload["paymentMethod"] == "paymob"
    assert payload["status"] == "pending"
    assert payload["total"] == 45.0
    assert payload["items"] == [
        {"medicineId": "med-1", "pharmacyId": "ph-1", "quantity": 2, "price": 10.0}
    ]


def test_draft_is_immutable() -> None:
    draft = build_order_draft("addr-1", [_item()], PaymentMethod.CASH)

    with pytest.raises(ValidationError):
        draft.total = Decimal("1.00")


@pytest.mark.parametrize(
    ("address_id", "items", "message"),
    [
        (None, [_item()], "delivery address"),
        ("", [_item()], "delivery address"),
        ("addr-1", [], "No items in cart"),
        ("addr-1", [_item(medicine_id=None)], "Invalid item data"),
        ("addr-1", [_item(pharmacy_id=None)], "Invalid item data"),
        ("addr-1", [_item(), _item(pharmacy_id="ph-2")], "same pharmacy"),
        ("addr-1", [_item(quantity=0)], "Invalid quantity"),
        ("addr-1", [_item(unit_price=Decimal("-1"))], "Invalid price"),
    ],
)
def test_build_draft_rejects_bad_input(address_id, items, message: str) -> None:
    with pytest.raises(DraftValidationError, match=message):
        build_order_draft(address_id, items, PaymentMethod.CASH)
