from __future__ import annotations

from typing import Any
from uuid import uuid4

from packages.shared.schemas.checkout import Order, OrderDraft, PaymentMethod, PaymentStatus
from services.checkout.app.services.orders_base import RejectedError


class MockOrdersClient:
    """In-memory orders backend for local dev and tests.

    Card orders stay pending until `settle()` is called, which stands in for the payment
    provider's webhook reaching the real backend.
    """

    name = "MOCK"

    def __init__(
        self,
        *,
        deep_link_scheme: str = "sehaty",
        payment_base_url: str = "https://pay.mock.local/checkout",
    ) -> None:
        self._deep_link_scheme = deep_link_scheme
        self._payment_base_url = payment_base_url
        self._orders: dict[str, dict[str, Any]] = {}
        self.submitted: list[OrderDraft] = []
        self.verify_calls = 0
        self.cart_cleared = False

    async def submit(self, draft: OrderDraft) -> Order:
        self.submitted.append(draft)
        order_id = f"ord_{uuid4().hex[:10]}"

        data: dict[str, Any] = {"_id": order_id, "paymentStatus": PaymentStatus.PENDING.value}
        if draft.payment_method == PaymentMethod.CARD:
            data["paymentUrl"] = f"{self._payment_base_url}/{order_id}"
            data["deepLink"] = f"{self._deep_link_scheme}://payment-complete/{order_id}"
        else:
            data["paymentStatus"] = PaymentStatus.PAID.value

        self._orders[order_id] = {**draft.to_payload(), **data}
        return Order.from_response(data, draft)

    async def verify_payment(self, order_id: str) -> bool:
        self.verify_calls += 1
        order = self._orders.get(order_id)
        return order is not None and order["paymentStatus"] == PaymentStatus.PAID.value

    async def get_order(self, order_id: str) -> dict[str, Any]:
        order = self._orders.get(order_id)
        if order is None:
            raise RejectedError("Order not found", status_code=404)
        return {"order": dict(order)}

    async def clear_cart(self) -> None:
        self.cart_cleared = True

    async def aclose(self) -> None:
        return None

    def settle(self, order_id: str, *, paid: bool = True) -> None:
        status = PaymentStatus.PAID if paid else PaymentStatus.FAILED
        self._orders[order_id]["paymentStatus"] = status.value
