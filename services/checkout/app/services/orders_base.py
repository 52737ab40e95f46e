from __future__ import annotations

from typing import Any, Protocol

from packages.shared.schemas.checkout import Order, OrderDraft


class OrdersClientError(Exception):
    """Base class for orders backend errors."""


class TransientError(OrdersClientError):
    """Network failure, timeout or server error. The call may be retried.

    Resubmitting an order after this error can create a duplicate: the backend does not
    deduplicate submissions.
    """


class RejectedError(OrdersClientError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        validation_errors: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.validation_errors = validation_errors or []


class SessionExpiredError(RejectedError):
    def __init__(self) -> None:
        super().__init__(
            "Your session has expired. Please login again.",
            status_code=401,
        )


class OrdersClient(Protocol):
    name: str

    async def submit(self, draft: OrderDraft) -> Order: ...

    async def verify_payment(self, order_id: str) -> bool: ...

    async def get_order(self, order_id: str) -> dict[str, Any]: ...

    async def clear_cart(self) -> None: ...

    async def aclose(self) -> None: ...
