from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from services.checkout.app.services.orders_base import (
    RejectedError,
    SessionExpiredError,
    TransientError,
)
from services.checkout.app.services.runtime import CheckoutRuntime, get_runtime

router = APIRouter()


@router.get("/v1/orders/{order_id}")
async def get_order(
    order_id: str, runtime: CheckoutRuntime = Depends(get_runtime)
) -> dict[str, Any]:
    try:
        return await runtime.orders.get_order(order_id)
    except SessionExpiredError as e:
        raise HTTPException(status_code=401, detail=e.message) from e
    except RejectedError as e:
        status_code = 404 if e.status_code == 404 else 422
        raise HTTPException(status_code=status_code, detail=e.message) from e
    except TransientError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
