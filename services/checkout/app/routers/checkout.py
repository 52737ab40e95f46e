from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from packages.shared.schemas.checkout import OrderDraft, SessionState
from services.checkout.app.models.checkout import (
    CheckoutDraftRequest,
    CheckoutDraftResponse,
    CheckoutRetryRequest,
    CheckoutStatusResponse,
)
from services.checkout.app.services.checkout_flow import CheckoutAttempt
from services.checkout.app.services.draft_builder import DraftValidationError, build_order_draft
from services.checkout.app.services.orders_base import (
    RejectedError,
    SessionExpiredError,
    TransientError,
)
from services.checkout.app.services.presenter import failure_card, present_outcome
from services.checkout.app.services.runtime import CheckoutRuntime, get_runtime

router = APIRouter()


def _raise_checkout_http_error(e: Exception, draft: OrderDraft | None = None) -> None:
    if isinstance(e, SessionExpiredError):
        raise HTTPException(status_code=401, detail=e.message) from e

    if isinstance(e, RejectedError):
        detail: dict = {"message": e.message, "validation_errors": e.validation_errors}
        if draft is not None:
            detail["outcome"] = failure_card(draft.payment_method, e.message).model_dump(
                mode="json"
            )
        raise HTTPException(status_code=422, detail=detail) from e

    if isinstance(e, TransientError):
        detail = {"message": str(e)}
        if draft is not None:
            detail["outcome"] = failure_card(draft.payment_method, str(e)).model_dump(
                mode="json"
            )
        raise HTTPException(status_code=503, detail=detail) from e

    raise HTTPException(status_code=500, detail="Internal Server Error") from e


def _status(attempt: CheckoutAttempt) -> CheckoutStatusResponse:
    return CheckoutStatusResponse(
        session_id=attempt.session_id,
        order_id=attempt.order.order_id,
        state=attempt.session.state,
        evidence_source=attempt.session.evidence_source,
        outcome=present_outcome(attempt),
    )


def _build_draft(payload: CheckoutDraftRequest, runtime: CheckoutRuntime) -> OrderDraft:
    try:
        return build_order_draft(
            payload.address_id,
            payload.items,
            payload.payment_method,
            delivery_fee=runtime.settings.delivery_fee,
        )
    except DraftValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


async def _submit_and_start(draft: OrderDraft, runtime: CheckoutRuntime) -> CheckoutAttempt:
    try:
        attempt = await runtime.flow.submit(draft)
    except Exception as e:
        _raise_checkout_http_error(e, draft)

    runtime.store.save_attempt(attempt)
    runtime.flow.start(attempt)
    return attempt


def _get_attempt_or_404(session_id: str, runtime: CheckoutRuntime) -> CheckoutAttempt:
    attempt = runtime.store.get_attempt(session_id)
    if attempt is None:
        raise HTTPException(status_code=404, detail="Checkout session not found")
    return attempt


@router.post("/v1/checkout/draft", response_model=CheckoutDraftResponse)
def preview_draft(
    payload: CheckoutDraftRequest, runtime: CheckoutRuntime = Depends(get_runtime)
) -> CheckoutDraftResponse:
    draft = _build_draft(payload, runtime)
    return CheckoutDraftResponse(
        address_id=draft.address_id,
        payment_method=draft.payment_method,
        subtotal=draft.subtotal,
        delivery_fee=draft.delivery_fee,
        total=draft.total,
        item_count=len(draft.line_items),
    )


@router.post("/v1/checkout", response_model=CheckoutStatusResponse)
async def start_checkout(
    payload: CheckoutDraftRequest, runtime: CheckoutRuntime = Depends(get_runtime)
) -> CheckoutStatusResponse:
    draft = _build_draft(payload, runtime)
    attempt = await _submit_and_start(draft, runtime)
    return _status(attempt)


@router.get("/v1/checkout/{session_id}", response_model=CheckoutStatusResponse)
async def get_checkout(
    session_id: str, runtime: CheckoutRuntime = Depends(get_runtime)
) -> CheckoutStatusResponse:
    return _status(_get_attempt_or_404(session_id, runtime))


@router.post("/v1/checkout/{session_id}/retry", response_model=CheckoutStatusResponse)
async def retry_checkout(
    session_id: str,
    payload: CheckoutRetryRequest | None = None,
    runtime: CheckoutRuntime = Depends(get_runtime),
) -> CheckoutStatusResponse:
    previous = _get_attempt_or_404(session_id, runtime)
    if not previous.session.finished:
        raise HTTPException(status_code=409, detail="Checkout session is still in progress")
    if previous.session.state == SessionState.RESOLVED_PAID:
        raise HTTPException(status_code=409, detail="Order is already paid")

    draft = previous.draft
    if payload is not None and payload.payment_method is not None:
        draft = draft.model_copy(update={"payment_method": payload.payment_method})

    attempt = await _submit_and_start(draft, runtime)
    return _status(attempt)


@router.delete("/v1/checkout/{session_id}", response_model=CheckoutStatusResponse)
async def cancel_checkout(
    session_id: str, runtime: CheckoutRuntime = Depends(get_runtime)
) -> CheckoutStatusResponse:
    attempt = _get_attempt_or_404(session_id, runtime)
    attempt.teardown()
    return _status(attempt)
