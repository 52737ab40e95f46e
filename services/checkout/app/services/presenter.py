from __future__ import annotations

from decimal import Decimal

from packages.shared.schemas.checkout import (
    EvidenceSource,
    PaymentMethod,
    SessionState,
    quantize_money,
)
from packages.shared.schemas.outcome_v1 import (
    OutcomeActionTypeV1,
    OutcomeActionV1,
    OutcomeCardV1,
    OutcomeDetailV1,
    OutcomeTypeV1,
)
from services.checkout.app.services.checkout_flow import CheckoutAttempt

PAYMENT_NOT_COMPLETED = "Payment was not completed. Please try again."

_METHOD_LABELS = {
    PaymentMethod.CASH: "Cash on Delivery",
    PaymentMethod.CARD: "Credit/Debit Card",
}

_CARD_FAILURE_DETAILS = [
    OutcomeDetailV1(
        title="Payment Declined",
        description=(
            "Your card may have been declined by your bank. Please check your card details "
            "or try a different payment method."
        ),
    ),
    OutcomeDetailV1(
        title="Card Issues",
        description=(
            "Ensure your card is valid, has sufficient funds, and supports online payments."
        ),
    ),
]

_GENERIC_FAILURE_DETAILS = [
    OutcomeDetailV1(
        title="Payment Processing Error",
        description=(
            "There was an issue processing your payment. This could be due to insufficient "
            "funds or a temporary service disruption."
        ),
    ),
    OutcomeDetailV1(
        title="Connection Issues",
        description=(
            "Please check your internet connection and ensure it's stable before trying again."
        ),
    ),
]

_NEED_HELP = OutcomeDetailV1(
    title="Need Help?",
    description="If the problem persists, please contact our support team for assistance.",
)


def format_price(amount: Decimal, currency: str = "EGP") -> str:
    return f"{currency} {quantize_money(amount)}"


def present_outcome(attempt: CheckoutAttempt) -> OutcomeCardV1:
    session = attempt.session

    if session.state == SessionState.RESOLVED_PAID:
        return _success_card(attempt)

    if session.state == SessionState.RESOLVED_FAILED:
        return failure_card(
            attempt.draft.payment_method,
            PAYMENT_NOT_COMPLETED,
            session_id=session.session_id,
            order_id=attempt.order.order_id,
            state=session.state,
            evidence_source=session.evidence_source,
            total=attempt.draft.total,
        )

    return _pending_card(attempt)


def failure_card(
    payment_method: PaymentMethod,
    error: str,
    *,
    session_id: str | None = None,
    order_id: str | None = None,
    state: SessionState | None = None,
    evidence_source: EvidenceSource | None = None,
    total: Decimal | None = None,
) -> OutcomeCardV1:
    """Failure screen payload. Also used for submission errors, before any order exists."""

    is_card = payment_method == PaymentMethod.CARD
    if is_card:
        title = "Payment Processing Failed"
        summary = (
            "There was an issue processing your card payment. Please try again or use a "
            "different payment method."
        )
        details = [*_CARD_FAILURE_DETAILS, _NEED_HELP]
    else:
        title = "Order Failed"
        summary = error or "We couldn't process your order. Please try again."
        details = [*_GENERIC_FAILURE_DETAILS, _NEED_HELP]

    actions = [
        OutcomeActionV1(
            type=OutcomeActionTypeV1.RETRY,
            label="Try Card Again" if is_card else "Try Again",
            payload={"session_id": session_id} if session_id else {},
        ),
    ]
    if is_card:
        actions.append(
            OutcomeActionV1(
                type=OutcomeActionTypeV1.CHANGE_METHOD,
                label="Try Different Method",
                payload={"payment_method": PaymentMethod.CASH.value},
            )
        )
    actions.extend(
        [
            OutcomeActionV1(type=OutcomeActionTypeV1.RETURN_TO_CART, label="Return to Cart"),
            OutcomeActionV1(
                type=OutcomeActionTypeV1.CONTACT_SUPPORT,
                label="Contact Support",
                payload={
                    "preset_message": (
                        f"I encountered an error with my order: {error or 'Payment failed'}"
                    )
                },
            ),
        ]
    )

    return OutcomeCardV1(
        type=OutcomeTypeV1.FAILED,
        title=title,
        summary=summary,
        session_id=session_id,
        order_id=order_id,
        state=state,
        evidence_source=evidence_source,
        payment_method=payment_method,
        total_display=format_price(total) if total is not None else None,
        details=details,
        actions=actions,
    )


def _success_card(attempt: CheckoutAttempt) -> OutcomeCardV1:
    session = attempt.session
    order_id = attempt.order.order_id
    method = attempt.draft.payment_method

    return OutcomeCardV1(
        type=OutcomeTypeV1.SUCCESS,
        title="Order Placed Successfully!",
        summary="Thank you for your order. We'll notify you when it's ready.",
        session_id=session.session_id,
        order_id=order_id,
        state=session.state,
        evidence_source=session.evidence_source,
        payment_method=method,
        total_display=format_price(attempt.draft.total),
        details=[
            OutcomeDetailV1(
                title=f"Order #{order_id}",
                description=f"Paid via {_METHOD_LABELS[method]}",
            )
        ],
        actions=[
            OutcomeActionV1(
                type=OutcomeActionTypeV1.TRACK_ORDER,
                label="Track Order",
                payload={"order_id": order_id},
            ),
            OutcomeActionV1(type=OutcomeActionTypeV1.VIEW_ORDERS, label="View Orders"),
            OutcomeActionV1(
                type=OutcomeActionTypeV1.CONTINUE_SHOPPING, label="Continue Shopping"
            ),
        ],
    )


def _pending_card(attempt: CheckoutAttempt) -> OutcomeCardV1:
    session = attempt.session
    order_id = attempt.order.order_id

    actions = [
        OutcomeActionV1(type=OutcomeActionTypeV1.CONTINUE_SHOPPING, label="Continue Shopping")
    ]
    if session.state == SessionState.ABANDONED:
        # The provider may still settle the order; let the user follow it up.
        actions = [
            OutcomeActionV1(
                type=OutcomeActionTypeV1.TRACK_ORDER,
                label="Track Order",
                payload={"order_id": order_id},
            ),
            OutcomeActionV1(type=OutcomeActionTypeV1.VIEW_ORDERS, label="View Orders"),
            *actions,
        ]

    return OutcomeCardV1(
        type=OutcomeTypeV1.PENDING,
        title="Payment Processing",
        summary="Your payment is being processed. We will notify you when it is confirmed.",
        session_id=session.session_id,
        order_id=order_id,
        state=session.state,
        evidence_source=session.evidence_source,
        payment_method=attempt.draft.payment_method,
        total_display=format_price(attempt.draft.total),
        details=[
            OutcomeDetailV1(title=f"Order #{order_id}", description="Processing via Paymob")
        ],
        actions=actions,
    )
