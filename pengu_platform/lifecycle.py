"""
Transition tables for every stateful entity.

Each table maps ``(current_state, action)`` to the next state. The
``*_transition`` functions look the pair up and return a ``Result`` holding
either the new state or the error code for that entity; they never raise and
never mutate anything. Workflows apply the returned state themselves.
"""

from enum import Enum
from typing import Optional

from .errors import ErrorCode, Result
from .models.request import RequestStatus
from .models.quote import QuoteStatus
from .models.order import OrderStatus, MilestoneStatus
from .models.withdrawal import WithdrawalKind, WithdrawalStatus
from .models.review import ReviewStatus


class RequestAction(Enum):
    QUOTE = "quote"          # Admin issues a quote
    NEGOTIATE = "negotiate"  # Student replies to the quote
    REVISE = "revise"        # Admin replies with new terms
    ACCEPT = "accept"
    CONVERT = "convert"      # Order created
    EXPIRE = "expire"


class QuoteAction(Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    SUPERSEDE = "supersede"
    EXPIRE = "expire"


class OrderAction(Enum):
    ASSIGN = "assign"
    START = "start"
    SUBMIT = "submit"        # Milestone delivered for QC
    CONTINUE = "continue"    # Non-final milestone approved
    COMPLETE = "complete"    # Final milestone approved
    DISPUTE = "dispute"


class MilestoneAction(Enum):
    START = "start"
    DELIVER = "deliver"
    APPROVE = "approve"
    REJECT = "reject"


class WithdrawalAction(Enum):
    CONFIRM = "confirm"
    PAY = "pay"
    REJECT = "reject"


class ReviewAction(Enum):
    APPROVE = "approve"
    REJECT = "reject"


_OPEN_REQUEST_STATES = (
    RequestStatus.SUBMITTED,
    RequestStatus.QUOTED,
    RequestStatus.NEGOTIATION,
)

REQUEST_TRANSITIONS: dict[tuple[RequestStatus, RequestAction], RequestStatus] = {
    (RequestStatus.SUBMITTED, RequestAction.QUOTE): RequestStatus.QUOTED,
    (RequestStatus.NEGOTIATION, RequestAction.QUOTE): RequestStatus.QUOTED,
    (RequestStatus.QUOTED, RequestAction.NEGOTIATE): RequestStatus.NEGOTIATION,
    (RequestStatus.NEGOTIATION, RequestAction.NEGOTIATE): RequestStatus.NEGOTIATION,
    (RequestStatus.QUOTED, RequestAction.REVISE): RequestStatus.QUOTED,
    (RequestStatus.NEGOTIATION, RequestAction.REVISE): RequestStatus.QUOTED,
    (RequestStatus.QUOTED, RequestAction.ACCEPT): RequestStatus.ACCEPTED,
    (RequestStatus.NEGOTIATION, RequestAction.ACCEPT): RequestStatus.ACCEPTED,
    (RequestStatus.ACCEPTED, RequestAction.CONVERT): RequestStatus.CONVERTED,
    **{(state, RequestAction.EXPIRE): RequestStatus.EXPIRED for state in _OPEN_REQUEST_STATES},
}

QUOTE_TRANSITIONS: dict[tuple[QuoteStatus, QuoteAction], QuoteStatus] = {
    (QuoteStatus.PENDING, QuoteAction.ACCEPT): QuoteStatus.ACCEPTED,
    (QuoteStatus.PENDING, QuoteAction.REJECT): QuoteStatus.REJECTED,
    (QuoteStatus.PENDING, QuoteAction.SUPERSEDE): QuoteStatus.REJECTED,
    (QuoteStatus.PENDING, QuoteAction.EXPIRE): QuoteStatus.EXPIRED,
}

# Statuses an order may be disputed from, and later returned to.
DISPUTABLE_ORDER_STATES = frozenset({
    OrderStatus.ASSIGNED,
    OrderStatus.IN_PROGRESS,
    OrderStatus.REVIEW,
})

ORDER_TRANSITIONS: dict[tuple[OrderStatus, OrderAction], OrderStatus] = {
    (OrderStatus.PAID_CONFIRMED, OrderAction.ASSIGN): OrderStatus.ASSIGNED,
    (OrderStatus.ASSIGNED, OrderAction.ASSIGN): OrderStatus.ASSIGNED,
    (OrderStatus.ASSIGNED, OrderAction.START): OrderStatus.IN_PROGRESS,
    (OrderStatus.IN_PROGRESS, OrderAction.SUBMIT): OrderStatus.REVIEW,
    (OrderStatus.REVIEW, OrderAction.SUBMIT): OrderStatus.REVIEW,
    (OrderStatus.REVIEW, OrderAction.CONTINUE): OrderStatus.IN_PROGRESS,
    (OrderStatus.REVIEW, OrderAction.COMPLETE): OrderStatus.COMPLETED,
    **{(state, OrderAction.DISPUTE): OrderStatus.DISPUTE for state in DISPUTABLE_ORDER_STATES},
}

MILESTONE_TRANSITIONS: dict[tuple[MilestoneStatus, MilestoneAction], MilestoneStatus] = {
    (MilestoneStatus.PENDING, MilestoneAction.START): MilestoneStatus.IN_PROGRESS,
    (MilestoneStatus.IN_PROGRESS, MilestoneAction.DELIVER): MilestoneStatus.DELIVERED,
    (MilestoneStatus.DELIVERED, MilestoneAction.APPROVE): MilestoneStatus.APPROVED,
    (MilestoneStatus.DELIVERED, MilestoneAction.REJECT): MilestoneStatus.IN_PROGRESS,
}

WITHDRAWAL_TRANSITIONS: dict[
    WithdrawalKind, dict[tuple[WithdrawalStatus, WithdrawalAction], WithdrawalStatus]
] = {
    WithdrawalKind.EXPERT: {
        (WithdrawalStatus.PENDING, WithdrawalAction.CONFIRM): WithdrawalStatus.CONFIRMED,
        (WithdrawalStatus.CONFIRMED, WithdrawalAction.PAY): WithdrawalStatus.PAID,
        (WithdrawalStatus.PENDING, WithdrawalAction.REJECT): WithdrawalStatus.REJECTED,
    },
    WithdrawalKind.STUDENT: {
        (WithdrawalStatus.PENDING, WithdrawalAction.PAY): WithdrawalStatus.PAID,
        (WithdrawalStatus.PENDING, WithdrawalAction.REJECT): WithdrawalStatus.REJECTED,
    },
}

# Re-applying the current decision is accepted as a no-op.
REVIEW_TRANSITIONS: dict[tuple[ReviewStatus, ReviewAction], ReviewStatus] = {
    (ReviewStatus.PENDING, ReviewAction.APPROVE): ReviewStatus.APPROVED,
    (ReviewStatus.PENDING, ReviewAction.REJECT): ReviewStatus.REJECTED,
    (ReviewStatus.APPROVED, ReviewAction.REJECT): ReviewStatus.REJECTED,
    (ReviewStatus.APPROVED, ReviewAction.APPROVE): ReviewStatus.APPROVED,
    (ReviewStatus.REJECTED, ReviewAction.APPROVE): ReviewStatus.APPROVED,
    (ReviewStatus.REJECTED, ReviewAction.REJECT): ReviewStatus.REJECTED,
}


def _lookup(table: dict, state: Enum, action: Enum, error: ErrorCode, entity: str) -> Result:
    next_state = table.get((state, action))
    if next_state is None:
        return Result.failure(
            error, f"Cannot {action.value} {entity} in status {state.value}"
        )
    return Result.success(next_state)


def request_transition(state: RequestStatus, action: RequestAction) -> Result:
    return _lookup(REQUEST_TRANSITIONS, state, action, ErrorCode.INVALID_REQUEST_STATE, "request")


def quote_transition(state: QuoteStatus, action: QuoteAction) -> Result:
    return _lookup(QUOTE_TRANSITIONS, state, action, ErrorCode.QUOTE_NOT_PENDING, "quote")


def order_transition(state: OrderStatus, action: OrderAction) -> Result:
    return _lookup(ORDER_TRANSITIONS, state, action, ErrorCode.INVALID_ORDER_TRANSITION, "order")


def milestone_transition(state: MilestoneStatus, action: MilestoneAction) -> Result:
    return _lookup(
        MILESTONE_TRANSITIONS, state, action, ErrorCode.MILESTONE_NOT_DELIVERABLE, "milestone"
    )


def resume_from_dispute(state: OrderStatus, previous: Optional[OrderStatus]) -> Result:
    """Return a disputed order to the status it held before the dispute."""
    if state != OrderStatus.DISPUTE:
        return Result.failure(
            ErrorCode.INVALID_ORDER_TRANSITION, f"Order is not in dispute (status: {state.value})"
        )
    if previous not in DISPUTABLE_ORDER_STATES:
        return Result.failure(
            ErrorCode.INVALID_ORDER_TRANSITION, "Order has no status to resume"
        )
    return Result.success(previous)


def withdrawal_transition(
    kind: WithdrawalKind,
    state: WithdrawalStatus,
    action: WithdrawalAction,
) -> Result:
    """Resolve a withdrawal transition for the given flow."""
    if state.is_resolved:
        return Result.failure(
            ErrorCode.ALREADY_RESOLVED, f"Withdrawal already {state.value}"
        )
    next_state = WITHDRAWAL_TRANSITIONS[kind].get((state, action))
    if next_state is not None:
        return Result.success(next_state)
    if kind == WithdrawalKind.EXPERT and action == WithdrawalAction.PAY:
        return Result.failure(
            ErrorCode.CONFIRMATION_REQUIRED, "Expert withdrawals must be confirmed before payment"
        )
    return Result.failure(
        ErrorCode.INVALID_WITHDRAWAL_TRANSITION,
        f"Cannot {action.value} a {kind.value} withdrawal in status {state.value}",
    )


def review_transition(state: ReviewStatus, action: ReviewAction) -> Result:
    return _lookup(REVIEW_TRANSITIONS, state, action, ErrorCode.INVALID_REVIEW_TRANSITION, "review")
