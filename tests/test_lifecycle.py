"""Tests for the transition tables and the Result type."""

import pytest

from pengu_platform.errors import (
    ErrorCategory,
    ErrorCode,
    NotFoundError,
    Result,
    StateConflictError,
    ValidationError,
)
from pengu_platform.lifecycle import (
    DISPUTABLE_ORDER_STATES,
    MILESTONE_TRANSITIONS,
    ORDER_TRANSITIONS,
    QUOTE_TRANSITIONS,
    REQUEST_TRANSITIONS,
    REVIEW_TRANSITIONS,
    MilestoneAction,
    OrderAction,
    QuoteAction,
    RequestAction,
    ReviewAction,
    WithdrawalAction,
    milestone_transition,
    order_transition,
    quote_transition,
    request_transition,
    resume_from_dispute,
    review_transition,
    withdrawal_transition,
)
from pengu_platform.models import (
    MilestoneStatus,
    OrderStatus,
    QuoteStatus,
    RequestStatus,
    ReviewStatus,
    WithdrawalKind,
    WithdrawalStatus,
)


# ── Result ────────────────────────────────────────────────────────────────

class TestResult:
    def test_success_is_truthy(self):
        result = Result.success(42, "done")
        assert result
        assert result.unwrap() == 42
        assert result.category is None

    def test_failure_is_falsy_with_default_message(self):
        result = Result.failure(ErrorCode.QUOTE_EXPIRED)
        assert not result
        assert result.message == "QUOTE_EXPIRED"
        assert result.category == ErrorCategory.STATE_CONFLICT

    def test_unwrap_raises_category_exception(self):
        with pytest.raises(ValidationError) as exc:
            Result.failure(ErrorCode.MISSING_FIELD, "topic is required").unwrap()
        assert exc.value.code == ErrorCode.MISSING_FIELD
        assert exc.value.message == "topic is required"

        with pytest.raises(NotFoundError):
            Result.failure(ErrorCode.ORDER_NOT_FOUND).unwrap()
        with pytest.raises(StateConflictError):
            Result.failure(ErrorCode.ALREADY_RESOLVED).unwrap()

    def test_failure_to_dict(self):
        data = Result.failure(ErrorCode.INSUFFICIENT_BALANCE, "Not enough").to_dict()
        assert data == {
            "success": False,
            "error": "INSUFFICIENT_BALANCE",
            "category": "resource_unavailable",
            "message": "Not enough",
        }


class TestErrorCategories:
    @pytest.mark.parametrize("code,category", [
        (ErrorCode.DEADLINE_IN_PAST, ErrorCategory.VALIDATION),
        (ErrorCode.WRONG_WITHDRAWAL_KIND, ErrorCategory.VALIDATION),
        (ErrorCode.ORDER_ALREADY_ASSIGNED, ErrorCategory.STATE_CONFLICT),
        (ErrorCode.CONFIRMATION_REQUIRED, ErrorCategory.STATE_CONFLICT),
        (ErrorCode.EXPERT_NOT_FOUND, ErrorCategory.NOT_FOUND),
        (ErrorCode.EXPERT_UNAVAILABLE, ErrorCategory.RESOURCE_UNAVAILABLE),
        (ErrorCode.FORBIDDEN, ErrorCategory.PERMISSION_DENIED),
    ])
    def test_code_category(self, code, category):
        assert code.category == category

    def test_http_statuses(self):
        assert ErrorCategory.VALIDATION.http_status == 400
        assert ErrorCategory.PERMISSION_DENIED.http_status == 403
        assert ErrorCategory.NOT_FOUND.http_status == 404
        assert ErrorCategory.STATE_CONFLICT.http_status == 409
        assert ErrorCategory.RESOURCE_UNAVAILABLE.http_status == 422


# ── Requests and quotes ───────────────────────────────────────────────────

class TestRequestTransitions:
    def test_happy_path(self):
        state = RequestStatus.SUBMITTED
        for action in (
            RequestAction.QUOTE,
            RequestAction.NEGOTIATE,
            RequestAction.REVISE,
            RequestAction.ACCEPT,
            RequestAction.CONVERT,
        ):
            state = request_transition(state, action).unwrap()
        assert state == RequestStatus.CONVERTED

    def test_negotiation_loops_back_to_quoted(self):
        assert request_transition(RequestStatus.NEGOTIATION, RequestAction.REVISE).value == RequestStatus.QUOTED
        assert request_transition(RequestStatus.NEGOTIATION, RequestAction.QUOTE).value == RequestStatus.QUOTED

    def test_cannot_quote_a_quoted_request(self):
        result = request_transition(RequestStatus.QUOTED, RequestAction.QUOTE)
        assert result.error == ErrorCode.INVALID_REQUEST_STATE

    @pytest.mark.parametrize("terminal", [RequestStatus.CONVERTED, RequestStatus.EXPIRED])
    def test_terminal_states_have_no_exits(self, terminal):
        assert not [key for key in REQUEST_TRANSITIONS if key[0] == terminal]
        for action in RequestAction:
            assert request_transition(terminal, action).error == ErrorCode.INVALID_REQUEST_STATE

    def test_only_open_requests_expire(self):
        assert request_transition(RequestStatus.QUOTED, RequestAction.EXPIRE).value == RequestStatus.EXPIRED
        assert not request_transition(RequestStatus.ACCEPTED, RequestAction.EXPIRE)


class TestQuoteTransitions:
    def test_pending_is_the_only_source(self):
        assert {state for state, _ in QUOTE_TRANSITIONS} == {QuoteStatus.PENDING}

    def test_supersede_rejects(self):
        assert quote_transition(QuoteStatus.PENDING, QuoteAction.SUPERSEDE).value == QuoteStatus.REJECTED

    @pytest.mark.parametrize("state", [QuoteStatus.ACCEPTED, QuoteStatus.REJECTED, QuoteStatus.EXPIRED])
    def test_resolved_quote_cannot_be_accepted(self, state):
        assert quote_transition(state, QuoteAction.ACCEPT).error == ErrorCode.QUOTE_NOT_PENDING


# ── Orders and milestones ─────────────────────────────────────────────────

class TestOrderTransitions:
    def test_happy_path(self):
        state = OrderStatus.PAID_CONFIRMED
        for action in (
            OrderAction.ASSIGN,
            OrderAction.START,
            OrderAction.SUBMIT,
            OrderAction.CONTINUE,
            OrderAction.SUBMIT,
            OrderAction.COMPLETE,
        ):
            state = order_transition(state, action).unwrap()
        assert state == OrderStatus.COMPLETED

    def test_completed_is_terminal(self):
        assert not [key for key in ORDER_TRANSITIONS if key[0] == OrderStatus.COMPLETED]
        assert order_transition(OrderStatus.COMPLETED, OrderAction.DISPUTE).error == ErrorCode.INVALID_ORDER_TRANSITION

    def test_cannot_start_unassigned_order(self):
        assert order_transition(OrderStatus.PAID_CONFIRMED, OrderAction.START).error == ErrorCode.INVALID_ORDER_TRANSITION

    def test_reassignment_allowed_before_start(self):
        assert order_transition(OrderStatus.ASSIGNED, OrderAction.ASSIGN).value == OrderStatus.ASSIGNED
        assert not order_transition(OrderStatus.IN_PROGRESS, OrderAction.ASSIGN)

    def test_dispute_sources(self):
        for state in OrderStatus:
            result = order_transition(state, OrderAction.DISPUTE)
            assert bool(result) == (state in DISPUTABLE_ORDER_STATES)

    def test_disputed_order_is_frozen(self):
        for action in OrderAction:
            assert not order_transition(OrderStatus.DISPUTE, action)

    def test_resume_from_dispute(self):
        assert resume_from_dispute(OrderStatus.DISPUTE, OrderStatus.REVIEW).value == OrderStatus.REVIEW
        assert resume_from_dispute(OrderStatus.IN_PROGRESS, OrderStatus.REVIEW).error == ErrorCode.INVALID_ORDER_TRANSITION
        assert not resume_from_dispute(OrderStatus.DISPUTE, None)
        assert not resume_from_dispute(OrderStatus.DISPUTE, OrderStatus.COMPLETED)


class TestMilestoneTransitions:
    def test_rejection_returns_to_in_progress(self):
        assert milestone_transition(MilestoneStatus.DELIVERED, MilestoneAction.REJECT).value == MilestoneStatus.IN_PROGRESS

    def test_approved_is_terminal(self):
        assert not [key for key in MILESTONE_TRANSITIONS if key[0] == MilestoneStatus.APPROVED]

    def test_cannot_deliver_before_start(self):
        result = milestone_transition(MilestoneStatus.PENDING, MilestoneAction.DELIVER)
        assert result.error == ErrorCode.MILESTONE_NOT_DELIVERABLE


# ── Withdrawals and reviews ───────────────────────────────────────────────

class TestWithdrawalTransitions:
    def test_expert_flow_needs_confirmation(self):
        result = withdrawal_transition(WithdrawalKind.EXPERT, WithdrawalStatus.PENDING, WithdrawalAction.PAY)
        assert result.error == ErrorCode.CONFIRMATION_REQUIRED

        confirmed = withdrawal_transition(
            WithdrawalKind.EXPERT, WithdrawalStatus.PENDING, WithdrawalAction.CONFIRM
        ).unwrap()
        paid = withdrawal_transition(WithdrawalKind.EXPERT, confirmed, WithdrawalAction.PAY).unwrap()
        assert paid == WithdrawalStatus.PAID

    def test_student_flow_is_single_step(self):
        result = withdrawal_transition(WithdrawalKind.STUDENT, WithdrawalStatus.PENDING, WithdrawalAction.PAY)
        assert result.value == WithdrawalStatus.PAID

        result = withdrawal_transition(WithdrawalKind.STUDENT, WithdrawalStatus.PENDING, WithdrawalAction.CONFIRM)
        assert result.error == ErrorCode.INVALID_WITHDRAWAL_TRANSITION

    @pytest.mark.parametrize("kind", list(WithdrawalKind))
    @pytest.mark.parametrize("state", [WithdrawalStatus.PAID, WithdrawalStatus.REJECTED])
    def test_resolved_withdrawals_are_final(self, kind, state):
        for action in WithdrawalAction:
            assert withdrawal_transition(kind, state, action).error == ErrorCode.ALREADY_RESOLVED

    def test_confirmed_expert_withdrawal_cannot_be_rejected(self):
        result = withdrawal_transition(WithdrawalKind.EXPERT, WithdrawalStatus.CONFIRMED, WithdrawalAction.REJECT)
        assert result.error == ErrorCode.INVALID_WITHDRAWAL_TRANSITION


class TestReviewTransitions:
    def test_never_returns_to_pending(self):
        assert ReviewStatus.PENDING not in REVIEW_TRANSITIONS.values()

    def test_decisions_can_be_reversed(self):
        assert review_transition(ReviewStatus.APPROVED, ReviewAction.REJECT).value == ReviewStatus.REJECTED
        assert review_transition(ReviewStatus.REJECTED, ReviewAction.APPROVE).value == ReviewStatus.APPROVED
