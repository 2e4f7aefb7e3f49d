"""Tests for assignment, milestone delivery, quality control and completion."""

import threading
from datetime import timedelta

import pytest

from pengu_platform.errors import ErrorCode
from pengu_platform.models import (
    ExpertStatus,
    MilestoneStatus,
    OrderStatus,
    ReviewStatus,
    TransactionType,
    UserRole,
)


def events_for(platform, user_id, event):
    return [n for n in platform.notifications.list_for_user(user_id) if n.event == event]


# ── Assignment ────────────────────────────────────────────────────────────

class TestAssignExpert:
    def test_assigns_available_expert(self, platform, admin, student, expert, order):
        result = platform.orders.assign_expert(order.id, admin.id, expert.id)
        assert result
        assigned = result.value
        assert assigned.status == OrderStatus.ASSIGNED
        assert assigned.expert_id == expert.user_id
        assert len(events_for(platform, expert.user_id, "order_assigned")) == 1
        assert len(events_for(platform, student.id, "expert_assigned")) == 1

    def test_offline_expert_unavailable(self, platform, admin, expert, order):
        platform.experts.set_online(expert.id, expert.user_id, False).unwrap()
        result = platform.orders.assign_expert(order.id, admin.id, expert.id)
        assert result.error == ErrorCode.EXPERT_UNAVAILABLE
        assert platform.orders.get_order(order.id).status == OrderStatus.PAID_CONFIRMED

    def test_suspended_expert_unavailable(self, platform, admin, expert, order):
        platform.experts.set_status(expert.id, admin.id, ExpertStatus.SUSPENDED).unwrap()
        result = platform.orders.assign_expert(order.id, admin.id, expert.id)
        assert result.error == ErrorCode.EXPERT_UNAVAILABLE

    def test_unknown_expert(self, platform, admin, order):
        result = platform.orders.assign_expert(order.id, admin.id, "EXP-MISSING")
        assert result.error == ErrorCode.EXPERT_NOT_FOUND

    def test_admin_only(self, platform, student, expert, order):
        result = platform.orders.assign_expert(order.id, student.id, expert.id)
        assert result.error == ErrorCode.FORBIDDEN

    def test_stale_version_loses(self, platform, admin, expert, make_expert, order):
        second_admin = platform.accounts.create_user(
            "admin2@pengu.test", "Second Admin", UserRole.ADMIN
        ).unwrap()
        rival = make_expert("rival@pengu.test", "Karim Rival")
        seen_version = platform.orders.get_order(order.id).version

        first = platform.orders.assign_expert(order.id, admin.id, expert.id, expected_version=seen_version)
        second = platform.orders.assign_expert(
            order.id, second_admin.id, rival.id, expected_version=seen_version
        )

        assert first
        assert second.error == ErrorCode.ORDER_ALREADY_ASSIGNED
        assert platform.orders.get_order(order.id).expert_id == expert.user_id

    def test_reassign_before_start(self, platform, admin, expert, make_expert, order):
        rival = make_expert("rival@pengu.test", "Karim Rival")
        platform.orders.assign_expert(order.id, admin.id, expert.id).unwrap()
        reassigned = platform.orders.assign_expert(order.id, admin.id, rival.id, reassign=True).unwrap()
        assert reassigned.expert_id == rival.user_id
        assert reassigned.status == OrderStatus.ASSIGNED

    def test_second_assignment_needs_reassign_flag(self, platform, admin, expert, make_expert, order):
        rival = make_expert("rival@pengu.test", "Karim Rival")
        platform.orders.assign_expert(order.id, admin.id, expert.id).unwrap()

        result = platform.orders.assign_expert(order.id, admin.id, rival.id)

        assert result.error == ErrorCode.ORDER_ALREADY_ASSIGNED
        assert platform.orders.get_order(order.id).expert_id == expert.user_id

    def test_concurrent_assignments_have_one_winner(self, platform, admin, expert, make_expert, order):
        rival = make_expert("rival@pengu.test", "Karim Rival")
        barrier = threading.Barrier(2)
        results = {}

        def assign(profile):
            barrier.wait()
            results[profile.id] = platform.orders.assign_expert(order.id, admin.id, profile.id)

        threads = [threading.Thread(target=assign, args=(p,)) for p in (expert, rival)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        winners = [r for r in results.values() if r]
        losers = [r for r in results.values() if not r]
        assert len(winners) == 1
        assert [r.error for r in losers] == [ErrorCode.ORDER_ALREADY_ASSIGNED]
        assert platform.orders.get_order(order.id).expert_id == winners[0].value.expert_id

    def test_cannot_reassign_started_order(self, platform, admin, make_expert, started_order):
        rival = make_expert("rival@pengu.test", "Karim Rival")
        result = platform.orders.assign_expert(started_order.id, admin.id, rival.id, reassign=True)
        assert result.error == ErrorCode.INVALID_ORDER_TRANSITION


class TestStartOrder:
    def test_first_milestone_in_progress(self, started_order):
        assert started_order.status == OrderStatus.IN_PROGRESS
        statuses = [m.status for m in started_order.milestones]
        assert statuses == [MilestoneStatus.IN_PROGRESS, MilestoneStatus.PENDING, MilestoneStatus.PENDING]

    def test_only_assigned_expert(self, platform, admin, expert, make_expert, order):
        rival = make_expert("rival@pengu.test", "Karim Rival")
        platform.orders.assign_expert(order.id, admin.id, expert.id).unwrap()
        result = platform.orders.start_order(order.id, rival.user_id)
        assert result.error == ErrorCode.FORBIDDEN


# ── Delivery and QC ───────────────────────────────────────────────────────

class TestSubmitMilestone:
    def test_delivery_moves_order_to_review(self, platform, admin, expert, started_order, files):
        milestone = started_order.milestones[0]
        order = platform.orders.submit_milestone(
            started_order.id, milestone.id, expert.user_id, [files("Outline")]
        ).unwrap()

        assert order.status == OrderStatus.REVIEW
        delivered = order.get_milestone(milestone.id)
        assert delivered.status == MilestoneStatus.DELIVERED
        assert delivered.submissions[0].url.endswith("outline.pdf")
        assert len(events_for(platform, admin.id, "milestone_submitted")) == 1

    def test_pending_milestone_not_deliverable(self, platform, expert, started_order, files):
        later = started_order.milestones[1]
        result = platform.orders.submit_milestone(started_order.id, later.id, expert.user_id, [files("Draft")])
        assert result.error == ErrorCode.MILESTONE_NOT_DELIVERABLE

    def test_files_required(self, platform, expert, started_order):
        milestone = started_order.milestones[0]
        result = platform.orders.submit_milestone(started_order.id, milestone.id, expert.user_id, [])
        assert result.error == ErrorCode.MISSING_FIELD

    def test_only_assigned_expert_delivers(self, platform, make_expert, started_order, files):
        rival = make_expert("rival@pengu.test", "Karim Rival")
        milestone = started_order.milestones[0]

        result = platform.orders.submit_milestone(
            started_order.id, milestone.id, rival.user_id, [files("Outline")]
        )

        assert result.error == ErrorCode.FORBIDDEN
        reloaded = platform.orders.get_order(started_order.id)
        assert reloaded.status == OrderStatus.IN_PROGRESS
        assert reloaded.get_milestone(milestone.id).status == MilestoneStatus.IN_PROGRESS

    def test_unknown_milestone(self, platform, expert, started_order, files):
        result = platform.orders.submit_milestone(started_order.id, "MS-NOPE", expert.user_id, [files("x")])
        assert result.error == ErrorCode.MILESTONE_NOT_FOUND


class TestReviewDeliverable:
    @pytest.fixture
    def delivered(self, platform, expert, started_order, files):
        milestone = started_order.milestones[0]
        platform.orders.submit_milestone(
            started_order.id, milestone.id, expert.user_id, [files("Outline")]
        ).unwrap()
        return started_order, milestone

    def test_rejection_requests_revision(self, platform, admin, expert, delivered):
        order, milestone = delivered
        result = platform.orders.review_deliverable(
            order.id, milestone.id, admin.id, approved=False, feedback="Cite your sources"
        )
        assert result

        reloaded = platform.orders.get_order(order.id)
        assert reloaded.status == OrderStatus.REVIEW
        returned = reloaded.get_milestone(milestone.id)
        assert returned.status == MilestoneStatus.IN_PROGRESS
        assert returned.revision_count == 1

        revisions = events_for(platform, expert.user_id, "revision_requested")
        assert len(revisions) == 1
        assert revisions[0].message == "Cite your sources"

    def test_rejection_keeps_due_date_by_default(self, platform, admin, delivered):
        order, milestone = delivered
        platform.orders.review_deliverable(order.id, milestone.id, admin.id, approved=False).unwrap()
        assert platform.orders.get_order(order.id).get_milestone(milestone.id).due_date == milestone.due_date

    def test_grace_days_extend_overdue_milestone(self, platform, clock, admin, delivered):
        order, milestone = delivered
        platform.settings.revision_grace_days = 3
        clock.advance(days=10)

        platform.orders.review_deliverable(order.id, milestone.id, admin.id, approved=False).unwrap()

        due = platform.orders.get_order(order.id).get_milestone(milestone.id).due_date
        assert due == clock() + timedelta(days=3)

    def test_resubmission_after_rejection(self, platform, admin, expert, delivered, files):
        order, milestone = delivered
        platform.orders.review_deliverable(order.id, milestone.id, admin.id, approved=False).unwrap()
        resubmitted = platform.orders.submit_milestone(
            order.id, milestone.id, expert.user_id, [files("Outline v2")]
        ).unwrap()
        assert resubmitted.status == OrderStatus.REVIEW
        assert len(resubmitted.get_milestone(milestone.id).submissions) == 2

    def test_approval_starts_next_milestone(self, platform, admin, student, delivered):
        order, milestone = delivered
        approved = platform.orders.review_deliverable(order.id, milestone.id, admin.id, approved=True).unwrap()

        assert approved.status == OrderStatus.IN_PROGRESS
        assert [m.status for m in approved.milestones] == [
            MilestoneStatus.APPROVED, MilestoneStatus.IN_PROGRESS, MilestoneStatus.PENDING,
        ]
        assert approved.progress == 33
        assert len(events_for(platform, student.id, "milestone_approved")) == 1

    def test_requires_order_in_review(self, platform, admin, started_order):
        milestone = started_order.milestones[0]
        result = platform.orders.review_deliverable(started_order.id, milestone.id, admin.id, approved=True)
        assert result.error == ErrorCode.INVALID_ORDER_TRANSITION

    def test_admin_only(self, platform, expert, delivered):
        order, milestone = delivered
        result = platform.orders.review_deliverable(order.id, milestone.id, expert.user_id, approved=True)
        assert result.error == ErrorCode.FORBIDDEN


# ── Completion ────────────────────────────────────────────────────────────

class TestCompletion:
    def test_completed_order_has_every_milestone_approved(self, platform, order, complete_order):
        completed = complete_order(order)
        assert completed.status == OrderStatus.COMPLETED
        assert completed.all_milestones_approved
        assert completed.progress == 100
        assert completed.payout_processed

        for stored in platform.orders.list_orders(status=OrderStatus.COMPLETED):
            assert all(m.status == MilestoneStatus.APPROVED for m in stored.milestones)

    def test_payout_split(self, platform, expert, order, complete_order):
        complete_order(order)

        profile = platform.experts.get_expert(expert.id)
        assert profile.balance == 12750
        assert profile.earnings == 12750
        assert profile.completed_orders == 1

        credits = platform.ledger.list_transactions(type=TransactionType.EXPERT_CREDIT)
        commissions = platform.ledger.list_transactions(type=TransactionType.COMMISSION)
        assert [(c.amount, c.reference) for c in credits] == [(12750, order.id)]
        assert [(c.amount, c.reference) for c in commissions] == [(2250, order.id)]

        summary = platform.ledger.get_financial_summary()
        assert summary["income"] == 15000
        assert summary["commission"] + summary["expert_credits"] == summary["income"]

    def test_pending_review_created(self, platform, student, expert, order, complete_order):
        complete_order(order)
        reviews = platform.reviews.list_reviews(student_id=student.id)
        assert len(reviews) == 1
        assert reviews[0].status == ReviewStatus.PENDING
        assert reviews[0].expert_id == expert.user_id
        assert reviews[0].rating is None

    def test_notifications(self, platform, student, expert, order, complete_order):
        complete_order(order)
        assert len(events_for(platform, student.id, "order_completed")) == 1
        assert len(events_for(platform, expert.user_id, "payout_credited")) == 1

    def test_replayed_approval_does_not_pay_twice(self, platform, admin, expert, order, complete_order):
        completed = complete_order(order)
        final = completed.milestones[-1]

        result = platform.orders.review_deliverable(order.id, final.id, admin.id, approved=True)

        assert result.error == ErrorCode.INVALID_ORDER_TRANSITION
        assert platform.experts.get_expert(expert.id).balance == 12750
        assert len(platform.ledger.list_transactions(type=TransactionType.EXPERT_CREDIT)) == 1

    def test_statistics(self, platform, order, make_order, complete_order):
        complete_order(order)
        make_order()

        stats = platform.orders.get_order_statistics()
        assert stats["total_orders"] == 2
        assert stats["by_status"]["COMPLETED"] == 1
        assert stats["unassigned"] == 1
        assert stats["completed_volume"] == 15000
        assert stats["gross_volume"] == 30000


# ── Disputes ──────────────────────────────────────────────────────────────

class TestDisputes:
    def test_dispute_and_resume(self, platform, admin, student, expert, started_order):
        disputed = platform.orders.open_dispute(started_order.id, student.id, "Expert is unresponsive").unwrap()
        assert disputed.status == OrderStatus.DISPUTE
        assert disputed.status_before_dispute == OrderStatus.IN_PROGRESS
        assert len(events_for(platform, admin.id, "order_disputed")) == 1
        assert len(events_for(platform, expert.user_id, "order_disputed")) == 1

        resumed = platform.orders.resolve_dispute(started_order.id, admin.id, "Expert replied").unwrap()
        assert resumed.status == OrderStatus.IN_PROGRESS
        assert resumed.dispute_reason is None

    def test_disputed_order_is_frozen(self, platform, student, expert, started_order, files):
        platform.orders.open_dispute(started_order.id, student.id, "Wrong topic").unwrap()
        milestone = started_order.milestones[0]
        result = platform.orders.submit_milestone(started_order.id, milestone.id, expert.user_id, [files("x")])
        assert result.error == ErrorCode.INVALID_ORDER_TRANSITION

    def test_unassigned_order_cannot_be_disputed(self, platform, student, order):
        result = platform.orders.open_dispute(order.id, student.id, "Changed my mind")
        assert result.error == ErrorCode.INVALID_ORDER_TRANSITION

    def test_outsider_forbidden(self, platform, other_student, started_order):
        result = platform.orders.open_dispute(started_order.id, other_student.id, "Nosy")
        assert result.error == ErrorCode.FORBIDDEN

    def test_resolve_requires_dispute(self, platform, admin, started_order):
        result = platform.orders.resolve_dispute(started_order.id, admin.id)
        assert result.error == ErrorCode.INVALID_ORDER_TRANSITION


# ── Annotations ───────────────────────────────────────────────────────────

class TestAnnotations:
    @pytest.fixture
    def delivered_file(self, platform, expert, started_order, files):
        attachment = files("Outline")
        platform.orders.submit_milestone(
            started_order.id, started_order.milestones[0].id, expert.user_id, [attachment]
        ).unwrap()
        return attachment

    def test_admin_pins_note(self, platform, admin, expert, started_order, delivered_file):
        note = platform.orders.add_annotation(
            started_order.id, admin.id, delivered_file.url, 50, 25.5, "Fix this table"
        ).unwrap()
        assert note.x == 50.0
        assert note.author == "Nadia Admin"
        assert not note.resolved
        assert len(events_for(platform, expert.user_id, "annotation_added")) == 1

        resolved = platform.orders.resolve_annotation(started_order.id, note.id, expert.user_id).unwrap()
        assert resolved.resolved
        assert platform.orders.get_order(started_order.id).get_annotation(note.id).resolved

    def test_coordinates_bounded(self, platform, admin, started_order, delivered_file):
        result = platform.orders.add_annotation(started_order.id, admin.id, delivered_file.url, 150, 10, "Off page")
        assert result.error == ErrorCode.INVALID_FIELD

    def test_file_must_be_delivered(self, platform, admin, started_order, delivered_file):
        result = platform.orders.add_annotation(
            started_order.id, admin.id, "https://elsewhere.test/x.pdf", 10, 10, "Where?"
        )
        assert result.error == ErrorCode.INVALID_ATTACHMENT

    def test_expert_cannot_annotate(self, platform, expert, started_order, delivered_file):
        result = platform.orders.add_annotation(started_order.id, expert.user_id, delivered_file.url, 1, 1, "Me")
        assert result.error == ErrorCode.FORBIDDEN
