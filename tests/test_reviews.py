"""Tests for review collection, moderation and expert ratings."""

import pytest

from pengu_platform.errors import ErrorCode
from pengu_platform.models import ReviewStatus


@pytest.fixture
def review(platform, order, complete_order):
    """The PENDING review created when ``order`` completes."""
    complete_order(order)
    return platform.reviews.list_reviews(student_id=order.student_id)[0]


def expert_rating(platform, expert):
    return platform.experts.get_expert(expert.id).rating


class TestReviewCreation:
    def test_completion_creates_pending_review(self, platform, order, expert, review):
        assert review.order_id == order.id
        assert review.expert_id == expert.user_id
        assert review.status == ReviewStatus.PENDING
        assert review.rating is None

    def test_unrated_review_cannot_be_moderated(self, platform, admin, review):
        result = platform.reviews.moderate_review(review.id, admin.id, ReviewStatus.APPROVED)
        assert result.error == ErrorCode.REVIEW_NOT_SUBMITTED


# ── Student feedback ──────────────────────────────────────────────────────

class TestSubmitReview:
    def test_submit(self, platform, admin, student, review):
        submitted = platform.reviews.submit_review(review.id, student.id, 5, "  Clear and on time ").unwrap()

        assert submitted.rating == 5
        assert submitted.text == "Clear and on time"
        assert submitted.status == ReviewStatus.PENDING
        events = [n.event for n in platform.notifications.list_for_user(admin.id)]
        assert "review_submitted" in events

    def test_can_edit_while_pending(self, platform, student, review):
        platform.reviews.submit_review(review.id, student.id, 3).unwrap()
        edited = platform.reviews.submit_review(review.id, student.id, 4).unwrap()
        assert edited.rating == 4

    @pytest.mark.parametrize("rating", [0, 6, 4.5, True])
    def test_rating_range(self, platform, student, review, rating):
        result = platform.reviews.submit_review(review.id, student.id, rating)
        assert result.error == ErrorCode.INVALID_FIELD

    def test_only_the_orders_student(self, platform, other_student, review):
        result = platform.reviews.submit_review(review.id, other_student.id, 5)
        assert result.error == ErrorCode.FORBIDDEN

    def test_unknown_review(self, platform, student):
        result = platform.reviews.submit_review("REV-NOPE", student.id, 5)
        assert result.error == ErrorCode.REVIEW_NOT_FOUND

    def test_locked_after_moderation(self, platform, admin, student, review):
        platform.reviews.submit_review(review.id, student.id, 5).unwrap()
        platform.reviews.moderate_review(review.id, admin.id, ReviewStatus.APPROVED).unwrap()

        result = platform.reviews.submit_review(review.id, student.id, 1)

        assert result.error == ErrorCode.INVALID_REVIEW_TRANSITION
        assert platform.reviews.get_review(review.id).rating == 5


# ── Moderation ────────────────────────────────────────────────────────────

class TestModerateReview:
    def test_approval_sets_rating_and_publishes(self, platform, admin, student, expert, review):
        platform.reviews.submit_review(review.id, student.id, 5).unwrap()

        approved = platform.reviews.moderate_review(review.id, admin.id, ReviewStatus.APPROVED).unwrap()

        assert approved.status == ReviewStatus.APPROVED
        assert approved.moderated_by == admin.id
        assert expert_rating(platform, expert) == 5.0
        assert [r.id for r in platform.reviews.list_public_reviews()] == [review.id]

    def test_rejection_keeps_it_out_of_the_rating(self, platform, admin, student, expert, review):
        platform.reviews.submit_review(review.id, student.id, 2).unwrap()

        platform.reviews.moderate_review(review.id, admin.id, ReviewStatus.REJECTED).unwrap()

        assert expert_rating(platform, expert) == 0.0
        assert platform.reviews.list_public_reviews() == []

    def test_decision_can_be_reversed(self, platform, admin, student, expert, review):
        platform.reviews.submit_review(review.id, student.id, 4).unwrap()
        platform.reviews.moderate_review(review.id, admin.id, ReviewStatus.APPROVED).unwrap()
        assert expert_rating(platform, expert) == 4.0

        platform.reviews.moderate_review(review.id, admin.id, ReviewStatus.REJECTED).unwrap()
        assert expert_rating(platform, expert) == 0.0

    def test_cannot_return_to_pending(self, platform, admin, student, review):
        platform.reviews.submit_review(review.id, student.id, 4).unwrap()
        result = platform.reviews.moderate_review(review.id, admin.id, ReviewStatus.PENDING)
        assert result.error == ErrorCode.INVALID_REVIEW_TRANSITION

    def test_admin_only(self, platform, student, review):
        platform.reviews.submit_review(review.id, student.id, 4).unwrap()
        result = platform.reviews.moderate_review(review.id, student.id, ReviewStatus.APPROVED)
        assert result.error == ErrorCode.FORBIDDEN

    def test_rating_is_mean_of_approved(self, platform, admin, student, expert, make_order, complete_order):
        for stars in (5, 4):
            order = complete_order(make_order())
            pending = platform.reviews.list_reviews(expert_id=expert.user_id, status=ReviewStatus.PENDING)
            review = next(r for r in pending if r.order_id == order.id)
            platform.reviews.submit_review(review.id, student.id, stars).unwrap()
            platform.reviews.moderate_review(review.id, admin.id, ReviewStatus.APPROVED).unwrap()

        assert expert_rating(platform, expert) == 4.5
