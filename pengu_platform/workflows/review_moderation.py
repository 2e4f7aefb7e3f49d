"""Student reviews: feedback collection, moderation and expert ratings."""

import logging
from typing import Optional

from ..errors import ErrorCode, Result
from ..lifecycle import ReviewAction, review_transition
from ..models import Review, ReviewStatus, UserRole
from ..storage import Transaction
from .base import WorkflowService

logger = logging.getLogger(__name__)

ACTION_FOR_STATUS = {
    ReviewStatus.APPROVED: ReviewAction.APPROVE,
    ReviewStatus.REJECTED: ReviewAction.REJECT,
}


class ReviewModerationService(WorkflowService):
    """Collects reviews of completed orders and moderates them.

    Reviews are created PENDING when an order completes. Only APPROVED
    reviews are public and count toward the expert's rating.
    """

    def submit_review(self, review_id: str, student_id: str, rating: int, text: str = "") -> Result:
        """Student fills in the rating (1-5) and comment."""
        if not isinstance(rating, int) or isinstance(rating, bool) or not 1 <= rating <= 5:
            return Result.failure(ErrorCode.INVALID_FIELD, "Rating must be a whole number from 1 to 5")

        with self.store.transaction() as txn:
            student = self._user(txn, student_id, UserRole.STUDENT)
            if not student:
                return student
            review = txn.get("reviews", review_id)
            if review is None:
                return Result.failure(ErrorCode.REVIEW_NOT_FOUND, f"Review {review_id} not found")
            if review.student_id != student_id:
                return Result.failure(ErrorCode.FORBIDDEN, "Only the order's student can review it")
            if review.status != ReviewStatus.PENDING:
                return self._refused(
                    Result.failure(
                        ErrorCode.INVALID_REVIEW_TRANSITION,
                        f"Review was already {review.status.value.lower()}",
                    ),
                    "submit_review", review_id,
                )

            review.rating = rating
            review.text = (text or "").strip()
            review.submitted_at = self.now()
            txn.put("reviews", review)

            self.notifier.notify_admins(
                txn,
                "review_submitted",
                "Review awaiting moderation",
                f"{rating}/5 for order {review.order_id}",
                link="/admin/reviews",
                subject_id=review.id,
            )

        logger.info("Review %s submitted (%d/5)", review_id, rating)
        return Result.success(review, "Thanks for your feedback")

    def moderate_review(self, review_id: str, admin_id: str, status: ReviewStatus) -> Result:
        """Approve or reject a submitted review; decisions can be reversed."""
        with self.store.transaction() as txn:
            admin = self._admin(txn, admin_id)
            if not admin:
                return admin
            review = txn.get("reviews", review_id)
            if review is None:
                return Result.failure(ErrorCode.REVIEW_NOT_FOUND, f"Review {review_id} not found")
            if not review.is_submitted:
                return Result.failure(
                    ErrorCode.REVIEW_NOT_SUBMITTED, "The student has not left a rating yet"
                )

            action = ACTION_FOR_STATUS.get(status)
            if action is None:
                return Result.failure(
                    ErrorCode.INVALID_REVIEW_TRANSITION, "A moderated review cannot return to PENDING"
                )
            moved = review_transition(review.status, action)
            if not moved:
                return self._refused(moved, "moderate_review", review_id)

            if review.status != moved.value:
                review.status = moved.value
                review.moderated_by = admin_id
                txn.put("reviews", review)
            self._recompute_rating(txn, review.expert_id)

        logger.info("Review %s %s by %s", review_id, review.status.value, admin_id)
        return Result.success(review, f"Review {review.status.value.lower()}")

    @staticmethod
    def _recompute_rating(txn: Transaction, expert_user_id: str) -> None:
        ratings = [
            r.rating for r in txn.find("reviews", expert_id=expert_user_id, status=ReviewStatus.APPROVED)
            if r.rating is not None
        ]
        rating = round(sum(ratings) / len(ratings), 1) if ratings else 0.0

        for expert in txn.find("experts", user_id=expert_user_id):
            if expert.rating != rating:
                expert.rating = rating
                txn.put("experts", expert)

    # ── Queries ──

    def get_review(self, review_id: str) -> Optional[Review]:
        """Get a review by ID."""
        return self.store.get("reviews", review_id)

    def list_reviews(
        self,
        status: Optional[ReviewStatus] = None,
        expert_id: Optional[str] = None,
        student_id: Optional[str] = None,
    ) -> list[Review]:
        reviews = self.store.list("reviews")
        if status:
            reviews = [r for r in reviews if r.status == status]
        if expert_id:
            reviews = [r for r in reviews if r.expert_id == expert_id]
        if student_id:
            reviews = [r for r in reviews if r.student_id == student_id]
        return sorted(reviews, key=lambda r: r.created_at, reverse=True)

    def list_public_reviews(self) -> list[Review]:
        """Approved reviews, newest first."""
        reviews = [r for r in self.store.list("reviews") if r.is_public]
        return sorted(reviews, key=lambda r: r.submitted_at or r.created_at, reverse=True)
