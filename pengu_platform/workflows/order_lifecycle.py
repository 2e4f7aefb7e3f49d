"""Order assignment, milestone delivery, quality control and completion."""

import logging
from datetime import timedelta
from typing import Optional, Union

from ..errors import ErrorCode, Result
from ..lifecycle import (
    MilestoneAction,
    OrderAction,
    milestone_transition,
    order_transition,
    resume_from_dispute,
)
from ..models import (
    Annotation,
    Attachment,
    NotificationKind,
    Order,
    OrderStatus,
    Review,
    TransactionType,
    UserRole,
)
from ..storage import Transaction
from .base import WorkflowService
from .ledger import LedgerService

logger = logging.getLogger(__name__)


class OrderLifecycleService(WorkflowService):
    """Drives an order from payment to completion."""

    def __init__(self, store, notifier, settings=None, ledger: Optional[LedgerService] = None):
        super().__init__(store, notifier, settings)
        self.ledger = ledger or LedgerService(store, notifier, self.settings)

    def _order(self, txn: Transaction, order_id: str) -> Result:
        order = txn.get("orders", order_id)
        if order is None:
            return Result.failure(ErrorCode.ORDER_NOT_FOUND, f"Order {order_id} not found")
        return Result.success(order)

    @staticmethod
    def _require_assigned_expert(order: Order, expert_user_id: str) -> Optional[Result]:
        if not order.expert_id or order.expert_id != expert_user_id:
            return Result.failure(ErrorCode.FORBIDDEN, "Only the assigned expert can do this")
        return None

    # ── Assignment ──

    def assign_expert(
        self,
        order_id: str,
        admin_id: str,
        expert_id: str,
        expected_version: Optional[int] = None,
        reassign: bool = False,
    ) -> Result:
        """Assign (or reassign) an expert to a paid order.

        ``expected_version`` is the order version the admin last saw; when it
        is stale another admin already changed the order and this call loses.
        Without a version, an order that already has an expert is only
        reassigned when ``reassign`` is set, so of several concurrent first
        assignments exactly one wins.
        """
        with self.store.transaction() as txn:
            admin = self._admin(txn, admin_id)
            if not admin:
                return admin
            found = self._order(txn, order_id)
            if not found:
                return found
            order = found.value

            if expected_version is not None and order.version != expected_version:
                return self._refused(
                    Result.failure(
                        ErrorCode.ORDER_ALREADY_ASSIGNED,
                        f"Order changed since version {expected_version} (now {order.version})",
                    ),
                    "assign_expert", order_id,
                )

            moved = order_transition(order.status, OrderAction.ASSIGN)
            if not moved:
                return self._refused(moved, "assign_expert", order_id)
            if order.expert_id and expected_version is None and not reassign:
                return self._refused(
                    Result.failure(ErrorCode.ORDER_ALREADY_ASSIGNED, "Order already has an expert"),
                    "assign_expert", order_id,
                )

            expert = txn.get("experts", expert_id)
            if expert is None:
                return Result.failure(ErrorCode.EXPERT_NOT_FOUND, f"Expert {expert_id} not found")
            if not expert.is_available:
                return self._refused(
                    Result.failure(
                        ErrorCode.EXPERT_UNAVAILABLE,
                        f"Expert is {expert.status.value} and {'online' if expert.online else 'offline'}",
                    ),
                    "assign_expert", order_id,
                )

            previous_expert = order.expert_id
            order.status = moved.value
            order.expert_id = expert.user_id
            order.assigned_at = self.now()
            txn.put("orders", order)

            self.notifier.notify_user(
                txn,
                expert.user_id,
                "order_assigned",
                "New order assigned",
                f"You have been assigned to \"{order.topic}\"",
                kind=NotificationKind.SUCCESS,
                link=f"/expert/orders/{order.id}",
                subject_id=order.id,
            )
            self.notifier.notify_user(
                txn,
                order.student_id,
                "expert_assigned",
                "Expert assigned",
                f"An expert is now working on \"{order.topic}\"",
                link=f"/orders/{order.id}",
                subject_id=order.id,
            )

        if previous_expert and previous_expert != order.expert_id:
            logger.info("Order %s reassigned from %s to %s", order_id, previous_expert, order.expert_id)
        else:
            logger.info("Order %s assigned to %s", order_id, order.expert_id)
        return Result.success(order, "Expert assigned")

    def start_order(self, order_id: str, expert_user_id: str) -> Result:
        """Expert begins work; the first milestone becomes IN_PROGRESS."""
        with self.store.transaction() as txn:
            found = self._order(txn, order_id)
            if not found:
                return found
            order = found.value
            denied = self._require_assigned_expert(order, expert_user_id)
            if denied is not None:
                return denied

            moved = order_transition(order.status, OrderAction.START)
            if not moved:
                return self._refused(moved, "start_order", order_id)

            order.status = moved.value
            first = order.next_pending_milestone()
            if first is not None:
                first.status = milestone_transition(first.status, MilestoneAction.START).value
            txn.put("orders", order)

            self.notifier.notify_user(
                txn,
                order.student_id,
                "order_started",
                "Work started",
                f"Your expert started working on \"{order.topic}\"",
                link=f"/orders/{order.id}",
                subject_id=order.id,
            )

        logger.info("Order %s started", order_id)
        return Result.success(order, "Order started")

    # ── Delivery and quality control ──

    def submit_milestone(
        self,
        order_id: str,
        milestone_id: str,
        expert_user_id: str,
        files: list[Union[Attachment, dict]],
    ) -> Result:
        """Deliver a milestone for quality control."""
        submissions = [f if isinstance(f, Attachment) else Attachment.from_dict(f) for f in files or []]
        if not submissions:
            return Result.failure(ErrorCode.MISSING_FIELD, "At least one file is required")
        if not all(f.is_complete for f in submissions):
            return Result.failure(ErrorCode.INVALID_ATTACHMENT, "Files need a name, format and url")

        with self.store.transaction() as txn:
            found = self._order(txn, order_id)
            if not found:
                return found
            order = found.value
            denied = self._require_assigned_expert(order, expert_user_id)
            if denied is not None:
                return denied

            milestone = order.get_milestone(milestone_id)
            if milestone is None:
                return Result.failure(ErrorCode.MILESTONE_NOT_FOUND, f"Milestone {milestone_id} not found")

            delivered = milestone_transition(milestone.status, MilestoneAction.DELIVER)
            if not delivered:
                return self._refused(delivered, "submit_milestone", milestone_id)
            moved = order_transition(order.status, OrderAction.SUBMIT)
            if not moved:
                return self._refused(moved, "submit_milestone", order_id)

            milestone.status = delivered.value
            milestone.submissions.extend(submissions)
            milestone.delivered_at = self.now()
            order.status = moved.value
            txn.put("orders", order)

            self.notifier.notify_admins(
                txn,
                "milestone_submitted",
                "Deliverable ready for QC",
                f"\"{milestone.title}\" was submitted for order {order.id}",
                link=f"/admin/orders/{order.id}",
                subject_id=order.id,
            )

        logger.info("Milestone %s of %s delivered", milestone_id, order_id)
        return Result.success(order, "Milestone submitted")

    def review_deliverable(
        self,
        order_id: str,
        milestone_id: str,
        admin_id: str,
        approved: bool,
        feedback: str = "",
    ) -> Result:
        """Quality-control decision on a delivered milestone.

        Approval of the last milestone completes the order in the same
        transaction. Rejection sends the milestone back to IN_PROGRESS and
        leaves the order status untouched.
        """
        with self.store.transaction() as txn:
            admin = self._admin(txn, admin_id)
            if not admin:
                return admin
            found = self._order(txn, order_id)
            if not found:
                return found
            order = found.value

            milestone = order.get_milestone(milestone_id)
            if milestone is None:
                return Result.failure(ErrorCode.MILESTONE_NOT_FOUND, f"Milestone {milestone_id} not found")
            if order.status != OrderStatus.REVIEW:
                return self._refused(
                    Result.failure(
                        ErrorCode.INVALID_ORDER_TRANSITION,
                        f"Order is {order.status.value}, not waiting for review",
                    ),
                    "review_deliverable", order_id,
                )

            action = MilestoneAction.APPROVE if approved else MilestoneAction.REJECT
            decided = milestone_transition(milestone.status, action)
            if not decided:
                return self._refused(decided, "review_deliverable", milestone_id)
            milestone.status = decided.value

            if not approved:
                return self._request_revision(txn, order, milestone, feedback)

            milestone.approved_at = self.now()
            if order.all_milestones_approved:
                order.status = order_transition(order.status, OrderAction.COMPLETE).value
                order.completed_at = self.now()
                self._complete(txn, order)
                message = "Order completed"
            else:
                order.status = order_transition(order.status, OrderAction.CONTINUE).value
                following = order.next_pending_milestone()
                if following is not None:
                    following.status = milestone_transition(following.status, MilestoneAction.START).value
                message = "Milestone approved"
                self.notifier.notify_user(
                    txn,
                    order.student_id,
                    "milestone_approved",
                    "Milestone delivered",
                    f"\"{milestone.title}\" passed quality control",
                    kind=NotificationKind.SUCCESS,
                    link=f"/orders/{order.id}",
                    subject_id=order.id,
                )
            txn.put("orders", order)

        logger.info("Milestone %s of %s approved (order %s)", milestone_id, order_id, order.status.value)
        return Result.success(order, message)

    def _request_revision(self, txn: Transaction, order: Order, milestone, feedback: str) -> Result:
        milestone.revision_count += 1
        grace = self.settings.revision_grace_days
        if grace > 0:
            extended = self.now() + timedelta(days=grace)
            if milestone.due_date is None or milestone.due_date < extended:
                milestone.due_date = extended
        txn.put("orders", order)

        self.notifier.notify_user(
            txn,
            order.expert_id,
            "revision_requested",
            "Revision requested",
            feedback.strip() or f"\"{milestone.title}\" needs changes before delivery",
            kind=NotificationKind.WARNING,
            link=f"/expert/orders/{order.id}",
            subject_id=milestone.id,
        )
        logger.info(
            "Milestone %s of %s sent back for revision #%d",
            milestone.id, order.id, milestone.revision_count,
        )
        return Result.success(order, "Revision requested")

    def _complete(self, txn: Transaction, order: Order) -> None:
        """Pay out a completed order. Runs once per order."""
        if order.payout_processed:
            logger.warning("Payout for %s already processed", order.id)
            return

        commission = self.settings.commission_for(order.amount)
        share = order.amount - commission

        matches = txn.find("experts", user_id=order.expert_id)
        if matches:
            expert = matches[0]
            expert.balance += share
            expert.earnings += share
            expert.completed_orders += 1
            txn.put("experts", expert)
        else:
            logger.error("Order %s completed without an expert profile for %s", order.id, order.expert_id)

        self.ledger.record(
            txn,
            TransactionType.EXPERT_CREDIT,
            share,
            f"Expert share for order {order.id}",
            reference=order.id,
            order_id=order.id,
            expert_id=order.expert_id,
        )
        self.ledger.record(
            txn,
            TransactionType.COMMISSION,
            commission,
            f"Platform commission ({self.settings.commission_rate_percent}%) for order {order.id}",
            reference=order.id,
            order_id=order.id,
        )

        if not txn.find("reviews", order_id=order.id):
            review = Review(
                order_id=order.id,
                student_id=order.student_id,
                expert_id=order.expert_id,
                created_at=self.now(),
            )
            txn.put("reviews", review)

        order.payout_processed = True

        self.notifier.notify_user(
            txn,
            order.student_id,
            "order_completed",
            "Order completed",
            f"\"{order.topic}\" is complete. Tell us how it went!",
            kind=NotificationKind.SUCCESS,
            link=f"/orders/{order.id}",
            subject_id=order.id,
        )
        self.notifier.notify_user(
            txn,
            order.expert_id,
            "payout_credited",
            "Earnings credited",
            f"{share} {order.currency} was added to your balance",
            kind=NotificationKind.SUCCESS,
            link="/expert/earnings",
            subject_id=order.id,
        )
        logger.info("Order %s paid out: expert %d, commission %d", order.id, share, commission)

    # ── Disputes ──

    def open_dispute(self, order_id: str, actor_id: str, reason: str) -> Result:
        """Freeze an active order until an admin resolves it."""
        if not (reason or "").strip():
            return Result.failure(ErrorCode.MISSING_FIELD, "A reason is required")

        with self.store.transaction() as txn:
            found = self._user(txn, actor_id)
            if not found:
                return found
            actor = found.value
            found = self._order(txn, order_id)
            if not found:
                return found
            order = found.value

            if actor.role != UserRole.ADMIN and actor.id not in (order.student_id, order.expert_id):
                return Result.failure(ErrorCode.FORBIDDEN, "Not a party to this order")

            moved = order_transition(order.status, OrderAction.DISPUTE)
            if not moved:
                return self._refused(moved, "open_dispute", order_id)

            order.status_before_dispute = order.status
            order.status = moved.value
            order.dispute_reason = reason.strip()
            txn.put("orders", order)

            self.notifier.notify_admins(
                txn,
                "order_disputed",
                "Order disputed",
                f"Order {order.id}: {order.dispute_reason}",
                kind=NotificationKind.ERROR,
                link=f"/admin/orders/{order.id}",
                subject_id=order.id,
            )
            for party in (order.student_id, order.expert_id):
                if party and party != actor.id:
                    self.notifier.notify_user(
                        txn,
                        party,
                        "order_disputed",
                        "Order disputed",
                        f"\"{order.topic}\" is on hold: {order.dispute_reason}",
                        kind=NotificationKind.WARNING,
                        subject_id=order.id,
                    )

        logger.warning("Order %s disputed by %s", order_id, actor_id)
        return Result.success(order, "Dispute opened")

    def resolve_dispute(self, order_id: str, admin_id: str, resolution: str = "") -> Result:
        """Return a disputed order to where it was."""
        with self.store.transaction() as txn:
            admin = self._admin(txn, admin_id)
            if not admin:
                return admin
            found = self._order(txn, order_id)
            if not found:
                return found
            order = found.value

            resumed = resume_from_dispute(order.status, order.status_before_dispute)
            if not resumed:
                return self._refused(resumed, "resolve_dispute", order_id)

            order.status = resumed.value
            order.status_before_dispute = None
            order.dispute_reason = None
            txn.put("orders", order)

            for party in (order.student_id, order.expert_id):
                if party:
                    self.notifier.notify_user(
                        txn,
                        party,
                        "dispute_resolved",
                        "Dispute resolved",
                        resolution.strip() or f"\"{order.topic}\" is active again",
                        kind=NotificationKind.SUCCESS,
                        subject_id=order.id,
                    )

        logger.info("Dispute on %s resolved, back to %s", order_id, order.status.value)
        return Result.success(order, "Dispute resolved")

    # ── Annotations ──

    def add_annotation(
        self,
        order_id: str,
        author_id: str,
        file_url: str,
        x: float,
        y: float,
        text: str,
    ) -> Result:
        """Pin a reviewer note to a point on a delivered file (x, y in percent)."""
        if not (text or "").strip():
            return Result.failure(ErrorCode.MISSING_FIELD, "Annotation text is required")
        for value in (x, y):
            if not isinstance(value, (int, float)) or isinstance(value, bool) or not 0 <= value <= 100:
                return Result.failure(ErrorCode.INVALID_FIELD, "Coordinates must be between 0 and 100")

        with self.store.transaction() as txn:
            found = self._user(txn, author_id)
            if not found:
                return found
            author = found.value
            found = self._order(txn, order_id)
            if not found:
                return found
            order = found.value

            if author.role != UserRole.ADMIN and author.id != order.student_id:
                return Result.failure(ErrorCode.FORBIDDEN, "Only reviewers can annotate deliverables")
            delivered = {s.url for m in order.milestones for s in m.submissions}
            if file_url not in delivered:
                return Result.failure(ErrorCode.INVALID_ATTACHMENT, "Annotations must target a delivered file")

            annotation = Annotation(
                file_url=file_url,
                x=float(x),
                y=float(y),
                text=text.strip(),
                author=author.name,
                timestamp=self.now(),
            )
            order.annotations.append(annotation)
            txn.put("orders", order)

            if order.expert_id:
                self.notifier.notify_user(
                    txn,
                    order.expert_id,
                    "annotation_added",
                    "New revision point",
                    annotation.text,
                    link=f"/expert/orders/{order.id}",
                    subject_id=annotation.id,
                )

        return Result.success(annotation, "Annotation added")

    def resolve_annotation(self, order_id: str, annotation_id: str, actor_id: str) -> Result:
        with self.store.transaction() as txn:
            found = self._user(txn, actor_id)
            if not found:
                return found
            actor = found.value
            found = self._order(txn, order_id)
            if not found:
                return found
            order = found.value

            if actor.role != UserRole.ADMIN and actor.id != order.expert_id:
                return Result.failure(ErrorCode.FORBIDDEN, "Only the assigned expert can resolve notes")
            annotation = order.get_annotation(annotation_id)
            if annotation is None:
                return Result.failure(ErrorCode.ANNOTATION_NOT_FOUND, f"Annotation {annotation_id} not found")

            if not annotation.resolved:
                annotation.resolved = True
                txn.put("orders", order)

        return Result.success(annotation, "Annotation resolved")

    # ── Queries ──

    def get_order(self, order_id: str) -> Optional[Order]:
        """Get an order by ID."""
        return self.store.get("orders", order_id)

    def list_orders(
        self,
        student_id: Optional[str] = None,
        expert_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
    ) -> list[Order]:
        """Orders, newest first. ``expert_id`` is the expert's user ID."""
        orders = self.store.list("orders")
        if student_id:
            orders = [o for o in orders if o.student_id == student_id]
        if expert_id:
            orders = [o for o in orders if o.expert_id == expert_id]
        if status:
            orders = [o for o in orders if o.status == status]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    def get_order_statistics(self) -> dict:
        """Get statistics about orders on the platform."""
        orders = self.store.list("orders")

        by_status = {s.value: 0 for s in OrderStatus}
        for order in orders:
            by_status[order.status.value] += 1

        completed = [o for o in orders if o.status == OrderStatus.COMPLETED]
        return {
            "total_orders": len(orders),
            "by_status": by_status,
            "unassigned": by_status[OrderStatus.PAID_CONFIRMED.value],
            "active": sum(
                by_status[s.value]
                for s in (OrderStatus.ASSIGNED, OrderStatus.IN_PROGRESS, OrderStatus.REVIEW)
            ),
            "gross_volume": sum(o.amount for o in orders),
            "completed_volume": sum(o.amount for o in completed),
            "total_revisions": sum(m.revision_count for o in orders for m in o.milestones),
        }
