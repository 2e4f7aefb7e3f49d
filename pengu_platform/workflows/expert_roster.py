"""
Expert roster: vetting, availability, payout destinations and ranking.

Admins pick experts for paid orders from ``list_available_experts``, which
ranks Active, online experts by:
- Approved-review rating
- Completed orders
- Current workload (fewer open orders first)
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..errors import ErrorCode, Result
from ..models import (
    Expert,
    ExpertStatus,
    NotificationKind,
    OrderStatus,
    PayoutMethod,
    PayoutChannel,
    UserRole,
)
from ..storage import Transaction
from .base import WorkflowService

logger = logging.getLogger(__name__)

OPEN_ORDER_STATES = (OrderStatus.ASSIGNED, OrderStatus.IN_PROGRESS, OrderStatus.REVIEW)


@dataclass
class ExpertCandidate:
    """An expert offered for assignment."""
    expert_id: str
    user_id: str
    name: str
    specialty: str
    rating: float
    completed_orders: int
    open_orders: int

    def to_dict(self) -> dict:
        return {
            "expert_id": self.expert_id,
            "user_id": self.user_id,
            "name": self.name,
            "specialty": self.specialty,
            "rating": self.rating,
            "completed_orders": self.completed_orders,
            "open_orders": self.open_orders,
        }


class ExpertRosterService(WorkflowService):
    """Manages expert profiles."""

    def register_expert(
        self,
        user_id: str,
        specialty: str = "General Specialist",
        skills: Optional[list[str]] = None,
        bio: str = "",
    ) -> Result:
        """Create a Pending expert profile for an expert account."""
        with self.store.transaction() as txn:
            user = self._user(txn, user_id, UserRole.EXPERT)
            if not user:
                return user
            if txn.find("experts", user_id=user_id):
                return Result.failure(ErrorCode.INVALID_FIELD, "Expert profile already exists")

            expert = Expert(
                user_id=user_id,
                specialty=(specialty or "").strip() or "General Specialist",
                skills=[s.strip() for s in skills or [] if s.strip()],
                bio=bio,
                created_at=self.now(),
            )
            txn.put("experts", expert)
            self.notifier.notify_admins(
                txn,
                "expert_registered",
                "New expert application",
                f"{user.value.name} applied as {expert.specialty}",
                link=f"/admin/experts/{expert.id}",
                subject_id=expert.id,
            )

        logger.info("Expert profile %s registered for %s", expert.id, user_id)
        return Result.success(expert, "Expert profile created")

    def set_status(self, expert_id: str, admin_id: str, status: ExpertStatus) -> Result:
        """Approve or suspend an expert."""
        with self.store.transaction() as txn:
            admin = self._admin(txn, admin_id)
            if not admin:
                return admin
            expert = txn.get("experts", expert_id)
            if expert is None:
                return Result.failure(ErrorCode.EXPERT_NOT_FOUND, f"Expert {expert_id} not found")

            if expert.status != status:
                expert.status = status
                if status == ExpertStatus.SUSPENDED:
                    expert.online = False
                txn.put("experts", expert)
                self.notifier.notify_user(
                    txn,
                    expert.user_id,
                    "expert_status_changed",
                    "Account status updated",
                    f"Your expert account is now {status.value}",
                    kind=(
                        NotificationKind.SUCCESS if status == ExpertStatus.ACTIVE
                        else NotificationKind.WARNING
                    ),
                    subject_id=expert.id,
                )
                logger.info("Expert %s set to %s by %s", expert_id, status.value, admin_id)

        return Result.success(expert, f"Expert is {status.value}")

    def _editable_by(self, txn: Transaction, expert_id: str, actor_id: str) -> Result:
        """Load a profile the actor may change: their own, or any if admin."""
        actor = self._user(txn, actor_id)
        if not actor:
            return actor
        expert = txn.get("experts", expert_id)
        if expert is None:
            return Result.failure(ErrorCode.EXPERT_NOT_FOUND, f"Expert {expert_id} not found")
        if actor.value.role != UserRole.ADMIN and expert.user_id != actor_id:
            return Result.failure(ErrorCode.FORBIDDEN, "Only the expert or an admin can change this profile")
        return Result.success(expert)

    def set_online(self, expert_id: str, actor_id: str, online: bool) -> Result:
        with self.store.transaction() as txn:
            found = self._editable_by(txn, expert_id, actor_id)
            if not found:
                return found
            expert = found.value
            if online and expert.status != ExpertStatus.ACTIVE:
                return Result.failure(
                    ErrorCode.EXPERT_UNAVAILABLE, f"Expert is {expert.status.value}"
                )
            if expert.online != online:
                expert.online = online
                txn.put("experts", expert)
        return Result.success(expert, "Online" if online else "Offline")

    def update_profile(
        self,
        expert_id: str,
        actor_id: str,
        specialty: Optional[str] = None,
        skills: Optional[list[str]] = None,
        bio: Optional[str] = None,
    ) -> Result:
        with self.store.transaction() as txn:
            found = self._editable_by(txn, expert_id, actor_id)
            if not found:
                return found
            expert = found.value
            if specialty is not None and specialty.strip():
                expert.specialty = specialty.strip()
            if skills is not None:
                expert.skills = [s.strip() for s in skills if s.strip()]
            if bio is not None:
                expert.bio = bio
            txn.put("experts", expert)
        return Result.success(expert, "Profile updated")

    # ── Payout methods ──

    def add_payout_method(
        self,
        expert_id: str,
        actor_id: str,
        type: str,
        account_name: str,
        account_number: str,
        bank_name: Optional[str] = None,
        branch_name: Optional[str] = None,
        is_primary: bool = False,
    ) -> Result:
        """Store a bank or mobile-money account the expert can withdraw to."""
        channels = {c.value for c in PayoutChannel}
        if type not in channels:
            return Result.failure(
                ErrorCode.INVALID_PAYOUT_METHOD, f"Payout type must be one of {sorted(channels)}"
            )
        if not (account_name or "").strip() or not (account_number or "").strip():
            return Result.failure(ErrorCode.MISSING_FIELD, "Account name and number are required")
        if type == PayoutChannel.BANK.value and not (bank_name or "").strip():
            return Result.failure(ErrorCode.MISSING_FIELD, "Bank name is required for bank accounts")

        with self.store.transaction() as txn:
            found = self._editable_by(txn, expert_id, actor_id)
            if not found:
                return found
            expert = found.value

            method = PayoutMethod(
                type=type,
                account_name=account_name.strip(),
                account_number=account_number.strip(),
                bank_name=bank_name,
                branch_name=branch_name,
                is_primary=is_primary or not expert.payout_methods,
            )
            if method.is_primary:
                for existing in expert.payout_methods:
                    existing.is_primary = False
            expert.payout_methods.append(method)
            txn.put("experts", expert)

        logger.info("Payout method %s added to %s by %s", method.id, expert_id, actor_id)
        return Result.success(method, "Payout method added")

    def remove_payout_method(self, expert_id: str, actor_id: str, method_id: str) -> Result:
        with self.store.transaction() as txn:
            found = self._editable_by(txn, expert_id, actor_id)
            if not found:
                return found
            expert = found.value
            method = expert.get_payout_method(method_id)
            if method is None:
                return Result.failure(ErrorCode.INVALID_PAYOUT_METHOD, "Unknown payout method")

            expert.payout_methods.remove(method)
            if method.is_primary and expert.payout_methods:
                expert.payout_methods[0].is_primary = True
            txn.put("experts", expert)

        logger.info("Payout method %s removed from %s by %s", method_id, expert_id, actor_id)
        return Result.success(expert, "Payout method removed")

    # ── Queries ──

    def get_expert(self, expert_id: str) -> Optional[Expert]:
        """Get an expert profile by ID."""
        return self.store.get("experts", expert_id)

    def get_expert_by_user(self, user_id: str) -> Optional[Expert]:
        with self.store.transaction() as txn:
            matches = txn.find("experts", user_id=user_id)
        return matches[0] if matches else None

    def list_experts(self, status: Optional[ExpertStatus] = None) -> list[Expert]:
        experts = self.store.list("experts")
        if status:
            experts = [e for e in experts if e.status == status]
        return experts

    def list_available_experts(self, limit: int = 20) -> list[ExpertCandidate]:
        """Active, online experts, best first."""
        with self.store.transaction() as txn:
            experts = [e for e in txn.list("experts") if e.is_available]
            workload: dict[str, int] = {}
            for order in txn.list("orders"):
                if order.expert_id and order.status in OPEN_ORDER_STATES:
                    workload[order.expert_id] = workload.get(order.expert_id, 0) + 1

            candidates = []
            for expert in experts:
                user = txn.get("users", expert.user_id)
                candidates.append(ExpertCandidate(
                    expert_id=expert.id,
                    user_id=expert.user_id,
                    name=user.name if user else "",
                    specialty=expert.specialty,
                    rating=expert.rating,
                    completed_orders=expert.completed_orders,
                    open_orders=workload.get(expert.user_id, 0),
                ))

        # Highest rating, then most experience, then least busy
        candidates.sort(key=lambda c: (-c.rating, -c.completed_orders, c.open_orders))
        return candidates[:limit]
