"""Withdrawals of expert earnings and student credits.

Requesting a withdrawal reserves the amount so the same money cannot be
requested twice. Paying it deducts the balance and writes one WITHDRAWAL
ledger entry. Rejecting it releases the reservation.

Expert withdrawals need two admin steps (CONFIRMED, then PAID); student
credit withdrawals are paid or rejected directly.
"""

import logging
from typing import Optional

from ..errors import ErrorCode, Result
from ..lifecycle import WithdrawalAction, withdrawal_transition
from ..models import (
    NotificationKind,
    PayoutChannel,
    TransactionType,
    UserRole,
    WithdrawalKind,
    WithdrawalRequest,
    WithdrawalStatus,
)
from ..storage import Transaction
from .base import WorkflowService
from .ledger import LedgerService

logger = logging.getLogger(__name__)

MOBILE_CHANNELS = (PayoutChannel.BKASH, PayoutChannel.NAGAD, PayoutChannel.ROCKET)

ACTION_FOR_STATUS = {
    WithdrawalStatus.CONFIRMED: WithdrawalAction.CONFIRM,
    WithdrawalStatus.PAID: WithdrawalAction.PAY,
    WithdrawalStatus.REJECTED: WithdrawalAction.REJECT,
}


def _positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class WithdrawalService(WorkflowService):
    """Reserves, confirms and pays out withdrawals."""

    def __init__(self, store, notifier, settings=None, ledger: Optional[LedgerService] = None):
        super().__init__(store, notifier, settings)
        self.ledger = ledger or LedgerService(store, notifier, self.settings)

    # ── Expert earnings ──

    def request_expert_withdrawal(self, expert_user_id: str, amount: int, method_id: str) -> Result:
        """Reserve part of an expert's balance for payout to a stored method."""
        if not _positive_int(amount):
            return Result.failure(ErrorCode.INVALID_AMOUNT, "Amount must be a positive whole number")

        with self.store.transaction() as txn:
            user = self._user(txn, expert_user_id, UserRole.EXPERT)
            if not user:
                return user
            matches = txn.find("experts", user_id=expert_user_id)
            if not matches:
                return Result.failure(ErrorCode.EXPERT_NOT_FOUND, "No expert profile for this account")
            expert = matches[0]

            method = expert.get_payout_method(method_id)
            if method is None:
                return Result.failure(ErrorCode.INVALID_PAYOUT_METHOD, "Unknown payout method")

            if amount > expert.available_balance:
                return self._refused(
                    Result.failure(
                        ErrorCode.INSUFFICIENT_BALANCE,
                        f"Requested {amount} but only {expert.available_balance} "
                        f"{self.settings.currency} is available",
                    ),
                    "request_expert_withdrawal", expert.id,
                )

            expert.reserved_balance += amount
            withdrawal = WithdrawalRequest(
                kind=WithdrawalKind.EXPERT,
                expert_id=expert.id,
                amount=amount,
                method_id=method.id,
                method=method.type,
                method_details=method.to_dict(),
                created_at=self.now(),
            )
            txn.put("experts", expert)
            txn.put("withdrawals", withdrawal)

            self.notifier.notify_admins(
                txn,
                "withdrawal_requested",
                "Withdrawal request",
                f"{user.value.name} requested {amount} {self.settings.currency} via {method.type}",
                link="/admin/withdrawals",
                subject_id=withdrawal.id,
            )

        logger.info("Withdrawal %s: expert %s reserved %d", withdrawal.id, expert.id, amount)
        return Result.success(withdrawal, "Withdrawal requested")

    def update_withdrawal_status(
        self,
        withdrawal_id: str,
        admin_id: str,
        status: WithdrawalStatus,
    ) -> Result:
        """Move an expert withdrawal to CONFIRMED, PAID or REJECTED."""
        return self._resolve(withdrawal_id, admin_id, status, WithdrawalKind.EXPERT)

    # ── Student credits ──

    def request_student_withdrawal(
        self,
        student_id: str,
        amount_credits: int,
        method: str,
        phone_number: Optional[str] = None,
        method_details: Optional[dict] = None,
    ) -> Result:
        """Convert credits to cash, reserving them until an admin decides."""
        if not _positive_int(amount_credits):
            return Result.failure(ErrorCode.INVALID_AMOUNT, "Credits must be a positive whole number")
        minimum = self.settings.student_min_withdrawal_credits
        if amount_credits < minimum:
            return Result.failure(
                ErrorCode.BELOW_MINIMUM_WITHDRAWAL, f"Minimum withdrawal is {minimum} credits"
            )
        try:
            channel = PayoutChannel(method)
        except ValueError:
            return Result.failure(
                ErrorCode.INVALID_PAYOUT_METHOD,
                f"Method must be one of {', '.join(c.value for c in PayoutChannel)}",
            )
        details = dict(method_details or {})
        if channel in MOBILE_CHANNELS and not (phone_number or "").strip():
            return Result.failure(ErrorCode.MISSING_FIELD, f"{channel.value} needs a phone number")
        if channel == PayoutChannel.BANK and not details.get("account_number"):
            return Result.failure(ErrorCode.MISSING_FIELD, "Bank withdrawals need an account number")

        now = self.now()
        with self.store.transaction() as txn:
            found = self._user(txn, student_id, UserRole.STUDENT)
            if not found:
                return found
            student = found.value

            this_month = [
                w for w in txn.find("withdrawals", student_id=student_id)
                if w.status != WithdrawalStatus.REJECTED
                and (w.created_at.year, w.created_at.month) == (now.year, now.month)
            ]
            if len(this_month) >= self.settings.student_withdrawals_per_month:
                return Result.failure(
                    ErrorCode.WITHDRAWAL_LIMIT_REACHED, "You can only withdraw once per month"
                )

            if amount_credits > student.available_credits:
                return self._refused(
                    Result.failure(
                        ErrorCode.INSUFFICIENT_BALANCE,
                        f"Requested {amount_credits} credits but only "
                        f"{student.available_credits} are available",
                    ),
                    "request_student_withdrawal", student_id,
                )

            student.reserved_credits += amount_credits
            withdrawal = WithdrawalRequest(
                kind=WithdrawalKind.STUDENT,
                student_id=student_id,
                amount=self.settings.credits_to_taka(amount_credits),
                amount_credits=amount_credits,
                method=channel.value,
                phone_number=(phone_number or "").strip() or None,
                method_details=details,
                created_at=now,
            )
            txn.put("users", student)
            txn.put("withdrawals", withdrawal)

            self.notifier.notify_admins(
                txn,
                "withdrawal_requested",
                "Credit withdrawal request",
                f"{student.name} wants {amount_credits} credits "
                f"({withdrawal.amount} {self.settings.currency}) via {channel.value}",
                link="/admin/withdrawals",
                subject_id=withdrawal.id,
            )

        logger.info("Withdrawal %s: student %s reserved %d credits", withdrawal.id, student_id, amount_credits)
        return Result.success(withdrawal, "Withdrawal requested")

    def approve_student_withdrawal(self, withdrawal_id: str, admin_id: str) -> Result:
        return self._resolve(withdrawal_id, admin_id, WithdrawalStatus.PAID, WithdrawalKind.STUDENT)

    def reject_student_withdrawal(self, withdrawal_id: str, admin_id: str) -> Result:
        return self._resolve(withdrawal_id, admin_id, WithdrawalStatus.REJECTED, WithdrawalKind.STUDENT)

    def set_status(self, withdrawal_id: str, admin_id: str, status: WithdrawalStatus) -> Result:
        """Apply an admin decision to either kind of withdrawal."""
        withdrawal = self.get_withdrawal(withdrawal_id)
        if withdrawal is None:
            return Result.failure(ErrorCode.WITHDRAWAL_NOT_FOUND, f"Withdrawal {withdrawal_id} not found")
        return self._resolve(withdrawal_id, admin_id, status, withdrawal.kind)

    # ── Shared resolution ──

    def _resolve(
        self,
        withdrawal_id: str,
        admin_id: str,
        status: WithdrawalStatus,
        kind: WithdrawalKind,
    ) -> Result:
        action = ACTION_FOR_STATUS.get(status)

        with self.store.transaction() as txn:
            admin = self._admin(txn, admin_id)
            if not admin:
                return admin
            withdrawal = txn.get("withdrawals", withdrawal_id)
            if withdrawal is None:
                return Result.failure(ErrorCode.WITHDRAWAL_NOT_FOUND, f"Withdrawal {withdrawal_id} not found")
            if withdrawal.kind != kind:
                return Result.failure(
                    ErrorCode.WRONG_WITHDRAWAL_KIND,
                    f"{withdrawal_id} is a {withdrawal.kind.value} withdrawal",
                )
            if action is None:
                return Result.failure(
                    ErrorCode.INVALID_WITHDRAWAL_TRANSITION, f"Cannot set a withdrawal to {status.value}"
                )

            moved = withdrawal_transition(withdrawal.kind, withdrawal.status, action)
            if not moved:
                return self._refused(moved, "withdrawal", withdrawal_id)

            withdrawal.status = moved.value
            if withdrawal.status.is_resolved:
                withdrawal.resolved_by = admin_id
                withdrawal.resolved_at = self.now()
                owner = self._settle(txn, withdrawal)
            else:
                owner = self._owner_user_id(txn, withdrawal)
            txn.put("withdrawals", withdrawal)

            if owner:
                self.notifier.notify_user(
                    txn,
                    owner,
                    f"withdrawal_{withdrawal.status.value.lower()}",
                    f"Withdrawal {withdrawal.status.value.lower()}",
                    f"Your withdrawal of {withdrawal.amount} {self.settings.currency} "
                    f"is {withdrawal.status.value.lower()}",
                    kind=(
                        NotificationKind.ERROR if withdrawal.status == WithdrawalStatus.REJECTED
                        else NotificationKind.SUCCESS
                    ),
                    subject_id=withdrawal.id,
                )

        logger.info("Withdrawal %s -> %s by %s", withdrawal_id, withdrawal.status.value, admin_id)
        return Result.success(withdrawal, f"Withdrawal {withdrawal.status.value.lower()}")

    @staticmethod
    def _owner_user_id(txn: Transaction, withdrawal: WithdrawalRequest) -> Optional[str]:
        if withdrawal.kind == WithdrawalKind.STUDENT:
            return withdrawal.student_id
        expert = txn.get("experts", withdrawal.expert_id)
        return expert.user_id if expert else None

    def _settle(self, txn: Transaction, withdrawal: WithdrawalRequest) -> Optional[str]:
        """Release the reservation and, when paid, the money itself."""
        paid = withdrawal.status == WithdrawalStatus.PAID

        if withdrawal.kind == WithdrawalKind.EXPERT:
            expert = txn.get("experts", withdrawal.expert_id)
            expert.reserved_balance -= withdrawal.amount
            if paid:
                expert.balance -= withdrawal.amount
            txn.put("experts", expert)
            owner = expert.user_id
            ids = {"expert_id": expert.user_id}
        else:
            student = txn.get("users", withdrawal.student_id)
            student.reserved_credits -= withdrawal.amount_credits
            if paid:
                student.credits -= withdrawal.amount_credits
            txn.put("users", student)
            owner = student.id
            ids = {"student_id": student.id}

        if paid:
            self.ledger.record(
                txn,
                TransactionType.WITHDRAWAL,
                withdrawal.amount,
                f"{withdrawal.kind.value.title()} withdrawal via {withdrawal.method}",
                reference=withdrawal.id,
                **ids,
            )
        return owner

    # ── Queries ──

    def get_withdrawal(self, withdrawal_id: str) -> Optional[WithdrawalRequest]:
        """Get a withdrawal by ID."""
        return self.store.get("withdrawals", withdrawal_id)

    def list_withdrawals(
        self,
        expert_id: Optional[str] = None,
        student_id: Optional[str] = None,
        status: Optional[WithdrawalStatus] = None,
        kind: Optional[WithdrawalKind] = None,
    ) -> list[WithdrawalRequest]:
        """Withdrawals, newest first. ``expert_id`` is the expert profile ID."""
        withdrawals = self.store.list("withdrawals")
        if expert_id:
            withdrawals = [w for w in withdrawals if w.expert_id == expert_id]
        if student_id:
            withdrawals = [w for w in withdrawals if w.student_id == student_id]
        if status:
            withdrawals = [w for w in withdrawals if w.status == status]
        if kind:
            withdrawals = [w for w in withdrawals if w.kind == kind]
        return sorted(withdrawals, key=lambda w: w.created_at, reverse=True)
