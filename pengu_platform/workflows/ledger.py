"""Append-only financial ledger and admin reporting."""

import logging
from typing import Optional

from ..models import FinancialTransaction, TransactionType
from ..storage import Transaction
from .base import WorkflowService

logger = logging.getLogger(__name__)


class LedgerService(WorkflowService):
    """Records money movements. Entries are unique per ``(type, reference)``."""

    def record(
        self,
        txn: Transaction,
        type: TransactionType,
        amount: int,
        description: str,
        reference: str,
        order_id: Optional[str] = None,
        expert_id: Optional[str] = None,
        student_id: Optional[str] = None,
    ) -> FinancialTransaction:
        """Append an entry, or return the existing one for a replayed event."""
        for entry in txn.find("transactions", type=type, reference=reference):
            logger.info("Ledger %s for %s already recorded as %s", type.value, reference, entry.id)
            return entry

        entry = FinancialTransaction(
            type=type,
            amount=amount,
            description=description,
            reference=reference,
            order_id=order_id,
            expert_id=expert_id,
            student_id=student_id,
            created_at=self.now(),
        )
        txn.append("transactions", entry)
        logger.info("Ledger %s %d %s (%s)", type.value, amount, self.settings.currency, reference)
        return entry

    def list_transactions(
        self,
        type: Optional[TransactionType] = None,
        order_id: Optional[str] = None,
        reference: Optional[str] = None,
    ) -> list[FinancialTransaction]:
        """Ledger entries, newest first."""
        entries = self.store.list("transactions")
        if type:
            entries = [e for e in entries if e.type == type]
        if order_id:
            entries = [e for e in entries if e.order_id == order_id]
        if reference:
            entries = [e for e in entries if e.reference == reference]
        return sorted(entries, key=lambda e: e.created_at, reverse=True)

    def get_financial_summary(self) -> dict:
        """Totals per entry type plus the platform's net position."""
        totals = {t: 0 for t in TransactionType}
        for entry in self.store.list("transactions"):
            totals[entry.type] += entry.amount

        income = totals[TransactionType.INCOME]
        payouts = totals[TransactionType.WITHDRAWAL]
        return {
            "currency": self.settings.currency,
            "income": income,
            "commission": totals[TransactionType.COMMISSION],
            "expert_credits": totals[TransactionType.EXPERT_CREDIT],
            "withdrawals": payouts,
            # Money received and not yet paid out
            "platform_net": income - payouts,
        }
