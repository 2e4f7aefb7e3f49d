"""Append-only financial ledger entries."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .common import utcnow, new_id, to_iso, from_iso


class TransactionType(Enum):
    """Kinds of money movement recorded by the ledger."""

    INCOME = "INCOME"                # Student payment captured
    COMMISSION = "COMMISSION"        # Platform share of a completed order
    EXPERT_CREDIT = "EXPERT_CREDIT"  # Expert share of a completed order
    WITHDRAWAL = "WITHDRAWAL"        # Money paid out to an expert or student


@dataclass(frozen=True)
class FinancialTransaction:
    """One immutable ledger line.

    ``reference`` ties the entry to the event that caused it (an order or
    withdrawal ID); the ledger keeps ``(type, reference)`` unique.
    """

    type: TransactionType
    amount: int
    description: str
    reference: str
    id: str = field(default_factory=lambda: new_id("TXN"))
    status: str = "completed"
    order_id: Optional[str] = None
    expert_id: Optional[str] = None
    student_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "amount": self.amount,
            "description": self.description,
            "reference": self.reference,
            "status": self.status,
            "order_id": self.order_id,
            "expert_id": self.expert_id,
            "student_id": self.student_id,
            "created_at": to_iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FinancialTransaction":
        return cls(
            id=data.get("id", new_id("TXN")),
            type=TransactionType(data["type"]),
            amount=data.get("amount", 0),
            description=data.get("description", ""),
            reference=data.get("reference", ""),
            status=data.get("status", "completed"),
            order_id=data.get("order_id"),
            expert_id=data.get("expert_id"),
            student_id=data.get("student_id"),
            created_at=from_iso(data.get("created_at")) or utcnow(),
        )
