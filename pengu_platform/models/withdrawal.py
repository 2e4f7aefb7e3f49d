"""Withdrawal requests from experts (earnings) and students (credits)."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .common import utcnow, new_id, to_iso, from_iso


class WithdrawalStatus(Enum):
    """Status of a withdrawal request."""

    PENDING = "PENDING"      # Requested, amount reserved
    CONFIRMED = "CONFIRMED"  # First admin check passed (expert flow only)
    PAID = "PAID"            # Money sent, balance deducted
    REJECTED = "REJECTED"    # Declined, reservation released

    @property
    def is_resolved(self) -> bool:
        return self in (WithdrawalStatus.PAID, WithdrawalStatus.REJECTED)


class WithdrawalKind(Enum):
    """Which balance the withdrawal draws from."""

    EXPERT = "expert"    # Earnings balance, two-step approval
    STUDENT = "student"  # Credits converted to cash, single-step approval


class PayoutChannel(Enum):
    """Mobile-money and bank channels money can be withdrawn to."""

    BKASH = "bKash"
    NAGAD = "Nagad"
    BANK = "Bank"
    ROCKET = "Rocket"


@dataclass
class WithdrawalRequest:
    """A request to move balance out of the platform."""

    # Identity
    id: str = field(default_factory=lambda: new_id("WD"))
    kind: WithdrawalKind = WithdrawalKind.EXPERT
    expert_id: Optional[str] = None   # Expert profile ID
    student_id: Optional[str] = None  # Student user ID

    # Amount
    amount: int = 0                      # TK
    amount_credits: Optional[int] = None  # Student credits converted

    # Destination
    method_id: Optional[str] = None      # Expert payout method ID
    method: Optional[str] = None         # Student channel
    phone_number: Optional[str] = None
    method_details: dict = field(default_factory=dict)

    # Status
    status: WithdrawalStatus = WithdrawalStatus.PENDING
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None

    # Bookkeeping
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        """Serialize withdrawal to dictionary."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "expert_id": self.expert_id,
            "student_id": self.student_id,
            "amount": self.amount,
            "amount_credits": self.amount_credits,
            "method_id": self.method_id,
            "method": self.method,
            "phone_number": self.phone_number,
            "method_details": self.method_details,
            "status": self.status.value,
            "resolved_by": self.resolved_by,
            "resolved_at": to_iso(self.resolved_at),
            "version": self.version,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WithdrawalRequest":
        """Deserialize withdrawal from dictionary."""
        withdrawal = cls(
            id=data.get("id", new_id("WD")),
            kind=WithdrawalKind(data.get("kind", "expert")),
            expert_id=data.get("expert_id"),
            student_id=data.get("student_id"),
            amount=data.get("amount", 0),
            amount_credits=data.get("amount_credits"),
            method_id=data.get("method_id"),
            method=data.get("method"),
            phone_number=data.get("phone_number"),
            method_details=data.get("method_details", {}),
            status=WithdrawalStatus(data.get("status", "PENDING")),
            resolved_by=data.get("resolved_by"),
            version=data.get("version", 0),
        )

        for field_name in ["resolved_at", "created_at", "updated_at"]:
            if data.get(field_name):
                setattr(withdrawal, field_name, from_iso(data[field_name]))

        return withdrawal
