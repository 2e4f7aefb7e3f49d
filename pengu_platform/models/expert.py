"""Expert profiles: availability, earnings and payout destinations."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .common import utcnow, new_id, to_iso, from_iso


class ExpertStatus(Enum):
    """Vetting status of an expert."""

    PENDING = "Pending"      # Application under review
    ACTIVE = "Active"        # May receive orders
    SUSPENDED = "Suspended"  # Blocked by admin


@dataclass
class PayoutMethod:
    """A stored bank or mobile-money destination."""

    id: str = field(default_factory=lambda: new_id("PM"))
    type: str = ""  # bKash, Nagad, Rocket, Bank
    account_name: str = ""
    account_number: str = ""
    bank_name: Optional[str] = None
    branch_name: Optional[str] = None
    is_primary: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "account_name": self.account_name,
            "account_number": self.account_number,
            "bank_name": self.bank_name,
            "branch_name": self.branch_name,
            "is_primary": self.is_primary,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PayoutMethod":
        return cls(
            id=data.get("id", new_id("PM")),
            type=data.get("type", ""),
            account_name=data.get("account_name", ""),
            account_number=data.get("account_number", ""),
            bank_name=data.get("bank_name"),
            branch_name=data.get("branch_name"),
            is_primary=data.get("is_primary", False),
        )


@dataclass
class Expert:
    """Expert profile attached to a user account."""

    # Identity
    id: str = field(default_factory=lambda: new_id("EXP"))
    user_id: str = ""

    # Profile
    specialty: str = "General Specialist"
    skills: list[str] = field(default_factory=list)
    bio: str = ""

    # Availability
    status: ExpertStatus = ExpertStatus.PENDING
    online: bool = False

    # Performance
    rating: float = 0.0
    completed_orders: int = 0

    # Financials (TK)
    balance: int = 0
    reserved_balance: int = 0  # Held by open withdrawal requests
    earnings: int = 0          # Lifetime, never decreases

    payout_methods: list[PayoutMethod] = field(default_factory=list)

    # Bookkeeping
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_available(self) -> bool:
        """Whether the expert can take a new order right now."""
        return self.status == ExpertStatus.ACTIVE and self.online

    @property
    def available_balance(self) -> int:
        return self.balance - self.reserved_balance

    def get_payout_method(self, method_id: str) -> Optional[PayoutMethod]:
        return next((m for m in self.payout_methods if m.id == method_id), None)

    def to_dict(self) -> dict:
        """Serialize expert to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "specialty": self.specialty,
            "skills": self.skills,
            "bio": self.bio,
            "status": self.status.value,
            "online": self.online,
            "rating": self.rating,
            "completed_orders": self.completed_orders,
            "balance": self.balance,
            "reserved_balance": self.reserved_balance,
            "available_balance": self.available_balance,
            "earnings": self.earnings,
            "payout_methods": [m.to_dict() for m in self.payout_methods],
            "version": self.version,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Expert":
        """Deserialize expert from dictionary."""
        expert = cls(
            id=data.get("id", new_id("EXP")),
            user_id=data.get("user_id", ""),
            specialty=data.get("specialty", "General Specialist"),
            skills=data.get("skills", []),
            bio=data.get("bio", ""),
            status=ExpertStatus(data.get("status", "Pending")),
            online=data.get("online", False),
            rating=data.get("rating", 0.0),
            completed_orders=data.get("completed_orders", 0),
            balance=data.get("balance", 0),
            reserved_balance=data.get("reserved_balance", 0),
            earnings=data.get("earnings", 0),
            payout_methods=[PayoutMethod.from_dict(m) for m in data.get("payout_methods", [])],
            version=data.get("version", 0),
        )

        for field_name in ["created_at", "updated_at"]:
            if data.get(field_name):
                setattr(expert, field_name, from_iso(data[field_name]))

        return expert
