"""User accounts for students, experts and admin staff."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import uuid

from .common import utcnow, to_iso, from_iso


class UserRole(Enum):
    """Platform role of an account."""

    STUDENT = "student"
    EXPERT = "expert"
    ADMIN = "admin"


@dataclass
class User:
    """A platform account."""

    # Identity
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    email: str = ""
    name: str = ""
    role: UserRole = UserRole.STUDENT

    # Student credits (earned through surveys and referrals)
    credits: int = 0
    reserved_credits: int = 0  # Held by pending withdrawals
    total_earned: int = 0

    # Platform Status
    is_active: bool = True

    # Bookkeeping
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def available_credits(self) -> int:
        """Credits not held by pending withdrawals."""
        return self.credits - self.reserved_credits

    def to_dict(self) -> dict:
        """Serialize user to dictionary."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value,
            "credits": self.credits,
            "reserved_credits": self.reserved_credits,
            "total_earned": self.total_earned,
            "is_active": self.is_active,
            "version": self.version,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        """Deserialize user from dictionary."""
        user = cls(
            id=data.get("id", str(uuid.uuid4())),
            email=data.get("email", ""),
            name=data.get("name", ""),
            role=UserRole(data.get("role", "student")),
            credits=data.get("credits", 0),
            reserved_credits=data.get("reserved_credits", 0),
            total_earned=data.get("total_earned", 0),
            is_active=data.get("is_active", True),
            version=data.get("version", 0),
        )

        for field_name in ["created_at", "updated_at"]:
            if data.get(field_name):
                setattr(user, field_name, from_iso(data[field_name]))

        return user
