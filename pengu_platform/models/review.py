"""Student reviews of completed orders."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .common import utcnow, new_id, to_iso, from_iso


class ReviewStatus(Enum):
    """Moderation status of a review."""

    PENDING = "PENDING"      # Awaiting student input or moderation
    APPROVED = "APPROVED"    # Publicly listed, counts toward rating
    REJECTED = "REJECTED"    # Hidden


@dataclass
class Review:
    """A student's rating of the expert who completed their order."""

    id: str = field(default_factory=lambda: new_id("REV"))
    order_id: str = ""
    student_id: str = ""
    expert_id: str = ""  # Expert's user ID

    rating: Optional[int] = None  # 1-5, None until the student responds
    text: str = ""

    status: ReviewStatus = ReviewStatus.PENDING
    submitted_at: Optional[datetime] = None
    moderated_by: Optional[str] = None

    # Bookkeeping
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_submitted(self) -> bool:
        return self.rating is not None

    @property
    def is_public(self) -> bool:
        return self.status == ReviewStatus.APPROVED

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "student_id": self.student_id,
            "expert_id": self.expert_id,
            "rating": self.rating,
            "text": self.text,
            "status": self.status.value,
            "submitted_at": to_iso(self.submitted_at),
            "moderated_by": self.moderated_by,
            "version": self.version,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Review":
        review = cls(
            id=data.get("id", new_id("REV")),
            order_id=data.get("order_id", ""),
            student_id=data.get("student_id", ""),
            expert_id=data.get("expert_id", ""),
            rating=data.get("rating"),
            text=data.get("text", ""),
            status=ReviewStatus(data.get("status", "PENDING")),
            moderated_by=data.get("moderated_by"),
            version=data.get("version", 0),
        )

        for field_name in ["submitted_at", "created_at", "updated_at"]:
            if data.get(field_name):
                setattr(review, field_name, from_iso(data[field_name]))

        return review
