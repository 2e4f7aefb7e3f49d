"""Orders, their milestones and reviewer annotations."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .common import Attachment, utcnow, new_id, to_iso, from_iso


class OrderStatus(Enum):
    """Order lifecycle status."""

    PAID_CONFIRMED = "PAID_CONFIRMED"  # Paid, waiting for an expert
    ASSIGNED = "ASSIGNED"              # Expert assigned, work not started
    IN_PROGRESS = "IN_PROGRESS"        # Expert working on a milestone
    REVIEW = "Review"                  # Deliverable waiting for QC
    COMPLETED = "COMPLETED"            # Every milestone approved
    DISPUTE = "DISPUTE"                # Frozen pending admin resolution


class MilestoneStatus(Enum):
    """Milestone lifecycle status."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    DELIVERED = "DELIVERED"  # Submitted, awaiting quality control
    APPROVED = "APPROVED"


@dataclass
class Milestone:
    """A deliverable checkpoint within an order."""

    id: str = field(default_factory=lambda: new_id("MS"))
    title: str = ""
    due_date: Optional[datetime] = None
    status: MilestoneStatus = MilestoneStatus.PENDING
    submissions: list[Attachment] = field(default_factory=list)
    revision_count: int = 0
    delivered_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "due_date": to_iso(self.due_date),
            "status": self.status.value,
            "submissions": [s.to_dict() for s in self.submissions],
            "revision_count": self.revision_count,
            "delivered_at": to_iso(self.delivered_at),
            "approved_at": to_iso(self.approved_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Milestone":
        milestone = cls(
            id=data.get("id", new_id("MS")),
            title=data.get("title", ""),
            status=MilestoneStatus(data.get("status", "PENDING")),
            submissions=[Attachment.from_dict(s) for s in data.get("submissions", [])],
            revision_count=data.get("revision_count", 0),
        )
        for field_name in ["due_date", "delivered_at", "approved_at"]:
            if data.get(field_name):
                setattr(milestone, field_name, from_iso(data[field_name]))
        return milestone


@dataclass
class Annotation:
    """A positioned reviewer note on a delivered file."""

    id: str = field(default_factory=lambda: new_id("ANN"))
    file_url: str = ""
    x: float = 0.0
    y: float = 0.0
    text: str = ""
    author: str = ""
    timestamp: datetime = field(default_factory=utcnow)
    resolved: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "file_url": self.file_url,
            "x": self.x,
            "y": self.y,
            "text": self.text,
            "author": self.author,
            "timestamp": to_iso(self.timestamp),
            "resolved": self.resolved,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Annotation":
        return cls(
            id=data.get("id", new_id("ANN")),
            file_url=data.get("file_url", ""),
            x=data.get("x", 0.0),
            y=data.get("y", 0.0),
            text=data.get("text", ""),
            author=data.get("author", ""),
            timestamp=from_iso(data.get("timestamp")) or utcnow(),
            resolved=data.get("resolved", False),
        )


@dataclass
class Order:
    """The contracted unit of work created from an accepted quote."""

    # Identity
    id: str = field(default_factory=lambda: new_id("ORD"))
    request_id: str = ""
    quote_id: str = ""
    student_id: str = ""
    expert_id: Optional[str] = None  # Expert's user ID

    # Content (copied from the request at conversion)
    topic: str = ""
    service_type: str = ""
    attachments: list[Attachment] = field(default_factory=list)

    # Payment
    amount: int = 0
    currency: str = "TK"
    payment_method: str = ""
    transaction_id: str = ""

    # Status
    status: OrderStatus = OrderStatus.PAID_CONFIRMED
    status_before_dispute: Optional[OrderStatus] = None
    dispute_reason: Optional[str] = None
    payout_processed: bool = False  # Completion payout runs exactly once

    # Work
    milestones: list[Milestone] = field(default_factory=list)
    annotations: list[Annotation] = field(default_factory=list)

    # Dates
    assigned_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # Bookkeeping
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def progress(self) -> int:
        """Percentage of approved milestones."""
        if not self.milestones:
            return 0
        approved = sum(1 for m in self.milestones if m.status == MilestoneStatus.APPROVED)
        return round(approved * 100 / len(self.milestones))

    @property
    def all_milestones_approved(self) -> bool:
        return bool(self.milestones) and all(
            m.status == MilestoneStatus.APPROVED for m in self.milestones
        )

    def get_milestone(self, milestone_id: str) -> Optional[Milestone]:
        return next((m for m in self.milestones if m.id == milestone_id), None)

    def next_pending_milestone(self) -> Optional[Milestone]:
        """First milestone that has not been started."""
        return next(
            (m for m in self.milestones if m.status == MilestoneStatus.PENDING), None
        )

    def get_annotation(self, annotation_id: str) -> Optional[Annotation]:
        return next((a for a in self.annotations if a.id == annotation_id), None)

    def to_dict(self) -> dict:
        """Serialize order to dictionary."""
        return {
            "id": self.id,
            "request_id": self.request_id,
            "quote_id": self.quote_id,
            "student_id": self.student_id,
            "expert_id": self.expert_id,
            "topic": self.topic,
            "service_type": self.service_type,
            "attachments": [a.to_dict() for a in self.attachments],
            "amount": self.amount,
            "currency": self.currency,
            "payment_method": self.payment_method,
            "transaction_id": self.transaction_id,
            "status": self.status.value,
            "status_before_dispute": (
                self.status_before_dispute.value if self.status_before_dispute else None
            ),
            "dispute_reason": self.dispute_reason,
            "payout_processed": self.payout_processed,
            "progress": self.progress,
            "milestones": [m.to_dict() for m in self.milestones],
            "annotations": [a.to_dict() for a in self.annotations],
            "assigned_at": to_iso(self.assigned_at),
            "completed_at": to_iso(self.completed_at),
            "version": self.version,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Order":
        """Deserialize order from dictionary."""
        order = cls(
            id=data.get("id", new_id("ORD")),
            request_id=data.get("request_id", ""),
            quote_id=data.get("quote_id", ""),
            student_id=data.get("student_id", ""),
            expert_id=data.get("expert_id"),
            topic=data.get("topic", ""),
            service_type=data.get("service_type", ""),
            attachments=[Attachment.from_dict(a) for a in data.get("attachments", [])],
            amount=data.get("amount", 0),
            currency=data.get("currency", "TK"),
            payment_method=data.get("payment_method", ""),
            transaction_id=data.get("transaction_id", ""),
            status=OrderStatus(data.get("status", "PAID_CONFIRMED")),
            status_before_dispute=(
                OrderStatus(data["status_before_dispute"])
                if data.get("status_before_dispute") else None
            ),
            dispute_reason=data.get("dispute_reason"),
            payout_processed=data.get("payout_processed", False),
            milestones=[Milestone.from_dict(m) for m in data.get("milestones", [])],
            annotations=[Annotation.from_dict(a) for a in data.get("annotations", [])],
            version=data.get("version", 0),
        )

        for field_name in ["assigned_at", "completed_at", "created_at", "updated_at"]:
            if data.get(field_name):
                setattr(order, field_name, from_iso(data[field_name]))

        return order
