"""Student requests for academic assistance, before pricing."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .common import Attachment, utcnow, new_id, to_iso, from_iso


class RequestStatus(Enum):
    """Request lifecycle status."""

    SUBMITTED = "SUBMITTED"      # Awaiting an admin quote
    QUOTED = "QUOTED"            # Quote issued, awaiting the student
    NEGOTIATION = "NEGOTIATION"  # Student replied to the quote
    ACCEPTED = "ACCEPTED"        # Quote accepted, order being created
    CONVERTED = "CONVERTED"      # Order exists
    EXPIRED = "EXPIRED"          # Quote lapsed before acceptance

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.CONVERTED, RequestStatus.EXPIRED)


@dataclass
class Request:
    """A student's ask for help on a topic."""

    # Identity
    id: str = field(default_factory=lambda: new_id("REQ"))
    student_id: str = ""

    # Content
    service_type: str = ""
    topic: str = ""
    details: str = ""
    deadline: Optional[datetime] = None
    attachments: list[Attachment] = field(default_factory=list)

    # Status
    status: RequestStatus = RequestStatus.SUBMITTED

    # Bookkeeping
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_open(self) -> bool:
        """Whether the request can still be quoted or negotiated."""
        return not self.status.is_terminal

    def to_dict(self) -> dict:
        """Serialize request to dictionary."""
        return {
            "id": self.id,
            "student_id": self.student_id,
            "service_type": self.service_type,
            "topic": self.topic,
            "details": self.details,
            "deadline": to_iso(self.deadline),
            "attachments": [a.to_dict() for a in self.attachments],
            "status": self.status.value,
            "version": self.version,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Request":
        """Deserialize request from dictionary."""
        request = cls(
            id=data.get("id", new_id("REQ")),
            student_id=data.get("student_id", ""),
            service_type=data.get("service_type", ""),
            topic=data.get("topic", ""),
            details=data.get("details", ""),
            attachments=[Attachment.from_dict(a) for a in data.get("attachments", [])],
            status=RequestStatus(data.get("status", "SUBMITTED")),
            version=data.get("version", 0),
        )

        for field_name in ["deadline", "created_at", "updated_at"]:
            if data.get(field_name):
                setattr(request, field_name, from_iso(data[field_name]))

        return request
