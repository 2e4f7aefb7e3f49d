"""Notifications queued for users."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .common import utcnow, new_id, to_iso, from_iso


class NotificationKind(Enum):
    """Presentation hint for the toast / notification center."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Notification:
    """A message for one user, stored alongside the change that caused it."""

    id: str = field(default_factory=lambda: new_id("NTF"))
    user_id: str = ""
    event: str = ""  # e.g. "quote_created", "revision_requested"
    title: str = ""
    message: str = ""
    kind: NotificationKind = NotificationKind.INFO
    link: Optional[str] = None
    subject_id: Optional[str] = None  # Entity the event concerns
    read: bool = False

    version: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "event": self.event,
            "title": self.title,
            "message": self.message,
            "kind": self.kind.value,
            "link": self.link,
            "subject_id": self.subject_id,
            "read": self.read,
            "version": self.version,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Notification":
        notification = cls(
            id=data.get("id", new_id("NTF")),
            user_id=data.get("user_id", ""),
            event=data.get("event", ""),
            title=data.get("title", ""),
            message=data.get("message", ""),
            kind=NotificationKind(data.get("kind", "info")),
            link=data.get("link"),
            subject_id=data.get("subject_id"),
            read=data.get("read", False),
            version=data.get("version", 0),
        )
        for field_name in ["created_at", "updated_at"]:
            if data.get(field_name):
                setattr(notification, field_name, from_iso(data[field_name]))
        return notification
