"""Shared helpers for model serialization."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
import uuid


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    """Short prefixed identifier, e.g. ``ORD-1A2B3C4D``."""
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def from_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string; naive values are taken as UTC."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Attachment:
    """A file held by the external object store, referenced by URL."""

    name: str = ""
    format: str = ""
    url: str = ""
    size: Optional[int] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.name and self.format and self.url)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "format": self.format,
            "url": self.url,
            "size": self.size,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Attachment":
        return cls(
            name=data.get("name", ""),
            format=data.get("format", ""),
            url=data.get("url", ""),
            size=data.get("size"),
        )
