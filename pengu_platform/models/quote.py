"""Admin-issued quotes and their negotiation thread."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .common import utcnow, new_id, to_iso, from_iso


class QuoteStatus(Enum):
    """Quote lifecycle status."""

    PENDING = "PENDING"      # Open for negotiation or acceptance
    ACCEPTED = "ACCEPTED"    # Student accepted and paid
    REJECTED = "REJECTED"    # Declined or superseded by a newer quote
    EXPIRED = "EXPIRED"      # Expiry passed before acceptance


class SenderRole(Enum):
    """Who wrote a negotiation message."""

    STUDENT = "student"
    ADMIN = "admin"


@dataclass
class QuoteTerms:
    """Terms an admin proposes. The amount is always stated explicitly."""

    amount: int
    timeline: Optional[int] = None           # Days
    milestones: Optional[list[str]] = None
    revisions: Optional[int] = None
    scope_notes: Optional[str] = None
    expiry: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: dict) -> "QuoteTerms":
        return cls(
            amount=data["amount"],
            timeline=data.get("timeline"),
            milestones=data.get("milestones"),
            revisions=data.get("revisions"),
            scope_notes=data.get("scope_notes"),
            expiry=from_iso(data.get("expiry")),
        )


@dataclass
class NegotiationMessage:
    """One entry of the append-only negotiation thread."""

    id: str = field(default_factory=lambda: new_id("MSG"))
    sender_id: str = ""
    sender_role: SenderRole = SenderRole.STUDENT
    message: str = ""
    related_amount: Optional[int] = None
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sender_id": self.sender_id,
            "sender_role": self.sender_role.value,
            "message": self.message,
            "related_amount": self.related_amount,
            "timestamp": to_iso(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NegotiationMessage":
        return cls(
            id=data.get("id", new_id("MSG")),
            sender_id=data.get("sender_id", ""),
            sender_role=SenderRole(data.get("sender_role", "student")),
            message=data.get("message", ""),
            related_amount=data.get("related_amount"),
            timestamp=from_iso(data.get("timestamp")) or utcnow(),
        )


@dataclass
class Quote:
    """Price, scope and timeline proposed for a request."""

    # Identity
    id: str = field(default_factory=lambda: new_id("QUO"))
    request_id: str = ""
    issued_by: Optional[str] = None  # Admin user ID

    # Terms
    amount: int = 0
    currency: str = "TK"
    timeline: int = 0  # Days from acceptance to final delivery
    milestones: list[str] = field(default_factory=list)
    revisions: int = 0
    scope_notes: str = ""
    expiry: Optional[datetime] = None

    # Status
    status: QuoteStatus = QuoteStatus.PENDING
    superseded_by: Optional[str] = None
    accepted_at: Optional[datetime] = None

    # Negotiation
    negotiation_history: list[NegotiationMessage] = field(default_factory=list)

    # Bookkeeping
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_pending(self) -> bool:
        return self.status == QuoteStatus.PENDING

    def is_expired(self, now: datetime) -> bool:
        """Check if the quote's expiry has passed."""
        if self.expiry is None:
            return False
        return now > self.expiry

    def apply_terms(self, terms: QuoteTerms) -> None:
        """Replace the quoted terms; fields left as None keep their value."""
        self.amount = terms.amount
        if terms.timeline is not None:
            self.timeline = terms.timeline
        if terms.milestones is not None:
            self.milestones = list(terms.milestones)
        if terms.revisions is not None:
            self.revisions = terms.revisions
        if terms.scope_notes is not None:
            self.scope_notes = terms.scope_notes
        if terms.expiry is not None:
            self.expiry = terms.expiry

    def append_message(self, message: NegotiationMessage) -> None:
        """Append to the thread, keeping timestamps non-decreasing."""
        if self.negotiation_history:
            last = self.negotiation_history[-1].timestamp
            if message.timestamp < last:
                message.timestamp = last
        self.negotiation_history.append(message)

    def to_dict(self) -> dict:
        """Serialize quote to dictionary."""
        return {
            "id": self.id,
            "request_id": self.request_id,
            "issued_by": self.issued_by,
            "amount": self.amount,
            "currency": self.currency,
            "timeline": self.timeline,
            "milestones": self.milestones,
            "revisions": self.revisions,
            "scope_notes": self.scope_notes,
            "expiry": to_iso(self.expiry),
            "status": self.status.value,
            "superseded_by": self.superseded_by,
            "accepted_at": to_iso(self.accepted_at),
            "negotiation_history": [m.to_dict() for m in self.negotiation_history],
            "version": self.version,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Quote":
        """Deserialize quote from dictionary."""
        quote = cls(
            id=data.get("id", new_id("QUO")),
            request_id=data.get("request_id", ""),
            issued_by=data.get("issued_by"),
            amount=data.get("amount", 0),
            currency=data.get("currency", "TK"),
            timeline=data.get("timeline", 0),
            milestones=data.get("milestones", []),
            revisions=data.get("revisions", 0),
            scope_notes=data.get("scope_notes", ""),
            status=QuoteStatus(data.get("status", "PENDING")),
            superseded_by=data.get("superseded_by"),
            negotiation_history=[
                NegotiationMessage.from_dict(m) for m in data.get("negotiation_history", [])
            ],
            version=data.get("version", 0),
        )

        for field_name in ["expiry", "accepted_at", "created_at", "updated_at"]:
            if data.get(field_name):
                setattr(quote, field_name, from_iso(data[field_name]))

        return quote


@dataclass
class PaymentProof:
    """Evidence of the student's payment submitted with an acceptance."""

    method: str = ""          # bKash, Nagad, Bank, ...
    transaction_id: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.method.strip() and self.transaction_id.strip())

    @classmethod
    def from_dict(cls, data: dict) -> "PaymentProof":
        return cls(
            method=data.get("method", "") or "",
            transaction_id=data.get("transaction_id", "") or "",
        )
