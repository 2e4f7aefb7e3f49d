"""Structured error codes and the Result type returned by workflow operations."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorCategory(Enum):
    """Broad failure classes the presentation layer reacts to."""

    VALIDATION = "validation"                        # Fix input and retry
    STATE_CONFLICT = "state_conflict"                # Re-read state first
    NOT_FOUND = "not_found"                          # Unknown id
    RESOURCE_UNAVAILABLE = "resource_unavailable"    # Expert offline, no funds
    PERMISSION_DENIED = "permission_denied"          # Wrong actor for the operation

    @property
    def http_status(self) -> int:
        """HTTP status code used by the API for this category."""
        statuses = {
            ErrorCategory.VALIDATION: 400,
            ErrorCategory.STATE_CONFLICT: 409,
            ErrorCategory.NOT_FOUND: 404,
            ErrorCategory.RESOURCE_UNAVAILABLE: 422,
            ErrorCategory.PERMISSION_DENIED: 403,
        }
        return statuses[self]


class ErrorCode(Enum):
    """Machine-readable failure codes."""

    # Validation
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"
    DEADLINE_IN_PAST = "DEADLINE_IN_PAST"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_ATTACHMENT = "INVALID_ATTACHMENT"
    INVALID_PAYOUT_METHOD = "INVALID_PAYOUT_METHOD"
    BELOW_MINIMUM_WITHDRAWAL = "BELOW_MINIMUM_WITHDRAWAL"
    WITHDRAWAL_LIMIT_REACHED = "WITHDRAWAL_LIMIT_REACHED"
    WRONG_WITHDRAWAL_KIND = "WRONG_WITHDRAWAL_KIND"
    REVIEW_NOT_SUBMITTED = "REVIEW_NOT_SUBMITTED"
    DUPLICATE_EMAIL = "DUPLICATE_EMAIL"

    # State conflicts
    INVALID_REQUEST_STATE = "INVALID_REQUEST_STATE"
    QUOTE_NOT_PENDING = "QUOTE_NOT_PENDING"
    QUOTE_EXPIRED = "QUOTE_EXPIRED"
    INVALID_ORDER_TRANSITION = "INVALID_ORDER_TRANSITION"
    ORDER_ALREADY_ASSIGNED = "ORDER_ALREADY_ASSIGNED"
    MILESTONE_NOT_DELIVERABLE = "MILESTONE_NOT_DELIVERABLE"
    ALREADY_RESOLVED = "ALREADY_RESOLVED"
    CONFIRMATION_REQUIRED = "CONFIRMATION_REQUIRED"
    INVALID_WITHDRAWAL_TRANSITION = "INVALID_WITHDRAWAL_TRANSITION"
    INVALID_REVIEW_TRANSITION = "INVALID_REVIEW_TRANSITION"

    # Not found
    USER_NOT_FOUND = "USER_NOT_FOUND"
    REQUEST_NOT_FOUND = "REQUEST_NOT_FOUND"
    QUOTE_NOT_FOUND = "QUOTE_NOT_FOUND"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    MILESTONE_NOT_FOUND = "MILESTONE_NOT_FOUND"
    ANNOTATION_NOT_FOUND = "ANNOTATION_NOT_FOUND"
    EXPERT_NOT_FOUND = "EXPERT_NOT_FOUND"
    WITHDRAWAL_NOT_FOUND = "WITHDRAWAL_NOT_FOUND"
    REVIEW_NOT_FOUND = "REVIEW_NOT_FOUND"

    # Resource availability
    EXPERT_UNAVAILABLE = "EXPERT_UNAVAILABLE"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"

    # Permissions
    FORBIDDEN = "FORBIDDEN"

    @property
    def category(self) -> ErrorCategory:
        """Category this code belongs to."""
        if self.name.endswith("_NOT_FOUND"):
            return ErrorCategory.NOT_FOUND
        categories = {
            ErrorCode.MISSING_FIELD: ErrorCategory.VALIDATION,
            ErrorCode.INVALID_FIELD: ErrorCategory.VALIDATION,
            ErrorCode.DEADLINE_IN_PAST: ErrorCategory.VALIDATION,
            ErrorCode.INVALID_AMOUNT: ErrorCategory.VALIDATION,
            ErrorCode.INVALID_ATTACHMENT: ErrorCategory.VALIDATION,
            ErrorCode.INVALID_PAYOUT_METHOD: ErrorCategory.VALIDATION,
            ErrorCode.BELOW_MINIMUM_WITHDRAWAL: ErrorCategory.VALIDATION,
            ErrorCode.WITHDRAWAL_LIMIT_REACHED: ErrorCategory.VALIDATION,
            ErrorCode.WRONG_WITHDRAWAL_KIND: ErrorCategory.VALIDATION,
            ErrorCode.REVIEW_NOT_SUBMITTED: ErrorCategory.VALIDATION,
            ErrorCode.DUPLICATE_EMAIL: ErrorCategory.VALIDATION,
            ErrorCode.EXPERT_UNAVAILABLE: ErrorCategory.RESOURCE_UNAVAILABLE,
            ErrorCode.INSUFFICIENT_BALANCE: ErrorCategory.RESOURCE_UNAVAILABLE,
            ErrorCode.FORBIDDEN: ErrorCategory.PERMISSION_DENIED,
        }
        return categories.get(self, ErrorCategory.STATE_CONFLICT)


class LifecycleError(Exception):
    """Base class for engine failures raised by ``Result.unwrap``."""

    category = ErrorCategory.STATE_CONFLICT

    def __init__(self, code: ErrorCode, message: str = ""):
        super().__init__(message or code.value)
        self.code = code
        self.message = message or code.value

    def to_dict(self) -> dict:
        return {
            "error": self.code.value,
            "category": self.code.category.value,
            "message": self.message,
        }


class ValidationError(LifecycleError):
    category = ErrorCategory.VALIDATION


class StateConflictError(LifecycleError):
    category = ErrorCategory.STATE_CONFLICT


class NotFoundError(LifecycleError):
    category = ErrorCategory.NOT_FOUND


class ResourceUnavailableError(LifecycleError):
    category = ErrorCategory.RESOURCE_UNAVAILABLE


class PermissionDeniedError(LifecycleError):
    category = ErrorCategory.PERMISSION_DENIED


EXCEPTION_TYPES = {
    ErrorCategory.VALIDATION: ValidationError,
    ErrorCategory.STATE_CONFLICT: StateConflictError,
    ErrorCategory.NOT_FOUND: NotFoundError,
    ErrorCategory.RESOURCE_UNAVAILABLE: ResourceUnavailableError,
    ErrorCategory.PERMISSION_DENIED: PermissionDeniedError,
}


@dataclass
class Result:
    """Outcome of a transition or workflow operation.

    Successful results carry ``value`` (the new state for pure transitions,
    the affected entity for workflow operations); failures carry an
    ``ErrorCode`` and a human-readable message.
    """

    ok: bool
    value: Any = None
    error: Optional[ErrorCode] = None
    message: str = ""

    @classmethod
    def success(cls, value: Any = None, message: str = "") -> "Result":
        return cls(ok=True, value=value, message=message)

    @classmethod
    def failure(cls, error: ErrorCode, message: str = "") -> "Result":
        return cls(ok=False, error=error, message=message or error.value)

    @property
    def category(self) -> Optional[ErrorCategory]:
        return self.error.category if self.error else None

    def unwrap(self) -> Any:
        """Return the value, or raise the exception matching the error category."""
        if self.ok:
            return self.value
        raise EXCEPTION_TYPES[self.error.category](self.error, self.message)

    def to_dict(self) -> dict:
        if self.ok:
            return {"success": True, "message": self.message}
        return {
            "success": False,
            "error": self.error.value,
            "category": self.error.category.value,
            "message": self.message,
        }

    def __bool__(self) -> bool:
        return self.ok
