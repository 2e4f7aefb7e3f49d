"""Shared plumbing for workflow services."""

import logging
from datetime import datetime
from typing import Optional

from ..config import Settings
from ..errors import ErrorCode, Result
from ..models import User, UserRole
from ..notifications import NotificationDispatcher
from ..storage import JsonStore, Transaction

logger = logging.getLogger(__name__)


class WorkflowService:
    """Base class giving each workflow the store, notifier and settings."""

    def __init__(
        self,
        store: JsonStore,
        notifier: NotificationDispatcher,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.notifier = notifier
        self.settings = settings or Settings()

    def now(self) -> datetime:
        return self.store.now()

    def _user(self, txn: Transaction, user_id: str, role: Optional[UserRole] = None) -> Result:
        """Load an active user, optionally requiring a role."""
        user: Optional[User] = txn.get("users", user_id) if user_id else None
        if user is None or not user.is_active:
            return Result.failure(ErrorCode.USER_NOT_FOUND, f"User {user_id} not found")
        if role is not None and user.role != role:
            return Result.failure(
                ErrorCode.FORBIDDEN, f"Only {role.value} accounts may perform this action"
            )
        return Result.success(user)

    def _admin(self, txn: Transaction, admin_id: str) -> Result:
        return self._user(txn, admin_id, UserRole.ADMIN)

    @staticmethod
    def _refused(result: Result, operation: str, subject: str) -> Result:
        logger.warning("%s refused for %s: %s", operation, subject, result.error.value)
        return result
