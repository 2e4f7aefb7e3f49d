"""User account management."""

import logging
from typing import Optional

from ..errors import ErrorCode, Result
from ..models import User, UserRole
from .base import WorkflowService

logger = logging.getLogger(__name__)


class AccountService(WorkflowService):
    """Creates and looks up platform accounts."""

    def create_user(
        self,
        email: str,
        name: str,
        role: UserRole = UserRole.STUDENT,
        credits: int = 0,
    ) -> Result:
        """Register a new account. Emails are unique, case-insensitive."""
        email = (email or "").strip().lower()
        if not email or "@" not in email:
            return Result.failure(ErrorCode.INVALID_FIELD, "A valid email is required")
        if not (name or "").strip():
            return Result.failure(ErrorCode.MISSING_FIELD, "Name is required")
        if credits < 0:
            return Result.failure(ErrorCode.INVALID_AMOUNT, "Credits cannot be negative")

        with self.store.transaction() as txn:
            if txn.find("users", email=email):
                return Result.failure(ErrorCode.DUPLICATE_EMAIL, f"{email} is already registered")

            user = User(
                email=email,
                name=name.strip(),
                role=role,
                credits=credits,
                total_earned=credits,
                created_at=self.now(),
            )
            txn.put("users", user)

        logger.info("Created %s account %s", role.value, user.id)
        return Result.success(user, f"Welcome, {user.name}")

    def grant_credits(self, user_id: str, admin_id: str, credits: int) -> Result:
        """Credit a student's balance (survey rewards, referrals)."""
        if credits <= 0:
            return Result.failure(ErrorCode.INVALID_AMOUNT, "Credits must be positive")

        with self.store.transaction() as txn:
            admin = self._admin(txn, admin_id)
            if not admin:
                return admin
            found = self._user(txn, user_id, UserRole.STUDENT)
            if not found:
                return found
            user = found.value
            user.credits += credits
            user.total_earned += credits
            txn.put("users", user)

        return Result.success(user, f"Granted {credits} credits")

    def get_user(self, user_id: str) -> Optional[User]:
        """Get a user by ID."""
        return self.store.get("users", user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        email = (email or "").strip().lower()
        with self.store.transaction() as txn:
            matches = txn.find("users", email=email)
        return matches[0] if matches else None

    def list_users(self, role: Optional[UserRole] = None) -> list[User]:
        users = self.store.list("users")
        if role:
            users = [u for u in users if u.role == role]
        return users
