"""Notification outbox and fire-and-forget delivery."""

import logging
from typing import Callable, Optional

from .models import Notification, NotificationKind, UserRole
from .storage import JsonStore, Transaction

logger = logging.getLogger(__name__)

Subscriber = Callable[[Notification], None]


class NotificationDispatcher:
    """Stores notifications with the change that caused them.

    Each notification is written in the caller's transaction, so it exists
    if and only if the state change committed. Subscribers (push, email,
    websockets) are called after commit; their failures are logged and never
    undo the change.
    """

    def __init__(self, store: JsonStore):
        self.store = store
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def notify_user(
        self,
        txn: Transaction,
        user_id: str,
        event: str,
        title: str,
        message: str,
        kind: NotificationKind = NotificationKind.INFO,
        link: Optional[str] = None,
        subject_id: Optional[str] = None,
    ) -> Notification:
        """Queue a notification for one user."""
        notification = Notification(
            user_id=user_id,
            event=event,
            title=title,
            message=message,
            kind=kind,
            link=link,
            subject_id=subject_id,
            created_at=self.store.now(),
        )
        txn.put("notifications", notification)
        txn.after_commit(lambda: self._deliver(notification))
        return notification

    def notify_admins(self, txn: Transaction, event: str, title: str, message: str, **kwargs) -> list[Notification]:
        """Queue the same notification for every active admin."""
        admins = [
            u for u in txn.find("users", role=UserRole.ADMIN)
            if u.is_active
        ]
        return [
            self.notify_user(txn, admin.id, event, title, message, **kwargs)
            for admin in admins
        ]

    def _deliver(self, notification: Notification) -> None:
        for callback in self._subscribers:
            try:
                callback(notification)
            except Exception:
                logger.exception(
                    "Delivery of %s (%s) to %s failed",
                    notification.id, notification.event, notification.user_id,
                )

    def list_for_user(self, user_id: str, unread_only: bool = False) -> list[Notification]:
        """Notifications for a user, newest first."""
        with self.store.transaction() as txn:
            notifications = txn.find("notifications", user_id=user_id)
        if unread_only:
            notifications = [n for n in notifications if not n.read]
        notifications.sort(key=lambda n: n.created_at, reverse=True)
        return notifications

    def mark_read(self, notification_id: str, user_id: str) -> Optional[Notification]:
        with self.store.transaction() as txn:
            notification = txn.get("notifications", notification_id)
            if notification is None or notification.user_id != user_id:
                return None
            if not notification.read:
                notification.read = True
                txn.put("notifications", notification)
            return notification
