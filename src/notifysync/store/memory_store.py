"""
In-memory notification store.

Keeps notifications in a dictionary. Used as the reference implementation of
the remote store contract, for demos and for tests (it can be told to fail the
next call of an operation).
"""

from __future__ import annotations

import asyncio
from collections import Counter

from notifysync.errors import NotAuthenticatedError, RemoteStoreError
from notifysync.schema.notification import Notification
from notifysync.store.base import RemoteNotificationStore


class InMemoryNotificationStore(RemoteNotificationStore):
    """
    Dictionary-backed store.

    Features:
    - O(1) access by id
    - Ownership checks on mark-read
    - Failure injection per operation
    - Optional artificial latency
    """

    OPERATIONS = ("list", "unread_count", "mark_read", "mark_all_read")

    def __init__(self, latency: float = 0.0):
        self._notifications: dict[str, Notification] = {}
        self._failures: Counter[str] = Counter()
        self.latency = latency
        self.calls: Counter[str] = Counter()

    def add(self, *notifications: Notification) -> None:
        """Insert or overwrite notifications."""
        for notification in notifications:
            self._notifications[notification.id] = notification.model_copy()

    def remove(self, notification_id: str) -> bool:
        """Delete a notification. Returns True if it existed."""
        return self._notifications.pop(notification_id, None) is not None

    def get(self, notification_id: str) -> Notification | None:
        notification = self._notifications.get(notification_id)
        return notification.model_copy() if notification else None

    def fail_next(self, operation: str, times: int = 1) -> None:
        """Make the next ``times`` calls of ``operation`` raise RemoteStoreError."""
        if operation not in self.OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")
        self._failures[operation] += times

    async def _enter(self, operation: str, user_id: str) -> None:
        self.calls[operation] += 1
        if self.latency:
            await asyncio.sleep(self.latency)
        if not user_id:
            raise NotAuthenticatedError("User not authenticated", operation=operation)
        if self._failures[operation] > 0:
            self._failures[operation] -= 1
            raise RemoteStoreError(f"Injected failure for {operation}", operation=operation)

    async def list(self, user_id: str) -> list[Notification]:
        await self._enter("list", user_id)
        owned = [n for n in self._notifications.values() if n.user_id == user_id]
        owned.sort(key=lambda n: n.created_at, reverse=True)
        return [n.model_copy() for n in owned]

    async def unread_count(self, user_id: str) -> int:
        await self._enter("unread_count", user_id)
        return sum(
            1 for n in self._notifications.values()
            if n.user_id == user_id and not n.is_read
        )

    async def mark_read(self, notification_id: str, user_id: str) -> None:
        await self._enter("mark_read", user_id)
        notification = self._notifications.get(notification_id)
        if notification is None or notification.user_id != user_id:
            return
        notification.is_read = True

    async def mark_all_read(self, user_id: str) -> None:
        await self._enter("mark_all_read", user_id)
        for notification in self._notifications.values():
            if notification.user_id == user_id:
                notification.is_read = True
