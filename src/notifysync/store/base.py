"""
Base interface for remote notification stores.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from notifysync.schema.notification import Notification


class RemoteNotificationStore(ABC):
    """
    Abstract base class for the authoritative notification store.

    Every call is scoped to a user. Failures are raised as
    :class:`~notifysync.errors.RemoteStoreError`.
    """

    async def initialize(self) -> None:
        """Open connections or other resources. Optional."""

    async def close(self) -> None:
        """Release resources. Optional."""

    @abstractmethod
    async def list(self, user_id: str) -> list[Notification]:
        """All notifications of ``user_id``, newest first."""
        pass

    @abstractmethod
    async def unread_count(self, user_id: str) -> int:
        """Number of unread notifications of ``user_id``."""
        pass

    @abstractmethod
    async def mark_read(self, notification_id: str, user_id: str) -> None:
        """
        Mark one notification as read.

        Idempotent. Ids not owned by ``user_id`` are ignored.
        """
        pass

    @abstractmethod
    async def mark_all_read(self, user_id: str) -> None:
        """Mark every unread notification of ``user_id`` as read."""
        pass
