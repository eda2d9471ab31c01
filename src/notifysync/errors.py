"""
Exception hierarchy for the notification sync engine.
"""

from __future__ import annotations


class NotificationSyncError(Exception):
    """Base class for all notifysync errors."""


class ConfigurationError(NotificationSyncError):
    """Raised when configuration values are missing or invalid."""


class RemoteStoreError(NotificationSyncError):
    """A call to the remote notification store failed."""

    def __init__(
        self,
        message: str,
        operation: str = "",
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code


class NotAuthenticatedError(RemoteStoreError):
    """The remote store refused the request because no user is signed in."""
