"""
Schema definitions for the notification sync engine.
"""

from notifysync.schema.notification import (
    Notification,
    NotificationLink,
    NotificationType,
)

__all__ = [
    "Notification",
    "NotificationLink",
    "NotificationType",
]
