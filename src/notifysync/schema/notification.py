"""
Notification schema - the single entity the sync engine manages.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from urllib.parse import parse_qs, urlsplit

from pydantic import BaseModel, Field, field_validator

_MACHINE_ROUTE = re.compile(r"/machines/([^/?]+)")


class NotificationType(str, Enum):
    """Kind of event a notification announces."""

    NEW_FAULT = "new_fault"  # A fault was reported on a machine
    FAULT_RESOLVED = "fault_resolved"  # A fault was closed
    OTHER = "other"


class NotificationLink(BaseModel):
    """Deep link of a notification, split into its parts."""

    route: str
    machine_id: str | None = None
    log_id: str | None = None

    @classmethod
    def parse(cls, link: str | None) -> NotificationLink | None:
        """
        Parse a link such as ``/machines/{machineId}?log={logId}``.

        Returns None for an empty link.
        """
        if not link:
            return None

        parts = urlsplit(link)
        machine = _MACHINE_ROUTE.search(parts.path)
        log_values = parse_qs(parts.query).get("log")

        return cls(
            route=parts.path,
            machine_id=machine.group(1) if machine else None,
            log_id=log_values[0] if log_values else None,
        )


class Notification(BaseModel):
    """
    A per-user notification as held by the remote store.

    Only ``is_read`` is ever changed locally; every other field is owned by
    the remote store.
    """

    id: str
    user_id: str
    factory_id: str
    type: NotificationType = NotificationType.OTHER
    title: str = ""
    message: str = ""
    link: str | None = None
    related_fault_id: str | None = None
    is_read: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": False}

    @field_validator("id", "user_id", "factory_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> Any:
        if isinstance(value, NotificationType):
            return value
        try:
            return NotificationType(value)
        except ValueError:
            return NotificationType.OTHER

    @field_validator("is_read", mode="before")
    @classmethod
    def _coerce_is_read(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("created_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        # Naive timestamps are stored as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def parsed_link(self) -> NotificationLink | None:
        """The deep link split into route, machine id and maintenance log id."""
        return NotificationLink.parse(self.link)

    @property
    def is_fault_related(self) -> bool:
        return self.type in (NotificationType.NEW_FAULT, NotificationType.FAULT_RESOLVED)

    @property
    def toast_text(self) -> str:
        """Short text shown when the notification arrives."""
        return f"{self.title}: {self.message}"

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Notification:
        """Build a notification from a store row (snake_case columns)."""
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            factory_id=row["factory_id"],
            type=row.get("type"),
            title=row.get("title") or "",
            message=row.get("message") or "",
            link=row.get("link"),
            related_fault_id=row.get("related_fault_id"),
            is_read=row.get("is_read"),
            created_at=row["created_at"],
        )

    def to_row(self) -> dict[str, Any]:
        """Serialize to a store row."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "factory_id": self.factory_id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "link": self.link,
            "related_fault_id": self.related_fault_id,
            "is_read": self.is_read,
            "created_at": self.created_at.isoformat(),
        }
