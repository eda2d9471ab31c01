"""
Events emitted by the sync engine for the presentation layer.

The engine never shows anything itself; arrivals, failures and confirmations
are published here and a presenter decides how to render them.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from datetime import datetime

from notifysync.schema.notification import Notification

logger = logging.getLogger(__name__)


@dataclass
class SyncEvent:
    """Base class for engine events."""

    timestamp: datetime = field(default_factory=datetime.now, kw_only=True)


@dataclass
class NewArrival(SyncEvent):
    """An unread notification was discovered by a poll tick."""

    notification: Notification

    @property
    def text(self) -> str:
        return self.notification.toast_text


@dataclass
class MutationFailed(SyncEvent):
    """A read-state change was rejected remotely and rolled back."""

    operation: str  # mark_as_read, mark_all_as_read
    notification_ids: list[str]
    error: str


@dataclass
class AllMarkedRead(SyncEvent):
    """mark_all_as_read was confirmed remotely."""

    count: int
    resynced: bool = False


@dataclass
class NothingToMark(SyncEvent):
    """mark_all_as_read was called with nothing unread."""


@dataclass
class SyncFailed(SyncEvent):
    """Session setup or an explicit fetch failed; retry is possible."""

    stage: str  # start, fetch_notifications, fetch_unread_count
    error: str


Listener = Callable[[SyncEvent], None]


class EventEmitter:
    """
    Fan-out of sync events to listeners.

    Listeners run synchronously inside ``emit``. A failing listener is logged
    and does not affect other listeners or the engine.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._queues: list[asyncio.Queue[SyncEvent]] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: SyncEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener %r failed on %s", listener, type(event).__name__)
        for queue in list(self._queues):
            queue.put_nowait(event)

    async def stream(self) -> AsyncIterator[SyncEvent]:
        """Yield every event emitted after the stream was opened."""
        queue: asyncio.Queue[SyncEvent] = asyncio.Queue()
        self._queues.append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._queues.remove(queue)

    @property
    def listener_count(self) -> int:
        return len(self._listeners) + len(self._queues)
