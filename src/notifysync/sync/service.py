"""
Notification sync service - the interface a presentation layer talks to.

Owns the cache, the unread counter, the mutation engine and the poller for
one user session, with an explicit start/stop lifecycle.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from notifysync.config import SyncConfig
from notifysync.schema.notification import Notification
from notifysync.store.base import RemoteNotificationStore
from notifysync.sync.cache import NotificationCache
from notifysync.sync.counter import UnreadCounter
from notifysync.sync.events import EventEmitter, SyncFailed
from notifysync.sync.mutations import NotificationState, OptimisticMutationEngine
from notifysync.sync.poller import ReconciliationPoller

logger = logging.getLogger(__name__)


class NotificationSyncService:
    """
    Per-session notification state kept in sync with the remote store.

    Usage:
        service = NotificationSyncService(store, SyncConfig())
        service.events.subscribe(print)
        await service.start(user_id)

        service.mark_as_read(notification_id)   # fire and forget
        await service.mark_all_as_read()

        service.stop()
    """

    def __init__(
        self,
        store: RemoteNotificationStore,
        config: SyncConfig | None = None,
        events: EventEmitter | None = None,
    ):
        self.config = config or SyncConfig()
        self.store = store
        self.events = events or EventEmitter()

        self.cache = NotificationCache()
        self.counter = UnreadCounter()
        self.engine = OptimisticMutationEngine(
            store=store,
            cache=self.cache,
            counter=self.counter,
            events=self.events,
            race_policy=self.config.race_policy,
            pending_grace=self.config.pending_grace,
        )
        self.poller = ReconciliationPoller(
            store=store,
            cache=self.cache,
            counter=self.counter,
            engine=self.engine,
            events=self.events,
            interval=self.config.poll_interval,
        )

        self.user_id: str | None = None
        self.loading = True
        self.error: str | None = None
        self._epoch = 0

    # Presenter-facing state

    @property
    def notifications(self) -> list[Notification]:
        """Cached notifications, newest first (copies)."""
        return self.cache.snapshot()

    @property
    def unread_count(self) -> int:
        return self.counter.value

    @property
    def running(self) -> bool:
        return self.poller.running

    def state_of(self, notification_id: str) -> NotificationState:
        return self.engine.state_of(notification_id)

    # Lifecycle

    async def start(self, user_id: str | None) -> bool:
        """
        Start a session: initial full fetch, then periodic reconciliation.

        Returns False when there is no user or the initial fetch failed; in
        the latter case ``error`` is set and :meth:`retry` can be called.
        """
        if self.running and user_id == self.user_id:
            return True
        if self.running or (self.user_id is not None and user_id != self.user_id):
            # Drops the previous session, including an initial fetch still in flight
            self.stop()

        if not user_id:
            logger.warning("No authenticated user, notification sync not started")
            self.loading = False
            return False

        self.user_id = user_id
        self.engine.user_id = user_id

        snapshot = await self._fetch_all("start")
        if snapshot is None or self.user_id != user_id:
            return False

        self.poller.start(user_id, {notification.id for notification in snapshot})
        return True

    async def retry(self) -> bool:
        """Re-attempt a failed start for the last user."""
        if self.running:
            await self.fetch_notifications()
            return self.error is None
        return await self.start(self.user_id)

    def stop(self) -> None:
        """Tear the session down synchronously and forget its data."""
        self._epoch += 1
        self.poller.stop()
        self.engine.reset()
        self.engine.user_id = None
        self.user_id = None
        self.cache.clear()
        self.counter.reset()
        self.loading = False
        self.error = None

    @asynccontextmanager
    async def session(self, user_id: str | None) -> AsyncIterator[NotificationSyncService]:
        """Run a session for the duration of an ``async with`` block."""
        await self.start(user_id)
        try:
            yield self
        finally:
            self.stop()

    # Fetching

    async def fetch_notifications(self) -> None:
        """Reload the full list and the unread count from the remote store."""
        await self._fetch_all("fetch_notifications")

    async def _fetch_all(self, stage: str) -> list[Notification] | None:
        user_id = self.user_id
        if not user_id:
            self.loading = False
            return None

        epoch = self._epoch
        self.loading = True
        try:
            snapshot, count = await asyncio.gather(
                self.store.list(user_id),
                self.store.unread_count(user_id),
            )
        except Exception as e:
            if epoch == self._epoch:
                self.loading = False
                self.error = str(e)
                logger.error("Fetching notifications failed (%s): %s", stage, e)
                self.events.emit(SyncFailed(stage=stage, error=str(e)))
            return None

        if epoch != self._epoch or user_id != self.user_id:
            return None

        self.engine.resync(snapshot, count)
        self.loading = False
        self.error = None
        logger.debug("Fetched %d notifications, %d unread", len(snapshot), count)
        return snapshot

    async def fetch_unread_count(self) -> None:
        """Refresh the unread counter from the authoritative count."""
        user_id = self.user_id
        if not user_id:
            return

        epoch = self._epoch
        try:
            count = await self.store.unread_count(user_id)
        except Exception as e:
            logger.error("Fetching unread count failed: %s", e)
            if epoch == self._epoch:
                self.events.emit(SyncFailed(stage="fetch_unread_count", error=str(e)))
            return

        if epoch != self._epoch:
            return

        derived = self.cache.unread_count()
        stored = self.counter.value
        if count != derived or count != stored:
            logger.warning(
                "Unread count mismatch: remote=%d cache=%d counter=%d", count, derived, stored
            )
        self.counter.set(self.engine.adjust_count(count))

    # Mutations

    def mark_as_read(self, notification_id: str) -> asyncio.Task[bool] | None:
        """Optimistically mark one notification read. See OptimisticMutationEngine."""
        return self.engine.mark_as_read(notification_id)

    def mark_all_as_read(self) -> asyncio.Task[bool]:
        """Optimistically mark everything read; returns the background task."""
        return self.engine.spawn(self.engine.mark_all_as_read())

    def mark_fault_read(self, fault_id: str) -> asyncio.Task[bool] | None:
        """Mark read the new-fault notification of a maintenance record that was resolved."""
        return self.engine.mark_fault_read(fault_id)

    def get_status(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "loading": self.loading,
            "error": self.error,
            "notifications": len(self.cache),
            "unread_count": self.counter.value,
            "cache_unread": self.cache.unread_count(),
            "in_flight": self.engine.in_flight,
            "race_policy": self.config.race_policy.value,
            "poller": self.poller.get_status(),
        }
