"""
Reconciliation poller.

No push channel is used, so a timer periodically fetches the full remote
snapshot and the authoritative unread count, diffs them against the ids seen
on the previous tick, and corrects the local cache and counter.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Any

from notifysync.schema.notification import Notification
from notifysync.store.base import RemoteNotificationStore
from notifysync.sync.cache import NotificationCache
from notifysync.sync.counter import UnreadCounter
from notifysync.sync.events import EventEmitter, NewArrival
from notifysync.sync.mutations import OptimisticMutationEngine

logger = logging.getLogger(__name__)


class PollerState(str, Enum):
    """Tick state of the poller."""

    IDLE = "idle"
    TICKING = "ticking"


class TickOutcome(str, Enum):
    """What a single tick did."""

    NEW_ARRIVALS = "new_arrivals"  # New ids found, cache replaced
    RESYNCED = "resynced"  # Same ids minus deletions, cache replaced silently
    DRIFT_CORRECTED = "drift_corrected"  # Unread state diverged, cache replaced
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"  # Another tick was running, or no session
    FAILED = "failed"  # Remote fetch failed, cache untouched
    DISCARDED = "discarded"  # Response arrived after stop()


class ReconciliationPoller:
    """
    Timer-driven reconciliation of the notification cache.

    Features:
    - No overlapping ticks (a timer fire while ticking is dropped)
    - Arrival events emitted once per id for the whole session
    - Synchronous stop(); late responses are discarded
    - A failed tick never stops the loop
    """

    def __init__(
        self,
        store: RemoteNotificationStore,
        cache: NotificationCache,
        counter: UnreadCounter,
        engine: OptimisticMutationEngine,
        events: EventEmitter,
        interval: float = 5.0,
    ):
        self.store = store
        self.cache = cache
        self.counter = counter
        self.engine = engine
        self.events = events
        self.interval = interval

        self.state = PollerState.IDLE
        self.user_id: str | None = None
        self.last_known_ids: set[str] = set()

        # Ids already announced (or present at session start); never announced again
        self._announced: set[str] = set()

        self._epoch = 0
        self._loop_task: asyncio.Task | None = None
        self._tick_task: asyncio.Task | None = None

        # Stats
        self.tick_count = 0
        self.failed_ticks = 0
        self.dropped_ticks = 0
        self.last_tick_at: datetime | None = None
        self.last_outcome: TickOutcome | None = None
        self.last_error = ""

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self, user_id: str, seed_ids: set[str] | None = None) -> None:
        """Start polling for ``user_id``. ``seed_ids`` are the ids of the initial fetch."""
        if self.running:
            return

        self.prime(user_id, seed_ids)
        self._loop_task = asyncio.create_task(self._run(self._epoch))
        logger.info("Notification polling started for user %s (every %.1fs)", user_id, self.interval)

    def prime(self, user_id: str, seed_ids: set[str] | None = None) -> None:
        """Bind the poller to a session without starting the timer."""
        self._epoch += 1
        self.user_id = user_id
        self.last_known_ids = set(seed_ids or ())
        self._announced = set(self.last_known_ids)
        self.state = PollerState.IDLE

    def stop(self) -> None:
        """Stop polling now. Responses of ticks already in flight are ignored."""
        self._epoch += 1
        for task in (self._loop_task, self._tick_task):
            if task is not None and not task.done():
                task.cancel()
        self._loop_task = None
        self._tick_task = None
        self.state = PollerState.IDLE
        if self.user_id:
            logger.info("Notification polling stopped for user %s", self.user_id)
        self.user_id = None

    async def _run(self, epoch: int) -> None:
        while epoch == self._epoch:
            await asyncio.sleep(self.interval)
            if epoch != self._epoch:
                break
            self._fire()

    def _fire(self) -> None:
        if self.state == PollerState.TICKING or (
            self._tick_task is not None and not self._tick_task.done()
        ):
            self.dropped_ticks += 1
            logger.debug("Previous tick still running, dropping timer fire")
            return
        self._tick_task = asyncio.create_task(self.tick())

    async def tick(self) -> TickOutcome:
        """Run one reconciliation pass."""
        if self.state == PollerState.TICKING:
            self.dropped_ticks += 1
            return TickOutcome.SKIPPED

        user_id = self.user_id
        if not user_id:
            return TickOutcome.SKIPPED

        epoch = self._epoch
        self.state = PollerState.TICKING
        try:
            outcome = await self._reconcile(user_id, epoch)
        finally:
            if epoch == self._epoch:
                self.state = PollerState.IDLE

        if outcome != TickOutcome.DISCARDED:
            self.tick_count += 1
            self.last_tick_at = datetime.now()
            self.last_outcome = outcome
        return outcome

    async def _reconcile(self, user_id: str, epoch: int) -> TickOutcome:
        try:
            snapshot, count = await asyncio.gather(
                self.store.list(user_id),
                self.store.unread_count(user_id),
            )
        except Exception as e:
            if epoch != self._epoch:
                return TickOutcome.DISCARDED
            self.failed_ticks += 1
            self.last_error = str(e)
            logger.warning("Notification poll failed, keeping cached state: %s", e)
            return TickOutcome.FAILED

        if epoch != self._epoch:
            logger.debug("Discarding poll response received after stop")
            return TickOutcome.DISCARDED

        self.last_error = ""
        return self._apply(snapshot, count)

    def _apply(self, snapshot: list[Notification], count: int) -> TickOutcome:
        remote_ids = {notification.id for notification in snapshot}
        new_ids = remote_ids - self.last_known_ids

        try:
            if new_ids:
                self.engine.resync(snapshot, count)
                self._announce(snapshot, new_ids)
                logger.info("Poll found %d new notification(s)", len(new_ids))
                return TickOutcome.NEW_ARRIVALS

            if len(remote_ids) != len(self.last_known_ids):
                self.engine.resync(snapshot, count)
                logger.info("Notifications removed remotely, cache resynced")
                return TickOutcome.RESYNCED

            _, expected = self.engine.overlay(snapshot, count)
            derived = self.cache.unread_count()
            if derived != expected or self.counter.value != expected:
                logger.info(
                    "Unread drift (cache=%d, counter=%d, remote=%d), resyncing",
                    derived, self.counter.value, expected,
                )
                self.engine.resync(snapshot, count)
                return TickOutcome.DRIFT_CORRECTED

            return TickOutcome.UNCHANGED
        finally:
            self.last_known_ids = remote_ids

    def _announce(self, snapshot: list[Notification], new_ids: set[str]) -> None:
        for notification in snapshot:
            if notification.id not in new_ids or notification.is_read:
                continue
            if notification.id in self._announced:
                continue
            self._announced.add(notification.id)
            self.events.emit(NewArrival(notification=notification.model_copy()))

    def get_status(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "state": self.state.value,
            "interval_seconds": self.interval,
            "known_ids": len(self.last_known_ids),
            "tick_count": self.tick_count,
            "failed_ticks": self.failed_ticks,
            "dropped_ticks": self.dropped_ticks,
            "last_tick": self.last_tick_at.isoformat() if self.last_tick_at else None,
            "last_outcome": self.last_outcome.value if self.last_outcome else None,
            "last_error": self.last_error,
        }
