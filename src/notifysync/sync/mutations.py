"""
Optimistic mutation engine.

Read-state changes are applied to the local cache immediately, confirmed
remotely in the background, and rolled back if the remote store rejects them.

Entity lifecycle as seen from here:

    UNKNOWN -> UNREAD -> READ_PENDING_CONFIRM -> READ
                  ^               |
                  +--- rollback --+
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from notifysync.config import RacePolicy
from notifysync.schema.notification import Notification, NotificationType
from notifysync.store.base import RemoteNotificationStore
from notifysync.sync.cache import NotificationCache
from notifysync.sync.counter import UnreadCounter
from notifysync.sync.events import AllMarkedRead, EventEmitter, MutationFailed, NothingToMark

logger = logging.getLogger(__name__)


class NotificationState(str, Enum):
    """Local lifecycle state of a single notification."""

    UNKNOWN = "unknown"  # Not observed in this session
    UNREAD = "unread"
    READ_PENDING_CONFIRM = "read_pending_confirm"  # Optimistic read in flight
    READ = "read"


@dataclass
class PendingRead:
    """An optimistic read waiting for (or recently given) remote confirmation."""

    notification_id: str
    user_id: str
    previous: Notification  # Exact entry before the optimistic change
    generation: int  # Cache generation right after the change
    operation: str
    started_at: float
    confirmed_at: float | None = None

    @property
    def confirmed(self) -> bool:
        return self.confirmed_at is not None


class OptimisticMutationEngine:
    """
    Applies read-state changes locally first, then confirms them remotely.

    All cache/counter changes happen in synchronous sections with no ``await``
    in between, so they cannot interleave with a poll tick on the same loop.
    Rollbacks compare the cache generation before restoring a prior copy.
    """

    def __init__(
        self,
        store: RemoteNotificationStore,
        cache: NotificationCache,
        counter: UnreadCounter,
        events: EventEmitter,
        race_policy: RacePolicy = RacePolicy.PENDING_WINS,
        pending_grace: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.cache = cache
        self.counter = counter
        self.events = events
        self.race_policy = race_policy
        self.pending_grace = pending_grace
        self._clock = clock

        self.user_id: str | None = None
        self._pending: dict[str, PendingRead] = {}
        self._tasks: set[asyncio.Task] = set()
        self._epoch = 0

    # Single notification

    def mark_as_read(self, notification_id: str) -> asyncio.Task[bool] | None:
        """
        Mark one notification read, optimistically.

        Returns the background confirmation task, or None when there was
        nothing to do (unknown id, already read, confirmation in flight, or
        no session). Must be called from the running event loop. Never raises
        for remote failures; those roll back and emit ``MutationFailed``.
        """
        user_id = self.user_id
        if not user_id:
            logger.debug("mark_as_read(%s) ignored: no session", notification_id)
            return None

        pending = self._pending.get(notification_id)
        if pending is not None and not pending.confirmed:
            logger.debug("mark_as_read(%s) already in flight", notification_id)
            return None

        entry = self.cache.get(notification_id)
        if entry is not None and entry.is_read:
            return None

        previous = self.cache.set_read(notification_id, True)
        if previous is None:
            logger.debug("mark_as_read(%s) ignored: not in cache", notification_id)
            return None
        self.counter.decrement()

        record = PendingRead(
            notification_id=notification_id,
            user_id=user_id,
            previous=previous,
            generation=self.cache.generation,
            operation="mark_as_read",
            started_at=self._clock(),
        )
        self._pending[notification_id] = record
        return self.spawn(self._confirm_read(record, self._epoch))

    async def _confirm_read(self, record: PendingRead, epoch: int) -> bool:
        try:
            await self.store.mark_read(record.notification_id, record.user_id)
        except Exception as e:
            if epoch != self._epoch:
                return False
            logger.warning(
                "Remote mark_read failed for %s, rolling back: %s", record.notification_id, e
            )
            self._rollback_read(record)
            self.events.emit(
                MutationFailed(
                    operation="mark_as_read",
                    notification_ids=[record.notification_id],
                    error=str(e),
                )
            )
            return False

        if epoch == self._epoch:
            self._mark_confirmed(record)
            logger.debug("Notification %s marked read remotely", record.notification_id)
        return True

    def _mark_confirmed(self, record: PendingRead) -> None:
        record.confirmed_at = self._clock()
        # Remote-wins keeps no grace window
        if (
            self.race_policy == RacePolicy.REMOTE_WINS
            and self._pending.get(record.notification_id) is record
        ):
            del self._pending[record.notification_id]

    def _rollback_read(self, record: PendingRead) -> bool:
        if self._pending.get(record.notification_id) is record:
            del self._pending[record.notification_id]

        entry = self.cache.get(record.notification_id)
        if entry is None or not entry.is_read:
            # Gone from the remote snapshot, or a remote-wins resync already reverted it
            return False

        if self.cache.generation == record.generation:
            self.cache.restore(record.previous)
        else:
            self.cache.set_read(record.notification_id, record.previous.is_read)
        self.counter.increment()
        return True

    def mark_fault_read(self, fault_id: str) -> asyncio.Task[bool] | None:
        """Mark read the unread new-fault notification tied to a maintenance record."""
        for entry in self.cache:
            if (
                entry.related_fault_id == fault_id
                and entry.type == NotificationType.NEW_FAULT
                and not entry.is_read
            ):
                return self.mark_as_read(entry.id)
        return None

    # All notifications

    async def mark_all_as_read(self) -> bool:
        """
        Mark every cached notification read, optimistically.

        On success the authoritative unread count is fetched again; if it is
        not zero a notification arrived meanwhile and the cache is resynced
        from a fresh remote fetch. On failure the prior cache and counter are
        restored exactly. Returns False on failure; never raises for remote
        errors.
        """
        user_id = self.user_id
        if not user_id:
            return False

        epoch = self._epoch
        unread_ids = [entry.id for entry in self.cache if not entry.is_read]
        if not unread_ids:
            logger.info("No unread notifications to mark")
            self.events.emit(NothingToMark())
            return True

        snapshot = self.cache.snapshot()
        previous_count = self.counter.value
        previous_by_id = {entry.id: entry for entry in snapshot}

        self.cache.set_all_read()
        self.counter.set(0)
        applied_generation = self.cache.generation
        started = self._clock()

        records = []
        for notification_id in unread_ids:
            record = PendingRead(
                notification_id=notification_id,
                user_id=user_id,
                previous=previous_by_id[notification_id],
                generation=applied_generation,
                operation="mark_all_as_read",
                started_at=started,
            )
            self._pending[notification_id] = record
            records.append(record)

        try:
            await self.store.mark_all_read(user_id)
        except Exception as e:
            if epoch != self._epoch:
                return False
            logger.warning("Remote mark_all_read failed, rolling back: %s", e)
            self._rollback_all(records, snapshot, previous_count, applied_generation)
            self.events.emit(
                MutationFailed(
                    operation="mark_all_as_read",
                    notification_ids=unread_ids,
                    error=str(e),
                )
            )
            return False

        if epoch != self._epoch:
            return True
        for record in records:
            self._mark_confirmed(record)

        resynced = await self._verify_after_mark_all(user_id, epoch)
        if epoch == self._epoch:
            self.events.emit(AllMarkedRead(count=len(unread_ids), resynced=resynced))
        return True

    def _rollback_all(
        self,
        records: list[PendingRead],
        snapshot: list[Notification],
        previous_count: int,
        applied_generation: int,
    ) -> None:
        for record in records:
            if self._pending.get(record.notification_id) is record:
                del self._pending[record.notification_id]

        if self.cache.generation == applied_generation:
            self.cache.replace_all(snapshot)
            self.counter.set(previous_count)
            return

        # The cache changed during the round trip; only undo what is still ours
        for record in records:
            entry = self.cache.get(record.notification_id)
            if entry is not None and entry.is_read:
                self.cache.set_read(record.notification_id, False)
                self.counter.increment()

    async def _verify_after_mark_all(self, user_id: str, epoch: int) -> bool:
        """Check the authoritative count after a bulk read. Returns True if resynced."""
        try:
            actual = await self.store.unread_count(user_id)
        except Exception as e:
            logger.warning("Could not verify unread count after mark_all_read: %s", e)
            return False
        if epoch != self._epoch:
            return False

        if actual == 0:
            self.cache.set_all_read()
            self.counter.set(0)
            return False

        logger.warning("%d unread notifications remain after mark_all_read, resyncing", actual)
        try:
            fresh = await self.store.list(user_id)
        except Exception as e:
            logger.warning("Resync after mark_all_read failed: %s", e)
            if epoch == self._epoch:
                self.counter.set(actual)
            return False
        if epoch != self._epoch:
            return False

        self.resync(fresh, actual)
        return True

    # Reconciliation support

    def resync(self, snapshot: Iterable[Notification], authoritative_count: int) -> None:
        """Replace the cache and counter from a remote snapshot, honouring the race policy."""
        entries, count = self.overlay(snapshot, authoritative_count)
        self.cache.replace_all(entries)
        self.counter.set(count)

    def overlay(
        self, snapshot: Iterable[Notification], authoritative_count: int
    ) -> tuple[list[Notification], int]:
        """
        Apply the race policy to a remote snapshot.

        Under pending-wins, notifications with an unconfirmed read (or one
        confirmed within the grace window) stay read, and the authoritative
        count drops by the number of entries kept read. Under remote-wins the
        snapshot is returned unchanged.
        """
        entries = list(snapshot)
        if self.race_policy == RacePolicy.REMOTE_WINS:
            return entries, max(0, authoritative_count)

        protected = self.protected_ids()
        if not protected:
            return entries, max(0, authoritative_count)

        overlaid = 0
        result = []
        for entry in entries:
            if entry.id in protected and not entry.is_read:
                entry = entry.model_copy(update={"is_read": True})
                overlaid += 1
            result.append(entry)
        return result, max(0, authoritative_count - overlaid)

    def adjust_count(self, authoritative_count: int) -> int:
        """Authoritative count minus reads still in flight (pending-wins only)."""
        if self.race_policy == RacePolicy.REMOTE_WINS:
            return max(0, authoritative_count)
        in_flight = sum(
            1 for record in self._pending.values()
            if not record.confirmed and record.notification_id in self.cache
        )
        return max(0, authoritative_count - in_flight)

    def protected_ids(self) -> set[str]:
        """Ids whose optimistic read must survive a remote snapshot."""
        self._prune()
        return set(self._pending)

    def _prune(self) -> None:
        now = self._clock()
        grace = 0.0 if self.race_policy == RacePolicy.REMOTE_WINS else self.pending_grace
        expired = [
            notification_id
            for notification_id, record in self._pending.items()
            if record.confirmed_at is not None and now - record.confirmed_at >= grace
        ]
        for notification_id in expired:
            del self._pending[notification_id]

    # State

    def state_of(self, notification_id: str) -> NotificationState:
        entry = self.cache.get(notification_id)
        if entry is None:
            return NotificationState.UNKNOWN
        record = self._pending.get(notification_id)
        if record is not None and not record.confirmed:
            return NotificationState.READ_PENDING_CONFIRM
        return NotificationState.READ if entry.is_read else NotificationState.UNREAD

    @property
    def in_flight(self) -> int:
        return sum(1 for record in self._pending.values() if not record.confirmed)

    def reset(self) -> None:
        """Forget pending work and cancel background confirmations (session teardown)."""
        self._epoch += 1
        self._pending.clear()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    async def wait_idle(self) -> None:
        """Wait until every background confirmation has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
