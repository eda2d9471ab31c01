"""
Pytest configuration and shared fixtures for notification sync tests.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

BASE_TIME = datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)
USER_ID = "user-1"


class FakeClock:
    """Monotonic clock the tests can move forward by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _gated_store_class():
    from notifysync.store import InMemoryNotificationStore

    class GatedStore(InMemoryNotificationStore):
        """In-memory store whose calls block until their gate is opened."""

        def __init__(self):
            super().__init__()
            self.gates: dict[str, asyncio.Event] = {}

        def hold(self, operation: str) -> None:
            self.gates[operation] = asyncio.Event()

        def release(self, operation: str) -> None:
            self.gates.pop(operation).set()

        async def _wait(self, operation: str) -> None:
            gate = self.gates.get(operation)
            if gate is not None:
                await gate.wait()

        async def list(self, user_id):
            await self._wait("list")
            return await super().list(user_id)

        async def mark_read(self, notification_id, user_id):
            await self._wait("mark_read")
            await super().mark_read(notification_id, user_id)

        async def mark_all_read(self, user_id):
            await self._wait("mark_all_read")
            await super().mark_all_read(user_id)

    return GatedStore


class SyncHarness:
    """Cache, counter, engine and poller wired together around one store."""

    def __init__(self, store, clock, race_policy=None, grace=3.0, user_id=USER_ID):
        from notifysync.config import RacePolicy
        from notifysync.sync import (
            EventEmitter,
            NotificationCache,
            OptimisticMutationEngine,
            ReconciliationPoller,
            UnreadCounter,
        )

        self.store = store
        self.user_id = user_id
        self.cache = NotificationCache()
        self.counter = UnreadCounter()
        self.events = EventEmitter()
        self.received = []
        self.events.subscribe(self.received.append)
        self.engine = OptimisticMutationEngine(
            store=store,
            cache=self.cache,
            counter=self.counter,
            events=self.events,
            race_policy=race_policy or RacePolicy.PENDING_WINS,
            pending_grace=grace,
            clock=clock,
        )
        self.engine.user_id = user_id
        self.poller = ReconciliationPoller(
            store=store,
            cache=self.cache,
            counter=self.counter,
            engine=self.engine,
            events=self.events,
            interval=0.01,
        )

    async def load(self):
        """Initial full fetch, as a session start does."""
        snapshot = await self.store.list(self.user_id)
        count = await self.store.unread_count(self.user_id)
        self.engine.resync(snapshot, count)
        self.poller.prime(self.user_id, {n.id for n in snapshot})
        return snapshot

    def events_of(self, event_type):
        return [event for event in self.received if isinstance(event, event_type)]


@pytest.fixture
def make_notification():
    """Factory for notifications; ``minutes`` orders them in time."""
    from notifysync.schema import Notification, NotificationType

    def _make(notification_id, is_read=False, minutes=0, user_id=USER_ID, **overrides):
        fields = {
            "factory_id": "factory-1",
            "type": NotificationType.NEW_FAULT,
            "title": f"Fault on press {notification_id}",
            "message": "Hydraulic pressure dropped",
            "link": f"/machines/m-{notification_id}?log=log-{notification_id}",
            "related_fault_id": f"log-{notification_id}",
        }
        fields.update(overrides)
        return Notification(
            id=notification_id,
            user_id=user_id,
            is_read=is_read,
            created_at=BASE_TIME + timedelta(minutes=minutes),
            **fields,
        )

    return _make


@pytest.fixture
def store():
    from notifysync.store import InMemoryNotificationStore

    return InMemoryNotificationStore()


@pytest.fixture
def gated_store():
    return _gated_store_class()()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def harness(store, clock):
    return SyncHarness(store, clock)


@pytest.fixture
def make_harness(clock):
    """Build a harness around a given store and race policy."""

    def _make(store, race_policy=None, grace=3.0):
        return SyncHarness(store, clock, race_policy=race_policy, grace=grace)

    return _make
