"""
Factory Notification Sync

Keeps a per-user notification cache of the factory asset tracker consistent
with the remote store.

The system provides:
- Optimistic "mark read" operations that feel instant and roll back on failure
- Periodic reconciliation (no push channel) with drift correction
- Exactly-once "new arrival" events per notification
- A PostgREST-backed remote store and an in-memory store

Quick Start:
    from notifysync import NotificationSyncService, SupabaseNotificationStore, SyncConfig

    config = SyncConfig.from_env()
    service = NotificationSyncService(SupabaseNotificationStore.from_config(config), config)
    service.events.subscribe(print)

    await service.start(user_id)
    service.mark_as_read(notification_id)
    ...
    service.stop()
"""

__version__ = "0.1.0"

from notifysync.config import RacePolicy, SyncConfig
from notifysync.errors import (
    ConfigurationError,
    NotAuthenticatedError,
    NotificationSyncError,
    RemoteStoreError,
)
from notifysync.schema.notification import Notification, NotificationLink, NotificationType
from notifysync.store import (
    InMemoryNotificationStore,
    RemoteNotificationStore,
    SupabaseNotificationStore,
)
from notifysync.sync import (
    AllMarkedRead,
    EventEmitter,
    MutationFailed,
    NewArrival,
    NothingToMark,
    NotificationCache,
    NotificationState,
    NotificationSyncService,
    OptimisticMutationEngine,
    PollerState,
    ReconciliationPoller,
    SyncEvent,
    SyncFailed,
    TickOutcome,
    UnreadCounter,
)

__all__ = [
    "__version__",
    # Config
    "SyncConfig",
    "RacePolicy",
    # Errors
    "NotificationSyncError",
    "ConfigurationError",
    "RemoteStoreError",
    "NotAuthenticatedError",
    # Schema
    "Notification",
    "NotificationLink",
    "NotificationType",
    # Stores
    "RemoteNotificationStore",
    "InMemoryNotificationStore",
    "SupabaseNotificationStore",
    # Engine
    "NotificationSyncService",
    "NotificationCache",
    "UnreadCounter",
    "OptimisticMutationEngine",
    "NotificationState",
    "ReconciliationPoller",
    "PollerState",
    "TickOutcome",
    # Events
    "EventEmitter",
    "SyncEvent",
    "NewArrival",
    "MutationFailed",
    "AllMarkedRead",
    "NothingToMark",
    "SyncFailed",
]
