"""
Client-side notification synchronization engine.

Provides:
- Local notification cache and unread counter
- Optimistic read mutations with rollback
- Periodic reconciliation against the remote store
- Event emission for the presentation layer
"""

from .cache import NotificationCache
from .counter import UnreadCounter
from .events import (
    AllMarkedRead,
    EventEmitter,
    MutationFailed,
    NewArrival,
    NothingToMark,
    SyncEvent,
    SyncFailed,
)
from .mutations import NotificationState, OptimisticMutationEngine
from .poller import PollerState, ReconciliationPoller, TickOutcome
from .service import NotificationSyncService

__all__ = [
    # State
    "NotificationCache",
    "UnreadCounter",
    # Engine
    "OptimisticMutationEngine",
    "NotificationState",
    "ReconciliationPoller",
    "PollerState",
    "TickOutcome",
    "NotificationSyncService",
    # Events
    "EventEmitter",
    "SyncEvent",
    "NewArrival",
    "MutationFailed",
    "AllMarkedRead",
    "NothingToMark",
    "SyncFailed",
]
