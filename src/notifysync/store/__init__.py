"""
Remote notification stores.
"""

from notifysync.store.base import RemoteNotificationStore
from notifysync.store.memory_store import InMemoryNotificationStore
from notifysync.store.supabase_store import SupabaseNotificationStore

__all__ = [
    "RemoteNotificationStore",
    "InMemoryNotificationStore",
    "SupabaseNotificationStore",
]
