"""
Local notification cache.

Ordered newest-first and keyed by id. All methods are synchronous so that a
mutation can never be interleaved with another task on the event loop.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from notifysync.schema.notification import Notification


class NotificationCache:
    """
    In-memory ordered set of notifications for one user.

    Entries are copied on the way in and on the way out, so read state only
    changes through the cache methods.

    ``generation`` increases on every mutation. Rollback paths compare it to
    the value they saw when applying an optimistic change.
    """

    def __init__(self) -> None:
        self._order: list[str] = []
        self._entries: dict[str, Notification] = {}
        self.generation = 0

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[Notification]:
        return (self._entries[nid].model_copy() for nid in self._order)

    def __contains__(self, notification_id: object) -> bool:
        return notification_id in self._entries

    def ids(self) -> set[str]:
        return set(self._order)

    def get(self, notification_id: str) -> Notification | None:
        """A copy of one entry. Changes go through set_read, restore or replace_all."""
        entry = self._entries.get(notification_id)
        return entry.model_copy() if entry is not None else None

    def items(self) -> list[Notification]:
        """Copies of the entries in display order (newest first)."""
        return self.snapshot()

    def unread_count(self) -> int:
        return sum(1 for entry in self._entries.values() if not entry.is_read)

    def snapshot(self) -> list[Notification]:
        """Independent copies of every entry, in order."""
        return [self._entries[nid].model_copy() for nid in self._order]

    def replace_all(self, snapshot: Iterable[Notification]) -> None:
        """Wholesale resync from a remote snapshot. Duplicate ids keep the first entry."""
        entries: dict[str, Notification] = {}
        for notification in snapshot:
            if notification.id not in entries:
                entries[notification.id] = notification.model_copy()

        # Stable sort keeps the store's order for equal timestamps
        ordered = sorted(entries.values(), key=lambda n: n.created_at, reverse=True)
        self._order = [n.id for n in ordered]
        self._entries = entries
        self.generation += 1

    def set_read(self, notification_id: str, value: bool) -> Notification | None:
        """
        Set ``is_read`` on one entry.

        Unknown ids are ignored and return None. Returns a copy of the entry
        as it was before the change otherwise.
        """
        entry = self._entries.get(notification_id)
        if entry is None:
            return None
        previous = entry.model_copy()
        if entry.is_read != value:
            entry.is_read = value
            self.generation += 1
        return previous

    def set_all_read(self) -> int:
        """Mark every entry read. Returns how many changed."""
        changed = 0
        for entry in self._entries.values():
            if not entry.is_read:
                entry.is_read = True
                changed += 1
        if changed:
            self.generation += 1
        return changed

    def restore(self, previous: Notification) -> bool:
        """Put back an exact prior copy of an entry still held by the cache."""
        if previous.id not in self._entries:
            return False
        self._entries[previous.id] = previous.model_copy()
        self.generation += 1
        return True

    def clear(self) -> None:
        self._order = []
        self._entries = {}
        self.generation += 1
