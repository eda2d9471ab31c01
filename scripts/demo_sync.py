#!/usr/bin/env python3
"""
Run the notification sync engine against an in-memory store.

Simulates a few seconds of a factory session: a new fault arrives, one
notification is read, a remote failure is rolled back, and everything is
marked read at the end.

Usage:
    python scripts/demo_sync.py
    python scripts/demo_sync.py --interval 200   # Poll every 200 ms
"""

import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from notifysync import (
    InMemoryNotificationStore,
    Notification,
    NotificationSyncService,
    NotificationType,
    SyncConfig,
)

USER_ID = "demo-user"


def _notification(notification_id: str, title: str, message: str) -> Notification:
    return Notification(
        id=notification_id,
        user_id=USER_ID,
        factory_id="demo-factory",
        type=NotificationType.NEW_FAULT,
        title=title,
        message=message,
        link=f"/machines/m-{notification_id}?log=log-{notification_id}",
        related_fault_id=f"log-{notification_id}",
        created_at=datetime.now(timezone.utc),
    )


async def run_demo(interval_ms: int) -> None:
    store = InMemoryNotificationStore(latency=0.05)
    store.add(_notification("1", "Fault on press 1", "Hydraulic pressure dropped"))

    service = NotificationSyncService(store, SyncConfig(poll_interval_ms=interval_ms))
    service.events.subscribe(lambda event: print(f"  event: {event}"))

    async with service.session(USER_ID):
        print(f"Loaded {len(service.notifications)} notification(s), {service.unread_count} unread")

        store.add(_notification("2", "Fault on conveyor 2", "Belt torn"))
        await asyncio.sleep(interval_ms / 1000 * 2)
        print(f"After poll: {service.unread_count} unread")

        await service.mark_as_read("1")
        print(f"Read 1: {service.unread_count} unread")

        store.fail_next("mark_read")
        await service.mark_as_read("2")
        print(f"Failed read of 2 rolled back: {service.unread_count} unread")

        await service.mark_all_as_read()
        print(f"Marked all read: {service.unread_count} unread")
        print(f"Status: {service.get_status()}")


def main():
    interval = 500
    if len(sys.argv) > 2 and sys.argv[1] == "--interval":
        interval = int(sys.argv[2])
    print(f"Starting notification sync demo (interval: {interval} ms)")
    asyncio.run(run_demo(interval))


if __name__ == "__main__":
    main()
