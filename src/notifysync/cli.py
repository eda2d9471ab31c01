"""
Command-line interface for the notification sync engine.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from notifysync.config import SyncConfig
from notifysync.errors import NotificationSyncError

app = typer.Typer(
    name="notifysync",
    help="Factory notification sync - inspect and follow a user's notifications",
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _make_store(config: SyncConfig):
    from notifysync.store.supabase_store import SupabaseNotificationStore

    if not config.supabase_url or not config.supabase_key:
        console.print("[red]Set SUPABASE_URL and SUPABASE_ANON_KEY (or use a .env file)[/red]")
        raise typer.Exit(code=1)
    return SupabaseNotificationStore.from_config(config)


def _load_config(interval: int | None = None) -> SyncConfig:
    try:
        config = SyncConfig.from_env()
        if interval is not None:
            config = replace(config, poll_interval_ms=interval)
    except NotificationSyncError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    return config


@app.command("list")
def list_notifications(
    user: str = typer.Option(..., "--user", "-u", help="User id"),
    unread: bool = typer.Option(False, "--unread", help="Only unread notifications"),
):
    """List a user's notifications, newest first."""

    async def _list():
        store = _make_store(_load_config())
        try:
            notifications = await store.list(user)
        finally:
            await store.close()

        if unread:
            notifications = [n for n in notifications if not n.is_read]

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("ID")
        table.add_column("Type")
        table.add_column("Title")
        table.add_column("Machine")
        table.add_column("Read")
        table.add_column("Created")

        for n in notifications:
            link = n.parsed_link
            table.add_row(
                n.id,
                n.type.value,
                n.title,
                link.machine_id if link and link.machine_id else "-",
                "[green]yes[/green]" if n.is_read else "[yellow]no[/yellow]",
                n.created_at.strftime("%Y-%m-%d %H:%M"),
            )

        console.print(table)
        console.print(f"\n{len(notifications)} notification(s)")

    _run(_list())


@app.command()
def count(user: str = typer.Option(..., "--user", "-u", help="User id")):
    """Show the authoritative unread count."""

    async def _count():
        store = _make_store(_load_config())
        try:
            value = await store.unread_count(user)
        finally:
            await store.close()
        console.print(f"[bold]{value}[/bold] unread")

    _run(_count())


@app.command("mark-read")
def mark_read(
    notification_id: str = typer.Argument(..., help="Notification id"),
    user: str = typer.Option(..., "--user", "-u", help="User id"),
):
    """Mark one notification as read."""

    async def _mark():
        store = _make_store(_load_config())
        try:
            await store.mark_read(notification_id, user)
        finally:
            await store.close()
        console.print(f"[green]Marked {notification_id} as read[/green]")

    _run(_mark())


@app.command("mark-all-read")
def mark_all_read(user: str = typer.Option(..., "--user", "-u", help="User id")):
    """Mark every notification of a user as read."""

    async def _mark_all():
        store = _make_store(_load_config())
        try:
            await store.mark_all_read(user)
            remaining = await store.unread_count(user)
        finally:
            await store.close()
        console.print(f"[green]All notifications marked as read[/green] ({remaining} unread remain)")

    _run(_mark_all())


@app.command()
def watch(
    user: str = typer.Option(..., "--user", "-u", help="User id"),
    interval: int = typer.Option(None, "--interval", "-i", help="Poll interval in milliseconds"),
):
    """Follow a user's notifications and print new arrivals until Ctrl-C."""
    from notifysync.sync.events import MutationFailed, NewArrival, SyncEvent, SyncFailed
    from notifysync.sync.service import NotificationSyncService

    def _render(event: SyncEvent) -> None:
        if isinstance(event, NewArrival):
            console.print(f"[bold cyan]New:[/bold cyan] {event.text}")
        elif isinstance(event, (MutationFailed, SyncFailed)):
            console.print(f"[red]{type(event).__name__}: {event.error}[/red]")

    async def _watch():
        config = _load_config(interval)
        store = _make_store(config)
        service = NotificationSyncService(store, config)
        service.events.subscribe(_render)

        try:
            async with service.session(user):
                if service.error:
                    console.print(f"[red]Could not load notifications: {service.error}[/red]")
                    return
                console.print(
                    f"Watching {len(service.notifications)} notification(s), "
                    f"{service.unread_count} unread. Ctrl-C to stop."
                )
                while True:
                    await asyncio.sleep(3600)
        finally:
            await store.close()

    try:
        asyncio.run(_watch())
    except KeyboardInterrupt:
        console.print("\nStopped")


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except NotificationSyncError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
