"""
Remote notification store backed by the managed data platform's REST API.

Talks PostgREST over httpx:
- GET    /rest/v1/notifications?user_id=eq.X&order=created_at.desc
- HEAD   /rest/v1/notifications?user_id=eq.X&is_read=eq.false  (Prefer: count=exact)
- PATCH  /rest/v1/notifications?id=eq.N&user_id=eq.X           {"is_read": true}
- PATCH  /rest/v1/notifications?user_id=eq.X&is_read=eq.false  {"is_read": true}
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from notifysync.config import SyncConfig
from notifysync.errors import NotAuthenticatedError, RemoteStoreError
from notifysync.schema.notification import Notification
from notifysync.store.base import RemoteNotificationStore

logger = logging.getLogger(__name__)

TABLE_PATH = "/rest/v1/notifications"


class SupabaseNotificationStore(RemoteNotificationStore):
    """PostgREST client for the ``notifications`` table."""

    def __init__(
        self,
        url: str,
        api_key: str,
        access_token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not url or not api_key:
            raise RemoteStoreError("Remote store URL and API key are required", operation="init")

        self.url = url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token or api_key
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: SyncConfig) -> SupabaseNotificationStore:
        return cls(
            url=config.supabase_url,
            api_key=config.supabase_key,
            access_token=config.access_token or None,
            timeout=config.request_timeout,
        )

    async def initialize(self) -> None:
        self._get_client()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.url,
                headers=self._headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
        }

    async def _request(
        self,
        operation: str,
        method: str,
        params: dict[str, str],
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        client = self._get_client()

        try:
            response = await client.request(
                method,
                TABLE_PATH,
                params=params,
                json=json,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"{operation} failed: {e}", operation=operation) from e

        if response.status_code in (401, 403):
            raise NotAuthenticatedError(
                f"{operation} rejected: {response.status_code}",
                operation=operation,
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise RemoteStoreError(
                f"{operation} failed: {response.status_code} - {response.text[:200]}",
                operation=operation,
                status_code=response.status_code,
            )
        return response

    async def list(self, user_id: str) -> list[Notification]:
        response = await self._request(
            "list",
            "GET",
            params={
                "select": "*",
                "user_id": f"eq.{user_id}",
                "order": "created_at.desc",
            },
        )
        try:
            rows = response.json() or []
            notifications = [Notification.from_row(row) for row in rows]
        except (ValueError, KeyError, TypeError) as e:
            raise RemoteStoreError(f"list returned malformed rows: {e}", operation="list") from e

        logger.debug("Fetched %d notifications for user %s", len(notifications), user_id)
        return notifications

    async def unread_count(self, user_id: str) -> int:
        response = await self._request(
            "unread_count",
            "HEAD",
            params={
                "select": "id",
                "user_id": f"eq.{user_id}",
                "is_read": "eq.false",
            },
            headers={"Prefer": "count=exact"},
        )
        return parse_content_range(response.headers.get("content-range"))

    async def mark_read(self, notification_id: str, user_id: str) -> None:
        # The user filter keeps other users' notifications untouched
        await self._request(
            "mark_read",
            "PATCH",
            params={"id": f"eq.{notification_id}", "user_id": f"eq.{user_id}"},
            json={"is_read": True},
            headers={"Prefer": "return=minimal"},
        )

    async def mark_all_read(self, user_id: str) -> None:
        await self._request(
            "mark_all_read",
            "PATCH",
            params={"user_id": f"eq.{user_id}", "is_read": "eq.false"},
            json={"is_read": True},
            headers={"Prefer": "return=minimal"},
        )


def parse_content_range(value: str | None) -> int:
    """
    Extract the total from a ``Content-Range`` header.

    PostgREST answers ``0-9/42`` or ``*/0``. A missing or unknown total
    counts as zero.
    """
    if not value or "/" not in value:
        return 0
    total = value.rsplit("/", 1)[1].strip()
    if total == "*":
        return 0
    try:
        return max(0, int(total))
    except ValueError as e:
        raise RemoteStoreError(
            f"Malformed Content-Range: {value!r}", operation="unread_count"
        ) from e
