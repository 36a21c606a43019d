"""Best-effort push/pull of tasks to a PostgREST-style remote backend.

Every call is fire-and-forget from the caller's point of view: transport or
HTTP errors are logged and reported as False/None, never raised. There is
no retry queue; the local store stays the source of truth.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from focustree.config import Settings
from focustree.models import Task

logger = logging.getLogger(__name__)


class RemoteSync:
    def __init__(
        self,
        base_url: str = "",
        api_key: str = "",
        *,
        table: str = "tasks",
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.table = table
        headers = {}
        if api_key:
            headers = {"apikey": api_key, "Authorization": f"Bearer {api_key}"}
        self._client = client or httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=headers,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> RemoteSync | None:
        if not settings.remote_enabled:
            return None
        return cls(
            settings.remote_url,
            settings.remote_api_key,
            timeout=settings.remote_timeout,
        )

    @property
    def _endpoint(self) -> str:
        return f"/rest/v1/{self.table}"

    def push_task(self, task: Task) -> bool:
        """Upsert one task remotely. Returns False on any failure."""
        try:
            resp = self._client.post(
                self._endpoint,
                json=task.to_dict(),
                headers={"Prefer": "resolution=merge-duplicates"},
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("remote push of task %s failed: %s", task.id, e)
            return False
        return True

    def delete_task(self, task_id: str) -> bool:
        try:
            resp = self._client.delete(self._endpoint, params={"id": f"eq.{task_id}"})
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("remote delete of task %s failed: %s", task_id, e)
            return False
        return True

    def fetch_tasks(self, user_id: str) -> list[Task] | None:
        """All remote tasks for a user, or None if the remote is unreachable."""
        try:
            resp = self._client.get(
                self._endpoint,
                params={"user_id": f"eq.{user_id}", "select": "*"},
            )
            resp.raise_for_status()
            rows: Any = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("remote fetch for user %s failed: %s", user_id, e)
            return None
        if not isinstance(rows, list):
            return None
        return [Task.from_dict(r) for r in rows if isinstance(r, dict)]

    def close(self) -> None:
        self._client.close()
