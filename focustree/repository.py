"""Local-first task repository.

Tasks live in <root>/tasks.yaml. Every write lands locally first, then
listeners and observers are notified, then the task is pushed to the
remote (if configured), off the event loop when one is running. Remote
failures never reach the caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from pathlib import Path
from typing import AsyncIterator, Callable

from focustree.background import run_off_loop
from focustree.fileio import read_yaml, write_yaml_atomic
from focustree.models import CompletionRecord, Task, TasksFile
from focustree.sync import RemoteSync
from focustree.workspace import now_iso, tasks_path, workspace_root

logger = logging.getLogger(__name__)

# listener(event, task) with event in {"upsert", "delete"}
TaskListener = Callable[[str, Task], None]


class TaskRepository:
    def __init__(self, root: Path | None = None, remote: RemoteSync | None = None) -> None:
        self.root = root if root is not None else workspace_root()
        self.remote = remote
        self._listeners: list[TaskListener] = []
        self._watchers: list[tuple[str, asyncio.Queue[None]]] = []

    # ── Storage ───────────────────────────────────────────────

    def _load(self) -> TasksFile:
        return TasksFile.from_dict(read_yaml(tasks_path(self.root)))

    def _save(self, tasks_file: TasksFile) -> None:
        write_yaml_atomic(tasks_path(self.root), tasks_file.to_dict())

    # ── Reads ─────────────────────────────────────────────────

    def get_task(self, task_id: str) -> Task | None:
        for t in self._load().tasks:
            if t.id == task_id:
                return t
        return None

    def list_tasks(self, user_id: str | None = None) -> list[Task]:
        """Tasks for a user (all users if None), newest first."""
        tasks = [t for t in self._load().tasks if user_id is None or t.user_id == user_id]
        return sorted(tasks, key=lambda t: t.created_at or "", reverse=True)

    def history(self, user_id: str | None = None) -> list[CompletionRecord]:
        records = [h for h in self._load().history if user_id is None or h.user_id == user_id]
        return sorted(records, key=lambda h: h.date_key, reverse=True)

    # ── Writes ────────────────────────────────────────────────

    def upsert_task(self, task: Task) -> Task:
        """Insert or replace a task by id. Returns the stored (stamped) task."""
        stored = replace(task, updated_at=now_iso())
        tasks_file = self._load()
        for i, t in enumerate(tasks_file.tasks):
            if t.id == stored.id:
                tasks_file.tasks[i] = stored
                break
        else:
            tasks_file.tasks.append(stored)
        self._save(tasks_file)
        self._notify("upsert", stored)
        if self.remote is not None:
            run_off_loop(self.remote.push_task, stored)
        return stored

    def delete_task(self, task_id: str) -> bool:
        """Remove a task. Completed tasks leave a CompletionRecord behind."""
        tasks_file = self._load()
        for i, t in enumerate(tasks_file.tasks):
            if t.id == task_id:
                task = tasks_file.tasks.pop(i)
                break
        else:
            return False
        if task.completed and task.completed_at:
            tasks_file.history.append(CompletionRecord.from_task(task))
        self._save(tasks_file)
        self._notify("delete", task)
        if self.remote is not None:
            run_off_loop(self.remote.delete_task, task_id)
        return True

    def sync_from_remote(self, user_id: str) -> int:
        """Pull remote tasks into the local store (remote wins per id).

        Returns the number of tasks pulled; 0 when offline, keeping local data.
        """
        if self.remote is None:
            return 0
        fetched = self.remote.fetch_tasks(user_id)
        if not fetched:
            return 0
        tasks_file = self._load()
        by_id = {t.id: i for i, t in enumerate(tasks_file.tasks)}
        for task in fetched:
            if task.id in by_id:
                tasks_file.tasks[by_id[task.id]] = task
            else:
                tasks_file.tasks.append(task)
        self._save(tasks_file)
        for task in fetched:
            self._notify("upsert", task)
        logger.info("pulled %d tasks from remote for user %s", len(fetched), user_id)
        return len(fetched)

    def clear_local_data(self, user_id: str) -> int:
        """Drop a user's tasks and history from the local store (logout)."""
        tasks_file = self._load()
        removed = [t for t in tasks_file.tasks if t.user_id == user_id]
        tasks_file.tasks = [t for t in tasks_file.tasks if t.user_id != user_id]
        tasks_file.history = [h for h in tasks_file.history if h.user_id != user_id]
        self._save(tasks_file)
        for task in removed:
            self._notify("delete", task)
        return len(removed)

    # ── Change notification ───────────────────────────────────

    def subscribe(self, listener: TaskListener) -> Callable[[], None]:
        """Register a change listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def observe_tasks(self, user_id: str) -> AsyncIterator[list[Task]]:
        """Yield the user's task list now and again after every change."""
        queue: asyncio.Queue[None] = asyncio.Queue()
        entry = (user_id, queue)
        self._watchers.append(entry)
        try:
            yield self.list_tasks(user_id)
            while True:
                await queue.get()
                # coalesce bursts of writes into one delivery
                while not queue.empty():
                    queue.get_nowait()
                yield self.list_tasks(user_id)
        finally:
            self._watchers.remove(entry)

    def _notify(self, event: str, task: Task) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, task)
            except Exception:
                logger.exception("task listener failed on %s %s", event, task.id)
        for user_id, queue in self._watchers:
            if user_id == task.user_id:
                queue.put_nowait(None)
