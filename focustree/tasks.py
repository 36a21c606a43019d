"""Task CRUD, subtask toggling and focus-session entry points for FocusTree."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Sequence

from focustree.completion import are_all_subtasks_complete, toggle, toggle_task_completed
from focustree.config import Settings
from focustree.focus import FocusSession
from focustree.models import VALID_BLOCKS, VALID_PRIORITIES, Subtask, Task
from focustree.paths import format_path, parse_path
from focustree.repository import TaskRepository
from focustree.workspace import generate_id, now_iso

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, dict[str, Any]], None]

# fields a caller may never overwrite through update_task
_PROTECTED_FIELDS = {"id", "user_id", "created_at"}


# ── Validation ────────────────────────────────────────────────


def _validate_subtasks(items: Any, where: str, errors: list[str]) -> None:
    if not isinstance(items, (list, tuple)):
        errors.append(f"{where} must be a list")
        return
    for i, sub in enumerate(items):
        label = f"{where}[{i}]"
        if not isinstance(sub, dict):
            errors.append(f"{label} must be a mapping")
            continue
        if not str(sub.get("title", "")).strip():
            errors.append(f"{label}: missing title")
        if "duration" in sub and (
            isinstance(sub["duration"], bool) or not isinstance(sub["duration"], (int, float))
        ):
            errors.append(f"{label}: duration must be numeric")
        if "children" in sub:
            _validate_subtasks(sub["children"], f"{label}.children", errors)


def validate_task(task: dict[str, Any]) -> list[str]:
    """Validate a task dict and return a list of errors (empty if valid)."""
    errors = []
    if not str(task.get("title", "")).strip():
        errors.append("Missing required field: title")
    if "block" in task and task["block"] not in VALID_BLOCKS:
        errors.append(f"Invalid block: {task['block']}")
    if "priority" in task and task["priority"] not in VALID_PRIORITIES:
        errors.append(f"Invalid priority: {task['priority']}")
    for key in ("hours", "minutes"):
        if key in task:
            value = task[key]
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                errors.append(f"{key} must be a non-negative integer")
    if "subtasks" in task:
        _validate_subtasks(task["subtasks"], "subtasks", errors)
    return errors


def _with_ids(subtasks: Sequence[Subtask]) -> tuple[Subtask, ...]:
    """Give every node without an id a fresh one."""
    return tuple(
        replace(s, id=s.id or generate_id(), children=_with_ids(s.children))
        for s in subtasks
    )


def _stamp_completion(before: Task, after: Task) -> Task:
    if after.completed and not before.completed:
        return replace(after, completed_at=now_iso())
    if not after.completed and before.completed:
        return replace(after, completed_at=None)
    return after


def _emit(on_event: EventHandler | None, name: str, context: dict[str, Any]) -> None:
    if on_event is None:
        return
    try:
        on_event(name, context)
    except Exception:
        logger.exception("event handler failed for %s", name)


# ── CRUD ──────────────────────────────────────────────────────


def create_task(
    repo: TaskRepository, task_data: dict[str, Any], user_id: str
) -> tuple[Task | None, list[str]]:
    """Create and store a new task. Returns (task, errors)."""
    errors = validate_task(task_data)
    if errors:
        return None, errors

    task_id = str(task_data.get("id") or generate_id())
    if repo.get_task(task_id):
        return None, [f"Task ID already exists: {task_id}"]

    task = Task.from_dict({**task_data, "id": task_id, "user_id": user_id})
    subtasks = _with_ids(task.subtasks)
    now = now_iso()
    completed = are_all_subtasks_complete(subtasks)
    task = replace(
        task,
        subtasks=subtasks,
        completed=completed,
        completed_at=now if completed else None,
        created_at=now,
    )
    return repo.upsert_task(task), []


def update_task(
    repo: TaskRepository, task_id: str, updates: dict[str, Any]
) -> tuple[Task | None, list[str]]:
    """Update a task in place by id. Returns (updated_task, errors)."""
    task = repo.get_task(task_id)
    if task is None:
        return None, [f"Task not found: {task_id}"]

    task_dict = task.to_dict()
    task_dict.update({k: v for k, v in updates.items() if k not in _PROTECTED_FIELDS})
    errors = validate_task(task_dict)
    if errors:
        return None, errors

    updated = Task.from_dict(task_dict)
    updated = replace(updated, subtasks=_with_ids(updated.subtasks))
    if updated.subtasks:
        updated = replace(updated, completed=are_all_subtasks_complete(updated.subtasks))
    updated = _stamp_completion(task, updated)
    return repo.upsert_task(updated), []


def delete_task(repo: TaskRepository, task_id: str) -> bool:
    return repo.delete_task(task_id)


def toggle_task_complete(
    repo: TaskRepository, task_id: str, on_event: EventHandler | None = None
) -> Task | None:
    """Flip task-level completion (derived through the tree if it has subtasks)."""
    task = repo.get_task(task_id)
    if task is None:
        return None
    updated = _stamp_completion(task, toggle_task_completed(task))
    stored = repo.upsert_task(updated)
    if stored.completed:
        _emit(on_event, "task_complete", {"taskId": stored.id, "title": stored.title})
    return stored


def filter_tasks(
    tasks: Sequence[Task], priority: str = "all", block: str | None = None
) -> list[Task]:
    """Tasks matching a priority filter ('all' for any) and optional block."""
    result = [t for t in tasks if priority == "all" or t.priority == priority]
    if block is not None:
        result = [t for t in result if t.block == block]
    return result


# ── Subtask completion ────────────────────────────────────────


def toggle_subtask(
    repo: TaskRepository,
    task_id: str,
    path: str | Sequence[int],
    on_event: EventHandler | None = None,
) -> Task | None:
    """Toggle the subtask at *path* and persist the result.

    Fire-and-forget: a missing task or stale path is a silent no-op, and a
    failed write is logged while the computed task is still returned.
    Raises ValueError only for a malformed path.
    """
    path = parse_path(path)
    task = repo.get_task(task_id)
    if task is None:
        logger.debug("toggle on missing task %s ignored", task_id)
        return None

    updated = toggle(task, path)
    if updated is task:
        return task
    updated = _stamp_completion(task, updated)

    try:
        stored = repo.upsert_task(updated)
    except Exception:
        logger.warning("could not persist subtask toggle on task %s", task_id, exc_info=True)
        stored = updated

    _emit(on_event, "subtask_toggle", {"taskId": task_id, "path": format_path(path)})
    if stored.completed and not task.completed:
        _emit(on_event, "task_complete", {"taskId": task_id, "title": stored.title})
    return stored


# ── Focus ─────────────────────────────────────────────────────


def open_focus_session(
    repo: TaskRepository,
    task: Task,
    settings: Settings | None = None,
    on_event: EventHandler | None = None,
) -> FocusSession:
    """Open a focus session on *task* and return its handle."""
    session = FocusSession(repo, settings, on_event=on_event)
    session.open(task)
    return session
