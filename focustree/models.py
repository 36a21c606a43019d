"""Typed dataclasses for the FocusTree data model.

Subtask trees and tasks are immutable: every mutation returns a new object
via dataclasses.replace, so an old tree is always safe to diff or observe.
All models use from_dict/to_dict for YAML/JSON serialization.
camelCase keys are accepted when reading; snake_case is written.
Unknown keys are ignored; missing keys use defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


VALID_BLOCKS = ("morning", "evening", "night")
VALID_PRIORITIES = ("IAP", "IBNU", "NIBU", "NINU")

DEFAULT_SUBTASK_MINUTES = 15


def _get(d: dict[str, Any], key: str, alias: str, default: Any = None) -> Any:
    return d.get(key, d.get(alias, default))


# ── Subtasks ──────────────────────────────────────────────────


@dataclass(frozen=True)
class Subtask:
    """A node in a task's subtask tree. Nodes with children are composite."""

    id: str = ""
    title: str = ""
    completed: bool = False
    duration: int = DEFAULT_SUBTASK_MINUTES  # minutes
    link: str = ""
    comment: str = ""
    children: tuple[Subtask, ...] = ()

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Subtask:
        if not d or not isinstance(d, dict):
            return cls()
        try:
            duration = int(d.get("duration", DEFAULT_SUBTASK_MINUTES))
        except (TypeError, ValueError):
            duration = DEFAULT_SUBTASK_MINUTES
        return cls(
            id=str(d.get("id", "")),
            title=str(d.get("title", "")),
            completed=bool(d.get("completed", False)),
            duration=duration,
            link=str(d.get("link") or ""),
            comment=str(d.get("comment") or ""),
            children=subtasks_from_list(d.get("children")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "completed": self.completed,
            "duration": self.duration,
            "link": self.link,
            "comment": self.comment,
            "children": [c.to_dict() for c in self.children],
        }


def subtasks_from_list(items: Any) -> tuple[Subtask, ...]:
    if not isinstance(items, (list, tuple)):
        return ()
    return tuple(Subtask.from_dict(s) for s in items if isinstance(s, dict))


# ── Tasks ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Task:
    id: str = ""
    user_id: str = ""
    title: str = ""
    block: str = "morning"  # morning, evening, night
    priority: str = "IAP"  # IAP, IBNU, NIBU, NINU
    # estimate used when the task has no leaf subtasks
    hours: int = 0
    minutes: int = 0
    notes: str = ""
    subtasks: tuple[Subtask, ...] = ()
    completed: bool = False
    completed_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def estimated_minutes(self) -> int:
        return self.hours * 60 + self.minutes

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Task:
        if not d or not isinstance(d, dict):
            return cls()
        return cls(
            id=str(d.get("id", "")),
            user_id=str(_get(d, "user_id", "userId", "")),
            title=str(d.get("title", "")),
            block=str(d.get("block", "morning")),
            priority=str(d.get("priority", "IAP")),
            hours=int(d.get("hours", 0) or 0),
            minutes=int(d.get("minutes", 0) or 0),
            notes=str(d.get("notes") or ""),
            subtasks=subtasks_from_list(d.get("subtasks")),
            completed=bool(d.get("completed", False)),
            completed_at=_get(d, "completed_at", "completedAt"),
            created_at=_get(d, "created_at", "createdAt"),
            updated_at=_get(d, "updated_at", "updatedAt"),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "block": self.block,
            "priority": self.priority,
            "hours": self.hours,
            "minutes": self.minutes,
            "notes": self.notes,
            "subtasks": [s.to_dict() for s in self.subtasks],
            "completed": self.completed,
            "completed_at": self.completed_at,
        }
        if self.created_at:
            d["created_at"] = self.created_at
        if self.updated_at:
            d["updated_at"] = self.updated_at
        return d


@dataclass(frozen=True)
class CompletionRecord:
    """History row kept when a completed task is deleted."""

    user_id: str = ""
    task_id: str = ""
    title: str = ""
    block: str = ""
    priority: str = ""
    completed_at: str = ""
    date_key: str = ""

    @classmethod
    def from_task(cls, task: Task) -> CompletionRecord:
        completed_at = task.completed_at or ""
        return cls(
            user_id=task.user_id,
            task_id=task.id,
            title=task.title,
            block=task.block,
            priority=task.priority,
            completed_at=completed_at,
            date_key=completed_at.split("T")[0],
        )

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> CompletionRecord:
        return cls(
            user_id=str(_get(d, "user_id", "userId", "")),
            task_id=str(_get(d, "task_id", "taskId", "")),
            title=str(d.get("title", "")),
            block=str(d.get("block", "")),
            priority=str(d.get("priority", "")),
            completed_at=str(_get(d, "completed_at", "completedAt", "")),
            date_key=str(_get(d, "date_key", "dateKey", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "task_id": self.task_id,
            "title": self.title,
            "block": self.block,
            "priority": self.priority,
            "completed_at": self.completed_at,
            "date_key": self.date_key,
        }


@dataclass
class TasksFile:
    tasks: list[Task] = field(default_factory=list)
    history: list[CompletionRecord] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> TasksFile:
        if not d or not isinstance(d, dict):
            return cls()
        return cls(
            tasks=[Task.from_dict(t) for t in (d.get("tasks") or [])],
            history=[CompletionRecord.from_dict(h) for h in (d.get("history") or [])],
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"tasks": [t.to_dict() for t in self.tasks]}
        if self.history:
            d["history"] = [h.to_dict() for h in self.history]
        return d


# ── Focus Session ─────────────────────────────────────────────


@dataclass(frozen=True)
class FocusState:
    """Snapshot of a focus session, emitted to observers on every change."""

    active: bool = False
    paused: bool = True
    break_mode: bool = False
    total_seconds: int = 0
    remaining_seconds: int = 0
    task_id: str = ""
    task_title: str = "Focus Session"
    subtask_title: str | None = None
    subtask_index: int = 0  # index into the flattened leaf list
    total_leaf_subtasks: int = 0
    completed_subtasks: int = 0
    break_seconds: int = 5 * 60
    saved_work_remaining: int = 0
    saved_work_total: int = 0
    quote: str = ""
    quote_author: str = ""

    @property
    def mode(self) -> str:
        if not self.active:
            return "closed"
        return "break" if self.break_mode else "work"

    def to_dict(self) -> dict[str, Any]:
        return {
            "active": self.active,
            "mode": self.mode,
            "paused": self.paused,
            "breakMode": self.break_mode,
            "totalSeconds": self.total_seconds,
            "remainingSeconds": self.remaining_seconds,
            "taskId": self.task_id,
            "taskTitle": self.task_title,
            "subtaskTitle": self.subtask_title,
            "subtaskIndex": self.subtask_index,
            "totalLeafSubtasks": self.total_leaf_subtasks,
            "completedSubtasks": self.completed_subtasks,
            "breakSeconds": self.break_seconds,
            "quote": self.quote,
            "quoteAuthor": self.quote_author,
        }
