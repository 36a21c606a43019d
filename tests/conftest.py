"""Shared test fixtures for FocusTree tests."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
import yaml

from focustree.config import Settings
from focustree.models import Subtask, Task
from focustree.repository import TaskRepository


def leaf(title: str, duration: int = 15, completed: bool = False) -> Subtask:
    return Subtask(id=title.lower(), title=title, duration=duration, completed=completed)


def node(title: str, *children: Subtask, completed: bool = False) -> Subtask:
    return Subtask(id=title.lower(), title=title, completed=completed, children=tuple(children))


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a temporary data root with settings and a few tasks."""
    root = tmp_path / "workspace"
    root.mkdir(parents=True)

    settings = {
        "user_id": "local",
        "break_minutes": 5,
        "auto_start_delay": "off",
        "tick_seconds": 0.001,
    }
    (root / "settings.yaml").write_text(
        yaml.dump(settings, default_flow_style=False), encoding="utf-8"
    )

    tasks = {
        "tasks": [
            {
                "id": "write-report",
                "user_id": "local",
                "title": "Write report",
                "block": "morning",
                "priority": "IAP",
                "created_at": "2026-02-10T08:00:00+00:00",
                "subtasks": [
                    {"id": "a", "title": "A", "duration": 10},
                    {
                        "id": "b",
                        "title": "B",
                        "children": [
                            {"id": "b1", "title": "B1", "duration": 5},
                            {"id": "b2", "title": "B2", "duration": 5},
                        ],
                    },
                ],
            },
            {
                "id": "inbox-zero",
                "user_id": "local",
                "title": "Inbox zero",
                "block": "evening",
                "priority": "NIBU",
                "minutes": 20,
                "created_at": "2026-02-11T08:00:00+00:00",
            },
            {
                "id": "someone-else",
                "user_id": "other",
                "title": "Not mine",
                "created_at": "2026-02-09T08:00:00+00:00",
            },
        ],
    }
    (root / "tasks.yaml").write_text(
        yaml.dump(tasks, default_flow_style=False), encoding="utf-8"
    )

    os.environ["FOCUSTREE_ROOT"] = str(root)
    yield root
    if "FOCUSTREE_ROOT" in os.environ:
        del os.environ["FOCUSTREE_ROOT"]


@pytest.fixture
def repo(workspace: Path) -> TaskRepository:
    return TaskRepository(workspace)


@pytest.fixture
def settings() -> Settings:
    """Fast timers and no auto-start, so tests drive the countdown."""
    return Settings(auto_start_delay=None, tick_seconds=0.001)


@pytest.fixture
def report_task() -> Task:
    """[A(leaf), B(composite: [B1(leaf), B2(leaf)])]"""
    return Task(
        id="t1",
        user_id="local",
        title="Report",
        subtasks=(leaf("A", 10), node("B", leaf("B1", 5), leaf("B2", 5))),
    )
