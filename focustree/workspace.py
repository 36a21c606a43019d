"""Data root, path helpers and timestamps for FocusTree."""

from __future__ import annotations

import os
import uuid
from datetime import datetime, timezone
from pathlib import Path


def workspace_root() -> Path:
    """Get the data root directory (holds tasks.yaml, settings.yaml, logs/)."""
    return Path(
        os.environ.get("FOCUSTREE_ROOT", str(Path.home() / ".focustree"))
    ).expanduser().resolve()


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string, second precision."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def generate_id() -> str:
    return str(uuid.uuid4())


# ── Path helpers ──────────────────────────────────────────────

def tasks_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "tasks.yaml"


def settings_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "settings.yaml"


def hooks_config_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "hooks.yaml"


def log_dir(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "logs"
