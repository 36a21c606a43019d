"""Settings for FocusTree, loaded from settings.yaml with env overrides.

Precedence: FOCUSTREE_* environment variables > settings.yaml > defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from focustree.fileio import read_yaml
from focustree.workspace import settings_path, workspace_root

ENV_PREFIX = "FOCUSTREE"


def _k(suffix: str) -> str:
    return f"{ENV_PREFIX}_{suffix}"


def _env_str(name: str) -> str | None:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return None
    return v.strip()


def _env_float(name: str) -> float | None:
    raw = _env_str(name)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _env_int(name: str) -> int | None:
    raw = _env_str(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _optional_float(value: Any, default: float | None) -> float | None:
    if value is None:
        return default
    if isinstance(value, str) and value.strip().lower() in {"", "none", "off"}:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Settings:
    user_id: str = "local"
    break_minutes: int = 5
    # seconds before a freshly opened session starts counting; None disables
    auto_start_delay: float | None = 0.5
    tick_seconds: float = 1.0
    min_timer_seconds: int = 1
    remote_url: str = ""
    remote_api_key: str = ""
    remote_timeout: float = 5.0
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Settings:
        if not d or not isinstance(d, dict):
            return cls()
        remote = d.get("remote") if isinstance(d.get("remote"), dict) else {}
        return cls(
            user_id=str(d.get("user_id", "local")),
            break_minutes=int(d.get("break_minutes", 5)),
            auto_start_delay=_optional_float(d.get("auto_start_delay", 0.5), 0.5),
            tick_seconds=float(d.get("tick_seconds", 1.0)),
            min_timer_seconds=max(1, int(d.get("min_timer_seconds", 1))),
            remote_url=str(remote.get("url", "")),
            remote_api_key=str(remote.get("api_key", "")),
            remote_timeout=float(remote.get("timeout", 5.0)),
            log_level=str(d.get("log_level", "INFO")).upper(),
        )

    @property
    def remote_enabled(self) -> bool:
        return bool(self.remote_url)


def _apply_env(settings: Settings) -> Settings:
    updates: dict[str, Any] = {
        "user_id": _env_str(_k("USER_ID")),
        "break_minutes": _env_int(_k("BREAK_MINUTES")),
        "tick_seconds": _env_float(_k("TICK_SECONDS")),
        "remote_url": _env_str(_k("REMOTE_URL")),
        "remote_api_key": _env_str(_k("REMOTE_API_KEY")),
        "log_level": _env_str(_k("LOG_LEVEL")),
    }
    updates = {k: v for k, v in updates.items() if v is not None}
    if "log_level" in updates:
        updates["log_level"] = updates["log_level"].upper()
    raw_delay = os.getenv(_k("AUTO_START_DELAY"))
    if raw_delay is not None:
        updates["auto_start_delay"] = _optional_float(raw_delay, settings.auto_start_delay)
    return replace(settings, **updates) if updates else settings


def load_settings(root: Path | None = None) -> Settings:
    """Load settings.yaml from the data root and apply env overrides."""
    if root is None:
        root = workspace_root()
    return _apply_env(Settings.from_dict(read_yaml(settings_path(root))))
