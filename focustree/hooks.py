"""Shell hooks fired at task and focus-session lifecycle points.

Configured in <root>/hooks.yaml, e.g.:

    on_task_complete:
      - notify-send "Task done"
      - command: ./log.sh
        timeout: 5

Hook points:
- on_subtask_toggle
- on_task_complete
- on_focus_open, on_focus_close
- on_leaf_advance
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Callable

from focustree.background import run_off_loop
from focustree.fileio import read_yaml
from focustree.workspace import hooks_config_path, workspace_root

logger = logging.getLogger(__name__)

VALID_HOOK_POINTS = {
    "on_subtask_toggle",
    "on_task_complete",
    "on_focus_open",
    "on_focus_close",
    "on_leaf_advance",
}

# engine event name -> hook point
EVENT_HOOKS = {
    "subtask_toggle": "on_subtask_toggle",
    "focus_open": "on_focus_open",
    "focus_close": "on_focus_close",
    "leaf_advance": "on_leaf_advance",
    "task_complete": "on_task_complete",
}

DEFAULT_TIMEOUT = 30.0
OUTPUT_LIMIT = 4096


def load_hooks_config(root: Path | None = None) -> dict[str, Any]:
    if root is None:
        root = workspace_root()
    return read_yaml(hooks_config_path(root))


def _timeout(value: Any, command: str) -> float:
    if value is None:
        return DEFAULT_TIMEOUT
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        timeout = 0.0
    if timeout <= 0:
        logger.warning("hook %r has bad timeout %r; using %ss", command, value, DEFAULT_TIMEOUT)
        return DEFAULT_TIMEOUT
    return timeout


def hook_commands(config: dict[str, Any], hook_point: str) -> list[tuple[str, float]]:
    """(command, timeout) pairs registered for *hook_point*, malformed entries skipped."""
    entries = config.get(hook_point)
    if not isinstance(entries, list):
        return []
    commands = []
    for entry in entries:
        if isinstance(entry, dict):
            command, timeout = str(entry.get("command") or ""), entry.get("timeout")
        elif isinstance(entry, str):
            command, timeout = entry, None
        else:
            continue
        if command.strip():
            commands.append((command, _timeout(timeout, command)))
    return commands


def _run_command(command: str, timeout: float, stdin: str, cwd: Path) -> dict[str, Any]:
    try:
        proc = subprocess.run(
            command,
            shell=True,
            input=stdin,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=str(cwd),
        )
    except subprocess.TimeoutExpired:
        return {"exit_code": -1, "error": f"Hook timed out after {timeout:g}s"}
    except Exception as e:
        return {"exit_code": -1, "error": str(e)}
    return {
        "exit_code": proc.returncode,
        "stdout": proc.stdout[:OUTPUT_LIMIT],
        "stderr": proc.stderr[:OUTPUT_LIMIT],
    }


def run_hooks(
    hook_point: str,
    context: dict[str, Any],
    root: Path | None = None,
) -> list[dict[str, Any]]:
    """Run every command registered for *hook_point*, in order.

    The context is passed as JSON on stdin. Failures and timeouts are
    reported in the result dicts, never raised.
    """
    if hook_point not in VALID_HOOK_POINTS:
        return []
    if root is None:
        root = workspace_root()

    try:
        commands = hook_commands(load_hooks_config(root), hook_point)
    except Exception:
        logger.warning("could not read hooks config under %s", root, exc_info=True)
        return []

    stdin = json.dumps({"hook": hook_point, **context}, ensure_ascii=False, default=str)
    results = []
    for command, timeout in commands:
        result = {"command": command, "hook_point": hook_point}
        result.update(_run_command(command, timeout, stdin, root))
        if result["exit_code"] != 0:
            logger.warning("hook %r for %s exited %s", command, hook_point, result["exit_code"])
        results.append(result)
    return results


def event_runner(root: Path | None = None) -> Callable[[str, dict[str, Any]], None]:
    """Adapter turning task and focus-session events into hook runs.

    Hooks run on a worker thread when called from inside an event loop.
    """

    def on_event(name: str, context: dict[str, Any]) -> None:
        hook_point = EVENT_HOOKS.get(name)
        if hook_point:
            run_off_loop(run_hooks, hook_point, context, root)

    return on_event
