"""Tests for focustree/hooks.py: hook system."""

import asyncio
import json

import pytest
import yaml

from focustree.background import drain
from focustree.hooks import event_runner, load_hooks_config, run_hooks
from focustree.tasks import toggle_subtask


def _write_hooks(workspace, config):
    (workspace / "hooks.yaml").write_text(yaml.dump(config), encoding="utf-8")


def test_run_hooks_no_config(workspace):
    """No hooks.yaml -> no hooks run."""
    assert load_hooks_config(workspace) == {}
    assert run_hooks("on_task_complete", {"taskId": "t"}, workspace) == []


def test_run_hooks_with_echo(workspace):
    """Hook receives the context as JSON on stdin."""
    _write_hooks(workspace, {"on_task_complete": ["cat"]})

    results = run_hooks("on_task_complete", {"taskId": "t"}, workspace)
    assert len(results) == 1
    assert results[0]["exit_code"] == 0
    output = json.loads(results[0]["stdout"])
    assert output["taskId"] == "t"
    assert output["hook"] == "on_task_complete"


def test_run_hooks_invalid_hook_point(workspace):
    assert run_hooks("invalid_point", {}, workspace) == []


def test_run_hooks_failure_reported(workspace):
    _write_hooks(workspace, {"on_focus_open": ["exit 3"]})
    results = run_hooks("on_focus_open", {}, workspace)
    assert results[0]["exit_code"] == 3


def test_run_hooks_timeout(workspace):
    """Test hook timeout protection."""
    _write_hooks(workspace, {"on_leaf_advance": [{"command": "sleep 10", "timeout": 1}]})

    results = run_hooks("on_leaf_advance", {}, workspace)
    assert len(results) == 1
    assert results[0]["exit_code"] == -1
    assert "timed out" in results[0].get("error", "").lower()


def test_event_runner_fires_on_toggle(workspace, repo):
    out = workspace / "toggled.json"
    _write_hooks(workspace, {"on_subtask_toggle": [f"cat > {out}"]})

    toggle_subtask(repo, "write-report", "1-0", on_event=event_runner(workspace))
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload == {"hook": "on_subtask_toggle", "taskId": "write-report", "path": "1-0"}


def test_event_runner_ignores_unknown_events(workspace):
    _write_hooks(workspace, {"on_task_complete": ["exit 1"]})
    event_runner(workspace)("something_else", {})


def test_bad_timeout_falls_back_to_default(workspace):
    _write_hooks(workspace, {"on_task_complete": [{"command": "cat", "timeout": "soon"}]})
    results = run_hooks("on_task_complete", {"taskId": "t"}, workspace)
    assert results[0]["exit_code"] == 0


def test_malformed_entries_are_skipped(workspace):
    _write_hooks(workspace, {"on_task_complete": [42, {"timeout": 3}, "  ", "true"]})
    results = run_hooks("on_task_complete", {}, workspace)
    assert [r["command"] for r in results] == ["true"]


def test_toggle_survives_bad_hook_config(workspace, repo):
    _write_hooks(workspace, {"on_subtask_toggle": [{"command": "cat", "timeout": "soon"}]})
    task = toggle_subtask(repo, "write-report", "0", on_event=event_runner(workspace))
    assert task.subtasks[0].completed
    assert repo.get_task("write-report").subtasks[0].completed


def test_toggle_survives_failing_event_handler(repo):
    def broken(name, context):
        raise RuntimeError("boom")

    task = toggle_subtask(repo, "write-report", "1", on_event=broken)
    assert task.completed is False
    assert repo.get_task("write-report").subtasks[1].completed


@pytest.mark.asyncio
async def test_event_runner_runs_off_loop(workspace):
    out = workspace / "opened.json"
    _write_hooks(workspace, {"on_focus_open": [f"sleep 0.3; cat > {out}"]})

    loop = asyncio.get_running_loop()
    started = loop.time()
    event_runner(workspace)("focus_open", {"taskId": "t"})
    assert loop.time() - started < 0.2
    assert not out.exists()

    await drain()
    assert json.loads(out.read_text(encoding="utf-8"))["taskId"] == "t"
