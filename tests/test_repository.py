"""Tests for focustree/repository.py and focustree/sync.py."""

import asyncio
import json
import time
from dataclasses import replace

import httpx
import pytest

from focustree.background import drain
from focustree.models import Task
from focustree.repository import TaskRepository
from focustree.sync import RemoteSync


def _remote(handler) -> RemoteSync:
    client = httpx.Client(base_url="https://db.example.com", transport=httpx.MockTransport(handler))
    return RemoteSync(client=client)


def test_list_tasks_filters_by_user_newest_first(repo):
    assert [t.id for t in repo.list_tasks("local")] == ["inbox-zero", "write-report"]
    assert len(repo.list_tasks()) == 3


def test_missing_file_is_empty(tmp_path):
    repo = TaskRepository(tmp_path)
    assert repo.list_tasks() == []
    assert repo.get_task("x") is None


def test_upsert_stamps_and_replaces(repo):
    task = repo.get_task("inbox-zero")
    stored = repo.upsert_task(replace(task, title="Inbox 0"))
    assert stored.updated_at
    assert repo.get_task("inbox-zero").title == "Inbox 0"
    assert len(repo.list_tasks()) == 3


def test_delete_completed_task_records_history(repo):
    task = repo.get_task("inbox-zero")
    repo.upsert_task(replace(task, completed=True, completed_at="2026-02-11T10:00:00+00:00"))
    assert repo.delete_task("inbox-zero")
    history = repo.history("local")
    assert len(history) == 1
    assert history[0].task_id == "inbox-zero"
    assert history[0].date_key == "2026-02-11"


def test_delete_incomplete_task_leaves_no_history(repo):
    repo.delete_task("inbox-zero")
    assert repo.history() == []


def test_subscribe_and_unsubscribe(repo):
    events = []
    unsubscribe = repo.subscribe(lambda event, task: events.append((event, task.id)))
    repo.delete_task("inbox-zero")
    unsubscribe()
    repo.delete_task("write-report")
    assert events == [("delete", "inbox-zero")]


def test_failing_listener_does_not_break_writes(repo):
    def broken(event, task):
        raise RuntimeError("boom")

    repo.subscribe(broken)
    assert repo.delete_task("inbox-zero")
    assert repo.get_task("inbox-zero") is None


def test_clear_local_data(repo):
    assert repo.clear_local_data("local") == 2
    assert [t.id for t in repo.list_tasks()] == ["someone-else"]


@pytest.mark.asyncio
async def test_observe_tasks_emits_on_change(repo):
    stream = repo.observe_tasks("local")
    first = await stream.__anext__()
    assert len(first) == 2
    repo.delete_task("inbox-zero")
    second = await stream.__anext__()
    assert [t.id for t in second] == ["write-report"]
    await stream.aclose()


@pytest.mark.asyncio
async def test_observe_tasks_coalesces_bursts(repo):
    stream = repo.observe_tasks("local")
    await stream.__anext__()
    repo.delete_task("inbox-zero")
    repo.delete_task("write-report")
    latest = await stream.__anext__()
    assert latest == []
    await stream.aclose()


# ── Remote sync ───────────────────────────────────────────────


def test_upsert_pushes_to_remote(workspace):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201)

    repo = TaskRepository(workspace, _remote(handler))
    repo.upsert_task(Task(id="n", user_id="local", title="New"))
    assert seen[0].method == "POST"
    assert seen[0].url.path == "/rest/v1/tasks"
    assert seen[0].headers["Prefer"] == "resolution=merge-duplicates"
    assert json.loads(seen[0].content)["id"] == "n"


@pytest.mark.asyncio
async def test_upsert_inside_event_loop_pushes_off_loop(workspace):
    seen = []

    def slow_handler(request: httpx.Request) -> httpx.Response:
        time.sleep(0.3)
        seen.append(request)
        return httpx.Response(201)

    repo = TaskRepository(workspace, _remote(slow_handler))
    loop = asyncio.get_running_loop()
    started = loop.time()
    stored = repo.upsert_task(Task(id="n", user_id="local", title="New"))
    assert loop.time() - started < 0.2
    assert repo.get_task("n") == stored
    assert seen == []

    await drain()
    assert seen[0].method == "POST"
    assert json.loads(seen[0].content)["id"] == "n"


def test_remote_failure_is_swallowed(workspace):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    repo = TaskRepository(workspace, _remote(handler))
    stored = repo.upsert_task(Task(id="n", user_id="local", title="New"))
    assert repo.get_task("n") == stored
    assert repo.delete_task("n")


def test_remote_http_error_returns_false():
    remote = _remote(lambda request: httpx.Response(500))
    assert remote.push_task(Task(id="x")) is False
    assert remote.delete_task("x") is False
    assert remote.fetch_tasks("local") is None


def test_delete_sends_filter():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    assert _remote(handler).delete_task("abc")
    assert seen[0].method == "DELETE"
    assert seen[0].url.params["id"] == "eq.abc"


def test_sync_from_remote_merges(workspace):
    rows = [
        {"id": "inbox-zero", "user_id": "local", "title": "Inbox (remote)"},
        {"id": "remote-only", "user_id": "local", "title": "From phone"},
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["user_id"] == "eq.local"
        return httpx.Response(200, json=rows)

    repo = TaskRepository(workspace, _remote(handler))
    assert repo.sync_from_remote("local") == 2
    assert repo.get_task("inbox-zero").title == "Inbox (remote)"
    assert repo.get_task("remote-only").title == "From phone"
    assert repo.get_task("write-report") is not None


def test_sync_offline_keeps_local(workspace):
    repo = TaskRepository(workspace, _remote(lambda request: httpx.Response(503)))
    assert repo.sync_from_remote("local") == 0
    assert len(repo.list_tasks("local")) == 2


def test_sync_without_remote(repo):
    assert repo.sync_from_remote("local") == 0


def test_from_settings_disabled():
    from focustree.config import Settings

    assert RemoteSync.from_settings(Settings()) is None
