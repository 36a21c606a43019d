"""Tests for ui/app.py: the FastAPI front-end."""

import pytest
from fastapi.testclient import TestClient

from ui.app import app


@pytest.fixture
def client(workspace):
    with TestClient(app) as c:
        yield c


def test_healthz(client):
    assert client.get("/healthz").json() == {"ok": "true"}


def test_index_lists_tasks(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert "Write report" in resp.text
    assert 'data-path="1-0"' in resp.text
    assert "Not mine" not in resp.text


def test_basic_auth(client, monkeypatch):
    monkeypatch.setenv("FOCUSTREE_USERNAME", "me")
    monkeypatch.setenv("FOCUSTREE_PASSWORD", "pw")
    assert client.get("/api/tasks").status_code == 401
    assert client.get("/api/tasks", auth=("me", "nope")).status_code == 401
    resp = client.get("/api/tasks", auth=("me", "pw"))
    assert resp.status_code == 200
    assert resp.json()["tasks"] == []


def test_list_and_filter(client):
    tasks = client.get("/api/tasks").json()["tasks"]
    assert [t["id"] for t in tasks] == ["inbox-zero", "write-report"]
    assert tasks[1]["progress"] == 0
    evening = client.get("/api/tasks", params={"block": "evening"}).json()["tasks"]
    assert [t["id"] for t in evening] == ["inbox-zero"]


def test_create_update_delete(client):
    resp = client.post("/api/tasks", json={"title": "New", "subtasks": [{"title": "S"}]})
    assert resp.status_code == 200
    task_id = resp.json()["task"]["id"]

    resp = client.put(f"/api/tasks/{task_id}", json={"title": "Renamed"})
    assert resp.json()["task"]["title"] == "Renamed"

    assert client.delete(f"/api/tasks/{task_id}").status_code == 200
    assert client.get(f"/api/tasks/{task_id}").status_code == 404


def test_create_invalid(client):
    resp = client.post("/api/tasks", json={"title": "x", "priority": "urgent"})
    assert resp.status_code == 400
    assert "Invalid priority" in resp.json()["detail"]


def test_toggle_subtask(client):
    client.post("/api/tasks/write-report/subtasks/toggle", json={"path": "0"})
    resp = client.post("/api/tasks/write-report/subtasks/toggle", json={"path": [1]})
    task = resp.json()["task"]
    assert task["completed"]
    assert task["progress"] == 1.0


def test_toggle_subtask_errors(client):
    assert client.post("/api/tasks/write-report/subtasks/toggle", json={"path": "x-y"}).status_code == 400
    assert client.post("/api/tasks/write-report/subtasks/toggle", json={}).status_code == 400
    assert client.post("/api/tasks/nope/subtasks/toggle", json={"path": "0"}).status_code == 404


def test_toggle_task_and_history(client):
    resp = client.post("/api/tasks/inbox-zero/toggle")
    assert resp.json()["task"]["completed"]
    client.delete("/api/tasks/inbox-zero")
    history = client.get("/api/history").json()["history"]
    assert [h["task_id"] for h in history] == ["inbox-zero"]


def test_sync_offline(client):
    assert client.post("/api/sync").json() == {"ok": True, "pulled": 0}


def test_focus_flow(client):
    assert client.post("/api/focus/toggle").status_code == 409

    state = client.post("/api/focus/open", json={"task_id": "write-report"}).json()["state"]
    assert state["active"]
    assert state["subtaskTitle"] == "A"

    state = client.post("/api/focus/skip").json()["state"]
    assert state["subtaskTitle"] == "B1"
    assert state["completedSubtasks"] == 1

    state = client.post("/api/focus/navigate", json={"direction": 1}).json()["state"]
    assert state["subtaskTitle"] == "B2"
    assert client.post("/api/focus/navigate", json={"direction": 5}).status_code == 400

    state = client.post("/api/focus/break", json={"minutes": 2}).json()["state"]
    assert state["mode"] == "break"
    assert state["remainingSeconds"] == 120

    state = client.post("/api/focus/break").json()["state"]
    assert state["mode"] == "work"

    state = client.post("/api/focus/break_duration", json={"minutes": 7}).json()["state"]
    assert state["breakSeconds"] == 420

    assert client.post("/api/focus/dance").status_code == 404

    client.post("/api/focus/close")
    assert client.get("/api/focus/current").json()["state"]["mode"] == "closed"


def test_focus_last_leaf_completes_task(client):
    client.post("/api/focus/open", json={"task_id": "inbox-zero"})
    state = client.post("/api/focus/skip").json()["state"]
    assert state["remainingSeconds"] == 0
    assert client.get("/api/tasks/inbox-zero").json()["task"]["completed"]


def test_delete_closes_focus_session(client):
    client.post("/api/focus/open", json={"task_id": "write-report"})
    client.delete("/api/tasks/write-report")
    assert client.get("/api/focus/current").json()["state"]["active"] is False


def test_focus_open_missing_task(client):
    assert client.post("/api/focus/open", json={"task_id": "nope"}).status_code == 404


def test_focus_break_rejects_bad_minutes(client):
    client.post("/api/focus/open", json={"task_id": "write-report"})
    resp = client.post("/api/focus/break", json={"minutes": "five"})
    assert resp.status_code == 400
    assert client.post("/api/focus/break_duration", json={"minutes": None}).status_code == 400
    assert client.get("/api/focus/current").json()["state"]["mode"] == "work"


def test_focus_state_carries_quote(client):
    state = client.post("/api/focus/open", json={"task_id": "write-report"}).json()["state"]
    assert state["quote"]
    assert state["quoteAuthor"]
