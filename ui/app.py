from __future__ import annotations

import os
import secrets
from pathlib import Path
from typing import Any, Sequence

from fastapi import Body, Depends, FastAPI, HTTPException, status
from fastapi.responses import HTMLResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from focustree import (
    FocusSession,
    RemoteSync,
    Settings,
    Subtask,
    TaskRepository,
    completion_ratio,
    create_task as core_create_task,
    delete_task as core_delete_task,
    event_runner,
    filter_tasks,
    format_path,
    load_settings,
    open_focus_session,
    toggle_subtask,
    toggle_task_complete,
    update_task as core_update_task,
    workspace_root as _workspace_root,
)


# ── HTML helpers ──────────────────────────────────────────────

def _escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def _render_subtasks(subtasks: Sequence[Subtask], prefix: tuple[int, ...] = ()) -> str:
    """Nested checklist; each item carries its path for the toggle endpoint."""
    if not subtasks:
        return ""
    items = []
    for i, sub in enumerate(subtasks):
        path = prefix + (i,)
        mark = "x" if sub.completed else " "
        minutes = f' <span class="muted">{sub.duration}m</span>' if sub.is_leaf else ""
        items.append(
            f'<li data-path="{format_path(path)}">[{mark}] {_escape(sub.title)}{minutes}'
            f"{_render_subtasks(sub.children, path)}</li>"
        )
    return "<ul>" + "".join(items) + "</ul>"


# ── Auth ──────────────────────────────────────────────────────

app = FastAPI(title="FocusTree UI", version="0.1.0")

security = HTTPBasic(auto_error=False)


def get_current_user(credentials: HTTPBasicCredentials | None = Depends(security)) -> str:
    expected_username = os.environ.get("FOCUSTREE_USERNAME", "")
    expected_password = os.environ.get("FOCUSTREE_PASSWORD", "")

    if not expected_username or not expected_password:
        return "guest"
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )

    correct_username = secrets.compare_digest(credentials.username.encode("utf-8"), expected_username.encode("utf-8"))
    correct_password = secrets.compare_digest(credentials.password.encode("utf-8"), expected_password.encode("utf-8"))

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


# ── Shared state ──────────────────────────────────────────────

# One repository per data root so focus sessions see deletions made
# through any endpoint; one focus session per (root, user).
_repositories: dict[Path, TaskRepository] = {}
_sessions: dict[tuple[Path, str], FocusSession] = {}


def _settings() -> Settings:
    return load_settings(_workspace_root())


def get_repository() -> TaskRepository:
    root = _workspace_root()
    repo = _repositories.get(root)
    if repo is None:
        repo = TaskRepository(root, RemoteSync.from_settings(_settings()))
        _repositories[root] = repo
    return repo


def _user_id(username: str) -> str:
    return _settings().user_id if username == "guest" else username


def _session_for(username: str) -> FocusSession:
    session = _sessions.get((_workspace_root(), username))
    if session is None or not session.state.active:
        raise HTTPException(status_code=409, detail="No open focus session.")
    return session


def _task_or_404(repo: TaskRepository, task_id: str):
    task = repo.get_task(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    return task


def _task_payload(task) -> dict[str, Any]:
    d = task.to_dict()
    d["progress"] = round(completion_ratio(task.subtasks), 3)
    return d


# ── Pages ─────────────────────────────────────────────────────

@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"ok": "true"}


@app.get("/", response_class=HTMLResponse)
def index(
    username: str = Depends(get_current_user),
    repo: TaskRepository = Depends(get_repository),
) -> HTMLResponse:
    sections = []
    tasks = repo.list_tasks(_user_id(username))
    for block in ("morning", "evening", "night"):
        rows = []
        for task in filter_tasks(tasks, block=block):
            done = "done" if task.completed else f"{completion_ratio(task.subtasks):.0%}"
            rows.append(
                f'<div class="task" id="task-{_escape(task.id)}">'
                f'<h3>{_escape(task.title)} <span class="pill">{_escape(task.priority)}</span> '
                f'<span class="muted">{done}</span></h3>'
                f"{_render_subtasks(task.subtasks)}</div>"
            )
        body = "".join(rows) or '<p class="muted">(no tasks)</p>'
        sections.append(f"<section><h2>{block.title()}</h2>{body}</section>")
    html = (
        "<!doctype html><html><head><meta charset='utf-8'><title>FocusTree</title></head>"
        f"<body><h1>FocusTree</h1>{''.join(sections)}</body></html>"
    )
    return HTMLResponse(html)


# ── Tasks ─────────────────────────────────────────────────────

@app.get("/api/tasks")
def api_list_tasks(
    priority: str = "all",
    block: str | None = None,
    username: str = Depends(get_current_user),
    repo: TaskRepository = Depends(get_repository),
) -> dict[str, Any]:
    tasks = filter_tasks(repo.list_tasks(_user_id(username)), priority=priority, block=block)
    return {"tasks": [_task_payload(t) for t in tasks]}


@app.post("/api/tasks")
def api_create_task(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    repo: TaskRepository = Depends(get_repository),
) -> dict[str, Any]:
    task, errors = core_create_task(repo, payload, _user_id(username))
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))
    return {"ok": True, "task": _task_payload(task)}


@app.get("/api/tasks/{task_id}")
def api_get_task(
    task_id: str,
    username: str = Depends(get_current_user),
    repo: TaskRepository = Depends(get_repository),
) -> dict[str, Any]:
    return {"task": _task_payload(_task_or_404(repo, task_id))}


@app.put("/api/tasks/{task_id}")
def api_update_task(
    task_id: str,
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    repo: TaskRepository = Depends(get_repository),
) -> dict[str, Any]:
    _task_or_404(repo, task_id)
    updated, errors = core_update_task(repo, task_id, payload)
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))
    return {"ok": True, "task": _task_payload(updated)}


@app.delete("/api/tasks/{task_id}")
def api_delete_task(
    task_id: str,
    username: str = Depends(get_current_user),
    repo: TaskRepository = Depends(get_repository),
) -> dict[str, Any]:
    if not core_delete_task(repo, task_id):
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    return {"ok": True, "task_id": task_id}


@app.post("/api/tasks/{task_id}/toggle")
def api_toggle_task(
    task_id: str,
    username: str = Depends(get_current_user),
    repo: TaskRepository = Depends(get_repository),
) -> dict[str, Any]:
    task = toggle_task_complete(repo, task_id, on_event=event_runner(repo.root))
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    return {"ok": True, "task": _task_payload(task)}


@app.post("/api/tasks/{task_id}/subtasks/toggle")
def api_toggle_subtask(
    task_id: str,
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    repo: TaskRepository = Depends(get_repository),
) -> dict[str, Any]:
    """Toggle a subtask by path ("0-1-2" or [0, 1, 2])."""
    raw_path = payload.get("path")
    if not isinstance(raw_path, (str, list)):
        raise HTTPException(status_code=400, detail="path must be a string or a list of integers")
    try:
        task = toggle_subtask(repo, task_id, raw_path, on_event=event_runner(repo.root))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    return {"ok": True, "task": _task_payload(task)}


@app.get("/api/history")
def api_history(
    username: str = Depends(get_current_user),
    repo: TaskRepository = Depends(get_repository),
) -> dict[str, Any]:
    return {"history": [h.to_dict() for h in repo.history(_user_id(username))]}


@app.post("/api/sync")
def api_sync(
    username: str = Depends(get_current_user),
    repo: TaskRepository = Depends(get_repository),
) -> dict[str, Any]:
    """Pull tasks from the remote backend (no-op when offline)."""
    return {"ok": True, "pulled": repo.sync_from_remote(_user_id(username))}


# ── Focus sessions ────────────────────────────────────────────
# async endpoints: the countdown runs as a task on the server's event loop

@app.post("/api/focus/open")
async def api_focus_open(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    repo: TaskRepository = Depends(get_repository),
) -> dict[str, Any]:
    task = _task_or_404(repo, str(payload.get("task_id", "")))
    key = (_workspace_root(), username)
    previous = _sessions.get(key)
    if previous is not None:
        previous.close()
    session = open_focus_session(repo, task, _settings(), on_event=event_runner(repo.root))
    _sessions[key] = session
    return {"ok": True, "state": session.state.to_dict()}


@app.get("/api/focus/current")
async def api_focus_current(username: str = Depends(get_current_user)) -> dict[str, Any]:
    session = _sessions.get((_workspace_root(), username))
    if session is None:
        return {"state": None}
    return {"state": session.state.to_dict()}


def _minutes(value: Any) -> int:
    if isinstance(value, bool):
        raise HTTPException(status_code=400, detail="minutes must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="minutes must be an integer")


@app.post("/api/focus/break")
async def api_focus_break(
    payload: dict[str, Any] = Body(default={}),
    username: str = Depends(get_current_user),
) -> dict[str, Any]:
    session = _session_for(username)
    minutes = payload.get("minutes")
    session.toggle_break_mode(_minutes(minutes) if minutes is not None else None)
    return {"ok": True, "state": session.state.to_dict()}


@app.post("/api/focus/break_duration")
async def api_focus_break_duration(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
) -> dict[str, Any]:
    session = _session_for(username)
    session.set_break_duration(_minutes(payload.get("minutes", 0)))
    return {"ok": True, "state": session.state.to_dict()}


@app.post("/api/focus/navigate")
async def api_focus_navigate(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
) -> dict[str, Any]:
    direction = payload.get("direction")
    if direction not in (-1, 1):
        raise HTTPException(status_code=400, detail="direction must be -1 or 1")
    session = _session_for(username)
    session.navigate_leaf(direction)
    return {"ok": True, "state": session.state.to_dict()}


_FOCUS_ACTIONS = {
    "toggle": FocusSession.toggle_timer,
    "pause": FocusSession.pause_timer,
    "reset": FocusSession.reset_timer,
    "skip": FocusSession.complete_timer,
    "close": FocusSession.close,
}


@app.post("/api/focus/{action}")
async def api_focus_action(action: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    handler = _FOCUS_ACTIONS.get(action)
    if handler is None:
        raise HTTPException(status_code=404, detail=f"Unknown focus action: {action}")
    session = _session_for(username)
    handler(session)
    return {"ok": True, "state": session.state.to_dict()}


def main() -> None:
    import uvicorn

    from focustree.logging_setup import setup_logging
    from focustree.workspace import log_dir

    settings = _settings()
    setup_logging(log_dir=log_dir(_workspace_root()), console_level=settings.log_level)
    uvicorn.run(app, host=os.environ.get("FOCUSTREE_HOST", "127.0.0.1"), port=int(os.environ.get("FOCUSTREE_PORT", "8000")))


if __name__ == "__main__":
    main()
