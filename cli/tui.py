#!/usr/bin/env python3
"""FocusTree TUI: subtask trees and focus sessions, powered by Textual."""

from __future__ import annotations

from typing import Any

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer, Header, Label, Static, Tree
from textual.widgets.tree import TreeNode

from focustree import (
    FocusSession,
    FocusState,
    Settings,
    Subtask,
    Task,
    TaskRepository,
    RemoteSync,
    completion_ratio,
    event_runner,
    load_settings,
    toggle_subtask,
    toggle_task_complete,
    workspace_root,
)
from focustree.logging_setup import setup_logging
from focustree.workspace import log_dir


CSS = """
#main-layout { height: 1fr; }

#tree-pane {
    width: 3fr;
    padding: 0 1;
    border-right: tall $primary-background-darken-2;
}

#focus-pane {
    width: 2fr;
    padding: 0 2;
}

.section-title {
    text-style: bold;
    color: $accent;
    margin: 1 0 0 0;
}

#task-tree { height: 1fr; }

#focus-timer {
    height: auto;
    text-style: bold;
    margin: 1 0;
}

#focus-info { height: auto; color: $text-muted; }
"""

# node data: (task_id, path) where path is None for the task row itself
NodeData = tuple[str, "tuple[int, ...] | None"]


def _fmt_seconds(seconds: int) -> str:
    minutes, secs = divmod(max(0, seconds), 60)
    return f"{minutes:02d}:{secs:02d}"


def _check(done: bool) -> str:
    return "☑" if done else "☐"


def render_focus(state: FocusState) -> tuple[str, str]:
    """Timer line and detail lines for the focus pane."""
    if not state.active:
        return "No focus session", "Select a task and press f."
    icon = "⏸" if state.paused else "▶"
    mode = "BREAK" if state.break_mode else "WORK"
    timer = f"{icon} {mode}  {_fmt_seconds(state.remaining_seconds)} / {_fmt_seconds(state.total_seconds)}"
    lines = [f"Task: {state.task_title}"]
    if state.total_leaf_subtasks:
        lines.append(
            f"Subtask {state.subtask_index + 1}/{state.total_leaf_subtasks}: {state.subtask_title}"
        )
        lines.append(f"Done: {state.completed_subtasks}/{state.total_leaf_subtasks}")
    lines.append(f"Break length: {state.break_seconds // 60} min")
    if state.quote:
        lines.append(f"\n\"{state.quote}\" ({state.quote_author})")
    return timer, "\n".join(lines)


class FocusTreeApp(App):
    """FocusTree: interactive task trees with a focus timer."""

    TITLE = "FocusTree"
    CSS = CSS

    BINDINGS = [
        Binding("space", "toggle_complete", "Check", priority=True),
        Binding("f", "open_focus", "Focus"),
        Binding("p", "toggle_timer", "Play/Pause"),
        Binding("r", "reset_timer", "Reset"),
        Binding("b", "toggle_break", "Break"),
        Binding("plus", "break_longer", "Break +1"),
        Binding("minus", "break_shorter", "Break -1"),
        Binding("left_square_bracket", "prev_leaf", "Prev"),
        Binding("right_square_bracket", "next_leaf", "Next"),
        Binding("k", "skip", "Skip"),
        Binding("x", "close_focus", "Close"),
        Binding("q", "quit_app", "Quit"),
    ]

    def __init__(self, repo: TaskRepository, settings: Settings) -> None:
        super().__init__()
        self._repo = repo
        self._settings = settings
        self._on_event = event_runner(repo.root)
        self._session = FocusSession(repo, settings, on_event=self._on_event)
        self._unsubscribers: list[Any] = []

    def compose(self) -> ComposeResult:
        yield Header()
        yield Horizontal(
            Vertical(
                Label("Tasks", classes="section-title"),
                Tree("Tasks", id="task-tree"),
                id="tree-pane",
            ),
            Vertical(
                Label("Focus", classes="section-title"),
                Static(id="focus-timer"),
                Static(id="focus-info"),
                id="focus-pane",
            ),
            id="main-layout",
        )
        yield Footer()

    def on_mount(self) -> None:
        tree = self.query_one("#task-tree", Tree)
        tree.show_root = False
        self._unsubscribers.append(self._repo.subscribe(lambda _event, _task: self._rebuild_tree()))
        self._unsubscribers.append(self._session.subscribe(self._render_focus))
        self._rebuild_tree()
        self._render_focus(self._session.state)
        tree.focus()

    # ── Rendering ──────────────────────────────────────────────

    def _rebuild_tree(self) -> None:
        tree = self.query_one("#task-tree", Tree)
        line = tree.cursor_line
        tree.clear()
        tasks = self._repo.list_tasks(self._settings.user_id)
        for task in tasks:
            progress = "" if not task.subtasks else f" {completion_ratio(task.subtasks):.0%}"
            label = Text(f"{_check(task.completed)} {task.title} [{task.priority}]{progress}")
            node = tree.root.add(label, data=(task.id, None), expand=True)
            self._add_subtasks(node, task, task.subtasks, ())
        done = sum(1 for t in tasks if t.completed)
        self.sub_title = f"{done}/{len(tasks)} done"
        if line >= 0:
            tree.cursor_line = line

    def _add_subtasks(
        self, parent: TreeNode, task: Task, subtasks: tuple[Subtask, ...], prefix: tuple[int, ...]
    ) -> None:
        for i, sub in enumerate(subtasks):
            path = prefix + (i,)
            if sub.is_leaf:
                label = Text(f"{_check(sub.completed)} {sub.title} ({sub.duration}m)")
                parent.add_leaf(label, data=(task.id, path))
            else:
                label = Text(f"{_check(sub.completed)} {sub.title}")
                node = parent.add(label, data=(task.id, path), expand=True)
                self._add_subtasks(node, task, sub.children, path)

    def _render_focus(self, state: FocusState) -> None:
        timer, info = render_focus(state)
        self.query_one("#focus-timer", Static).update(Text(timer))
        self.query_one("#focus-info", Static).update(Text(info))

    def _selected(self) -> NodeData | None:
        node = self.query_one("#task-tree", Tree).cursor_node
        if node is None or node.data is None:
            return None
        return node.data

    # ── Actions ────────────────────────────────────────────────

    def action_toggle_complete(self) -> None:
        selected = self._selected()
        if selected is None:
            return
        task_id, path = selected
        if path is None:
            toggle_task_complete(self._repo, task_id, on_event=self._on_event)
        else:
            toggle_subtask(self._repo, task_id, path, on_event=self._on_event)

    def action_open_focus(self) -> None:
        selected = self._selected()
        if selected is None:
            return
        task = self._repo.get_task(selected[0])
        if task is None:
            return
        self._session.open(task)
        self.notify(f"Focusing on {task.title}", title="Focus")

    def action_toggle_timer(self) -> None:
        self._session.toggle_timer()

    def action_reset_timer(self) -> None:
        self._session.reset_timer()

    def action_toggle_break(self) -> None:
        self._session.toggle_break_mode()

    def action_break_longer(self) -> None:
        self._session.set_break_duration(self._session.state.break_seconds // 60 + 1)

    def action_break_shorter(self) -> None:
        self._session.set_break_duration(max(1, self._session.state.break_seconds // 60 - 1))

    def action_prev_leaf(self) -> None:
        self._session.navigate_leaf(-1)

    def action_next_leaf(self) -> None:
        self._session.navigate_leaf(1)

    def action_skip(self) -> None:
        self._session.complete_timer()

    def action_close_focus(self) -> None:
        self._session.close()

    def action_quit_app(self) -> None:
        self._session.close()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self.exit()


# ── Entry point ────────────────────────────────────────────────


def main() -> None:
    root = workspace_root()
    root.mkdir(parents=True, exist_ok=True)
    settings = load_settings(root)
    setup_logging(log_dir=log_dir(root), console=False)

    repo = TaskRepository(root, RemoteSync.from_settings(settings))
    repo.sync_from_remote(settings.user_id)
    app = FocusTreeApp(repo, settings)
    app.run()


if __name__ == "__main__":
    main()
