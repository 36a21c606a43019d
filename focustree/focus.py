"""Focus session state machine for FocusTree.

A session is bound to one task and times the task's leaf subtasks one after
another, Pomodoro style:

    Closed --open--> Work(paused) --auto start--> Work(running)
    Work <--toggle_break_mode--> Break        (each paused/running)
    Work countdown hits 0  -> next incomplete leaf, or complete the task
    Break countdown hits 0 -> back to the saved work timer

The leaf list is a snapshot taken at open(); edits made to the task while
the session runs are not picked up until the session is reopened. Deleting
the task closes the session.

The countdown is one asyncio task per session. Starting it cancels any
previous one, and pausing, closing, switching mode or navigating cancel it
before its next tick, so a cancelled countdown never reports completion.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import replace
from typing import Any, AsyncIterator, Callable

from focustree.completion import complete_task
from focustree.config import Settings
from focustree.models import FocusState, Subtask, Task
from focustree.paths import flatten_leaves
from focustree.repository import TaskRepository
from focustree.workspace import now_iso

logger = logging.getLogger(__name__)

# (quote, author) shown while a session is open
FOCUS_QUOTES = (
    ("The secret of getting ahead is getting started.", "Mark Twain"),
    ("Focus on being productive instead of busy.", "Tim Ferriss"),
    ("Concentrate all your thoughts upon the work at hand.", "Alexander Graham Bell"),
    ("The successful warrior is the average man, with laser-like focus.", "Bruce Lee"),
    ("Where focus goes, energy flows.", "Tony Robbins"),
    ("You can do anything, but not everything.", "David Allen"),
    ("The main thing is to keep the main thing the main thing.", "Stephen Covey"),
    ("Starve your distractions and feed your focus.", "Unknown"),
    ("Action is the foundational key to all success.", "Pablo Picasso"),
    ("Don't watch the clock; do what it does. Keep going.", "Sam Levenson"),
)

FocusListener = Callable[[FocusState], None]
# on_event(name, context) with name in
# {"focus_open", "focus_close", "leaf_advance", "task_complete"}
FocusEventHandler = Callable[[str, dict[str, Any]], None]


class FocusSession:
    def __init__(
        self,
        repository: TaskRepository,
        settings: Settings | None = None,
        on_event: FocusEventHandler | None = None,
    ) -> None:
        self._repository = repository
        self._settings = settings or Settings()
        self._on_event = on_event
        self._state = FocusState(break_seconds=self._seconds(self._settings.break_minutes))
        self._leaves: list[Subtask] = []
        self._timer: asyncio.Task[None] | None = None
        self._auto_start: asyncio.Task[None] | None = None
        self._listeners: list[FocusListener] = []
        self._watchers: list[asyncio.Queue[FocusState]] = []
        self._unsubscribe_repository: Callable[[], None] | None = None

    # ── Introspection ─────────────────────────────────────────

    @property
    def state(self) -> FocusState:
        return self._state

    @property
    def leaves(self) -> tuple[Subtask, ...]:
        return tuple(self._leaves)

    @property
    def current_leaf(self) -> Subtask | None:
        if not self._state.active or not self._leaves:
            return None
        return self._leaves[self._state.subtask_index]

    @property
    def is_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    # ── Lifecycle ─────────────────────────────────────────────

    def open(self, task: Task) -> FocusState:
        """Bind the session to *task* and select its first incomplete leaf."""
        if self._state.active:
            self.close()

        leaves = flatten_leaves(task.subtasks)
        idx = next((i for i, leaf in enumerate(leaves) if not leaf.completed), 0)
        if leaves:
            seconds = self._seconds(leaves[idx].duration)
        else:
            seconds = self._seconds(task.estimated_minutes)

        quote, author = random.choice(FOCUS_QUOTES)
        self._leaves = leaves
        self._unsubscribe_repository = self._repository.subscribe(self._on_repository_event)
        self._set(
            FocusState(
                active=True,
                paused=True,
                total_seconds=seconds,
                remaining_seconds=seconds,
                task_id=task.id,
                task_title=task.title,
                subtask_title=leaves[idx].title if leaves else None,
                subtask_index=idx,
                total_leaf_subtasks=len(leaves),
                completed_subtasks=sum(1 for leaf in leaves if leaf.completed),
                break_seconds=self._state.break_seconds,
                quote=quote,
                quote_author=author,
            )
        )
        logger.info("focus session opened on task %s (%d leaves)", task.id, len(leaves))
        self._fire("focus_open", {"leafCount": len(leaves)})
        self._schedule_auto_start()
        return self._state

    def close(self) -> None:
        """Stop the countdown and discard all session state."""
        was_active = self._state.active
        task_id = self._state.task_id
        self._cancel_auto_start()
        self._cancel_timer()
        if self._unsubscribe_repository is not None:
            self._unsubscribe_repository()
            self._unsubscribe_repository = None
        self._leaves = []
        self._set(FocusState(break_seconds=self._seconds(self._settings.break_minutes)))
        if was_active:
            logger.info("focus session on task %s closed", task_id)
            self._fire("focus_close", {"taskId": task_id})

    # ── Timer controls ────────────────────────────────────────

    def toggle_timer(self) -> None:
        if not self._ensure_task():
            return
        if self._state.paused:
            self.start_timer()
        else:
            self.pause_timer()

    def start_timer(self) -> None:
        """Start counting down. Stays paused when no event loop is running."""
        if not self._ensure_task():
            return
        self._cancel_auto_start()
        if not self._state.paused or self._state.remaining_seconds <= 0:
            return
        self._start_countdown()

    def pause_timer(self) -> None:
        self._cancel_auto_start()
        self._cancel_timer()
        if not self._state.paused:
            self._update(paused=True)

    def reset_timer(self) -> None:
        if not self._ensure_task():
            return
        self.pause_timer()
        self._update(remaining_seconds=self._state.total_seconds)

    def complete_timer(self) -> None:
        """Finish the current countdown now, as if it had reached zero."""
        if not self._ensure_task():
            return
        self.pause_timer()
        self._update(remaining_seconds=0)
        self._on_timer_complete()

    # ── Break mode ────────────────────────────────────────────

    def toggle_break_mode(self, minutes: int | None = None) -> None:
        """Enter a break (saving the work timer) or return to work."""
        if not self._ensure_task():
            return
        self.pause_timer()
        s = self._state
        if s.break_mode:
            self._update(
                break_mode=False,
                remaining_seconds=s.saved_work_remaining,
                total_seconds=s.saved_work_total,
            )
            return
        break_seconds = self._seconds(minutes) if minutes is not None else s.break_seconds
        self._update(
            break_mode=True,
            saved_work_remaining=s.remaining_seconds,
            saved_work_total=s.total_seconds,
            remaining_seconds=break_seconds,
            total_seconds=break_seconds,
            break_seconds=break_seconds,
        )

    def set_break_duration(self, minutes: int) -> None:
        seconds = self._seconds(minutes)
        if not self._state.active:
            self._update(break_seconds=seconds)
            return
        if not self._ensure_task():
            return
        self._update(break_seconds=seconds)
        if self._state.break_mode:
            self.pause_timer()
            self._update(remaining_seconds=seconds, total_seconds=seconds)

    # ── Leaf navigation ───────────────────────────────────────

    def navigate_leaf(self, direction: int) -> None:
        """Move to the previous (-1) or next (+1) leaf, clamped to the list."""
        if not self._ensure_task() or not self._leaves:
            return
        s = self._state
        new_idx = max(0, min(len(self._leaves) - 1, s.subtask_index + direction))
        if new_idx == s.subtask_index:
            return
        self.pause_timer()
        leaf = self._leaves[new_idx]
        seconds = self._seconds(leaf.duration)
        self._update(
            break_mode=False,
            subtask_index=new_idx,
            subtask_title=leaf.title,
            total_seconds=seconds,
            remaining_seconds=seconds,
            completed_subtasks=sum(1 for lf in self._leaves if lf.completed),
        )

    # ── Observation ───────────────────────────────────────────

    def subscribe(self, listener: FocusListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def observe(self) -> AsyncIterator[FocusState]:
        """Yield the current state, then every subsequent state."""
        queue: asyncio.Queue[FocusState] = asyncio.Queue()
        self._watchers.append(queue)
        try:
            yield self._state
            while True:
                yield await queue.get()
        finally:
            self._watchers.remove(queue)

    # ── Internals ─────────────────────────────────────────────

    def _seconds(self, minutes: int | float | None) -> int:
        seconds = int((minutes or 0) * 60)
        floor = max(1, self._settings.min_timer_seconds)
        if seconds < floor:
            logger.debug("duration of %s min clamped to %d s", minutes, floor)
            return floor
        return seconds

    def _ensure_task(self) -> bool:
        """False (and the session closed) if the bound task no longer exists."""
        if not self._state.active:
            return False
        if self._repository.get_task(self._state.task_id) is None:
            logger.info("task %s disappeared; closing focus session", self._state.task_id)
            self.close()
            return False
        return True

    def _schedule_auto_start(self) -> None:
        delay = self._settings.auto_start_delay
        if delay is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # no event loop: the caller drives the timer explicitly
            return
        self._auto_start = loop.create_task(self._auto_start_after(delay))

    async def _auto_start_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._auto_start = None
        if self._state.active and self._state.paused and self._state.remaining_seconds > 0:
            self._start_countdown()

    def _start_countdown(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("no running event loop; timer for task %s stays paused", self._state.task_id)
            return
        self._cancel_timer()
        self._update(paused=False)
        self._timer = loop.create_task(self._run_countdown())

    async def _run_countdown(self) -> None:
        while self._state.remaining_seconds > 0 and not self._state.paused:
            await asyncio.sleep(self._settings.tick_seconds)
            if self._state.paused or not self._state.active:
                return
            self._update(remaining_seconds=self._state.remaining_seconds - 1)
        if self._state.active and not self._state.paused and self._state.remaining_seconds <= 0:
            self._timer = None
            self._update(paused=True)
            self._on_timer_complete()

    def _on_timer_complete(self) -> None:
        if not self._ensure_task():
            return
        s = self._state
        if s.break_mode:
            self._update(
                break_mode=False,
                remaining_seconds=s.saved_work_remaining,
                total_seconds=s.saved_work_total,
                paused=True,
            )
            return

        next_idx = next(
            (i for i in range(s.subtask_index + 1, len(self._leaves)) if not self._leaves[i].completed),
            None,
        )
        if next_idx is not None:
            leaf = self._leaves[next_idx]
            seconds = self._seconds(leaf.duration)
            self._update(
                subtask_index=next_idx,
                subtask_title=leaf.title,
                total_seconds=seconds,
                remaining_seconds=seconds,
                completed_subtasks=s.completed_subtasks + 1,
                paused=True,
            )
            self._fire("leaf_advance", {"subtaskIndex": next_idx, "subtaskTitle": leaf.title})
            return

        self._finish_task()

    def _finish_task(self) -> None:
        task = self._repository.get_task(self._state.task_id)
        if task is None:
            self.close()
            return
        done = complete_task(task)
        if not task.completed:
            done = replace(done, completed_at=now_iso())
        try:
            self._repository.upsert_task(done)
        except Exception:
            logger.warning("could not persist completion of task %s", task.id, exc_info=True)
        self._update(paused=True, remaining_seconds=0, completed_subtasks=len(self._leaves))
        logger.info("focus session finished task %s", task.id)
        self._fire("task_complete", {"title": task.title})

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_auto_start(self) -> None:
        if self._auto_start is not None:
            self._auto_start.cancel()
            self._auto_start = None

    def _on_repository_event(self, event: str, task: Task) -> None:
        if event == "delete" and self._state.active and task.id == self._state.task_id:
            logger.info("task %s deleted during focus session", task.id)
            self.close()

    def _update(self, **changes: Any) -> None:
        self._set(replace(self._state, **changes))

    def _set(self, state: FocusState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("focus listener failed")
        for queue in self._watchers:
            queue.put_nowait(state)

    def _fire(self, name: str, context: dict[str, Any]) -> None:
        if self._on_event is None:
            return
        payload = {"taskId": self._state.task_id, **context}
        try:
            self._on_event(name, payload)
        except Exception:
            logger.exception("focus event handler failed for %s", name)
