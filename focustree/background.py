"""Fire-and-forget dispatch for blocking side effects (remote pushes, hooks).

Inside a running event loop the call is moved to a worker thread so the
loop keeps ticking; without a loop it simply runs inline.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

# strong refs so pending calls are not garbage collected mid-flight
_pending: set[asyncio.Task[Any]] = set()


def run_off_loop(fn: Callable[..., Any], *args: Any) -> asyncio.Task[Any] | None:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        fn(*args)
        return None
    task = loop.create_task(asyncio.to_thread(fn, *args))
    _pending.add(task)
    task.add_done_callback(_finished)
    return task


def _finished(task: asyncio.Task[Any]) -> None:
    _pending.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("background call failed: %s", exc, exc_info=exc)


async def drain() -> None:
    """Wait for every call dispatched so far (used on shutdown and in tests)."""
    loop = asyncio.get_running_loop()
    while True:
        mine = [t for t in _pending if t.get_loop() is loop]
        if not mine:
            return
        await asyncio.gather(*mine, return_exceptions=True)
