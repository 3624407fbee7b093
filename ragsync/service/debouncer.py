"""
Debouncer
=========
Per-key trailing-edge debounce on the running event loop.

Each key owns at most one pending timer; scheduling the key again resets the
timer. When a timer fires, the callback runs as a task. `cancel_all` drops
every pending timer; callbacks that already started run to completion.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Set

from ragsync.utils.logging import SimpleLogger


class Debouncer:
    def __init__(self, delay_ms: int, callback: Callable[[str], Awaitable[None]]) -> None:
        self.delay = max(0, delay_ms) / 1000.0
        self._callback = callback
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._running: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._timers)

    def is_pending(self, key: str) -> bool:
        return key in self._timers

    def schedule(self, key: str) -> None:
        """(Re)start the timer for `key`. Must be called from the event loop thread."""
        loop = asyncio.get_running_loop()
        self.cancel(key)
        self._timers[key] = loop.call_later(self.delay, self._fire, key)

    def cancel(self, key: str) -> bool:
        handle = self._timers.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> int:
        count = len(self._timers)
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        return count

    async def drain(self) -> None:
        """Wait for callbacks that are already running."""
        if self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    def _fire(self, key: str) -> None:
        self._timers.pop(key, None)
        task = asyncio.get_running_loop().create_task(self._callback(key))
        self._running.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._running.discard(task)
        if not task.cancelled() and task.exception() is not None:
            SimpleLogger.error("Debounced callback failed", task.exception())
