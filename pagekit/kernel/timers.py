"""
PageKit Kernel — Debounce timer

Trailing-edge debounce on the running asyncio loop. Each trigger() restarts
the window; the callback fires once the window elapses with no further
trigger. A callback already running is never cancelled by a new trigger.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any


class Debouncer:
    def __init__(self, delay: float, callback: Callable[[], Awaitable[Any]]) -> None:
        self.delay = delay
        self.callback = callback
        self._timer: asyncio.Task | None = None
        self._running: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def trigger(self) -> None:
        self.cancel()
        self._timer = asyncio.create_task(self._wait_then_fire())

    def cancel(self) -> None:
        """Drop a pending fire. Does not touch a callback already running."""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def wait(self) -> None:
        """Wait for the pending window and any running callback to finish."""
        while self.pending or self._running:
            tasks = [t for t in (self._timer, *self._running) if t is not None]
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        self.cancel()
        for task in list(self._running):
            task.cancel()
        await asyncio.gather(*self._running, return_exceptions=True)
        self._running.clear()

    async def _wait_then_fire(self) -> None:
        await asyncio.sleep(self.delay)
        self._timer = None
        run = asyncio.create_task(self.callback())
        self._running.add(run)
        run.add_done_callback(self._running.discard)
