"""Coalescing of bursts of events into a single asynchronous action."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

LOGGER = logging.getLogger(__name__)

MIN_DELAY = 0.3


class DebouncedTask:
    """Single pending slot whose timer restarts on every trigger.

    A run already in progress is never cancelled; triggers that arrive while it
    runs arm a fresh timer, so they lead to exactly one follow-up run.
    """

    def __init__(self, action: Callable[[], Awaitable[object]], delay: float = MIN_DELAY) -> None:
        self.action = action
        self.delay = max(MIN_DELAY, delay)
        self._pending: asyncio.Task | None = None
        self._running: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def trigger(self) -> None:
        """Schedule the action after ``delay``; requires a running event loop."""
        if self.pending:
            self._pending.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._wait_then_run())

    def cancel(self) -> None:
        if self.pending:
            self._pending.cancel()
        self._pending = None

    async def _wait_then_run(self) -> None:
        await asyncio.sleep(self.delay)
        if self._running is not None and not self._running.done():
            await asyncio.shield(self._running)
        self._running = asyncio.get_running_loop().create_task(self._run())
        self._pending = None
        await asyncio.shield(self._running)

    async def _run(self) -> None:
        try:
            await self.action()
        except Exception:
            LOGGER.exception("Debounced action failed")

    async def wait(self) -> None:
        """Wait until nothing is pending or running."""
        while True:
            task = self._pending if self.pending else self._running
            if task is None or task.done():
                return
            await asyncio.wait([task])
