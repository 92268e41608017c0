"""Polling change detection for a filesystem vault."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, List

from insights.store.vault import FileSystemVault

logger = logging.getLogger(__name__)


def diff_snapshots(before: Dict[str, float], after: Dict[str, float]) -> List[str]:
    """Paths created, deleted or modified between two snapshots."""
    changed = [path for path, mtime in after.items() if before.get(path) != mtime]
    changed.extend(path for path in before if path not in after)
    return sorted(changed)


class VaultWatcher:
    """Periodically compares vault snapshots and reports changed paths.

    Runs as a task on the event loop, stopped with :meth:`stop`.
    """

    def __init__(self, vault: FileSystemVault, on_change: Callable[[str], None], interval: float = 2.0):
        if interval <= 0:
            raise ValueError(f"Watch interval must be positive, got {interval}")

        self._vault = vault
        self._on_change = on_change
        self._interval = interval
        self._snapshot: Dict[str, float] = {}
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            logger.warning("Vault watcher already running")
            return
        self._snapshot = self._vault.snapshot()
        self._task = asyncio.get_running_loop().create_task(self._watch_loop())
        logger.info("Watching %s (interval: %.1fs)", self._vault.root, self._interval)

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def poll(self) -> List[str]:
        """Take a new snapshot and report every path that changed since the last one."""
        current = self._vault.snapshot()
        changed = diff_snapshots(self._snapshot, current)
        self._snapshot = current
        for path in changed:
            self._on_change(path)
        return changed

    async def _watch_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                current = await asyncio.to_thread(self._vault.snapshot)
            except OSError:
                logger.exception("Error while scanning vault")
                continue
            for path in diff_snapshots(self._snapshot, current):
                self._on_change(path)
            self._snapshot = current
