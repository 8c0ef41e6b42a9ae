"""Delayed re-reconciliation of HostedClusters.

Kopf's event handlers persist nothing on the watched object and are never
retried, so failed or periodic reconciliations are scheduled here instead,
as asyncio tasks on the operator's event loop.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable

logger = logging.getLogger(__name__)

# Returns the delay before the next run, or None to stop
Reconcile = Callable[[], Awaitable[float | None]]


class RequeueScheduler:
    """At most one pending reconciliation per object key.

    Scheduling a key replaces its pending run. Must be used from within the
    running event loop.
    """

    def __init__(self) -> None:
        self._tasks: dict[Hashable, asyncio.Task] = {}

    def __contains__(self, key: Hashable) -> bool:
        return key in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def schedule(self, key: Hashable, delay: float, reconcile: Reconcile) -> None:
        """Run ``reconcile`` after ``delay`` seconds, repeating while it asks to."""
        self.cancel(key)
        logger.debug(f"Requeueing {key} in {delay}s")
        self._tasks[key] = asyncio.create_task(self._run(key, delay, reconcile))

    def cancel(self, key: Hashable) -> bool:
        """Cancel the pending run for a key, if any."""
        task = self._tasks.pop(key, None)
        if task is None:
            return False
        task.cancel()
        return True

    def cancel_all(self) -> None:
        for key in list(self._tasks):
            self.cancel(key)

    async def _run(self, key: Hashable, delay: float | None, reconcile: Reconcile) -> None:
        try:
            while delay is not None:
                await asyncio.sleep(delay)
                delay = await reconcile()
        finally:
            if self._tasks.get(key) is asyncio.current_task():
                del self._tasks[key]
