"""Detached background tasks with their own error channel.

Hey future me - request handlers never await these. A mirror push or the late catalog
load runs as an asyncio.Task owned by this runner; failures are LOGGED here and never
propagate to whoever spawned them. The runner keeps strong references (a bare
create_task() result can be garbage collected mid-flight) and cancels leftovers at
shutdown.
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    """Spawns fire-and-forget tasks and tracks them until they finish."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()
        self._stats = {"started": 0, "completed": 0, "failed": 0, "cancelled": 0}

    @property
    def pending(self) -> int:
        """Number of tasks still running."""
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[None]:
        """Run a coroutine detached from the caller."""
        task = asyncio.create_task(self._guard(coro, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._stats["started"] += 1
        return task

    async def _guard(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            self._stats["cancelled"] += 1
            logger.info(f"Background task {name} cancelled")
            raise
        except Exception:
            self._stats["failed"] += 1
            logger.exception(f"Background task {name} failed")
        else:
            self._stats["completed"] += 1

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for running tasks; True if all finished within timeout."""
        if not self._tasks:
            return True
        _done, still_pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        return not still_pending

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Give running tasks `timeout` seconds, then cancel the rest."""
        if await self.drain(timeout):
            return
        leftovers = list(self._tasks)
        logger.warning(f"Cancelling {len(leftovers)} background tasks at shutdown")
        for task in leftovers:
            task.cancel()
        await asyncio.gather(*leftovers, return_exceptions=True)

    def get_status(self) -> dict[str, int]:
        """Task counters for the health endpoint."""
        return {**self._stats, "pending": self.pending}
