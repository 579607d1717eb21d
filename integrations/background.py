"""
Detached tasks for fire-and-forget side effects.

Cache writes, request logs and health updates are spawned here and never
joined by the request that caused them. Their failures are logged and
discarded. The number of in-flight tasks is bounded so a slow backend
cannot grow memory without limit: beyond the bound new work is dropped.
"""
import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, Optional

logger = logging.getLogger(__name__)


class DetachedTasks:
    """Owns references to background side-effect tasks."""

    def __init__(self, max_pending: int = 1000) -> None:
        self.max_pending = max_pending
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def spawn(
        self, coro: Coroutine[Any, Any, Any], label: str = "side-effect"
    ) -> Optional[asyncio.Task]:
        """Schedule a coroutine without waiting for it. Must run inside a loop."""
        if len(self._pending) >= self.max_pending:
            coro.close()
            logger.warning(
                f"Dropping {label}: {len(self._pending)} detached tasks already pending"
            )
            return None

        task = asyncio.get_running_loop().create_task(coro, name=label)
        self._pending.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Detached task '{task.get_name()}' failed: {exc}")

    async def drain(self) -> None:
        """Wait for every pending task, including ones spawned while waiting."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
