from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Optional

logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[None]]


class RateLimitedQueue:
    """Single-lane FIFO delay queue.

    Runs at most one task per ``interval`` seconds, measured start to start,
    and never two at once. ``enqueue`` never blocks: the first call starts a
    drain loop on the running event loop, later calls just append to it.
    """

    def __init__(self, interval: float = 1.0) -> None:
        self.interval = interval
        self._tasks: Deque[Task] = deque()
        self._drain: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    @property
    def is_draining(self) -> bool:
        return self._drain is not None and not self._drain.done()

    def enqueue(self, task: Task) -> None:
        """Append ``task``; raises ``RuntimeError`` (nothing queued) when closed or outside a loop."""
        if self._closed:
            raise RuntimeError("queue is closed")
        loop = asyncio.get_running_loop()
        self._tasks.append(task)
        if not self.is_draining:
            self._drain = loop.create_task(self._run())

    async def _run(self) -> None:
        while self._tasks:
            task = self._tasks.popleft()
            started = time.monotonic()
            try:
                await task()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Queued geocoding task failed")
            wait = self.interval - (time.monotonic() - started)
            if wait > 0:
                await asyncio.sleep(wait)

    async def join(self) -> None:
        """Wait until everything queued so far has run."""
        while self.is_draining:
            await asyncio.shield(self._drain)

    async def close(self) -> None:
        self._closed = True
        self._tasks.clear()
        if self._drain is not None and not self._drain.done():
            self._drain.cancel()
            try:
                await self._drain
            except asyncio.CancelledError:
                pass
        self._drain = None
