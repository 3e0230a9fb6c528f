"""
Debounced refresh scheduling.

Every trigger calls ``schedule()``, which raises a single pending flag and
re-arms one timer.  When the timer fires after ``delay`` seconds of quiet
the pending refresh runs once, however many triggers arrived meanwhile.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from src.core.logging import get_logger

logger = get_logger(__name__)


class RefreshScheduler:
    """Single-slot coalescing scheduler for one chart's refresh.

    Parameters
    ----------
    callback : async callable
        The refresh to run.
    delay : float
        Quiescence window in seconds.
    name : str
        Used in log messages only.
    """

    def __init__(self, callback: Callable[[], Awaitable[Any]], delay: float, name: str = ""):
        self._callback = callback
        self._delay = delay
        self._name = name
        self._pending = False
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._pending

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def schedule(self) -> None:
        """Request a refresh after the quiescence window."""
        self._pending = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; the next flush() picks the request up.
            logger.debug("Refresh of %s deferred: no running event loop", self._name)
            return
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self._delay, self._drain)

    def cancel(self) -> None:
        """Drop a pending refresh.  Refreshes already running are left alone."""
        self._pending = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def flush(self) -> None:
        """Run a pending refresh now instead of waiting for the timer."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._pending:
            self._pending = False
            await self._run()

    async def wait(self) -> None:
        """Wait for refreshes started by the timer to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _drain(self) -> None:
        self._timer = None
        if not self._pending:
            return
        self._pending = False
        task = asyncio.get_running_loop().create_task(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self) -> None:
        logger.debug("Running scheduled refresh of %s", self._name)
        try:
            await self._callback()
        except Exception:
            logger.exception("Scheduled refresh of %s failed", self._name)
