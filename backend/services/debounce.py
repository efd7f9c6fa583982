"""
Coalesce bursts of camera-change events into one delayed action.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from domain.models import Region

logger = logging.getLogger(__name__)

DEFAULT_QUIET_PERIOD = 0.7

RegionAction = Callable[[Region], Union[None, Awaitable[Any]]]


class ViewportDebouncer:
    """
    Run `action(region)` once the camera has been still for `quiet_period`.

    Every `schedule` call cancels the pending one, so only the latest region is
    acted on. Cancelling a pending action has no side effect. Once the quiet
    period has elapsed the action is no longer pending and later events do not
    interrupt it.
    """

    def __init__(self, action: RegionAction, quiet_period: float = DEFAULT_QUIET_PERIOD):
        self.action = action
        self.quiet_period = quiet_period
        self._pending: Optional[asyncio.Task] = None
        self._running: Optional[asyncio.Task] = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def schedule(self, region: Region) -> asyncio.Task:
        """Replace any pending action with one for `region`. Needs a running loop."""
        self.cancel()
        task = asyncio.get_running_loop().create_task(self._fire(region))
        self._pending = task
        return task

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    def close(self) -> None:
        self.cancel()

    async def wait_idle(self) -> None:
        """Wait for the pending and running actions (if any) to finish."""
        for task in (self._pending, self._running):
            if task is not None and not task.done():
                await asyncio.gather(task, return_exceptions=True)

    async def _fire(self, region: Region) -> None:
        try:
            await asyncio.sleep(self.quiet_period)
        except asyncio.CancelledError:
            logger.debug("Debounced action for %s superseded", region)
            return

        current = asyncio.current_task()
        if self._pending is current:
            self._pending = None
        self._running = current
        try:
            result = self.action(region)
            if inspect.isawaitable(result):
                await result
        finally:
            if self._running is current:
                self._running = None
