"""
scheduler.py
────────────
The polling driver.

A single asyncio task wakes every `interval` seconds and runs one synchronous
alarm pass over the task list.  Everything runs on the event loop thread, so
the task list and the notified markers are never touched concurrently.
Cancel the handle returned by start() (or call stop()) to end the loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime
from typing import Callable, List, Optional

from .controller import AppController
from .models import Task

logger = logging.getLogger(__name__)


class AlarmScheduler:

    def __init__(
        self,
        controller: AppController,
        *,
        interval: float = 1.0,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.controller = controller
        self.interval   = max(0.01, float(interval))
        self._clock     = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def tick(self, now: Optional[datetime] = None) -> List[Task]:
        """Run one alarm pass.  Errors are logged, never raised."""
        now = now or self._clock()
        try:
            return self.controller.check_alarms(now)
        except Exception:
            logger.exception("Alarm check failed at %s", now.isoformat(timespec="seconds"))
            return []

    def start(self) -> asyncio.Task:
        """Start polling on the running loop and return the cancellation handle."""
        if self.running:
            return self._task
        self._task = asyncio.get_running_loop().create_task(self._run(), name="alarm-ticker")
        logger.info("Alarm scheduler started (every %.2fs)", self.interval)
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Alarm scheduler stopped")

    async def _run(self) -> None:
        while True:
            self.tick()
            await asyncio.sleep(self.interval)
