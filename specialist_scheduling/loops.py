"""Explicit periodic tasks for the readiness tick and the overdue scan.

Each task calls an async function, logs (and survives) any exception it
raises, then sleeps for its interval. Tests call ``tick``/``scan``
directly instead of running the loops.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

log = logging.getLogger("specialist_scheduling.loops")


class PeriodicTask:
    def __init__(
        self,
        name: str,
        interval: float,
        func: Callable[[], Awaitable[Any]],
    ) -> None:
        if interval <= 0:
            raise ValueError(f"{name}: interval must be positive")
        self.name = name
        self.interval = interval
        self._func = func
        self._task: asyncio.Task | None = None
        self.runs = 0
        self.errors = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self.name)
        log.info("Periodic task %s started (every %gs)", self.name, self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        log.info("Periodic task %s stopped", self.name)

    async def run_once(self) -> Any:
        self.runs += 1
        try:
            return await self._func()
        except Exception:
            self.errors += 1
            log.exception("Periodic task %s failed", self.name)
            return None

    async def _loop(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval)
