from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable


log = logging.getLogger(__name__)


class PeriodicTask:
    """Run a coroutine function on a fixed interval in the background.

    Runs never overlap. stop() lets an in-flight run finish and prevents any
    further run; a stopped task cannot be started again. An interval of 0 or
    less disables the task entirely.
    """

    def __init__(self, name: str, interval_sec: float, func: Callable[[], Awaitable[Any]]) -> None:
        self.name = name
        self.interval_sec = interval_sec
        self._func = func
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._stopped = False
        self.runs = 0

    @property
    def enabled(self) -> bool:
        return self.interval_sec > 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._stopped:
            raise RuntimeError(f"{self.name} task was stopped and cannot be restarted")
        if self.running:
            return
        if not self.enabled:
            log.info("%s task disabled (interval=%s)", self.name, self.interval_sec)
            return
        self._task = asyncio.create_task(self._loop(), name=f"raidgate-{self.name}")
        log.debug("Started %s task (interval=%ss)", self.name, self.interval_sec)

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_sec)
                break
            except asyncio.TimeoutError:
                pass
            try:
                await self._func()
            except Exception as e:  # noqa: BLE001
                log.warning("%s run failed: %s", self.name, e, exc_info=True)
            finally:
                self.runs += 1

    async def stop(self) -> None:
        """Stop scheduling new runs and wait for the current one to finish."""
        self._stopped = True
        self._stop_event.set()
        task, self._task = self._task, None
        if task is not None:
            await task
