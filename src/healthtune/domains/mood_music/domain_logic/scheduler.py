"""Auto-analysis scheduler.

Re-runs the mood -> music pipeline on a fixed interval and whenever a
track finishes. Events go through one ``asyncio.Queue`` with a single
consumer, so at most one analysis is in flight at a time.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class SchedulerError(Exception):
    """Scheduler used out of order: notify before start, double start, etc."""


class SchedulerEvent(enum.Enum):
    TICK = "tick"                  # periodic; runs only once the interval has elapsed
    TRACK_ENDED = "track_ended"    # runs immediately
    RUN_NOW = "run_now"            # runs immediately


_STOP = object()


class AutoAnalysisScheduler:
    """Runs ``job`` on interval ticks, track-end events and explicit requests.

    Usage::

        scheduler = AutoAnalysisScheduler(job, interval_seconds=1800)
        scheduler.start()          # inside a running event loop
        scheduler.notify(SchedulerEvent.TRACK_ENDED)
        await scheduler.join()
        await scheduler.stop()

    ``tick_seconds`` controls how often TICK is queued (default: the
    interval). ``clock`` is the time source for the interval check.
    """

    def __init__(
        self,
        job: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        tick_seconds: float | None = None,
    ) -> None:
        if interval_seconds < 0:
            raise ValueError("interval_seconds must be >= 0")
        self.job = job
        self.interval_seconds = interval_seconds
        self.tick_seconds = tick_seconds if tick_seconds is not None else interval_seconds
        self._clock = clock
        self._queue: asyncio.Queue[Any] | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._ticker: asyncio.Task[None] | None = None
        self.run_count = 0
        self.failure_count = 0
        self.last_run_at: float | None = None

    @property
    def running(self) -> bool:
        return self._consumer is not None

    def start(self) -> None:
        """Start consuming events. Must be called from a running event loop."""
        if self.running:
            raise SchedulerError("Scheduler already started")
        self._queue = asyncio.Queue()
        self._consumer = asyncio.create_task(self._consume())
        if self.tick_seconds > 0:
            self._ticker = asyncio.create_task(self._tick_forever())
        logger.info("Auto-analysis scheduler started (interval=%.0fs)", self.interval_seconds)

    async def stop(self) -> None:
        """Stop after the event currently being handled. Queued events are dropped."""
        if not self.running:
            raise SchedulerError("Scheduler is not running")
        if self._ticker is not None:
            self._ticker.cancel()
            try:
                await self._ticker
            except asyncio.CancelledError:
                pass
            self._ticker = None

        assert self._queue is not None
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
        self._queue.put_nowait(_STOP)
        await self._consumer
        self._consumer = None
        self._queue = None
        logger.info("Auto-analysis scheduler stopped after %d runs", self.run_count)

    def notify(self, event: SchedulerEvent) -> None:
        if self._queue is None:
            raise SchedulerError("Scheduler is not running")
        self._queue.put_nowait(event)

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        if self._queue is None:
            raise SchedulerError("Scheduler is not running")
        await self._queue.join()

    def is_due(self) -> bool:
        if self.last_run_at is None:
            return True
        return self._clock() - self.last_run_at >= self.interval_seconds

    async def _tick_forever(self) -> None:
        while True:
            await asyncio.sleep(self.tick_seconds)
            if self._queue is not None:
                self._queue.put_nowait(SchedulerEvent.TICK)

    async def _consume(self) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            event = await queue.get()
            try:
                if event is _STOP:
                    return
                if event is SchedulerEvent.TICK and not self.is_due():
                    continue
                await self._run_job(event)
            finally:
                queue.task_done()

    async def _run_job(self, event: SchedulerEvent) -> None:
        logger.info("Auto-analysis triggered by %s", event.value)
        self.last_run_at = self._clock()
        try:
            await self.job()
        except Exception:
            self.failure_count += 1
            logger.exception("Auto-analysis job failed")
        else:
            self.run_count += 1
