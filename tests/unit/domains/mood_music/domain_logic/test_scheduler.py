"""Tests for the auto-analysis scheduler."""

from __future__ import annotations

import asyncio

import pytest

from healthtune.domains.mood_music.domain_logic.scheduler import (
    AutoAnalysisScheduler,
    SchedulerError,
    SchedulerEvent,
)


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class _Clock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class _Job:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls = 0

    async def __call__(self) -> None:
        self.calls += 1
        if self.fail:
            raise RuntimeError("pipeline exploded")


def _scheduler(job, clock=None, interval=60.0):
    return AutoAnalysisScheduler(job, interval, clock=clock or _Clock(), tick_seconds=0)


class TestEvents:
    def test_first_tick_runs(self):
        job = _Job()

        async def scenario():
            scheduler = _scheduler(job)
            scheduler.start()
            scheduler.notify(SchedulerEvent.TICK)
            await scheduler.join()
            await scheduler.stop()
            return scheduler

        scheduler = _run(scenario())
        assert job.calls == 1
        assert scheduler.run_count == 1

    def test_tick_skipped_until_interval_elapses(self):
        job = _Job()
        clock = _Clock()

        async def scenario():
            scheduler = _scheduler(job, clock)
            scheduler.start()
            scheduler.notify(SchedulerEvent.TICK)
            await scheduler.join()

            clock.now += 30
            scheduler.notify(SchedulerEvent.TICK)
            await scheduler.join()
            skipped = job.calls

            clock.now += 30
            scheduler.notify(SchedulerEvent.TICK)
            await scheduler.join()
            await scheduler.stop()
            return skipped

        skipped = _run(scenario())
        assert skipped == 1
        assert job.calls == 2

    @pytest.mark.parametrize("event", [SchedulerEvent.TRACK_ENDED, SchedulerEvent.RUN_NOW])
    def test_immediate_events_ignore_interval(self, event):
        job = _Job()

        async def scenario():
            scheduler = _scheduler(job)
            scheduler.start()
            scheduler.notify(SchedulerEvent.TICK)
            scheduler.notify(event)
            scheduler.notify(event)
            await scheduler.join()
            await scheduler.stop()

        _run(scenario())
        assert job.calls == 3

    def test_track_end_resets_interval(self):
        job = _Job()
        clock = _Clock()

        async def scenario():
            scheduler = _scheduler(job, clock)
            scheduler.start()
            scheduler.notify(SchedulerEvent.TRACK_ENDED)
            await scheduler.join()
            clock.now += 10
            scheduler.notify(SchedulerEvent.TICK)
            await scheduler.join()
            await scheduler.stop()
            return scheduler

        scheduler = _run(scenario())
        assert job.calls == 1
        assert scheduler.last_run_at == 1000.0

    def test_failing_job_is_counted_and_consumer_survives(self):
        job = _Job(fail=True)

        async def scenario():
            scheduler = _scheduler(job)
            scheduler.start()
            scheduler.notify(SchedulerEvent.RUN_NOW)
            scheduler.notify(SchedulerEvent.RUN_NOW)
            await scheduler.join()
            assert scheduler.running
            await scheduler.stop()
            return scheduler

        scheduler = _run(scenario())
        assert scheduler.failure_count == 2
        assert scheduler.run_count == 0

    def test_one_job_at_a_time(self):
        active = 0
        peak = 0

        async def job():
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0)
            active -= 1

        async def scenario():
            scheduler = _scheduler(job)
            scheduler.start()
            for _ in range(5):
                scheduler.notify(SchedulerEvent.TRACK_ENDED)
            await scheduler.join()
            await scheduler.stop()
            return scheduler

        scheduler = _run(scenario())
        assert scheduler.run_count == 5
        assert peak == 1


class TestLifecycle:
    def test_notify_before_start(self):
        with pytest.raises(SchedulerError):
            _scheduler(_Job()).notify(SchedulerEvent.RUN_NOW)

    def test_double_start(self):
        async def scenario():
            scheduler = _scheduler(_Job())
            scheduler.start()
            try:
                with pytest.raises(SchedulerError):
                    scheduler.start()
            finally:
                await scheduler.stop()

        _run(scenario())

    def test_stop_when_not_running(self):
        with pytest.raises(SchedulerError):
            _run(_scheduler(_Job()).stop())

    def test_negative_interval_rejected(self):
        with pytest.raises(ValueError):
            AutoAnalysisScheduler(_Job(), -1)

    def test_zero_tick_starts_no_ticker(self):
        async def scenario():
            scheduler = _scheduler(_Job())
            scheduler.start()
            has_ticker = scheduler._ticker is not None
            await scheduler.stop()
            return has_ticker, scheduler.running

        assert _run(scenario()) == (False, False)

    def test_ticker_queues_ticks(self):
        job = _Job()

        async def scenario():
            scheduler = AutoAnalysisScheduler(job, 0, tick_seconds=0.01)
            scheduler.start()
            for _ in range(100):
                if job.calls >= 2:
                    break
                await asyncio.sleep(0.01)
            await scheduler.stop()

        _run(scenario())
        assert job.calls >= 2
