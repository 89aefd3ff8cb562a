"""Tests for the health data providers."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from conftest import make_snapshot

from healthtune.core.storage.models import StoredHealthMetric
from healthtune.domains.mood_music.connectors import HealthDataProvider
from healthtune.domains.mood_music.connectors.providers import (
    MockHealthDataProvider,
    StoredHealthDataProvider,
)


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _metric(metric_type, value, timestamp, user_id="u1"):
    return StoredHealthMetric(
        user_id=user_id, metric_type=metric_type, value=value, unit="bpm", timestamp=timestamp,
    )


class TestStoredProvider:
    def test_latest_per_type(self, health_repository):
        health_repository.add_health_metrics([
            _metric("heart_rate", 70, "2026-03-02T10:00:00Z"),
            _metric("heart_rate", 88, "2026-03-02T12:00:00Z"),
            _metric("heart_rate", 64, "2026-03-01T12:00:00Z"),
            _metric("steps", 4200, "2026-03-02T11:00:00Z"),
        ])
        snapshot = _run(StoredHealthDataProvider(health_repository).latest_by_type("u1"))

        assert set(snapshot) == {"heart_rate", "steps"}
        assert snapshot["heart_rate"].value == 88
        assert snapshot["heart_rate"].timestamp == datetime(2026, 3, 2, 12, tzinfo=timezone.utc)

    def test_other_users_not_visible(self, health_repository):
        health_repository.add_health_metric(_metric("heart_rate", 70, "2026-03-02T10:00:00Z", "u2"))
        assert _run(StoredHealthDataProvider(health_repository).latest_by_type("u1")) == {}

    def test_data_source(self, health_repository):
        provider = StoredHealthDataProvider(health_repository)
        assert provider.data_source == "stored"
        assert isinstance(provider, HealthDataProvider)


class TestMockProvider:
    def test_same_snapshot_for_everyone(self):
        snapshot = make_snapshot(heart_rate=72)
        provider = MockHealthDataProvider(snapshot)
        assert _run(provider.latest_by_type("a")) == snapshot
        assert _run(provider.latest_by_type("b")) == snapshot
        assert provider.data_source == "mock"

    def test_returned_snapshot_is_a_copy(self):
        provider = MockHealthDataProvider(make_snapshot(heart_rate=72))
        _run(provider.latest_by_type("a")).clear()
        assert "heart_rate" in _run(provider.latest_by_type("a"))

    def test_empty_by_default(self):
        assert _run(MockHealthDataProvider().latest_by_type("a")) == {}
