"""Concrete HealthDataProvider implementations."""

from __future__ import annotations

from datetime import datetime

from healthtune.core.storage.repository import HealthTuneRepository
from healthtune.domains.mood_music.domain_logic.models import (
    HealthMetric,
    HealthMetricSnapshot,
)


class StoredHealthDataProvider:
    """Latest readings from the encrypted data bank."""

    def __init__(self, repository: HealthTuneRepository) -> None:
        self._repo = repository

    async def latest_by_type(self, user_id: str) -> HealthMetricSnapshot:
        return {
            metric_type: HealthMetric(
                value=stored.value,
                unit=stored.unit,
                timestamp=datetime.fromisoformat(stored.timestamp),
            )
            for metric_type, stored in self._repo.get_latest_health_metrics(user_id).items()
        }

    @property
    def data_source(self) -> str:
        return "stored"


class MockHealthDataProvider:
    """Returns the same snapshot for every user. For tests and demos."""

    def __init__(self, snapshot: HealthMetricSnapshot | None = None) -> None:
        self._snapshot = dict(snapshot or {})

    async def latest_by_type(self, user_id: str) -> HealthMetricSnapshot:
        return dict(self._snapshot)

    @property
    def data_source(self) -> str:
        return "mock"
