"""Shared test fixtures for HealthTune tests."""

from __future__ import annotations

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "mock")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "")
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.setenv("SPOTIFY_CLIENT_ID", "")
    monkeypatch.setenv("SPOTIFY_CLIENT_SECRET", "")
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("DB_PATH", ":memory:")
    monkeypatch.setenv("AUTO_ANALYZE_INTERVAL_MINUTES", "0")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from healthtune.domains.mood_music.domain_logic.models import (  # noqa: E402
    AcousticFeatureVector,
    HealthMetric,
    HealthMetricSnapshot,
    TrackCandidate,
)

NOW = datetime(2026, 3, 2, 15, 30, tzinfo=timezone.utc)

_UNITS = {
    "heart_rate": "bpm",
    "steps": "steps",
    "sleep_score": "score",
    "energy_level": "score",
    "stress_level": "score",
}


def make_snapshot(now: datetime = NOW, **values: float) -> HealthMetricSnapshot:
    """Snapshot with one reading per keyword, each five minutes old."""
    return {
        metric_type: HealthMetric(
            value=float(value),
            unit=_UNITS.get(metric_type, ""),
            timestamp=now - timedelta(minutes=5),
        )
        for metric_type, value in values.items()
    }


def make_candidate(
    id: str = "track-1",
    energy: float = 0.5,
    valence: float = 0.5,
    danceability: float = 0.5,
    tempo: float = 120.0,
    **overrides: Any,
) -> TrackCandidate:
    defaults: dict[str, Any] = dict(
        id=id,
        name=f"Song {id}",
        artist="Test Artist",
        album="Test Album",
        duration_ms=215000,
        measured_features=AcousticFeatureVector(
            energy=energy, valence=valence, danceability=danceability, tempo=tempo
        ),
        external_url=f"https://open.spotify.com/track/{id}",
        preview_url=None,
    )
    defaults.update(overrides)
    return TrackCandidate(**defaults)


def mood_payload(**overrides: Any) -> str:
    """A well-formed backend mood payload as JSON text."""
    payload: dict[str, Any] = {
        "mood": "focused",
        "confidence": 82,
        "factors": ["steady heart rate", "good sleep"],
        "description": "You seem settled and ready to concentrate.",
        "recommendations": {
            "energyLevel": "medium",
            "musicGenres": ["lo-fi", "classical"],
            "tempo": "medium",
            "valence": "medium",
        },
    }
    payload.update(overrides)
    return json.dumps(payload)


# ---------------------------------------------------------------------------
# Fake catalogs
# ---------------------------------------------------------------------------

class FakeCatalog:
    """CatalogProvider returning canned candidates, or raising ``error``."""

    name = "spotify"

    def __init__(
        self,
        candidates: list[TrackCandidate] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.candidates = list(candidates or [])
        self.error = error
        self.calls: list[tuple[list[str], AcousticFeatureVector, int]] = []

    async def search(
        self,
        seed_genres: list[str],
        target: AcousticFeatureVector,
        limit: int,
    ) -> list[TrackCandidate]:
        self.calls.append((list(seed_genres), target, limit))
        if self.error is not None:
            raise self.error
        return list(self.candidates)


@pytest.fixture
def fake_catalog() -> FakeCatalog:
    return FakeCatalog([
        make_candidate("a", energy=0.2, valence=0.3, danceability=0.3, tempo=80),
        make_candidate("b", energy=0.8, valence=0.7, danceability=0.8, tempo=135),
        make_candidate("c", energy=0.5, valence=0.5, danceability=0.5, tempo=100),
    ])


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def health_db():
    """Create an in-memory HealthDatabase for testing."""
    from healthtune.core.storage.database import HealthDatabase

    db = HealthDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from healthtune.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def health_repository(health_db, field_encryptor):
    """Create a HealthTuneRepository backed by in-memory SQLite."""
    from healthtune.core.storage.repository import HealthTuneRepository

    return HealthTuneRepository(health_db, field_encryptor)


@pytest.fixture
def audit_logger(health_db):
    """Create an AuditLogger backed by in-memory SQLite."""
    from healthtune.core.audit.logger import AuditLogger

    return AuditLogger(health_db)
