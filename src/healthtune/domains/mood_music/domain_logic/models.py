"""Mood and music domain models.

Field names on the Python side are snake_case; ``to_dict()`` renders the
camelCase JSON shape exchanged with the LLM backend, the MCP tools and
the data bank.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

KNOWN_MOODS = ("energetic", "calm", "focused", "melancholy", "stressed", "relaxed")
ENERGY_LEVELS = ("low", "medium", "high")
TEMPOS = ("slow", "medium", "fast")
VALENCES = ("low", "medium", "high")

# Metric types produced by the wearables we know about.
METRIC_TYPES = ("heart_rate", "steps", "sleep_score", "energy_level", "stress_level")

CONFIDENCE_MIN = 60
CONFIDENCE_MAX = 95


def clamp_confidence(value: float) -> float:
    """Clamp a mood confidence into [CONFIDENCE_MIN, CONFIDENCE_MAX]."""
    return max(CONFIDENCE_MIN, min(CONFIDENCE_MAX, value))


# ---------------------------------------------------------------------------
# Health metrics
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HealthMetric:
    """The most recent reading of one metric type."""

    value: float
    unit: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "unit": self.unit,
            "timestamp": self.timestamp.isoformat(),
        }


# metric type -> latest reading; absent types are missing keys
HealthMetricSnapshot = dict[str, HealthMetric]


def latest_by_type(
    readings: Iterable[tuple[str, HealthMetric]],
) -> HealthMetricSnapshot:
    """Reduce (metric_type, reading) pairs to the newest reading per type."""
    snapshot: HealthMetricSnapshot = {}
    for metric_type, reading in readings:
        current = snapshot.get(metric_type)
        if current is None or reading.timestamp > current.timestamp:
            snapshot[metric_type] = reading
    return snapshot


def snapshot_to_dict(snapshot: HealthMetricSnapshot) -> dict[str, dict[str, Any]]:
    return {metric_type: metric.to_dict() for metric_type, metric in snapshot.items()}


# ---------------------------------------------------------------------------
# Mood analysis
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MoodRecommendations:
    """Music hints attached to a mood analysis."""

    energy_level: str = "medium"
    music_genres: tuple[str, ...] = ()
    tempo: str = "medium"
    valence: str = "medium"

    def to_dict(self) -> dict[str, Any]:
        return {
            "energyLevel": self.energy_level,
            "musicGenres": list(self.music_genres),
            "tempo": self.tempo,
            "valence": self.valence,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MoodRecommendations:
        return cls(
            energy_level=data.get("energyLevel", "medium"),
            music_genres=tuple(data.get("musicGenres", ())),
            tempo=data.get("tempo", "medium"),
            valence=data.get("valence", "medium"),
        )


@dataclass(frozen=True)
class MoodAnalysisResult:
    """Mood classification inferred from a health snapshot.

    Created once per analysis and never mutated. ``confidence`` is always
    inside [60, 95] regardless of which strategy produced it.
    """

    mood: str
    confidence: float
    factors: tuple[str, ...]
    description: str
    recommendations: MoodRecommendations

    def to_dict(self) -> dict[str, Any]:
        return {
            "mood": self.mood,
            "confidence": self.confidence,
            "factors": list(self.factors),
            "description": self.description,
            "recommendations": self.recommendations.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MoodAnalysisResult:
        return cls(
            mood=data["mood"],
            confidence=clamp_confidence(float(data["confidence"])),
            factors=tuple(data.get("factors", ())),
            description=data.get("description", ""),
            recommendations=MoodRecommendations.from_dict(data.get("recommendations", {})),
        )


# ---------------------------------------------------------------------------
# Acoustic features and tracks
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AcousticFeatureVector:
    """Energy/valence/danceability in [0, 1], tempo in BPM."""

    energy: float = 0.5
    valence: float = 0.5
    danceability: float = 0.5
    tempo: float = 120.0

    def to_dict(self) -> dict[str, float]:
        return {
            "energy": self.energy,
            "valence": self.valence,
            "danceability": self.danceability,
            "tempo": self.tempo,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AcousticFeatureVector:
        return cls(
            energy=float(data["energy"]),
            valence=float(data["valence"]),
            danceability=float(data["danceability"]),
            tempo=float(data["tempo"]),
        )


@dataclass(frozen=True)
class TrackCandidate:
    """A track offered by a catalog, with its measured acoustic features."""

    id: str
    name: str
    artist: str
    album: str
    duration_ms: int
    measured_features: AcousticFeatureVector
    external_url: str
    preview_url: str | None = None


@dataclass(frozen=True)
class TrackRecommendation:
    """A candidate scored against the mood's target features."""

    id: str
    name: str
    artist: str
    album: str
    duration: str  # m:ss
    mood_match: int
    reason: str
    audio_features: AcousticFeatureVector
    external_url: str
    preview_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "artist": self.artist,
            "album": self.album,
            "duration": self.duration,
            "moodMatch": self.mood_match,
            "reason": self.reason,
            "audioFeatures": self.audio_features.to_dict(),
            "externalUrl": self.external_url,
        }
        if self.preview_url:
            data["previewUrl"] = self.preview_url
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrackRecommendation:
        return cls(
            id=data["id"],
            name=data["name"],
            artist=data["artist"],
            album=data["album"],
            duration=data.get("duration", "0:00"),
            mood_match=int(data["moodMatch"]),
            reason=data.get("reason", ""),
            audio_features=AcousticFeatureVector.from_dict(data["audioFeatures"]),
            external_url=data.get("externalUrl", "#"),
            preview_url=data.get("previewUrl"),
        )


# ---------------------------------------------------------------------------
# User preferences
# ---------------------------------------------------------------------------

@dataclass
class UserPreferences:
    """Music and health preferences supplied by the user."""

    music_genres: list[str] = field(default_factory=list)
    health_goals: list[str] = field(default_factory=list)
    mood_preferences: dict[str, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "musicGenres": list(self.music_genres),
            "healthGoals": list(self.health_goals),
            "moodPreferences": {k: list(v) for k, v in self.mood_preferences.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> UserPreferences:
        data = data or {}
        return cls(
            music_genres=[str(g) for g in data.get("musicGenres", [])],
            health_goals=[str(g) for g in data.get("healthGoals", [])],
            mood_preferences={
                str(mood): [str(g) for g in genres]
                for mood, genres in (data.get("moodPreferences") or {}).items()
            },
        )
