"""Data models for the HealthTune persistence layer.

Timestamps are ISO 8601 UTC strings. Ids are assigned by the repository
when left empty.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

INTERACTION_ACTIONS = ("liked", "disliked", "played", "skipped")


@dataclass
class StoredHealthMetric:
    """One wearable reading."""

    user_id: str
    metric_type: str  # heart_rate, steps, sleep_score, energy_level, stress_level
    value: float
    unit: str
    timestamp: str
    device_type: str = "manual"  # apple_watch, whoop, iphone, manual, simulator
    metadata: dict[str, Any] = field(default_factory=dict)  # encrypted at rest
    id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "deviceType": self.device_type,
            "metricType": self.metric_type,
            "value": self.value,
            "unit": self.unit,
            "timestamp": self.timestamp,
            "metadata": self.metadata,
        }


@dataclass
class StoredMoodAnalysis:
    """A persisted mood analysis and the snapshot it was derived from."""

    user_id: str
    mood: str
    confidence: float
    factors: list[str]
    description: str
    recommendations: dict[str, Any]  # camelCase MoodRecommendations shape
    inference_source: str  # 'llm' | 'heuristic'
    health_data_snapshot: dict[str, Any] = field(default_factory=dict)  # encrypted at rest
    timestamp: str = ""
    id: str = ""

    def result_dict(self) -> dict[str, Any]:
        """The MoodAnalysisResult JSON shape, without storage fields."""
        return {
            "mood": self.mood,
            "confidence": self.confidence,
            "factors": list(self.factors),
            "description": self.description,
            "recommendations": dict(self.recommendations),
        }

    def to_dict(self, include_snapshot: bool = False) -> dict[str, Any]:
        data = {
            "id": self.id,
            "userId": self.user_id,
            "timestamp": self.timestamp,
            "inferenceSource": self.inference_source,
            **self.result_dict(),
        }
        if include_snapshot:
            data["healthDataSnapshot"] = self.health_data_snapshot
        return data


@dataclass
class StoredRecommendation:
    """A recommended track, keyed to the mood analysis that produced it."""

    user_id: str
    mood_analysis_id: str
    track: dict[str, Any]  # camelCase TrackRecommendation shape
    catalog_source: str  # 'spotify' | 'fallback'
    timestamp: str = ""
    id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "moodAnalysisId": self.mood_analysis_id,
            "catalogSource": self.catalog_source,
            "timestamp": self.timestamp,
            "track": dict(self.track),
        }


@dataclass
class UserInteraction:
    """Feedback on a recommendation: liked, disliked, played or skipped."""

    user_id: str
    recommendation_id: str
    action: str
    timestamp: str = ""
    id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "recommendationId": self.recommendation_id,
            "action": self.action,
            "timestamp": self.timestamp,
        }
