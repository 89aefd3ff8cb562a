"""Mood inference: LLM-backed classification with a heuristic fallback.

``MoodInferenceEngine.infer`` never raises. A backend that fails, times out
or returns a payload that does not decode is logged and replaced by
``infer_fallback_mood``, which is deterministic and needs no network.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from healthtune.core.llm.client import InferenceBackendError, InnerLLMClient
from healthtune.domains.mood_music.domain_logic.models import (
    HealthMetricSnapshot,
    MoodAnalysisResult,
    MoodRecommendations,
    UserPreferences,
)
from healthtune.domains.mood_music.domain_logic.mood_payload import (
    Decoded,
    decode_mood_payload,
)
from healthtune.domains.mood_music.prompts.mood_prompts import build_mood_user_message

logger = logging.getLogger(__name__)

SOURCE_LLM = "llm"
SOURCE_HEURISTIC = "heuristic"

MOOD_GENRES: dict[str, tuple[str, ...]] = {
    "energetic": ("world-music", "indian", "new-age", "spiritual", "devotional", "pop", "electronic"),
    "calm": ("meditation", "ambient", "new-age", "indian", "world-music", "classical", "spiritual", "flute"),
    "focused": ("meditation", "indian", "new-age", "instrumental", "ambient", "world-music", "classical", "spiritual"),
    "melancholy": ("meditation", "new-age", "indian", "world-music", "ambient", "acoustic", "spiritual"),
    "stressed": ("meditation", "indian", "new-age", "ambient", "world-music", "classical", "spiritual", "healing"),
    "relaxed": ("meditation", "new-age", "indian", "world-music", "ambient", "jazz", "spiritual", "classical"),
}
DEFAULT_MOOD_GENRES = ("meditation", "new-age", "indian", "world-music")

FALLBACK_BASE_CONFIDENCE = 65
FALLBACK_MAX_CONFIDENCE = 85


def genres_for_mood(mood: str) -> tuple[str, ...]:
    return MOOD_GENRES.get(mood, DEFAULT_MOOD_GENRES)


def _value(snapshot: HealthMetricSnapshot, metric_type: str) -> float | None:
    metric = snapshot.get(metric_type)
    return metric.value if metric is not None else None


def infer_fallback_mood(snapshot: HealthMetricSnapshot) -> MoodAnalysisResult:
    """Classify mood from heart rate, steps and sleep score.

    Rules run in order and later rules overwrite mood/energy set by earlier
    ones; factors and confidence accumulate. Missing readings skip their rule.
    """
    heart_rate = _value(snapshot, "heart_rate")
    steps = _value(snapshot, "steps")
    sleep_score = _value(snapshot, "sleep_score")

    mood = "calm"
    energy_level = "medium"
    confidence = FALLBACK_BASE_CONFIDENCE
    factors: list[str] = []

    if heart_rate is not None and heart_rate > 90:
        mood = "energetic"
        energy_level = "high"
        factors.append("Elevated heart rate")
    elif heart_rate is not None and heart_rate < 65:
        mood = "relaxed"
        energy_level = "low"
        factors.append("Low resting heart rate")

    if steps is not None and steps > 8000:
        mood = "energetic"
        energy_level = "high"
        factors.append("High activity level")
        confidence += 10
    elif steps is not None and steps < 3000:
        energy_level = "low"
        factors.append("Low activity level")

    if sleep_score is not None and sleep_score < 70:
        mood = "stressed"
        factors.append("Poor sleep quality")
        confidence += 5
    elif sleep_score is not None and sleep_score > 85:
        factors.append("Good sleep quality")
        confidence += 10

    if not factors:
        factors.append("Limited health data available")

    phrasing = "Multiple factors" if len(factors) > 1 else "Key indicators"
    if energy_level == "high":
        tempo = "fast"
    elif energy_level == "low":
        tempo = "slow"
    else:
        tempo = "medium"

    return MoodAnalysisResult(
        mood=mood,
        confidence=min(confidence, FALLBACK_MAX_CONFIDENCE),
        factors=tuple(factors),
        description=(
            f"Based on available health metrics, you appear to be in a {mood} state. "
            f"{phrasing} suggest this mood pattern."
        ),
        recommendations=MoodRecommendations(
            energy_level=energy_level,
            music_genres=genres_for_mood(mood),
            tempo=tempo,
            valence="low" if mood in ("stressed", "melancholy") else "medium",
        ),
    )


@runtime_checkable
class MoodBackend(Protocol):
    """Anything that turns a health snapshot into raw mood payload text."""

    async def classify(
        self,
        snapshot: HealthMetricSnapshot,
        preferences: UserPreferences | None = None,
    ) -> str:
        """Return the raw payload, or raise InferenceBackendError."""
        ...


class LLMMoodBackend:
    """MoodBackend that asks an LLM provider for a JSON mood analysis."""

    def __init__(self, client: InnerLLMClient) -> None:
        self.client = client

    @property
    def provider_name(self) -> str:
        return self.client.provider_name

    async def classify(
        self,
        snapshot: HealthMetricSnapshot,
        preferences: UserPreferences | None = None,
    ) -> str:
        response = await self.client.invoke(
            build_mood_user_message(snapshot, preferences),
            max_tokens=500,
            temperature=0.3,
        )
        return response.content


@dataclass(frozen=True)
class InferenceOutcome:
    """A mood result and which strategy produced it ("llm" or "heuristic")."""

    result: MoodAnalysisResult
    source: str


class MoodInferenceEngine:
    """Picks the backend result when it is usable, the heuristic otherwise."""

    def __init__(self, backend: MoodBackend | None = None) -> None:
        self.backend = backend

    async def infer(
        self,
        snapshot: HealthMetricSnapshot,
        preferences: UserPreferences | None = None,
    ) -> InferenceOutcome:
        if self.backend is None:
            return InferenceOutcome(infer_fallback_mood(snapshot), SOURCE_HEURISTIC)

        try:
            content = await self.backend.classify(snapshot, preferences)
        except InferenceBackendError as exc:
            logger.warning("Mood backend failed, using heuristic: %s", exc)
            return InferenceOutcome(infer_fallback_mood(snapshot), SOURCE_HEURISTIC)
        except Exception:
            logger.exception("Unexpected mood backend error, using heuristic")
            return InferenceOutcome(infer_fallback_mood(snapshot), SOURCE_HEURISTIC)

        decoded = decode_mood_payload(content)
        if isinstance(decoded, Decoded):
            return InferenceOutcome(decoded.result, SOURCE_LLM)

        logger.warning("Malformed mood payload, using heuristic: %s", decoded.reason)
        return InferenceOutcome(infer_fallback_mood(snapshot), SOURCE_HEURISTIC)
