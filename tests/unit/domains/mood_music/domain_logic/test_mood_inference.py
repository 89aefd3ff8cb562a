"""Tests for heuristic mood inference and the inference engine."""

from __future__ import annotations

import asyncio

import pytest
from conftest import make_snapshot, mood_payload

from healthtune.core.llm.client import InferenceBackendError, InnerLLMClient
from healthtune.core.llm.providers.mock import MockProvider
from healthtune.domains.mood_music.domain_logic.mood_inference import (
    DEFAULT_MOOD_GENRES,
    SOURCE_HEURISTIC,
    SOURCE_LLM,
    LLMMoodBackend,
    MoodInferenceEngine,
    infer_fallback_mood,
)


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class _StaticBackend:
    def __init__(self, content: str = "", error: Exception | None = None) -> None:
        self.content = content
        self.error = error
        self.calls = 0

    async def classify(self, snapshot, preferences=None) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.content


# ---------------------------------------------------------------------------
# Heuristic
# ---------------------------------------------------------------------------

class TestFallbackMood:
    def test_active_and_well_rested(self):
        result = infer_fallback_mood(make_snapshot(heart_rate=95, steps=9000, sleep_score=90))
        assert result.mood == "energetic"
        assert result.recommendations.energy_level == "high"
        assert result.recommendations.tempo == "fast"
        assert result.confidence == 85
        assert result.factors == (
            "Elevated heart rate", "High activity level", "Good sleep quality",
        )

    def test_poor_sleep_overrides_earlier_rules(self):
        result = infer_fallback_mood(make_snapshot(heart_rate=60, steps=1000, sleep_score=60))
        assert result.mood == "stressed"
        assert result.recommendations.energy_level == "low"
        assert result.recommendations.valence == "low"
        assert result.confidence == 70
        assert result.factors == (
            "Low resting heart rate", "Low activity level", "Poor sleep quality",
        )

    def test_no_signal_defaults_to_calm(self):
        result = infer_fallback_mood(make_snapshot(heart_rate=75, steps=5000))
        assert result.mood == "calm"
        assert result.confidence == 65
        assert result.factors == ("Limited health data available",)
        assert "Key indicators" in result.description

    def test_zero_steps_is_low_activity(self):
        result = infer_fallback_mood(make_snapshot(steps=0))
        assert result.recommendations.energy_level == "low"
        assert result.factors == ("Low activity level",)

    def test_zero_sleep_score_is_stressed(self):
        result = infer_fallback_mood(make_snapshot(sleep_score=0))
        assert result.mood == "stressed"
        assert result.factors == ("Poor sleep quality",)
        assert result.confidence == 70

    def test_boundaries_are_exclusive(self):
        result = infer_fallback_mood(make_snapshot(heart_rate=90, steps=8000, sleep_score=70))
        assert result.mood == "calm"

    def test_description_mentions_mood(self):
        result = infer_fallback_mood(make_snapshot(heart_rate=100, steps=9000))
        assert "energetic state" in result.description
        assert "Multiple factors" in result.description

    def test_unknown_mood_genres_fall_back(self):
        result = infer_fallback_mood(make_snapshot(heart_rate=55))
        assert result.mood == "relaxed"
        assert "jazz" in result.recommendations.music_genres
        assert DEFAULT_MOOD_GENRES[0] == "meditation"

    def test_confidence_within_bounds(self):
        for values in (
            {"heart_rate": 120, "steps": 20000, "sleep_score": 99},
            {"heart_rate": 50, "steps": 100, "sleep_score": 10},
            {"stress_level": 90},
        ):
            result = infer_fallback_mood(make_snapshot(**values))
            assert 60 <= result.confidence <= 95


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class TestInferenceEngine:
    def test_no_backend_uses_heuristic(self):
        outcome = _run(MoodInferenceEngine().infer(make_snapshot(heart_rate=95)))
        assert outcome.source == SOURCE_HEURISTIC
        assert outcome.result.mood == "energetic"

    def test_valid_payload_used(self):
        engine = MoodInferenceEngine(_StaticBackend(mood_payload()))
        outcome = _run(engine.infer(make_snapshot(heart_rate=72)))
        assert outcome.source == SOURCE_LLM
        assert outcome.result.mood == "focused"
        assert outcome.result.confidence == 82

    def test_backend_confidence_clamped(self):
        engine = MoodInferenceEngine(_StaticBackend(mood_payload(confidence=99)))
        assert _run(engine.infer(make_snapshot(heart_rate=72))).result.confidence == 95

    def test_backend_error_falls_back(self):
        backend = _StaticBackend(error=InferenceBackendError("timeout"))
        outcome = _run(MoodInferenceEngine(backend).infer(make_snapshot(heart_rate=95)))
        assert outcome.source == SOURCE_HEURISTIC
        assert outcome.result.mood == "energetic"
        assert backend.calls == 1

    def test_unexpected_error_falls_back(self):
        backend = _StaticBackend(error=RuntimeError("boom"))
        outcome = _run(MoodInferenceEngine(backend).infer(make_snapshot(heart_rate=60)))
        assert outcome.source == SOURCE_HEURISTIC
        assert outcome.result.mood == "relaxed"

    @pytest.mark.parametrize("content", [
        "",
        "The user seems calm.",
        mood_payload(confidence="very"),
        mood_payload(recommendations={"energyLevel": "extreme", "musicGenres": [],
                                      "tempo": "slow", "valence": "low"}),
    ])
    def test_malformed_payload_falls_back(self, content):
        outcome = _run(MoodInferenceEngine(_StaticBackend(content)).infer(
            make_snapshot(heart_rate=95, steps=9000, sleep_score=90)
        ))
        assert outcome.source == SOURCE_HEURISTIC
        assert outcome.result.confidence == 85


class TestLLMMoodBackend:
    def test_sends_snapshot_summary(self):
        provider = MockProvider(response_content=mood_payload())
        backend = LLMMoodBackend(InnerLLMClient(provider))
        engine = MoodInferenceEngine(backend)
        outcome = _run(engine.infer(make_snapshot(heart_rate=72, steps=4000)))
        assert outcome.source == SOURCE_LLM
        assert "heart_rate: 72" in provider.last_user_message
        assert "steps: 4000" in provider.last_user_message
        assert backend.provider_name == "mock"

    def test_provider_failure_falls_back(self):
        provider = MockProvider(error=ConnectionError("refused"))
        engine = MoodInferenceEngine(LLMMoodBackend(InnerLLMClient(provider)))
        outcome = _run(engine.infer(make_snapshot(heart_rate=60)))
        assert outcome.source == SOURCE_HEURISTIC
