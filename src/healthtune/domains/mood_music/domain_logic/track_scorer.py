"""Similarity scoring of candidate tracks against mood target features."""

from __future__ import annotations

import math

from healthtune.domains.mood_music.domain_logic.models import (
    AcousticFeatureVector,
    MoodAnalysisResult,
    TrackCandidate,
    TrackRecommendation,
)

# Energy and valence carry the mood; danceability and tempo refine it.
ENERGY_WEIGHT = 0.35
VALENCE_WEIGHT = 0.35
DANCEABILITY_WEIGHT = 0.20
TEMPO_WEIGHT = 0.10

TEMPO_NORMALIZER_BPM = 100.0
CONFIDENCE_BONUS_WEIGHT = 0.1

MAX_MOOD_MATCH = 100
MAX_REASONS = 2
FALLBACK_REASON = "recommended based on your mood profile"


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


def score_track(
    target: AcousticFeatureVector,
    measured: AcousticFeatureVector,
    confidence: float,
) -> int:
    """Return the 0-100 mood match of ``measured`` against ``target``.

    Each feature scores ``1 - |difference|``; tempo differences are scaled
    by 100 BPM and floored at zero. The weighted sum gets a bonus of up to
    0.1 from the analysis confidence. Perfect matches with high confidence
    would land above 100, so the result is clamped into [0, 100].
    """
    energy_score = 1 - abs(target.energy - measured.energy)
    valence_score = 1 - abs(target.valence - measured.valence)
    danceability_score = 1 - abs(target.danceability - measured.danceability)
    tempo_score = max(0.0, 1 - abs(target.tempo - measured.tempo) / TEMPO_NORMALIZER_BPM)

    weighted = (
        ENERGY_WEIGHT * energy_score
        + VALENCE_WEIGHT * valence_score
        + DANCEABILITY_WEIGHT * danceability_score
        + TEMPO_WEIGHT * tempo_score
    )
    bonus = (confidence / 100) * CONFIDENCE_BONUS_WEIGHT

    # Half-up rounding, not banker's rounding.
    raw = math.floor((weighted + bonus) * 100 + 0.5)
    return int(_clamp(raw, 0, MAX_MOOD_MATCH))


def explain_match(
    result: MoodAnalysisResult,
    measured: AcousticFeatureVector,
    mood_match: int,
) -> str:
    """Build a short, human-readable justification for a mood match."""
    reasons: list[str] = []
    energy_level = result.recommendations.energy_level

    if measured.energy > 0.6 and energy_level == "high":
        reasons.append("high energy matches your current state")
    elif measured.energy < 0.4 and energy_level == "low":
        reasons.append("calming energy for relaxation")

    if measured.valence > 0.6 and result.mood != "stressed":
        reasons.append("uplifting mood")
    elif measured.valence < 0.4 and result.mood in ("melancholy", "stressed"):
        reasons.append("reflective tone matching your mood")

    if mood_match > 85:
        reasons.append("perfect match for your current mood")
    elif mood_match > 70:
        reasons.append("good alignment with your emotional state")

    if not reasons:
        return FALLBACK_REASON
    return " and ".join(reasons[:MAX_REASONS])


def format_duration(duration_ms: int) -> str:
    """Render milliseconds as ``m:ss``."""
    minutes, remainder = divmod(max(0, int(duration_ms)), 60_000)
    return f"{minutes}:{remainder // 1000:02d}"


def build_recommendation(
    candidate: TrackCandidate,
    target: AcousticFeatureVector,
    result: MoodAnalysisResult,
) -> TrackRecommendation:
    """Score one catalog candidate and wrap it as a recommendation."""
    measured = candidate.measured_features
    mood_match = score_track(target, measured, result.confidence)
    return TrackRecommendation(
        id=candidate.id,
        name=candidate.name,
        artist=candidate.artist,
        album=candidate.album,
        duration=format_duration(candidate.duration_ms),
        mood_match=mood_match,
        reason=explain_match(result, measured, mood_match),
        audio_features=measured,
        external_url=candidate.external_url,
        preview_url=candidate.preview_url,
    )
