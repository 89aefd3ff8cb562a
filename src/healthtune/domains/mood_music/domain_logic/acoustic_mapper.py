"""Mood analysis -> target acoustic features.

Deterministic: the same MoodAnalysisResult always maps to the same vector.
"""

from __future__ import annotations

from healthtune.domains.mood_music.domain_logic.models import (
    AcousticFeatureVector,
    MoodAnalysisResult,
)

# energyLevel -> (energy, danceability, tempo)
_ENERGY_LEVEL_TARGETS: dict[str, tuple[float, float, float]] = {
    "high": (0.7, 0.7, 140.0),
    "medium": (0.5, 0.5, 120.0),
    "low": (0.3, 0.3, 90.0),
}

_VALENCE_TARGETS: dict[str, float] = {
    "high": 0.7,
    "medium": 0.5,
    "low": 0.3,
}


def map_mood_to_targets(result: MoodAnalysisResult) -> AcousticFeatureVector:
    """Derive the target acoustic vector for a mood analysis.

    1. ``energyLevel`` sets energy, danceability and tempo.
    2. The ``valence`` hint sets valence.
    3. Mood-specific adjustments clamp on top of steps 1-2 and never undo
       a boost from them. Moods without an adjustment keep steps 1-2 only.
    """
    hints = result.recommendations
    energy, danceability, tempo = _ENERGY_LEVEL_TARGETS.get(
        hints.energy_level, _ENERGY_LEVEL_TARGETS["medium"]
    )
    valence = _VALENCE_TARGETS.get(hints.valence, _VALENCE_TARGETS["medium"])

    mood = result.mood
    if mood == "energetic":
        energy = max(energy, 0.7)
        valence = max(valence, 0.6)
        danceability = max(danceability, 0.6)
    elif mood in ("calm", "relaxed"):
        energy = min(energy, 0.4)
        tempo = min(tempo, 100.0)
    elif mood == "focused":
        danceability = min(danceability, 0.4)
        valence = 0.5
    elif mood == "stressed":
        energy = min(energy, 0.3)
        valence = max(valence, 0.4)
        tempo = min(tempo, 90.0)

    return AcousticFeatureVector(
        energy=energy,
        valence=valence,
        danceability=danceability,
        tempo=tempo,
    )
