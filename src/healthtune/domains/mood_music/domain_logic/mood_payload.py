"""Strict decoding of mood backend payloads.

Backend output is never trusted by shape. ``decode_mood_payload`` either
returns ``Decoded(result)`` or ``DecodeFailure(reason)``; callers branch on
the tag instead of catching validation errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from healthtune.core.llm.response import (
    MalformedBackendResponseError,
    extract_json_object,
)
from healthtune.domains.mood_music.domain_logic.models import (
    MoodAnalysisResult,
    MoodRecommendations,
    clamp_confidence,
)


class _RecommendationsPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    energyLevel: Literal["low", "medium", "high"]
    musicGenres: list[str]
    tempo: Literal["slow", "medium", "fast"]
    valence: Literal["low", "medium", "high"]


class MoodPayload(BaseModel):
    """Wire shape of a mood analysis as returned by the backend."""

    model_config = ConfigDict(extra="ignore")

    mood: str = Field(min_length=1)
    confidence: float = Field(gt=0)
    factors: list[str]
    description: str = Field(min_length=1)
    recommendations: _RecommendationsPayload

    @field_validator("mood")
    @classmethod
    def _normalize_mood(cls, value: str) -> str:
        mood = value.strip().lower()
        if not mood:
            raise ValueError("mood must not be blank")
        return mood

    @field_validator("confidence", mode="before")
    @classmethod
    def _reject_bool_confidence(cls, value: object) -> object:
        # JSON true/false would otherwise coerce to 1.0/0.0
        if isinstance(value, bool):
            raise ValueError("confidence must be a number")
        return value

    def to_result(self) -> MoodAnalysisResult:
        recs = self.recommendations
        return MoodAnalysisResult(
            mood=self.mood,
            confidence=clamp_confidence(self.confidence),
            factors=tuple(self.factors),
            description=self.description,
            recommendations=MoodRecommendations(
                energy_level=recs.energyLevel,
                music_genres=tuple(recs.musicGenres),
                tempo=recs.tempo,
                valence=recs.valence,
            ),
        )


@dataclass(frozen=True)
class Decoded:
    result: MoodAnalysisResult


@dataclass(frozen=True)
class DecodeFailure:
    reason: str


DecodeResult = Union[Decoded, DecodeFailure]


def decode_mood_payload(content: str) -> DecodeResult:
    """Decode raw backend text into a MoodAnalysisResult, or say why not."""
    try:
        raw = extract_json_object(content)
    except MalformedBackendResponseError as exc:
        return DecodeFailure(str(exc))

    try:
        payload = MoodPayload.model_validate(raw)
    except ValidationError as exc:
        fields = ", ".join(
            ".".join(str(part) for part in err["loc"]) or "<root>" for err in exc.errors()
        )
        return DecodeFailure(f"Payload failed validation: {fields}")

    return Decoded(payload.to_result())
