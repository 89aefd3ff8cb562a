"""Recommendation orchestrator: snapshot -> mood -> tracks -> data bank.

The only failure a caller sees is ``NoHealthDataError``. Backend and
catalog failures are absorbed by the heuristic mood path and the static
fallback catalog; storage errors propagate unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from healthtune.core.storage.models import StoredMoodAnalysis, StoredRecommendation
from healthtune.core.storage.repository import HealthTuneRepository
from healthtune.domains.mood_music.connectors import (
    CatalogProvider,
    CatalogProviderError,
    HealthDataProvider,
)
from healthtune.domains.mood_music.connectors.fallback_catalog import FallbackCatalog
from healthtune.domains.mood_music.domain_logic.acoustic_mapper import map_mood_to_targets
from healthtune.domains.mood_music.domain_logic.genre_selector import select_genres
from healthtune.domains.mood_music.domain_logic.models import (
    HealthMetricSnapshot,
    MoodAnalysisResult,
    TrackRecommendation,
    UserPreferences,
    snapshot_to_dict,
)
from healthtune.domains.mood_music.domain_logic.mood_inference import MoodInferenceEngine
from healthtune.domains.mood_music.domain_logic.track_scorer import build_recommendation

logger = logging.getLogger(__name__)

MAX_CATALOG_LIMIT = 50


class NoHealthDataError(Exception):
    """The user has no health readings to analyze."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"No health data available for user {user_id!r}")
        self.user_id = user_id


@dataclass
class AnalysisRun:
    """A persisted analysis plus the in-memory result and snapshot behind it."""

    stored: StoredMoodAnalysis
    result: MoodAnalysisResult
    snapshot: HealthMetricSnapshot
    inference_source: str


@dataclass
class RecommendationRun:
    analysis: AnalysisRun
    tracks: list[TrackRecommendation]
    catalog_source: str
    recommendation_ids: list[str]


class RecommendationOrchestrator:
    """Wires health data, mood inference, catalog search and persistence."""

    def __init__(
        self,
        health_provider: HealthDataProvider,
        inference_engine: MoodInferenceEngine,
        repository: HealthTuneRepository,
        catalog_provider: CatalogProvider | None = None,
        fallback_catalog: FallbackCatalog | None = None,
    ) -> None:
        self.health_provider = health_provider
        self.inference_engine = inference_engine
        self.repository = repository
        self.catalog_provider = catalog_provider
        self.fallback_catalog = fallback_catalog or FallbackCatalog()

    def preferences_for(self, user_id: str) -> UserPreferences | None:
        raw = self.repository.get_user_preferences(user_id)
        return UserPreferences.from_dict(raw) if raw is not None else None

    async def analyze(self, user_id: str) -> StoredMoodAnalysis:
        """Infer and persist the user's current mood.

        Raises:
            NoHealthDataError: If the user has no readings.
        """
        run = await self.run_analysis(user_id)
        return run.stored

    async def run_analysis(
        self, user_id: str, preferences: UserPreferences | None = None
    ) -> AnalysisRun:
        snapshot = await self.health_provider.latest_by_type(user_id)
        if not snapshot:
            raise NoHealthDataError(user_id)

        if preferences is None:
            preferences = self.preferences_for(user_id)
        outcome = await self.inference_engine.infer(snapshot, preferences)
        result = outcome.result

        stored = StoredMoodAnalysis(
            user_id=user_id,
            mood=result.mood,
            confidence=result.confidence,
            factors=list(result.factors),
            description=result.description,
            recommendations=result.recommendations.to_dict(),
            inference_source=outcome.source,
            health_data_snapshot=snapshot_to_dict(snapshot),
        )
        self.repository.save_mood_analysis(stored)
        return AnalysisRun(stored, result, snapshot, outcome.source)

    async def recommend(self, user_id: str, limit: int = 10) -> list[TrackRecommendation]:
        """Ranked, persisted recommendations for the user's current mood.

        Raises:
            NoHealthDataError: If the user has no readings.
        """
        run = await self.run(user_id, limit)
        return run.tracks

    async def run(self, user_id: str, limit: int = 10) -> RecommendationRun:
        limit = max(1, limit)
        preferences = self.preferences_for(user_id)
        analysis = await self.run_analysis(user_id, preferences)
        result = analysis.result

        target = map_mood_to_targets(result)
        seeds = select_genres(result, preferences)

        tracks: list[TrackRecommendation] | None = None
        catalog_source = self.fallback_catalog.name
        if self.catalog_provider is not None:
            try:
                candidates = await self.catalog_provider.search(
                    seeds, target, min(limit, MAX_CATALOG_LIMIT)
                )
            except CatalogProviderError as exc:
                logger.warning("Catalog %s failed, using fallback catalog: %s",
                               self.catalog_provider.name, exc)
            except Exception:
                logger.exception("Unexpected catalog %s error, using fallback catalog",
                                 self.catalog_provider.name)
            else:
                scored = [build_recommendation(c, target, result) for c in candidates]
                # sorted() is stable: ties keep catalog order
                tracks = sorted(scored, key=lambda t: t.mood_match, reverse=True)[:limit]
                catalog_source = self.catalog_provider.name

        if tracks is None:
            tracks = self.fallback_catalog.recommend(result.mood, limit)

        run_timestamp = datetime.now(timezone.utc).isoformat()
        recommendation_ids = self.repository.save_recommendations([
            StoredRecommendation(
                user_id=user_id,
                mood_analysis_id=analysis.stored.id,
                track=track.to_dict(),
                catalog_source=catalog_source,
                timestamp=run_timestamp,
            )
            for track in tracks
        ])
        logger.info(
            "Recommended %d tracks for mood=%s (inference=%s, catalog=%s)",
            len(tracks), result.mood, analysis.inference_source, catalog_source,
        )
        return RecommendationRun(analysis, tracks, catalog_source, recommendation_ids)
