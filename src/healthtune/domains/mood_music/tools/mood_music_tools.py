"""MCP tools for mood analysis and mood-matched music recommendations."""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from healthtune.core.audit.logger import AuditLogger
    from healthtune.core.storage.repository import HealthTuneRepository
    from healthtune.domains.mood_music.domain_logic.recommender import (
        RecommendationOrchestrator,
    )
    from healthtune.domains.mood_music.domain_logic.scheduler import AutoAnalysisScheduler

from healthtune.core.storage.models import INTERACTION_ACTIONS, UserInteraction
from healthtune.core.storage.repository import RepositoryError
from healthtune.domains.mood_music.domain_logic.mood_inference import SOURCE_LLM
from healthtune.domains.mood_music.domain_logic.recommender import (
    MAX_CATALOG_LIMIT,
    NoHealthDataError,
)
from healthtune.domains.mood_music.domain_logic.scheduler import SchedulerEvent

logger = logging.getLogger(__name__)

# Interactions that mean playback of a track is over
_TRACK_END_ACTIONS = ("played", "skipped")


def _no_health_data(user_id: str) -> str:
    return json.dumps({
        "status": "error",
        "error": "no_health_data",
        "message": (
            f"No health data available for user '{user_id}'. "
            "Record a reading with record_health_metric first."
        ),
    })


def register_mood_music_tools(
    mcp: FastMCP,
    orchestrator: RecommendationOrchestrator,
    repository: HealthTuneRepository,
    *,
    default_user_id: str,
    llm_provider_name: str | None = None,
    audit_logger: AuditLogger | None = None,
    scheduler: AutoAnalysisScheduler | None = None,
) -> None:
    """Register mood and recommendation tools on the MCP server.

    ``llm_provider_name`` is None when moods are inferred locally; it is
    recorded in the audit trail as the destination of health data.
    """

    def _audit(
        tool_name: str,
        tool_input: dict,
        user_id: str,
        start_time: float,
        *,
        inference_source: str | None = None,
        catalog_source: str | None = None,
        mood_analysis_id: str | None = None,
        error: Exception | None = None,
    ) -> None:
        if audit_logger is None:
            return
        audit_logger.log_tool_call(
            tool_name=tool_name,
            tool_input=tool_input,
            user_id=user_id,
            llm_provider=llm_provider_name,
            # snapshot leaves the process once a backend is called, even if it fails
            llm_disclosed=llm_provider_name is not None and error is None,
            inference_source=inference_source,
            catalog_source=catalog_source,
            mood_analysis_id=mood_analysis_id,
            duration_ms=(time.monotonic() - start_time) * 1000,
            status="failure" if error is not None else "success",
            error_type=type(error).__name__ if error is not None else None,
        )

    @mcp.tool
    async def analyze_mood(ctx: Context, user_id: str = "") -> str:
        """Infer your current mood from your latest health metrics.

        Uses heart rate, steps, sleep score and other recent readings. The
        analysis is saved to your history.

        Args:
            user_id: Whose data to analyze. Defaults to the configured user.
        """
        user_id = user_id or default_user_id
        start_time = time.monotonic()
        try:
            stored = await orchestrator.analyze(user_id)
        except NoHealthDataError as exc:
            _audit("analyze_mood", {"user_id": user_id}, user_id, start_time, error=exc)
            return _no_health_data(user_id)

        _audit(
            "analyze_mood", {"user_id": user_id}, user_id, start_time,
            inference_source=stored.inference_source,
            mood_analysis_id=stored.id,
        )
        return json.dumps({
            "status": "ok",
            "analysis": stored.to_dict(),
            "ai_generated": stored.inference_source == SOURCE_LLM,
        }, indent=2)

    @mcp.tool
    async def recommend_music(ctx: Context, limit: int = 10, user_id: str = "") -> str:
        """Recommend tracks that match your current mood.

        Analyzes your latest health metrics, then ranks tracks by how well
        their energy, positivity, danceability and tempo fit that mood.

        Args:
            limit: Number of tracks to return (1-50, default 10).
            user_id: Whose data to use. Defaults to the configured user.
        """
        if not 1 <= limit <= MAX_CATALOG_LIMIT:
            return json.dumps({
                "status": "error",
                "message": f"limit must be between 1 and {MAX_CATALOG_LIMIT}.",
            })

        user_id = user_id or default_user_id
        tool_input = {"user_id": user_id, "limit": limit}
        start_time = time.monotonic()
        try:
            run = await orchestrator.run(user_id, limit)
        except NoHealthDataError as exc:
            _audit("recommend_music", tool_input, user_id, start_time, error=exc)
            return _no_health_data(user_id)

        _audit(
            "recommend_music", tool_input, user_id, start_time,
            inference_source=run.analysis.inference_source,
            catalog_source=run.catalog_source,
            mood_analysis_id=run.analysis.stored.id,
        )
        tracks = []
        for rec_id, track in zip(run.recommendation_ids, run.tracks):
            tracks.append({"recommendationId": rec_id, **track.to_dict()})
        return json.dumps({
            "status": "ok",
            "mood_analysis": run.analysis.stored.to_dict(),
            "catalog_source": run.catalog_source,
            "tracks": tracks,
        }, indent=2)

    @mcp.tool
    async def mood_history(ctx: Context, limit: int = 10, user_id: str = "") -> str:
        """List your recent mood analyses, newest first.

        Args:
            limit: Maximum analyses to return (default 10).
            user_id: Whose history to show. Defaults to the configured user.
        """
        user_id = user_id or default_user_id
        analyses = repository.list_mood_analyses(user_id, limit=max(1, limit))
        return json.dumps({
            "status": "ok",
            "count": len(analyses),
            "analyses": [a.to_dict() for a in analyses],
        }, indent=2)

    @mcp.tool
    async def recommendation_history(
        ctx: Context,
        mood_analysis_id: str = "",
        limit: int = 20,
        user_id: str = "",
    ) -> str:
        """List tracks previously recommended to you.

        Args:
            mood_analysis_id: Only show tracks from this analysis.
            limit: Maximum tracks to return (default 20).
            user_id: Whose history to show. Defaults to the configured user.
        """
        user_id = user_id or default_user_id
        recs = repository.list_recommendations(
            user_id, mood_analysis_id=mood_analysis_id or None, limit=max(1, limit)
        )
        return json.dumps({
            "status": "ok",
            "count": len(recs),
            "recommendations": [r.to_dict() for r in recs],
        }, indent=2)

    @mcp.tool
    async def record_interaction(
        ctx: Context,
        recommendation_id: str,
        action: str,
        user_id: str = "",
    ) -> str:
        """Tell HealthTune how a recommended track went.

        Finishing or skipping a track triggers a fresh mood analysis when
        auto-analysis is running.

        Args:
            recommendation_id: The recommendationId returned by recommend_music.
            action: One of 'liked', 'disliked', 'played', 'skipped'.
            user_id: Who is interacting. Defaults to the configured user.
        """
        if action not in INTERACTION_ACTIONS:
            return json.dumps({
                "status": "error",
                "message": f"action must be one of: {' | '.join(INTERACTION_ACTIONS)}",
            })

        user_id = user_id or default_user_id
        try:
            interaction_id = repository.add_interaction(UserInteraction(
                user_id=user_id,
                recommendation_id=recommendation_id,
                action=action,
            ))
        except RepositoryError as exc:
            return json.dumps({"status": "error", "message": str(exc)})

        auto_analysis = False
        if action in _TRACK_END_ACTIONS and scheduler is not None and scheduler.running:
            scheduler.notify(SchedulerEvent.TRACK_ENDED)
            auto_analysis = True

        return json.dumps({
            "status": "saved",
            "interaction_id": interaction_id,
            "action": action,
            "auto_analysis_triggered": auto_analysis,
        })
