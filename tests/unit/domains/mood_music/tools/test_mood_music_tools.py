"""Unit tests for the mood and recommendation MCP tools."""

from __future__ import annotations

import asyncio
import json

import pytest
from conftest import make_snapshot
from fastmcp import Client, FastMCP

from healthtune.domains.mood_music.connectors.providers import MockHealthDataProvider
from healthtune.domains.mood_music.domain_logic.mood_inference import MoodInferenceEngine
from healthtune.domains.mood_music.domain_logic.recommender import RecommendationOrchestrator
from healthtune.domains.mood_music.domain_logic.scheduler import AutoAnalysisScheduler
from healthtune.domains.mood_music.tools.mood_music_tools import register_mood_music_tools

USER = "demo_user"


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _call(client: Client, tool: str, args: dict | None = None) -> dict:
    result = await client.call_tool(tool, args or {})
    return json.loads(result.content[0].text)


def _server(repository, catalog=None, snapshot=None, audit_logger=None,
            llm_provider_name=None, scheduler=None) -> FastMCP:
    provider = MockHealthDataProvider(
        snapshot if snapshot is not None else make_snapshot(heart_rate=95, steps=9000, sleep_score=90)
    )
    orchestrator = RecommendationOrchestrator(
        provider, MoodInferenceEngine(), repository, catalog_provider=catalog
    )
    mcp = FastMCP("test")
    register_mood_music_tools(
        mcp,
        orchestrator,
        repository,
        default_user_id=USER,
        llm_provider_name=llm_provider_name,
        audit_logger=audit_logger,
        scheduler=scheduler,
    )
    return mcp


class TestAnalyzeMood:
    def test_returns_saved_analysis(self, health_repository):
        async def _check():
            async with Client(_server(health_repository)) as client:
                return await _call(client, "analyze_mood")

        data = _run(_check())
        assert data["status"] == "ok"
        assert data["ai_generated"] is False
        analysis = data["analysis"]
        assert analysis["mood"] == "energetic"
        assert analysis["inferenceSource"] == "heuristic"
        assert health_repository.get_mood_analysis(analysis["id"]) is not None

    def test_no_health_data(self, health_repository, audit_logger):
        async def _check():
            mcp = _server(health_repository, snapshot={}, audit_logger=audit_logger)
            async with Client(mcp) as client:
                return await _call(client, "analyze_mood", {"user_id": "nobody"})

        data = _run(_check())
        assert data["status"] == "error"
        assert data["error"] == "no_health_data"
        assert "nobody" in data["message"]

        [event] = audit_logger.get_events(tool_name="analyze_mood")
        assert event["status"] == "failure"
        assert event["error_type"] == "NoHealthDataError"


class TestRecommendMusic:
    def test_tracks_carry_recommendation_ids(self, health_repository, fake_catalog):
        async def _check():
            async with Client(_server(health_repository, catalog=fake_catalog)) as client:
                return await _call(client, "recommend_music", {"limit": 2})

        data = _run(_check())
        assert data["status"] == "ok"
        assert data["catalog_source"] == "spotify"
        assert len(data["tracks"]) == 2
        first = data["tracks"][0]
        assert first["id"] == "b"
        assert health_repository.get_recommendation(first["recommendationId"]) is not None
        assert data["mood_analysis"]["mood"] == "energetic"

    @pytest.mark.parametrize("limit", [0, 51])
    def test_limit_out_of_range(self, health_repository, limit):
        async def _check():
            async with Client(_server(health_repository)) as client:
                return await _call(client, "recommend_music", {"limit": limit})

        data = _run(_check())
        assert data["status"] == "error"
        assert "between 1 and 50" in data["message"]

    def test_fallback_when_no_catalog(self, health_repository):
        async def _check():
            async with Client(_server(health_repository)) as client:
                return await _call(client, "recommend_music", {"limit": 3})

        data = _run(_check())
        assert data["catalog_source"] == "fallback"
        assert [t["moodMatch"] for t in data["tracks"]] == [75, 70, 65]

    def test_audit_records_sources(self, health_repository, audit_logger, fake_catalog):
        async def _check():
            mcp = _server(health_repository, catalog=fake_catalog, audit_logger=audit_logger)
            async with Client(mcp) as client:
                await _call(client, "recommend_music")

        _run(_check())
        [event] = audit_logger.get_events(tool_name="recommend_music")
        assert event["inference_source"] == "heuristic"
        assert event["catalog_source"] == "spotify"
        assert event["llm_disclosed"] == 0
        assert event["mood_analysis_id"]

    def test_llm_backend_marks_disclosure(self, health_repository, audit_logger):
        async def _check():
            mcp = _server(health_repository, audit_logger=audit_logger, llm_provider_name="openai")
            async with Client(mcp) as client:
                await _call(client, "recommend_music")

        _run(_check())
        [event] = audit_logger.get_events(tool_name="recommend_music")
        assert event["llm_provider"] == "openai"
        assert event["llm_disclosed"] == 1


class TestHistory:
    def test_mood_history_newest_first(self, health_repository):
        async def _check():
            async with Client(_server(health_repository)) as client:
                await _call(client, "analyze_mood")
                await _call(client, "analyze_mood")
                return await _call(client, "mood_history", {"limit": 5})

        data = _run(_check())
        assert data["count"] == 2
        assert all(a["mood"] == "energetic" for a in data["analyses"])

    def test_recommendation_history_filtered_by_analysis(self, health_repository, fake_catalog):
        async def _check():
            async with Client(_server(health_repository, catalog=fake_catalog)) as client:
                first = await _call(client, "recommend_music", {"limit": 2})
                await _call(client, "recommend_music", {"limit": 3})
                everything = await _call(client, "recommendation_history")
                only_first = await _call(
                    client, "recommendation_history",
                    {"mood_analysis_id": first["mood_analysis"]["id"]},
                )
                return everything, only_first

        everything, only_first = _run(_check())
        assert everything["count"] == 5
        assert only_first["count"] == 2


class TestRecordInteraction:
    def _recommend_one(self, client):
        return _call(client, "recommend_music", {"limit": 1})

    def test_invalid_action(self, health_repository):
        async def _check():
            async with Client(_server(health_repository)) as client:
                return await _call(
                    client, "record_interaction",
                    {"recommendation_id": "x", "action": "loved"},
                )

        data = _run(_check())
        assert data["status"] == "error"
        assert "liked | disliked | played | skipped" in data["message"]

    def test_unknown_recommendation(self, health_repository):
        async def _check():
            async with Client(_server(health_repository)) as client:
                return await _call(
                    client, "record_interaction",
                    {"recommendation_id": "missing", "action": "liked"},
                )

        data = _run(_check())
        assert data["status"] == "error"
        assert "Unknown recommendation" in data["message"]

    def test_saved_without_scheduler(self, health_repository):
        async def _check():
            async with Client(_server(health_repository)) as client:
                rec = await self._recommend_one(client)
                rec_id = rec["tracks"][0]["recommendationId"]
                return await _call(
                    client, "record_interaction",
                    {"recommendation_id": rec_id, "action": "played"},
                )

        data = _run(_check())
        assert data["status"] == "saved"
        assert data["auto_analysis_triggered"] is False
        [interaction] = health_repository.list_interactions(USER)
        assert interaction.action == "played"

    def test_track_end_triggers_auto_analysis(self, health_repository):
        jobs: list[str] = []

        async def job() -> None:
            jobs.append("run")

        async def _check():
            scheduler = AutoAnalysisScheduler(job, 3600, tick_seconds=0)
            scheduler.start()
            try:
                mcp = _server(health_repository, scheduler=scheduler)
                async with Client(mcp) as client:
                    rec = await self._recommend_one(client)
                    rec_id = rec["tracks"][0]["recommendationId"]
                    results = []
                    for action in ("liked", "skipped", "played"):
                        results.append(await _call(
                            client, "record_interaction",
                            {"recommendation_id": rec_id, "action": action},
                        ))
                await scheduler.join()
            finally:
                await scheduler.stop()
            return results

        liked, skipped, played = _run(_check())
        assert liked["auto_analysis_triggered"] is False
        assert skipped["auto_analysis_triggered"] is True
        assert played["auto_analysis_triggered"] is True
        assert jobs == ["run", "run"]
