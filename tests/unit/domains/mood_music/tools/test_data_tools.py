"""Unit tests for health entry, preference, audit and data management tools."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest
from fastmcp import Client, FastMCP

from healthtune.core.storage.models import StoredHealthMetric, StoredMoodAnalysis
from healthtune.domains.mood_music.tools.audit_tools import register_audit_tools
from healthtune.domains.mood_music.tools.data_management_tools import (
    register_data_management_tools,
)
from healthtune.domains.mood_music.tools.health_entry_tools import register_health_entry_tools
from healthtune.domains.mood_music.tools.preference_tools import register_preference_tools

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


def _call_once(mcp: FastMCP, tool: str, args: dict | None = None) -> dict:
    async def _check():
        async with Client(mcp) as client:
            return await _call(client, tool, args)
    return _run(_check())


@pytest.fixture
def server(health_repository, audit_logger):
    mcp = FastMCP("test")
    register_health_entry_tools(mcp, health_repository, default_user_id=USER)
    register_preference_tools(mcp, health_repository, default_user_id=USER)
    register_audit_tools(mcp, audit_logger)
    register_data_management_tools(
        mcp, health_repository, default_user_id=USER, audit_logger=audit_logger
    )
    return mcp


# ---------------------------------------------------------------------------
# Health entry
# ---------------------------------------------------------------------------

class TestRecordHealthMetric:
    def test_saved_with_default_unit(self, server, health_repository):
        data = _call_once(server, "record_health_metric", {
            "metric_type": "heart_rate", "value": 72, "timestamp": "2026-03-02T10:00:00Z",
        })
        assert data["status"] == "saved"
        assert data["unit"] == "bpm"
        assert data["timestamp"] == "2026-03-02T10:00:00.000000+00:00"

        [stored] = health_repository.get_health_metrics(USER)
        assert stored.id == data["metric_id"]
        assert stored.value == 72.0
        assert stored.device_type == "manual"

    def test_unknown_metric_type(self, server):
        data = _call_once(server, "record_health_metric", {"metric_type": "blood_sugar", "value": 5})
        assert data["status"] == "error"
        assert "heart_rate" in data["message"]

    def test_negative_value(self, server):
        data = _call_once(server, "record_health_metric", {"metric_type": "steps", "value": -1})
        assert data["status"] == "error"

    def test_bad_timestamp(self, server):
        data = _call_once(server, "record_health_metric", {
            "metric_type": "steps", "value": 100, "timestamp": "yesterday",
        })
        assert data["status"] == "error"
        assert "Invalid timestamp" in data["message"]

    def test_latest_metrics(self, server):
        async def _check():
            async with Client(server) as client:
                for value, ts in ((60, "2026-03-02T08:00:00Z"), (80, "2026-03-02T09:00:00Z")):
                    await _call(client, "record_health_metric", {
                        "metric_type": "heart_rate", "value": value, "timestamp": ts,
                        "device_type": "apple_watch",
                    })
                return await _call(client, "latest_health_metrics")

        data = _run(_check())
        assert data["metrics"]["heart_rate"]["value"] == 80.0
        assert data["metrics"]["heart_rate"]["device_type"] == "apple_watch"

    def test_simulated_reading_saved(self, server, health_repository):
        data = _call_once(server, "simulate_wearable_reading")
        assert data["status"] == "saved"
        assert data["readings"][0]["metric_type"] == "heart_rate"
        assert health_repository.count_health_metrics(USER) == len(data["readings"])


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------

class TestPreferences:
    def test_not_found_returns_empty_shape(self, server):
        data = _call_once(server, "get_preferences")
        assert data["status"] == "not_found"
        assert data["preferences"] == {"musicGenres": [], "healthGoals": [], "moodPreferences": {}}

    def test_update_merges_fields(self, server, health_repository):
        health_repository.upsert_user_preferences(USER, {"healthGoals": ["improve_sleep"]})
        data = _call_once(server, "update_preferences", {
            "music_genres": "Jazz, ambient, polka",
            "mood": "stressed",
            "mood_genres": "new-age, meditation",
        })
        assert data["status"] == "saved"
        assert data["updated"] == ["musicGenres", "moodPreferences.stressed"]
        prefs = data["preferences"]
        assert prefs["musicGenres"] == ["jazz", "ambient", "polka"]
        assert prefs["healthGoals"] == ["improve_sleep"]
        assert prefs["moodPreferences"]["stressed"] == ["new-age", "meditation"]
        assert data["unrecognised_genres"] == ["polka"]

        stored = health_repository.get_user_preferences(USER)
        assert stored["moodPreferences"]["stressed"] == ["new-age", "meditation"]

    def test_mood_without_genres(self, server):
        data = _call_once(server, "update_preferences", {"mood": "calm"})
        assert data["status"] == "error"

    def test_unknown_mood(self, server):
        data = _call_once(server, "update_preferences", {"mood": "sleepy", "mood_genres": "ambient"})
        assert data["status"] == "error"
        assert "energetic" in data["message"]

    def test_nothing_to_update(self, server):
        assert _call_once(server, "update_preferences")["status"] == "unchanged"


# ---------------------------------------------------------------------------
# Audit summary
# ---------------------------------------------------------------------------

class TestAuditSummary:
    def test_counts_disclosures_and_sources(self, server, audit_logger):
        audit_logger.log_tool_call(
            "recommend_music", {"limit": 10}, llm_provider="openai", llm_disclosed=True,
            inference_source="llm", catalog_source="spotify",
        )
        audit_logger.log_tool_call(
            "recommend_music", {"limit": 10},
            inference_source="heuristic", catalog_source="fallback",
        )
        data = _call_once(server, "audit_summary", {"days": 7})

        assert data["total_events"] == 2
        assert data["llm_disclosures"] == 1
        assert data["inference_sources"] == {"llm": 1, "heuristic": 1}
        assert data["catalog_sources"] == {"spotify": 1, "fallback": 1}
        assert data["heuristic_share"] == 0.5
        assert data["fallback_catalog_share"] == 0.5
        assert len(data["recent_events"]) == 2
        assert "no health data" in data["note"]

    def test_filter_by_tool(self, server, audit_logger):
        audit_logger.log_tool_call("analyze_mood", inference_source="heuristic")
        audit_logger.log_data_delete(tool_name="purge_old_data", count=3)
        data = _call_once(server, "audit_summary", {"tool_name": "analyze_mood"})

        assert data["total_events"] == 2
        assert [e["tool_name"] for e in data["recent_events"]] == ["analyze_mood"]
        assert data["fallback_catalog_share"] is None

    def test_rejects_zero_days(self, server):
        assert _call_once(server, "audit_summary", {"days": 0})["status"] == "error"


# ---------------------------------------------------------------------------
# Data management
# ---------------------------------------------------------------------------

class TestDataManagement:
    def test_purge_old_data(self, server, health_repository, audit_logger):
        old = (datetime.now(timezone.utc) - timedelta(days=400)).isoformat()
        recent = (datetime.now(timezone.utc) - timedelta(days=2)).isoformat()
        health_repository.add_health_metrics([
            StoredHealthMetric(user_id=USER, metric_type="steps", value=1, unit="steps", timestamp=old),
            StoredHealthMetric(user_id=USER, metric_type="steps", value=2, unit="steps", timestamp=recent),
        ])

        data = _call_once(server, "purge_old_data", {"older_than_days": 365})
        assert data["status"] == "purged"
        assert data["records_deleted"] == 1
        assert health_repository.count_health_metrics(USER) == 1

        [event] = audit_logger.get_events(action="data_delete")
        assert event["tool_name"] == "purge_old_data"

    def test_purge_nothing_is_not_audited(self, server, audit_logger):
        data = _call_once(server, "purge_old_data")
        assert data["records_deleted"] == 0
        assert audit_logger.get_events(action="data_delete") == []

    def test_purge_rejects_zero_days(self, server):
        assert _call_once(server, "purge_old_data", {"older_than_days": 0})["status"] == "error"

    def test_delete_requires_confirmation(self, server, health_repository):
        health_repository.upsert_user_preferences(USER, {"musicGenres": ["jazz"]})
        data = _call_once(server, "delete_my_data", {"confirm": "yes"})
        assert data["status"] == "cancelled"
        assert health_repository.get_user_preferences(USER) is not None

    def test_delete_everything(self, server, health_repository, audit_logger):
        health_repository.upsert_user_preferences(USER, {"musicGenres": ["jazz"]})
        health_repository.add_health_metric(StoredHealthMetric(
            user_id=USER, metric_type="heart_rate", value=70, unit="bpm",
            timestamp="2026-03-02T10:00:00Z",
        ))
        data = _call_once(server, "delete_my_data", {"confirm": "DELETE_ALL"})

        assert data["status"] == "all_deleted"
        assert data["deleted"]["health_metrics"] == 1
        assert data["deleted"]["users"] == 1
        assert health_repository.get_user_preferences(USER) is None
        [event] = audit_logger.get_events(action="data_delete")
        assert event["user_id"] == USER

    def test_delete_mood_analysis(self, server, health_repository, audit_logger):
        analysis_id = health_repository.save_mood_analysis(StoredMoodAnalysis(
            user_id=USER, mood="calm", confidence=70, factors=["steady heart rate"],
            description="Calm.", inference_source="heuristic",
            recommendations={"energyLevel": "low", "musicGenres": ["ambient"],
                             "tempo": "slow", "valence": "medium"},
        ))
        data = _call_once(server, "delete_mood_analysis", {"mood_analysis_id": analysis_id})
        assert data["status"] == "deleted"
        assert data["records_deleted"] == 1
        assert health_repository.get_mood_analysis(analysis_id) is None
        [event] = audit_logger.get_events(action="data_delete")
        assert event["tool_name"] == "delete_mood_analysis"

    def test_delete_unknown_mood_analysis(self, server, audit_logger):
        data = _call_once(server, "delete_mood_analysis", {"mood_analysis_id": "missing"})
        assert data["status"] == "not_found"
        assert audit_logger.get_events(action="data_delete") == []
