"""MCP tools for music and health preferences."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from healthtune.core.storage.repository import HealthTuneRepository

from healthtune.domains.mood_music.domain_logic.genre_selector import GENRE_ALIASES, VALID_GENRES
from healthtune.domains.mood_music.domain_logic.models import KNOWN_MOODS, UserPreferences

logger = logging.getLogger(__name__)


def _split(values: str) -> list[str]:
    return [v.strip().lower() for v in values.split(",") if v.strip()]


def _unknown_genres(genres: list[str]) -> list[str]:
    return [g for g in genres if GENRE_ALIASES.get(g, g) not in VALID_GENRES]


def register_preference_tools(
    mcp: FastMCP,
    repository: HealthTuneRepository,
    *,
    default_user_id: str,
) -> None:
    """Register preference tools on the MCP server."""

    @mcp.tool
    async def get_preferences(ctx: Context, user_id: str = "") -> str:
        """Show your saved music genres, health goals and per-mood genres.

        Args:
            user_id: Whose preferences to show. Defaults to the configured user.
        """
        user_id = user_id or default_user_id
        raw = repository.get_user_preferences(user_id)
        return json.dumps({
            "status": "ok" if raw is not None else "not_found",
            "user_id": user_id,
            "preferences": UserPreferences.from_dict(raw).to_dict(),
        }, indent=2)

    @mcp.tool
    async def update_preferences(
        ctx: Context,
        music_genres: str = "",
        health_goals: str = "",
        mood: str = "",
        mood_genres: str = "",
        user_id: str = "",
    ) -> str:
        """Update your music preferences. Empty arguments leave a field unchanged.

        Genres the catalog does not recognise are kept but will not be used
        as search seeds; they are listed in the response.

        Args:
            music_genres: Comma-separated favourite genres (e.g., 'jazz, ambient').
            health_goals: Comma-separated goals (e.g., 'better sleep, less stress').
            mood: A mood to set specific genres for (e.g., 'stressed').
            mood_genres: Comma-separated genres to use when in that mood.
            user_id: Whose preferences to change. Defaults to the configured user.
        """
        if bool(mood) != bool(mood_genres):
            return json.dumps({
                "status": "error",
                "message": "mood and mood_genres must be given together.",
            })
        mood = mood.strip().lower()
        if mood and mood not in KNOWN_MOODS:
            return json.dumps({
                "status": "error",
                "message": f"mood must be one of: {', '.join(KNOWN_MOODS)}",
            })

        user_id = user_id or default_user_id
        prefs = UserPreferences.from_dict(repository.get_user_preferences(user_id))

        changed: list[str] = []
        if music_genres:
            prefs.music_genres = _split(music_genres)
            changed.append("musicGenres")
        if health_goals:
            prefs.health_goals = [g.strip() for g in health_goals.split(",") if g.strip()]
            changed.append("healthGoals")
        if mood:
            prefs.mood_preferences[mood] = _split(mood_genres)
            changed.append(f"moodPreferences.{mood}")

        if not changed:
            return json.dumps({"status": "unchanged", "message": "No preferences provided."})

        repository.upsert_user_preferences(user_id, prefs.to_dict())
        logger.info("Preferences updated for %s: %s", user_id, changed)

        ignored = _unknown_genres(prefs.music_genres)
        for genres in prefs.mood_preferences.values():
            ignored.extend(g for g in _unknown_genres(genres) if g not in ignored)

        return json.dumps({
            "status": "saved",
            "updated": changed,
            "preferences": prefs.to_dict(),
            "unrecognised_genres": ignored,
        }, indent=2)
