"""Prompt text for the mood backend, plus MCP prompt templates."""

from __future__ import annotations

from datetime import datetime, timezone

from fastmcp import FastMCP

from healthtune.domains.mood_music.domain_logic.models import (
    HealthMetricSnapshot,
    UserPreferences,
)


def format_time_ago(timestamp: datetime, now: datetime | None = None) -> str:
    """Describe how long ago a reading was taken ("5 minutes ago")."""
    now = now or datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    minutes = max(0, int((now - timestamp).total_seconds() // 60))
    if minutes < 60:
        return f"{minutes} minutes ago"
    if minutes < 1440:
        return f"{minutes // 60} hours ago"
    return f"{minutes // 1440} days ago"


def format_health_summary(
    snapshot: HealthMetricSnapshot, now: datetime | None = None
) -> str:
    lines = []
    for metric_type, metric in snapshot.items():
        value = f"{metric.value:g}"
        lines.append(
            f"{metric_type}: {value} {metric.unit} (recorded {format_time_ago(metric.timestamp, now)})"
        )
    return "\n".join(lines)


def format_preference_context(preferences: UserPreferences | None) -> str:
    if preferences is None:
        return ""
    mood_prefs = "; ".join(
        f"{mood}: {', '.join(genres)}"
        for mood, genres in preferences.mood_preferences.items()
    )
    return (
        f"User music preferences: {', '.join(preferences.music_genres)}\n"
        f"Health goals: {', '.join(preferences.health_goals)}\n"
        f"Previous mood preferences: {mood_prefs}"
    )


def build_mood_user_message(
    snapshot: HealthMetricSnapshot,
    preferences: UserPreferences | None = None,
    now: datetime | None = None,
) -> str:
    """Render the health snapshot and preferences as the backend's user turn."""
    sections = [
        "Analyze the following health data to determine the person's current "
        "mood and provide therapeutic music recommendations.",
        "Current Health Metrics:\n" + format_health_summary(snapshot, now),
    ]
    preference_context = format_preference_context(preferences)
    if preference_context:
        sections.append(preference_context)
    sections.append("Respond only with valid JSON, no additional text.")
    return "\n\n".join(sections)


def register_mood_prompts(mcp: FastMCP) -> None:
    """Register mood/music MCP prompts."""

    @mcp.prompt()
    def mood_check_prompt() -> str:
        """Prompt template for a mood check-in with music to match."""
        return """I'd like a quick mood check-in. Please:

1. Look at my latest health metrics (heart rate, steps, sleep, stress)
2. Tell me what mood they suggest and how confident you are
3. Recommend music that fits how I feel right now
4. Explain briefly why each track was picked

Keep it short and encouraging."""

    @mcp.prompt()
    def music_for_goal_prompt(goal: str = "reduce stress") -> str:
        """Prompt template for music that supports a health goal."""
        return f"""My current health goal is to {goal}. Please:

1. Analyze my mood from my latest health data
2. Recommend music that supports this goal
3. Suggest which of my saved genre preferences to lean on

Use my stored preferences where they fit."""
