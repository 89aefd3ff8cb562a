"""Genre seed selection against the catalog's fixed genre vocabulary."""

from __future__ import annotations

from healthtune.domains.mood_music.domain_logic.models import (
    MoodAnalysisResult,
    UserPreferences,
)

MAX_SEED_GENRES = 5
PREFERENCE_TOP_UP_THRESHOLD = 3

# Genre seeds the catalog accepts.
VALID_GENRES = frozenset({
    "acoustic", "afrobeat", "alt-rock", "alternative", "ambient", "blues",
    "bossanova", "brazil", "breakbeat", "british", "chill", "classical",
    "club", "country", "dance", "dancehall", "deep-house", "disco",
    "drum-and-bass", "dub", "dubstep", "electronic", "folk", "funk",
    "garage", "gospel", "groove", "hip-hop", "house", "indie", "jazz",
    "latin", "lo-fi", "new-age", "pop", "r-n-b", "reggae", "rock", "soul",
    "techno", "trance",
})

# Genres the mood backend likes to suggest that the catalog does not know.
GENRE_ALIASES: dict[str, str] = {
    "world-music": "ambient",
    "indian": "new-age",
    "meditation": "ambient",
}

# Used when nothing survives filtering; the catalog needs at least one seed.
DEFAULT_SEED_GENRES = ("ambient", "new-age", "classical")


def _normalize(genre: str) -> str:
    key = genre.strip().lower()
    return GENRE_ALIASES.get(key, key)


def select_genres(
    result: MoodAnalysisResult,
    preferences: UserPreferences | None = None,
) -> list[str]:
    """Resolve up to five valid genre seeds for a mood analysis.

    Mood-specific preferences win over general preferences. Fewer than three
    starting genres are topped up with the analysis' own genre suggestions.
    The list is deduplicated in first-seen order, filtered to
    ``VALID_GENRES`` and truncated. Unknown genres are dropped silently;
    if none survive, ``DEFAULT_SEED_GENRES`` is returned instead so the
    catalog always receives at least one seed.
    """
    genres: list[str] = []
    if preferences is not None:
        mood_specific = preferences.mood_preferences.get(result.mood)
        if mood_specific:
            genres = list(mood_specific)
        else:
            genres = list(preferences.music_genres)

    if len(genres) < PREFERENCE_TOP_UP_THRESHOLD:
        genres.extend(result.recommendations.music_genres)

    selected: list[str] = []
    seen: set[str] = set()
    for genre in genres:
        normalized = _normalize(genre)
        if normalized in seen:
            continue
        seen.add(normalized)
        if normalized in VALID_GENRES:
            selected.append(normalized)

    return selected[:MAX_SEED_GENRES] or list(DEFAULT_SEED_GENRES)
