"""Hand-curated tracks used when no live catalog is available.

Selection is a fixed per-mood ordering of the ten tracks, not scoring.
Position ``i`` gets ``mood_match = max(0, 75 - 5 * i)`` and every track
gets the same estimated features for the mood.
"""

from __future__ import annotations

from dataclasses import dataclass

from healthtune.domains.mood_music.domain_logic.models import (
    AcousticFeatureVector,
    TrackRecommendation,
)

FALLBACK_TOP_MATCH = 75
FALLBACK_MATCH_STEP = 5

_KALIMBA = "https://www.learningcontainer.com/wp-content/uploads/2020/02/Kalimba.mp3"
_SAMPLE_6S = "https://samplelib.com/lib/preview/mp3/sample-6s.mp3"
_SAMPLE_15S = "https://samplelib.com/lib/preview/mp3/sample-15s.mp3"


@dataclass(frozen=True)
class FallbackTrack:
    id: str
    name: str
    artist: str
    album: str
    duration: str
    reason: str
    preview_url: str


FALLBACK_TRACKS: tuple[FallbackTrack, ...] = (
    FallbackTrack(
        "fallback-1", "Bansuri Flute Meditation", "Pandit Hariprasad Chaurasia",
        "Sacred Flute Meditations", "7:35",
        "Therapeutic bamboo flute for deep meditation and chakra balancing", _KALIMBA,
    ),
    FallbackTrack(
        "fallback-2", "Veena Raga Bhairav", "S. Balachander",
        "Classical Veena Ragas", "9:12",
        "Morning raga on veena for spiritual awakening and focus", _SAMPLE_6S,
    ),
    FallbackTrack(
        "fallback-3", "Carnatic Raga Meditation", "Indian Classical Artists",
        "Therapeutic Ragas", "6:15",
        "Traditional Carnatic music for deep meditation and healing", _KALIMBA,
    ),
    FallbackTrack(
        "fallback-4", "Raga Yaman - Peaceful", "Classical Indian Ensemble",
        "Healing Ragas", "8:20",
        "Soothing Carnatic composition for stress relief and focus", _SAMPLE_15S,
    ),
    FallbackTrack(
        "fallback-5", "Sitar Meditation - Raga Darbari", "Pandit Ravi Shankar",
        "Healing Ragas Collection", "11:45",
        "Deep healing raga on sitar for stress relief and inner peace", _KALIMBA,
    ),
    FallbackTrack(
        "fallback-6", "Tanpura Drone - Om Meditation", "Spiritual Sound Healers",
        "Sacred Drone Meditations", "15:00",
        "Continuous tanpura drone with Om chanting for deep meditation", _SAMPLE_15S,
    ),
    FallbackTrack(
        "fallback-7", "Tabla & Flute Devotional", "Bhajan Ensemble",
        "Spiritual Rhythms", "5:30",
        "Uplifting devotional music with tabla rhythms and flute melodies", _KALIMBA,
    ),
    FallbackTrack(
        "fallback-8", "Tibetan Singing Bowls & Flute", "Meditation Masters",
        "Chakra Healing Sounds", "12:20",
        "Healing vibrations from Tibetan bowls combined with flute meditation", _SAMPLE_6S,
    ),
    FallbackTrack(
        "fallback-9", "Gayatri Mantra - Traditional", "Sanskrit Chanting Collective",
        "Sacred Mantras for Healing", "8:00",
        "Sacred Gayatri mantra chanting for spiritual purification and peace", _KALIMBA,
    ),
    FallbackTrack(
        "fallback-10", "Santoor Mountain Meditation", "Pandit Shivkumar Sharma",
        "Himalayan Sounds", "10:15",
        "Ethereal santoor melodies inspired by Himalayan spirituality", _SAMPLE_15S,
    ),
)

# mood -> ordering of FALLBACK_TRACKS indices
MOOD_TRACK_ORDER: dict[str, tuple[int, ...]] = {
    "calm": (0, 5, 7, 2, 3, 9, 1, 6, 8, 4),
    "relaxed": (0, 5, 7, 2, 3, 9, 1, 6, 8, 4),
    "energetic": (6, 1, 8, 0, 3, 7, 2, 4, 5, 9),
    "happy": (6, 1, 8, 0, 3, 7, 2, 4, 5, 9),
    "focused": (1, 4, 0, 9, 2, 3, 5, 7, 8, 6),
    "stressed": (4, 5, 0, 2, 7, 8, 3, 9, 1, 6),
    "melancholy": (8, 5, 0, 2, 9, 7, 3, 4, 1, 6),
}
DEFAULT_TRACK_ORDER = (0, 2, 1, 4, 5, 7, 8, 9, 3, 6)

FALLBACK_ENERGY_BY_MOOD = {"energetic": 0.8, "happy": 0.8, "calm": 0.3, "relaxed": 0.3, "focused": 0.5}
FALLBACK_VALENCE_BY_MOOD = {
    "happy": 0.8,
    "energetic": 0.8,
    "stressed": 0.4,
    "anxious": 0.4,
    "calm": 0.6,
    "focused": 0.6,
}


def estimated_features(mood: str) -> AcousticFeatureVector:
    return AcousticFeatureVector(
        energy=FALLBACK_ENERGY_BY_MOOD.get(mood, 0.5),
        valence=FALLBACK_VALENCE_BY_MOOD.get(mood, 0.5),
        danceability=0.5,
        tempo=120.0,
    )


class FallbackCatalog:
    """Static, always-available recommendations for a mood."""

    name = "fallback"

    def __init__(self, tracks: tuple[FallbackTrack, ...] = FALLBACK_TRACKS) -> None:
        self.tracks = tracks

    def order_for(self, mood: str) -> list[FallbackTrack]:
        order = MOOD_TRACK_ORDER.get(mood, DEFAULT_TRACK_ORDER)
        return [self.tracks[i] for i in order if i < len(self.tracks)]

    def recommend(self, mood: str, limit: int) -> list[TrackRecommendation]:
        features = estimated_features(mood)
        return [
            TrackRecommendation(
                id=track.id,
                name=track.name,
                artist=track.artist,
                album=track.album,
                duration=track.duration,
                mood_match=max(0, FALLBACK_TOP_MATCH - FALLBACK_MATCH_STEP * position),
                reason=track.reason,
                audio_features=features,
                external_url="#",
                preview_url=track.preview_url,
            )
            for position, track in enumerate(self.order_for(mood)[: max(0, limit)])
        ]
