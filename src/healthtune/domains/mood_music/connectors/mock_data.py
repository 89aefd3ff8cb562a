"""Simulated wearable readings for the demo user.

Values follow a plausible day: heart rate by hour-of-day profile, one step
total per day, a morning sleep score, a morning energy rating and an
afternoon stress score. Pass a seeded ``random.Random`` for repeatable data.
"""

from __future__ import annotations

import math
import random
from datetime import datetime, timedelta, timezone

from healthtune.core.storage.models import StoredHealthMetric

# (first hour, last hour, resting bpm)
_HEART_RATE_PROFILE = (
    (6, 8, 65),     # early morning
    (9, 11, 78),
    (12, 14, 75),
    (15, 17, 82),
    (18, 20, 85),   # evening activity
    (21, 23, 70),   # wind down
)
_DEFAULT_HEART_RATE = 72

# Preferences the demo user starts with
DEMO_PREFERENCES = {
    "musicGenres": ["pop", "electronic", "indie"],
    "healthGoals": ["improve_sleep", "increase_activity", "reduce_stress"],
    "moodPreferences": {
        "energetic": ["electronic", "pop", "dance"],
        "calm": ["ambient", "classical", "acoustic"],
        "focused": ["lo-fi", "instrumental", "classical"],
    },
}


def _round(value: float) -> int:
    return math.floor(value + 0.5)


def _vary(rng: random.Random, spread: float) -> float:
    return (rng.random() - 0.5) * spread


def heart_rate_for_hour(hour: int, rng: random.Random) -> int:
    base = _DEFAULT_HEART_RATE
    for first, last, bpm in _HEART_RATE_PROFILE:
        if first <= hour <= last:
            base = bpm
            break
    return _round(max(50, min(120, base + _vary(rng, 20))))


def daily_steps(rng: random.Random) -> int:
    return _round(max(2000, min(15000, 6000 + _vary(rng, 4000))))


def steps_so_far(hour: int, rng: random.Random) -> int:
    """Partial step count for the current hour, assuming activity from 6 to 23."""
    progress = max(0.0, (hour - 6) / 17)
    return _round(daily_steps(rng) * progress * (0.8 + rng.random() * 0.4))


def sleep_score(rng: random.Random) -> int:
    return _round(max(40, min(100, 80 + _vary(rng, 30))))


def energy_level(rng: random.Random) -> int:
    """Subjective energy, 1-10."""
    return _round(max(1, min(10, 7 + _vary(rng, 4))))


def stress_level(rng: random.Random) -> int:
    """HRV-derived stress, 0-100, lower is better."""
    return _round(max(0, min(100, 30 + _vary(rng, 40))))


def _metric(
    user_id: str,
    device_type: str,
    metric_type: str,
    value: float,
    unit: str,
    at: datetime,
) -> StoredHealthMetric:
    return StoredHealthMetric(
        user_id=user_id,
        device_type=device_type,
        metric_type=metric_type,
        value=float(value),
        unit=unit,
        timestamp=at.isoformat(),
        metadata={"simulated": True},
    )


def generate_history(
    user_id: str,
    now: datetime | None = None,
    days: int = 7,
    rng: random.Random | None = None,
) -> list[StoredHealthMetric]:
    """Readings for the last ``days`` days, today included.

    Readings scheduled after ``now`` on the current day are skipped so the
    history never runs ahead of the clock.
    """
    now = now or datetime.now(timezone.utc)
    rng = rng or random.Random()
    scheduled: list[tuple[datetime, StoredHealthMetric]] = []

    def add(device_type: str, metric_type: str, value: float, unit: str, when: datetime) -> None:
        scheduled.append((when, _metric(user_id, device_type, metric_type, value, unit, when)))

    for day in range(days - 1, -1, -1):
        date = (now - timedelta(days=day)).replace(hour=0, minute=0, second=0, microsecond=0)

        def at(hour: int, minute: int = 0) -> datetime:
            return date.replace(hour=hour, minute=minute)

        for hour in range(6, 23, 2):
            add("apple_watch", "heart_rate", heart_rate_for_hour(hour, rng), "bpm", at(hour, rng.randrange(60)))
        add("iphone", "steps", daily_steps(rng), "steps", at(23, 59))
        # Last night's sleep; none scored yet for the night ahead of today
        if day > 0:
            add("whoop", "sleep_score", sleep_score(rng), "score", at(7))
        add("whoop", "energy_level", energy_level(rng), "score", at(9))
        add("apple_watch", "stress_level", stress_level(rng), "score", at(14))

    return [metric for when, metric in scheduled if when <= now]


def generate_realtime_reading(
    user_id: str,
    now: datetime | None = None,
    rng: random.Random | None = None,
    latest_steps_at: datetime | None = None,
) -> list[StoredHealthMetric]:
    """One simulator tick: a heart rate, maybe steps, maybe stress.

    Steps are added during waking hours only when nothing has been recorded
    since midnight. Stress is resampled on roughly 30% of ticks.
    """
    now = now or datetime.now(timezone.utc)
    rng = rng or random.Random()
    hour = now.hour
    metrics = [
        _metric(user_id, "apple_watch", "heart_rate", heart_rate_for_hour(hour, rng), "bpm", now)
    ]

    if 6 <= hour <= 23:
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        if latest_steps_at is None or latest_steps_at < midnight:
            metrics.append(_metric(user_id, "iphone", "steps", steps_so_far(hour, rng), "steps", now))

    if rng.random() < 0.3:
        metrics.append(_metric(user_id, "apple_watch", "stress_level", stress_level(rng), "score", now))

    return metrics
