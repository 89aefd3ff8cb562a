"""HealthTune repository: CRUD over the encrypted data bank.

Mediates between the storage models and SQLite, encrypting raw health
values with FieldEncryptor on the way in and decrypting on the way out.
All writes are inserts keyed by user and entity id; nothing updates a
shared aggregate except user preferences.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from healthtune.core.storage.database import HealthDatabase
from healthtune.core.storage.encryption import FieldEncryptor
from healthtune.core.storage.models import (
    INTERACTION_ACTIONS,
    StoredHealthMetric,
    StoredMoodAnalysis,
    StoredRecommendation,
    UserInteraction,
)

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Raised when repository operations fail."""


def _dumps(data: Any) -> str:
    return json.dumps(data, separators=(",", ":"))


def to_utc_iso(timestamp: str | datetime) -> str:
    """Normalize to UTC ISO 8601 with microseconds so text order is time order.

    Naive values are taken to be UTC.
    """
    if isinstance(timestamp, str):
        try:
            timestamp = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
        except ValueError as exc:
            raise RepositoryError(f"Invalid timestamp: {timestamp!r}") from exc
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).isoformat(timespec="microseconds")


class HealthTuneRepository:
    """CRUD repository for metrics, mood analyses, recommendations and users.

    Usage::

        db = HealthDatabase(":memory:")
        db.initialize()
        repo = HealthTuneRepository(db, FieldEncryptor(key="..."))

        repo.add_health_metric(StoredHealthMetric(...))
        latest = repo.get_latest_health_metrics("demo_user")
    """

    def __init__(self, database: HealthDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    @property
    def database(self) -> HealthDatabase:
        return self._db

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return to_utc_iso(datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Health metrics
    # ------------------------------------------------------------------

    def add_health_metric(self, metric: StoredHealthMetric) -> str:
        """Persist one reading and return its id."""
        metric.id = metric.id or self._new_id()
        metric.timestamp = to_utc_iso(metric.timestamp) if metric.timestamp else self._now_iso()
        conn = self._db.connection
        conn.execute(
            """INSERT INTO health_metrics
               (id, user_id, device_type, metric_type, value, unit, timestamp, metadata_enc)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                metric.id,
                metric.user_id,
                metric.device_type,
                metric.metric_type,
                float(metric.value),
                metric.unit,
                metric.timestamp,
                self._enc.encrypt(metric.metadata) if metric.metadata else None,
            ),
        )
        conn.commit()
        return metric.id

    def add_health_metrics(self, metrics: list[StoredHealthMetric]) -> int:
        """Bulk insert, one commit. Returns the number of rows written."""
        conn = self._db.connection
        rows = []
        for metric in metrics:
            metric.id = metric.id or self._new_id()
            metric.timestamp = to_utc_iso(metric.timestamp) if metric.timestamp else self._now_iso()
            rows.append((
                metric.id,
                metric.user_id,
                metric.device_type,
                metric.metric_type,
                float(metric.value),
                metric.unit,
                metric.timestamp,
                self._enc.encrypt(metric.metadata) if metric.metadata else None,
            ))
        conn.executemany(
            """INSERT INTO health_metrics
               (id, user_id, device_type, metric_type, value, unit, timestamp, metadata_enc)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            rows,
        )
        conn.commit()
        logger.info("Stored %d health metrics", len(rows))
        return len(rows)

    def get_health_metrics(self, user_id: str, *, limit: int = 100) -> list[StoredHealthMetric]:
        """Readings for a user, newest first."""
        rows = self._db.connection.execute(
            """SELECT * FROM health_metrics WHERE user_id = ?
               ORDER BY timestamp DESC LIMIT ?""",
            (user_id, limit),
        ).fetchall()
        return [self._row_to_metric(row) for row in rows]

    def get_health_metrics_by_type(
        self, user_id: str, metric_type: str, *, limit: int = 100
    ) -> list[StoredHealthMetric]:
        rows = self._db.connection.execute(
            """SELECT * FROM health_metrics WHERE user_id = ? AND metric_type = ?
               ORDER BY timestamp DESC LIMIT ?""",
            (user_id, metric_type, limit),
        ).fetchall()
        return [self._row_to_metric(row) for row in rows]

    def get_latest_health_metrics(self, user_id: str) -> dict[str, StoredHealthMetric]:
        """The newest reading of each metric type. Empty if the user has none."""
        rows = self._db.connection.execute(
            """SELECT * FROM health_metrics WHERE user_id = ?
               ORDER BY metric_type, timestamp DESC""",
            (user_id,),
        ).fetchall()
        latest: dict[str, StoredHealthMetric] = {}
        for row in rows:
            if row["metric_type"] not in latest:
                latest[row["metric_type"]] = self._row_to_metric(row)
        return latest

    def count_health_metrics(self, user_id: str) -> int:
        row = self._db.connection.execute(
            "SELECT COUNT(*) FROM health_metrics WHERE user_id = ?", (user_id,)
        ).fetchone()
        return row[0]

    # ------------------------------------------------------------------
    # Mood analyses
    # ------------------------------------------------------------------

    def save_mood_analysis(self, analysis: StoredMoodAnalysis) -> str:
        analysis.id = analysis.id or self._new_id()
        analysis.timestamp = to_utc_iso(analysis.timestamp) if analysis.timestamp else self._now_iso()
        conn = self._db.connection
        conn.execute(
            """INSERT INTO mood_analyses (
                id, user_id, mood, confidence, factors_json, description,
                recommendations_json, health_snapshot_enc, inference_source, timestamp
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                analysis.id,
                analysis.user_id,
                analysis.mood,
                analysis.confidence,
                _dumps(list(analysis.factors)),
                analysis.description,
                _dumps(analysis.recommendations),
                self._enc.encrypt(analysis.health_data_snapshot),
                analysis.inference_source,
                analysis.timestamp,
            ),
        )
        conn.commit()
        logger.info(
            "Saved mood analysis %s (mood=%s, source=%s)",
            analysis.id, analysis.mood, analysis.inference_source,
        )
        return analysis.id

    def get_mood_analysis(self, analysis_id: str) -> StoredMoodAnalysis | None:
        row = self._db.connection.execute(
            "SELECT * FROM mood_analyses WHERE id = ?", (analysis_id,)
        ).fetchone()
        return self._row_to_analysis(row) if row is not None else None

    def list_mood_analyses(self, user_id: str, *, limit: int = 50) -> list[StoredMoodAnalysis]:
        """Analyses for a user, newest first."""
        rows = self._db.connection.execute(
            """SELECT * FROM mood_analyses WHERE user_id = ?
               ORDER BY timestamp DESC LIMIT ?""",
            (user_id, limit),
        ).fetchall()
        return [self._row_to_analysis(row) for row in rows]

    def get_latest_mood_analysis(self, user_id: str) -> StoredMoodAnalysis | None:
        results = self.list_mood_analyses(user_id, limit=1)
        return results[0] if results else None

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def save_recommendation(self, recommendation: StoredRecommendation) -> str:
        """Persist a recommendation. The mood analysis must already exist."""
        recommendation.id = recommendation.id or self._new_id()
        recommendation.timestamp = to_utc_iso(recommendation.timestamp) if recommendation.timestamp else self._now_iso()
        track = recommendation.track
        conn = self._db.connection
        try:
            conn.execute(
                """INSERT INTO music_recommendations (
                    id, user_id, mood_analysis_id, track_id, track_name, artist_name,
                    album_name, duration, mood_match, reason, audio_features_json,
                    external_url, preview_url, catalog_source, timestamp
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    recommendation.id,
                    recommendation.user_id,
                    recommendation.mood_analysis_id,
                    track["id"],
                    track["name"],
                    track["artist"],
                    track["album"],
                    track["duration"],
                    int(track["moodMatch"]),
                    track["reason"],
                    _dumps(track["audioFeatures"]),
                    track.get("externalUrl", "#"),
                    track.get("previewUrl"),
                    recommendation.catalog_source,
                    recommendation.timestamp,
                ),
            )
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise RepositoryError(
                f"Unknown mood analysis {recommendation.mood_analysis_id!r}"
            ) from exc
        except KeyError as exc:
            raise RepositoryError(f"Track is missing field {exc}") from exc
        conn.commit()
        return recommendation.id

    def save_recommendations(self, recommendations: list[StoredRecommendation]) -> list[str]:
        return [self.save_recommendation(rec) for rec in recommendations]

    def get_recommendation(self, recommendation_id: str) -> StoredRecommendation | None:
        row = self._db.connection.execute(
            "SELECT * FROM music_recommendations WHERE id = ?", (recommendation_id,)
        ).fetchone()
        return self._row_to_recommendation(row) if row is not None else None

    def list_recommendations(
        self,
        user_id: str,
        *,
        mood_analysis_id: str | None = None,
        limit: int = 100,
    ) -> list[StoredRecommendation]:
        """Recommendations for a user, newest first, best match first within a run."""
        conditions = ["user_id = ?"]
        params: list[Any] = [user_id]
        if mood_analysis_id:
            conditions.append("mood_analysis_id = ?")
            params.append(mood_analysis_id)

        where = " AND ".join(conditions)
        query = (
            f"SELECT * FROM music_recommendations WHERE {where} "
            "ORDER BY timestamp DESC, mood_match DESC, rowid ASC LIMIT ?"
        )
        params.append(limit)
        rows = self._db.connection.execute(query, params).fetchall()
        return [self._row_to_recommendation(row) for row in rows]

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def upsert_user_preferences(self, user_id: str, preferences: dict[str, Any]) -> None:
        now = self._now_iso()
        conn = self._db.connection
        conn.execute(
            """INSERT INTO users (id, preferences_json, created_at, updated_at)
               VALUES (?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   preferences_json = excluded.preferences_json,
                   updated_at = excluded.updated_at""",
            (user_id, _dumps(preferences), now, now),
        )
        conn.commit()

    def get_user_preferences(self, user_id: str) -> dict[str, Any] | None:
        """Stored preferences, or None for an unknown user."""
        row = self._db.connection.execute(
            "SELECT preferences_json FROM users WHERE id = ?", (user_id,)
        ).fetchone()
        if row is None or not row["preferences_json"]:
            return None
        return json.loads(row["preferences_json"])

    # ------------------------------------------------------------------
    # Interactions
    # ------------------------------------------------------------------

    def add_interaction(self, interaction: UserInteraction) -> str:
        if interaction.action not in INTERACTION_ACTIONS:
            raise RepositoryError(
                f"Invalid interaction action: {interaction.action!r}. "
                f"Valid: {', '.join(INTERACTION_ACTIONS)}"
            )
        interaction.id = interaction.id or self._new_id()
        interaction.timestamp = to_utc_iso(interaction.timestamp) if interaction.timestamp else self._now_iso()
        conn = self._db.connection
        try:
            conn.execute(
                """INSERT INTO user_interactions
                   (id, user_id, recommendation_id, action, timestamp)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    interaction.id,
                    interaction.user_id,
                    interaction.recommendation_id,
                    interaction.action,
                    interaction.timestamp,
                ),
            )
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise RepositoryError(
                f"Unknown recommendation {interaction.recommendation_id!r}"
            ) from exc
        conn.commit()
        return interaction.id

    def list_interactions(self, user_id: str, *, limit: int = 100) -> list[UserInteraction]:
        rows = self._db.connection.execute(
            """SELECT * FROM user_interactions WHERE user_id = ?
               ORDER BY timestamp DESC LIMIT ?""",
            (user_id, limit),
        ).fetchall()
        return [
            UserInteraction(
                id=row["id"],
                user_id=row["user_id"],
                recommendation_id=row["recommendation_id"],
                action=row["action"],
                timestamp=row["timestamp"],
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def purge_before(self, before_timestamp: str) -> int:
        """Delete metrics and analyses older than a timestamp.

        Recommendations and interactions hanging off a purged analysis go
        with it. Returns the total number of rows deleted.
        """
        before_timestamp = to_utc_iso(before_timestamp)
        conn = self._db.connection
        analysis_sub = "SELECT id FROM mood_analyses WHERE timestamp < ?"
        rec_sub = f"SELECT id FROM music_recommendations WHERE mood_analysis_id IN ({analysis_sub})"

        deleted = 0
        deleted += conn.execute(
            f"DELETE FROM user_interactions WHERE recommendation_id IN ({rec_sub})",
            (before_timestamp,),
        ).rowcount
        deleted += conn.execute(
            f"DELETE FROM music_recommendations WHERE mood_analysis_id IN ({analysis_sub})",
            (before_timestamp,),
        ).rowcount
        deleted += conn.execute(
            "DELETE FROM mood_analyses WHERE timestamp < ?", (before_timestamp,)
        ).rowcount
        deleted += conn.execute(
            "DELETE FROM health_metrics WHERE timestamp < ?", (before_timestamp,)
        ).rowcount
        conn.commit()
        logger.info("Purged %d rows older than %s", deleted, before_timestamp)
        return deleted

    def purge_before_days(self, days: int) -> int:
        cutoff = to_utc_iso(datetime.now(timezone.utc) - timedelta(days=days))
        return self.purge_before(cutoff)

    def delete_mood_analysis(self, analysis_id: str) -> int:
        """Delete one analysis with its recommendations and their interactions.

        Returns the number of rows deleted; 0 when the analysis does not exist.
        """
        conn = self._db.connection
        rec_sub = "SELECT id FROM music_recommendations WHERE mood_analysis_id = ?"
        deleted = conn.execute(
            f"DELETE FROM user_interactions WHERE recommendation_id IN ({rec_sub})",
            (analysis_id,),
        ).rowcount
        deleted += conn.execute(
            "DELETE FROM music_recommendations WHERE mood_analysis_id = ?", (analysis_id,)
        ).rowcount
        deleted += conn.execute(
            "DELETE FROM mood_analyses WHERE id = ?", (analysis_id,)
        ).rowcount
        conn.commit()
        return deleted

    def delete_all_user_data(self, user_id: str) -> dict[str, int]:
        """Remove everything stored for one user, preferences included."""
        conn = self._db.connection
        counts = {
            "interactions": conn.execute(
                "DELETE FROM user_interactions WHERE user_id = ?", (user_id,)
            ).rowcount,
            "recommendations": conn.execute(
                "DELETE FROM music_recommendations WHERE user_id = ?", (user_id,)
            ).rowcount,
            "mood_analyses": conn.execute(
                "DELETE FROM mood_analyses WHERE user_id = ?", (user_id,)
            ).rowcount,
            "health_metrics": conn.execute(
                "DELETE FROM health_metrics WHERE user_id = ?", (user_id,)
            ).rowcount,
            "users": conn.execute("DELETE FROM users WHERE id = ?", (user_id,)).rowcount,
        }
        conn.commit()
        logger.warning("Deleted all data for user %s: %s", user_id, counts)
        return counts

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _row_to_metric(self, row: Any) -> StoredHealthMetric:
        return StoredHealthMetric(
            id=row["id"],
            user_id=row["user_id"],
            device_type=row["device_type"],
            metric_type=row["metric_type"],
            value=row["value"],
            unit=row["unit"],
            timestamp=row["timestamp"],
            metadata=self._enc.decrypt(row["metadata_enc"]) or {},
        )

    def _row_to_analysis(self, row: Any) -> StoredMoodAnalysis:
        return StoredMoodAnalysis(
            id=row["id"],
            user_id=row["user_id"],
            mood=row["mood"],
            confidence=row["confidence"],
            factors=json.loads(row["factors_json"]),
            description=row["description"],
            recommendations=json.loads(row["recommendations_json"]),
            health_data_snapshot=self._enc.decrypt(row["health_snapshot_enc"]) or {},
            inference_source=row["inference_source"],
            timestamp=row["timestamp"],
        )

    def _row_to_recommendation(self, row: Any) -> StoredRecommendation:
        track: dict[str, Any] = {
            "id": row["track_id"],
            "name": row["track_name"],
            "artist": row["artist_name"],
            "album": row["album_name"],
            "duration": row["duration"],
            "moodMatch": row["mood_match"],
            "reason": row["reason"],
            "audioFeatures": json.loads(row["audio_features_json"]),
            "externalUrl": row["external_url"],
        }
        if row["preview_url"]:
            track["previewUrl"] = row["preview_url"]
        return StoredRecommendation(
            id=row["id"],
            user_id=row["user_id"],
            mood_analysis_id=row["mood_analysis_id"],
            track=track,
            catalog_source=row["catalog_source"],
            timestamp=row["timestamp"],
        )
