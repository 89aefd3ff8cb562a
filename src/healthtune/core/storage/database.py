"""SQLite database management for the HealthTune data bank.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
CREATE TABLE IF NOT EXISTS users (
    id               TEXT PRIMARY KEY,
    preferences_json TEXT,
    created_at       TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at       TEXT
);

-- One row per wearable reading
CREATE TABLE IF NOT EXISTS health_metrics (
    id            TEXT PRIMARY KEY,
    user_id       TEXT NOT NULL,
    device_type   TEXT NOT NULL,
    metric_type   TEXT NOT NULL,
    value         REAL NOT NULL,
    unit          TEXT NOT NULL,
    timestamp     TEXT NOT NULL,
    metadata_enc  TEXT
);

CREATE TABLE IF NOT EXISTS mood_analyses (
    id                   TEXT PRIMARY KEY,
    user_id              TEXT NOT NULL,
    mood                 TEXT NOT NULL,
    confidence           REAL NOT NULL,
    factors_json         TEXT NOT NULL,
    description          TEXT NOT NULL,
    recommendations_json TEXT NOT NULL,
    -- Raw metric values the analysis was based on
    health_snapshot_enc  TEXT,
    inference_source     TEXT NOT NULL,
    timestamp            TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS music_recommendations (
    id                  TEXT PRIMARY KEY,
    user_id             TEXT NOT NULL,
    mood_analysis_id    TEXT NOT NULL REFERENCES mood_analyses(id),
    track_id            TEXT NOT NULL,
    track_name          TEXT NOT NULL,
    artist_name         TEXT NOT NULL,
    album_name          TEXT NOT NULL,
    duration            TEXT NOT NULL,
    mood_match          INTEGER NOT NULL,
    reason              TEXT NOT NULL,
    audio_features_json TEXT NOT NULL,
    external_url        TEXT NOT NULL,
    preview_url         TEXT,
    catalog_source      TEXT NOT NULL,
    timestamp           TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS user_interactions (
    id                TEXT PRIMARY KEY,
    user_id           TEXT NOT NULL,
    recommendation_id TEXT NOT NULL REFERENCES music_recommendations(id),
    action            TEXT NOT NULL,
    timestamp         TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_metrics_user_type ON health_metrics(user_id, metric_type, timestamp);
CREATE INDEX IF NOT EXISTS idx_metrics_user_ts   ON health_metrics(user_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_moods_user_ts     ON mood_analyses(user_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_recs_user_ts      ON music_recommendations(user_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_recs_analysis     ON music_recommendations(mood_analysis_id);
CREATE INDEX IF NOT EXISTS idx_interactions_user ON user_interactions(user_id, timestamp);
"""

# ---------------------------------------------------------------------------
# V2: Audit log table (access logging + LLM disclosure)
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
CREATE TABLE IF NOT EXISTS audit_log (
    id               TEXT PRIMARY KEY,
    timestamp        TEXT NOT NULL DEFAULT (datetime('now')),
    action           TEXT NOT NULL,
    tool_name        TEXT,
    tool_input_hash  TEXT,
    user_id          TEXT,
    llm_provider     TEXT,
    llm_disclosed    INTEGER DEFAULT 0,
    inference_source TEXT,
    catalog_source   TEXT,
    mood_analysis_id TEXT,
    duration_ms      REAL,
    status           TEXT NOT NULL DEFAULT 'success',
    error_type       TEXT,
    metadata_json    TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
CREATE INDEX IF NOT EXISTS idx_audit_tool      ON audit_log(tool_name);
"""


class DatabaseError(Exception):
    """Raised when database operations fail."""


class HealthDatabase:
    """SQLite database manager for the HealthTune data bank.

    Supports both file-based and in-memory (`:memory:`) databases.
    In-memory mode is used for testing.

    Usage::

        db = HealthDatabase(":memory:")
        db.initialize()
        conn = db.connection
        # ... use connection ...
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Open the connection and ensure the schema exists. Idempotent."""
        if self._conn is not None:
            return

        try:
            if self._db_path != ":memory:":
                db_file = Path(self._db_path).expanduser()
                db_file.parent.mkdir(parents=True, exist_ok=True)
                # MCP tool calls may land on a worker thread
                self._conn = sqlite3.connect(str(db_file), check_same_thread=False)
            else:
                self._conn = sqlite3.connect(":memory:", check_same_thread=False)
        except (OSError, sqlite3.Error) as exc:
            raise DatabaseError(f"Cannot open database {self._db_path}: {exc}") from exc

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._ensure_schema()
        logger.info("HealthTune database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        conn = self.connection
        conn.executescript(_SCHEMA_V1)

        current_version = self.get_schema_version()

        if current_version < 2:
            conn.executescript(_SCHEMA_V2)
            logger.info("Applied schema migration V2: audit_log table")

        if current_version < SCHEMA_VERSION:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("HealthTune database closed")

    def __enter__(self) -> HealthDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
