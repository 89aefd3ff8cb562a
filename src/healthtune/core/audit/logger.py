"""Audit logger: PHI-free access logging and LLM disclosure tracking.

Every tool invocation and deletion is recorded in ``audit_log``:

* ``tool_input_hash``: SHA-256 of canonical JSON, never the raw input.
* ``llm_disclosed``: whether health values were sent to an external LLM.
* ``inference_source`` / ``catalog_source``: which path produced the mood
  (``llm`` or ``heuristic``) and the tracks (``spotify`` or ``fallback``).
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from healthtune.core.storage.database import HealthDatabase

logger = logging.getLogger(__name__)


def _hash_input(data: Any) -> str:
    """Hex SHA-256 of canonical JSON, or "" if the input won't serialize."""
    try:
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError):
        return ""
    return hashlib.sha256(canonical.encode()).hexdigest()


@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str                          # 'tool_invocation' | 'data_delete'
    tool_name: str = ""
    tool_input_hash: str = ""
    user_id: str | None = None
    llm_provider: str | None = None      # 'anthropic' | 'openai' | 'mock'
    llm_disclosed: bool = False
    inference_source: str | None = None  # 'llm' | 'heuristic'
    catalog_source: str | None = None    # 'spotify' | 'fallback'
    mood_analysis_id: str | None = None
    duration_ms: float | None = None
    status: str = "success"              # 'success' | 'failure'
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class AuditLogger:
    """Records audit events to the ``audit_log`` table.

    Each write commits immediately. A failed write is logged and dropped;
    auditing never breaks the request it is auditing.

    Usage::

        audit = AuditLogger(health_db)
        audit.log_tool_call(
            tool_name="recommend_music",
            tool_input={"limit": 10},
            llm_provider="openai",
            llm_disclosed=True,
            inference_source="llm",
            catalog_source="fallback",
        )
    """

    def __init__(self, database: HealthDatabase) -> None:
        self._db = database

    def log_event(self, event: AuditEvent) -> str:
        """Insert an event and return its id ("" if the write failed)."""
        event_id = str(uuid.uuid4())
        metadata_json = (
            json.dumps(event.metadata, separators=(",", ":")) if event.metadata else None
        )

        try:
            conn = self._db.connection
            conn.execute(
                """INSERT INTO audit_log
                   (id, timestamp, action, tool_name, tool_input_hash, user_id,
                    llm_provider, llm_disclosed, inference_source, catalog_source,
                    mood_analysis_id, duration_ms, status, error_type, metadata_json)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event_id,
                    datetime.now(timezone.utc).isoformat(),
                    event.action,
                    event.tool_name or None,
                    event.tool_input_hash or None,
                    event.user_id,
                    event.llm_provider,
                    1 if event.llm_disclosed else 0,
                    event.inference_source,
                    event.catalog_source,
                    event.mood_analysis_id,
                    event.duration_ms,
                    event.status,
                    event.error_type,
                    metadata_json,
                ),
            )
            conn.commit()
        except Exception:
            logger.exception("Failed to write audit event, event lost")
            return ""

        return event_id

    def log_tool_call(
        self,
        tool_name: str,
        tool_input: Any = None,
        *,
        user_id: str | None = None,
        llm_provider: str | None = None,
        llm_disclosed: bool = False,
        inference_source: str | None = None,
        catalog_source: str | None = None,
        mood_analysis_id: str | None = None,
        duration_ms: float | None = None,
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Log a tool invocation. ``tool_input`` is hashed, never stored."""
        return self.log_event(AuditEvent(
            action="tool_invocation",
            tool_name=tool_name,
            tool_input_hash=_hash_input(tool_input) if tool_input else "",
            user_id=user_id,
            llm_provider=llm_provider,
            llm_disclosed=llm_disclosed,
            inference_source=inference_source,
            catalog_source=catalog_source,
            mood_analysis_id=mood_analysis_id,
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        ))

    def log_data_delete(
        self,
        *,
        tool_name: str = "",
        user_id: str | None = None,
        count: int = 0,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        return self.log_event(AuditEvent(
            action="data_delete",
            tool_name=tool_name,
            user_id=user_id,
            metadata={**(metadata or {}), "records_deleted": count},
        ))

    def get_events(
        self,
        *,
        action: str | None = None,
        tool_name: str | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Query events with optional filters, newest first."""
        conditions: list[str] = []
        params: list[Any] = []

        if action:
            conditions.append("action = ?")
            params.append(action)
        if tool_name:
            conditions.append("tool_name = ?")
            params.append(tool_name)
        if since:
            conditions.append("timestamp >= ?")
            params.append(since)

        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        query = f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)

        rows = self._db.connection.execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def count_events(self, *, since: str | None = None) -> int:
        if since:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM audit_log WHERE timestamp >= ?", (since,)
            ).fetchone()
        else:
            row = self._db.connection.execute("SELECT COUNT(*) FROM audit_log").fetchone()
        return row[0]

    def count_disclosures(self, *, since: str | None = None) -> int:
        """How many times health data was sent to an external LLM."""
        query = "SELECT COUNT(*) FROM audit_log WHERE llm_disclosed = 1"
        params: tuple[Any, ...] = ()
        if since:
            query += " AND timestamp >= ?"
            params = (since,)
        return self._db.connection.execute(query, params).fetchone()[0]

    def count_by_source(self, column: str, *, since: str | None = None) -> dict[str, int]:
        """Tally events by ``inference_source`` or ``catalog_source``."""
        if column not in ("inference_source", "catalog_source"):
            raise ValueError(f"Cannot group audit events by {column!r}")
        query = f"SELECT {column}, COUNT(*) FROM audit_log WHERE {column} IS NOT NULL"
        params: tuple[Any, ...] = ()
        if since:
            query += " AND timestamp >= ?"
            params = (since,)
        rows = self._db.connection.execute(f"{query} GROUP BY {column}", params).fetchall()
        return {row[0]: row[1] for row in rows}
