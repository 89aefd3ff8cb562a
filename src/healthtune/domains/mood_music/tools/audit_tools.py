"""MCP tools for viewing the audit trail.

The audit trail holds no health values, only hashed input references,
which tools ran and where the mood and tracks came from.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from healthtune.core.audit.logger import AuditLogger

logger = logging.getLogger(__name__)

_EVENT_FIELDS = (
    "timestamp",
    "action",
    "tool_name",
    "llm_provider",
    "inference_source",
    "catalog_source",
    "status",
    "error_type",
    "duration_ms",
)


def _share(counts: dict[str, int], key: str) -> float | None:
    total = sum(counts.values())
    if total == 0:
        return None
    return round(counts.get(key, 0) / total, 3)


def register_audit_tools(
    mcp: FastMCP,
    audit_logger: AuditLogger,
) -> None:
    """Register audit trail tools on the MCP server."""

    @mcp.tool
    async def audit_summary(
        ctx: Context,
        days: int = 30,
        tool_name: str = "",
    ) -> str:
        """See how often your readings left this machine and how often fallbacks were used.

        Counts LLM disclosures, moods inferred by the LLM versus the local
        heuristic, and tracks from Spotify versus the offline list.

        Args:
            days: Number of days to look back (default: 30).
            tool_name: Only list recent events for this tool (e.g., 'recommend_music').
        """
        if days < 1:
            return json.dumps({"status": "error", "message": "days must be at least 1."})

        since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()
        inference = audit_logger.count_by_source("inference_source", since=since)
        catalog = audit_logger.count_by_source("catalog_source", since=since)
        events = audit_logger.get_events(tool_name=tool_name or None, since=since, limit=20)

        recent = []
        for event in events:
            entry = {name: event.get(name) for name in _EVENT_FIELDS}
            entry["llm_disclosed"] = bool(event.get("llm_disclosed"))
            recent.append(entry)

        return json.dumps({
            "status": "ok",
            "period_days": days,
            "total_events": audit_logger.count_events(since=since),
            "llm_disclosures": audit_logger.count_disclosures(since=since),
            "inference_sources": inference,
            "catalog_sources": catalog,
            "heuristic_share": _share(inference, "heuristic"),
            "fallback_catalog_share": _share(catalog, "fallback"),
            "recent_events": recent,
            "note": (
                "This audit trail contains no health data. It records which tools "
                "ran and whether readings were sent to an external LLM."
            ),
        }, indent=2)
