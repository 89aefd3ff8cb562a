"""MCP tools for data retention and deletion. All deletions are audit-logged."""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from healthtune.core.audit.logger import AuditLogger
    from healthtune.core.storage.repository import HealthTuneRepository

logger = logging.getLogger(__name__)


def register_data_management_tools(
    mcp: FastMCP,
    repository: HealthTuneRepository,
    *,
    default_user_id: str,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register data management tools on the MCP server."""

    @mcp.tool
    async def delete_mood_analysis(ctx: Context, mood_analysis_id: str) -> str:
        """Delete one mood analysis, its recommended tracks and your feedback on them.

        Args:
            mood_analysis_id: The id from analyze_mood or mood_history.
        """
        analysis = repository.get_mood_analysis(mood_analysis_id)
        if analysis is None:
            return json.dumps({
                "status": "not_found",
                "mood_analysis_id": mood_analysis_id,
                "message": "No mood analysis found with that id.",
            })

        count = repository.delete_mood_analysis(mood_analysis_id)
        if audit_logger is not None:
            audit_logger.log_data_delete(
                tool_name="delete_mood_analysis",
                user_id=analysis.user_id,
                count=count,
            )
        logger.info("Deleted mood analysis %s (%d rows)", mood_analysis_id, count)
        return json.dumps({
            "status": "deleted",
            "mood_analysis_id": mood_analysis_id,
            "records_deleted": count,
        })

    @mcp.tool
    async def purge_old_data(
        ctx: Context,
        older_than_days: int = 365,
    ) -> str:
        """Delete readings, analyses and recommendations older than N days.

        Interactions with purged recommendations are removed with them.

        Args:
            older_than_days: Delete data older than this many days (default: 365).
        """
        if older_than_days < 1:
            return json.dumps({
                "status": "error",
                "message": "older_than_days must be at least 1.",
            })

        start_time = time.monotonic()
        count = repository.purge_before_days(older_than_days)
        elapsed_ms = (time.monotonic() - start_time) * 1000

        if audit_logger is not None and count > 0:
            audit_logger.log_data_delete(
                tool_name="purge_old_data",
                count=count,
                metadata={"older_than_days": older_than_days},
            )

        return json.dumps({
            "status": "purged",
            "records_deleted": count,
            "older_than_days": older_than_days,
            "duration_ms": round(elapsed_ms, 1),
        })

    @mcp.tool
    async def delete_my_data(
        ctx: Context,
        confirm: str = "",
        user_id: str = "",
    ) -> str:
        """Permanently delete everything stored for a user.

        Removes readings, mood analyses, recommendations, interactions and
        preferences. It cannot be undone.

        Args:
            confirm: Must be exactly 'DELETE_ALL' to proceed. Safety gate.
            user_id: Whose data to delete. Defaults to the configured user.
        """
        if confirm != "DELETE_ALL":
            return json.dumps({
                "status": "cancelled",
                "message": (
                    "To delete all your data, call this tool with "
                    "confirm='DELETE_ALL'. This action cannot be undone."
                ),
            })

        user_id = user_id or default_user_id
        start_time = time.monotonic()
        counts = repository.delete_all_user_data(user_id)
        elapsed_ms = (time.monotonic() - start_time) * 1000
        total = sum(counts.values())

        if audit_logger is not None:
            audit_logger.log_data_delete(
                tool_name="delete_my_data",
                user_id=user_id,
                count=total,
                metadata={"confirmed": True},
            )

        logger.warning("All data deleted for user %s: %d records removed", user_id, total)
        return json.dumps({
            "status": "all_deleted",
            "user_id": user_id,
            "deleted": counts,
            "duration_ms": round(elapsed_ms, 1),
            "message": "All your data has been permanently deleted.",
        })
