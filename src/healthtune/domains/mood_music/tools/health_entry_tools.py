"""MCP tools for recording wearable readings.

Readings are written to the encrypted data bank and become the input for
the next mood analysis.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from healthtune.core.storage.repository import HealthTuneRepository

from healthtune.core.storage.models import StoredHealthMetric
from healthtune.core.storage.repository import RepositoryError, to_utc_iso
from healthtune.domains.mood_music.connectors.mock_data import generate_realtime_reading
from healthtune.domains.mood_music.domain_logic.models import METRIC_TYPES

logger = logging.getLogger(__name__)

DEFAULT_UNITS = {
    "heart_rate": "bpm",
    "steps": "steps",
    "sleep_score": "score",
    "energy_level": "score",
    "stress_level": "score",
}


def register_health_entry_tools(
    mcp: FastMCP,
    repository: HealthTuneRepository,
    *,
    default_user_id: str,
) -> None:
    """Register health metric entry tools on the MCP server."""

    @mcp.tool
    async def record_health_metric(
        ctx: Context,
        metric_type: str,
        value: float,
        unit: str = "",
        device_type: str = "manual",
        timestamp: str = "",
        user_id: str = "",
    ) -> str:
        """Record a health reading in your data bank.

        Args:
            metric_type: One of 'heart_rate', 'steps', 'sleep_score',
                'energy_level', 'stress_level'.
            value: Numeric reading (e.g., 72 for heart rate in BPM).
            unit: Unit of measurement. Defaults to the usual unit for the metric.
            device_type: Where the reading came from (e.g., 'apple_watch', 'whoop').
            timestamp: When it was taken (ISO 8601). Defaults to now.
            user_id: Whose reading this is. Defaults to the configured user.
        """
        if metric_type not in METRIC_TYPES:
            return json.dumps({
                "status": "error",
                "message": f"metric_type must be one of: {', '.join(METRIC_TYPES)}",
            })
        if value < 0:
            return json.dumps({"status": "error", "message": "value must not be negative."})

        try:
            taken_at = to_utc_iso(timestamp) if timestamp else datetime.now(timezone.utc).isoformat()
        except RepositoryError as exc:
            return json.dumps({"status": "error", "message": str(exc)})

        metric = StoredHealthMetric(
            user_id=user_id or default_user_id,
            metric_type=metric_type,
            value=value,
            unit=unit or DEFAULT_UNITS[metric_type],
            timestamp=taken_at,
            device_type=device_type or "manual",
        )
        metric_id = repository.add_health_metric(metric)
        logger.info("Health metric saved: %s = %s %s (%s)", metric_type, value, metric.unit, metric_id)
        return json.dumps({
            "status": "saved",
            "metric_id": metric_id,
            "metric_type": metric_type,
            "value": value,
            "unit": metric.unit,
            "timestamp": metric.timestamp,
        })

    @mcp.tool
    async def latest_health_metrics(ctx: Context, user_id: str = "") -> str:
        """Show the newest reading of each metric type.

        These are the values the next mood analysis will use.

        Args:
            user_id: Whose readings to show. Defaults to the configured user.
        """
        user_id = user_id or default_user_id
        latest = repository.get_latest_health_metrics(user_id)
        return json.dumps({
            "status": "ok",
            "user_id": user_id,
            "metrics": {
                metric_type: {
                    "value": stored.value,
                    "unit": stored.unit,
                    "timestamp": stored.timestamp,
                    "device_type": stored.device_type,
                }
                for metric_type, stored in sorted(latest.items())
            },
        }, indent=2)

    @mcp.tool
    async def simulate_wearable_reading(ctx: Context, user_id: str = "") -> str:
        """Record one simulated wearable tick (heart rate, maybe steps and stress).

        For demos without a real device.

        Args:
            user_id: Whose data to simulate. Defaults to the configured user.
        """
        user_id = user_id or default_user_id
        latest_steps = repository.get_latest_health_metrics(user_id).get("steps")
        latest_steps_at = (
            datetime.fromisoformat(latest_steps.timestamp) if latest_steps is not None else None
        )
        readings = generate_realtime_reading(user_id, latest_steps_at=latest_steps_at)
        repository.add_health_metrics(readings)
        return json.dumps({
            "status": "saved",
            "readings": [
                {"metric_type": m.metric_type, "value": m.value, "unit": m.unit}
                for m in readings
            ],
        })
