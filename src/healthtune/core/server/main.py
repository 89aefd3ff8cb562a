"""HealthTune server entry point: ``healthtune`` or ``python -m healthtune.core.server.main``.

``HEALTHTUNE_TRANSPORT=stdio`` serves a desktop MCP client over stdin/stdout;
the default serves Streamable HTTP on ``HEALTHTUNE_HOST:HEALTHTUNE_PORT``.
"""

from __future__ import annotations

import logging
from ipaddress import ip_address

from healthtune.core.config.settings import Settings, get_settings
from healthtune.core.server.app import create_app

logger = logging.getLogger(__name__)


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def check_bind(settings: Settings) -> None:
    """Refuse a non-loopback HTTP bind unless explicitly allowed.

    Raises:
        RuntimeError: Host is reachable from the network and the override is off.
    """
    if settings.healthtune_transport == "stdio" or settings.healthtune_allow_insecure_bind:
        return
    if not _is_loopback_host(settings.healthtune_host):
        raise RuntimeError(
            f"Refusing to serve health data on {settings.healthtune_host}: there is no "
            "auth layer in front of HealthTune. Bind to 127.0.0.1, use "
            "HEALTHTUNE_TRANSPORT=stdio, or set HEALTHTUNE_ALLOW_INSECURE_BIND=true (unsafe)."
        )


def run() -> None:
    """Start the HealthTune MCP server on the configured transport."""
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.healthtune_log_level.upper(), logging.INFO))
    check_bind(settings)

    if not settings.encryption_key:
        logger.warning("No ENCRYPTION_KEY: readings are kept in memory and lost on exit")

    mcp = create_app()
    if settings.healthtune_transport == "stdio":
        logger.info("Starting HealthTune on stdio")
        mcp.run(transport="stdio")
        return

    logger.info(
        "Starting HealthTune on http://%s:%d",
        settings.healthtune_host,
        settings.healthtune_port,
    )
    mcp.run(
        transport="streamable-http",
        host=settings.healthtune_host,
        port=settings.healthtune_port,
    )


if __name__ == "__main__":
    run()
