"""HealthTune MCP server: application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastmcp import FastMCP

from healthtune.core.audit.logger import AuditLogger
from healthtune.core.config.settings import Settings, get_settings
from healthtune.core.llm.client import InnerLLMClient
from healthtune.core.llm.provider import LLMProvider, create_provider
from healthtune.core.storage.database import HealthDatabase
from healthtune.core.storage.encryption import FieldEncryptor
from healthtune.core.storage.repository import HealthTuneRepository
from healthtune.domains.mood_music.connectors import CatalogProvider, HealthDataProvider
from healthtune.domains.mood_music.connectors.mock_data import (
    DEMO_PREFERENCES,
    generate_history,
)
from healthtune.domains.mood_music.connectors.providers import StoredHealthDataProvider
from healthtune.domains.mood_music.connectors.spotify import (
    SpotifyCatalogProvider,
    SpotifyCredentialManager,
)
from healthtune.domains.mood_music.domain_logic.mood_inference import (
    LLMMoodBackend,
    MoodInferenceEngine,
)
from healthtune.domains.mood_music.domain_logic.recommender import (
    NoHealthDataError,
    RecommendationOrchestrator,
)
from healthtune.domains.mood_music.domain_logic.scheduler import AutoAnalysisScheduler
from healthtune.domains.mood_music.prompts.mood_prompts import register_mood_prompts
from healthtune.domains.mood_music.tools.audit_tools import register_audit_tools
from healthtune.domains.mood_music.tools.data_management_tools import (
    register_data_management_tools,
)
from healthtune.domains.mood_music.tools.health_entry_tools import register_health_entry_tools
from healthtune.domains.mood_music.tools.mood_music_tools import register_mood_music_tools
from healthtune.domains.mood_music.tools.preference_tools import register_preference_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "HealthTune"
SERVER_VERSION = "0.1.0"


def _resolve_llm_provider(settings: Settings) -> tuple[str, str, str]:
    """(provider_name, api_key, model); a provider without a key degrades to mock."""
    if settings.llm_provider == "mock":
        return "mock", "", ""
    if settings.llm_provider == "anthropic":
        api_key, model = settings.anthropic_api_key, settings.anthropic_model
    elif settings.llm_provider == "openai":
        api_key, model = settings.openai_api_key, settings.openai_model
    else:  # pragma: no cover
        raise ValueError(f"Unknown LLM provider: {settings.llm_provider!r}")

    if not api_key:
        logger.warning(
            "No API key configured for provider '%s'; moods will be inferred locally",
            settings.llm_provider,
        )
        return "mock", "", ""
    return settings.llm_provider, api_key, model


def _open_repository(settings: Settings) -> HealthTuneRepository:
    if settings.encryption_key:
        encryptor = FieldEncryptor(settings.encryption_key)
        db_path = settings.db_path
    else:
        # Rows written under a throwaway key are unreadable after restart
        encryptor = FieldEncryptor.ephemeral()
        db_path = ":memory:"
    database = HealthDatabase(db_path)
    database.initialize()
    logger.info(
        "Health data bank initialized: %s (schema v%d)",
        db_path,
        database.get_schema_version(),
    )
    return HealthTuneRepository(database, encryptor)


def _seed_demo_user(repository: HealthTuneRepository, user_id: str) -> None:
    if repository.get_user_preferences(user_id) is None:
        repository.upsert_user_preferences(user_id, DEMO_PREFERENCES)
    if repository.count_health_metrics(user_id) == 0:
        count = repository.add_health_metrics(generate_history(user_id))
        logger.info("Seeded %d simulated readings for %s", count, user_id)


def create_app(
    *,
    health_data_provider_override: HealthDataProvider | None = None,
    catalog_provider_override: CatalogProvider | None = None,
    llm_provider_override: LLMProvider | None = None,
    repository_override: HealthTuneRepository | None = None,
) -> FastMCP:
    """Create and configure the HealthTune MCP server.

    This is the main application factory. It:
    1. Opens the encrypted data bank and seeds the demo user
    2. Picks the mood backend (LLM provider, or the local heuristic)
    3. Picks the track catalog (Spotify, or the offline fallback list)
    4. Wires the recommendation orchestrator and auto-analysis scheduler
    5. Registers all tools and prompts
    """
    settings = get_settings()
    user_id = settings.default_user_id

    # --- Storage and audit trail ---
    if repository_override is not None:
        repository = repository_override
    else:
        repository = _open_repository(settings)
    audit_logger = AuditLogger(repository.database)

    if settings.seed_mock_data:
        _seed_demo_user(repository, user_id)

    # --- Mood backend ---
    if llm_provider_override is not None:
        provider: LLMProvider | None = llm_provider_override
    else:
        provider_name, api_key, model = _resolve_llm_provider(settings)
        provider = None
        if provider_name != "mock":
            provider = create_provider(
                provider_name=provider_name,
                api_key=api_key,
                model=model,
                timeout=settings.llm_timeout_seconds,
            )

    llm_provider_name: str | None = None
    if provider is not None:
        backend = LLMMoodBackend(InnerLLMClient(provider, timeout=settings.llm_timeout_seconds))
        llm_provider_name = backend.provider_name
        inference_engine = MoodInferenceEngine(backend)
        logger.info("Mood backend: %s", llm_provider_name)
    else:
        inference_engine = MoodInferenceEngine()
        logger.info("Mood backend: local heuristic")

    # --- Track catalog ---
    catalog: CatalogProvider | None
    if catalog_provider_override is not None:
        catalog = catalog_provider_override
    elif settings.spotify_client_id and settings.spotify_client_secret:
        credentials = SpotifyCredentialManager(
            settings.spotify_client_id,
            settings.spotify_client_secret,
            token_url=settings.spotify_token_url,
            timeout=settings.catalog_timeout_seconds,
        )
        catalog = SpotifyCatalogProvider(
            credentials,
            api_url=settings.spotify_api_url,
            market=settings.spotify_market,
            timeout=settings.catalog_timeout_seconds,
        )
    else:
        catalog = None
        logger.info("No Spotify credentials configured; using the fallback catalog only")

    # --- Health data ---
    if health_data_provider_override is not None:
        health_provider = health_data_provider_override
    else:
        health_provider = StoredHealthDataProvider(repository)

    orchestrator = RecommendationOrchestrator(
        health_provider, inference_engine, repository, catalog_provider=catalog
    )

    # --- Auto analysis ---
    scheduler: AutoAnalysisScheduler | None = None
    if settings.auto_analyze_interval_minutes > 0:

        async def auto_recommend() -> None:
            start_time = time.monotonic()
            try:
                run = await orchestrator.run(user_id)
            except NoHealthDataError:
                logger.info("Auto analysis skipped: no health data for %s", user_id)
                return
            audit_logger.log_tool_call(
                tool_name="auto_analysis",
                user_id=user_id,
                llm_provider=llm_provider_name,
                llm_disclosed=llm_provider_name is not None,
                inference_source=run.analysis.inference_source,
                catalog_source=run.catalog_source,
                mood_analysis_id=run.analysis.stored.id,
                duration_ms=(time.monotonic() - start_time) * 1000,
            )

        scheduler = AutoAnalysisScheduler(
            auto_recommend, interval_seconds=settings.auto_analyze_interval_minutes * 60
        )

    @asynccontextmanager
    async def lifespan(server: FastMCP) -> AsyncIterator[None]:
        if scheduler is None:
            yield
            return
        scheduler.start()
        try:
            yield
        finally:
            await scheduler.stop()

    # --- Server instance ---
    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "HealthTune reads your recent wearable data (heart rate, steps, "
            "sleep, energy, stress), infers your mood and recommends music "
            "that fits it. Readings are stored in an encrypted local data bank."
        ),
        lifespan=lifespan,
    )

    # --- Register tools ---
    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "mood_backend": llm_provider_name or "heuristic",
            "catalog": catalog.name if catalog is not None else "fallback",
            "health_data_source": health_provider.data_source,
            "auto_analysis": scheduler is not None and scheduler.running,
            "metrics_stored": repository.count_health_metrics(user_id),
        }

    register_mood_music_tools(
        server,
        orchestrator,
        repository,
        default_user_id=user_id,
        llm_provider_name=llm_provider_name,
        audit_logger=audit_logger,
        scheduler=scheduler,
    )
    register_health_entry_tools(server, repository, default_user_id=user_id)
    register_preference_tools(server, repository, default_user_id=user_id)
    register_audit_tools(server, audit_logger)
    register_data_management_tools(
        server, repository, default_user_id=user_id, audit_logger=audit_logger
    )
    logger.info("Mood and music tools registered")

    # --- Register prompts ---
    register_mood_prompts(server)

    return server


# Module-level instance for FastMCP discovery (`fastmcp run ...app.py:mcp`).
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
