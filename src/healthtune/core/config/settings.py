"""Application settings loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """HealthTune server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Server
    # Loopback by default; there is no auth layer in front of the MCP server.
    healthtune_host: str = "127.0.0.1"
    healthtune_port: int = 8001
    healthtune_log_level: str = "info"
    healthtune_allow_insecure_bind: bool = False
    healthtune_transport: Literal["http", "stdio"] = "http"

    # Mood backend
    llm_provider: Literal["anthropic", "openai", "mock"] = "openai"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    llm_timeout_seconds: float = 30.0

    # Track catalog (Spotify client credentials; empty = fallback catalog only)
    spotify_client_id: str = ""
    spotify_client_secret: str = ""
    spotify_api_url: str = "https://api.spotify.com/v1"
    spotify_token_url: str = "https://accounts.spotify.com/api/token"
    spotify_market: str = "US"
    catalog_timeout_seconds: float = 10.0

    # Storage
    db_path: str = "~/.healthtune/healthtune.db"
    encryption_key: str = ""

    # Demo user
    default_user_id: str = "demo_user"
    seed_mock_data: bool = True

    # Auto analysis (0 disables the periodic tick)
    auto_analyze_interval_minutes: int = 30


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
