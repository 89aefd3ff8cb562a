"""LLM provider protocol: abstract interface for mood backend calls."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"
DEFAULT_OPENAI_MODEL = "gpt-4o"


@dataclass
class ProviderResponse:
    """Response from an LLM provider."""

    content: str
    input_tokens: int
    output_tokens: int
    model: str
    latency_ms: float


@runtime_checkable
class LLMProvider(Protocol):
    """Abstract interface for a single LLM completion."""

    async def generate(
        self,
        system_message: str,
        user_message: str,
        max_tokens: int = 500,
        temperature: float = 0.3,
    ) -> ProviderResponse: ...


def create_provider(
    provider_name: str,
    api_key: str = "",
    model: str = "",
    timeout: float = 30.0,
) -> LLMProvider:
    """Factory function to create an LLM provider by name.

    Args:
        provider_name: "anthropic", "openai", or "mock"
        api_key: API key for the provider.
        model: Model identifier override.
        timeout: Request timeout in seconds passed to the SDK client.

    Returns:
        An LLMProvider instance.
    """
    if provider_name == "anthropic":
        from healthtune.core.llm.providers.anthropic import AnthropicProvider

        return AnthropicProvider(
            api_key=api_key, model=model or DEFAULT_ANTHROPIC_MODEL, timeout=timeout
        )
    elif provider_name == "openai":
        from healthtune.core.llm.providers.openai import OpenAIProvider

        return OpenAIProvider(
            api_key=api_key, model=model or DEFAULT_OPENAI_MODEL, timeout=timeout
        )
    elif provider_name == "mock":
        from healthtune.core.llm.providers.mock import MockProvider

        return MockProvider()
    else:
        raise ValueError(f"Unknown LLM provider: {provider_name}")
