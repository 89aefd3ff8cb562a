"""LLM provider implementations."""

from healthtune.core.llm.providers.anthropic import AnthropicProvider
from healthtune.core.llm.providers.mock import MockProvider
from healthtune.core.llm.providers.openai import OpenAIProvider

__all__ = ["AnthropicProvider", "MockProvider", "OpenAIProvider"]
