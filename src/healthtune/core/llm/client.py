"""Backend LLM client: one guarded completion per mood analysis."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from healthtune.core.llm.provider import LLMProvider, ProviderResponse
from healthtune.core.llm.system_prompt import build_full_system_prompt

logger = logging.getLogger(__name__)


class InferenceBackendError(Exception):
    """The mood backend could not produce a response."""


@dataclass
class LLMResponse:
    """Raw completion plus usage accounting."""

    content: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: float = 0.0


class InnerLLMClient:
    """Invokes the backend LLM with the mood-analyst system prompt.

    Any provider failure, including a timeout, is re-raised as
    ``InferenceBackendError``; there is no retry.
    """

    def __init__(self, provider: LLMProvider, timeout: float = 30.0) -> None:
        self.provider = provider
        self.timeout = timeout

    @property
    def provider_name(self) -> str:
        return getattr(self.provider, "name", type(self.provider).__name__)

    async def invoke(
        self,
        user_message: str,
        max_tokens: int = 500,
        temperature: float = 0.3,
    ) -> LLMResponse:
        """Send one completion request and return its raw content."""
        try:
            provider_response: ProviderResponse = await asyncio.wait_for(
                self.provider.generate(
                    system_message=build_full_system_prompt(),
                    user_message=user_message,
                    max_tokens=max_tokens,
                    temperature=temperature,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise InferenceBackendError(
                f"Mood backend timed out after {self.timeout:.0f}s"
            ) from exc
        except Exception as exc:
            raise InferenceBackendError(
                f"Mood backend call failed: {type(exc).__name__}: {exc}"
            ) from exc

        logger.info(
            "Mood backend call: provider=%s, model=%s, tokens=%d+%d, latency=%.0fms",
            self.provider_name,
            provider_response.model,
            provider_response.input_tokens,
            provider_response.output_tokens,
            provider_response.latency_ms,
        )

        return LLMResponse(
            content=provider_response.content,
            model=provider_response.model,
            usage={
                "input_tokens": provider_response.input_tokens,
                "output_tokens": provider_response.output_tokens,
            },
            latency_ms=provider_response.latency_ms,
        )
