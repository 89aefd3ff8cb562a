"""Anthropic Claude provider."""

from __future__ import annotations

import time

from healthtune.core.llm.provider import DEFAULT_ANTHROPIC_MODEL, ProviderResponse


class AnthropicProvider:
    """Claude provider using the Anthropic SDK."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_ANTHROPIC_MODEL,
        timeout: float = 30.0,
    ) -> None:
        import anthropic

        # One attempt only: a failed call degrades to the heuristic engine.
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key, timeout=timeout, max_retries=0
        )
        self.model = model

    async def generate(
        self,
        system_message: str,
        user_message: str,
        max_tokens: int = 500,
        temperature: float = 0.3,
    ) -> ProviderResponse:
        start = time.monotonic()
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_message,
            messages=[{"role": "user", "content": user_message}],
        )
        elapsed_ms = (time.monotonic() - start) * 1000

        text_blocks = [
            block.text for block in response.content if getattr(block, "type", "") == "text"
        ]
        return ProviderResponse(
            content="".join(text_blocks),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=self.model,
            latency_ms=elapsed_ms,
        )
