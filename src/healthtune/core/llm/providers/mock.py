"""Mock LLM provider for testing and key-less development."""

from __future__ import annotations

from healthtune.core.llm.provider import ProviderResponse


class MockProvider:
    """Returns a canned payload, or raises ``error`` when one is set.

    With the default empty content the mood engine cannot decode a result
    and uses its heuristic path, which is what a key-less install wants.
    """

    name = "mock"

    def __init__(
        self,
        response_content: str = "",
        error: Exception | None = None,
    ) -> None:
        self.response_content = response_content
        self.error = error
        self.last_system_message: str = ""
        self.last_user_message: str = ""
        self.call_count: int = 0

    async def generate(
        self,
        system_message: str,
        user_message: str,
        max_tokens: int = 500,
        temperature: float = 0.3,
    ) -> ProviderResponse:
        self.last_system_message = system_message
        self.last_user_message = user_message
        self.call_count += 1
        if self.error is not None:
            raise self.error
        return ProviderResponse(
            content=self.response_content,
            input_tokens=len(system_message.split()) + len(user_message.split()),
            output_tokens=len(self.response_content.split()),
            model="mock",
            latency_ms=0.0,
        )
