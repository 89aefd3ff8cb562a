"""Response parsing for backend LLM output.

LLMs wrap JSON in prose or markdown fences more often than they should.
``extract_json_object`` peels that off and returns the first JSON object,
or raises ``MalformedBackendResponseError``.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from healthtune.core.llm.client import InferenceBackendError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class MalformedBackendResponseError(InferenceBackendError):
    """Backend replied, but not with the structure we asked for."""


def strip_preamble(content: str) -> str:
    """Drop markdown fences and any text before the first ``{``."""
    text = _FENCE_RE.sub("", content.strip())
    start = text.find("{")
    if start == -1:
        return ""
    return text[start:]


def extract_json_object(content: str) -> dict[str, Any]:
    """Parse the first JSON object in an LLM response.

    Trailing chatter after the object is ignored.

    Raises:
        MalformedBackendResponseError: If there is no parseable JSON object.
    """
    if not content or not content.strip():
        raise MalformedBackendResponseError("Empty response from mood backend")

    text = strip_preamble(content)
    if not text:
        raise MalformedBackendResponseError("No JSON object in mood backend response")

    try:
        parsed, _end = json.JSONDecoder().raw_decode(text)
    except json.JSONDecodeError as exc:
        raise MalformedBackendResponseError(
            f"Invalid JSON from mood backend: {exc}"
        ) from exc

    if not isinstance(parsed, dict):
        raise MalformedBackendResponseError(
            f"Expected JSON object from mood backend, got {type(parsed).__name__}"
        )
    return parsed
