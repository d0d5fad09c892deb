"""Gemini backend for the ModelBackend protocol.

Wraps the ``google-genai`` SDK.  Content parts arrive as plain dicts
(``{"text": ...}`` or ``{"inline_data": {"mime_type": ..., "data": <base64>}}``)
and are converted to SDK ``Part`` objects; the usage block of the SDK
response is copied into a :class:`~ingestkit_study.models.ModelResponse`.
"""

from __future__ import annotations

import base64
import logging
import os
from typing import Any

from google import genai
from google.genai import types

from ingestkit_study.models import ModelResponse, ModelUsage

logger = logging.getLogger("ingestkit_study")

API_KEY_ENV_VAR = "GEMINI_API_KEY"


class GeminiBackend:
    """Gemini-backed model service.

    Satisfies :class:`~ingestkit_study.protocols.ModelBackend` via
    structural subtyping (no inheritance required).

    Parameters
    ----------
    api_key:
        Gemini API key.  Ignored when *client* is given.
    client:
        A pre-built ``genai.Client``, mainly for tests.
    """

    def __init__(self, api_key: str | None = None, client: genai.Client | None = None) -> None:
        if client is None:
            if not api_key:
                raise ValueError("A Gemini API key is required to create GeminiBackend")
            client = genai.Client(api_key=api_key)
        self._client = client

    def generate_content(
        self,
        model: str,
        contents: list[dict[str, Any]],
        config: dict[str, Any],
    ) -> ModelResponse:
        parts = [self._to_part(part) for part in contents]
        response = self._client.models.generate_content(
            model=model,
            contents=[types.Content(role="user", parts=parts)],
            config=config,
        )

        usage = response.usage_metadata
        return ModelResponse(
            text=response.text or "",
            usage=ModelUsage(
                prompt_token_count=(usage.prompt_token_count or 0) if usage else 0,
                candidates_token_count=(usage.candidates_token_count or 0) if usage else 0,
                thoughts_token_count=(usage.thoughts_token_count or 0) if usage else 0,
            ),
        )

    @staticmethod
    def _to_part(part: dict[str, Any]) -> types.Part:
        inline = part.get("inline_data")
        if inline is not None:
            return types.Part.from_bytes(
                data=base64.b64decode(inline["data"]),
                mime_type=inline["mime_type"],
            )
        if "text" in part:
            return types.Part.from_text(text=part["text"])
        raise ValueError(f"Unsupported content part keys: {sorted(part)}")


def create_gemini_backend(api_key: str | None = None) -> GeminiBackend:
    """Build a :class:`GeminiBackend`, reading ``GEMINI_API_KEY`` when no key is passed."""
    key = api_key or os.environ.get(API_KEY_ENV_VAR)
    if not key:
        raise ValueError(f"{API_KEY_ENV_VAR} not configured")
    return GeminiBackend(api_key=key)
