"""Tests for ingestkit_study.backends -- Gemini backend adapter.

The SDK client is replaced by a recording stand-in; no network calls are made.
"""

from __future__ import annotations

import base64
from types import SimpleNamespace
from typing import Any

import pytest

from ingestkit_study.backends import gemini as gemini_module
from ingestkit_study.backends import GeminiBackend, create_gemini_backend
from ingestkit_study.protocols import ModelBackend


class RecordingModels:
    def __init__(self, response: Any) -> None:
        self.response = response
        self.calls: list[dict[str, Any]] = []

    def generate_content(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        return self.response


def _client(text: str | None = "hello", usage: Any = None) -> SimpleNamespace:
    if usage is None:
        usage = SimpleNamespace(
            prompt_token_count=12,
            candidates_token_count=5,
            thoughts_token_count=None,
        )
    return SimpleNamespace(models=RecordingModels(SimpleNamespace(text=text, usage_metadata=usage)))


@pytest.mark.unit
class TestGeminiBackend:
    def test_satisfies_protocol(self):
        assert isinstance(GeminiBackend(client=_client()), ModelBackend)

    def test_generate_content(self):
        client = _client()
        backend = GeminiBackend(client=client)

        response = backend.generate_content(
            model="gemini-2.5-flash",
            contents=[{"text": "Classify this page."}],
            config={"temperature": 0.1},
        )

        assert response.text == "hello"
        assert response.usage.prompt_token_count == 12
        assert response.usage.candidates_token_count == 5
        assert response.usage.thoughts_token_count == 0

        call = client.models.calls[0]
        assert call["model"] == "gemini-2.5-flash"
        assert call["config"] == {"temperature": 0.1}
        content = call["contents"][0]
        assert content.role == "user"
        assert content.parts[0].text == "Classify this page."

    def test_inline_pdf_part(self):
        client = _client()
        data = base64.b64encode(b"%PDF-1.7 body").decode("ascii")

        GeminiBackend(client=client).generate_content(
            model="gemini-2.5-flash",
            contents=[{"inline_data": {"mime_type": "application/pdf", "data": data}}, {"text": "Extract."}],
            config={},
        )

        parts = client.models.calls[0]["contents"][0].parts
        assert parts[0].inline_data.mime_type == "application/pdf"
        assert parts[0].inline_data.data == b"%PDF-1.7 body"
        assert parts[1].text == "Extract."

    def test_missing_text_and_usage(self):
        backend = GeminiBackend(client=SimpleNamespace(
            models=RecordingModels(SimpleNamespace(text=None, usage_metadata=None))
        ))

        response = backend.generate_content(model="m", contents=[{"text": "x"}], config={})

        assert response.text == ""
        assert response.usage.prompt_token_count == 0

    def test_unsupported_part(self):
        backend = GeminiBackend(client=_client())
        with pytest.raises(ValueError, match="Unsupported content part"):
            backend.generate_content(model="m", contents=[{"file_uri": "gs://x"}], config={})

    def test_requires_key_without_client(self):
        with pytest.raises(ValueError, match="API key"):
            GeminiBackend()


@pytest.mark.unit
class TestCreateGeminiBackend:
    def test_missing_key(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        with pytest.raises(ValueError, match="GEMINI_API_KEY not configured"):
            create_gemini_backend()

    def test_key_from_environment(self, monkeypatch: pytest.MonkeyPatch):
        created: list[str] = []

        def fake_client(api_key: str) -> SimpleNamespace:
            created.append(api_key)
            return _client()

        monkeypatch.setenv("GEMINI_API_KEY", "env-key")
        monkeypatch.setattr(gemini_module.genai, "Client", fake_client)

        backend = create_gemini_backend()

        assert isinstance(backend, GeminiBackend)
        assert created == ["env-key"]

    def test_explicit_key_wins(self, monkeypatch: pytest.MonkeyPatch):
        created: list[str] = []

        def fake_client(api_key: str) -> SimpleNamespace:
            created.append(api_key)
            return _client()

        monkeypatch.setenv("GEMINI_API_KEY", "env-key")
        monkeypatch.setattr(gemini_module.genai, "Client", fake_client)

        create_gemini_backend("explicit-key")

        assert created == ["explicit-key"]
