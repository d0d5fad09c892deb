"""Concrete backend implementations for ingestkit-study."""

from __future__ import annotations

from ingestkit_study.backends.gemini import GeminiBackend, create_gemini_backend

__all__ = [
    "GeminiBackend",
    "create_gemini_backend",
]
