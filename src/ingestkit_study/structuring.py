"""Optional model-based restructuring of cleaned text.

Disabled by default.  When enabled, cleaned pages are grouped into chunks
of roughly ``structuring_chunk_chars`` characters and each chunk is
rewritten by the model into clean plain text, preserving the
``--- Page N ---`` markers.  When disabled, the locally assembled text is
returned unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ingestkit_study.cleanup import assemble_cleaned_text
from ingestkit_study.config import StudyProcessorConfig
from ingestkit_study.models import (
    CleanedPage,
    EffortLevel,
    ModelRequest,
    ProcessOptions,
    TaskType,
)
from ingestkit_study.orchestrator import CallOrchestrator
from ingestkit_study.prompts import build_structuring_prompt

logger = logging.getLogger("ingestkit_study")


def chunk_pages(pages: Sequence[CleanedPage], max_chars: int) -> list[list[CleanedPage]]:
    """Group pages into chunks whose content stays near *max_chars*.

    A page is never split; a single page longer than *max_chars* forms
    its own chunk.
    """
    chunks: list[list[CleanedPage]] = []
    current: list[CleanedPage] = []
    size = 0

    for page in pages:
        if current and size + len(page.content) > max_chars:
            chunks.append(current)
            current = []
            size = 0
        current.append(page)
        size += len(page.content)

    if current:
        chunks.append(current)
    return chunks


class LLMStructurer:
    """Rewrite cleaned pages into well-formatted plain text with the model."""

    def __init__(
        self,
        orchestrator: CallOrchestrator,
        config: StudyProcessorConfig | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._config = config or StudyProcessorConfig()

    def structure(
        self,
        pages: Sequence[CleanedPage],
        document_id: str | None = None,
        user_id: str | None = None,
    ) -> str:
        if not self._config.llm_structuring_enabled:
            return assemble_cleaned_text(pages)

        structured: list[str] = []
        chunks = chunk_pages(pages, self._config.structuring_chunk_chars)
        for chunk in chunks:
            raw_text = "\n\n".join(
                f"--- Page {page.page_number} ---\n{page.content}" for page in chunk
            )
            response = self._orchestrator.process_document(
                ModelRequest(
                    task=TaskType.PDF_EXTRACT,
                    contents=[{"text": build_structuring_prompt(raw_text)}],
                    document_id=document_id,
                    user_id=user_id,
                ),
                ProcessOptions(effort=EffortLevel.LOW),
            )
            structured.append(response.text)

        logger.debug(
            "ingestkit_study | document=%s | stage=filtering | structured_chunks=%d",
            document_id,
            len(chunks),
        )
        return "\n\n".join(structured)
