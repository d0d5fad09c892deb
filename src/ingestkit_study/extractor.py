"""Page extraction through one multimodal model call.

The whole PDF is sent inline with a verbatim-extraction prompt that asks
for ``PAGE N:`` headers separated by ``---PAGE_BREAK---`` lines.  The
response is split into :class:`Page` objects sorted by page number.  When
the model ignores the format entirely, the whole response becomes a
single page rather than failing.
"""

from __future__ import annotations

import base64
import logging
import re

from ingestkit_study.errors import ErrorCode, ExtractionError
from ingestkit_study.models import (
    EffortLevel,
    ExtractionResult,
    ModelRequest,
    Page,
    ProcessOptions,
    TaskType,
)
from ingestkit_study.orchestrator import CallOrchestrator
from ingestkit_study.prompts import PDF_EXTRACTION_PROMPT

logger = logging.getLogger("ingestkit_study")

_PAGE_BREAK_RE = re.compile(r"---PAGE_BREAK---", re.IGNORECASE)
_PAGE_HEADER_RE = re.compile(r"PAGE\s+(\d+):\s*(.*)", re.IGNORECASE | re.DOTALL)
_PAGE_NUMBER_ONLY_RE = re.compile(r"^PAGE\s+(\d+)", re.IGNORECASE)
_PAGE_PREFIX_RE = re.compile(r"^PAGE\s+\d+:?\s*", re.IGNORECASE)
_ANY_PAGE_HEADER_RE = re.compile(r"PAGE\s+\d+:\s*", re.IGNORECASE)


def parse_page_content(text: str) -> tuple[list[Page], bool]:
    """Split a model response into pages.

    Returns:
        ``(pages, used_fallback)``.  ``used_fallback`` is True when no page
        markers were found and the whole text became page 1.
    """
    pages: list[Page] = []

    for section in _PAGE_BREAK_RE.split(text):
        trimmed = section.strip()
        if not trimmed:
            continue

        match = _PAGE_HEADER_RE.search(trimmed)
        if match:
            _append_page(pages, int(match.group(1)), match.group(2).strip())
            continue

        number_match = _PAGE_NUMBER_ONLY_RE.match(trimmed)
        if number_match:
            content = _PAGE_PREFIX_RE.sub("", trimmed, count=1).strip()
            _append_page(pages, int(number_match.group(1)), content)

    pages.sort(key=lambda p: p.page_number)

    if pages:
        return pages, False

    clean_text = _PAGE_BREAK_RE.sub("", _ANY_PAGE_HEADER_RE.sub("", text)).strip()
    if not clean_text:
        return [], False
    return [Page.from_content(1, clean_text)], True


def _append_page(pages: list[Page], page_number: int, content: str) -> None:
    if not content:
        return
    if page_number < 1:
        logger.warning("ingestkit_study | stage=extracting | skipped_page_number=%d", page_number)
        return
    pages.append(Page.from_content(page_number, content))


def validate_page_extraction(result: ExtractionResult, min_chars: int = 100) -> None:
    """Raise :class:`ExtractionError` if *result* is unusable.

    Rejects zero pages, a ``total_pages`` that disagrees with the page
    list, and fewer than *min_chars* extracted characters overall.
    """
    if not result.pages:
        raise ExtractionError(ErrorCode.E_EXTRACT_NO_PAGES, "No pages extracted")

    if result.total_pages != len(result.pages):
        raise ExtractionError(
            ErrorCode.E_EXTRACT_PAGE_MISMATCH,
            f"Page count mismatch: total_pages={result.total_pages}, parsed={len(result.pages)}",
        )

    total_chars = sum(page.character_count for page in result.pages)
    if total_chars < min_chars:
        raise ExtractionError(
            ErrorCode.E_EXTRACT_INSUFFICIENT,
            f"Insufficient content extracted (< {min_chars} characters)",
        )


class PageExtractor:
    """Extract page-level text from PDF bytes with one orchestrated call."""

    def __init__(self, orchestrator: CallOrchestrator) -> None:
        self._orchestrator = orchestrator

    def extract(
        self,
        pdf_base64: str,
        document_id: str | None = None,
        user_id: str | None = None,
    ) -> ExtractionResult:
        """Extract pages from a base64-encoded PDF.

        Raises:
            ExtractionError: If the model returned no text at all or
                nothing parseable as a page.
        """
        request = ModelRequest(
            task=TaskType.PDF_EXTRACT,
            contents=[
                {"inline_data": {"mime_type": "application/pdf", "data": pdf_base64}},
                {"text": PDF_EXTRACTION_PROMPT},
            ],
            document_id=document_id,
            user_id=user_id,
        )
        response = self._orchestrator.process_document(
            request, ProcessOptions(effort=EffortLevel.MEDIUM)
        )

        if not response.text.strip():
            raise ExtractionError(ErrorCode.E_EXTRACT_EMPTY, "No text extracted from PDF")

        pages, used_fallback = parse_page_content(response.text)
        if not pages:
            raise ExtractionError(
                ErrorCode.E_EXTRACT_NO_PAGES, "Failed to parse pages from extracted text"
            )
        if used_fallback:
            logger.warning(
                "ingestkit_study | document=%s | stage=extracting | detail=no page markers, using single-page fallback",
                document_id,
            )

        logger.info(
            "ingestkit_study | document=%s | stage=extracting | pages=%d | model=%s",
            document_id,
            len(pages),
            response.model_id,
        )
        return ExtractionResult(
            pages=pages,
            total_pages=len(pages),
            used_fallback_parse=used_fallback,
        )

    def extract_bytes(
        self,
        pdf_bytes: bytes,
        document_id: str | None = None,
        user_id: str | None = None,
    ) -> ExtractionResult:
        return self.extract(
            base64.b64encode(pdf_bytes).decode("ascii"),
            document_id=document_id,
            user_id=user_id,
        )
