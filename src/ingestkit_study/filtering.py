"""Classification-driven page filtering with edge-case recovery.

Pages whose final classification is in ``FILTERED_TYPES`` are removed and
the kept pages are assembled, in page order, into one text with
``--- Page N ---`` separators.  Two recovery policies re-admit pages when
the naive result is degenerate:

* every page filtered: keep the longest ``ceil(n / 2)`` pages (at least
  one) as ``content`` at confidence 0.5, tagged ``recovered-fallback``;
* short document with exactly one kept page: re-admit the longest
  borderline filtered page, tagged ``recovered-short-doc``.

After recovery the result must still hold at least one kept page and
enough characters, otherwise :class:`FilteringError` is raised.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from ingestkit_study.config import StudyProcessorConfig
from ingestkit_study.errors import ErrorCode, FilteringError, IngestError
from ingestkit_study.heuristic_classifier import classify_all_pages
from ingestkit_study.llm_classifier import BatchPageClassifier
from ingestkit_study.models import (
    FILTERED_TYPES,
    DetectionMethod,
    FilteringResult,
    FilteringStats,
    Page,
    PageClassification,
    PageMetadata,
)

logger = logging.getLogger("ingestkit_study")

RECOVERED_FALLBACK = "recovered-fallback"
RECOVERED_SHORT_DOC = "recovered-short-doc"
FALLBACK_RECOVERY_CONFIDENCE = 0.5

__all__ = [
    "FILTERED_TYPES",
    "PageFilter",
    "apply_filtering",
    "assemble_pages",
    "handle_edge_cases",
    "validate_filtering",
]


def assemble_pages(pages: Sequence[Page]) -> str:
    """Join pages, sorted by number, with ``--- Page N ---`` separators."""
    ordered = sorted(pages, key=lambda p: p.page_number)
    return "".join(f"\n\n--- Page {page.page_number} ---\n\n{page.content}" for page in ordered).strip()


def apply_filtering(
    pages: Sequence[Page],
    page_metadata: Sequence[PageMetadata],
) -> tuple[str, list[Page]]:
    """Drop filtered pages.  ``page_metadata[i]`` describes ``pages[i]``."""
    kept = [page for page, meta in zip(pages, page_metadata) if not meta.filtered]
    return assemble_pages(kept), kept


def handle_edge_cases(
    pages: Sequence[Page],
    page_metadata: Sequence[PageMetadata],
    kept: list[Page],
    config: StudyProcessorConfig | None = None,
) -> tuple[list[Page], list[int]]:
    """Apply the recovery policies in place on *page_metadata*.

    ``page_metadata[i]`` describes ``pages[i]``; pages are matched by
    position, never by page number, so repeated numbers stay aligned.

    Returns:
        The final kept pages and the page numbers that were recovered.
    """
    config = config or StudyProcessorConfig()

    if not kept:
        by_length = sorted(range(len(pages)), key=lambda i: pages[i].character_count, reverse=True)
        recovered = sorted(by_length[: max(1, math.ceil(len(pages) / 2))])
        for index in recovered:
            page_metadata[index].reclassify(
                PageClassification.CONTENT,
                confidence=FALLBACK_RECOVERY_CONFIDENCE,
                detection_method=DetectionMethod.HEURISTIC,
                keyword=RECOVERED_FALLBACK,
            )
        return _kept_pages(pages, page_metadata), [pages[i].page_number for i in recovered]

    if len(pages) < config.short_document_pages and len(kept) == 1:
        borderline = [
            index
            for index, (page, meta) in enumerate(zip(pages, page_metadata))
            if meta.filtered
            and meta.confidence < config.recovery_confidence_ceiling
            and page.character_count > config.recovery_min_chars
        ]
        if borderline:
            best = max(borderline, key=lambda i: pages[i].character_count)
            page_metadata[best].reclassify(
                PageClassification.CONTENT,
                keyword=RECOVERED_SHORT_DOC,
            )
            return _kept_pages(pages, page_metadata), [pages[best].page_number]

    return kept, []


def _kept_pages(pages: Sequence[Page], page_metadata: Sequence[PageMetadata]) -> list[Page]:
    return [page for page, meta in zip(pages, page_metadata) if not meta.filtered]


def validate_filtering(kept: Sequence[Page], filtered_text: str, min_chars: int = 100) -> None:
    """Raise :class:`FilteringError` when nothing usable survived filtering."""
    if not kept:
        raise FilteringError(
            ErrorCode.E_FILTER_ALL_PAGES,
            "All pages were filtered out. Document may only contain non-content pages.",
        )
    if len(filtered_text) < min_chars:
        raise FilteringError(
            ErrorCode.E_FILTER_INSUFFICIENT,
            "Insufficient content extracted after filtering",
        )


def _build_stats(
    page_metadata: Sequence[PageMetadata],
    ai_classifications_used: int,
    recovered: list[int],
) -> FilteringStats:
    by_classification = {tag.value: 0 for tag in PageClassification}
    for meta in page_metadata:
        by_classification[meta.classification.value] += 1
    filtered = sum(1 for meta in page_metadata if meta.filtered)
    return FilteringStats(
        total_pages=len(page_metadata),
        filtered_pages=filtered,
        kept_pages=len(page_metadata) - filtered,
        by_classification=by_classification,
        ai_classifications_used=ai_classifications_used,
        recovered_pages=recovered,
    )


class PageFilter:
    """Classify pages (heuristics, then optional model escalation) and filter them.

    Args:
        config: Pipeline configuration.
        batch_classifier: Escalation path for uncertain pages.  When
            ``None`` only heuristic verdicts are used.
    """

    def __init__(
        self,
        config: StudyProcessorConfig | None = None,
        batch_classifier: BatchPageClassifier | None = None,
    ) -> None:
        self._config = config or StudyProcessorConfig()
        self._batch_classifier = batch_classifier

    def run(
        self,
        pages: Sequence[Page],
        document_id: str | None = None,
        user_id: str | None = None,
    ) -> FilteringResult:
        """Classify, filter, recover and validate.

        Raises:
            FilteringError: If no page or too little text survives.
        """
        page_metadata, uncertain = classify_all_pages(pages)
        warnings: list[IngestError] = []

        ai_used = 0
        if uncertain and self._batch_classifier is not None:
            ai_used, batch_warnings = self._batch_classifier.classify(
                uncertain, page_metadata, document_id=document_id, user_id=user_id
            )
            warnings.extend(batch_warnings)

        _, kept = apply_filtering(pages, page_metadata)
        kept, recovered = handle_edge_cases(pages, page_metadata, kept, self._config)
        filtered_text = assemble_pages(kept)

        for page_number in recovered:
            warnings.append(
                IngestError(
                    code=ErrorCode.W_PAGE_RECOVERED,
                    message=f"Page {page_number} re-admitted by recovery policy",
                    stage="filtering",
                    recoverable=True,
                    page_number=page_number,
                )
            )

        stats = _build_stats(page_metadata, ai_used, recovered)
        logger.info(
            "ingestkit_study | document=%s | stage=filtering | total=%d | kept=%d | filtered=%d | ai=%d | recovered=%d",
            document_id,
            stats.total_pages,
            stats.kept_pages,
            stats.filtered_pages,
            ai_used,
            len(recovered),
        )

        validate_filtering(kept, filtered_text, self._config.min_filtered_chars)

        return FilteringResult(
            filtered_text=filtered_text,
            page_metadata=page_metadata,
            stats=stats,
            warnings=warnings,
        )
