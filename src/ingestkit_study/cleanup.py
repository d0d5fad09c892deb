"""Document-level cleanup and confidence metadata.

Runs the order-sensitive local cleanup pipeline over extracted pages:

1. Header/footer detection across pages.
2. Per-page clean (see :mod:`ingestkit_study.utils.page_cleanup`).
3. Cross-page deduplication of lines repeated too often.
4. Boilerplate suppression (copyright, confidentiality, page numbers).
5. Language gate on the Latin-script ratio, never dropping every page.

The before/after texts feed :class:`ConfidenceMetadata`, which the effort
classifier consumes instead of recomputing features from raw text.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Sequence

from ingestkit_study.config import StudyProcessorConfig
from ingestkit_study.models import (
    CleanedPage,
    CleanupStats,
    ConfidenceMetadata,
    DocumentCleanupResult,
    Page,
)
from ingestkit_study.utils.page_cleanup import (
    clean_page,
    detect_headers_footers,
    remove_garbage_tokens,
)
from ingestkit_study.utils.text_metrics import (
    clip_unit,
    latin_ratio,
    noise_ratio,
    ocr_artifact_score,
)

logger = logging.getLogger("ingestkit_study")

_BOILERPLATE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^©.*$", re.IGNORECASE),
    re.compile(r"^copyright\s+", re.IGNORECASE),
    re.compile(r"^all rights reserved\.?$", re.IGNORECASE),
    re.compile(r"^confidential\.?$", re.IGNORECASE),
    re.compile(r"^private\s+and\s+confidential\.?$", re.IGNORECASE),
    re.compile(r"^do\s+not\s+distribute\.?$", re.IGNORECASE),
    re.compile(r"^draft\.?$", re.IGNORECASE),
    re.compile(r"^\d{1,4}$"),
    re.compile(r"^page\s+\d+\s*(of\s+\d+)?$", re.IGNORECASE),
)


# ---------------------------------------------------------------------------
# Document transforms
# ---------------------------------------------------------------------------


def deduplicate_repeated_lines(
    pages: Sequence[CleanedPage],
    threshold: int = 3,
) -> tuple[list[CleanedPage], int]:
    """Remove every trimmed line that occurs *threshold* or more times in the document.

    Returns the new pages and the number of line occurrences removed.
    """
    counts: Counter[str] = Counter()
    for page in pages:
        for line in page.content.split("\n"):
            stripped = line.strip()
            if stripped:
                counts[stripped] += 1

    repeated = {line for line, count in counts.items() if count >= threshold}

    removed = 0
    result: list[CleanedPage] = []
    for page in pages:
        kept: list[str] = []
        for line in page.content.split("\n"):
            stripped = line.strip()
            if stripped and stripped in repeated:
                removed += 1
                continue
            kept.append(line)
        result.append(_with_content(page, "\n".join(kept)))
    return result, removed


def is_boilerplate(line: str) -> bool:
    stripped = line.strip()
    if not stripped:
        return False
    return any(pattern.search(stripped) for pattern in _BOILERPLATE_PATTERNS)


def suppress_boilerplate(pages: Sequence[CleanedPage]) -> tuple[list[CleanedPage], int]:
    """Drop copyright, confidentiality, draft and page-number lines."""
    removed = 0
    result: list[CleanedPage] = []
    for page in pages:
        kept: list[str] = []
        for line in page.content.split("\n"):
            if is_boilerplate(line):
                removed += 1
                continue
            kept.append(line)
        result.append(_with_content(page, "\n".join(kept)))
    return result, removed


def gate_by_language(
    pages: Sequence[CleanedPage],
    min_english_ratio: float = 0.7,
) -> tuple[list[CleanedPage], int]:
    """Drop pages whose Latin ratio is below *min_english_ratio*.

    If no page passes, every page is returned unchanged with a filtered
    count of zero.
    """
    passing = [page for page in pages if latin_ratio(page.content) >= min_english_ratio]
    if not passing:
        if pages:
            logger.info(
                "ingestkit_study | stage=cleanup | language_gate=bypassed | pages=%d",
                len(pages),
            )
        return list(pages), 0
    return passing, len(pages) - len(passing)


def compute_confidence_metadata(
    original_pages: Sequence[Page],
    stats: CleanupStats,
) -> ConfidenceMetadata:
    """Summarize document noise from the original text and the cleanup stats."""
    original_text = "\n".join(page.content for page in original_pages)
    total_lines = sum(len(page.content.split("\n")) for page in original_pages)
    duplicate = stats.duplicate_lines_removed / total_lines if total_lines else 0.0

    return ConfidenceMetadata(
        noise_ratio=clip_unit(noise_ratio(original_text)),
        duplicate_ratio=clip_unit(duplicate),
        non_english_ratio=clip_unit(1.0 - latin_ratio(original_text)),
        ocr_artifact_score=clip_unit(ocr_artifact_score(original_text)),
    )


def _with_content(page: CleanedPage, content: str) -> CleanedPage:
    return page.model_copy(update={"content": content, "cleaned_char_count": len(content)})


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


class DocumentCleaner:
    """Run the five cleanup steps in order and compute confidence metadata.

    The steps are repeated until a pass leaves the pages unchanged, so a
    line exposed by an earlier removal (a banner that only reaches the top
    two lines once a stray page number is dropped) is treated the same way
    as on a second run.  Cleaning already-cleaned pages is a no-op.

    Args:
        config: Pipeline configuration; supplies the header/footer,
            deduplication and language-gate thresholds.
    """

    def __init__(self, config: StudyProcessorConfig | None = None) -> None:
        self._config = config or StudyProcessorConfig()

    def clean(self, pages: Sequence[Page]) -> DocumentCleanupResult:
        stats = CleanupStats(total_pages=len(pages))
        current = [
            CleanedPage(
                page_number=page.page_number,
                content=page.content,
                original_char_count=len(page.content),
                cleaned_char_count=len(page.content),
            )
            for page in pages
        ]

        # Every pass only removes text or pages, so this terminates.
        passes = 0
        while True:
            passes += 1
            cleaned = self._clean_pass(current, stats)
            if _snapshot(cleaned) == _snapshot(current):
                break
            current = cleaned

        logger.debug(
            "ingestkit_study | stage=cleanup | pages=%d | passes=%d | duplicates=%d | boilerplate=%d | language_filtered=%d",
            len(pages),
            passes,
            stats.duplicate_lines_removed,
            stats.boilerplate_lines_removed,
            stats.pages_filtered_by_language,
        )

        return DocumentCleanupResult(
            pages=cleaned,
            confidence_metadata=compute_confidence_metadata(pages, stats),
            stats=stats,
        )

    def _clean_pass(self, pages: list[CleanedPage], stats: CleanupStats) -> list[CleanedPage]:
        config = self._config

        headers, footers = detect_headers_footers(
            (remove_garbage_tokens(page.content) for page in pages),
            min_pages=config.header_footer_min_pages,
            page_ratio=config.header_footer_page_ratio,
        )
        _extend_unique(stats.headers_detected, headers)
        _extend_unique(stats.footers_detected, footers)

        cleaned = [_with_content(page, clean_page(page.content, headers, footers)) for page in pages]

        cleaned, duplicates_removed = deduplicate_repeated_lines(
            cleaned, threshold=config.duplicate_line_threshold
        )
        cleaned, boilerplate_removed = suppress_boilerplate(cleaned)
        cleaned, language_filtered = gate_by_language(cleaned, config.min_english_ratio)

        stats.duplicate_lines_removed += duplicates_removed
        stats.boilerplate_lines_removed += boilerplate_removed
        stats.pages_filtered_by_language += language_filtered
        return cleaned


def _snapshot(pages: Sequence[CleanedPage]) -> list[tuple[int, str]]:
    return [(page.page_number, page.content) for page in pages]


def _extend_unique(target: list[str], lines: list[str]) -> None:
    for line in lines:
        if line not in target:
            target.append(line)


def clean_document(
    pages: Sequence[Page],
    config: StudyProcessorConfig | None = None,
) -> DocumentCleanupResult:
    """Convenience wrapper around :meth:`DocumentCleaner.clean`."""
    return DocumentCleaner(config).clean(pages)


def assemble_cleaned_text(pages: Sequence[CleanedPage]) -> str:
    """Join cleaned pages with ``--- Page N ---`` separators."""
    return "\n\n".join(f"--- Page {page.page_number} ---\n\n{page.content}" for page in pages)
