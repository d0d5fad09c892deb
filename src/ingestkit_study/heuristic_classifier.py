"""Rule-based page classifier.

Runs an ordered cascade of independent detectors over one page:

    blank -> cover (page 1 only) -> toc -> quiz -> objectives -> outline -> review

The first detector that fires wins; when none fires the page is
``content`` at confidence 0.6 and flagged for model review.  Each
detector returns either :class:`Confident` (trust the verdict) or
:class:`NeedsReview` (escalate to the batch model classifier), and
records the keywords or structural signals that matched so every
verdict is explainable.

The escalation thresholds are set per detector rather than by one global
confidence cut-off.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence

from ingestkit_study.models import (
    Confident,
    HeuristicResult,
    HeuristicVerdict,
    NeedsReview,
    Page,
    PageClassification,
    PageMetadata,
)

logger = logging.getLogger("ingestkit_study")

# ---------------------------------------------------------------------------
# Keyword sets and structural patterns
# ---------------------------------------------------------------------------

COVER_KEYWORDS: tuple[str, ...] = (
    "syllabus",
    "course outline",
    "instructor:",
    "professor:",
    "academic year",
    "semester:",
    "department of",
    "university",
    "college of",
)

TOC_KEYWORDS: tuple[str, ...] = ("table of contents", "contents", "index")

QUIZ_KEYWORDS: tuple[str, ...] = (
    "quiz",
    "test",
    "exam",
    "questions",
    "answer key",
    "multiple choice",
    "true or false",
    "circle the correct",
    "choose the best",
    "select all that apply",
)

OBJECTIVES_KEYWORDS: tuple[str, ...] = (
    "learning objectives",
    "objectives",
    "learning outcomes",
    "learning goals",
    "by the end of this",
    "students will be able to",
    "upon completion",
)

ACTION_VERBS: tuple[str, ...] = (
    "understand",
    "explain",
    "describe",
    "analyze",
    "apply",
    "evaluate",
    "identify",
    "demonstrate",
    "compare",
    "synthesize",
)

OUTLINE_KEYWORDS: tuple[str, ...] = (
    "outline",
    "agenda",
    "schedule",
    "course schedule",
    "weekly schedule",
    "topics covered",
)

REVIEW_KEYWORDS: tuple[str, ...] = (
    "summary",
    "what we learned",
    "what you learned",
    "key takeaways",
    "key points",
    "review",
    "recap",
    "in conclusion",
    "to summarize",
)

_PAGE_NUMBER_RE = re.compile(r"\.\s*\d+|\d+\s*$", re.MULTILINE)
_DOT_LEADER_RE = re.compile(r"\.\s*\.\s*\.\s*\d+|[.-]{3,}\s*\d+")
_NUMBERED_ITEM_RE = re.compile(r"^\s*\d+[.)]\s+", re.MULTILINE)
_MC_OPTION_RE = re.compile(r"[a-d][.)]\s+", re.IGNORECASE)
_BULLET_RE = re.compile(r"^\s*[-•*]\s+", re.MULTILINE)
_HIERARCHICAL_RE = re.compile(r"^\s*\d+(?:\.\d+)*[.)]\s+", re.MULTILINE)

DEFAULT_CONTENT_CONFIDENCE = 0.6


def _matches(content: str, keywords: Sequence[str]) -> list[str]:
    return [keyword for keyword in keywords if keyword in content]


def _confident(
    classification: PageClassification,
    confidence: float,
    keywords: list[str],
) -> Confident:
    return Confident(
        verdict=HeuristicVerdict(
            classification=classification,
            confidence=confidence,
            matched_keywords=keywords,
        )
    )


def _needs_review(
    classification: PageClassification,
    confidence: float,
    keywords: list[str],
    reason: str,
) -> NeedsReview:
    return NeedsReview(
        verdict=HeuristicVerdict(
            classification=classification,
            confidence=confidence,
            matched_keywords=keywords,
        ),
        reason=reason,
    )


# ---------------------------------------------------------------------------
# Detectors
# ---------------------------------------------------------------------------
#
# Every detector receives the lowercased content and returns a result or
# None to fall through to the next one.


def detect_blank(content: str, char_count: int) -> HeuristicResult | None:
    if char_count < 50:
        return _confident(PageClassification.BLANK, 1.0, ["empty"])

    meaningful_words = [word for word in content.split() if len(word) > 2]
    if len(meaningful_words) < 5:
        return _confident(PageClassification.BLANK, 0.95, ["minimal-content"])

    return None


def detect_cover(content: str, char_count: int) -> HeuristicResult | None:
    matched = _matches(content, COVER_KEYWORDS)

    if char_count < 300 and matched:
        return _confident(PageClassification.COVER, 0.9, matched)

    if len(matched) >= 3:
        return _confident(PageClassification.COVER, 0.85, matched)

    has_structure = "\n\n" in content or len(content.split("\n")) > 10
    if not has_structure and char_count < 500 and matched:
        return _needs_review(
            PageClassification.COVER,
            0.75,
            matched,
            "short unstructured first page with a cover keyword",
        )

    return None


def detect_table_of_contents(content: str) -> HeuristicResult | None:
    matched = _matches(content, TOC_KEYWORDS)

    if matched:
        line_count = len(content.split("\n"))
        density = len(_PAGE_NUMBER_RE.findall(content)) / max(line_count, 1)
        if density > 0.3:
            return _confident(PageClassification.TOC, 0.95, [*matched, "page-numbers"])
        return _confident(PageClassification.TOC, 0.85, matched)

    dot_leader_lines = sum(1 for line in content.split("\n") if _DOT_LEADER_RE.search(line))
    if dot_leader_lines > 5:
        return _confident(PageClassification.TOC, 0.8, ["dot-leaders"])

    return None


def detect_quiz(content: str) -> HeuristicResult | None:
    matched = _matches(content, QUIZ_KEYWORDS)
    numbered_items = len(_NUMBERED_ITEM_RE.findall(content))
    mc_options = len(_MC_OPTION_RE.findall(content))

    if len(matched) >= 2:
        return _confident(PageClassification.QUIZ, 0.95, matched)

    if numbered_items >= 3 and mc_options >= 6:
        return _confident(PageClassification.QUIZ, 0.85, ["numbered-questions", "mc-options"])

    if len(matched) == 1 and numbered_items >= 5:
        return _needs_review(
            PageClassification.QUIZ,
            0.7,
            [*matched, "question-structure"],
            "single quiz keyword with numbered items",
        )

    return None


def detect_objectives(content: str) -> HeuristicResult | None:
    matched = _matches(content, OBJECTIVES_KEYWORDS)
    action_verbs = len(_matches(content, ACTION_VERBS))

    if len(matched) >= 2:
        return _confident(PageClassification.OBJECTIVES, 0.9, matched)

    if len(matched) == 1 and action_verbs >= 3:
        return _confident(PageClassification.OBJECTIVES, 0.85, [*matched, "action-verbs"])

    if matched and len(content) > 800:
        bullet_chars = sum(len(bullet) for bullet in _BULLET_RE.findall(content))
        if len(content) - bullet_chars > 400:
            return _needs_review(
                PageClassification.CONTENT,
                0.7,
                ["hybrid-objectives-content"],
                "objectives keyword on a long page with substantial prose",
            )

    return None


def detect_outline(content: str) -> HeuristicResult | None:
    matched = _matches(content, OUTLINE_KEYWORDS)

    if matched:
        return _confident(PageClassification.OUTLINE, 0.85, matched)

    if len(_HIERARCHICAL_RE.findall(content)) >= 5:
        return _needs_review(
            PageClassification.OUTLINE,
            0.75,
            ["hierarchical-numbering"],
            "hierarchical numbering without outline keywords",
        )

    return None


def detect_review(content: str, position_ratio: float) -> HeuristicResult | None:
    matched = _matches(content, REVIEW_KEYWORDS)

    if len(matched) >= 2:
        return _confident(PageClassification.REVIEW, 0.85, matched)

    if len(matched) == 1 and position_ratio > 0.8:
        return _needs_review(
            PageClassification.REVIEW,
            0.75,
            [*matched, "near-end"],
            "single review keyword near the end of the document",
        )

    if len(matched) == 1:
        return _needs_review(
            PageClassification.REVIEW,
            0.6,
            matched,
            "single review keyword",
        )

    return None


def _run_detector(
    name: str,
    detector: Callable[[], HeuristicResult | None],
    page_number: int,
) -> HeuristicResult | None:
    try:
        return detector()
    except Exception:
        logger.warning(
            "ingestkit_study | page=%d | detector=%s | detail=detector raised, falling through",
            page_number,
            name,
            exc_info=True,
        )
        return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def classify_page_heuristic(page: Page, page_number: int, total_pages: int) -> HeuristicResult:
    """Classify one page with the detector cascade.

    Args:
        page: The extracted page.
        page_number: 1-based position of the page in the document.
        total_pages: Number of pages in the document.

    Returns:
        ``Confident`` or ``NeedsReview`` wrapping the winning verdict.
        A detector that raises is skipped.
    """
    content = page.content.lower()
    char_count = page.character_count
    position_ratio = page_number / total_pages if total_pages else 1.0

    cascade: list[tuple[str, Callable[[], HeuristicResult | None]]] = [
        ("blank", lambda: detect_blank(content, char_count)),
    ]
    if page_number == 1:
        cascade.append(("cover", lambda: detect_cover(content, char_count)))
    cascade.extend(
        [
            ("toc", lambda: detect_table_of_contents(content)),
            ("quiz", lambda: detect_quiz(content)),
            ("objectives", lambda: detect_objectives(content)),
            ("outline", lambda: detect_outline(content)),
            ("review", lambda: detect_review(content, position_ratio)),
        ]
    )

    for name, detector in cascade:
        result = _run_detector(name, detector, page_number)
        if result is not None:
            return result

    return _needs_review(
        PageClassification.CONTENT,
        DEFAULT_CONTENT_CONFIDENCE,
        [],
        "no detector fired",
    )


def classify_all_pages(
    pages: Sequence[Page],
) -> tuple[list[PageMetadata], list[tuple[int, Page, NeedsReview]]]:
    """Run the cascade over every page.

    Returns:
        The per-page metadata (in the order of *pages*) and the pages that
        need model review as ``(index, page, result)`` tuples.
    """
    total_pages = len(pages)
    metadata: list[PageMetadata] = []
    uncertain: list[tuple[int, Page, NeedsReview]] = []

    for index, page in enumerate(pages):
        result = classify_page_heuristic(page, page.page_number, total_pages)
        verdict = result.verdict
        metadata.append(
            PageMetadata.create(
                page,
                verdict.classification,
                verdict.confidence,
                verdict.matched_keywords,
            )
        )
        if isinstance(result, NeedsReview):
            uncertain.append((index, page, result))

    return metadata, uncertain
