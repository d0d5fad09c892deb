"""Per-page text cleanup: garbage removal, header/footer handling, whitespace.

Implements the page-level half of document cleanup:

1. Detect repeating header and footer lines across pages.
2. Remove garbage tokens (control and box-drawing characters, runs of
   three or more identical symbols, stray single-character lines).
3. Strip detected header/footer lines.
4. Normalize whitespace.

Every function is pure and operates on plain strings.
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from collections.abc import Iterable

logger = logging.getLogger("ingestkit_study.utils.page_cleanup")

# ---------------------------------------------------------------------------
# Compiled regex patterns
# ---------------------------------------------------------------------------

# C0 control characters except tab, newline and carriage return, plus DEL.
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

# Unicode box-drawing block (U+2500-U+257F).
_BOX_DRAWING_RE = re.compile(r"[\u2500-\u257F]")

# Three or more identical symbols (not ASCII word chars, not whitespace).
_SYMBOL_RUN_RE = re.compile(r"([^A-Za-z0-9_\s])\1{2,}")

# Single characters that are meaningful on their own line (list markers, digits).
_MEANINGFUL_SINGLE_RE = re.compile(r"[a-zA-Z0-9).\-*•]")

_HORIZONTAL_WS_RE = re.compile(r"[^\S\n]+")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")
_DIGITS_RE = re.compile(r"\d+")
_WHITESPACE_RUN_RE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize_whitespace(text: str) -> str:
    """Convert tabs to spaces, collapse blank-line runs to one, trim every line."""
    result = text.replace("\t", " ")
    result = _HORIZONTAL_WS_RE.sub(" ", result)
    result = _EXCESS_NEWLINES_RE.sub("\n\n", result)
    result = "\n".join(line.strip() for line in result.split("\n"))
    return result.strip()


def remove_garbage_tokens(text: str) -> str:
    """Strip control/box-drawing characters, symbol runs and stray single-char lines.

    Empty lines are kept so :func:`normalize_whitespace` can collapse them.
    """
    result = _CONTROL_CHARS_RE.sub("", text)
    result = _BOX_DRAWING_RE.sub("", result)
    # Removing one run can join its neighbours into a new run ("!!###!").
    previous = None
    while previous != result:
        previous = result
        result = _SYMBOL_RUN_RE.sub("", result)

    kept: list[str] = []
    for line in result.split("\n"):
        stripped = line.strip()
        if len(stripped) == 1 and not _MEANINGFUL_SINGLE_RE.match(stripped):
            continue
        kept.append(line)
    return "\n".join(kept)


def normalize_line(line: str) -> str:
    """Lowercase, drop digits and collapse whitespace for header/footer comparison."""
    result = line.strip().lower()
    result = _DIGITS_RE.sub("", result)
    result = _WHITESPACE_RUN_RE.sub(" ", result)
    return result.strip()


def detect_headers_footers(
    pages: Iterable[str],
    min_pages: int = 3,
    page_ratio: float = 0.6,
) -> tuple[list[str], list[str]]:
    """Find normalized lines repeating at the top or bottom of most pages.

    Parameters
    ----------
    pages:
        Page contents in document order.
    min_pages:
        Documents with fewer pages never report headers or footers.
    page_ratio:
        A candidate must appear on at least ``ceil(n * page_ratio)`` pages.

    Returns
    -------
    tuple[list[str], list[str]]
        ``(headers, footers)`` as normalized lines, in first-seen order.
    """
    page_list = list(pages)
    if len(page_list) < min_pages:
        return [], []

    header_counts: Counter[str] = Counter()
    footer_counts: Counter[str] = Counter()

    for content in page_list:
        lines = [line for line in content.split("\n") if line.strip()]
        if len(lines) < 3:
            continue
        for line in lines[:2]:
            normalized = normalize_line(line)
            if len(normalized) > 2:
                header_counts[normalized] += 1
        for line in lines[-2:]:
            normalized = normalize_line(line)
            if len(normalized) > 2:
                footer_counts[normalized] += 1

    threshold = math.ceil(len(page_list) * page_ratio)
    headers = [line for line, count in header_counts.items() if count >= threshold]
    footers = [line for line, count in footer_counts.items() if count >= threshold]

    if headers or footers:
        logger.debug(
            "ingestkit_study | headers=%d | footers=%d | threshold=%d",
            len(headers),
            len(footers),
            threshold,
        )
    return headers, footers


def strip_headers_footers(
    content: str,
    headers: Iterable[str],
    footers: Iterable[str],
) -> str:
    """Remove every line whose normalized form is a detected header or footer."""
    match_set = set(headers) | set(footers)
    if not match_set:
        return content
    return "\n".join(
        line for line in content.split("\n") if normalize_line(line) not in match_set
    )


def clean_page(content: str, headers: Iterable[str], footers: Iterable[str]) -> str:
    """Compose garbage removal, header/footer stripping and whitespace normalization."""
    result = remove_garbage_tokens(content)
    result = strip_headers_footers(result, headers, footers)
    return normalize_whitespace(result)
