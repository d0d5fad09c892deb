"""Text-quality metrics shared by document cleanup and effort scoring.

All functions are pure and return floats.  Ratios are *not* clipped here;
callers that build a :class:`~ingestkit_study.models.ConfidenceMetadata`
clip them into ``[0, 1]`` with :func:`clip_unit`.
"""

from __future__ import annotations

import re
from collections import Counter

# ---------------------------------------------------------------------------
# Compiled regex patterns
# ---------------------------------------------------------------------------

# Everything that is NOT noise: ASCII word chars, whitespace, common punctuation.
_NON_NOISE_RE = re.compile(r"[A-Za-z0-9_\s.,;:!?'\"()\-]")

_WHITESPACE_RE = re.compile(r"\s")
_WHITESPACE_RUN_RE = re.compile(r"\s+")

# Printable ASCII counts as Latin script.
_LATIN_RE = re.compile(r"[\x20-\x7E]")

# Three single characters separated by spaces, e.g. "t h e".
_BROKEN_WORD_RE = re.compile(r"\b\w\s\w\s\w\b", re.ASCII)

# l/| next to digits, or 0 between capitals, e.g. "l0", "1|", "C0DE".
_OCR_CONFUSION_RE = re.compile(r"[|l](?=\d)|(?<=\d)[|l]|(?<=[A-Z])0(?=[A-Z])")


def clip_unit(value: float) -> float:
    """Clamp *value* into ``[0.0, 1.0]``."""
    return max(0.0, min(1.0, value))


def latin_ratio(text: str) -> float:
    """Return the share of non-whitespace characters that are printable ASCII.

    Text with no non-whitespace characters is treated as fully Latin.
    """
    chars = _WHITESPACE_RE.sub("", text)
    if not chars:
        return 1.0
    return len(_LATIN_RE.findall(chars)) / len(chars)


def noise_ratio(text: str) -> float:
    """Share of characters outside word characters, whitespace and common punctuation."""
    if not text:
        return 0.0
    noise = _NON_NOISE_RE.sub("", text)
    return len(noise) / len(text)


def repeated_line_ratio(text: str, threshold: int = 3) -> float:
    """Share of non-empty lines whose trimmed text occurs at least *threshold* times."""
    lines = [line.strip() for line in text.split("\n")]
    lines = [line for line in lines if line]
    if not lines:
        return 0.0
    counts = Counter(lines)
    duplicates = sum(count for count in counts.values() if count >= threshold)
    return duplicates / len(lines)


def ocr_artifact_score(text: str) -> float:
    """Heuristic OCR damage score in ``[0, 1]``.

    Parameters
    ----------
    text:
        Raw text to score.

    Returns
    -------
    float
        Weighted sum of pipe-character density, "broken word" density
        (single letters separated by spaces) and l/1, O/0 confusions,
        each capped before weighting.
    """
    length = len(text)
    if length == 0:
        return 0.0

    score = 0.0

    pipes = text.count("|")
    score += min(pipes / length, 0.1) * 3

    broken_words = len(_BROKEN_WORD_RE.findall(text))
    word_count = len(_WHITESPACE_RUN_RE.split(text))
    score += min(broken_words / max(word_count, 1), 0.1) * 3

    confusions = len(_OCR_CONFUSION_RE.findall(text))
    score += min(confusions / length, 0.05) * 2

    return min(score, 1.0)
