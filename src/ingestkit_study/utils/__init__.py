"""Utility modules for ingestkit-study."""

from ingestkit_study.utils.page_cleanup import (
    clean_page,
    detect_headers_footers,
    normalize_line,
    normalize_whitespace,
    remove_garbage_tokens,
    strip_headers_footers,
)
from ingestkit_study.utils.text_metrics import (
    clip_unit,
    latin_ratio,
    noise_ratio,
    ocr_artifact_score,
    repeated_line_ratio,
)

__all__ = [
    "clean_page",
    "clip_unit",
    "detect_headers_footers",
    "latin_ratio",
    "noise_ratio",
    "normalize_line",
    "normalize_whitespace",
    "ocr_artifact_score",
    "remove_garbage_tokens",
    "repeated_line_ratio",
    "strip_headers_footers",
]
