"""Normalized error codes, structured error model, and pipeline exceptions.

Errors and warnings use a stable string code suitable for metrics,
alerting, and programmatic handling.  Non-fatal conditions are collected
as :class:`IngestError` records on stage results; fatal validation
failures are raised as :class:`PipelineError` subclasses carrying the
pipeline stage that produced them.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Normalized error codes for the ingestkit-study pipeline.

    Codes prefixed with ``E_`` are errors; codes prefixed with ``W_`` are
    non-fatal warnings.  Values equal their names.
    """

    # Pre-flight / Security errors
    E_SECURITY_INVALID_PDF = "E_SECURITY_INVALID_PDF"
    E_SECURITY_TOO_LARGE = "E_SECURITY_TOO_LARGE"
    E_SECURITY_TOO_MANY_PAGES = "E_SECURITY_TOO_MANY_PAGES"
    E_SECURITY_JAVASCRIPT = "E_SECURITY_JAVASCRIPT"

    # Parse errors
    E_PARSE_CORRUPT = "E_PARSE_CORRUPT"
    E_PARSE_PASSWORD = "E_PARSE_PASSWORD"
    E_PARSE_EMPTY = "E_PARSE_EMPTY"

    # Extraction errors
    E_EXTRACT_EMPTY = "E_EXTRACT_EMPTY"
    E_EXTRACT_NO_PAGES = "E_EXTRACT_NO_PAGES"
    E_EXTRACT_PAGE_MISMATCH = "E_EXTRACT_PAGE_MISMATCH"
    E_EXTRACT_INSUFFICIENT = "E_EXTRACT_INSUFFICIENT"

    # Filtering errors
    E_FILTER_ALL_PAGES = "E_FILTER_ALL_PAGES"
    E_FILTER_INSUFFICIENT = "E_FILTER_INSUFFICIENT"

    # Model call errors
    E_LLM_CALL_FAILED = "E_LLM_CALL_FAILED"
    E_LLM_MALFORMED_JSON = "E_LLM_MALFORMED_JSON"
    E_LLM_SCHEMA_INVALID = "E_LLM_SCHEMA_INVALID"

    # Storage errors
    E_STORAGE_DOWNLOAD = "E_STORAGE_DOWNLOAD"

    # Warnings (non-fatal)
    W_LLM_FALLBACK = "W_LLM_FALLBACK"
    W_CLASSIFY_BATCH_FAILED = "W_CLASSIFY_BATCH_FAILED"
    W_PAGE_RECOVERED = "W_PAGE_RECOVERED"
    W_LANGUAGE_GATE_BYPASSED = "W_LANGUAGE_GATE_BYPASSED"
    W_TOPICS_DEFAULTED = "W_TOPICS_DEFAULTED"
    W_STRUCTURING_FAILED = "W_STRUCTURING_FAILED"
    W_TELEMETRY_DROPPED = "W_TELEMETRY_DROPPED"


class IngestError(BaseModel):
    """Structured error with code, message, and context.

    ``page_number`` identifies the page an error refers to when the
    condition is page-scoped (e.g. a recovered page).
    """

    code: ErrorCode
    message: str
    stage: str | None = None
    recoverable: bool = False
    page_number: int | None = None


class PipelineError(Exception):
    """Base class for fatal pipeline failures.

    Carries an :class:`ErrorCode` and the name of the pipeline stage that
    was active when the failure occurred, so callers can record
    ``error_stage`` precisely.
    """

    default_stage: str | None = None

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        stage: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.stage = stage or self.default_stage

    def to_ingest_error(self) -> IngestError:
        return IngestError(
            code=self.code,
            message=self.message,
            stage=self.stage,
            recoverable=False,
        )


class ExtractionError(PipelineError):
    """Raised when page extraction produced nothing usable."""

    default_stage = "extracting"


class FilteringError(PipelineError):
    """Raised when filtering leaves too little content, even after recovery."""

    default_stage = "filtering"
