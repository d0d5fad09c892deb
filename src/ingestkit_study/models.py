"""Pydantic data models, enumerations, and stage artifacts for ingestkit-study.

This module defines the data model layer referenced throughout the
pipeline: the page taxonomy and routing enums, the immutable ``Page``
produced by extraction, the per-page ``PageMetadata`` mutated by the
classification and filtering stages, the ephemeral effort/routing models
used around every model call, the append-only ``TelemetryRecord``, and
the typed stage results returned to callers.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ingestkit_study.errors import IngestError


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class PageClassification(str, Enum):
    """Content taxonomy for a single page.

    ``CONTENT`` is the default and fallback value.
    """

    CONTENT = "content"
    COVER = "cover"
    TOC = "toc"
    OUTLINE = "outline"
    OBJECTIVES = "objectives"
    REVIEW = "review"
    QUIZ = "quiz"
    BLANK = "blank"
    UNKNOWN = "unknown"


class DetectionMethod(str, Enum):
    """Which classifier produced the current page verdict."""

    HEURISTIC = "heuristic"
    AI = "ai"


class TaskType(str, Enum):
    """Kind of model call, used for routing, effort, and telemetry."""

    PDF_EXTRACT = "pdf_extract"
    PAGE_CLASSIFY = "page_classify"
    TOPIC_EXTRACT = "topic_extract"
    QUIZ_GENERATE = "quiz_generate"
    ANSWER_EVAL = "answer_eval"


class EffortLevel(str, Enum):
    """Reasoning budget tier granted to a model call."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ModelSource(str, Enum):
    """Configuration source a resolved model name came from."""

    TASK_ENV = "task-env"
    GLOBAL_ENV = "global-env"
    DEFAULT = "default"


class TelemetryStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class DocumentStatus(str, Enum):
    """Document lifecycle status written to the document store."""

    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class ProcessingStage(str, Enum):
    """Stage markers written while a document is ``processing``."""

    EXTRACTING = "extracting"
    FILTERING = "filtering"
    ANALYZING = "analyzing"
    FINALIZING = "finalizing"


# Classifications removed from the educational text.
FILTERED_TYPES: frozenset[PageClassification] = frozenset(
    {
        PageClassification.COVER,
        PageClassification.TOC,
        PageClassification.OUTLINE,
        PageClassification.OBJECTIVES,
        PageClassification.REVIEW,
        PageClassification.QUIZ,
        PageClassification.BLANK,
    }
)


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


class Page(BaseModel):
    """Text of one extracted page.  Immutable once created."""

    model_config = ConfigDict(frozen=True)

    page_number: int = Field(ge=1)
    content: str
    character_count: int

    @classmethod
    def from_content(cls, page_number: int, content: str) -> Page:
        return cls(
            page_number=page_number,
            content=content,
            character_count=len(content),
        )


class PageMetadata(BaseModel):
    """Classification state of one page.

    ``filtered`` always mirrors ``classification in FILTERED_TYPES``.  The
    two fields are only ever changed together through :meth:`reclassify`.
    """

    page_number: int = Field(ge=1)
    classification: PageClassification
    filtered: bool
    confidence: float = Field(ge=0.0, le=1.0)
    detection_method: DetectionMethod
    character_count: int
    keywords: list[str] = []

    @model_validator(mode="after")
    def _check_filtered_matches_classification(self) -> PageMetadata:
        if self.filtered != (self.classification in FILTERED_TYPES):
            raise ValueError(
                f"filtered={self.filtered} is inconsistent with "
                f"classification={self.classification.value}"
            )
        return self

    @classmethod
    def create(
        cls,
        page: Page,
        classification: PageClassification,
        confidence: float,
        keywords: list[str],
    ) -> PageMetadata:
        return cls(
            page_number=page.page_number,
            classification=classification,
            filtered=classification in FILTERED_TYPES,
            confidence=confidence,
            detection_method=DetectionMethod.HEURISTIC,
            character_count=page.character_count,
            keywords=list(keywords),
        )

    def reclassify(
        self,
        classification: PageClassification,
        *,
        confidence: float | None = None,
        detection_method: DetectionMethod | None = None,
        keyword: str | None = None,
    ) -> None:
        """Change the classification in place, keeping ``filtered`` in sync."""
        self.classification = classification
        self.filtered = classification in FILTERED_TYPES
        if confidence is not None:
            self.confidence = confidence
        if detection_method is not None:
            self.detection_method = detection_method
        if keyword is not None:
            self.keywords = [*self.keywords, keyword]


# ---------------------------------------------------------------------------
# Heuristic Classification
# ---------------------------------------------------------------------------


class HeuristicVerdict(BaseModel):
    """Verdict of one heuristic detector (or the content default)."""

    classification: PageClassification
    confidence: float
    matched_keywords: list[str] = []


class Confident(BaseModel):
    """Heuristic verdict that can be trusted without escalation."""

    kind: Literal["confident"] = "confident"
    verdict: HeuristicVerdict

    @property
    def requires_ai(self) -> bool:
        return False


class NeedsReview(BaseModel):
    """Heuristic verdict that should be verified by the model classifier."""

    kind: Literal["needs_review"] = "needs_review"
    verdict: HeuristicVerdict
    reason: str

    @property
    def requires_ai(self) -> bool:
        return True


HeuristicResult = Annotated[Union[Confident, NeedsReview], Field(discriminator="kind")]


# ---------------------------------------------------------------------------
# Effort / Routing
# ---------------------------------------------------------------------------


class ConfidenceMetadata(BaseModel):
    """Four-feature noise/quality summary of a document, each in [0, 1]."""

    noise_ratio: float = Field(ge=0.0, le=1.0)
    duplicate_ratio: float = Field(ge=0.0, le=1.0)
    non_english_ratio: float = Field(ge=0.0, le=1.0)
    ocr_artifact_score: float = Field(ge=0.0, le=1.0)


class EffortFeatures(BaseModel):
    noise_ratio: float
    duplicate_ratio: float
    non_english_ratio: float
    ocr_artifact_score: float
    task_criticality: float


class EffortClassification(BaseModel):
    """Ephemeral effort decision for one model call."""

    effort: EffortLevel
    score: float
    features: EffortFeatures | None = None


class ResolvedModelConfig(BaseModel):
    model_id: str
    temperature: float
    source: ModelSource


# ---------------------------------------------------------------------------
# Model Calls
# ---------------------------------------------------------------------------


class ModelUsage(BaseModel):
    """Token usage block as reported by the model service."""

    prompt_token_count: int = 0
    candidates_token_count: int = 0
    thoughts_token_count: int = 0


class ModelResponse(BaseModel):
    """Response contract of a :class:`~ingestkit_study.protocols.ModelBackend`."""

    text: str = ""
    usage: ModelUsage = ModelUsage()


class ModelRequest(BaseModel):
    """One logical request routed through the call orchestrator.

    ``contents`` is a list of parts, each either ``{"text": str}`` or
    ``{"inline_data": {"mime_type": str, "data": <base64 str>}}``.
    """

    task: TaskType
    contents: list[dict[str, Any]]
    system_instruction: str | None = None
    response_mime_type: str | None = None
    document_id: str | None = None
    quiz_id: str | None = None
    user_id: str | None = None

    @property
    def text(self) -> str:
        """Concatenated text parts, used for inline effort scoring."""
        return "\n".join(
            part.get("text", "") for part in self.contents if isinstance(part.get("text"), str)
        )


class ProcessOptions(BaseModel):
    effort: EffortLevel | None = None
    confidence_metadata: ConfidenceMetadata | None = None
    temperature: float | None = None


class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    thinking_tokens: int = 0


class ProcessResponse(BaseModel):
    text: str
    usage: TokenUsage
    model_id: str
    effort: EffortLevel
    latency_ms: int
    attempts: int = 1


class TelemetryRecord(BaseModel):
    """One row per model call attempt.  Append-only."""

    task_type: TaskType
    model_id: str
    effort: EffortLevel
    input_tokens: int = 0
    output_tokens: int = 0
    thinking_tokens: int = 0
    estimated_cost_usd: float | None = None
    latency_ms: int
    status: TelemetryStatus
    error_message: str | None = None
    attempt_number: int = 1
    pricing_version: str
    document_id: str | None = None
    quiz_id: str | None = None
    user_id: str | None = None


# ---------------------------------------------------------------------------
# Stage Artifacts
# ---------------------------------------------------------------------------


class ExtractionResult(BaseModel):
    """Typed output of the page extraction stage."""

    pages: list[Page]
    total_pages: int
    extraction_method: str = "gemini-multimodal"
    used_fallback_parse: bool = False


class CleanedPage(BaseModel):
    page_number: int
    content: str
    original_char_count: int
    cleaned_char_count: int


class CleanupStats(BaseModel):
    total_pages: int
    headers_detected: list[str] = []
    footers_detected: list[str] = []
    duplicate_lines_removed: int = 0
    boilerplate_lines_removed: int = 0
    pages_filtered_by_language: int = 0


class DocumentCleanupResult(BaseModel):
    """Typed output of the document cleanup stage."""

    pages: list[CleanedPage]
    confidence_metadata: ConfidenceMetadata
    stats: CleanupStats


class FilteringStats(BaseModel):
    total_pages: int
    filtered_pages: int
    kept_pages: int
    by_classification: dict[str, int]
    ai_classifications_used: int = 0
    recovered_pages: list[int] = []


class FilteringResult(BaseModel):
    """Typed output of classification + filtering."""

    filtered_text: str
    page_metadata: list[PageMetadata]
    stats: FilteringStats
    warnings: list[IngestError] = []


# ---------------------------------------------------------------------------
# Request / Result Models
# ---------------------------------------------------------------------------


class ProcessDocumentRequest(BaseModel):
    """Inbound request to process one stored or inline PDF."""

    document_id: str
    user_id: str
    file_path: str | None = None
    pdf_base64: str | None = None
    batch_id: str | None = None

    @model_validator(mode="after")
    def _require_source(self) -> ProcessDocumentRequest:
        if not self.file_path and not self.pdf_base64:
            raise ValueError("one of file_path or pdf_base64 is required")
        return self


class ProcessingResult(BaseModel):
    """Final result returned after processing a document."""

    document_id: str
    extracted_text: str
    cleaned_data: str
    topics: list[str]
    page_count: int
    original_page_count: int
    filtered_page_count: int
    page_metadata: list[PageMetadata]
    filtering_stats: FilteringStats
    cleanup_stats: CleanupStats
    confidence_metadata: ConfidenceMetadata
    warnings: list[IngestError] = []
    processing_time_seconds: float
