"""ingestkit-study -- Study-PDF ingestion with model-routed extraction and page filtering."""

from ingestkit_study.cleanup import DocumentCleaner, clean_document
from ingestkit_study.config import ModelRoutingConfig, StudyProcessorConfig
from ingestkit_study.effort import classify_effort
from ingestkit_study.errors import (
    ErrorCode,
    ExtractionError,
    FilteringError,
    IngestError,
    PipelineError,
)
from ingestkit_study.extractor import PageExtractor, parse_page_content
from ingestkit_study.filtering import PageFilter
from ingestkit_study.heuristic_classifier import classify_all_pages, classify_page_heuristic
from ingestkit_study.llm_classifier import BatchPageClassifier
from ingestkit_study.model_router import ModelRouter
from ingestkit_study.models import (
    CleanupStats,
    ConfidenceMetadata,
    Confident,
    DetectionMethod,
    DocumentStatus,
    EffortClassification,
    EffortLevel,
    FilteringResult,
    FilteringStats,
    ModelRequest,
    NeedsReview,
    Page,
    PageClassification,
    PageMetadata,
    ProcessDocumentRequest,
    ProcessingResult,
    ProcessingStage,
    ProcessOptions,
    ProcessResponse,
    ResolvedModelConfig,
    TaskType,
    TelemetryRecord,
)
from ingestkit_study.orchestrator import CallOrchestrator
from ingestkit_study.router import (
    StudyDocumentRouter,
    create_default_router,
    handle_process_request,
)
from ingestkit_study.structuring import LLMStructurer
from ingestkit_study.telemetry import TelemetryLogger

__version__ = "1.0.0"

__all__ = [
    # Router
    "StudyDocumentRouter",
    "create_default_router",
    "handle_process_request",
    # Config
    "StudyProcessorConfig",
    "ModelRoutingConfig",
    # Models -- enums
    "PageClassification",
    "DetectionMethod",
    "TaskType",
    "EffortLevel",
    "DocumentStatus",
    "ProcessingStage",
    # Models -- data
    "Page",
    "PageMetadata",
    "Confident",
    "NeedsReview",
    "ConfidenceMetadata",
    "EffortClassification",
    "ResolvedModelConfig",
    "ModelRequest",
    "ProcessOptions",
    "ProcessResponse",
    "TelemetryRecord",
    "ProcessDocumentRequest",
    "ProcessingResult",
    # Stage results
    "CleanupStats",
    "FilteringStats",
    "FilteringResult",
    # Errors
    "ErrorCode",
    "IngestError",
    "PipelineError",
    "ExtractionError",
    "FilteringError",
    # Pipeline stages
    "PageExtractor",
    "parse_page_content",
    "classify_page_heuristic",
    "classify_all_pages",
    "BatchPageClassifier",
    "PageFilter",
    "DocumentCleaner",
    "clean_document",
    "LLMStructurer",
    # Model calls
    "classify_effort",
    "ModelRouter",
    "CallOrchestrator",
    "TelemetryLogger",
]
