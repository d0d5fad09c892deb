"""StudyDocumentRouter -- orchestrator and public API for the ingestkit-study pipeline.

Routes one uploaded study PDF through the full ingestion pipeline:

1. ``extracting``: obtain bytes, pre-flight scan via
   :class:`PDFSecurityScanner`, page extraction via :class:`PageExtractor`.
2. ``filtering``: document cleanup via :class:`DocumentCleaner`, optional
   restructuring via :class:`LLMStructurer`, then classification and
   filtering via :class:`PageFilter`.
3. ``analyzing``: topic extraction over the filtered text.
4. ``finalizing``: the final ``ready`` write and batch accounting.

Every stage transition is written to the :class:`DocumentStore` before the
stage's work starts, so a failure is attributed to the stage that was
active when it happened.  On failure the document is marked ``failed``,
the batch failure counter is bumped, and the exception is re-raised.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from ingestkit_study.cleanup import DocumentCleaner, assemble_cleaned_text
from ingestkit_study.config import StudyProcessorConfig
from ingestkit_study.errors import ErrorCode, ExtractionError, IngestError, PipelineError
from ingestkit_study.extractor import PageExtractor, validate_page_extraction
from ingestkit_study.filtering import PageFilter
from ingestkit_study.llm_classifier import BatchPageClassifier, parse_json_response
from ingestkit_study.model_router import ModelRouter
from ingestkit_study.models import (
    CleanedPage,
    DocumentStatus,
    EffortLevel,
    ModelRequest,
    ProcessDocumentRequest,
    ProcessingResult,
    ProcessingStage,
    ProcessOptions,
    TaskType,
)
from ingestkit_study.orchestrator import CallOrchestrator
from ingestkit_study.prompts import build_topic_prompt
from ingestkit_study.protocols import DocumentStore, FileStorageBackend, ModelBackend
from ingestkit_study.security import PDFSecurityScanner
from ingestkit_study.structuring import LLMStructurer
from ingestkit_study.telemetry import TelemetryLogger
from ingestkit_study.utils.text_metrics import latin_ratio

logger = logging.getLogger("ingestkit_study")

DEFAULT_TOPICS: list[str] = ["General"]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Topic extraction
# ---------------------------------------------------------------------------


def extract_topics(
    orchestrator: CallOrchestrator,
    filtered_text: str,
    document_id: str | None = None,
    user_id: str | None = None,
    max_chars: int = 15000,
) -> tuple[list[str], IngestError | None]:
    """Ask the model for the main topics of *filtered_text*.

    Returns:
        The topic list and, when the default ``["General"]`` had to be
        used (call failure, unparseable, empty or non-list result), a
        ``W_TOPICS_DEFAULTED`` warning.
    """
    try:
        response = orchestrator.process_document(
            ModelRequest(
                task=TaskType.TOPIC_EXTRACT,
                contents=[{"text": build_topic_prompt(filtered_text, max_chars)}],
                response_mime_type="application/json",
                document_id=document_id,
                user_id=user_id,
            ),
            ProcessOptions(effort=EffortLevel.LOW),
        )
        parsed = parse_json_response(response.text)
    except Exception as exc:
        logger.warning(
            "ingestkit_study | document=%s | stage=analyzing | code=%s | detail=%s",
            document_id,
            ErrorCode.W_TOPICS_DEFAULTED.value,
            exc,
        )
        return list(DEFAULT_TOPICS), IngestError(
            code=ErrorCode.W_TOPICS_DEFAULTED,
            message=f"Topic extraction failed: {exc}",
            stage=ProcessingStage.ANALYZING.value,
            recoverable=True,
        )

    if isinstance(parsed, list):
        topics = [str(topic).strip() for topic in parsed if str(topic).strip()]
        if topics:
            return topics, None

    return list(DEFAULT_TOPICS), IngestError(
        code=ErrorCode.W_TOPICS_DEFAULTED,
        message="Topic extraction returned no usable topics",
        stage=ProcessingStage.ANALYZING.value,
        recoverable=True,
    )


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


class _StageTracker:
    """Remember the active stage of one run and write each transition."""

    def __init__(self, document_store: DocumentStore, document_id: str) -> None:
        self._document_store = document_store
        self._document_id = document_id
        self.stage = ProcessingStage.EXTRACTING

    def enter(self, stage: ProcessingStage) -> None:
        self.stage = stage
        self._document_store.update_document(
            self._document_id,
            {"status": DocumentStatus.PROCESSING.value, "processing_stage": stage.value},
        )


class StudyDocumentRouter:
    """Top-level orchestrator for the ingestkit-study pipeline.

    Builds all internal components (orchestrator, security scanner,
    extractor, cleaner, structurer, batch classifier and page filter)
    from the injected backends and config, then exposes :meth:`process`
    as the public API.

    Parameters
    ----------
    model:
        Backend for every generative model call (e.g. Gemini).
    document_store:
        Receives status transitions and the final document row.
    file_storage:
        Source of PDF bytes when a request carries a ``file_path``.
        Optional when every request carries ``pdf_base64``.
    config:
        Pipeline configuration. Uses defaults when *None*.
    telemetry:
        Telemetry sink shared by every model call.  A discarding logger
        is used when *None*.
    """

    def __init__(
        self,
        model: ModelBackend,
        document_store: DocumentStore,
        file_storage: FileStorageBackend | None = None,
        config: StudyProcessorConfig | None = None,
        telemetry: TelemetryLogger | None = None,
    ) -> None:
        self._config = config or StudyProcessorConfig()
        self._document_store = document_store
        self._file_storage = file_storage

        # Model calls
        self._telemetry = telemetry or TelemetryLogger(None)
        self._orchestrator = CallOrchestrator(
            model,
            router=ModelRouter(self._config.routing),
            telemetry=self._telemetry,
        )

        # Stages
        self._security_scanner = PDFSecurityScanner(self._config)
        self._extractor = PageExtractor(self._orchestrator)
        self._cleaner = DocumentCleaner(self._config)
        self._structurer = LLMStructurer(self._orchestrator, self._config)
        self._page_filter = PageFilter(
            self._config,
            batch_classifier=BatchPageClassifier(self._orchestrator, self._config),
        )

    @property
    def orchestrator(self) -> CallOrchestrator:
        return self._orchestrator

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process(self, request: ProcessDocumentRequest) -> ProcessingResult:
        """Process one document end to end.

        Parameters
        ----------
        request:
            Document identity and PDF source.

        Returns
        -------
        ProcessingResult
            Filtered text, cleaned text, topics, per-page metadata and
            stage statistics.

        Raises
        ------
        Exception
            Whatever failed, after the document has been marked ``failed``
            with the active stage.
        """
        overall_start = time.monotonic()
        document_id = request.document_id
        tracker = _StageTracker(self._document_store, document_id)

        try:
            self._update(
                document_id,
                {
                    "status": DocumentStatus.PROCESSING.value,
                    "processing_stage": tracker.stage.value,
                    "processing_started_at": _now_iso(),
                    "error_message": None,
                    "error_stage": None,
                },
            )
            result = self._run(request, overall_start, tracker)
        except Exception as exc:
            self._fail(request, tracker.stage, exc)
            raise

        if request.batch_id:
            self._document_store.increment_batch(request.batch_id, True)

        logger.info(
            "ingestkit_study | document=%s | status=ready | total=%d | kept=%d | ai=%d | elapsed=%.2fs",
            document_id,
            result.original_page_count,
            result.page_count,
            result.filtering_stats.ai_classifications_used,
            result.processing_time_seconds,
        )
        return result

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _run(
        self,
        request: ProcessDocumentRequest,
        overall_start: float,
        tracker: _StageTracker,
    ) -> ProcessingResult:
        config = self._config
        document_id = request.document_id
        user_id = request.user_id
        warnings: list[IngestError] = []

        # -- extracting --------------------------------------------------
        pdf_bytes = self._load_bytes(request)

        _, scan_errors = self._security_scanner.scan(pdf_bytes, document_id)
        fatal = [err for err in scan_errors if err.code.value.startswith("E_")]
        if fatal:
            raise ExtractionError(fatal[0].code, fatal[0].message)

        extraction = self._extractor.extract_bytes(pdf_bytes, document_id=document_id, user_id=user_id)
        validate_page_extraction(extraction, config.min_extracted_chars)
        pages = extraction.pages

        # -- filtering ---------------------------------------------------
        tracker.enter(ProcessingStage.FILTERING)
        cleanup = self._cleaner.clean(pages)
        if cleanup.stats.pages_filtered_by_language == 0 and self._language_gate_bypassed(
            cleanup.pages
        ):
            warnings.append(
                IngestError(
                    code=ErrorCode.W_LANGUAGE_GATE_BYPASSED,
                    message="No page passed the language gate; all pages kept",
                    stage=ProcessingStage.FILTERING.value,
                    recoverable=True,
                )
            )

        cleaned_data = self._structure(cleanup.pages, document_id, user_id, warnings)

        filtering = self._page_filter.run(pages, document_id=document_id, user_id=user_id)
        warnings.extend(filtering.warnings)

        # -- analyzing ---------------------------------------------------
        tracker.enter(ProcessingStage.ANALYZING)
        topics, topic_warning = extract_topics(
            self._orchestrator,
            filtering.filtered_text,
            document_id=document_id,
            user_id=user_id,
            max_chars=config.topic_prompt_chars,
        )
        if topic_warning is not None:
            warnings.append(topic_warning)

        # -- finalizing --------------------------------------------------
        tracker.enter(ProcessingStage.FINALIZING)
        stats = filtering.stats
        self._update(
            document_id,
            {
                "status": DocumentStatus.READY.value,
                "processing_stage": None,
                "extracted_text": filtering.filtered_text,
                "cleaned_data": cleaned_data,
                "topics": topics,
                "page_count": stats.kept_pages,
                "original_page_count": stats.total_pages,
                "filtered_page_count": stats.kept_pages,
                "page_metadata": [meta.model_dump(mode="json") for meta in filtering.page_metadata],
                "processing_completed_at": _now_iso(),
            },
        )

        return ProcessingResult(
            document_id=document_id,
            extracted_text=filtering.filtered_text,
            cleaned_data=cleaned_data,
            topics=topics,
            page_count=stats.kept_pages,
            original_page_count=stats.total_pages,
            filtered_page_count=stats.kept_pages,
            page_metadata=filtering.page_metadata,
            filtering_stats=stats,
            cleanup_stats=cleanup.stats,
            confidence_metadata=cleanup.confidence_metadata,
            warnings=warnings,
            processing_time_seconds=time.monotonic() - overall_start,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _load_bytes(self, request: ProcessDocumentRequest) -> bytes:
        if request.pdf_base64:
            try:
                return base64.b64decode(request.pdf_base64, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ExtractionError(
                    ErrorCode.E_SECURITY_INVALID_PDF,
                    f"pdf_base64 is not valid base64: {exc}",
                ) from exc

        if self._file_storage is None:
            raise ExtractionError(
                ErrorCode.E_STORAGE_DOWNLOAD,
                "No file storage backend configured for file_path requests",
            )
        try:
            data = self._file_storage.download(request.file_path or "")
        except Exception as exc:
            raise ExtractionError(
                ErrorCode.E_STORAGE_DOWNLOAD,
                f"Failed to download file: {exc}",
            ) from exc
        if not data:
            raise ExtractionError(ErrorCode.E_STORAGE_DOWNLOAD, "Failed to download file: No data")
        return data

    def _structure(
        self,
        pages: list[CleanedPage],
        document_id: str,
        user_id: str,
        warnings: list[IngestError],
    ) -> str:
        try:
            return self._structurer.structure(pages, document_id=document_id, user_id=user_id)
        except Exception as exc:
            logger.warning(
                "ingestkit_study | document=%s | stage=filtering | code=%s | detail=%s",
                document_id,
                ErrorCode.W_STRUCTURING_FAILED.value,
                exc,
            )
            warnings.append(
                IngestError(
                    code=ErrorCode.W_STRUCTURING_FAILED,
                    message=f"Structuring failed, using local assembly: {exc}",
                    stage=ProcessingStage.FILTERING.value,
                    recoverable=True,
                )
            )
            return assemble_cleaned_text(pages)

    def _language_gate_bypassed(self, pages: list[CleanedPage]) -> bool:
        return bool(pages) and all(
            latin_ratio(page.content) < self._config.min_english_ratio for page in pages
        )

    def _update(self, document_id: str, fields: dict[str, Any]) -> None:
        self._document_store.update_document(document_id, fields)

    def _fail(self, request: ProcessDocumentRequest, stage: ProcessingStage, exc: Exception) -> None:
        if isinstance(exc, PipelineError):
            code = exc.code.value
        else:
            code = ErrorCode.E_LLM_CALL_FAILED.value
        logger.error(
            "ingestkit_study | document=%s | stage=%s | code=%s | detail=%s",
            request.document_id,
            stage.value,
            code,
            exc,
        )
        self._update(
            request.document_id,
            {
                "status": DocumentStatus.FAILED.value,
                "error_message": str(exc) or type(exc).__name__,
                "error_stage": stage.value,
            },
        )
        if request.batch_id:
            self._document_store.increment_batch(request.batch_id, False)


# ---------------------------------------------------------------------------
# Function-runtime adapter
# ---------------------------------------------------------------------------

_PAYLOAD_KEYS = {
    "documentId": "document_id",
    "userId": "user_id",
    "filePath": "file_path",
    "pdfBase64": "pdf_base64",
    "batchId": "batch_id",
}


def handle_process_request(
    router: StudyDocumentRouter,
    payload: dict[str, Any] | str | bytes,
) -> tuple[int, dict[str, Any]]:
    """Run one request from a serverless function runtime.

    Accepts camelCase (``documentId``) or snake_case keys, either as a
    dict or as a raw JSON body.

    Returns:
        ``(status_code, body)``: 400 for an invalid payload, 500 with
        ``{"error": message}`` when processing failed, otherwise 200 with
        the page statistics.
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError:
            return 400, {"error": "Invalid JSON"}
    if not isinstance(payload, dict):
        return 400, {"error": "Invalid JSON"}

    fields = {_PAYLOAD_KEYS.get(key, key): value for key, value in payload.items()}
    try:
        request = ProcessDocumentRequest(**fields)
    except ValidationError as exc:
        return 400, {"error": f"Invalid payload: {exc.errors()[0]['msg']}"}

    try:
        result = router.process(request)
    except Exception as exc:
        return 500, {"error": str(exc) or "Unknown error"}

    stats = result.filtering_stats
    return 200, {
        "success": True,
        "stats": {
            "totalPages": stats.total_pages,
            "keptPages": stats.kept_pages,
            "filteredPages": stats.filtered_pages,
            "aiClassificationsUsed": stats.ai_classifications_used,
        },
    }


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_default_router(**overrides: Any) -> StudyDocumentRouter:
    """Create a StudyDocumentRouter with the default Gemini backend.

    All defaults can be overridden via keyword arguments:

    - ``model``: ModelBackend (default: ``create_gemini_backend()``)
    - ``document_store``: DocumentStore (required)
    - ``file_storage``: FileStorageBackend (default: None)
    - ``telemetry_backend``: TelemetryBackend (default: None, records discarded)
    - ``config``: StudyProcessorConfig (default: ``StudyProcessorConfig.from_env()``)

    Any other keyword arguments are passed to ``StudyProcessorConfig.from_env``.

    Returns
    -------
    StudyDocumentRouter
        A fully-configured router ready for ``process()`` calls.

    Raises
    ------
    ValueError
        If no model is given and ``GEMINI_API_KEY`` is not set, or no
        document store is given.
    """
    from ingestkit_study.backends import create_gemini_backend

    # Separate known router kwargs from config overrides
    router_keys = {"model", "document_store", "file_storage", "telemetry_backend", "config"}
    router_kwargs = {k: v for k, v in overrides.items() if k in router_keys}
    config_kwargs = {k: v for k, v in overrides.items() if k not in router_keys}

    config = router_kwargs.pop("config", None)
    if config is None:
        config = StudyProcessorConfig.from_env(**config_kwargs)

    document_store = router_kwargs.pop("document_store", None)
    if document_store is None:
        raise ValueError("A document_store is required to create a StudyDocumentRouter")

    model = router_kwargs.pop("model", None)
    if model is None:
        model = create_gemini_backend()

    telemetry = TelemetryLogger(
        router_kwargs.pop("telemetry_backend", None),
        queue_size=config.telemetry_queue_size,
    )

    return StudyDocumentRouter(
        model=model,
        document_store=document_store,
        file_storage=router_kwargs.pop("file_storage", None),
        config=config,
        telemetry=telemetry,
    )
