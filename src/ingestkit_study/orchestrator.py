"""Call orchestrator: the single choke point for every model call.

For one logical request the orchestrator classifies effort, obtains the
fallback model chain, and tries each model once in order.  Every attempt
logs exactly one telemetry record.  A failed attempt moves on to the next
model only when the error is retryable (rate limit or server-side) and
more models remain; otherwise the backend's own exception is re-raised
unchanged.  There is no sleep or backoff between attempts.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from ingestkit_study.effort import classify_effort
from ingestkit_study.errors import ErrorCode
from ingestkit_study.model_router import ModelRouter
from ingestkit_study.models import (
    EffortLevel,
    ModelRequest,
    ProcessOptions,
    ProcessResponse,
    TelemetryStatus,
    TokenUsage,
)
from ingestkit_study.protocols import ModelBackend
from ingestkit_study.telemetry import TelemetryLogger
from ingestkit_study.thinking import build_thinking_config

logger = logging.getLogger("ingestkit_study")

RETRYABLE_STATUS_CODES = frozenset({429, 500, 503})

RETRYABLE_MESSAGE_MARKERS: tuple[str, ...] = (
    "429",
    "rate limit",
    "resource exhausted",
    "resource_exhausted",
    "500",
    "503",
    "internal server error",
    "service unavailable",
    "overloaded",
)


def is_retryable_error(error: BaseException) -> bool:
    """Return True for rate-limit and server-side failures."""
    for attr in ("code", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool) and value in RETRYABLE_STATUS_CODES:
            return True
    message = str(error).lower()
    return any(marker in message for marker in RETRYABLE_MESSAGE_MARKERS)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class CallOrchestrator:
    """Route, configure, meter and retry every model call.

    Args:
        backend: The generative model service.
        router: Resolves models and temperatures per task.
        telemetry: Receives one record per attempt.  Optional.
    """

    def __init__(
        self,
        backend: ModelBackend,
        router: ModelRouter | None = None,
        telemetry: TelemetryLogger | None = None,
    ) -> None:
        self._backend = backend
        self._router = router or ModelRouter()
        self._telemetry = telemetry or TelemetryLogger(None)

    @property
    def router(self) -> ModelRouter:
        return self._router

    def process_document(
        self,
        request: ModelRequest,
        options: ProcessOptions | None = None,
    ) -> ProcessResponse:
        """Run *request* through the fallback chain.

        Args:
            request: Task, content parts and attribution identifiers.
            options: Optional forced effort, pre-computed confidence
                metadata, or temperature override.

        Returns:
            The first successful response, with token usage and the
            1-based number of attempts it took.

        Raises:
            Exception: The backend's exception from the last attempt, when
                it is not retryable or no models remain.
        """
        options = options or ProcessOptions()

        if options.effort is not None:
            effort = options.effort
        else:
            effort = classify_effort(
                request.text, request.task, options.confidence_metadata
            ).effort

        models = self._router.get_fallback_models(request.task)
        resolved = self._router.resolve_model(request.task)
        temperature = options.temperature if options.temperature is not None else resolved.temperature

        for index, model_id in enumerate(models):
            attempt = index + 1
            config = self._build_config(
                model_id,
                effort,
                temperature,
                request.response_mime_type,
                request.system_instruction,
            )
            start = time.monotonic()

            try:
                response = self._backend.generate_content(model_id, request.contents, config)
            except Exception as exc:
                latency_ms = _elapsed_ms(start)
                self._telemetry.log(
                    task=request.task,
                    model_id=model_id,
                    effort=effort,
                    latency_ms=latency_ms,
                    status=TelemetryStatus.ERROR,
                    error_message=str(exc) or type(exc).__name__,
                    attempt_number=attempt,
                    document_id=request.document_id,
                    quiz_id=request.quiz_id,
                    user_id=request.user_id,
                )
                if not is_retryable_error(exc) or attempt == len(models):
                    raise
                logger.warning(
                    "ingestkit_study | code=%s | task=%s | model=%s | attempt=%d | next=%s | detail=%s",
                    ErrorCode.W_LLM_FALLBACK.value,
                    request.task.value,
                    model_id,
                    attempt,
                    models[index + 1],
                    exc,
                )
                continue

            latency_ms = _elapsed_ms(start)
            usage = response.usage
            self._telemetry.log(
                task=request.task,
                model_id=model_id,
                effort=effort,
                latency_ms=latency_ms,
                status=TelemetryStatus.SUCCESS,
                input_tokens=usage.prompt_token_count,
                output_tokens=usage.candidates_token_count,
                thinking_tokens=usage.thoughts_token_count,
                attempt_number=attempt,
                document_id=request.document_id,
                quiz_id=request.quiz_id,
                user_id=request.user_id,
            )
            return ProcessResponse(
                text=response.text or "",
                usage=TokenUsage(
                    input_tokens=usage.prompt_token_count,
                    output_tokens=usage.candidates_token_count,
                    thinking_tokens=usage.thoughts_token_count,
                ),
                model_id=model_id,
                effort=effort,
                latency_ms=latency_ms,
                attempts=attempt,
            )

        # Unreachable: the chain always holds at least the primary model.
        raise RuntimeError(f"No models configured for task {request.task.value}")

    @staticmethod
    def _build_config(
        model_id: str,
        effort: EffortLevel,
        temperature: float,
        response_mime_type: str | None,
        system_instruction: str | None,
    ) -> dict[str, Any]:
        config: dict[str, Any] = {"temperature": temperature}
        if response_mime_type:
            config["response_mime_type"] = response_mime_type
        if system_instruction:
            config["system_instruction"] = system_instruction
        thinking_config = build_thinking_config(model_id, effort)
        if thinking_config is not None:
            config["thinking_config"] = thinking_config
        return config
