"""Batch model classifier for pages the heuristic cascade could not settle.

Pages flagged :class:`NeedsReview` are sent to the model in fixed-size
batches.  Each batch prompt carries a position label and a content
preview per page and asks for a same-length, same-order JSON array of
``{classification, confidence, reasoning}`` objects.

Merge rule: a model result replaces the page's metadata only when its
confidence is strictly greater than the current one, so the heuristic
verdict wins ties and a page's confidence never decreases.  A batch that
fails (call error, unparseable JSON, non-array payload) keeps its
heuristic verdicts and processing continues with the next batch.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, field_validator

from ingestkit_study.config import StudyProcessorConfig
from ingestkit_study.errors import ErrorCode, IngestError
from ingestkit_study.models import (
    DetectionMethod,
    EffortLevel,
    ModelRequest,
    NeedsReview,
    Page,
    PageClassification,
    PageMetadata,
    ProcessOptions,
    TaskType,
)
from ingestkit_study.orchestrator import CallOrchestrator
from ingestkit_study.prompts import build_page_classification_prompt

logger = logging.getLogger("ingestkit_study")

_CODE_FENCE_RE = re.compile(r"```json\n?|\n?```")

_FALLBACK_CONFIDENCE = 0.5
_NO_REASONING = "No reasoning provided"


def parse_json_response(text: str | None, default: str = "[]") -> Any:
    """Parse a JSON model response, tolerating markdown code fences.

    Raises:
        json.JSONDecodeError: If the payload is not valid JSON.
    """
    cleaned = _CODE_FENCE_RE.sub("", text or default).strip()
    return json.loads(cleaned or default)


# ---------------------------------------------------------------------------
# LLM Response Schema
# ---------------------------------------------------------------------------


class PageClassificationEntry(BaseModel):
    """One element of the model's JSON array, coerced rather than rejected.

    Unknown classifications become ``content``; confidences that are not
    numbers or fall outside ``[0, 1]`` become 0.5.
    """

    classification: PageClassification = PageClassification.CONTENT
    confidence: float = _FALLBACK_CONFIDENCE
    reasoning: str = _NO_REASONING

    @field_validator("classification", mode="before")
    @classmethod
    def _coerce_classification(cls, value: Any) -> PageClassification:
        try:
            return PageClassification(value)
        except ValueError:
            return PageClassification.CONTENT

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, value: Any) -> float:
        if isinstance(value, bool):
            return _FALLBACK_CONFIDENCE
        try:
            number = float(value)
        except (TypeError, ValueError):
            return _FALLBACK_CONFIDENCE
        if number != number or number < 0.0 or number > 1.0:
            return _FALLBACK_CONFIDENCE
        return number

    @field_validator("reasoning", mode="before")
    @classmethod
    def _coerce_reasoning(cls, value: Any) -> str:
        if value is None or value == "":
            return _NO_REASONING
        return str(value)

    @classmethod
    def from_raw(cls, raw: Any) -> PageClassificationEntry:
        if not isinstance(raw, dict):
            return cls()
        fields = {key: raw[key] for key in ("classification", "confidence", "reasoning") if key in raw}
        return cls(**fields)


# ---------------------------------------------------------------------------
# Batch Classifier
# ---------------------------------------------------------------------------


class BatchPageClassifier:
    """Escalate uncertain pages to the model in batches and merge the results.

    Args:
        orchestrator: Call orchestrator used for every batch call.
        config: Supplies batch size, preview length and prompt logging.
    """

    def __init__(
        self,
        orchestrator: CallOrchestrator,
        config: StudyProcessorConfig | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._config = config or StudyProcessorConfig()

    # -- public API ----------------------------------------------------------

    def classify(
        self,
        uncertain: Sequence[tuple[int, Page, NeedsReview]],
        page_metadata: list[PageMetadata],
        document_id: str | None = None,
        user_id: str | None = None,
    ) -> tuple[int, list[IngestError]]:
        """Classify *uncertain* pages batch by batch, mutating *page_metadata*.

        Args:
            uncertain: ``(index, page, result)`` tuples from the heuristic
                pass; ``index`` points into *page_metadata*.
            page_metadata: Metadata for every page of the document.
            document_id: Attribution for telemetry.
            user_id: Attribution for telemetry.

        Returns:
            The number of pages whose metadata was overwritten, and one
            warning per failed batch.
        """
        batch_size = max(1, self._config.classification_batch_size)
        total_pages = len(page_metadata)
        merged = 0
        warnings: list[IngestError] = []

        for start in range(0, len(uncertain), batch_size):
            batch = list(uncertain[start : start + batch_size])
            try:
                results = self._classify_batch(batch, total_pages, document_id, user_id)
            except Exception as exc:
                logger.warning(
                    "ingestkit_study | document=%s | code=%s | batch_start=%d | detail=%s",
                    document_id,
                    ErrorCode.W_CLASSIFY_BATCH_FAILED.value,
                    start,
                    exc,
                )
                warnings.append(
                    IngestError(
                        code=ErrorCode.W_CLASSIFY_BATCH_FAILED,
                        message=f"Batch classification failed, keeping heuristic verdicts: {exc}",
                        stage="filtering",
                        recoverable=True,
                    )
                )
                continue

            merged += self._merge(batch, results, page_metadata)

        return merged, warnings

    # -- internal helpers ----------------------------------------------------

    def _classify_batch(
        self,
        batch: list[tuple[int, Page, NeedsReview]],
        total_pages: int,
        document_id: str | None,
        user_id: str | None,
    ) -> list[PageClassificationEntry]:
        prompt = build_page_classification_prompt(
            [page for _, page, _ in batch],
            total_pages,
            preview_chars=self._config.classification_preview_chars,
        )
        if self._config.log_llm_prompts:
            logger.debug("LLM prompt:\n%s", self._redact(prompt))

        response = self._orchestrator.process_document(
            ModelRequest(
                task=TaskType.PAGE_CLASSIFY,
                contents=[{"text": prompt}],
                response_mime_type="application/json",
                document_id=document_id,
                user_id=user_id,
            ),
            ProcessOptions(effort=EffortLevel.LOW),
        )

        if self._config.log_llm_prompts:
            logger.debug("LLM response: %s", self._redact(response.text))

        try:
            parsed = parse_json_response(response.text)
        except json.JSONDecodeError as exc:
            raise ValueError(
                f"{ErrorCode.E_LLM_MALFORMED_JSON.value}: model returned unparseable JSON: {exc}"
            ) from exc
        if not isinstance(parsed, list):
            raise ValueError(
                f"{ErrorCode.E_LLM_SCHEMA_INVALID.value}: expected a JSON array, "
                f"got {type(parsed).__name__}"
            )
        return [PageClassificationEntry.from_raw(item) for item in parsed[: len(batch)]]

    @staticmethod
    def _merge(
        batch: list[tuple[int, Page, NeedsReview]],
        results: list[PageClassificationEntry],
        page_metadata: list[PageMetadata],
    ) -> int:
        merged = 0
        for (index, _page, _review), entry in zip(batch, results):
            metadata = page_metadata[index]
            if entry.confidence <= metadata.confidence:
                continue
            metadata.reclassify(
                entry.classification,
                confidence=entry.confidence,
                detection_method=DetectionMethod.AI,
                keyword=f"ai-reason: {entry.reasoning}",
            )
            merged += 1
        return merged

    def _redact(self, text: str) -> str:
        result = text
        for pattern in self._config.redact_patterns:
            result = re.sub(pattern, "[REDACTED]", result)
        return result
