"""Backend protocols for the ingestkit-study pipeline.

Defines the structural-subtyping interfaces for every external
collaborator: the generative model service, the telemetry table, the
document store, and file storage.  All protocols are
``@runtime_checkable`` so callers can optionally verify conformance with
``isinstance`` checks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ingestkit_study.models import ModelResponse, TelemetryRecord


@runtime_checkable
class ModelBackend(Protocol):
    """Interface for generative model backends (e.g. Gemini)."""

    def generate_content(
        self,
        model: str,
        contents: list[dict[str, Any]],
        config: dict[str, Any],
    ) -> ModelResponse:
        """Issue one generation call and return its text and usage block.

        Implementations raise on failure; the exception message (and any
        integer ``code`` / ``status_code`` attribute) is used to decide
        whether the next model in the fallback chain is tried.
        """
        ...


@runtime_checkable
class TelemetryBackend(Protocol):
    """Interface for the append-only model-call telemetry table."""

    def insert_record(self, record: TelemetryRecord) -> None:
        """Persist one telemetry row."""
        ...


@runtime_checkable
class DocumentStore(Protocol):
    """Interface for the document-status store (e.g. a relational table)."""

    def update_document(self, document_id: str, fields: dict[str, Any]) -> None:
        """Apply a partial update to one document row."""
        ...

    def increment_batch(self, batch_id: str, success: bool) -> None:
        """Count one finished document against its upload batch."""
        ...


@runtime_checkable
class FileStorageBackend(Protocol):
    """Interface for object storage holding uploaded PDFs."""

    def download(self, path: str) -> bytes:
        """Return the raw bytes stored at *path*."""
        ...
