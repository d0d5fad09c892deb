"""Shared fixtures for ingestkit-study tests.

Provides MockModelBackend, MockTelemetryBackend, MockDocumentStore and
MockFileStorage, factory helpers for pages and metadata, realistic page
texts, programmatic PDF fixtures, and common pytest fixtures used across
test modules.
"""

from __future__ import annotations

import base64
import json
from typing import Any

import fitz  # PyMuPDF
import pytest

from ingestkit_study.config import StudyProcessorConfig
from ingestkit_study.models import (
    ModelResponse,
    ModelUsage,
    Page,
    PageClassification,
    PageMetadata,
    TelemetryRecord,
)


# ---------------------------------------------------------------------------
# Realistic page texts
# ---------------------------------------------------------------------------
#
# Body paragraphs are free of every heuristic keyword so that each one
# classifies as ``content`` and is escalated for model review.

CONTENT_PARAGRAPHS: list[str] = [
    (
        "Photosynthesis converts light energy into chemical energy inside chloroplasts.\n"
        "The light dependent reactions occur in the thylakoid membranes and produce ATP and NADPH.\n"
        "The Calvin cycle then fixes carbon dioxide into sugars using that stored energy.\n"
        "Chlorophyll absorbs mostly red and blue light while reflecting green wavelengths."
    ),
    (
        "Cellular respiration releases the energy stored in glucose molecules.\n"
        "Glycolysis splits glucose into two pyruvate molecules in the cytoplasm.\n"
        "The citric acid cycle and oxidative phosphorylation take place in mitochondria.\n"
        "Most of the ATP made by a cell comes from the electron transport chain."
    ),
    (
        "Enzymes are proteins that lower the activation energy of chemical reactions.\n"
        "Each enzyme has an active site with a shape that fits specific substrates.\n"
        "Temperature and pH strongly influence how quickly an enzyme can work.\n"
        "Inhibitors bind to enzymes and slow down or block their catalytic activity."
    ),
    (
        "DNA replication copies the genetic information before a cell divides.\n"
        "Helicase unwinds the double helix and exposes both template strands.\n"
        "DNA polymerase adds nucleotides to the growing strand in one direction.\n"
        "The leading strand is built continuously while the lagging strand forms fragments."
    ),
    (
        "Osmosis moves water across a membrane from low to high solute concentration.\n"
        "Cells placed in pure water swell because water flows into the cytoplasm.\n"
        "Plant cells resist bursting thanks to their rigid cell walls.\n"
        "Animal cells lack walls and can lyse when too much water enters them."
    ),
]

COVER_TEXT = (
    "Introduction to Biology\n"
    "Department of Life Sciences\n"
    "University of Westbrook\n"
    "Instructor: Dr. Maria Chen\n"
    "Fall Semester"
)

QUIZ_TEXT = (
    "Chapter Quiz\n"
    "Answer the following questions about plant cells.\n"
    "Which organelle captures light for the cell?\n"
    "Which organelle releases energy from glucose?"
)


def _extraction_response(contents: list[str]) -> str:
    """Format page texts the way the extraction prompt asks the model to."""
    return "\n---PAGE_BREAK---\n".join(
        f"PAGE {number}:\n{content}" for number, content in enumerate(contents, start=1)
    )


def _classification_response(
    *entries: tuple[str, float] | dict[str, Any],
) -> str:
    """Build a JSON array as returned by the batch page classifier."""
    items: list[Any] = []
    for entry in entries:
        if isinstance(entry, dict):
            items.append(entry)
        else:
            classification, confidence = entry
            items.append(
                {
                    "classification": classification,
                    "confidence": confidence,
                    "reasoning": f"Looks like {classification}.",
                }
            )
    return json.dumps(items)


# ---------------------------------------------------------------------------
# Mock Model Backend
# ---------------------------------------------------------------------------


class ServiceError(Exception):
    """Model service error carrying an HTTP-like status code."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class MockModelBackend:
    """Mock generative model backend.

    Each call to ``generate_content()`` pops the next item from the
    response queue: a string becomes the response text, a
    ``ModelResponse`` is returned as-is, and an exception is raised.
    """

    def __init__(
        self,
        responses: list[str | ModelResponse | Exception] | None = None,
        usage: ModelUsage | None = None,
    ) -> None:
        self._responses: list[str | ModelResponse | Exception] = list(responses or [])
        self._usage = usage or ModelUsage(
            prompt_token_count=100,
            candidates_token_count=50,
            thoughts_token_count=10,
        )
        self.calls: list[dict[str, Any]] = []  # records all calls for assertion

    def generate_content(
        self,
        model: str,
        contents: list[dict[str, Any]],
        config: dict[str, Any],
    ) -> ModelResponse:
        self.calls.append({"model": model, "contents": contents, "config": config})
        if not self._responses:
            raise RuntimeError("MockModelBackend: no more responses configured")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, ModelResponse):
            return response
        return ModelResponse(text=response, usage=self._usage)

    # -- Convenience enqueue methods -----------------------------------------

    def enqueue_text(self, *texts: str) -> None:
        """Append successful text responses to the queue."""
        self._responses.extend(texts)

    def enqueue_error(self, error: Exception) -> None:
        """Make the call at this queue position raise *error*."""
        self._responses.append(error)

    def enqueue_unavailable(self) -> None:
        """Enqueue a retryable 503 error."""
        self._responses.append(ServiceError("503 Service Unavailable", code=503))

    # -- Assertion helpers ---------------------------------------------------

    @property
    def call_count(self) -> int:
        return len(self.calls)

    @property
    def models_called(self) -> list[str]:
        return [call["model"] for call in self.calls]

    def prompt_text(self, index: int) -> str:
        """Joined text parts of call *index*."""
        return "\n".join(part["text"] for part in self.calls[index]["contents"] if "text" in part)


# ---------------------------------------------------------------------------
# Mock Telemetry Backend
# ---------------------------------------------------------------------------


class MockTelemetryBackend:
    """Collects telemetry records in memory."""

    def __init__(self) -> None:
        self.records: list[TelemetryRecord] = []
        self._error: Exception | None = None

    def insert_record(self, record: TelemetryRecord) -> None:
        if self._error is not None:
            raise self._error
        self.records.append(record)

    # -- Error injection -----------------------------------------------------

    def fail_always(self, error: Exception | None = None) -> None:
        """Make every insert_record() call raise an error."""
        self._error = error or ConnectionError("MockTelemetryBackend simulated error")


# ---------------------------------------------------------------------------
# Mock Document Store
# ---------------------------------------------------------------------------


class MockDocumentStore:
    """Records status updates and batch increments."""

    def __init__(self) -> None:
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.batch_increments: list[tuple[str, bool]] = []

    def update_document(self, document_id: str, fields: dict[str, Any]) -> None:
        self.updates.append((document_id, dict(fields)))

    def increment_batch(self, batch_id: str, success: bool) -> None:
        self.batch_increments.append((batch_id, success))

    # -- Assertion helpers ---------------------------------------------------

    @property
    def stages(self) -> list[str | None]:
        """``processing_stage`` of every update that set one, in order."""
        return [fields["processing_stage"] for _, fields in self.updates if "processing_stage" in fields]

    @property
    def last(self) -> dict[str, Any]:
        return self.updates[-1][1]


# ---------------------------------------------------------------------------
# Mock File Storage
# ---------------------------------------------------------------------------


class MockFileStorage:
    """In-memory object storage keyed by path."""

    def __init__(self, files: dict[str, bytes] | None = None) -> None:
        self.files: dict[str, bytes] = dict(files or {})
        self.downloads: list[str] = []

    def download(self, path: str) -> bytes:
        self.downloads.append(path)
        if path not in self.files:
            raise FileNotFoundError(f"Object not found: {path}")
        return self.files[path]


# ---------------------------------------------------------------------------
# Factory Helpers
# ---------------------------------------------------------------------------


def _make_page(page_number: int = 1, content: str | None = None) -> Page:
    """Build a Page; defaults to a content paragraph."""
    if content is None:
        content = CONTENT_PARAGRAPHS[(page_number - 1) % len(CONTENT_PARAGRAPHS)]
    return Page.from_content(page_number, content)


def _make_pages(contents: list[str]) -> list[Page]:
    """Build pages numbered from 1 in the order of *contents*."""
    return [Page.from_content(number, text) for number, text in enumerate(contents, start=1)]


def _make_metadata(
    page: Page,
    classification: PageClassification = PageClassification.CONTENT,
    confidence: float = 0.6,
) -> PageMetadata:
    return PageMetadata.create(page, classification, confidence, [])


def _make_pdf_bytes(texts: list[str]) -> bytes:
    """Build an in-memory PDF with one page per text."""
    doc = fitz.open()
    for text in texts:
        page = doc.new_page()
        page.insert_text((72, 72), text, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


def _make_encrypted_pdf_bytes(password: str = "testpass123") -> bytes:
    """Password-protected PDF (AES-256 encryption)."""
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "This handout is encrypted.")
    data = doc.tobytes(
        encryption=fitz.PDF_ENCRYPT_AES_256,
        user_pw=password,
        owner_pw="ownerpass456",
        permissions=fitz.PDF_PERM_ACCESSIBILITY | fitz.PDF_PERM_PRINT,
    )
    doc.close()
    return data


def _make_javascript_pdf_bytes() -> bytes:
    """PDF whose catalog opens with a JavaScript action."""
    doc = fitz.open()
    doc.new_page()
    xref = doc.get_new_xref()
    doc.update_object(xref, "<< /Type /Action /S /JavaScript /JS (app.alert('hi');) >>")
    doc.xref_set_key(doc.pdf_catalog(), "OpenAction", f"{xref} 0 R")
    data = doc.tobytes()
    doc.close()
    return data


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def study_config() -> StudyProcessorConfig:
    return StudyProcessorConfig()


@pytest.fixture()
def mock_model() -> MockModelBackend:
    return MockModelBackend()


@pytest.fixture()
def mock_telemetry() -> MockTelemetryBackend:
    return MockTelemetryBackend()


@pytest.fixture()
def mock_document_store() -> MockDocumentStore:
    return MockDocumentStore()


@pytest.fixture()
def sample_pdf_bytes() -> bytes:
    """Five-page PDF; the model mock decides what text is 'extracted'."""
    return _make_pdf_bytes([COVER_TEXT.split("\n")[0]] + [p.split("\n")[0] for p in CONTENT_PARAGRAPHS[:4]])


@pytest.fixture()
def sample_pdf_base64(sample_pdf_bytes: bytes) -> str:
    return base64.b64encode(sample_pdf_bytes).decode("ascii")
