"""Tests for ingestkit_study.models -- page state invariants and request validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from ingestkit_study.models import (
    FILTERED_TYPES,
    DetectionMethod,
    ModelRequest,
    Page,
    PageClassification,
    PageMetadata,
    ProcessDocumentRequest,
    TaskType,
)

from tests.conftest import _make_metadata, _make_page


@pytest.mark.unit
class TestPage:
    def test_from_content_counts_characters(self):
        page = Page.from_content(2, "Mitochondria")
        assert page.page_number == 2
        assert page.character_count == 12

    def test_frozen(self):
        page = _make_page(1)
        with pytest.raises(ValidationError):
            page.content = "changed"

    def test_page_numbers_start_at_one(self):
        with pytest.raises(ValidationError):
            Page.from_content(0, "text")


@pytest.mark.unit
class TestPageMetadata:
    def test_filtered_types(self):
        assert PageClassification.CONTENT not in FILTERED_TYPES
        assert PageClassification.UNKNOWN not in FILTERED_TYPES
        assert len(FILTERED_TYPES) == 7

    @pytest.mark.parametrize("classification", list(PageClassification))
    def test_create_sets_filtered(self, classification: PageClassification):
        meta = _make_metadata(_make_page(1), classification, 0.9)
        assert meta.filtered == (classification in FILTERED_TYPES)
        assert meta.detection_method is DetectionMethod.HEURISTIC

    def test_inconsistent_filtered_rejected(self):
        with pytest.raises(ValidationError, match="inconsistent"):
            PageMetadata(
                page_number=1,
                classification=PageClassification.QUIZ,
                filtered=False,
                confidence=0.9,
                detection_method=DetectionMethod.HEURISTIC,
                character_count=10,
            )

    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            PageMetadata(
                page_number=1,
                classification=PageClassification.CONTENT,
                filtered=False,
                confidence=1.2,
                detection_method=DetectionMethod.AI,
                character_count=10,
            )

    def test_reclassify_keeps_filtered_in_sync(self):
        meta = _make_metadata(_make_page(1))

        meta.reclassify(
            PageClassification.REVIEW,
            confidence=0.9,
            detection_method=DetectionMethod.AI,
            keyword="ai-reason: Summary page.",
        )

        assert meta.filtered is True
        assert meta.confidence == 0.9
        assert meta.detection_method is DetectionMethod.AI
        assert meta.keywords == ["ai-reason: Summary page."]

        meta.reclassify(PageClassification.CONTENT)
        assert meta.filtered is False
        assert meta.confidence == 0.9

    def test_json_dump(self):
        dumped = _make_metadata(_make_page(1), PageClassification.TOC, 0.95).model_dump(mode="json")
        assert dumped["classification"] == "toc"
        assert dumped["detection_method"] == "heuristic"
        assert dumped["filtered"] is True


@pytest.mark.unit
class TestRequests:
    def test_model_request_text(self):
        request = ModelRequest(
            task=TaskType.PDF_EXTRACT,
            contents=[
                {"inline_data": {"mime_type": "application/pdf", "data": "AAAA"}},
                {"text": "first"},
                {"text": "second"},
            ],
        )
        assert request.text == "first\nsecond"

    def test_process_request_needs_a_source(self):
        with pytest.raises(ValidationError, match="file_path or pdf_base64"):
            ProcessDocumentRequest(document_id="doc-1", user_id="user-1")

    def test_process_request_with_path(self):
        request = ProcessDocumentRequest(document_id="doc-1", user_id="user-1", file_path="a.pdf")
        assert request.pdf_base64 is None
        assert request.batch_id is None
