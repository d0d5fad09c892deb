"""Tests for ingestkit_study.heuristic_classifier -- the rule-based detector cascade."""

from __future__ import annotations

import pytest

from ingestkit_study import heuristic_classifier
from ingestkit_study.heuristic_classifier import (
    classify_all_pages,
    classify_page_heuristic,
)
from ingestkit_study.models import (
    FILTERED_TYPES,
    Confident,
    NeedsReview,
    PageClassification,
)

from tests.conftest import (
    CONTENT_PARAGRAPHS,
    COVER_TEXT,
    QUIZ_TEXT,
    _make_page,
    _make_pages,
)


def _classify(content: str, page_number: int = 2, total_pages: int = 5):
    return classify_page_heuristic(_make_page(page_number, content), page_number, total_pages)


# ---------------------------------------------------------------------------
# Blank
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestBlank:
    def test_empty_page(self):
        result = _classify("")
        assert isinstance(result, Confident)
        assert result.verdict.classification is PageClassification.BLANK
        assert result.verdict.confidence == 1.0
        assert result.verdict.matched_keywords == ["empty"]

    def test_minimal_content(self):
        result = _classify("ok " * 18)
        assert result.verdict.classification is PageClassification.BLANK
        assert result.verdict.confidence == 0.95
        assert result.verdict.matched_keywords == ["minimal-content"]


# ---------------------------------------------------------------------------
# Cover
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestCover:
    def test_short_first_page_with_keywords(self):
        result = _classify(COVER_TEXT, page_number=1)
        assert isinstance(result, Confident)
        assert result.verdict.classification is PageClassification.COVER
        assert result.verdict.confidence == 0.9
        assert result.verdict.matched_keywords == ["instructor:", "department of", "university"]

    def test_long_first_page_with_three_keywords(self):
        content = COVER_TEXT + "\n\n" + CONTENT_PARAGRAPHS[0]
        result = _classify(content, page_number=1)
        assert result.verdict.classification is PageClassification.COVER
        assert result.verdict.confidence == 0.85

    def test_unstructured_single_keyword_needs_review(self):
        content = "Welcome to the college of natural sciences. " + (
            "Plants and animals share many cellular structures and processes. " * 5
        )
        result = _classify(content, page_number=1)
        assert isinstance(result, NeedsReview)
        assert result.verdict.classification is PageClassification.COVER
        assert result.verdict.confidence == 0.75

    def test_cover_only_checked_on_first_page(self):
        result = _classify(COVER_TEXT, page_number=2)
        assert result.verdict.classification is PageClassification.CONTENT


# ---------------------------------------------------------------------------
# Table of contents
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestTableOfContents:
    def test_keyword_with_page_numbers(self):
        content = (
            "Table of Contents\nCells ..... 3\nEnzymes ..... 7\n"
            "Genetics ..... 12\nEvolution ..... 20"
        )
        result = _classify(content)
        assert isinstance(result, Confident)
        assert result.verdict.classification is PageClassification.TOC
        assert result.verdict.confidence == 0.95
        assert "page-numbers" in result.verdict.matched_keywords

    def test_dot_leaders_without_keyword(self):
        content = "\n".join(
            f"{name} ....... {page}"
            for name, page in [
                ("Cells", 3),
                ("Membranes", 9),
                ("Enzymes", 14),
                ("Respiration", 21),
                ("Photosynthesis", 28),
                ("Genetics", 35),
            ]
        )
        result = _classify(content, page_number=3)
        assert result.verdict.classification is PageClassification.TOC
        assert result.verdict.confidence == 0.8
        assert result.verdict.matched_keywords == ["dot-leaders"]


# ---------------------------------------------------------------------------
# Quiz
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestQuiz:
    def test_two_keywords(self):
        result = _classify(QUIZ_TEXT)
        assert isinstance(result, Confident)
        assert result.verdict.classification is PageClassification.QUIZ
        assert result.verdict.confidence == 0.95

    def test_numbered_items_with_options(self):
        content = (
            "1. Which organelle makes ATP?\na) nucleus b) ribosome c) mitochondria d) vacuole\n"
            "2. Which organelle stores water?\na) nucleus b) ribosome c) mitochondria d) vacuole\n"
            "3. Which organelle builds proteins?\na) nucleus b) ribosome c) mitochondria d) vacuole"
        )
        result = _classify(content)
        assert result.verdict.classification is PageClassification.QUIZ
        assert result.verdict.confidence == 0.85

    def test_single_keyword_with_numbered_items_needs_review(self):
        content = (
            "Practice test\n1. Define osmosis.\n2. Define diffusion.\n"
            "3. Name two organelles.\n4. Describe mitosis.\n5. Explain meiosis."
        )
        result = _classify(content)
        assert isinstance(result, NeedsReview)
        assert result.verdict.classification is PageClassification.QUIZ
        assert result.verdict.confidence == 0.7


# ---------------------------------------------------------------------------
# Objectives
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestObjectives:
    def test_two_keywords(self):
        content = "Learning Objectives\nBy the end of this chapter you will know how cells divide."
        result = _classify(content)
        assert result.verdict.classification is PageClassification.OBJECTIVES
        assert result.verdict.confidence == 0.9

    def test_keyword_with_action_verbs(self):
        content = (
            "Objectives\n- Understand how enzymes work\n- Explain the role of ATP\n"
            "- Compare plant and animal cells"
        )
        result = _classify(content)
        assert isinstance(result, Confident)
        assert result.verdict.classification is PageClassification.OBJECTIVES
        assert result.verdict.confidence == 0.85
        assert "action-verbs" in result.verdict.matched_keywords

    def test_hybrid_page_needs_review_as_content(self):
        content = "Objectives\n" + "\n".join(CONTENT_PARAGRAPHS[:3])
        result = _classify(content)
        assert isinstance(result, NeedsReview)
        assert result.verdict.classification is PageClassification.CONTENT
        assert result.verdict.confidence == 0.7
        assert result.verdict.matched_keywords == ["hybrid-objectives-content"]


# ---------------------------------------------------------------------------
# Outline
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestOutline:
    def test_keyword(self):
        content = "Course Schedule\nWeek one covers cells.\nWeek two covers energy and enzymes."
        result = _classify(content)
        assert isinstance(result, Confident)
        assert result.verdict.classification is PageClassification.OUTLINE
        assert result.verdict.confidence == 0.85

    def test_hierarchical_numbering_needs_review(self):
        content = (
            "1. Cell structure\n2. Energy flow\n3. Enzyme activity\n"
            "4. Genetics basics\n5. Evolution theory"
        )
        result = _classify(content)
        assert isinstance(result, NeedsReview)
        assert result.verdict.classification is PageClassification.OUTLINE
        assert result.verdict.confidence == 0.75


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestReview:
    def test_two_keywords(self):
        content = "Summary\nKey takeaways: membranes control what enters and leaves the cell."
        result = _classify(content)
        assert isinstance(result, Confident)
        assert result.verdict.classification is PageClassification.REVIEW
        assert result.verdict.confidence == 0.85

    def test_single_keyword_near_end(self):
        content = "Recap: the cell membrane controls what enters and leaves the cell."
        result = _classify(content, page_number=5, total_pages=5)
        assert isinstance(result, NeedsReview)
        assert result.verdict.confidence == 0.75
        assert "near-end" in result.verdict.matched_keywords

    def test_single_keyword_mid_document(self):
        content = "Recap: the cell membrane controls what enters and leaves the cell."
        result = _classify(content, page_number=2, total_pages=5)
        assert isinstance(result, NeedsReview)
        assert result.verdict.classification is PageClassification.REVIEW
        assert result.verdict.confidence == 0.6


# ---------------------------------------------------------------------------
# Cascade behaviour
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestCascade:
    def test_default_content_needs_review(self):
        result = _classify(CONTENT_PARAGRAPHS[0])
        assert isinstance(result, NeedsReview)
        assert result.requires_ai is True
        assert result.verdict.classification is PageClassification.CONTENT
        assert result.verdict.confidence == 0.6
        assert result.verdict.matched_keywords == []

    def test_confident_does_not_require_ai(self):
        assert _classify("").requires_ai is False

    def test_raising_detector_is_skipped(self, monkeypatch: pytest.MonkeyPatch):
        def boom(content: str):
            raise RuntimeError("detector bug")

        monkeypatch.setattr(heuristic_classifier, "detect_quiz", boom)
        result = _classify(QUIZ_TEXT)
        assert result.verdict.classification is PageClassification.CONTENT

    def test_blank_wins_over_keywords(self):
        result = _classify("quiz exam")
        assert result.verdict.classification is PageClassification.BLANK


@pytest.mark.unit
class TestClassifyAllPages:
    def test_metadata_and_uncertain(self):
        pages = _make_pages([COVER_TEXT, CONTENT_PARAGRAPHS[0], QUIZ_TEXT, CONTENT_PARAGRAPHS[1]])
        metadata, uncertain = classify_all_pages(pages)

        assert [m.classification for m in metadata] == [
            PageClassification.COVER,
            PageClassification.CONTENT,
            PageClassification.QUIZ,
            PageClassification.CONTENT,
        ]
        assert [index for index, _, _ in uncertain] == [1, 3]
        assert all(isinstance(result, NeedsReview) for _, _, result in uncertain)

    def test_filtered_flag_matches_classification(self):
        pages = _make_pages([COVER_TEXT, "", QUIZ_TEXT, *CONTENT_PARAGRAPHS])
        metadata, _ = classify_all_pages(pages)
        assert all(m.filtered == (m.classification in FILTERED_TYPES) for m in metadata)

    def test_metadata_carries_page_facts(self):
        pages = _make_pages([CONTENT_PARAGRAPHS[0]])
        metadata, _ = classify_all_pages(pages)
        assert metadata[0].page_number == 1
        assert metadata[0].character_count == len(CONTENT_PARAGRAPHS[0])
        assert metadata[0].detection_method.value == "heuristic"
