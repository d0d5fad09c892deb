"""Effort classification for model calls.

Scores a document/task pair as a weighted sum of four text-quality
features plus a fixed per-task criticality, then buckets the score into
a ``low`` / ``medium`` / ``high`` effort tier.  The tier only controls the
reasoning budget of the downstream call; it never gates correctness.
"""

from __future__ import annotations

from ingestkit_study.models import (
    ConfidenceMetadata,
    EffortClassification,
    EffortFeatures,
    EffortLevel,
    TaskType,
)
from ingestkit_study.utils.text_metrics import (
    clip_unit,
    latin_ratio,
    noise_ratio,
    ocr_artifact_score,
    repeated_line_ratio,
)

TASK_CRITICALITY: dict[TaskType, float] = {
    TaskType.QUIZ_GENERATE: 0.8,
    TaskType.ANSWER_EVAL: 0.7,
    TaskType.TOPIC_EXTRACT: 0.4,
    TaskType.PDF_EXTRACT: 0.3,
    TaskType.PAGE_CLASSIFY: 0.2,
}

FEATURE_WEIGHTS: dict[str, float] = {
    "noise_ratio": 0.2,
    "duplicate_ratio": 0.15,
    "non_english_ratio": 0.15,
    "ocr_artifact_score": 0.2,
    "task_criticality": 0.3,
}

LOW_EFFORT_CEILING = 0.35
MEDIUM_EFFORT_CEILING = 0.65


def compute_text_features(text: str) -> ConfidenceMetadata:
    """Compute the four quality features directly from raw text."""
    return ConfidenceMetadata(
        noise_ratio=clip_unit(noise_ratio(text)),
        duplicate_ratio=clip_unit(repeated_line_ratio(text)),
        non_english_ratio=clip_unit(1.0 - latin_ratio(text)),
        ocr_artifact_score=clip_unit(ocr_artifact_score(text)),
    )


def effort_for_score(score: float) -> EffortLevel:
    if score < LOW_EFFORT_CEILING:
        return EffortLevel.LOW
    if score < MEDIUM_EFFORT_CEILING:
        return EffortLevel.MEDIUM
    return EffortLevel.HIGH


def classify_effort(
    raw_text: str,
    task: TaskType,
    metadata: ConfidenceMetadata | None = None,
) -> EffortClassification:
    """Classify the effort tier for one model call.

    Args:
        raw_text: Text the call will operate on.  Ignored when *metadata*
            is given.
        task: Task type; selects the criticality constant.
        metadata: Pre-computed document metadata from cleanup.

    Returns:
        The effort tier, the raw score, and the features that produced it.
    """
    quality = metadata if metadata is not None else compute_text_features(raw_text)
    features = EffortFeatures(
        noise_ratio=quality.noise_ratio,
        duplicate_ratio=quality.duplicate_ratio,
        non_english_ratio=quality.non_english_ratio,
        ocr_artifact_score=quality.ocr_artifact_score,
        task_criticality=TASK_CRITICALITY[task],
    )

    values = features.model_dump()
    score = sum(values[name] * weight for name, weight in FEATURE_WEIGHTS.items())

    return EffortClassification(effort=effort_for_score(score), score=score, features=features)
