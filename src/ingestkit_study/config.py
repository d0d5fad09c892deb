"""Configuration models for the ingestkit-study pipeline.

Provides ``StudyProcessorConfig`` with all tunable parameters and sensible
defaults, and the nested ``ModelRoutingConfig`` that decides which model
serves each task.  Both can be built from constructor kwargs, loaded from
a YAML or JSON file via ``from_file()``, or read from the process
environment via ``from_env()``.

Model-name precedence is expressed as an ordered list of named sources
(``task-env`` -> ``global-env`` -> ``default``) which the model router
walks in order; nothing else in the package reads the environment.
"""

from __future__ import annotations

import json
import os
import pathlib
from collections.abc import Mapping

from pydantic import BaseModel, Field

from ingestkit_study.models import ModelSource, TaskType

# ---------------------------------------------------------------------------
# Per-task constants
# ---------------------------------------------------------------------------

TASK_MODEL_ENV_VARS: dict[TaskType, str] = {
    TaskType.PDF_EXTRACT: "GEMINI_MODEL_PDF_EXTRACT",
    TaskType.PAGE_CLASSIFY: "GEMINI_MODEL_PAGE_CLASSIFY",
    TaskType.TOPIC_EXTRACT: "GEMINI_MODEL_TOPIC_EXTRACT",
    TaskType.QUIZ_GENERATE: "GEMINI_MODEL_QUIZ_GENERATE",
    TaskType.ANSWER_EVAL: "GEMINI_MODEL_ANSWER_EVAL",
}

GLOBAL_MODEL_ENV_VAR = "GEMINI_MODEL"
FALLBACK_MODELS_ENV_VAR = "GEMINI_FALLBACK_MODELS"
STRUCTURING_FLAG_ENV_VAR = "LLM_STRUCTURING_ENABLED"

DEFAULT_TASK_MODELS: dict[TaskType, str] = {
    TaskType.PDF_EXTRACT: "gemini-2.5-flash",
    TaskType.PAGE_CLASSIFY: "gemini-2.5-flash",
    TaskType.TOPIC_EXTRACT: "gemini-2.5-flash",
    TaskType.QUIZ_GENERATE: "gemini-3-flash-preview",
    TaskType.ANSWER_EVAL: "gemini-2.5-flash",
}

DEFAULT_TASK_TEMPERATURES: dict[TaskType, float] = {
    TaskType.PDF_EXTRACT: 0.1,
    TaskType.PAGE_CLASSIFY: 0.1,
    TaskType.TOPIC_EXTRACT: 0.1,
    TaskType.QUIZ_GENERATE: 0.3,
    TaskType.ANSWER_EVAL: 0.1,
}

DEFAULT_FALLBACK_MODELS: list[str] = ["gemini-2.5-flash"]


def _env_value(environ: Mapping[str, str], name: str) -> str | None:
    """Return a stripped env value, treating empty strings as unset."""
    value = environ.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


# ---------------------------------------------------------------------------
# Model Routing
# ---------------------------------------------------------------------------


class ModelRoutingConfig(BaseModel):
    """Explicit model routing configuration.

    ``task_models`` holds per-task overrides, ``global_model`` a single
    override for every task, and ``default_models`` the built-in per-task
    defaults.  Temperatures are fixed per task and never affected by the
    model override source.
    """

    task_models: dict[TaskType, str] = {}
    global_model: str | None = None
    default_models: dict[TaskType, str] = Field(
        default_factory=lambda: dict(DEFAULT_TASK_MODELS)
    )
    fallback_models: list[str] = Field(
        default_factory=lambda: list(DEFAULT_FALLBACK_MODELS)
    )
    temperatures: dict[TaskType, float] = Field(
        default_factory=lambda: dict(DEFAULT_TASK_TEMPERATURES)
    )

    def sources(self, task: TaskType) -> list[tuple[ModelSource, str | None]]:
        """Ordered named sources for *task*, highest priority first."""
        return [
            (ModelSource.TASK_ENV, self.task_models.get(task) or None),
            (ModelSource.GLOBAL_ENV, self.global_model or None),
            (ModelSource.DEFAULT, self.default_models.get(task)),
        ]

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ModelRoutingConfig:
        """Build a routing config from environment variables.

        Args:
            environ: Mapping to read from.  Defaults to ``os.environ``.

        Returns:
            A ``ModelRoutingConfig`` where unset or empty variables fall
            back to the built-in defaults.
        """
        env = os.environ if environ is None else environ

        task_models: dict[TaskType, str] = {}
        for task, var in TASK_MODEL_ENV_VARS.items():
            value = _env_value(env, var)
            if value is not None:
                task_models[task] = value

        fallback_raw = _env_value(env, FALLBACK_MODELS_ENV_VAR)
        if fallback_raw is None:
            fallback_models = list(DEFAULT_FALLBACK_MODELS)
        else:
            fallback_models = [m.strip() for m in fallback_raw.split(",") if m.strip()]

        return cls(
            task_models=task_models,
            global_model=_env_value(env, GLOBAL_MODEL_ENV_VAR),
            fallback_models=fallback_models,
        )


# ---------------------------------------------------------------------------
# Pipeline Configuration
# ---------------------------------------------------------------------------


class StudyProcessorConfig(BaseModel):
    """All tunable parameters with sensible defaults.

    Override individual values via constructor kwargs, load a complete
    config from a file with ``StudyProcessorConfig.from_file(path)``, or
    read routing and feature flags from the environment with
    ``StudyProcessorConfig.from_env()``.
    """

    # --- Identity ---
    parser_version: str = "ingestkit_study:1.0.0"

    # --- Security / Resource Limits ---
    max_file_size_mb: int = 50
    max_page_count: int = 500
    reject_javascript: bool = True

    # --- Extraction ---
    min_extracted_chars: int = 100

    # --- Classification ---
    classification_batch_size: int = 10
    classification_preview_chars: int = 800

    # --- Filtering / Recovery ---
    min_filtered_chars: int = 100
    short_document_pages: int = 5
    recovery_confidence_ceiling: float = 0.8
    recovery_min_chars: int = 200

    # --- Cleanup ---
    min_english_ratio: float = 0.7
    header_footer_min_pages: int = 3
    header_footer_page_ratio: float = 0.6
    duplicate_line_threshold: int = 3

    # --- Structuring / Topics ---
    llm_structuring_enabled: bool = False
    structuring_chunk_chars: int = 8000
    topic_prompt_chars: int = 15000

    # --- Telemetry ---
    telemetry_queue_size: int = 1000

    # --- Logging / PII Safety ---
    log_llm_prompts: bool = False
    redact_patterns: list[str] = []

    # --- Model Routing ---
    routing: ModelRoutingConfig = Field(default_factory=ModelRoutingConfig)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: object,
    ) -> StudyProcessorConfig:
        """Build a config whose routing and structuring flag come from the environment."""
        env = os.environ if environ is None else environ
        flag = (_env_value(env, STRUCTURING_FLAG_ENV_VAR) or "").lower()
        data: dict[str, object] = {
            "routing": ModelRoutingConfig.from_env(env),
            "llm_structuring_enabled": flag == "true",
        }
        data.update(overrides)
        return cls(**data)

    @classmethod
    def from_file(cls, path: str) -> StudyProcessorConfig:
        """Load configuration from a YAML or JSON file.

        File format is detected by extension: ``.yaml`` / ``.yml`` for YAML,
        ``.json`` for JSON.  Any keys present in the file override the
        corresponding defaults; keys not present retain their defaults.
        """
        file_path = pathlib.Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        suffix = file_path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            try:
                import yaml  # type: ignore[import-untyped]
            except ImportError as exc:
                raise ImportError(
                    "pyyaml is required to load YAML config files. "
                    "Install it with: pip install pyyaml"
                ) from exc
            with open(file_path) as fh:
                data = yaml.safe_load(fh)
        elif suffix == ".json":
            with open(file_path) as fh:
                data = json.load(fh)
        else:
            raise ValueError(
                f"Unsupported config file extension '{suffix}'. "
                "Use .yaml, .yml, or .json."
            )

        if data is None:
            data = {}

        return cls(**data)
