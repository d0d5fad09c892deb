"""Model routing: which model and temperature serve a task.

The router walks the ordered named sources of a
:class:`~ingestkit_study.config.ModelRoutingConfig` and returns the first
configured model together with the fixed per-task temperature.  It also
builds the fallback chain tried by the call orchestrator.
"""

from __future__ import annotations

from ingestkit_study.config import DEFAULT_TASK_MODELS, ModelRoutingConfig
from ingestkit_study.models import ModelSource, ResolvedModelConfig, TaskType

_DEFAULT_TEMPERATURE = 0.2


class ModelRouter:
    """Resolve models for tasks from an injected routing config."""

    def __init__(self, config: ModelRoutingConfig | None = None) -> None:
        self._config = config or ModelRoutingConfig()

    @property
    def config(self) -> ModelRoutingConfig:
        return self._config

    def resolve_model(self, task: TaskType) -> ResolvedModelConfig:
        """Return the model for *task* from the highest-priority configured source."""
        temperature = self._config.temperatures.get(task, _DEFAULT_TEMPERATURE)
        for source, model_id in self._config.sources(task):
            if model_id:
                return ResolvedModelConfig(
                    model_id=model_id,
                    temperature=temperature,
                    source=source,
                )
        return ResolvedModelConfig(
            model_id=DEFAULT_TASK_MODELS[task],
            temperature=temperature,
            source=ModelSource.DEFAULT,
        )

    def get_fallback_models(self, task: TaskType) -> list[str]:
        """Return ``[primary, *fallbacks]`` with the primary removed from the fallbacks."""
        primary = self.resolve_model(task).model_id
        return [primary] + [m for m in self._config.fallback_models if m != primary]
