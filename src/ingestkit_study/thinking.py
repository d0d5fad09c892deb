"""Thinking-config adapter.

Maps an effort tier onto the reasoning control understood by each model
family: a named level for ``gemini-3*``, a token budget for
``gemini-2.5*``, nothing for anything else.
"""

from __future__ import annotations

from typing import Any

from ingestkit_study.models import EffortLevel

GEMINI_25_BUDGETS: dict[EffortLevel, int] = {
    EffortLevel.LOW: 1024,
    EffortLevel.MEDIUM: 4096,
    EffortLevel.HIGH: 8192,
}


def build_thinking_config(model_id: str, effort: EffortLevel) -> dict[str, Any] | None:
    """Return the ``thinking_config`` value for *model_id*, or ``None`` to omit it."""
    if model_id.startswith("gemini-3"):
        return {"thinking_level": effort.value}
    if model_id.startswith("gemini-2.5"):
        return {"thinking_budget": GEMINI_25_BUDGETS[effort]}
    return None
