"""Static model price table and cost estimation."""

from __future__ import annotations

from pydantic import BaseModel

PRICING_VERSION = "v1"


class ModelPricing(BaseModel):
    """USD price per one million tokens."""

    input_per_1m: float
    output_per_1m: float


MODEL_PRICING: dict[str, ModelPricing] = {
    "gemini-2.5-flash-lite-preview-09-2025": ModelPricing(input_per_1m=0.1, output_per_1m=0.4),
    "gemini-2.5-flash": ModelPricing(input_per_1m=0.3, output_per_1m=2.5),
    "gemini-3-flash-preview": ModelPricing(input_per_1m=0.5, output_per_1m=3.0),
}


def estimate_cost(model_id: str, input_tokens: int, output_tokens: int) -> float | None:
    """Estimate the USD cost of one call.  Unknown models return ``None``."""
    pricing = MODEL_PRICING.get(model_id)
    if pricing is None:
        return None
    input_cost = (input_tokens / 1_000_000) * pricing.input_per_1m
    output_cost = (output_tokens / 1_000_000) * pricing.output_per_1m
    return input_cost + output_cost
