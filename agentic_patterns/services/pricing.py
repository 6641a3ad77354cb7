# =============================================================================
# Provider Pricing Registry — Cost Estimation for Model Calls
# =============================================================================
#
# Maps (provider_type, model_name) → per-token costs in USD. Used by the
# progress indicator wrapper to log an estimated cost for every call.
#
# DESIGN DECISION: Costs stored as USD per TOKEN (not per 1M tokens), so
# estimate_cost() is a plain multiply-add.
#
# DESIGN DECISION: estimate_cost() returns None for unknown models
# rather than 0.0. Unknown cost != zero cost.
#
# Update this dict when prices change.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelPricing:
    """Per-token costs for a model."""

    input_cost_per_token: float    # USD per input token
    output_cost_per_token: float   # USD per output token
    provider_label: str            # Human-readable provider name


# Keys are (provider_type, model_name) tuples. provider_type matches the
# prefix in provider_id strings: "anthropic" or "openai_compatible".
PRICING_REGISTRY: dict[tuple[str, str], ModelPricing] = {
    # --- Anthropic ---
    ("anthropic", "claude-haiku-4-5"): ModelPricing(
        1.00 / 1_000_000, 5.00 / 1_000_000, "Anthropic",
    ),
    ("anthropic", "claude-sonnet-4-5"): ModelPricing(
        3.00 / 1_000_000, 15.00 / 1_000_000, "Anthropic",
    ),
    ("anthropic", "claude-opus-4-1"): ModelPricing(
        15.00 / 1_000_000, 75.00 / 1_000_000, "Anthropic",
    ),

    # --- OpenAI ---
    ("openai_compatible", "gpt-5-nano"): ModelPricing(
        0.05 / 1_000_000, 0.40 / 1_000_000, "OpenAI",
    ),
    ("openai_compatible", "gpt-5-mini"): ModelPricing(
        0.25 / 1_000_000, 2.00 / 1_000_000, "OpenAI",
    ),
    ("openai_compatible", "gpt-5"): ModelPricing(
        1.25 / 1_000_000, 10.00 / 1_000_000, "OpenAI",
    ),
    ("openai_compatible", "gpt-4o-mini"): ModelPricing(
        0.15 / 1_000_000, 0.60 / 1_000_000, "OpenAI",
    ),

    # --- DeepSeek ---
    ("openai_compatible", "deepseek-chat"): ModelPricing(
        0.14 / 1_000_000, 0.28 / 1_000_000, "DeepSeek",
    ),
}

# Providers report dated snapshots ("gpt-5-nano-2025-08-07"); fall back to
# the longest registered prefix.
_SORTED_KEYS = sorted(PRICING_REGISTRY, key=lambda k: len(k[1]), reverse=True)


def get_pricing(provider_type: str, model: str) -> ModelPricing | None:
    """Look up pricing for a provider+model, tolerating dated snapshots."""
    pricing = PRICING_REGISTRY.get((provider_type, model))
    if pricing is not None:
        return pricing
    for key_type, key_model in _SORTED_KEYS:
        if key_type == provider_type and model.startswith(key_model + "-"):
            return PRICING_REGISTRY[(key_type, key_model)]
    return None


def estimate_cost(
    provider_type: str,
    model: str,
    input_tokens: int,
    output_tokens: int,
) -> float | None:
    """
    Calculate estimated cost in USD for a completion.

    Returns None if the model is not in the registry (unknown pricing).
    """
    pricing = get_pricing(provider_type, model)
    if pricing is None:
        return None
    return (
        pricing.input_cost_per_token * input_tokens
        + pricing.output_cost_per_token * output_tokens
    )
