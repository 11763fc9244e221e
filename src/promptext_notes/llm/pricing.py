"""Static per-model pricing used for advisory cost estimates.

Prices are USD per million tokens. Lookups match on a substring of the model
name, first match wins, so more specific names come first.
"""

from __future__ import annotations

from typing import Dict, Tuple

PriceRow = Tuple[str, float, float]

ANTHROPIC_PRICES: Tuple[PriceRow, ...] = (
    ("haiku", 0.80, 4.00),
    ("sonnet", 3.00, 15.00),
    ("opus", 15.00, 75.00),
)

OPENAI_PRICES: Tuple[PriceRow, ...] = (
    ("gpt-4o-mini", 0.150, 0.600),
    ("gpt-4o", 2.50, 10.00),
    ("gpt-4-turbo", 10.00, 30.00),
    ("gpt-3.5-turbo", 0.50, 1.50),
)

PRICING: Dict[str, Tuple[PriceRow, ...]] = {
    "anthropic": ANTHROPIC_PRICES,
    "openai": OPENAI_PRICES,
    # OpenRouter ids look like "openai/gpt-4o-mini" or "anthropic/claude-3.5-haiku".
    "openrouter": OPENAI_PRICES + ANTHROPIC_PRICES,
}

# Unmatched models are priced at the cheapest tier of their vendor.
BASELINE: Dict[str, Tuple[float, float]] = {
    "anthropic": (0.80, 4.00),
    "openai": (0.150, 0.600),
}


def lookup_price(provider: str, model: str) -> Tuple[float, float]:
    """Returns (input, output) price per million tokens; (0, 0) when free or unknown."""
    name = (model or "").lower()
    for needle, input_price, output_price in PRICING.get(provider, ()):
        if needle in name:
            return input_price, output_price
    return BASELINE.get(provider, (0.0, 0.0))


def estimate_cost(provider: str, model: str, tokens_in: int, tokens_out: int) -> float:
    input_price, output_price = lookup_price(provider, model)
    return (tokens_in * input_price / 1_000_000) + (tokens_out * output_price / 1_000_000)
