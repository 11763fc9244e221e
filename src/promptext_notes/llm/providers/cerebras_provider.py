"""Cerebras inference provider (OpenAI-compatible)."""

from __future__ import annotations

from .openai_provider import OpenAIProvider


class CerebrasProvider(OpenAIProvider):
    name = "cerebras"
    label = "Cerebras"
    default_base_url = "https://api.cerebras.ai/v1"

    def _estimate_cost(self, model: str, tokens_in: int, tokens_out: int) -> float:
        # Free tier.
        return 0.0
