"""Groq provider (OpenAI-compatible)."""

from __future__ import annotations

from .openai_provider import OpenAIProvider


class GroqProvider(OpenAIProvider):
    name = "groq"
    label = "Groq"
    default_base_url = "https://api.groq.com/openai/v1"

    def _estimate_cost(self, model: str, tokens_in: int, tokens_out: int) -> float:
        return 0.0
