"""OpenRouter provider (OpenAI-compatible, with optional attribution headers)."""

from __future__ import annotations

from typing import Dict

from .openai_provider import OpenAIProvider


class OpenRouterProvider(OpenAIProvider):
    name = "openrouter"
    label = "OpenRouter"
    default_base_url = "https://openrouter.ai/api/v1"

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        # Used by openrouter.ai for app rankings.
        referer = self.config.custom.get("http_referer")
        if referer:
            headers["HTTP-Referer"] = referer
        title = self.config.custom.get("x_title")
        if title:
            headers["X-Title"] = title
        return headers
