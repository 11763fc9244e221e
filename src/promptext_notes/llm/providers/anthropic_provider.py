"""Anthropic Messages API provider."""

from __future__ import annotations

from typing import Any, Dict

from ..pricing import estimate_cost
from ..types import EmptyCompletionError, LLMRequest, LLMResult
from .base import HTTPProvider

DEFAULT_ANTHROPIC_VERSION = "2023-06-01"

# Short names accepted in config; anything else is sent as-is.
MODEL_ALIASES = {
    "haiku": "claude-haiku-4-5",
    "sonnet": "claude-sonnet-4-5",
    "opus": "claude-opus-4-1",
}


def normalize_model(model: str) -> str:
    return MODEL_ALIASES.get(model, model)


class AnthropicProvider(HTTPProvider):
    name = "anthropic"
    label = "Anthropic"
    default_base_url = "https://api.anthropic.com/v1"
    path = "/messages"

    def _headers(self) -> Dict[str, str]:
        return {
            "content-type": "application/json",
            "x-api-key": self._api_key,
            "anthropic-version": self.config.custom.get("anthropic_version", DEFAULT_ANTHROPIC_VERSION),
        }

    def _build_payload(self, request: LLMRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": normalize_model(request.model),
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt
        return payload

    def _parse_response(self, data: Dict[str, Any], request: LLMRequest) -> LLMResult:
        content = data.get("content", [])
        text = ""
        if content and isinstance(content, list):
            text = "".join(
                item.get("text", "")
                for item in content
                if isinstance(item, dict) and item.get("type") == "text"
            )
        if not text.strip():
            raise EmptyCompletionError(provider=self.name)

        usage = data.get("usage") or {}
        tokens_in = int(usage.get("input_tokens", 0) or 0)
        tokens_out = int(usage.get("output_tokens", 0) or 0)
        model = data.get("model") or normalize_model(request.model)

        return LLMResult(
            text=text,
            provider=self.name,
            model=model,
            tokens_used=tokens_in + tokens_out,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            cost_usd=estimate_cost(self.name, model, tokens_in, tokens_out),
            metadata={
                "id": data.get("id"),
                "stop_reason": data.get("stop_reason"),
                "input_tokens": tokens_in,
                "output_tokens": tokens_out,
            },
        )
