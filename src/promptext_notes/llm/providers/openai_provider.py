"""OpenAI Chat Completions provider.

Cerebras, Groq and OpenRouter speak the same wire format and subclass this.
"""

from __future__ import annotations

from typing import Any, Dict, List

from ..pricing import estimate_cost
from ..types import EmptyCompletionError, LLMRequest, LLMResult
from .base import HTTPProvider, first_choice_text


class OpenAIProvider(HTTPProvider):
    name = "openai"
    label = "OpenAI"
    default_base_url = "https://api.openai.com/v1"
    path = "/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

    def _build_payload(self, request: LLMRequest) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})
        return {
            "model": request.model,
            "messages": messages,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
        }

    def _estimate_cost(self, model: str, tokens_in: int, tokens_out: int) -> float:
        return estimate_cost(self.name, model, tokens_in, tokens_out)

    def _parse_response(self, data: Dict[str, Any], request: LLMRequest) -> LLMResult:
        text, choice = first_choice_text(data)
        if not text.strip():
            raise EmptyCompletionError(provider=self.name)

        usage = data.get("usage") or {}
        tokens_in = int(usage.get("prompt_tokens", 0) or 0)
        tokens_out = int(usage.get("completion_tokens", 0) or 0)
        total = int(usage.get("total_tokens", 0) or 0) or tokens_in + tokens_out
        model = data.get("model") or request.model

        return LLMResult(
            text=text,
            provider=self.name,
            model=model,
            tokens_used=total,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            cost_usd=self._estimate_cost(model, tokens_in, tokens_out),
            metadata={
                "id": data.get("id"),
                "finish_reason": choice.get("finish_reason"),
                "prompt_tokens": tokens_in,
                "completion_tokens": tokens_out,
            },
        )
