"""Ollama provider for local models (single-prompt /api/generate)."""

from __future__ import annotations

from typing import Any, Dict

from ..types import EmptyCompletionError, LLMRequest, LLMResult
from .base import HTTPProvider

DEFAULT_OLLAMA_URL = "http://localhost:11434"


class OllamaProvider(HTTPProvider):
    name = "ollama"
    label = "Ollama"
    default_base_url = DEFAULT_OLLAMA_URL
    path = "/api/generate"
    requires_api_key = False
    send_error_hint = " (is Ollama running?)"

    @property
    def endpoint(self) -> str:
        base = (
            self.config.custom.get("ollama_url")
            or self.config.custom.get("base_url")
            or self.default_base_url
        )
        return f"{base.rstrip('/')}{self.path}"

    def _build_payload(self, request: LLMRequest) -> Dict[str, Any]:
        prompt = request.prompt
        if request.system_prompt:
            prompt = f"System: {request.system_prompt}\n\nUser: {request.prompt}"
        return {
            "model": request.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": request.temperature,
                "num_predict": request.max_tokens,
            },
        }

    def _parse_response(self, data: Dict[str, Any], request: LLMRequest) -> LLMResult:
        text = str(data.get("response") or "")
        if not text.strip():
            raise EmptyCompletionError(provider=self.name)

        tokens_in = int(data.get("prompt_eval_count", 0) or 0)
        tokens_out = int(data.get("eval_count", 0) or 0)

        return LLMResult(
            text=text,
            provider=self.name,
            model=data.get("model") or request.model,
            tokens_used=tokens_in + tokens_out,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            cost_usd=0.0,
            metadata={
                "created_at": data.get("created_at"),
                "done_reason": data.get("done_reason"),
            },
        )
