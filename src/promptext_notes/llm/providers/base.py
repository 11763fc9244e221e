"""LLM provider interface and the HTTP plumbing the vendor adapters share."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Optional, Protocol, Tuple

import requests

from ..context import RunContext
from ..retry import retry_with_backoff
from ..types import (
    CancellationError,
    ConfigurationError,
    LLMRequest,
    LLMResult,
    ProviderConfig,
    TransientRequestError,
)

logger = logging.getLogger(__name__)


class LLMProvider(Protocol):
    name: str

    def validate_config(self) -> None:
        ...

    def generate(self, request: LLMRequest, ctx: Optional[RunContext] = None) -> LLMResult:
        ...


class HTTPProvider:
    """Base adapter: one JSON POST per attempt, wrapped by the retry engine.

    Subclasses set ``name``, ``label``, ``default_base_url`` and ``path`` and
    implement ``_build_payload``, ``_headers`` and ``_parse_response``.
    """

    name = ""
    label = ""
    default_base_url = ""
    path = ""
    requires_api_key = True
    send_error_hint = ""

    def __init__(
        self,
        config: ProviderConfig,
        api_key: str = "",
        session: requests.Session | None = None,
    ) -> None:
        self.config = config
        self._api_key = api_key
        self._session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        base = self.config.custom.get("base_url") or self.default_base_url
        return f"{base.rstrip('/')}{self.path}"

    def validate_config(self) -> None:
        if self.requires_api_key and not self._api_key:
            hint = f" (set {self.config.api_key_env})" if self.config.api_key_env else ""
            raise ConfigurationError(f"{self.label} API key is not set{hint}", provider=self.name)
        if not self.config.model:
            raise ConfigurationError(f"{self.label} model is not specified", provider=self.name)

    def generate(self, request: LLMRequest, ctx: Optional[RunContext] = None) -> LLMResult:
        # Validation runs once, outside the retried path.
        self.validate_config()
        ctx = ctx or RunContext()
        return retry_with_backoff(
            ctx,
            self.config.retry,
            lambda attempt_ctx: self._generate_once(attempt_ctx, request),
            label=f"{self.name} generate",
        )

    def _generate_once(self, ctx: RunContext, request: LLMRequest) -> LLMResult:
        payload = self._build_payload(request)
        start = time.perf_counter()
        data = self._post(ctx, payload)
        result = self._parse_response(data, request)
        result.latency_ms = int((time.perf_counter() - start) * 1000)
        logger.debug(
            "%s returned %d tokens from %s in %dms",
            self.name,
            result.tokens_used,
            result.model,
            result.latency_ms,
        )
        return result

    def _build_payload(self, request: LLMRequest) -> Dict[str, Any]:
        raise NotImplementedError

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def _parse_response(self, data: Dict[str, Any], request: LLMRequest) -> LLMResult:
        raise NotImplementedError

    def _post(self, ctx: RunContext, payload: Dict[str, Any]) -> Dict[str, Any]:
        ctx.raise_if_done(self.name)
        timeout = ctx.bound_timeout(self.config.timeout_seconds)
        try:
            res = self._session.post(self.endpoint, headers=self._headers(), json=payload, timeout=timeout)
        except requests.RequestException as exc:
            if ctx.done():
                raise CancellationError(ctx.reason(), provider=self.name) from exc
            raise TransientRequestError(
                f"failed to send request{self.send_error_hint}: {exc}", provider=self.name
            ) from exc

        if not 200 <= res.status_code < 300:
            raise self._error_from_response(res.status_code, res.text or "")

        try:
            data = res.json()
        except ValueError as exc:
            raise TransientRequestError(
                f"failed to parse response: {exc}",
                provider=self.name,
                status_code=res.status_code,
                body=res.text or "",
            ) from exc
        if not isinstance(data, dict):
            raise TransientRequestError(
                "failed to parse response: expected a JSON object",
                provider=self.name,
                status_code=res.status_code,
                body=res.text or "",
            )
        return data

    def _error_from_response(self, status_code: int, body: str) -> TransientRequestError:
        message, error_type = parse_error_envelope(body)
        if not message:
            return TransientRequestError(
                f"{self.label} API error (status {status_code}): {body}",
                provider=self.name,
                status_code=status_code,
                body=body,
            )
        detail = f"{self.label} API error: {message}"
        if error_type:
            detail = f"{detail} ({error_type})"
        return TransientRequestError(
            detail,
            provider=self.name,
            status_code=status_code,
            error_type=error_type,
            body=body,
        )


def parse_error_envelope(body: str) -> Tuple[str, Optional[str]]:
    """Extracts (message, type or code) from a vendor error body.

    Handles ``{"error": {"message", "type"|"code"}}`` (OpenAI-compatible and
    Anthropic) and ``{"error": "..."}`` (Ollama). Returns ("", None) when the
    body is not a recognizable envelope.
    """
    try:
        data = json.loads(body)
    except ValueError:
        return "", None
    if not isinstance(data, dict):
        return "", None

    error = data.get("error")
    if isinstance(error, dict):
        message = str(error.get("message") or "")
        error_type = error.get("type") or error.get("code")
        return message, str(error_type) if error_type else None
    if isinstance(error, str):
        return error, None
    return "", None


def first_choice_text(data: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    """Returns (content, choice) for the first chat completion choice, or ("", {})."""
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return "", {}
    choice = choices[0]
    message = choice.get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    return str(content or ""), choice
