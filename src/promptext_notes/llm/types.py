"""Shared LLM data structures and the pipeline error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

SUPPORTED_PROVIDERS = ("anthropic", "openai", "cerebras", "groq", "openrouter", "ollama")
BACKOFF_KINDS = ("exponential", "linear", "constant")


class ProviderError(RuntimeError):
    """Base error for everything raised by the generation pipeline."""

    retryable = True

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.stage: str | None = None


class ConfigurationError(ProviderError):
    """Missing key, empty model, unknown provider or backoff kind."""

    retryable = False


class UnsupportedProviderError(ConfigurationError):
    def __init__(self, provider: str) -> None:
        super().__init__(
            f"unsupported AI provider: {provider} (supported: {', '.join(SUPPORTED_PROVIDERS)})",
            provider=provider,
        )


class TransientRequestError(ProviderError):
    """Network failure, non-2xx status or a vendor error envelope."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
        error_type: str | None = None,
        body: str = "",
    ) -> None:
        super().__init__(message, provider=provider)
        self.status_code = status_code
        self.error_type = error_type
        self.body = body


class EmptyCompletionError(ProviderError):
    """Vendor accepted the request but generated nothing."""

    def __init__(self, provider: str | None = None) -> None:
        super().__init__("no content in response", provider=provider)


class CancellationError(ProviderError):
    retryable = False

    def __init__(self, reason: str = "cancelled", provider: str | None = None) -> None:
        super().__init__(f"request {reason}", provider=provider)
        self.reason = reason


class RetryExhaustedError(ProviderError):
    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(
            f"failed after {attempts} attempts: {last_error}",
            provider=getattr(last_error, "provider", None),
        )
        self.attempts = attempts
        self.last_error = last_error


def describe_error(exc: BaseException) -> str:
    """Returns the deepest vendor-supplied message in an exception chain."""
    current: BaseException = exc
    while True:
        if isinstance(current, RetryExhaustedError):
            current = current.last_error
            continue
        if current.__cause__ is not None and isinstance(current.__cause__, ProviderError):
            current = current.__cause__
            continue
        break
    return str(current)


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    backoff: str = "exponential"
    initial_delay_seconds: float = 2.0

    def validate(self) -> None:
        if self.attempts < 1:
            raise ConfigurationError(f"retry attempts must be positive, got: {self.attempts}")
        if self.backoff not in BACKOFF_KINDS:
            raise ConfigurationError(
                f"invalid backoff strategy: {self.backoff} (supported: {', '.join(BACKOFF_KINDS)})"
            )
        if self.initial_delay_seconds < 0:
            raise ConfigurationError(
                f"retry initial_delay must not be negative, got: {self.initial_delay_seconds}"
            )


@dataclass
class ProviderConfig:
    """Resolved parameters for one generation stage."""

    provider: str
    model: str
    api_key_env: str = ""
    max_tokens: int = 8000
    temperature: float = 0.3
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    custom: Dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        if self.provider not in SUPPORTED_PROVIDERS:
            raise UnsupportedProviderError(self.provider)
        if self.max_tokens <= 0:
            raise ConfigurationError(f"max_tokens must be positive, got: {self.max_tokens}")
        if self.temperature < 0 or self.temperature > 1:
            raise ConfigurationError(f"temperature must be between 0 and 1, got: {self.temperature:.2f}")
        if self.timeout_seconds <= 0:
            raise ConfigurationError(f"timeout must be positive, got: {self.timeout_seconds}")
        self.retry.validate()


@dataclass(frozen=True)
class LLMRequest:
    prompt: str
    model: str
    max_tokens: int
    temperature: float
    system_prompt: str = ""


@dataclass
class LLMResult:
    text: str
    provider: str
    model: str
    tokens_used: int = 0
    tokens_in: int = 0
    tokens_out: int = 0
    cost_usd: float = 0.0
    latency_ms: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)


def request_from_config(config: ProviderConfig, prompt: str, system_prompt: Optional[str] = None) -> LLMRequest:
    return LLMRequest(
        prompt=prompt,
        model=config.model,
        max_tokens=config.max_tokens,
        temperature=config.temperature,
        system_prompt=system_prompt or "",
    )
