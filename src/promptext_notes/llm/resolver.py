"""Resolves discovery and polish stage configuration from settings.

Precedence for each field is: polish-specific value, then the discovery
value, then the static per-provider default. The API-key variable is
only inherited from discovery when both stages use the same provider; a
different polish provider falls back to its own default variable.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..config import parse_duration
from .types import ConfigurationError, ProviderConfig, RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "anthropic"

DEFAULT_MODELS: Dict[str, str] = {
    "anthropic": "claude-haiku-4-5",
    "openai": "gpt-4o-mini",
    "cerebras": "llama-3.3-70b",
    "groq": "llama-3.3-70b-versatile",
    "openrouter": "openai/gpt-4o-mini",
    "ollama": "llama3.2",
}

DEFAULT_API_KEY_ENVS: Dict[str, str] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "cerebras": "CEREBRAS_API_KEY",
    "groq": "GROQ_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
    "ollama": "",
}


def default_model(provider: str) -> str:
    return DEFAULT_MODELS.get(provider, "")


def default_api_key_env(provider: str) -> str:
    return DEFAULT_API_KEY_ENVS.get(provider, "")


def _first_set(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _duration(value: Any, field_name: str) -> float:
    try:
        return parse_duration(value)
    except ValueError as exc:
        raise ConfigurationError(f"invalid {field_name}: {exc}") from exc


def _retry_policy(retry_cfg: Mapping[str, Any]) -> RetryPolicy:
    return RetryPolicy(
        attempts=int(_first_set(retry_cfg.get("attempts"), 3)),
        backoff=str(_first_set(retry_cfg.get("backoff"), "exponential")),
        initial_delay_seconds=_duration(_first_set(retry_cfg.get("initial_delay"), 2.0), "retry.initial_delay"),
    )


def resolve_discovery_config(settings: Mapping[str, Any]) -> ProviderConfig:
    ai_cfg = settings.get("ai", {})
    provider = str(_first_set(ai_cfg.get("provider"), DEFAULT_PROVIDER))
    config = ProviderConfig(
        provider=provider,
        model=str(_first_set(ai_cfg.get("model"), default_model(provider)) or ""),
        api_key_env=str(_first_set(ai_cfg.get("api_key_env"), default_api_key_env(provider)) or ""),
        max_tokens=int(_first_set(ai_cfg.get("max_tokens"), 8000)),
        temperature=float(_first_set(ai_cfg.get("temperature"), 0.3)),
        timeout_seconds=_duration(_first_set(ai_cfg.get("timeout"), 30), "timeout"),
        retry=_retry_policy(ai_cfg.get("retry") or {}),
        custom={str(k): str(v) for k, v in (ai_cfg.get("custom") or {}).items()},
    )
    config.validate()
    return config


def resolve_polish_config(settings: Mapping[str, Any], discovery: ProviderConfig) -> ProviderConfig:
    polish_cfg = settings.get("ai", {}).get("polish") or {}
    provider = str(_first_set(polish_cfg.get("polish_provider"), discovery.provider))
    same_provider = provider == discovery.provider

    model = _first_set(polish_cfg.get("polish_model"), discovery.model, default_model(provider))
    if not same_provider and not polish_cfg.get("polish_model") and discovery.model:
        logger.warning(
            "polish provider %s inherits discovery model %s; set polish_model if %s does not serve it",
            provider,
            discovery.model,
            provider,
        )
    api_key_env = _first_set(
        polish_cfg.get("polish_api_key_env"),
        discovery.api_key_env if same_provider else None,
        default_api_key_env(provider),
    )
    max_tokens = _first_set(polish_cfg.get("polish_max_tokens") or None, discovery.max_tokens)
    temperature = _first_set(polish_cfg.get("polish_temperature"), discovery.temperature)

    config = ProviderConfig(
        provider=provider,
        model=str(model or ""),
        api_key_env=str(api_key_env or ""),
        max_tokens=int(max_tokens),
        temperature=float(temperature),
        timeout_seconds=discovery.timeout_seconds,
        retry=discovery.retry,
        custom=dict(discovery.custom),
    )
    config.validate()
    return config


def polish_enabled(settings: Mapping[str, Any], override: Optional[bool] = None) -> bool:
    if override is not None:
        return override
    return bool((settings.get("ai", {}).get("polish") or {}).get("enabled", False))


def read_api_key(config: ProviderConfig, environ: Mapping[str, str] | None = None, label: str = "API key") -> str:
    """Reads the key named by ``config.api_key_env``.

    An empty variable name means no key is needed. A missing value is a
    ConfigurationError naming the variable, except for Ollama which runs
    unauthenticated.
    """
    env = os.environ if environ is None else environ
    if not config.api_key_env:
        return ""
    key = env.get(config.api_key_env, "")
    if not key and config.provider != "ollama":
        raise ConfigurationError(
            f"{label} not found in environment variable: {config.api_key_env}",
            provider=config.provider,
        )
    return key


def read_polish_api_key(
    discovery: ProviderConfig,
    polish: ProviderConfig,
    discovery_key: str,
    environ: Mapping[str, str] | None = None,
) -> str:
    if polish.provider == discovery.provider:
        return discovery_key
    return read_api_key(polish, environ, label="polish API key")


@dataclass
class StagePlan:
    """Everything a workflow run needs, resolved before any network call."""

    discovery: ProviderConfig
    discovery_api_key: str
    polish: Optional[ProviderConfig] = None
    polish_api_key: str = ""
    polish_prompt: str = ""


def resolve_stages(
    settings: Mapping[str, Any],
    polish: Optional[bool] = None,
    environ: Mapping[str, str] | None = None,
) -> StagePlan:
    discovery = resolve_discovery_config(settings)
    discovery_key = read_api_key(discovery, environ)
    plan = StagePlan(discovery=discovery, discovery_api_key=discovery_key)

    if polish_enabled(settings, polish):
        polish_config = resolve_polish_config(settings, discovery)
        plan.polish = polish_config
        plan.polish_api_key = read_polish_api_key(discovery, polish_config, discovery_key, environ)
        plan.polish_prompt = str((settings.get("ai", {}).get("polish") or {}).get("polish_prompt") or "")
        logger.debug("polish stage resolved to %s (%s)", polish_config.provider, polish_config.model)

    return plan
