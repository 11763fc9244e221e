"""Builds the adapter matching a resolved ProviderConfig."""

from __future__ import annotations

from typing import Dict, Type

import requests

from .providers.anthropic_provider import AnthropicProvider
from .providers.base import HTTPProvider
from .providers.cerebras_provider import CerebrasProvider
from .providers.groq_provider import GroqProvider
from .providers.ollama_provider import OllamaProvider
from .providers.openai_provider import OpenAIProvider
from .providers.openrouter_provider import OpenRouterProvider
from .types import ConfigurationError, ProviderConfig, UnsupportedProviderError

PROVIDERS: Dict[str, Type[HTTPProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "cerebras": CerebrasProvider,
    "groq": GroqProvider,
    "openrouter": OpenRouterProvider,
    "ollama": OllamaProvider,
}


def create_provider(
    config: ProviderConfig,
    api_key: str = "",
    session: requests.Session | None = None,
) -> HTTPProvider:
    """Returns a fresh adapter; nothing is shared between calls."""
    provider_cls = PROVIDERS.get(config.provider)
    if provider_cls is None:
        raise UnsupportedProviderError(config.provider)
    if provider_cls.requires_api_key and not api_key:
        hint = f" (set {config.api_key_env})" if config.api_key_env else ""
        raise ConfigurationError(f"{provider_cls.label} API key is required{hint}", provider=config.provider)
    return provider_cls(config, api_key=api_key, session=session)
