"""Configuration loading and defaults."""

from __future__ import annotations

import re
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict

import yaml

from .llm.types import ConfigurationError

DEFAULT_CONFIG_PATH = ".promptext-notes.yml"

DEFAULT_SETTINGS: Dict[str, Any] = {
    "version": "1",
    "ai": {
        "provider": "anthropic",
        "model": "",
        "api_key_env": "",
        "max_tokens": 8000,
        "temperature": 0.3,
        "timeout": "30s",
        "retry": {
            "attempts": 3,
            "backoff": "exponential",
            "initial_delay": "2s",
        },
        "custom": {},
        "polish": {
            "enabled": False,
            "polish_model": "",
            "polish_provider": "",
            "polish_api_key_env": "",
            "polish_prompt": "",
            "polish_max_tokens": 4000,
            "polish_temperature": 0.3,
        },
    },
}

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(settings_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Loads the YAML config file and merges it onto defaults."""
    merged = deepcopy(DEFAULT_SETTINGS)
    config_path = Path(settings_path)
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as f:
            try:
                user_cfg = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"failed to parse config file {config_path}: {exc}") from exc
        if not isinstance(user_cfg, dict):
            raise ConfigurationError(f"config file must contain a mapping: {config_path}")
        merged = _deep_merge(merged, user_cfg)
    return merged


def parse_duration(value: Any) -> float:
    """Parses '30s', '1m30s', '500ms' or a bare number of seconds."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().lower()
    try:
        return float(text)
    except ValueError:
        pass
    if not text or _DURATION_RE.sub("", text):
        raise ValueError(f"Invalid duration: {value!r}")
    return sum(float(amount) * _DURATION_UNITS[unit] for amount, unit in _DURATION_RE.findall(text))


def apply_overrides(settings: Dict[str, Any], provider: str | None = None, model: str | None = None) -> Dict[str, Any]:
    """Applies CLI overrides; a new provider also resets its API-key variable."""
    updated = deepcopy(settings)
    ai_cfg = updated.setdefault("ai", {})
    if provider:
        ai_cfg["provider"] = provider
        ai_cfg["api_key_env"] = ""
        if not model:
            ai_cfg["model"] = ""
    if model:
        ai_cfg["model"] = model
    return updated
