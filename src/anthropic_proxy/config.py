"""Configuration models and resolution helpers for the proxy host.

The core client never reads files or the environment; hosts resolve a
``ProxyConfig`` here and pass its values in at construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import json
import os
from pathlib import Path
from typing import Any, Mapping

from anthropic_proxy.llm.client import DEFAULT_API_VERSION, DEFAULT_BASE_URL, MODEL_SOURCES
from anthropic_proxy.llm.retry import RetryConfig

DEFAULT_MODEL = "claude-3-7-sonnet-20250219"

ENV_OVERRIDES = {
    "ANTHROPIC_API_KEY": "api_key",
    "ANTHROPIC_BASE_URL": "base_url",
    "ANTHROPIC_API_VERSION": "api_version",
    "ANTHROPIC_PROXY_DEFAULT_MODEL": "default_model",
    "ANTHROPIC_PROXY_MODELS_SOURCE": "models_source",
    "ANTHROPIC_PROXY_TIMEOUT_MS": "timeout_ms",
}


@dataclass(frozen=True)
class ProxyConfig:
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    api_version: str = DEFAULT_API_VERSION
    default_model: str = DEFAULT_MODEL
    timeout_ms: int = 30000
    # Reserved for a future response cache; nothing reads it yet.
    max_cache_size: int | None = 100
    models_source: str = "live"
    retry: RetryConfig = field(default_factory=RetryConfig)

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0

    def validate(self) -> "ProxyConfig":
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0.")
        if self.max_cache_size is not None and self.max_cache_size < 0:
            raise ValueError("max_cache_size must be >= 0.")
        if self.models_source not in MODEL_SOURCES:
            raise ValueError(f"models_source must be one of {', '.join(MODEL_SOURCES)}.")
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL.")
        self.retry.validate()
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "api_key": _redact(self.api_key),
            "base_url": self.base_url,
            "api_version": self.api_version,
            "default_model": self.default_model,
            "timeout_ms": self.timeout_ms,
            "max_cache_size": self.max_cache_size,
            "models_source": self.models_source,
            "retry": self.retry.to_dict(),
        }

    def client_kwargs(self) -> dict[str, Any]:
        return {
            "api_key": self.api_key,
            "base_url": self.base_url,
            "api_version": self.api_version,
            "retry": self.retry,
            "timeout_s": self.timeout_s,
        }


def load_config(
    path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> ProxyConfig:
    """Resolve config from an optional JSON file, then environment overrides."""
    env = os.environ if environ is None else environ
    config = ProxyConfig()
    if path is not None:
        config = config_from_dict(_read_json(path))

    updates: dict[str, Any] = {}
    for env_var, attr in ENV_OVERRIDES.items():
        value = env.get(env_var)
        if value is None or value == "":
            continue
        if attr == "timeout_ms":
            try:
                updates[attr] = int(value)
            except ValueError as exc:
                raise ValueError(f"{env_var} must be an integer.") from exc
        else:
            updates[attr] = value
    if updates:
        config = replace(config, **updates)
    return config.validate()


def config_from_dict(data: Mapping[str, Any]) -> ProxyConfig:
    defaults = ProxyConfig()
    retry_raw = data.get("retry") or {}
    if not isinstance(retry_raw, dict):
        raise ValueError("retry must be an object.")
    try:
        max_cache_size = data.get("max_cache_size", defaults.max_cache_size)
        return ProxyConfig(
            api_key=str(data.get("api_key", defaults.api_key)),
            base_url=str(data.get("base_url", defaults.base_url)),
            api_version=str(data.get("api_version", defaults.api_version)),
            default_model=str(data.get("default_model", defaults.default_model)),
            timeout_ms=int(data.get("timeout_ms", defaults.timeout_ms)),
            max_cache_size=int(max_cache_size) if max_cache_size is not None else None,
            models_source=str(data.get("models_source", defaults.models_source)),
            retry=RetryConfig.from_dict(retry_raw),
        ).validate()
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid config: {exc}") from exc


def _read_json(path: Path) -> dict[str, Any]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"Config not found: {path}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise ValueError(f"Invalid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ValueError("Config must be a JSON object.")
    return raw


def _redact(secret: str) -> str:
    if not secret:
        return ""
    if len(secret) <= 8:
        return "***"
    return f"{secret[:4]}...{secret[-4:]}"
