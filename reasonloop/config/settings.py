"""
Configuration — the immutable generation ``Config`` and the YAML loader.

``Config`` is a value: every ``with_*`` setter returns a new instance. The
active config is task-local; ``config.enable()`` and ``Config.update(f)``
replace it for a block.

``load_config`` builds a ``Config`` from YAML file + environment overrides.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, ContextManager, Iterator, Optional

import yaml

from ..core.errors import ConfigurationError, ErrorCode
from ..core.providers.catalog import OPENAI, Provider
from ..core.rate_limiter import ConcurrencyMeter, Meter, NoopMeter, RateLimitConfig, RateLimitMeter
from ..core.retry import RetryPolicy
from ..core.scope import ScopedValue

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default_config.yaml"


def read_env(key: str) -> Optional[str]:
    value = os.getenv(key)
    return value if value else None


@dataclass(frozen=True)
class Config:
    """Generation settings for one provider and model."""
    api_url: str
    api_key: Optional[str] = field(repr=False)
    api_org: Optional[str] = field(repr=False)
    provider: Provider
    model_name: str
    model_max_tokens: int
    temperature: float = 0.7
    max_tokens: Optional[int] = None
    seed: Optional[int] = None
    meter: Meter = field(default_factory=NoopMeter, compare=False)
    timeout: float = 300.0
    max_iterations: int = 5
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)

    # ── Construction ───────────────────────────────────────────

    @classmethod
    def init(cls, provider: Provider, model_name: str, model_max_tokens: int) -> "Config":
        """Config with credentials resolved from the environment."""
        return cls(
            api_url=provider.base_url,
            api_key=read_env(provider.key_name),
            api_org=read_env(provider.org_key),
            provider=provider,
            model_name=model_name,
            model_max_tokens=model_max_tokens,
        )

    @classmethod
    def default(cls) -> "Config":
        """First provider whose API key is set, else OpenAI gpt-4o."""
        for provider in Provider.all():
            if read_env(provider.key_name):
                return provider.default()
        return OPENAI.default()

    # ── Setters ────────────────────────────────────────────────

    def with_api_url(self, url: str) -> "Config":
        return replace(self, api_url=url)

    def with_api_key(self, key: str) -> "Config":
        return replace(self, api_key=key)

    def with_api_org(self, org: str) -> "Config":
        return replace(self, api_org=org)

    def with_temperature(self, temperature: float) -> "Config":
        return replace(self, temperature=max(0.0, min(2.0, float(temperature))))

    def with_max_tokens(self, max_tokens: Optional[int]) -> "Config":
        return replace(self, max_tokens=max_tokens)

    def with_seed(self, seed: Optional[int]) -> "Config":
        return replace(self, seed=seed)

    def with_meter(self, meter: Meter) -> "Config":
        return replace(self, meter=meter)

    def with_timeout(self, timeout: float) -> "Config":
        return replace(self, timeout=timeout)

    def with_max_iterations(self, max_iterations: int) -> "Config":
        return replace(self, max_iterations=max_iterations)

    def with_retry_policy(self, retry_policy: RetryPolicy) -> "Config":
        return replace(self, retry_policy=retry_policy)

    def with_model(self, provider: Provider, model_name: str, model_max_tokens: int) -> "Config":
        return replace(
            self,
            provider=provider,
            model_name=model_name,
            model_max_tokens=model_max_tokens,
            api_url=provider.base_url,
        )

    # ── Scoping ────────────────────────────────────────────────

    @classmethod
    def current(cls) -> "Config":
        config = _local.get()
        return config if config is not None else cls.default()

    def enable(self) -> ContextManager["Config"]:
        return _local.let(self)

    @classmethod
    @contextmanager
    def update(cls, f: Callable[["Config"], "Config"]) -> Iterator["Config"]:
        with _local.let(f(cls.current())) as config:
            yield config


_local: ScopedValue[Optional[Config]] = ScopedValue("reasonloop_config", None)


# ── YAML settings ──────────────────────────────────────────────────

class Settings:
    """Raw settings tree with dot-access and env var support."""

    def __init__(self, data: dict):
        self._data = data

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-separated key path."""
        keys = key.split(".")
        value = self._data
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
            if value is None:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """Set a config value by dot-separated key path."""
        keys = key.split(".")
        d = self._data
        for k in keys[:-1]:
            d = d.setdefault(k, {})
        d[keys[-1]] = value

    @property
    def raw(self) -> dict:
        return self._data

    def to_config(self) -> Config:
        """Resolve provider, model and generation settings into a Config."""
        provider_name = self.get("llm.provider")
        model = self.get("llm.model")
        if provider_name:
            try:
                provider = Provider.find(provider_name)
            except KeyError as e:
                raise ConfigurationError(str(e.args[0]), ErrorCode.CONFIG_INVALID_VALUE) from e
            config = provider.config(model)
        else:
            config = Config.default()
            if model:
                config = config.with_model(
                    config.provider, model, config.provider.max_tokens_for(model),
                )

        base_url = self.get(f"providers.{config.provider.name.lower()}.base_url")
        if base_url:
            config = config.with_api_url(base_url)

        config = (
            config
            .with_temperature(float(self.get("llm.temperature", config.temperature)))
            .with_max_tokens(self.get("llm.max_tokens"))
            .with_seed(self.get("llm.seed"))
            .with_max_iterations(int(self.get("generation.max_iterations", config.max_iterations)))
            .with_timeout(float(self.get("generation.timeout", config.timeout)))
            .with_retry_policy(RetryPolicy(
                max_attempts=int(self.get("retry.max_attempts", 10)),
                backoff_base=float(self.get("retry.backoff_base", 0.5)),
                backoff_max=float(self.get("retry.backoff_max", 30.0)),
                jitter=bool(self.get("retry.jitter", True)),
            ))
            .with_meter(self._meter())
        )
        return config

    def _meter(self) -> Meter:
        if self.get("rate_limit.enabled", False):
            return RateLimitMeter(RateLimitConfig(
                max_requests=int(self.get("rate_limit.max_requests", 60)),
                window_seconds=float(self.get("rate_limit.window_seconds", 60.0)),
                burst_limit=int(self.get("rate_limit.burst_limit", 10)),
                refill_rate=float(self.get("rate_limit.refill_rate", 1.0)),
            ))
        limit = self.get("concurrency.limit")
        if limit:
            return ConcurrencyMeter(int(limit))
        return NoopMeter()

    def __repr__(self) -> str:
        return f"Settings({self._data})"


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Load settings from YAML file with env var overrides.

    Priority (highest to lowest):
    1. Environment variables (REASONLOOP_PROVIDER, etc.)
    2. User config file (if provided)
    3. Default config

    Env var mapping:
    - REASONLOOP_PROVIDER → llm.provider
    - REASONLOOP_MODEL → llm.model
    - REASONLOOP_TEMPERATURE → llm.temperature
    - REASONLOOP_MAX_ITERATIONS → generation.max_iterations
    - REASONLOOP_TIMEOUT → generation.timeout
    - OLLAMA_BASE_URL → providers.ollama.base_url
    """
    with open(DEFAULT_CONFIG_PATH) as f:
        data = yaml.safe_load(f) or {}

    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}", ErrorCode.CONFIG_INVALID_VALUE)
        with open(path) as f:
            user_data = yaml.safe_load(f) or {}
        data = _deep_merge(data, user_data)

    env_mappings = {
        "REASONLOOP_PROVIDER": ("llm.provider", str),
        "REASONLOOP_MODEL": ("llm.model", str),
        "REASONLOOP_TEMPERATURE": ("llm.temperature", float),
        "REASONLOOP_MAX_ITERATIONS": ("generation.max_iterations", int),
        "REASONLOOP_TIMEOUT": ("generation.timeout", float),
        "OLLAMA_BASE_URL": ("providers.ollama.base_url", str),
    }

    settings = Settings(data)
    for env_key, (config_key, convert) in env_mappings.items():
        env_val = os.getenv(env_key)
        if env_val is not None:
            try:
                settings.set(config_key, convert(env_val))
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid value for {env_key}: {env_val!r}", ErrorCode.CONFIG_INVALID_VALUE,
                ) from e

    return settings


def load_config(config_path: Optional[str] = None) -> Config:
    config = load_settings(config_path).to_config()
    logger.debug("Loaded %r", config)
    return config


def _deep_merge(base: dict, overlay: dict) -> dict:
    """Recursively merge overlay dict into base dict."""
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
