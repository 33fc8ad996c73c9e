"""
Configuration Tests — Config value semantics, scoping, YAML + env loading.

Covers:
  - Setters return new values, temperature clamped to [0, 2]
  - Credentials resolved from <KEY> / <KEY>_ORG
  - Default provider selection order
  - Config.current / enable / update scoping
  - load_settings: defaults, user YAML deep merge, env overrides, bad values
  - Settings.to_config: provider lookup, base_url override, meter selection
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from reasonloop.config.settings import Config, Settings, _deep_merge, load_config, load_settings
from reasonloop.core.errors import ConfigurationError, ErrorCode
from reasonloop.core.providers.catalog import ANTHROPIC, GROQ, OLLAMA, OPENAI, Provider
from reasonloop.core.rate_limiter import ConcurrencyMeter, NoopMeter, RateLimitMeter
from reasonloop.core.retry import RetryPolicy


ENV_KEYS = [
    "REASONLOOP_PROVIDER", "REASONLOOP_MODEL", "REASONLOOP_TEMPERATURE",
    "REASONLOOP_MAX_ITERATIONS", "REASONLOOP_TIMEOUT", "OLLAMA_BASE_URL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for provider in Provider.all() + (OLLAMA,):
        monkeypatch.delenv(provider.key_name, raising=False)
        monkeypatch.delenv(provider.org_key, raising=False)
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def _write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return str(path)


# ═══════════════════════════════════════════════════════════════════
#  Config value
# ═══════════════════════════════════════════════════════════════════


class TestConfigValue:

    def test_setters_return_new_value(self):
        config = OPENAI.config()
        warmer = config.with_temperature(1.2)
        assert warmer.temperature == 1.2
        assert config.temperature == 0.7

    def test_temperature_clamped(self):
        config = OPENAI.config()
        assert config.with_temperature(5.0).temperature == 2.0
        assert config.with_temperature(-1.0).temperature == 0.0

    def test_init_reads_env(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("OPENAI_API_KEY_ORG", "org-1")
        config = Config.init(OPENAI, "gpt-4o-mini", 128000)
        assert config.api_key == "sk-test"
        assert config.api_org == "org-1"
        assert config.api_url == OPENAI.base_url
        assert config.model_max_tokens == 128000

    def test_empty_env_value_is_missing(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "")
        assert OPENAI.config().api_key is None

    def test_with_model_resets_url(self):
        config = OPENAI.config().with_api_url("http://proxy.local/v1")
        switched = config.with_model(GROQ, "llama-3.1-8b-instant", 8192)
        assert switched.api_url == GROQ.base_url
        assert switched.provider is GROQ
        assert switched.model_max_tokens == 8192

    def test_repr_hides_key(self):
        config = OPENAI.config().with_api_key("super-secret")
        assert "super-secret" not in repr(config)

    def test_provider_model_table(self):
        assert GROQ.config("llama-3.1-8b-instant").model_max_tokens == 8192
        assert OPENAI.config().model_name == "gpt-4o"


class TestDefaultConfig:

    def test_falls_back_to_openai(self):
        config = Config.default()
        assert config.provider is OPENAI
        assert config.model_name == "gpt-4o"
        assert config.api_key is None

    def test_first_keyed_provider_wins(self, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "g")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "a")
        config = Config.default()
        assert config.provider is ANTHROPIC
        assert config.api_key == "a"

    def test_ollama_not_probed(self):
        assert OLLAMA not in Provider.all()


class TestConfigScoping:

    def test_current_defaults(self):
        assert Config.current() == Config.default()

    def test_enable(self):
        config = GROQ.config()
        with config.enable():
            assert Config.current() is config
        assert Config.current().provider is OPENAI

    def test_update_nested(self):
        with OPENAI.config().enable():
            with Config.update(lambda c: c.with_seed(42)) as inner:
                assert Config.current().seed == 42
                assert inner.seed == 42
            assert Config.current().seed is None


# ═══════════════════════════════════════════════════════════════════
#  YAML settings
# ═══════════════════════════════════════════════════════════════════


class TestLoadSettings:

    def test_defaults(self):
        settings = load_settings()
        assert settings.get("generation.max_iterations") == 5
        assert settings.get("retry.max_attempts") == 10
        assert settings.get("llm.provider") is None

    def test_dotted_get_set(self):
        settings = Settings({})
        settings.set("a.b.c", 1)
        assert settings.get("a.b.c") == 1
        assert settings.get("a.x", "fallback") == "fallback"
        assert settings.raw == {"a": {"b": {"c": 1}}}

    def test_user_file_merged(self, tmp_path):
        path = _write(tmp_path, (
            "llm:\n"
            "  provider: groq\n"
            "  model: llama-3.1-8b-instant\n"
            "  temperature: 0.2\n"
            "generation:\n"
            "  max_iterations: 3\n"
            "retry:\n"
            "  max_attempts: 2\n"
        ))
        config = load_config(path)
        assert config.provider is GROQ
        assert config.model_name == "llama-3.1-8b-instant"
        assert config.model_max_tokens == 8192
        assert config.temperature == 0.2
        assert config.max_iterations == 3
        assert config.retry_policy.max_attempts == 2
        assert config.retry_policy.backoff_base == 0.5
        assert config.timeout == 300.0
        assert isinstance(config.meter, NoopMeter)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(str(tmp_path / "absent.yaml"))
        assert exc_info.value.code is ErrorCode.CONFIG_INVALID_VALUE

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("REASONLOOP_PROVIDER", "ollama")
        monkeypatch.setenv("REASONLOOP_TEMPERATURE", "0.3")
        monkeypatch.setenv("REASONLOOP_TIMEOUT", "12")
        monkeypatch.setenv("OLLAMA_BASE_URL", "http://gpu-box:11434")
        config = load_config()
        assert config.provider is OLLAMA
        assert config.api_url == "http://gpu-box:11434"
        assert config.temperature == 0.3
        assert config.timeout == 12.0

    def test_env_beats_file(self, tmp_path, monkeypatch):
        path = _write(tmp_path, "llm:\n  provider: groq\n")
        monkeypatch.setenv("REASONLOOP_PROVIDER", "openai")
        assert load_config(path).provider is OPENAI

    def test_bad_env_value(self, monkeypatch):
        monkeypatch.setenv("REASONLOOP_MAX_ITERATIONS", "many")
        with pytest.raises(ConfigurationError, match="REASONLOOP_MAX_ITERATIONS"):
            load_settings()

    def test_unknown_provider(self, tmp_path):
        path = _write(tmp_path, "llm:\n  provider: skynet\n")
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)
        assert exc_info.value.code is ErrorCode.CONFIG_INVALID_VALUE
        assert "skynet" in exc_info.value.message

    def test_model_without_provider(self, monkeypatch):
        monkeypatch.setenv("REASONLOOP_MODEL", "gpt-4")
        config = load_config()
        assert config.provider is OPENAI
        assert config.model_name == "gpt-4"
        assert config.model_max_tokens == 8192


class TestMeterSelection:

    def test_rate_limit(self, tmp_path):
        path = _write(tmp_path, "rate_limit:\n  enabled: true\n  burst_limit: 3\n")
        meter = load_config(path).meter
        assert isinstance(meter, RateLimitMeter)
        assert meter.config.burst_limit == 3
        assert meter.config.max_requests == 60

    def test_concurrency(self, tmp_path):
        path = _write(tmp_path, "concurrency:\n  limit: 2\n")
        meter = load_config(path).meter
        assert isinstance(meter, ConcurrencyMeter)
        assert meter.limit == 2

    def test_meter_ignored_in_equality(self):
        config = OPENAI.config()
        assert config.with_meter(ConcurrencyMeter(1)) == config


class TestDeepMerge:

    def test_nested(self):
        base = {"a": {"x": 1, "y": 2}, "b": 1}
        merged = _deep_merge(base, {"a": {"y": 3}, "c": 4})
        assert merged == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}
        assert base == {"a": {"x": 1, "y": 2}, "b": 1}

    def test_scalar_replaces_dict(self):
        assert _deep_merge({"a": {"x": 1}}, {"a": None}) == {"a": None}

    def test_retry_policy_from_settings(self):
        settings = Settings({"retry": {"max_attempts": 4, "jitter": False}})
        policy = settings.to_config().retry_policy
        assert policy == RetryPolicy(max_attempts=4, jitter=False)
