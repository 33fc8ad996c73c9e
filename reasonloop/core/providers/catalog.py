"""
Provider catalog — vendor endpoints, API key names and model presets.

Every provider except Anthropic and Ollama speaks the OpenAI chat
completions API. API keys are read from ``<key_name>``; the organization id,
if any, from ``<key_name>_ORG``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping, Optional, Tuple

from .anthropic_provider import AnthropicCompletion
from .base import Completion
from .ollama import OllamaCompletion
from .openai_provider import OpenAICompletion

if TYPE_CHECKING:
    from ...config.settings import Config


@dataclass(frozen=True)
class Provider:
    name: str
    base_url: str
    key_name: str
    completion: Completion = field(compare=False)
    default_model: str = ""
    models: Mapping[str, int] = field(default_factory=dict, compare=False)
    org_key: Optional[str] = None

    def __post_init__(self) -> None:
        if self.org_key is None:
            object.__setattr__(self, "org_key", self.key_name + "_ORG")

    def max_tokens_for(self, model: str, fallback: int = 128000) -> int:
        return self.models.get(model, fallback)

    def config(self, model: Optional[str] = None) -> "Config":
        """Config for *model* (or this provider's default model)."""
        from ...config.settings import Config
        name = model or self.default_model
        return Config.init(self, name, self.max_tokens_for(name))

    def default(self) -> "Config":
        return self.config()

    @staticmethod
    def all() -> Tuple["Provider", ...]:
        """Providers probed, in order, when choosing the default config."""
        return (ANTHROPIC, DEEPSEEK, OPENAI, GEMINI, GROQ, OPENROUTER)

    @staticmethod
    def find(name: str) -> "Provider":
        for provider in Provider.all() + (OLLAMA,):
            if provider.name.lower() == name.lower():
                return provider
        known = [p.name for p in Provider.all() + (OLLAMA,)]
        raise KeyError(f"Unknown provider: {name}. Available: {known}")


ANTHROPIC = Provider(
    "Anthropic",
    "https://api.anthropic.com",
    "ANTHROPIC_API_KEY",
    AnthropicCompletion(),
    default_model="claude-3-5-sonnet-latest",
    models={
        "claude-3-7-sonnet-latest": 200000,
        "claude-3-5-sonnet-latest": 200000,
        "claude-3-5-haiku-latest": 200000,
        "claude-3-opus-latest": 200000,
        "claude-3-haiku-20240307": 200000,
    },
)

DEEPSEEK = Provider(
    "DeepSeek",
    "https://api.deepseek.com/v1",
    "DEEPSEEK_API_KEY",
    OpenAICompletion(),
    default_model="deepseek-chat",
    models={"deepseek-chat": 64000, "deepseek-reasoner": 64000},
)

OPENAI = Provider(
    "OpenAI",
    "https://api.openai.com/v1",
    "OPENAI_API_KEY",
    OpenAICompletion(),
    default_model="gpt-4o",
    models={
        "gpt-4o": 128000,
        "gpt-4o-mini": 128000,
        "gpt-4": 8192,
        "gpt-4-turbo": 128000,
        "gpt-3.5-turbo": 4096,
        "o1": 200000,
        "o3-mini": 200000,
    },
)

GEMINI = Provider(
    "Gemini",
    "https://generativelanguage.googleapis.com/v1beta/openai/",
    "GEMINI_API_KEY",
    OpenAICompletion(),
    default_model="gemini-1.5-pro",
    models={
        "gemini-2.0-flash-exp": 1048576,
        "gemini-1.5-flash": 1048576,
        "gemini-1.5-flash-8b": 1048576,
        "gemini-1.5-pro": 2097152,
    },
)

GROQ = Provider(
    "Groq",
    "https://api.groq.com/openai/v1",
    "GROQ_API_KEY",
    OpenAICompletion(),
    default_model="llama-3.3-70b-versatile",
    models={
        "llama-3.3-70b-versatile": 32768,
        "llama-3.1-8b-instant": 8192,
        "mixtral-8x7b-32768": 32768,
        "qwen-2.5-32b": 8192,
        "deepseek-r1-distill-llama-70b-specdec": 16384,
    },
)

OPENROUTER = Provider(
    "OpenRouter",
    "https://openrouter.ai/api/v1",
    "OPENROUTER_API_KEY",
    OpenAICompletion(default_headers={
        "HTTP-Referer": "https://github.com/reasonloop",
        "X-Title": "reasonloop",
    }),
    default_model="openai/gpt-4o",
    models={"openai/gpt-4o": 128000, "anthropic/claude-sonnet-4": 200000},
)

OLLAMA = Provider(
    "Ollama",
    "http://localhost:11434",
    "OLLAMA_API_KEY",
    OllamaCompletion(),
    default_model="llama3.1",
    models={"llama3.1": 128000, "qwen2.5": 32768},
)
