"""
Error Catalog — fault taxonomy for generation rounds.

Every fatal fault raised out of ``AI.gen`` is an ``AIError`` carrying an
``ErrorCode`` (E1xxx–E4xxx), so callers can tell which phase failed:
configuration, transport, budget, schema, or an unexpected tool fault.

Recoverable faults never leave the orchestrator. They are ``ToolCallError``
instances that tool dispatch turns into a tool message for the model.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional


# ── Error categories ────────────────────────────────────────────────

class ErrorCategory(Enum):
    PROVIDER = "provider"      # E1xxx
    TOOL = "tool"              # E2xxx
    GENERATION = "generation"  # E3xxx
    CONFIG = "config"          # E4xxx


# ── Error codes ─────────────────────────────────────────────────────

class ErrorCode(Enum):
    # Provider errors (E1xxx)
    PROVIDER_REQUEST_FAILED = "E1001"
    PROVIDER_INVALID_RESPONSE = "E1002"
    PROVIDER_TIMEOUT = "E1003"
    PROVIDER_RETRIES_EXHAUSTED = "E1004"

    # Tool errors (E2xxx)
    TOOL_EXECUTION_FAILED = "E2001"
    TOOL_CALL_FAILED = "E2002"
    TOOL_DECODE_FAILED = "E2003"

    # Generation errors (E3xxx)
    GENERATION_MAX_ITERATIONS = "E3001"
    GENERATION_INVALID_THOUGHT = "E3002"
    GENERATION_AGENT_CLOSED = "E3003"

    # Config errors (E4xxx)
    CONFIG_MISSING_KEY = "E4001"
    CONFIG_INVALID_VALUE = "E4002"


_PREFIX_TO_CATEGORY = {
    "1": ErrorCategory.PROVIDER,
    "2": ErrorCategory.TOOL,
    "3": ErrorCategory.GENERATION,
    "4": ErrorCategory.CONFIG,
}


def category_for(code: ErrorCode) -> ErrorCategory:
    return _PREFIX_TO_CATEGORY[code.value[1]]


# ── Static catalog of recovery hints ────────────────────────────────

_HINTS: Dict[ErrorCode, str] = {
    ErrorCode.PROVIDER_REQUEST_FAILED: "Check that the provider endpoint is reachable and the model name is valid.",
    ErrorCode.PROVIDER_INVALID_RESPONSE: "The provider returned a payload that could not be parsed. Retry or check provider status.",
    ErrorCode.PROVIDER_TIMEOUT: "Increase the timeout in config or shorten the conversation.",
    ErrorCode.PROVIDER_RETRIES_EXHAUSTED: "Every attempt failed. Raise retry_policy.max_attempts or check provider health.",
    ErrorCode.TOOL_EXECUTION_FAILED: "A tool body raised an unexpected exception. Fix the tool or raise ToolCallError instead.",
    ErrorCode.TOOL_CALL_FAILED: "The tool reported a failure to the model.",
    ErrorCode.TOOL_DECODE_FAILED: "The tool arguments did not match the tool's input schema.",
    ErrorCode.GENERATION_MAX_ITERATIONS: "The model never called result_tool. Raise max_iterations or simplify the request.",
    ErrorCode.GENERATION_INVALID_THOUGHT: "The model produced a thought field that is not enabled.",
    ErrorCode.GENERATION_AGENT_CLOSED: "The agent mailbox is closed. Start a new agent.",
    ErrorCode.CONFIG_MISSING_KEY: "Set the provider API key environment variable (e.g. OPENAI_API_KEY).",
    ErrorCode.CONFIG_INVALID_VALUE: "Check the config YAML file or environment overrides.",
}

def recovery_hint(code: ErrorCode) -> str:
    return _HINTS.get(code, "No recovery hint available.")


# ── Fatal faults ────────────────────────────────────────────────────

class AIError(Exception):
    """Fatal fault of a generation call."""

    default_code = ErrorCode.TOOL_EXECUTION_FAILED

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    @property
    def category(self) -> ErrorCategory:
        return category_for(self.code)

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def full_message(self) -> str:
        return f"{self}\nHint: {recovery_hint(self.code)}"


class ConfigurationError(AIError):
    """Missing credentials or invalid settings. Never retried."""
    default_code = ErrorCode.CONFIG_MISSING_KEY


class ProviderError(AIError):
    """Transport or vendor fault: non-2xx, malformed payload, timeout."""
    default_code = ErrorCode.PROVIDER_REQUEST_FAILED


class MaxIterationsExceeded(AIError):
    """The model never answered through result_tool within the budget."""
    default_code = ErrorCode.GENERATION_MAX_ITERATIONS


class InvalidThoughtError(AIError):
    default_code = ErrorCode.GENERATION_INVALID_THOUGHT


class ToolExecutionError(AIError):
    default_code = ErrorCode.TOOL_EXECUTION_FAILED


class AgentClosedError(AIError):
    default_code = ErrorCode.GENERATION_AGENT_CLOSED


# ── Recoverable faults ──────────────────────────────────────────────

class ToolCallError(Exception):
    """Declared tool failure, reported to the model as a tool message."""

    code = ErrorCode.TOOL_CALL_FAILED

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class DecodeError(ToolCallError):
    """A JSON payload did not decode into the expected type."""
    code = ErrorCode.TOOL_DECODE_FAILED


def is_retryable(exception: BaseException) -> bool:
    """Return True if a provider attempt that raised *exception* may be repeated."""
    return not isinstance(exception, ConfigurationError)
