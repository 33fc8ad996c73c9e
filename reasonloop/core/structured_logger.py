"""
Structured Logger — JSON logging, trace IDs, and contextual fields.

Every ``gen`` call opens a ``log_context`` with a fresh trace id; the
``TraceIDFilter`` stamps the task-local context (trace_id, agent_name,
tool_name, provider_name) onto every record. Two output modes:

- **JSON mode** (`REASONLOOP_LOG_FORMAT=json`): each line is a JSON object.
- **Human mode** (default): traditional format with `[trace_id]` prefix.
"""

from __future__ import annotations

import contextvars
import json
import logging
import os
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterator, Optional


# ── LogContext ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class LogContext:
    """Immutable bag of contextual fields attached to every log line."""
    trace_id: str = ""
    agent_name: str = ""
    tool_name: str = ""
    provider_name: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    def merged_with(self, **kwargs: Any) -> "LogContext":
        """Return a *new* LogContext with the given fields overridden."""
        new_extra = {**self.extra, **kwargs.pop("extra", {})}
        return replace(self, extra=new_extra, **kwargs)


_current_context: contextvars.ContextVar[LogContext] = contextvars.ContextVar(
    "reasonloop_log_context", default=LogContext(),
)


def current_log_context() -> LogContext:
    return _current_context.get()


@contextmanager
def log_context(**kwargs: Any) -> Iterator[LogContext]:
    """Merge fields into the task-local log context for the block."""
    ctx = _current_context.get().merged_with(**kwargs)
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def generate_trace_id() -> str:
    """Generate a short 12-char hex trace ID."""
    return uuid.uuid4().hex[:12]


# ── JSON formatter ──────────────────────────────────────────────────

class StructuredFormatter(logging.Formatter):
    """Emits each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for ctx_field in ("trace_id", "agent_name", "tool_name", "provider_name"):
            val = getattr(record, ctx_field, "")
            if val:
                entry[ctx_field] = val

        log_extra = getattr(record, "log_extra", None)
        if log_extra:
            entry["extra"] = log_extra

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


# ── Human-readable formatter (with trace_id) ───────────────────────

class HumanFormatter(logging.Formatter):
    """Traditional format with optional [trace_id] prefix."""

    def __init__(self, fmt: Optional[str] = None, datefmt: Optional[str] = None):
        super().__init__(
            fmt=fmt or "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt=datefmt or "%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        trace_id = getattr(record, "trace_id", "")
        if trace_id:
            return f"[{trace_id}] {line}"
        return line


# ── TraceIDFilter ───────────────────────────────────────────────────

class TraceIDFilter(logging.Filter):
    """Injects the task-local LogContext fields into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = _current_context.get()
        record.trace_id = getattr(record, "trace_id", "") or ctx.trace_id
        record.agent_name = getattr(record, "agent_name", "") or ctx.agent_name
        record.tool_name = getattr(record, "tool_name", "") or ctx.tool_name
        record.provider_name = getattr(record, "provider_name", "") or ctx.provider_name
        if ctx.extra and not getattr(record, "log_extra", None):
            record.log_extra = dict(ctx.extra)
        return True


# ── Module-level setup function ─────────────────────────────────────

def setup_structured_logging(
    json_mode: Optional[bool] = None,
    level: str = "WARNING",
) -> None:
    """
    Configure the root logger for structured output.

    Parameters
    ----------
    json_mode : bool or None
        If None, auto-detect from ``REASONLOOP_LOG_FORMAT`` env var
        (set to ``"json"`` to enable JSON mode).
    level : str
        Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    if json_mode is None:
        json_mode = os.getenv("REASONLOOP_LOG_FORMAT", "").lower() == "json"

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))
    root.handlers.clear()

    handler = logging.StreamHandler()
    if json_mode:
        handler.setFormatter(StructuredFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
    else:
        handler.setFormatter(HumanFormatter())
    handler.addFilter(TraceIDFilter())

    root.addHandler(handler)
