"""
Prompt composition — primary instructions plus floating reminders.

A ``Prompt`` holds two sequences of parts. A part is either a string or a
callable taking the live ``AI`` session and returning a string (or an
awaitable of one), so prompts may embed current conversation state.
Composition keeps the first occurrence of each part. Parts are evaluated at
render time, de-duplicated by value and joined into system messages:
primary text at the start of the context, reminders right before the
generation point.
"""

from __future__ import annotations

import inspect
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, ContextManager, List, Sequence, Tuple, Union

from ..prompts.behavioral_rules import (
    DESCRIPTION_FORMAT,
    MAIN_SEPARATOR,
    OPERATIONAL_PROMPT,
    OPERATIONAL_REMINDER,
    REMINDER_HEADER,
    SECTION_SEPARATOR,
    TOOL_HEADER_FORMAT,
    TOOL_REMINDER_HEADER_FORMAT,
)
from .conversation import Conversation
from .scope import ScopedValue

if TYPE_CHECKING:
    from .ai import AI
    from .tool import ToolInfo

PromptPart = Union[str, Callable[["AI"], Union[str, Awaitable[str]]]]

_LEADING_INDENT = re.compile(r"\n\s+")


def prompt_text(text: str) -> str:
    """Strip indentation after newlines and surrounding whitespace."""
    return _LEADING_INDENT.sub("\n", text).strip()


@dataclass(frozen=True)
class Prompt:
    """
    Two-part instruction object.

    Usage::

        reviewer = Prompt.init("You review pull requests.", reminder="Be terse.")
        with reviewer.enable():
            verdict = await ai.gen(Verdict, diff)
    """

    prompts: Tuple[PromptPart, ...] = ()
    reminders: Tuple[PromptPart, ...] = ()

    @classmethod
    def init(cls, prompt: PromptPart, reminder: PromptPart = "") -> "Prompt":
        return cls(_parts(prompt), _parts(reminder))

    @classmethod
    def empty(cls) -> "Prompt":
        return _EMPTY

    @classmethod
    def current(cls) -> "Prompt":
        return _local.get()

    def and_then(self, other: "Prompt") -> "Prompt":
        """Concatenate both sequences, keeping the first occurrence of each part."""
        if other is self:
            return self
        return Prompt(
            _distinct(self.prompts + other.prompts),
            _distinct(self.reminders + other.reminders),
        )

    def enable(self) -> ContextManager["Prompt"]:
        """Layer this prompt on top of the active one for the block."""
        return _local.update(lambda active: active.and_then(self))

    @property
    def is_empty(self) -> bool:
        return not self.prompts and not self.reminders

    async def render_prompts(self, ai: "AI") -> List[str]:
        return await _evaluate(self.prompts, ai)

    async def render_reminders(self, ai: "AI") -> List[str]:
        return await _evaluate(self.reminders, ai)


def _parts(part: PromptPart) -> Tuple[PromptPart, ...]:
    if isinstance(part, str) and not part.strip():
        return ()
    return (part,)


async def _evaluate(parts: Sequence[PromptPart], ai: "AI") -> List[str]:
    out: List[str] = []
    for part in parts:
        if callable(part):
            value = part(ai)
            if inspect.isawaitable(value):
                value = await value
        else:
            value = part
        if value and value.strip() and value not in out:
            out.append(value)
    return out


def _distinct(parts: Sequence[PromptPart]) -> Tuple[PromptPart, ...]:
    # strings compare by value, callables by identity
    out: List[PromptPart] = []
    for part in parts:
        if isinstance(part, str):
            if part in (p for p in out if isinstance(p, str)):
                continue
        elif any(p is part for p in out):
            continue
        out.append(part)
    return tuple(out)


_EMPTY = Prompt()
_local: ScopedValue[Prompt] = ScopedValue("reasonloop_prompt", _EMPTY)

DEFAULT = Prompt.init(prompt_text(OPERATIONAL_PROMPT), prompt_text(OPERATIONAL_REMINDER))


def _section(header_format: str, name: str, description: str, texts: List[str]) -> str:
    header = header_format % name
    desc = DESCRIPTION_FORMAT % description if description else ""
    return header + desc + SECTION_SEPARATOR.join(texts)


def _join_blocks(main: str, tools: str) -> str:
    if main and tools:
        return main + MAIN_SEPARATOR + tools
    return main + tools


async def render(ai: "AI", tools: Sequence["ToolInfo"]) -> Tuple[str, str]:
    """Render (system text, reminder text) for the active prompt and *tools*."""
    merged = Prompt.current().and_then(DEFAULT)
    prompts = await merged.render_prompts(ai)
    reminders = await merged.render_reminders(ai)

    tool_sections = []
    tool_reminders = []
    for tool in tools:
        tool_sections.append(
            _section(TOOL_HEADER_FORMAT, tool.name, tool.description, await tool.prompt.render_prompts(ai))
        )
        texts = await tool.prompt.render_reminders(ai)
        if texts:
            tool_reminders.append(_section(TOOL_REMINDER_HEADER_FORMAT, tool.name, tool.description, texts))

    main = MAIN_SEPARATOR.join(prompts)
    system = _join_blocks(main, "".join(tool_sections))

    main_reminders = REMINDER_HEADER + SECTION_SEPARATOR.join(reminders) if reminders else ""
    reminder = _join_blocks(main_reminders, "".join(tool_reminders))
    return system, reminder


async def enriched_context(ai: "AI", tools: Sequence["ToolInfo"]) -> Conversation:
    """System instructions, then the live conversation, then the reminders."""
    system, reminder = await render(ai, tools)
    return (
        Conversation.empty()
        .system_message(system)
        .merge(ai.conversation)
        .system_message(reminder)
    )
