"""
Tool Registry — typed, named callables the model may invoke.

Tools are enabled for a block with ``tool.enable()`` (or
``Tool.enable(a, b)``); the active list is task-local. ``dispatch`` runs the
calls of one assistant message against the active tools and records the
outcome of each call as a tool message.
"""

from __future__ import annotations

import inspect
import itertools
import logging
import typing
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, ContextManager, Optional, Sequence, Tuple

from .conversation import Call, ToolMessage
from .errors import AIError, ToolCallError, ToolExecutionError
from .json_codec import Json
from .prompt import Prompt
from .scope import ScopedValue
from .structured_logger import log_context

if TYPE_CHECKING:
    from .ai import AI

logger = logging.getLogger(__name__)

RESULT_TOOL_NAME = "result_tool"
RESULT_TOOL_DESCRIPTION = "Call this tool with the result."

TOOL_NOT_FOUND = "Tool not found: "
PROCESSING = "Processing tool call."
TOOL_CALL_FAILURE = "Tool call failure: "


class _Absent:
    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT: Any = _Absent()


@dataclass(frozen=True)
class ToolInfo:
    """Metadata and body of one tool."""
    name: str
    description: str
    prompt: Prompt
    run: Callable[[Any], Any]
    input_json: Json
    output_json: Json

    @property
    def input_schema(self) -> dict:
        return self.input_json.json_schema

    async def invoke(self, arguments: str) -> str:
        """
        Decode *arguments*, run the body and encode its output.

        Raises ``DecodeError`` for malformed arguments; whatever the body
        raises propagates unchanged.
        """
        value = self.input_json.decode(arguments).get()
        output = self.run(value)
        if inspect.isawaitable(output):
            output = await output
        return self.output_json.encode(output)


_local: ScopedValue[Tuple["Tool", ...]] = ScopedValue("reasonloop_tools", ())


class Tool:
    """
    A group of tool infos that can be enabled together.

    Usage::

        @Tool.init(str, "calculator", "Evaluates arithmetic expressions")
        def calculator(expression: str) -> float:
            ...

        with calculator.enable():
            answer = await ai.gen(Answer, "What is 1+2?")
    """

    def __init__(self, infos: Tuple[ToolInfo, ...]):
        self.infos = infos

    @classmethod
    def init(
        cls,
        input_type: Any,
        name: str,
        description: str = "",
        prompt: Optional[Prompt] = None,
        *,
        output_type: Any = None,
        run: Optional[Callable[[Any], Any]] = None,
    ):
        """Build a tool, or return a decorator when *run* is omitted."""
        if name == RESULT_TOOL_NAME:
            raise ValueError(f"Tool name {RESULT_TOOL_NAME!r} is reserved")

        def build(fn: Callable[[Any], Any]) -> "Tool":
            out_type = output_type if output_type is not None else _return_type(fn)
            return cls._make(input_type, out_type, name, description, prompt or Prompt.empty(), fn)

        if run is None:
            return build
        return build(run)

    @classmethod
    def _make(cls, input_type, output_type, name, description, prompt, run) -> "Tool":
        info = ToolInfo(
            name=name,
            description=description,
            prompt=prompt,
            run=run,
            input_json=Json.of(input_type),
            output_json=Json.of(output_type),
        )
        return cls((info,))

    @classmethod
    def aggregate(cls, *tools: "Tool") -> "Tool":
        return cls(tuple(itertools.chain.from_iterable(t.infos for t in tools)))

    def enable(self, *more: "Tool") -> ContextManager[Tuple["Tool", ...]]:
        """Append this tool (and *more*) to the active tools for the block."""
        return _local.update(lambda active: active + (self,) + more)

    @staticmethod
    def active() -> Tuple["Tool", ...]:
        return _local.get()

    @staticmethod
    def all_infos() -> Tuple[ToolInfo, ...]:
        """Flattened infos of every active tool, in activation order."""
        return tuple(itertools.chain.from_iterable(t.infos for t in _local.get()))

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(info.name for info in self.infos)

    def __repr__(self) -> str:
        return f"Tool({list(self.names)})"


def _return_type(fn: Callable) -> Any:
    try:
        hints = typing.get_type_hints(fn)
    except (NameError, TypeError):
        return Any
    return hints.get("return", Any)


def result_tool(json: Json) -> Tuple[Tool, Callable[[], Any]]:
    """
    Single-use tool carrying the model's final answer.

    Returns the tool and a getter yielding the decoded value, or ``ABSENT``
    if the tool was never called.
    """
    cell = [ABSENT]

    def store(value: Any) -> None:
        cell[0] = value

    info = ToolInfo(
        name=RESULT_TOOL_NAME,
        description=RESULT_TOOL_DESCRIPTION,
        prompt=Prompt.empty(),
        run=store,
        input_json=json,
        output_json=Json.of(type(None)),
    )
    return Tool((info,)), lambda: cell[0]


async def dispatch(ai: "AI", tools: Sequence[ToolInfo], calls: Sequence[Call]) -> None:
    """
    Run *calls* in order against *tools*, recording each outcome.

    Unknown names and declared failures become tool messages. Any other
    exception from a tool body is fatal.
    """
    for call in calls:
        tool = next((t for t in tools if t.name == call.function), None)
        if tool is None:
            logger.warning("Tool not found: %s", call.function)
            ai.update(lambda c: c.tool_message(call.id, TOOL_NOT_FOUND + call.function))
            continue

        placeholder = ToolMessage(call.id, PROCESSING)
        ai.update(lambda c: c.add(placeholder))
        try:
            with log_context(tool_name=tool.name):
                output = await tool.invoke(call.arguments)
            logger.debug("Tool %s completed (call %s)", tool.name, call.id)
        except ToolCallError as e:
            logger.warning("Tool %s failed: %s", tool.name, e)
            output = TOOL_CALL_FAILURE + e.message
        except AIError:
            raise
        except Exception as e:
            raise ToolExecutionError(f"Tool {tool.name!r} raised {type(e).__name__}: {e}") from e

        result = ToolMessage(call.id, output)
        ai.update(lambda c: c.replace(placeholder, result))
