"""
Generation Orchestrator — the core loop.

Each round of ``AI.gen``:
  active thoughts + tools → envelope schema + result tool → enriched context
  → provider call (meter, timeout, retry) → append assistant message
  → dispatch every call → result tool called? run thoughts, return value
  → else loop, until ``config.max_iterations`` rounds have passed.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import contextmanager
from typing import Any, Callable, ContextManager, Iterator, Optional, Sequence, Type, TypeVar, Union

from ..config.settings import Config
from .conversation import AssistantMessage, Conversation, Image
from .errors import ErrorCode, MaxIterationsExceeded, ProviderError
from .json_codec import Json
from .mode import handle as handle_modes
from .prompt import enriched_context
from .retry import retry_async
from .scope import ScopedValue
from .structured_logger import generate_trace_id, log_context
from .thought import handle as handle_thoughts, result_json, Thought
from .tool import ABSENT, Tool, ToolInfo, dispatch, result_tool

logger = logging.getLogger(__name__)

A = TypeVar("A")


class AI:
    """
    A generation session: the live conversation.

    Config, prompts, tools, thoughts and modes are read from the task-local
    scope at each round, so they can be changed between ``gen`` calls with
    ``enable()`` blocks.

    Usage::

        with AI.run(config) as ai:
            ai.system_message("You are a helpful assistant.")
            answer = await ai.gen(str, "What is the capital of France?")
    """

    def __init__(self, conversation: Conversation = Conversation.empty()):
        self._conversation = conversation

    # ── Session scope ──────────────────────────────────────────

    @classmethod
    @contextmanager
    def run(cls, config: Optional[Config] = None) -> Iterator["AI"]:
        """Fresh session bound as ``AI.current()`` for the block."""
        ai = cls()
        with _current.let(ai):
            if config is None:
                yield ai
            else:
                with config.enable():
                    yield ai

    @staticmethod
    def current() -> "AI":
        ai = _current.get()
        if ai is None:
            raise RuntimeError("No active AI session. Use `with AI.run() as ai:`")
        return ai

    @staticmethod
    def with_config(config: Union[Config, Callable[[Config], Config]]) -> ContextManager[Config]:
        if isinstance(config, Config):
            return config.enable()
        return Config.update(config)

    # ── Conversation ───────────────────────────────────────────

    @property
    def conversation(self) -> Conversation:
        return self._conversation

    def update(self, f: Callable[[Conversation], Conversation]) -> None:
        self._conversation = f(self._conversation)

    def system_message(self, content: str) -> None:
        self.update(lambda c: c.system_message(content))

    def user_message(self, content: str, image: Optional[Image] = None) -> None:
        self.update(lambda c: c.user_message(content, image))

    def assistant_message(self, content: str) -> None:
        self.update(lambda c: c.assistant_message(content))

    @contextmanager
    def forget(self) -> Iterator["AI"]:
        """
        Discard conversation changes made inside the block.

        Only the conversation log is restored; side effects of tools called
        inside the block are not undone.
        """
        saved = self._conversation
        try:
            yield self
        finally:
            self._conversation = saved

    @contextmanager
    def fresh(self) -> Iterator["AI"]:
        """Run the block on an empty conversation, then restore the previous one."""
        saved = self._conversation
        self._conversation = Conversation.empty()
        try:
            yield self
        finally:
            self._conversation = saved

    def fork(self) -> "AI":
        """Isolated branch starting from the current conversation."""
        return AI(self._conversation)

    def join(self, child: "AI") -> None:
        """Merge a forked branch back without duplicating shared history."""
        self._conversation = self._conversation.merge(child.conversation)

    # ── Generation ─────────────────────────────────────────────

    async def gen(self, result_type: Type[A], *inputs: Any) -> A:
        """
        Generate a value of *result_type*.

        Inputs, if given, are added as one user message (several inputs as a
        JSON array). Raises ``MaxIterationsExceeded`` when the model never
        calls the result tool, ``ProviderError`` when the provider keeps
        failing, and ``ConfigurationError`` when credentials are missing.
        """
        if inputs:
            self.user_message(_encode_inputs(inputs))

        config = Config.current()
        codec = Json.of(result_type)

        with log_context(trace_id=generate_trace_id()), _current.let(self):
            iterations = 0
            while True:
                result = await handle_modes(self, codec, lambda ai: ai._eval(codec))
                if result is not ABSENT:
                    logger.info("Generation completed after %d iterations", iterations + 1)
                    return result
                if iterations >= config.max_iterations:
                    raise MaxIterationsExceeded(
                        f"Eval loop exceeded max iterations ({config.max_iterations})"
                    )
                iterations += 1
                logger.debug("No result_tool call, starting iteration %d", iterations)

    async def _eval(self, codec: Json) -> Any:
        """One round. Returns the result value, or ``ABSENT``."""
        with _current.let(self):
            config = Config.current()
            thoughts = Thought.all_infos()
            envelope_json = result_json(codec, thoughts)
            tool, get_result = result_tool(envelope_json)
            all_tools = Tool.all_infos() + tool.infos

            context = await enriched_context(self, all_tools)
            message = await _complete(config, context, all_tools)
            self.update(lambda c: c.add(message))

            await dispatch(self, all_tools, message.calls)

            envelope = get_result()
            if envelope is ABSENT:
                return ABSENT
            return await handle_thoughts(thoughts, envelope)

    def __repr__(self) -> str:
        return f"AI({len(self._conversation)} messages)"


_current: ScopedValue[Optional[AI]] = ScopedValue("reasonloop_ai", None)


def _encode_inputs(inputs: Sequence[Any]) -> str:
    if len(inputs) == 1:
        return Json.of(type(inputs[0])).encode_pretty(inputs[0])
    data = [Json.of(type(value)).to_python(value) for value in inputs]
    return json.dumps(data, ensure_ascii=False, indent=2)


async def _complete(config: Config, context: Conversation,
                    tools: Sequence[ToolInfo]) -> AssistantMessage:
    """Provider call wrapped in timeout, meter and retry."""
    completion = config.provider.completion

    async def attempt() -> AssistantMessage:
        try:
            return await asyncio.wait_for(
                completion.complete(config, context, tools), timeout=config.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(
                f"Provider call timed out after {config.timeout}s", ErrorCode.PROVIDER_TIMEOUT,
            ) from e

    return await retry_async(config.meter.run, attempt, policy=config.retry_policy)
