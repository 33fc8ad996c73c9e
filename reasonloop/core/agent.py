"""
Agent Runtime — a generation pipeline behind a single-consumer mailbox.

Messages are processed strictly one at a time by one consumer task that owns
a persistent ``AI`` session, so the agent remembers earlier asks. Callers
``ask`` (await the reply) or ``tell`` (fire-and-forget).
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence, Tuple, Union

from ..config.settings import Config
from .ai import AI
from .errors import AgentClosedError
from .prompt import Prompt
from .structured_logger import log_context
from .thought import Thought
from .tool import Tool

logger = logging.getLogger(__name__)

Behavior = Callable[[AI, Any], Union[Any, Awaitable[Any]]]
Step = Callable[[AI, Any, Any], Union[Tuple[Any, Any], Awaitable[Tuple[Any, Any]]]]


@dataclass
class _Envelope:
    input: Any
    reply: Optional[asyncio.Future] = None


class Agent:
    """
    Mailbox-backed, stateful wrapper around a generation pipeline.

    Flow:
      ask(input) → mailbox → consumer task → behavior(ai, input) → reply

    ``mailbox_size > 0`` bounds the mailbox; producers then suspend while it
    is full. ``mailbox_size == 0`` never blocks producers.

    Usage::

        async def answer(ai, question):
            return await ai.gen(str, question)

        async with Agent.run(answer, prompt=Prompt.init("Be concise.")) as agent:
            print(await agent.ask("What is a monad?"))
    """

    def __init__(
        self,
        step: Step,
        state: Any = None,
        *,
        prompt: Optional[Prompt] = None,
        tools: Sequence[Tool] = (),
        thoughts: Sequence[Thought] = (),
        config: Optional[Config] = None,
        mailbox_size: int = 0,
        max_messages: Optional[int] = None,
        name: str = "agent",
    ):
        self.name = name
        self.state = state
        self.processed = 0
        self.ai: Optional[AI] = None
        self._step = step
        self._prompt = prompt
        self._tools = tuple(tools)
        self._thoughts = tuple(thoughts)
        self._config = config
        self._max_messages = max_messages
        self._queue: asyncio.Queue[_Envelope] = asyncio.Queue(maxsize=mailbox_size)
        self._closed = False
        self._in_flight: Optional[_Envelope] = None
        self._task: Optional[asyncio.Task] = None

    # ── Construction ───────────────────────────────────────────

    @classmethod
    def run(cls, behavior: Behavior, **options: Any) -> "Agent":
        """Start an agent replying with ``behavior(ai, input)``. Needs a running loop."""

        async def step(ai: AI, state: Any, value: Any) -> Tuple[Any, Any]:
            out = behavior(ai, value)
            if inspect.isawaitable(out):
                out = await out
            return state, out

        return cls(step, None, **options).start()

    @classmethod
    def run_loop(cls, state: Any, step: Step, **options: Any) -> "Agent":
        """Start an agent threading *state* through ``step(ai, state, input) -> (state, out)``."""
        return cls(step, state, **options).start()

    def start(self) -> "Agent":
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._consume(), name=f"agent:{self.name}")
        return self

    # ── Messaging ──────────────────────────────────────────────

    async def ask(self, value: Any) -> Any:
        """Send *value* and await the reply. Behavior errors are raised here."""
        reply = asyncio.get_running_loop().create_future()
        await self._send(_Envelope(value, reply))
        return await reply

    async def tell(self, value: Any) -> None:
        """Send *value* without waiting for the reply. Errors are logged."""
        await self._send(_Envelope(value))

    async def _send(self, envelope: _Envelope) -> None:
        if self._closed:
            raise AgentClosedError(f"Agent {self.name!r} is closed")
        await self._queue.put(envelope)
        if self._closed:
            # closed while this producer was suspended on a full mailbox
            self._fail(envelope)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def close(self) -> None:
        """Stop the consumer. Pending and in-flight asks fail with AgentClosedError."""
        self._closed = True
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._fail_pending()

    async def __aenter__(self) -> "Agent":
        return self.start()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ── Consumer ───────────────────────────────────────────────

    async def _consume(self) -> None:
        with ExitStack() as stack:
            stack.enter_context(log_context(agent_name=self.name))
            if self._prompt is not None:
                stack.enter_context(self._prompt.enable())
            if self._tools:
                stack.enter_context(Tool.aggregate(*self._tools).enable())
            if self._thoughts:
                stack.enter_context(Thought.aggregate(*self._thoughts).enable())
            self.ai = stack.enter_context(AI.run(self._config))

            while not self._closed:
                envelope = await self._queue.get()
                self._in_flight = envelope
                await self._process(envelope)
                self._in_flight = None
                self.processed += 1
                if self._max_messages is not None and self.processed >= self._max_messages:
                    logger.info(f"Agent {self.name} reached max messages ({self._max_messages})")
                    self._closed = True

        self._fail_pending()

    async def _process(self, envelope: _Envelope) -> None:
        try:
            out = self._step(self.ai, self.state, envelope.input)
            if inspect.isawaitable(out):
                out = await out
            self.state, reply = out
        except Exception as e:
            if envelope.reply is None:
                logger.error(f"Agent {self.name} failed on told message: {e}", exc_info=True)
            elif not envelope.reply.done():
                envelope.reply.set_exception(e)
            return
        if envelope.reply is not None and not envelope.reply.done():
            envelope.reply.set_result(reply)

    def _fail(self, envelope: _Envelope) -> None:
        if envelope.reply is not None and not envelope.reply.done():
            envelope.reply.set_exception(AgentClosedError(f"Agent {self.name!r} is closed"))

    def _fail_pending(self) -> None:
        if self._in_flight is not None:
            self._fail(self._in_flight)
            self._in_flight = None
        while not self._queue.empty():
            self._fail(self._queue.get_nowait())

    def __repr__(self) -> str:
        state = "closed" if self._closed else "running"
        return f"Agent({self.name!r}, {state}, processed={self.processed})"
