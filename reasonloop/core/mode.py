"""
Modes — middleware around one evaluation round.

A mode receives the session, the result codec and the wrapped round, and
returns the round's outcome (a value or ``ABSENT``). Enabled modes compose
outermost first.
"""

from __future__ import annotations

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Awaitable, Callable, ContextManager, Tuple

from ..config.settings import Config
from ..prompts.behavioral_rules import TEMPERATURE_SAMPLING_PROMPT
from .json_codec import Json
from .prompt import prompt_text
from .scope import ScopedValue
from .tool import ABSENT

if TYPE_CHECKING:
    from .ai import AI

logger = logging.getLogger(__name__)

Round = Callable[["AI"], Awaitable[Any]]


class Mode(ABC):

    @abstractmethod
    async def apply(self, ai: "AI", result_json: Json, gen: Round) -> Any:
        ...

    def enable(self) -> ContextManager[Tuple["Mode", ...]]:
        return _local.update(lambda modes: modes + (self,))

    @staticmethod
    def active() -> Tuple["Mode", ...]:
        return _local.get()


_local: ScopedValue[Tuple[Mode, ...]] = ScopedValue("reasonloop_modes", ())


async def handle(ai: "AI", result_json: Json, gen: Round) -> Any:
    """Run *gen* wrapped by every active mode."""

    def wrap(modes: Tuple[Mode, ...]) -> Round:
        if not modes:
            return gen
        head, inner = modes[0], wrap(modes[1:])
        return lambda session: head.apply(session, result_json, inner)

    return await wrap(_local.get())(ai)


class TemperatureSampling(Mode):
    """
    Generates several candidate answers with random temperatures and seeds,
    then asks the model to reconcile them into one.

    The candidates run concurrently on forked sessions whose context is
    discarded; only the encoded answers are added to the conversation.
    """

    def __init__(self, generations: int):
        if generations < 1:
            raise ValueError("generations must be >= 1")
        self.generations = generations

    async def apply(self, ai: "AI", result_json: Json, gen: Round) -> Any:
        async def sample() -> Any:
            child = ai.fork()
            temperature = random.random()
            seed = random.randrange(2 ** 31)
            with Config.update(lambda c: c.with_temperature(temperature).with_seed(seed)):
                return await gen(child)

        alternatives = await asyncio.gather(*(sample() for _ in range(self.generations)))
        present = [a for a in alternatives if a is not ABSENT]
        logger.debug("Temperature sampling produced %d/%d answers", len(present), self.generations)

        ai.update(
            lambda c: c.system_message(prompt_text(TEMPERATURE_SAMPLING_PROMPT)).system_message(
                "\n\n".join(result_json.encode(a) for a in present)
            )
        )
        return await gen(ai)

    def __repr__(self) -> str:
        return f"TemperatureSampling({self.generations})"
