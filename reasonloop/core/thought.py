"""
Thought Framework — typed reasoning fields injected into the result schema.

A thought is a record type whose field names are often full sentences acting
as in-band instructions. Opening thoughts are produced before the result
value, closing thoughts after it. Once the result tool is called, every
thought's ``process`` callback receives its decoded value.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ContextManager, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .errors import DecodeError, InvalidThoughtError
from .json_codec import Json
from .scope import ScopedValue

logger = logging.getLogger(__name__)

OPENING_KEY = "openingThoughts"
RESULT_KEY = "resultValue"
CLOSING_KEY = "closingThoughts"
ENVELOPE_DESCRIPTION = (
    "Generate valid json strictly following the json schema. Do NOT generate xml-like content."
)


class Position(Enum):
    OPENING = "opening"
    CLOSING = "closing"


@dataclass(frozen=True)
class ThoughtInfo:
    name: str
    position: Position
    value_json: Json
    process: Optional[Callable[[Any], Any]] = None

    async def run(self, value: Any) -> None:
        if self.process is None:
            return
        out = self.process(value)
        if inspect.isawaitable(out):
            await out


_local: ScopedValue[Tuple["Thought", ...]] = ScopedValue("reasonloop_thoughts", ())


class Thought:
    """
    A group of thought infos that can be enabled together.

    Usage::

        class Plan(BaseModel):
            steps: list[str] = Field(alias="What steps will I take to answer?")

        with Thought.opening(Plan, lambda plan: plans.append(plan)).enable():
            answer = await ai.gen(str, question)
    """

    def __init__(self, infos: Tuple[ThoughtInfo, ...]):
        self.infos = infos

    @classmethod
    def init(
        cls,
        tp: Any,
        position: Position,
        process: Optional[Callable[[Any], Any]] = None,
        name: Optional[str] = None,
    ) -> "Thought":
        info = ThoughtInfo(name or tp.__name__, position, Json.of(tp), process)
        return cls((info,))

    @classmethod
    def opening(cls, tp: Any, process: Optional[Callable[[Any], Any]] = None,
                name: Optional[str] = None) -> "Thought":
        return cls.init(tp, Position.OPENING, process, name)

    @classmethod
    def closing(cls, tp: Any, process: Optional[Callable[[Any], Any]] = None,
                name: Optional[str] = None) -> "Thought":
        return cls.init(tp, Position.CLOSING, process, name)

    @classmethod
    def aggregate(cls, *thoughts: "Thought") -> "Thought":
        return cls(tuple(itertools.chain.from_iterable(t.infos for t in thoughts)))

    def enable(self, *more: "Thought") -> ContextManager[Tuple["Thought", ...]]:
        return _local.update(lambda active: active + (self,) + more)

    @staticmethod
    def all_infos() -> Tuple[ThoughtInfo, ...]:
        """Active thought infos, or the default pair when none are enabled."""
        active = _local.get()
        if not active:
            return DEFAULT.infos
        return tuple(itertools.chain.from_iterable(t.infos for t in active))

    def __repr__(self) -> str:
        return f"Thought({[i.name for i in self.infos]})"


# ── Default thoughts ────────────────────────────────────────────────

class Reflect(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    understanding: str = Field(
        alias="Let me reflect if I understand my role, what I need to do, and how I'll proceed",
    )
    follows_schema: bool = Field(
        True, alias="I'll strictly follow the tool's json schema and system instructions",
    )


class Check(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    followed_instructions: bool = Field(
        True, alias="I have strictly followed my role and all system instructions",
    )


DEFAULT = Thought.aggregate(Thought.opening(Reflect), Thought.closing(Check))


# ── Result envelope ─────────────────────────────────────────────────

@dataclass(frozen=True)
class ResultEnvelope:
    opening: Dict[str, Any] = field(default_factory=dict)
    result: Any = None
    closing: Dict[str, Any] = field(default_factory=dict)


def _unique(thoughts: Sequence[ThoughtInfo]) -> List[ThoughtInfo]:
    seen = set()
    out = []
    for info in thoughts:
        if info.name not in seen:
            seen.add(info.name)
            out.append(info)
    return out


class EnvelopeJson(Json[ResultEnvelope]):
    """
    Codec for ``{openingThoughts, resultValue, closingThoughts}``.

    Thought fields are exactly the active thought names; the first info wins
    when two share a name. Unknown thought keys are decoded as raw values so
    ``handle`` can reject them.
    """

    def __init__(self, result_json: Json, thoughts: Sequence[ThoughtInfo]):
        self.result_json = result_json
        unique = _unique(thoughts)
        self.by_name = {info.name: info for info in unique}
        self.opening = [i for i in unique if i.position is Position.OPENING]
        self.closing = [i for i in unique if i.position is Position.CLOSING]

    @staticmethod
    def _section_schema(title: str, infos: List[ThoughtInfo]) -> Dict[str, Any]:
        return {
            "title": title,
            "type": "object",
            "properties": {info.name: info.value_json.json_schema for info in infos},
            "required": [info.name for info in infos],
            "additionalProperties": False,
        }

    @property
    def json_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "description": ENVELOPE_DESCRIPTION,
            "properties": {
                OPENING_KEY: self._section_schema("OpeningThoughts", self.opening),
                RESULT_KEY: self.result_json.json_schema,
                CLOSING_KEY: self._section_schema("ClosingThoughts", self.closing),
            },
            "required": [OPENING_KEY, RESULT_KEY, CLOSING_KEY],
            "additionalProperties": False,
        }

    def _section_to_python(self, values: Dict[str, Any]) -> Dict[str, Any]:
        out = {}
        for name, value in values.items():
            info = self.by_name.get(name)
            out[name] = info.value_json.to_python(value) if info else value
        return out

    def to_python(self, value: ResultEnvelope) -> Any:
        return {
            OPENING_KEY: self._section_to_python(value.opening),
            RESULT_KEY: self.result_json.to_python(value.result),
            CLOSING_KEY: self._section_to_python(value.closing),
        }

    def _section_from_python(self, key: str, data: Any) -> Dict[str, Any]:
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise DecodeError(f"{key} must be an object")
        out = {}
        for name, value in data.items():
            info = self.by_name.get(name)
            out[name] = info.value_json.from_python(value) if info else value
        return out

    def from_python(self, data: Any) -> ResultEnvelope:
        if not isinstance(data, dict):
            raise DecodeError("Expected a JSON object")
        if RESULT_KEY not in data:
            raise DecodeError(f"Missing required field {RESULT_KEY!r}")
        return ResultEnvelope(
            opening=self._section_from_python(OPENING_KEY, data.get(OPENING_KEY)),
            result=self.result_json.from_python(data[RESULT_KEY]),
            closing=self._section_from_python(CLOSING_KEY, data.get(CLOSING_KEY)),
        )


def result_json(result: Json, thoughts: Sequence[ThoughtInfo]) -> EnvelopeJson:
    return EnvelopeJson(result, thoughts)


async def handle(thoughts: Sequence[ThoughtInfo], envelope: ResultEnvelope) -> Any:
    """
    Run every thought callback concurrently and return the result value.

    An unknown thought name is fatal. Callbacks are all joined; the first
    failure is re-raised once every callback has finished.
    """
    by_name: Dict[str, ThoughtInfo] = {}
    for info in thoughts:
        by_name.setdefault(info.name, info)

    pending = []
    for name, value in itertools.chain(envelope.opening.items(), envelope.closing.items()):
        info = by_name.get(name)
        if info is None:
            raise InvalidThoughtError(f"invalid thought: {name}")
        pending.append((info, value))

    outcomes = await asyncio.gather(
        *(info.run(value) for info, value in pending), return_exceptions=True,
    )
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome
    logger.debug("Processed %d thoughts", len(pending))
    return envelope.result
