"""
Json codecs — schema, encode and decode for a Python type.

``Json.of(tp)`` returns a cached codec. Plain types, dataclasses and pydantic
models go through a pydantic ``TypeAdapter``; a root-level ``Union`` of record
types becomes a ``SumJson`` keyed by case name.

Decoding never raises: it returns a ``Decoded`` whose ``error`` is a
``DecodeError`` carrying the parse or validation message.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import types
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar, Union, get_args, get_origin

from pydantic import BaseModel, TypeAdapter, ValidationError

from .errors import DecodeError
from .json_schema import normalize

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Decoded(Generic[T]):
    """Outcome of a decode."""
    value: Optional[T] = None
    error: Optional[DecodeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def get(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


class Json(ABC, Generic[T]):
    """Codec for values of one type."""

    _cache: Dict[Any, "Json"] = {}

    @property
    @abstractmethod
    def json_schema(self) -> Dict[str, Any]:
        ...

    @abstractmethod
    def to_python(self, value: T) -> Any:
        """Convert *value* to JSON-compatible Python data."""

    @abstractmethod
    def from_python(self, data: Any) -> T:
        """Validate JSON-compatible data. Raises DecodeError."""

    def encode(self, value: T) -> str:
        return json.dumps(self.to_python(value), ensure_ascii=False)

    def encode_pretty(self, value: T) -> str:
        return json.dumps(self.to_python(value), ensure_ascii=False, indent=2)

    def decode(self, text: str) -> Decoded[T]:
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            return Decoded(error=DecodeError(f"Invalid JSON: {e}"))
        try:
            return Decoded(self.from_python(data))
        except DecodeError as e:
            return Decoded(error=e)

    @staticmethod
    def of(tp: Any) -> "Json":
        try:
            cached = Json._cache.get(tp)
        except TypeError:
            # unhashable annotation (e.g. Annotated with a FieldInfo)
            return _build(tp)
        if cached is None:
            cached = _build(tp)
            Json._cache[tp] = cached
        return cached


def is_record(tp: Any) -> bool:
    if dataclasses.is_dataclass(tp) and isinstance(tp, type):
        return True
    return isinstance(tp, type) and issubclass(tp, BaseModel)


def _union_cases(tp: Any) -> Optional[tuple]:
    if get_origin(tp) not in (Union, types.UnionType):
        return None
    cases = get_args(tp)
    if cases and all(is_record(case) for case in cases):
        return cases
    return None


def _build(tp: Any) -> Json:
    cases = _union_cases(tp)
    if cases is not None:
        return SumJson(cases)
    return TypeJson(tp)


class TypeJson(Json[T]):
    """Codec backed by a pydantic TypeAdapter. Aliases are honored."""

    def __init__(self, tp: Any):
        self.tp = tp
        self._adapter = TypeAdapter(tp)
        self._schema: Optional[Dict[str, Any]] = None

    @property
    def json_schema(self) -> Dict[str, Any]:
        if self._schema is None:
            self._schema = normalize(self._adapter.json_schema(by_alias=True))
        return self._schema

    def to_python(self, value: T) -> Any:
        return self._adapter.dump_python(value, mode="json", by_alias=True)

    def from_python(self, data: Any) -> T:
        try:
            return self._adapter.validate_python(data)
        except ValidationError as e:
            raise DecodeError(str(e)) from e

    def __repr__(self) -> str:
        return f"TypeJson({self.tp!r})"


class SumJson(Json[Any]):
    """
    Tagged union of record types.

    Encoded as ``{"CaseName": {...fields}}``; the schema permits exactly one
    of the case names as key.
    """

    def __init__(self, cases: tuple):
        self.cases = {case.__name__: (case, TypeJson(case)) for case in cases}

    @property
    def json_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {name: codec.json_schema for name, (_, codec) in self.cases.items()},
            "additionalProperties": False,
            "minProperties": 1,
            "maxProperties": 1,
        }

    def to_python(self, value: Any) -> Any:
        for name, (case, codec) in self.cases.items():
            if isinstance(value, case):
                return {name: codec.to_python(value)}
        raise TypeError(f"{type(value).__name__} is not one of {list(self.cases)}")

    def from_python(self, data: Any) -> Any:
        if not isinstance(data, dict) or len(data) != 1:
            raise DecodeError(f"Expected an object with exactly one key of {list(self.cases)}")
        name, payload = next(iter(data.items()))
        if name not in self.cases:
            raise DecodeError(f"Unknown case {name!r}, expected one of {list(self.cases)}")
        return self.cases[name][1].from_python(payload)

    def __repr__(self) -> str:
        return f"SumJson({list(self.cases)})"
