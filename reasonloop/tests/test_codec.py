"""
Schema/Codec Tests — Json.of, schema normalization, tagged unions.

Covers:
  - Canonical schemas (refs inlined, titles/defaults dropped, required, closed objects)
  - Sentence-style aliases as JSON keys
  - Primitive, collection, literal and enum schemas
  - Decode never raises; errors carry DecodeError
  - SumJson tagged unions
"""

import json
import os
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple, Union

import pytest
from pydantic import BaseModel, ConfigDict, Field

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from reasonloop.core.errors import DecodeError, ToolCallError
from reasonloop.core.json_codec import Decoded, Json, SumJson, TypeJson
from reasonloop.core.json_schema import is_nullable, normalize


# ── Fixtures ─────────────────────────────────────────────────

@dataclass(frozen=True)
class Point:
    x: int
    y: Optional[int] = None


class Inner(BaseModel):
    v: str


class Outer(BaseModel):
    inner: Inner
    items: List[Inner]


class Reflection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    thought: str = Field(alias="What do I already know about this?")


class Bounded(BaseModel):
    count: int = Field(ge=1, le=5, description="How many items")
    level: int = 3


class Color(Enum):
    RED = "red"
    GREEN = "green"


@dataclass(frozen=True)
class Circle:
    radius: float


@dataclass(frozen=True)
class Square:
    side: float


class Drawing(BaseModel):
    shape: Union[Circle, Square]


class Node(BaseModel):
    children: List["Node"]


Node.model_rebuild()


# ═══════════════════════════════════════════════════════════════════
#  Schema derivation
# ═══════════════════════════════════════════════════════════════════


class TestSchema:

    def test_primitives(self):
        assert Json.of(str).json_schema == {"type": "string"}
        assert Json.of(int).json_schema == {"type": "integer"}
        assert Json.of(float).json_schema == {"type": "number"}
        assert Json.of(bool).json_schema == {"type": "boolean"}

    def test_dataclass_record(self):
        assert Json.of(Point).json_schema == {
            "type": "object",
            "properties": {"x": {"type": "integer"}, "y": {"type": "integer"}},
            "required": ["x"],
            "additionalProperties": False,
        }

    def test_refs_inlined(self):
        schema = Json.of(Outer).json_schema
        inner = {
            "type": "object",
            "properties": {"v": {"type": "string"}},
            "required": ["v"],
            "additionalProperties": False,
        }
        assert schema["properties"]["inner"] == inner
        assert schema["properties"]["items"] == {"type": "array", "items": inner}
        assert "$defs" not in json.dumps(schema)
        assert "$ref" not in json.dumps(schema)

    def test_no_titles(self):
        assert '"title"' not in json.dumps(Json.of(Outer).json_schema)

    def test_alias_sentence_is_key(self):
        schema = Json.of(Reflection).json_schema
        assert list(schema["properties"]) == ["What do I already know about this?"]
        assert schema["required"] == ["What do I already know about this?"]

    def test_constraints_and_description_kept(self):
        schema = Json.of(Bounded).json_schema
        count = schema["properties"]["count"]
        assert count["minimum"] == 1
        assert count["maximum"] == 5
        assert count["description"] == "How many items"

    def test_non_nullable_default_is_required(self):
        schema = Json.of(Bounded).json_schema
        assert set(schema["required"]) == {"count", "level"}
        assert "default" not in schema["properties"]["level"]

    def test_literal(self):
        assert Json.of(Literal["a", "b"]).json_schema["enum"] == ["a", "b"]
        assert Json.of(Literal["only"]).json_schema["enum"] == ["only"]

    def test_enum(self):
        schema = Json.of(Color).json_schema
        assert schema["enum"] == ["red", "green"]

    def test_dict(self):
        assert Json.of(Dict[str, int]).json_schema == {
            "type": "object",
            "additionalProperties": {"type": "integer"},
        }

    def test_tuple(self):
        schema = Json.of(Tuple[int, str]).json_schema
        assert schema["prefixItems"] == [{"type": "integer"}, {"type": "string"}]
        assert schema["minItems"] == 2

    def test_nested_union_is_any_of(self):
        shape = Json.of(Drawing).json_schema["properties"]["shape"]
        assert len(shape["anyOf"]) == 2
        assert shape["anyOf"][0]["properties"] == {"radius": {"type": "number"}}

    def test_recursive_type_rejected(self):
        with pytest.raises(ValueError, match="Recursive"):
            Json.of(Node).json_schema

    def test_is_nullable(self):
        assert is_nullable({"anyOf": [{"type": "string"}, {"type": "null"}]})
        assert is_nullable({"type": ["string", "null"]})
        assert not is_nullable({"type": "string"})

    def test_normalize_unwraps_single_all_of(self):
        schema = {
            "$defs": {"A": {"type": "object", "properties": {"a": {"type": "string"}}}},
            "allOf": [{"$ref": "#/$defs/A"}],
            "description": "wrapped",
        }
        out = normalize(schema)
        assert out["description"] == "wrapped"
        assert out["properties"] == {"a": {"type": "string"}}
        assert out["additionalProperties"] is False


# ═══════════════════════════════════════════════════════════════════
#  Encode / decode
# ═══════════════════════════════════════════════════════════════════


class TestCodec:

    def test_cached(self):
        assert Json.of(Point) is Json.of(Point)
        assert isinstance(Json.of(int), TypeJson)

    def test_encode_compact_and_unicode(self):
        assert Json.of(str).encode("café") == '"café"'

    def test_encode_pretty(self):
        pretty = Json.of(Point).encode_pretty(Point(1, 2))
        assert pretty == '{\n  "x": 1,\n  "y": 2\n}'

    def test_round_trip_dataclass(self):
        codec = Json.of(Point)
        point = Point(3, None)
        assert codec.decode(codec.encode(point)).value == point

    def test_alias_round_trip(self):
        codec = Json.of(Reflection)
        value = codec.decode('{"What do I already know about this?": "enough"}').get()
        assert value.thought == "enough"
        assert json.loads(codec.encode(value)) == {"What do I already know about this?": "enough"}

    def test_invalid_json_does_not_raise(self):
        decoded = Json.of(int).decode("not json")
        assert not decoded.ok
        assert isinstance(decoded.error, DecodeError)
        assert decoded.error.message.startswith("Invalid JSON")

    def test_validation_error(self):
        decoded = Json.of(Point).decode('{"y": 1}')
        assert not decoded.ok
        assert "x" in decoded.error.message

    def test_get_raises_decode_error(self):
        with pytest.raises(DecodeError):
            Json.of(int).decode("[").get()

    def test_decode_error_is_recoverable(self):
        assert issubclass(DecodeError, ToolCallError)

    def test_decoded_ok(self):
        decoded = Json.of(int).decode("5")
        assert decoded == Decoded(5)
        assert decoded.get() == 5


# ═══════════════════════════════════════════════════════════════════
#  Tagged unions
# ═══════════════════════════════════════════════════════════════════


class TestSumJson:

    def test_root_union_of_records(self):
        codec = Json.of(Union[Circle, Square])
        assert isinstance(codec, SumJson)

    def test_optional_record_is_not_sum(self):
        assert isinstance(Json.of(Optional[Circle]), TypeJson)

    def test_schema(self):
        schema = Json.of(Union[Circle, Square]).json_schema
        assert set(schema["properties"]) == {"Circle", "Square"}
        assert schema["minProperties"] == 1
        assert schema["maxProperties"] == 1
        assert schema["additionalProperties"] is False

    def test_encode(self):
        codec = Json.of(Union[Circle, Square])
        assert json.loads(codec.encode(Circle(1.5))) == {"Circle": {"radius": 1.5}}

    def test_decode(self):
        codec = Json.of(Union[Circle, Square])
        assert codec.decode('{"Square": {"side": 2}}').get() == Square(2.0)

    def test_decode_unknown_case(self):
        decoded = Json.of(Union[Circle, Square]).decode('{"Triangle": {}}')
        assert not decoded.ok
        assert "Triangle" in decoded.error.message

    def test_decode_requires_one_key(self):
        codec = Json.of(Union[Circle, Square])
        assert not codec.decode("{}").ok
        assert not codec.decode('{"Circle": {"radius": 1}, "Square": {"side": 1}}').ok
