"""
JSON Schema normalization.

pydantic produces draft 2020-12 schemas with ``$defs``/``$ref`` indirection,
auto-generated titles and defaults. Models are given a flattened, canonical
shape instead:

* references inlined; recursive types are rejected
* ``title`` and ``default`` dropped, ``description`` kept
* records get exact ``properties``, ``required`` (every non-nullable
  property) and ``additionalProperties: false``
* ``Optional[T]`` unwraps to ``T``; ``const`` becomes a one-item ``enum``
* validation keywords preserved
"""

from __future__ import annotations

from typing import Any, Dict, Tuple

CONSTRAINT_KEYS = (
    "minLength", "maxLength", "pattern", "format",
    "minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum", "multipleOf",
    "minItems", "maxItems", "uniqueItems",
    "minProperties", "maxProperties",
)

_UNION_KEYS = ("anyOf", "oneOf")


def normalize(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Return the canonical form of a pydantic-generated JSON schema."""
    defs = schema.get("$defs", {})
    return _normalize(schema, defs, ())


def is_nullable(schema: Dict[str, Any]) -> bool:
    typ = schema.get("type")
    if typ == "null" or (isinstance(typ, list) and "null" in typ):
        return True
    for key in _UNION_KEYS:
        if any(option.get("type") == "null" for option in schema.get(key, ())):
            return True
    return False


def _ref_name(ref: str) -> str:
    return ref.rsplit("/", 1)[-1]


def _without(node: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    return {k: v for k, v in node.items() if k not in keys}


def _normalize(node: Dict[str, Any], defs: Dict[str, Any], stack: Tuple[str, ...]) -> Dict[str, Any]:
    if "$ref" in node:
        name = _ref_name(node["$ref"])
        if name in stack:
            raise ValueError(f"Recursive type {name!r} has no finite JSON schema")
        merged = dict(defs[name])
        merged.update(_without(node, "$ref"))
        return _normalize(merged, defs, stack + (name,))

    if "allOf" in node and len(node["allOf"]) == 1:
        merged = dict(node["allOf"][0])
        merged.update(_without(node, "allOf"))
        return _normalize(merged, defs, stack)

    for key in _UNION_KEYS:
        if key in node:
            options = [o for o in node[key] if o.get("type") != "null"]
            if len(options) == 1:
                merged = dict(options[0])
                merged.update(_without(node, key, "default", "title"))
                return _normalize(merged, defs, stack)
            out: Dict[str, Any] = {}
            if "description" in node:
                out["description"] = node["description"]
            out["anyOf"] = [_normalize(o, defs, stack) for o in options]
            return out

    typ = node.get("type")
    if isinstance(typ, list):
        non_null = [t for t in typ if t != "null"]
        typ = non_null[0] if len(non_null) == 1 else non_null

    out = {}
    if typ is not None:
        out["type"] = typ
    if "description" in node:
        out["description"] = node["description"]

    if "properties" in node:
        props = node["properties"]
        out["type"] = "object"
        out["properties"] = {
            name: _normalize(prop, defs, stack) for name, prop in props.items()
        }
        out["required"] = [name for name, prop in props.items() if not is_nullable(prop)]
        out["additionalProperties"] = False
    elif isinstance(node.get("additionalProperties"), dict):
        out["additionalProperties"] = _normalize(node["additionalProperties"], defs, stack)
    elif node.get("additionalProperties") is False:
        out["additionalProperties"] = False

    if "items" in node and isinstance(node["items"], dict):
        out["items"] = _normalize(node["items"], defs, stack)
    if "prefixItems" in node:
        out["prefixItems"] = [_normalize(item, defs, stack) for item in node["prefixItems"]]

    if "const" in node:
        out["enum"] = [node["const"]]
    elif "enum" in node:
        out["enum"] = list(node["enum"])

    for key in CONSTRAINT_KEYS:
        if key in node:
            out[key] = node[key]
    return out
