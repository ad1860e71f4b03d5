"""Closed JSON value type and type-sensitive comparison helpers."""

import json
from enum import StrEnum
from typing import Any, TypeAlias, Union

JsonValue: TypeAlias = Union[None, bool, int, float, str, list["JsonValue"], dict[str, "JsonValue"]]


class JsonKind(StrEnum):
    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


def json_kind(value: Any) -> JsonKind:
    """
    Classify a value as one of the six JSON kinds.

    bool is checked before int so that True is never treated as a number.

    Raises:
        TypeError: If the value is not a JSON value
    """
    if value is None:
        return JsonKind.NULL
    if isinstance(value, bool):
        return JsonKind.BOOLEAN
    if isinstance(value, (int, float)):
        return JsonKind.NUMBER
    if isinstance(value, str):
        return JsonKind.STRING
    if isinstance(value, list):
        return JsonKind.ARRAY
    if isinstance(value, dict):
        return JsonKind.OBJECT
    raise TypeError(f"Not a JSON value: {type(value).__name__}")


def is_json_value(value: Any) -> bool:
    """Check recursively that a value only contains JSON kinds with string object keys."""
    try:
        kind = json_kind(value)
    except TypeError:
        return False
    if kind is JsonKind.ARRAY:
        return all(is_json_value(item) for item in value)
    if kind is JsonKind.OBJECT:
        return all(isinstance(key, str) and is_json_value(item) for key, item in value.items())
    return True


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def deep_equals(left: JsonValue, right: JsonValue) -> bool:
    """
    Structural equality that never crosses JSON kinds.

    "1" != 1 and True != 1, arrays compare element by element in order,
    objects compare by key set and per-key value.
    """
    left_kind = json_kind(left)
    if left_kind is not json_kind(right):
        return False

    if left_kind is JsonKind.ARRAY:
        return len(left) == len(right) and all(
            deep_equals(a, b) for a, b in zip(left, right)
        )

    if left_kind is JsonKind.OBJECT:
        return left.keys() == right.keys() and all(
            deep_equals(left[key], right[key]) for key in left
        )

    return left == right


def describe(value: JsonValue, limit: int = 100) -> str:
    """Short JSON-ish rendering of a value for assertion messages."""
    try:
        text = json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        text = repr(value)
    return text[:limit] + "..." if len(text) > limit else text
