"""Path expressions into JSON values, e.g. data.items[0].id."""

import re
from functools import lru_cache
from typing import NamedTuple

from apiprobe.services.api_testing.errors import PathSyntaxError
from apiprobe.services.api_testing.json_value import JsonValue

# A step is an object key (str) or an array index (int)
PathStep = str | int

SEGMENT_PATTERN = re.compile(r"^([^.\[\]]*)((?:\[[0-9]+\])*)$")
INDEX_PATTERN = re.compile(r"\[([0-9]+)\]")


class Resolution(NamedTuple):
    found: bool
    value: JsonValue = None


NOT_FOUND = Resolution(found=False)


@lru_cache(maxsize=1024)
def parse_path(expression: str) -> tuple[PathStep, ...]:
    """
    Parse a path expression into steps.

    Grammar:
    - Segments separated by "."
    - Each segment is a key, optionally followed by one or more [n] indices
    - A segment may be indices only, e.g. "[0].id" or "matrix[1][0]"
    - The empty path addresses the whole value

    Raises:
        PathSyntaxError: If the expression does not follow the grammar
    """
    if not expression or not expression.strip():
        return ()

    steps: list[PathStep] = []
    for segment in expression.strip().split("."):
        if not segment:
            raise PathSyntaxError(expression, "empty segment")
        match = SEGMENT_PATTERN.match(segment)
        if not match:
            raise PathSyntaxError(expression, f"malformed segment '{segment}'")
        key, indices = match.groups()
        if not key and not indices:
            raise PathSyntaxError(expression, f"malformed segment '{segment}'")
        if key:
            steps.append(key)
        steps.extend(int(index) for index in INDEX_PATTERN.findall(indices))

    return tuple(steps)


def resolve(value: JsonValue, path: str | tuple[PathStep, ...]) -> Resolution:
    """
    Walk a value along a path.

    Stops with found=False at the first step that cannot be satisfied:
    missing key, index out of range, or stepping into a scalar. Never raises,
    an unparseable expression resolves to found=False as well.

    Examples:
        - "" -> the whole value
        - "data.items[0].id" -> value["data"]["items"][0]["id"]
        - "users.0.name" -> value["users"][0]["name"] when users is an array
    """
    if isinstance(path, str):
        try:
            steps = parse_path(path)
        except PathSyntaxError:
            return NOT_FOUND
    else:
        steps = path

    current = value
    for step in steps:
        if isinstance(step, int):
            if isinstance(current, list) and step < len(current):
                current = current[step]
            else:
                return NOT_FOUND

        elif isinstance(current, dict):
            if step in current:
                current = current[step]
            else:
                return NOT_FOUND

        # Numeric key against an array acts as an index
        elif isinstance(current, list) and step.isascii() and step.isdigit():
            index = int(step)
            if index < len(current):
                current = current[index]
            else:
                return NOT_FOUND

        else:
            return NOT_FOUND

    return Resolution(found=True, value=current)


def step_count(path: str) -> int:
    """Number of steps in a path, 0 for the empty path."""
    return len(parse_path(path))
