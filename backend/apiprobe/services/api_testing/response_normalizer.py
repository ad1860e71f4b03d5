"""Turns raw response bodies into inspectable JSON values."""

import json
import logging
from dataclasses import dataclass

from apiprobe.services.api_testing.errors import ParseFailure
from apiprobe.services.api_testing.json_value import JsonValue
from apiprobe.services.api_testing.path_resolver import step_count

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedResponse:
    """A response body as a JSON value.

    structured is False when the body was kept as an opaque string.
    """
    value: JsonValue
    structured: bool
    content_type: str | None = None


def decode_body(raw_body: str | bytes) -> str:
    if isinstance(raw_body, str):
        return raw_body
    try:
        return raw_body.decode("utf-8")
    except UnicodeDecodeError:
        return raw_body.decode("latin-1")


def normalize(raw_body: str | bytes, content_type_hint: str | None = None) -> NormalizedResponse:
    """
    Parse a body as JSON, falling back to the raw text.

    JSON parsing is always attempted first, whatever the content type says.
    A body that does not parse (including an empty one, or one nested too
    deeply for the decoder) becomes a string value.
    """
    text = decode_body(raw_body)

    if text.strip():
        try:
            return NormalizedResponse(value=json.loads(text), structured=True, content_type=content_type_hint)
        except (ValueError, RecursionError):
            if content_type_hint and "json" in content_type_hint.lower():
                logger.warning("Response declared %s but is not valid JSON", content_type_hint)

    return NormalizedResponse(value=text, structured=False, content_type=content_type_hint)


def ensure_path_access(normalized: NormalizedResponse, paths: list[str]) -> None:
    """
    Check that every path can be looked up in the normalized body.

    An opaque string supports the empty path and single-step paths (it is a
    scalar, so those simply do not resolve). A multi-step path needs a
    structured body.

    Raises:
        ParseFailure: If a multi-step path meets an unstructured body
    """
    if normalized.structured:
        return

    for path in paths:
        if step_count(path) > 1:
            raise ParseFailure(
                f"Response body is not valid JSON; cannot resolve path '{path}'"
            )
