"""
Parameter normalization for AI action calls.

The AI layer delivers ``parameters`` in several shapes: a mapping, a JSON
string, a list whose first element is a JSON string, a JSON string encoding
such a list, or an array-like mapping (``{"0": "...", "length": 1}``).
:func:`parse_params` tries each shape as an explicit case and returns either
:class:`ParsedParams` or :class:`ParseFailure`; :func:`normalize` collapses
that into a best-effort value and never raises.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from slackmod.errors import truncate_context
from slackmod.exceptions import ErrorKind

logger = logging.getLogger(__name__)


class ParamShape(str, Enum):
    """Input shape recognized by the parser."""

    EMPTY = "empty"
    MAPPING = "mapping"
    ARRAY_LIKE = "array_like"
    JSON_ARRAY = "json_array"
    JSON_STRING = "json_string"
    OTHER = "other"


@dataclass(frozen=True)
class ParsedParams:
    """Successful parse. ``value`` is usually a mapping."""

    value: Any
    shape: ParamShape


@dataclass(frozen=True)
class ParseFailure:
    """A recognized shape whose JSON payload did not decode.

    ``fallback`` is the best-effort passthrough value handed to callers.
    """

    raw: Any
    shape: ParamShape
    reason: str
    fallback: Any
    kind: ErrorKind = field(default=ErrorKind.PARSE_ERROR)


ParseResult = Union[ParsedParams, ParseFailure]


def _is_array_like(raw: Mapping) -> bool:
    length = raw.get("length")
    return (
        isinstance(length, int)
        and not isinstance(length, bool)
        and length > 0
        and isinstance(raw.get("0"), str)
    )


def _parse_string(raw: str) -> ParseResult:
    try:
        decoded = json.loads(raw)
        if isinstance(decoded, list) and decoded and isinstance(decoded[0], str):
            return ParsedParams(json.loads(decoded[0]), ParamShape.JSON_ARRAY)
    except (TypeError, ValueError, RecursionError) as e:
        return ParseFailure(raw, ParamShape.JSON_STRING, str(e), fallback={"raw": raw})
    return ParsedParams(decoded, ParamShape.JSON_STRING)


def parse_params(raw: Any) -> ParseResult:
    """Decode AI call parameters into a discriminated result.

    Args:
        raw: The ``parameters`` field as received

    Returns:
        ParsedParams on success, ParseFailure when a JSON payload was
        expected but did not decode
    """
    if raw is None:
        return ParsedParams({}, ParamShape.EMPTY)

    if isinstance(raw, Mapping):
        if _is_array_like(raw):
            try:
                return ParsedParams(json.loads(raw["0"]), ParamShape.ARRAY_LIKE)
            except (ValueError, RecursionError) as e:
                return ParseFailure(raw, ParamShape.ARRAY_LIKE, str(e), fallback=raw)
        return ParsedParams(raw, ParamShape.MAPPING)

    if isinstance(raw, (list, tuple)):
        if raw and isinstance(raw[0], str):
            try:
                return ParsedParams(json.loads(raw[0]), ParamShape.JSON_ARRAY)
            except (ValueError, RecursionError) as e:
                return ParseFailure(raw, ParamShape.JSON_ARRAY, str(e), fallback=raw)
        return ParsedParams(raw, ParamShape.OTHER)

    if isinstance(raw, str):
        return _parse_string(raw)

    return ParsedParams(raw, ParamShape.OTHER)


def normalize(raw: Any) -> Any:
    """Best-effort normalization of AI call parameters. Never raises."""
    result = parse_params(raw)
    if isinstance(result, ParseFailure):
        logger.warning(
            f"Failed to parse {result.shape.value} parameters, passing through: "
            f"{result.reason} ({truncate_context(repr(result.raw))})"
        )
        return result.fallback
    return result.value


def normalize_mapping(raw: Any) -> dict[str, Any]:
    """Normalize and coerce to a dict; non-mapping results become ``{}``."""
    value = normalize(raw)
    if isinstance(value, Mapping):
        return dict(value)
    logger.debug(f"Parameters normalized to {type(value).__name__}, using empty mapping")
    return {}
