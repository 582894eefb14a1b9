"""Parse the oracle's free-text answer into raw cluster objects."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

import orjson

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_ARRAY_RE = re.compile(r"\[\s*\{[\s\S]*\}\s*\]")


@dataclass
class ParsedClusters:
    """Oracle text held a JSON array of objects."""

    clusters: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class ParseFailure:
    """No JSON array could be extracted or decoded."""

    reason: str


@dataclass
class SchemaFailure:
    """Valid JSON, but not an array of objects."""

    reason: str


ParseResult = ParsedClusters | ParseFailure | SchemaFailure


def _extract_candidate(text: str) -> str | None:
    fence = _FENCE_RE.search(text)
    body = fence.group(1) if fence else text
    match = _ARRAY_RE.search(body)
    if match:
        return match.group(0)
    stripped = body.strip()
    # Allow an explicit empty array so the validator can report it.
    if stripped.startswith("[") and stripped.endswith("]"):
        return stripped
    return None


def parse_oracle_response(text: str) -> ParseResult:
    """Extract the cluster array from an oracle answer.

    The answer may wrap the JSON in a markdown code fence or surround it with
    prose. Only the outermost ``[{...}]`` span is decoded.
    """
    candidate = _extract_candidate(text)
    if candidate is None:
        return ParseFailure(reason="No JSON array found in response")

    try:
        data = orjson.loads(candidate)
    except orjson.JSONDecodeError as e:
        return ParseFailure(reason=f"Invalid JSON: {e}")

    if not isinstance(data, list):
        return SchemaFailure(reason=f"Expected a JSON array, got {type(data).__name__}")

    for position, item in enumerate(data):
        if not isinstance(item, dict):
            return SchemaFailure(
                reason=f"Element {position} is {type(item).__name__}, expected an object"
            )

    return ParsedClusters(clusters=data)
