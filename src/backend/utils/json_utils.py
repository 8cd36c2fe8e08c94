"""Centralized JSON serialization and tolerant parsing utilities."""

from __future__ import annotations

import json
import re

from collections.abc import Callable
from functools import partial
from typing import Any

# Compact JSON serialization (no spaces) with fallback to str for non-serializable types.
# Example: json_compact({"key": "value"}) -> '{"key":"value"}'
json_compact: Callable[..., str] = partial(json.dumps, separators=(",", ":"), default=str)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_json_object(text: str) -> dict[str, Any]:
    """Extract the first JSON object from model output.

    Models asked for JSON sometimes wrap it in a fenced code block or surround
    it with prose. The whole text is tried first, then fenced blocks, then the
    first decodable ``{...}`` span.

    Raises:
        ValueError: If no JSON object can be found.
    """
    stripped = text.strip()
    candidates = [stripped, *(m.strip() for m in _FENCED_BLOCK.findall(stripped))]

    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value

    decoder = json.JSONDecoder()
    for match in re.finditer(r"\{", stripped):
        try:
            value, _ = decoder.raw_decode(stripped, match.start())
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value

    raise ValueError("No JSON object found in model output")
