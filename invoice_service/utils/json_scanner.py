"""Lenient JSON extraction for provider bodies polluted with log noise.

The OCR provider occasionally prefixes or suffixes its JSON payload with
diagnostic text. `extract_json` locates the first balanced object/array
region and hands it to the strict parser.
"""

from __future__ import annotations

import json
from typing import Any


class LenientJSONError(ValueError):
    """No JSON region could be located or the located region did not parse."""


def find_json_region(text: str) -> str:
    """Return the first balanced `{...}` or `[...]` substring of ``text``.

    Depth is tracked only for the opening delimiter actually found, string
    state and backslash escapes are honoured so quoted braces do not count.
    When no closing delimiter balances the region the remainder is returned
    unchanged and the strict parser reports the error.
    """
    clean = text.strip()
    brace = clean.find("{")
    bracket = clean.find("[")
    if brace == -1 and bracket == -1:
        raise LenientJSONError(f"No JSON found in response: {text[:200]}")

    if brace != -1 and (bracket == -1 or brace < bracket):
        start = brace
    else:
        start = bracket
    clean = clean[start:]

    open_char = clean[0]
    close_char = "}" if open_char == "{" else "]"
    depth = 0
    in_string = False
    escape_next = False

    for idx, char in enumerate(clean):
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                return clean[: idx + 1]
    return clean


def extract_json(text: str) -> Any:
    """Parse ``text`` leniently, raising LenientJSONError on failure."""
    region = find_json_region(text)
    try:
        return json.loads(region)
    except json.JSONDecodeError as e:
        raise LenientJSONError(f"Invalid JSON in response: {e.msg}") from e
