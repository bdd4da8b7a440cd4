"""
Tolerant JSON extraction from LLM completion text.

Models frequently wrap the requested JSON in prose or Markdown fences:

    Sure! Here is the extraction:
    ```json
    {"policy_number": "GL-123", ...}
    ```
    Let me know if you need anything else.

Resolution order:
  1. a ```json fenced block
  2. any fenced block whose body starts with "{"
  3. the first balanced {...} object anywhere in the text

Steps 1-2 only locate a starting point; the object itself is always cut
out by the brace scanner, which tracks string and escape state so braces
and back-ticks inside string values never end the object early. Anything
after the closing brace (trailing commentary, a closing fence) is ignored.
"""

from __future__ import annotations

import json
import re
from typing import Any

from docintel.core.errors import MalformedResponseError

_JSON_FENCE_RE = re.compile(r"```json\s*", re.IGNORECASE)
_ANY_FENCE_RE  = re.compile(r"```[a-zA-Z0-9_-]*\s*(?=\{)")


def _scan_object(text: str, start: int) -> str | None:
    """Return the balanced object beginning at the first "{" at/after start."""
    begin = text.find("{", start)
    if begin < 0:
        return None

    depth = 0
    in_string = False
    escaped = False

    for i in range(begin, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[begin : i + 1]

    return None   # unbalanced / truncated


def _is_json(candidate: str) -> bool:
    try:
        json.loads(candidate)
    except json.JSONDecodeError:
        return False
    return True


def extract_json_text(raw: str | None) -> str | None:
    """Locate the JSON object inside a completion response, or None."""
    if not raw or not raw.strip():
        return None

    for pattern in (_JSON_FENCE_RE, _ANY_FENCE_RE):
        match = pattern.search(raw)
        if match:
            candidate = _scan_object(raw, match.end())
            if candidate is not None and _is_json(candidate):
                return candidate

    # Prose-wrapped: first "{" that opens a valid object wins. A stray
    # unbalanced "{" in the prose is skipped, not treated as the end.
    begin = raw.find("{")
    while begin >= 0:
        candidate = _scan_object(raw, begin)
        if candidate is not None and _is_json(candidate):
            return candidate
        begin = raw.find("{", begin + 1)
    return None


def parse_json_object(raw: str | None) -> dict[str, Any]:
    """
    Extract and decode the JSON object in a completion response.

    Raises:
        MalformedResponseError: empty response, no object found, invalid
            JSON, or a top-level value that is not an object.
    """
    if not raw or not raw.strip():
        raise MalformedResponseError("Empty completion response", raw=raw or "")

    candidate = extract_json_text(raw)
    if candidate is None:
        raise MalformedResponseError("No JSON object found in completion response", raw=raw)

    try:
        value = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Invalid JSON in completion response: {exc}", raw=raw) from exc

    if not isinstance(value, dict):
        raise MalformedResponseError("Completion JSON is not an object", raw=raw)
    return value
