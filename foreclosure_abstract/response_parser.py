"""
Lenient JSON parsing of free-text model replies.

The document service is asked for "JSON only" but replies sometimes arrive
wrapped in markdown fences or surrounded by prose. Parsing is best-effort and
never raises: callers get a ``JsonParseResult`` that either carries the parsed
object or says why there is none.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


@dataclass(frozen=True)
class JsonParseResult:
    """Outcome of parsing one model reply."""

    data: dict[str, Any] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.data is not None


def parse_json_response(text: str | None) -> JsonParseResult:
    """Parse a model reply into a JSON object.

    Strategy:
      1. Strip markdown code fences and try the whole reply.
      2. Fall back to the first balanced ``{...}`` or ``[...]`` substring.
      3. A top-level array yields its first object.
    """
    if text is None or not text.strip():
        return JsonParseResult(error="empty response")

    cleaned = _FENCE_RE.sub("", text).replace("```", "").strip()

    value = _try_load(cleaned)
    if value is _MISSING:
        candidate = find_balanced_json(cleaned)
        if candidate is None:
            return JsonParseResult(error="no JSON object found in response")
        value = _try_load(candidate)
        if value is _MISSING:
            return JsonParseResult(error="JSON-like substring did not parse")

    return _as_object(value)


def find_balanced_json(text: str) -> str | None:
    """Return the first balanced ``{...}`` / ``[...]`` substring, or None.

    Brackets inside string literals are ignored. A candidate that hits a
    mismatched closer is abandoned and the scan resumes after its opener.
    """
    start = _next_opener(text, 0)
    while start != -1:
        end = _balanced_end(text, start)
        if end is not None:
            return text[start:end + 1]
        start = _next_opener(text, start + 1)
    return None


def _next_opener(text: str, begin: int) -> int:
    positions = [p for p in (text.find("{", begin), text.find("[", begin)) if p != -1]
    return min(positions) if positions else -1


def _balanced_end(text: str, start: int) -> int | None:
    """Index of the closer matching ``text[start]``, or None if unbalanced."""
    pairs = {"{": "}", "[": "]"}
    stack: list[str] = []
    in_string = False
    escaped = False

    for i in range(start, len(text)):
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
        elif ch in pairs:
            stack.append(pairs[ch])
        elif ch in ("}", "]"):
            if not stack or ch != stack[-1]:
                return None
            stack.pop()
            if not stack:
                return i

    return None


# ─── Internal Helpers ────────────────────────────────────────────────

_MISSING = object()


def _try_load(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError, RecursionError):
        return _MISSING


def _as_object(value: Any) -> JsonParseResult:
    if isinstance(value, dict):
        return JsonParseResult(data=value)
    if isinstance(value, list):
        for item in value:
            if isinstance(item, dict):
                return JsonParseResult(data=item)
        return JsonParseResult(error="JSON array contains no object")
    return JsonParseResult(error=f"expected a JSON object, got {type(value).__name__}")
