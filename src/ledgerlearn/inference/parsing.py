"""Parse-or-fallback boundary for model output.

Model responses are untrusted text. parse_model_json() either returns the
decoded JSON object as Parsed or explains why it could not as Fallback; it
never raises. Callers decide what a Fallback means for them.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Union

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


@dataclass(frozen=True)
class Parsed:
    """Model output decoded to a JSON object."""

    data: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


@dataclass(frozen=True)
class Fallback:
    """Model output that could not be used."""

    reason: str


ParseResult = Union[Parsed, Fallback]


def _first_json_object(text: str) -> str | None:
    """Return the first balanced {...} block, ignoring braces inside strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        start = text.find("{", start + 1)
    return None


def parse_model_json(content: str | None) -> ParseResult:
    """
    Decode a model response into a JSON object.

    Handles:
    - Markdown code blocks (```json ... ```)
    - Leading/trailing whitespace
    - A JSON object embedded in surrounding prose

    Returns:
        Parsed with the object, or Fallback with the reason.
    """
    if content is None or not content.strip():
        return Fallback("empty response")

    text = _CODE_FENCE_RE.sub("", content.strip()).strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        block = _first_json_object(text)
        if block is None:
            return Fallback("no JSON object in response")
        try:
            data = json.loads(block)
        except json.JSONDecodeError as e:
            return Fallback(f"invalid JSON: {e.msg}")

    if not isinstance(data, dict):
        return Fallback(f"expected a JSON object, got {type(data).__name__}")
    return Parsed(data)


def coerce_confidence(value: Any, default: float) -> float:
    """Model-reported confidence as a float clamped to [0, 1]; default if missing or invalid."""
    if value is None or isinstance(value, bool):
        return default
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return default
    if confidence != confidence:  # NaN
        return default
    return max(0.0, min(1.0, confidence))


def coerce_bool(value: Any) -> bool | None:
    """Model-reported boolean; accepts true/false strings. None if unusable."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
    if isinstance(value, (int, float)):
        return bool(value)
    return None
