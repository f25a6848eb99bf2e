"""Shared prompt construction and response parsing utilities.

Provider replies often wrap the requested JSON in prose or markdown
fences. extract_json() locates the first balanced {...} or [...] span
that parses, so feature handlers never deal with raw completion text.
"""

import json
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger("features.prompt_helpers")

_CLOSER_FOR = {"{": "}", "[": "]"}
_SHAPE_OPENERS = {"object": "{", "array": "["}


def extract_json(text: Optional[str], shape: Optional[str] = None) -> Any:
    """Extract the first well-formed JSON object or array embedded in text.

    Args:
        text: Raw completion text, possibly surrounded by prose.
        shape: "object" or "array" to accept only that kind; None for both.

    Returns:
        The parsed JSON value.

    Raises:
        ValueError: If no balanced span parses as JSON.
    """
    if shape is not None and shape not in _SHAPE_OPENERS:
        raise ValueError(f"Unknown JSON shape: {shape}")
    if not text:
        raise ValueError("Empty response text")

    openers = _SHAPE_OPENERS[shape] if shape else "{["
    start = _next_opener(text, 0, openers)
    while start != -1:
        end = _balanced_end(text, start)
        if end != -1:
            candidate = text[start:end + 1]
            try:
                return json.loads(candidate)
            except json.JSONDecodeError as e:
                logger.debug(f"Skipping unparseable span at offset {start}: {e}")
        start = _next_opener(text, start + 1, openers)

    raise ValueError("No JSON value found in response text")


def _next_opener(text: str, pos: int, openers: str) -> int:
    found = [i for i in (text.find(ch, pos) for ch in openers) if i != -1]
    return min(found) if found else -1


def _balanced_end(text: str, start: int) -> int:
    """Index of the bracket closing text[start], or -1 if unbalanced."""
    expected: List[str] = []
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
        elif ch in _CLOSER_FOR:
            expected.append(_CLOSER_FOR[ch])
        elif ch in "}]":
            if not expected or expected.pop() != ch:
                return -1
            if not expected:
                return i

    return -1


def clean_input(value: Any, max_chars: int = 4000) -> str:
    """Normalise user input for prompt insertion (strip, collapse, truncate)."""
    text = " ".join(str(value or "").split())
    if len(text) > max_chars:
        text = text[:max_chars] + "..."
    return text


def json_instruction(example: Any) -> str:
    """Closing instruction asking the model for JSON shaped like ``example``."""
    return (
        "Respond ONLY with valid JSON in this exact format:\n"
        f"{json.dumps(example, indent=2, ensure_ascii=False)}"
    )


def safe_list(data: Dict[str, Any], key: str) -> List[Any]:
    """Extract a list from a payload dict, defaulting to empty list."""
    val = data.get(key, []) if isinstance(data, dict) else []
    if not isinstance(val, list):
        return []
    return val


def safe_str(data: Dict[str, Any], key: str, default: str = "") -> str:
    """Extract a string from a payload dict."""
    val = data.get(key) if isinstance(data, dict) else None
    if val is None:
        return default
    return str(val)
