"""
Helpers for reading JSON out of free-form model replies.

Models asked for JSON often wrap it in a ```json fence or add a sentence
around it; extract_json_object() accepts the bare object, a fenced block,
or the outermost {...} span, in that order.
"""

from __future__ import annotations

import json
import re
from typing import Any

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def _load_object(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Return the JSON object in a model reply, or None if there is none."""
    if not text:
        return None
    stripped = text.strip()

    found = _load_object(stripped)
    if found is not None:
        return found

    fence = _FENCE.search(stripped)
    if fence:
        found = _load_object(fence.group(1).strip())
        if found is not None:
            return found

    start, end = stripped.find("{"), stripped.rfind("}")
    if 0 <= start < end:
        return _load_object(stripped[start:end + 1])
    return None
