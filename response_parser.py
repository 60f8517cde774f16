"""Extract a JSON object from free-form model output."""

from __future__ import annotations

import json
import re
from typing import Any, Dict

_FENCED_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)

_NO_MATCH = object()


def _decode(text: str) -> Any:
    try:
        value = json.loads(text)
    except (TypeError, ValueError):
        return _NO_MATCH
    if isinstance(value, str):
        # double-encoded payload: a JSON string holding a JSON object
        try:
            inner = json.loads(value)
        except ValueError:
            return value
        if isinstance(inner, dict):
            return inner
    return value


def parse_model_json(text: str | None) -> Dict[str, Any] | None:
    """Return the first JSON object found in ``text`` or None.

    Tried in order: the whole text, the first fenced code block (optionally
    tagged ``json``), then the span from the first ``{`` to the last ``}``.
    The first candidate that decodes wins; if it is not an object the result
    is None.
    """
    if not isinstance(text, str) or not text.strip():
        return None
    candidates = [text.strip()]
    fenced = _FENCED_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start : end + 1])
    for candidate in candidates:
        value = _decode(candidate)
        if value is _NO_MATCH:
            continue
        return value if isinstance(value, dict) else None
    return None
