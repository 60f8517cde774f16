"""JSON-safe snapshots and deterministic canonical JSON."""

from __future__ import annotations

import json
import math
from dataclasses import asdict, is_dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any


class CanonicalJsonTypeError(TypeError):
    """Raised when an object cannot be serialized to canonical JSON."""


def _iso(value: date) -> str:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
    return value.isoformat()


def to_json_safe(obj: Any, path: str = "$") -> Any:
    """Deep-copy ``obj`` into plain JSON primitives.

    Dates become ISO strings, Decimals become plain strings, enums their
    value, dataclasses dicts and tuples/sets lists. Non-finite floats become
    None. Anything else raises CanonicalJsonTypeError.
    """
    if obj is None or isinstance(obj, (str, bool, int)):
        return obj
    if isinstance(obj, float):
        return obj if math.isfinite(obj) else None
    if isinstance(obj, Decimal):
        return format(obj, "f") if obj.is_finite() else None
    if isinstance(obj, Enum):
        return to_json_safe(obj.value, path)
    if isinstance(obj, (datetime, date)):
        return _iso(obj)
    if is_dataclass(obj) and not isinstance(obj, type):
        return to_json_safe(asdict(obj), path)
    if isinstance(obj, dict):
        out = {}
        for key, value in obj.items():
            if not isinstance(key, str):
                raise CanonicalJsonTypeError(f"Unsupported key type at {path}: {type(key).__name__}")
            out[key] = to_json_safe(value, f"{path}.{key}")
        return out
    if isinstance(obj, (list, tuple, set, frozenset)):
        items = sorted(obj, key=str) if isinstance(obj, (set, frozenset)) else obj
        return [to_json_safe(item, f"{path}[{idx}]") for idx, item in enumerate(items)]
    raise CanonicalJsonTypeError(f"Unsupported type at {path}: {type(obj).__name__}")


def canonical_dumps(obj: Any) -> str:
    """Serialize an object to deterministic canonical JSON.

    Rules:
    - Values are first passed through ``to_json_safe``.
    - Sort dict keys recursively.
    - Preserve list order.
    - UTF-8 with non-ASCII preserved.
    - No extra whitespace.
    """
    return json.dumps(
        to_json_safe(obj),
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
        allow_nan=False,
    )
