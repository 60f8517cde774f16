"""Map parsed model output onto entity fields as proposed changes."""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Callable, Dict, List

from aiact import MISSING, canonical_dumps, get_dot_path
from entity_types import OperationType, parse_operation_type

logger = logging.getLogger("aiact.mapper")

Transform = Callable[[Any, str], Any]


def _json_literal(value: Any, argument: str) -> Any:
    return json.loads(argument.strip())


# prefix -> transform(value, argument); a failing transform keeps the value
TRANSFORMS: Dict[str, Transform] = {
    "json": _json_literal,
}


def apply_transform(value: Any, rule: str | None) -> Any:
    if not rule or value is MISSING:
        return value
    prefix, sep, argument = rule.partition(":")
    transform = TRANSFORMS.get(prefix.strip().lower()) if sep else None
    if transform is None:
        return value
    try:
        return transform(value, argument)
    except ValueError:
        logger.info("transform_failed rule=%s", prefix.strip())
        return value


def extract_value(parsed: Any, source_key: str, transform_rule: str | None = None) -> Any:
    """Read ``source_key`` (a dot path) from ``parsed``; MISSING when absent."""
    if not isinstance(parsed, dict) or not source_key or not source_key.strip():
        return MISSING
    value = get_dot_path(parsed, source_key.strip())
    return apply_transform(value, transform_rule)


def normalize_for_compare(value: Any) -> str:
    if value is None or value is MISSING:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, dict)):
        return canonical_dumps(value)
    return str(value)


def build_proposed_changes(
    mappings: List[dict],
    parsed: Dict[str, Any] | None,
    operation_type,
    entity_type,
    entity_id: str | None,
    current_values: Dict[str, Any] | None = None,
) -> Dict[str, Any] | None:
    """Diff mapped model values against ``current_values``.

    UPDATE keeps only fields whose normalized value changes. CREATE keeps
    every mapped value. Returns None when nothing was mapped.
    """
    operation = parse_operation_type(operation_type)
    if operation == OperationType.READ_ONLY or not isinstance(parsed, dict):
        return None
    current_values = current_values or {}
    fields: Dict[str, Dict[str, Any]] = {}
    for mapping in mappings or []:
        source_key = (mapping.get("source_key") or "").strip()
        target = (mapping.get("target_field") or "").strip()
        if not source_key or not target:
            continue
        new_value = extract_value(parsed, source_key, mapping.get("transform_rule"))
        if new_value is MISSING or new_value is None:
            continue
        if operation == OperationType.UPDATE:
            old_value = current_values.get(target)
            if normalize_for_compare(old_value) == normalize_for_compare(new_value):
                continue
        else:
            old_value = None
        fields[target] = {"old_value": old_value, "new_value": new_value, "source_key": source_key}
    if not fields:
        return None
    return {
        "operation": operation.value,
        "entity_type": getattr(entity_type, "value", entity_type),
        "entity_id": entity_id,
        "fields": fields,
    }
