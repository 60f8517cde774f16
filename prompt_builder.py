"""Prompt composition: placeholder interpolation and collection blocks.

Templates are authored by operators and trusted. Interpolation is a single
non-recursive pass: substituted values are never rescanned, so a value that
itself contains ``{{...}}`` is emitted verbatim.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from aiact import MISSING, to_json_safe
from entity_types import CollectionFormat, OperationType

PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")

NO_DATA_LINE = "_No data available._"


@dataclass
class CollectionBlock:
    key: str
    label: str
    text: str
    rows: List[Dict[str, Any]] = field(default_factory=list)


def stringify_value(value: Any) -> str:
    if value is None or value is MISSING:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(stringify_value(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(to_json_safe(value), indent=2, ensure_ascii=False)
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (datetime, date)):
        return to_json_safe(value)
    return str(value)


def placeholder_names(template: str) -> set:
    return {match.group(1).lower() for match in PLACEHOLDER_RE.finditer(template or "")}


def interpolate(template: str, context: Dict[str, Any]) -> str:
    """Replace ``{{ key }}`` with the stringified context value.

    Lookup prefers an exact key and falls back to a case-insensitive match.
    Unknown keys render as an empty string.
    """
    folded: Dict[str, Any] = {}
    for key, value in context.items():
        folded.setdefault(key.lower(), value)

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name in context:
            return stringify_value(context[name])
        return stringify_value(folded.get(name.lower()))

    return PLACEHOLDER_RE.sub(_replace, template or "")


def _flatten(text: str) -> str:
    return text.replace("\r\n", " ").replace("\n", " ")


def format_collection(
    label: str,
    rows: List[Dict[str, Any]],
    fields: Sequence[Tuple[str, str]],
    fmt: CollectionFormat,
) -> str:
    """Render rows under a ``### label`` heading.

    ``fields`` is an ordered list of ``(field_key, field_label)`` pairs.
    """
    heading = f"### {label}"
    if not rows:
        return f"{heading}\n{NO_DATA_LINE}"
    rendered = [{key: stringify_value(row.get(key)) for key, _ in fields} for row in rows]
    if fmt == CollectionFormat.PLAIN_TEXT:
        body = "\n".join(
            f"{idx}. " + " | ".join(f"{title}: {row[key]}" for key, title in fields)
            for idx, row in enumerate(rendered, start=1)
        )
    elif fmt == CollectionFormat.BULLET_LIST:
        body = "\n".join(
            "- " + "; ".join(f"**{title}:** {row[key]}" for key, title in fields) for row in rendered
        )
    else:
        header = "| " + " | ".join(title for _, title in fields) + " |"
        separator = "| " + " | ".join("---" for _ in fields) + " |"
        lines = ["| " + " | ".join(_flatten(row[key]) for key, _ in fields) + " |" for row in rendered]
        body = "\n".join([header, separator] + lines)
    return f"{heading}\n{body}"


def structured_output_directive(source_keys: Iterable[str]) -> str:
    keys = ", ".join(f'"{key}"' for key in source_keys)
    return (
        "Respond with a single JSON object containing exactly these keys: "
        f"{keys}. Do not include any other text or markdown outside the JSON object."
    )


def build_prompt(
    template: str,
    field_values: Dict[str, Any],
    collections: Sequence[CollectionBlock] = (),
    extra_instructions: str | None = None,
    operation_type: OperationType = OperationType.READ_ONLY,
    mapping_source_keys: Sequence[str] = (),
) -> str:
    used = placeholder_names(template)
    context: Dict[str, Any] = dict(field_values)
    appended: List[str] = []
    for block in collections:
        if block.key.lower() in used:
            context[block.key] = block.text
        else:
            appended.append(block.text)

    prompt = interpolate(template, context).strip()
    for text in appended:
        prompt = f"{prompt}\n\n{text}"
    if extra_instructions and extra_instructions.strip():
        prompt = f"{prompt}\n\nAdditional instructions:\n{extra_instructions.strip()}"
    if operation_type != OperationType.READ_ONLY and mapping_source_keys:
        prompt = f"{prompt}\n\n{structured_output_directive(mapping_source_keys)}"
    return prompt.strip()
