"""Typed write payloads used when applying proposed changes.

Each entity type has one payload dataclass listing the fields an AI action
may write. Construction goes through ``build_payload`` which drops unknown
keys and values that fail their field's coercion, so a single bad value never
aborts the rest of the write.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields as dc_fields
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Tuple

from aiact import MISSING
from entity_types import EntityType


class CoercionError(ValueError):
    pass


Coercer = Callable[[Any], Any]

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")
_NUMERIC_NOISE = re.compile(r"[^0-9.\-]")
_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def to_storage_key(key: str) -> str:
    """``functionalProposal`` -> ``functional_proposal``; snake keys pass through."""
    return _CAMEL_BOUNDARY.sub(r"_\1", key.strip()).lower()


def coerce_text(value: Any) -> str:
    if isinstance(value, bool):
        raise CoercionError("expected text")
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, list) and all(isinstance(item, (str, int, float)) for item in value):
        return ", ".join(str(item).strip() for item in value)
    raise CoercionError("expected text")


def coerce_upper(value: Any) -> str:
    text = coerce_text(value).upper().replace(" ", "_")
    if not text:
        raise CoercionError("empty value")
    return text


def choice(*allowed: str) -> Coercer:
    options = frozenset(allowed)

    def coerce(value: Any) -> str:
        text = coerce_upper(value)
        if text not in options:
            raise CoercionError(f"unsupported value {text}")
        return text

    return coerce


def coerce_email(value: Any) -> str:
    text = coerce_text(value)
    if not _EMAIL.match(text):
        raise CoercionError("invalid email")
    return text


def coerce_money(value: Any) -> str:
    """Parse numbers and currency text (``"USD 1,200.50"``) into a plain decimal string."""
    if isinstance(value, bool) or value is None:
        raise CoercionError("expected number")
    if isinstance(value, (int, Decimal)):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = _NUMERIC_NOISE.sub("", value)
        if not cleaned or cleaned in ("-", ".", "-."):
            raise CoercionError("expected number")
        try:
            amount = Decimal(cleaned)
        except InvalidOperation as exc:
            raise CoercionError("expected number") from exc
    else:
        raise CoercionError("expected number")
    if not amount.is_finite():
        raise CoercionError("expected finite number")
    return format(amount, "f")


def coerce_currency(value: Any) -> str:
    text = coerce_text(value).upper()
    if not re.fullmatch(r"[A-Z]{3}", text):
        raise CoercionError("expected ISO currency code")
    return text


def coerce_int(value: Any) -> int:
    if isinstance(value, bool) or value is None:
        raise CoercionError("expected integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise CoercionError("expected integer")
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as exc:
            raise CoercionError("expected integer") from exc
    raise CoercionError("expected integer")


def bounded_int(low: int, high: int) -> Coercer:
    def coerce(value: Any) -> int:
        number = coerce_int(value)
        if number < low or number > high:
            raise CoercionError(f"expected value between {low} and {high}")
        return number

    return coerce


def coerce_str_list(value: Any) -> List[str]:
    if isinstance(value, list):
        items = [coerce_text(item) for item in value if item is not None]
    elif isinstance(value, str):
        items = [part.strip() for part in value.split(",")]
    else:
        raise CoercionError("expected list of strings")
    return [item for item in items if item]


def coerce_date(value: Any) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or not value.strip():
        raise CoercionError("expected date")
    try:
        return date.fromisoformat(value.strip()[:10]).isoformat()
    except ValueError as exc:
        raise CoercionError("expected date") from exc


def coerce_datetime(value: Any) -> str:
    if isinstance(value, str) and len(value.strip()) == 10:
        return coerce_date(value) + "T00:00:00Z"
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise CoercionError("expected datetime") from exc
    else:
        raise CoercionError("expected datetime")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _w(coerce: Coercer):
    return field(default=MISSING, metadata={"coerce": coerce})


class _Payload:
    def as_changes(self) -> Dict[str, Any]:
        return {
            spec.name: getattr(self, spec.name)
            for spec in dc_fields(self)
            if getattr(self, spec.name) is not MISSING
        }

    def is_empty(self) -> bool:
        return not self.as_changes()


@dataclass(frozen=True)
class CandidatePayload(_Payload):
    first_name: Any = _w(coerce_text)
    last_name: Any = _w(coerce_text)
    email: Any = _w(coerce_email)
    phone: Any = _w(coerce_text)
    current_title: Any = _w(coerce_text)
    years_of_experience: Any = _w(bounded_int(0, 80))
    skills: Any = _w(coerce_str_list)
    linkedin_url: Any = _w(coerce_text)
    github_url: Any = _w(coerce_text)
    portfolio_url: Any = _w(coerce_text)
    stage: Any = _w(coerce_upper)
    rating: Any = _w(bounded_int(0, 5))
    notes: Any = _w(coerce_text)


@dataclass(frozen=True)
class EmployeePayload(_Payload):
    department: Any = _w(coerce_text)
    job_title: Any = _w(coerce_text)
    status: Any = _w(coerce_upper)
    contract_type: Any = _w(coerce_upper)


@dataclass(frozen=True)
class CustomerPayload(_Payload):
    name: Any = _w(coerce_text)
    email: Any = _w(coerce_email)
    phone: Any = _w(coerce_text)
    website: Any = _w(coerce_text)
    industry: Any = _w(coerce_text)
    type: Any = _w(coerce_upper)
    status: Any = _w(coerce_upper)
    sentiment: Any = _w(coerce_upper)
    address: Any = _w(coerce_text)
    city: Any = _w(coerce_text)
    country: Any = _w(coerce_text)
    postal_code: Any = _w(coerce_text)
    monthly_value: Any = _w(coerce_money)
    currency: Any = _w(coerce_currency)
    notes: Any = _w(coerce_text)
    tags: Any = _w(coerce_str_list)


@dataclass(frozen=True)
class ContactPayload(_Payload):
    first_name: Any = _w(coerce_text)
    last_name: Any = _w(coerce_text)
    email: Any = _w(coerce_email)
    phone: Any = _w(coerce_text)
    role: Any = _w(coerce_text)
    company_name: Any = _w(coerce_text)
    linkedin_url: Any = _w(coerce_text)
    notes: Any = _w(coerce_text)


@dataclass(frozen=True)
class LeadPayload(_Payload):
    title: Any = _w(coerce_text)
    description: Any = _w(coerce_text)
    status: Any = _w(coerce_upper)
    value: Any = _w(coerce_money)
    probability: Any = _w(bounded_int(0, 100))
    source: Any = _w(coerce_text)
    expected_close_date: Any = _w(coerce_date)
    lost_reason: Any = _w(coerce_text)
    prospect_company_name: Any = _w(coerce_text)
    prospect_website: Any = _w(coerce_text)
    prospect_industry: Any = _w(coerce_text)


@dataclass(frozen=True)
class TaskPayload(_Payload):
    title: Any = _w(coerce_text)
    description: Any = _w(coerce_text)
    status: Any = _w(coerce_upper)
    priority: Any = _w(coerce_upper)
    due_date: Any = _w(coerce_datetime)
    start_date: Any = _w(coerce_datetime)
    tags: Any = _w(coerce_str_list)
    estimated_hours: Any = _w(coerce_money)
    actual_hours: Any = _w(coerce_money)


@dataclass(frozen=True)
class QuotePayload(_Payload):
    title: Any = _w(coerce_text)
    description: Any = _w(coerce_text)
    overview: Any = _w(coerce_text)
    functional_proposal: Any = _w(coerce_text)
    technical_proposal: Any = _w(coerce_text)
    team_composition: Any = _w(coerce_text)
    payment_terms: Any = _w(coerce_text)
    warranty_period: Any = _w(coerce_text)
    total_value: Any = _w(coerce_money)
    currency: Any = _w(coerce_currency)
    status: Any = _w(choice("DRAFT", "SENT", "ACCEPTED", "REJECTED", "EXPIRED"))


@dataclass(frozen=True)
class OpportunityPayload(_Payload):
    title: Any = _w(coerce_text)
    description: Any = _w(coerce_text)
    stage: Any = _w(coerce_upper)
    type: Any = _w(coerce_upper)
    value: Any = _w(coerce_money)


PAYLOAD_TYPES = {
    EntityType.CANDIDATE: CandidatePayload,
    EntityType.EMPLOYEE: EmployeePayload,
    EntityType.CUSTOMER: CustomerPayload,
    EntityType.CONTACT: ContactPayload,
    EntityType.LEAD: LeadPayload,
    EntityType.TASK: TaskPayload,
    EntityType.QUOTE: QuotePayload,
    EntityType.OPPORTUNITY: OpportunityPayload,
}


def build_payload(payload_cls, changes: Dict[str, Any]) -> Tuple[_Payload, List[dict]]:
    """Construct ``payload_cls`` from raw ``{field: value}`` changes.

    Returns the payload and a list of ``{"field", "reason"}`` entries for
    everything that was dropped.
    """
    specs = {spec.name: spec for spec in dc_fields(payload_cls)}
    values: Dict[str, Any] = {}
    dropped: List[dict] = []
    for raw_key, raw_value in changes.items():
        name = to_storage_key(raw_key)
        spec = specs.get(name)
        if spec is None:
            dropped.append({"field": raw_key, "reason": "not_writable"})
            continue
        if raw_value is None or raw_value is MISSING:
            dropped.append({"field": raw_key, "reason": "empty_value"})
            continue
        try:
            values[name] = spec.metadata["coerce"](raw_value)
        except CoercionError as exc:
            dropped.append({"field": raw_key, "reason": str(exc)})
    return payload_cls(**values), dropped
