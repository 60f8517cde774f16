"""Typed read-only entity snapshots and their loaders.

Every snapshot is built from the generic record store (``get``/``find`` over
record kinds) and is the only shape field selectors ever see.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields as dc_fields
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from entity_types import EntityType


def parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def parse_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def parse_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


def parse_str_list(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(item) for item in value if item is not None]
    if isinstance(value, str) and value.strip():
        return [part.strip() for part in value.split(",") if part.strip()]
    return []


@dataclass(frozen=True)
class PersonRef:
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def display_name(self) -> str | None:
        return self.full_name or self.email or None

    @classmethod
    def from_record(cls, record: dict | None) -> "PersonRef | None":
        if not isinstance(record, dict):
            return None
        return cls(
            first_name=record.get("first_name"),
            last_name=record.get("last_name"),
            email=record.get("email"),
            phone=record.get("phone"),
        )


_Converter = Callable[[Any], Any]


def _build(cls, record: dict, converters: Dict[str, _Converter] | None = None, **extra):
    converters = converters or {}
    values = {}
    for spec in dc_fields(cls):
        if spec.name in extra:
            values[spec.name] = extra[spec.name]
            continue
        if spec.name not in record:
            continue
        raw = record.get(spec.name)
        convert = converters.get(spec.name)
        values[spec.name] = convert(raw) if convert else raw
    return cls(**values)


@dataclass(frozen=True)
class CandidateSnapshot:
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    current_title: str | None = None
    years_of_experience: int | None = None
    skills: List[str] = field(default_factory=list)
    resume: str | None = None
    linkedin_url: str | None = None
    github_url: str | None = None
    portfolio_url: str | None = None
    stage: str | None = None
    rating: int | None = None
    notes: str | None = None


@dataclass(frozen=True)
class EmployeeSnapshot:
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    department: str | None = None
    job_title: str | None = None
    status: str | None = None
    contract_type: str | None = None
    hire_date: date | None = None
    termination_date: date | None = None
    salary: Decimal | None = None
    salary_currency: str | None = None
    manager_name: str | None = None
    manager_email: str | None = None
    manager_title: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    emergency_contact_relation: str | None = None


@dataclass(frozen=True)
class CustomerSnapshot:
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    website: str | None = None
    industry: str | None = None
    type: str | None = None
    status: str | None = None
    sentiment: str | None = None
    address: str | None = None
    city: str | None = None
    country: str | None = None
    postal_code: str | None = None
    monthly_value: Decimal | None = None
    currency: str | None = None
    notes: str | None = None
    tags: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ContactSnapshot:
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    role: str | None = None
    company_name: str | None = None
    linkedin_url: str | None = None
    notes: str | None = None
    customer_name: str | None = None


@dataclass(frozen=True)
class LeadSnapshot:
    title: str | None = None
    description: str | None = None
    status: str | None = None
    value: Decimal | None = None
    probability: int | None = None
    source: str | None = None
    expected_close_date: date | None = None
    actual_close_date: date | None = None
    lost_reason: str | None = None
    prospect_company_name: str | None = None
    prospect_website: str | None = None
    prospect_industry: str | None = None
    assigned_to: PersonRef | None = None
    contacts: List[PersonRef] = field(default_factory=list)

    @property
    def primary_contact(self) -> PersonRef | None:
        return self.contacts[0] if self.contacts else None


@dataclass(frozen=True)
class TaskSnapshot:
    title: str | None = None
    description: str | None = None
    status: str | None = None
    priority: str | None = None
    due_date: datetime | None = None
    start_date: datetime | None = None
    completed_at: datetime | None = None
    tags: List[str] = field(default_factory=list)
    estimated_hours: Decimal | None = None
    actual_hours: Decimal | None = None
    assigned_to: PersonRef | None = None
    customer_id: str | None = None


@dataclass(frozen=True)
class QuoteSnapshot:
    quote_number: str | None = None
    title: str | None = None
    description: str | None = None
    overview: str | None = None
    functional_proposal: str | None = None
    technical_proposal: str | None = None
    team_composition: str | None = None
    payment_terms: str | None = None
    warranty_period: str | None = None
    total_value: Decimal | None = None
    currency: str | None = None
    status: str | None = None
    sent_at: datetime | None = None
    sent_to: str | None = None
    lead_title: str | None = None
    lead_description: str | None = None
    lead_contacts: List[PersonRef] = field(default_factory=list)

    @property
    def primary_contact(self) -> PersonRef | None:
        return self.lead_contacts[0] if self.lead_contacts else None


@dataclass(frozen=True)
class OpportunitySnapshot:
    title: str | None = None
    description: str | None = None
    stage: str | None = None
    type: str | None = None
    value: Decimal | None = None
    customer_name: str | None = None
    customer_industry: str | None = None
    lead_title: str | None = None
    lead_description: str | None = None
    lead_contact: PersonRef | None = None


EntitySnapshot = Any
SnapshotLoader = Callable[[Any, str], Optional[EntitySnapshot]]


def _int_or_none(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _lead_contacts(store, lead_id: str) -> List[PersonRef]:
    links = store.find("lead_contact", where=[("lead_id", "eq", lead_id)], order_by=("created_at", "asc"))
    contacts: List[PersonRef] = []
    for link in links:
        ref = PersonRef.from_record(store.get("contact", link.get("contact_id")))
        if ref is not None:
            contacts.append(ref)
    return contacts


def load_candidate(store, entity_id: str) -> CandidateSnapshot | None:
    record = store.get("candidate", entity_id)
    if not record:
        return None
    return _build(
        CandidateSnapshot,
        record,
        {"skills": parse_str_list, "years_of_experience": _int_or_none, "rating": _int_or_none},
    )


def load_employee(store, entity_id: str) -> EmployeeSnapshot | None:
    record = store.get("employee", entity_id)
    if not record:
        return None
    user = store.get("user", record.get("user_id")) if record.get("user_id") else None
    user = user or {}
    manager = store.get("employee", record.get("manager_id")) if record.get("manager_id") else None
    manager_user = None
    if manager and manager.get("user_id"):
        manager_user = PersonRef.from_record(store.get("user", manager.get("user_id")))
    return _build(
        EmployeeSnapshot,
        record,
        {"hire_date": parse_date, "termination_date": parse_date, "salary": parse_decimal},
        first_name=user.get("first_name"),
        last_name=user.get("last_name"),
        email=user.get("email"),
        phone=user.get("phone"),
        manager_name=(manager_user.full_name or None) if manager_user else None,
        manager_email=manager_user.email if manager_user else None,
        manager_title=manager.get("job_title") if manager else None,
    )


def load_customer(store, entity_id: str) -> CustomerSnapshot | None:
    record = store.get("customer", entity_id)
    if not record:
        return None
    return _build(CustomerSnapshot, record, {"monthly_value": parse_decimal, "tags": parse_str_list})


def load_contact(store, entity_id: str) -> ContactSnapshot | None:
    record = store.get("contact", entity_id)
    if not record:
        return None
    customer = store.get("customer", record.get("customer_id")) if record.get("customer_id") else None
    return _build(ContactSnapshot, record, customer_name=customer.get("name") if customer else None)


def load_lead(store, entity_id: str) -> LeadSnapshot | None:
    record = store.get("lead", entity_id)
    if not record:
        return None
    assigned = store.get("user", record.get("assigned_to_id")) if record.get("assigned_to_id") else None
    return _build(
        LeadSnapshot,
        record,
        {
            "value": parse_decimal,
            "probability": _int_or_none,
            "expected_close_date": parse_date,
            "actual_close_date": parse_date,
        },
        assigned_to=PersonRef.from_record(assigned),
        contacts=_lead_contacts(store, entity_id),
    )


def load_task(store, entity_id: str) -> TaskSnapshot | None:
    record = store.get("task", entity_id)
    if not record:
        return None
    assigned = store.get("user", record.get("assigned_to_id")) if record.get("assigned_to_id") else None
    return _build(
        TaskSnapshot,
        record,
        {
            "due_date": parse_datetime,
            "start_date": parse_datetime,
            "completed_at": parse_datetime,
            "tags": parse_str_list,
            "estimated_hours": parse_decimal,
            "actual_hours": parse_decimal,
        },
        assigned_to=PersonRef.from_record(assigned),
    )


def load_quote(store, entity_id: str) -> QuoteSnapshot | None:
    record = store.get("quote", entity_id)
    if not record:
        return None
    lead = store.get("lead", record.get("lead_id")) if record.get("lead_id") else None
    return _build(
        QuoteSnapshot,
        record,
        {"total_value": parse_decimal, "sent_at": parse_datetime},
        lead_title=lead.get("title") if lead else None,
        lead_description=lead.get("description") if lead else None,
        lead_contacts=_lead_contacts(store, lead["id"]) if lead and lead.get("id") else [],
    )


def load_opportunity(store, entity_id: str) -> OpportunitySnapshot | None:
    record = store.get("opportunity", entity_id)
    if not record:
        return None
    customer = store.get("customer", record.get("customer_id")) if record.get("customer_id") else None
    lead = store.get("lead", record.get("lead_id")) if record.get("lead_id") else None
    lead_contacts = _lead_contacts(store, lead["id"]) if lead and lead.get("id") else []
    return _build(
        OpportunitySnapshot,
        record,
        {"value": parse_decimal},
        customer_name=customer.get("name") if customer else None,
        customer_industry=customer.get("industry") if customer else None,
        lead_title=lead.get("title") if lead else None,
        lead_description=lead.get("description") if lead else None,
        lead_contact=lead_contacts[0] if lead_contacts else None,
    )


SNAPSHOT_LOADERS: Dict[EntityType, SnapshotLoader] = {
    EntityType.CANDIDATE: load_candidate,
    EntityType.EMPLOYEE: load_employee,
    EntityType.CUSTOMER: load_customer,
    EntityType.CONTACT: load_contact,
    EntityType.LEAD: load_lead,
    EntityType.TASK: load_task,
    EntityType.QUOTE: load_quote,
    EntityType.OPPORTUNITY: load_opportunity,
}
