"""Related-row collections that can be attached to a prompt, per entity type.

A resolver receives ``(store, entity_id, limit, filters)`` and returns raw
rows (store records, optionally enriched). Row fields project those rows into
the values a prompt sees.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Tuple

from entity_types import CollectionFormat, CollectionKey, EntityType

Resolver = Callable[[Any, str, int, dict], List[dict]]
BulkResolver = Callable[[Any, int, dict], List[dict]]

_MONTH_NAMES = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]


@dataclass(frozen=True)
class FilterDescriptor:
    key: str
    label: str
    type: str
    description: str | None = None
    options: Tuple[Tuple[str, str], ...] = ()

    def summary(self) -> dict:
        item = {"key": self.key, "label": self.label, "type": self.type}
        if self.description:
            item["description"] = self.description
        if self.options:
            item["options"] = [{"value": value, "label": label} for value, label in self.options]
        return item


@dataclass(frozen=True)
class RowField:
    key: str
    label: str
    select: Callable[[dict], Any]
    description: str | None = None

    def summary(self) -> dict:
        return {"key": self.key, "label": self.label, "description": self.description}


@dataclass(frozen=True)
class CollectionDescriptor:
    key: CollectionKey
    label: str
    default_limit: int
    default_format: CollectionFormat
    fields: List[RowField]
    resolve: Resolver
    description: str | None = None
    filters: List[FilterDescriptor] = field(default_factory=list)
    resolve_bulk: Optional[BulkResolver] = None
    supported_formats: Optional[List[CollectionFormat]] = None

    def formats(self) -> List[CollectionFormat]:
        if self.supported_formats:
            return list(self.supported_formats)
        return [self.default_format] + [fmt for fmt in CollectionFormat if fmt != self.default_format]

    def summary(self) -> dict:
        return {
            "collection_key": self.key.value,
            "label": self.label,
            "description": self.description,
            "default_limit": self.default_limit,
            "default_format": self.default_format.value,
            "supported_formats": [fmt.value for fmt in self.formats()],
            "filters": [item.summary() for item in self.filters],
        }


# Filter parsing. Values that cannot be parsed are treated as absent.


def parse_filter_date(value: Any) -> str | None:
    """Normalize a date filter to an ISO bound comparable with stored text."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if len(text) == 10:
        try:
            return datetime.strptime(text, "%Y-%m-%d").date().isoformat()
        except ValueError:
            return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_filter_boolean(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in ("true", "1", "yes", "y", "on"):
            return True
        if normalized in ("false", "0", "no", "n", "off"):
            return False
    return None


def parse_filter_number(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str) and value.strip():
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def parse_filter_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_filter_choice(value: Any, options: Tuple[Tuple[str, str], ...]) -> str | None:
    text = parse_filter_text(value)
    if text is None:
        return None
    allowed = {option for option, _ in options}
    normalized = text.upper()
    return normalized if normalized in allowed else None


def _date_range(where: list, column: str, filters: dict | None) -> list:
    filters = filters or {}
    start = parse_filter_date(filters.get("startDate"))
    end = parse_filter_date(filters.get("endDate"))
    if start:
        where.append((column, "gte", start))
    if end:
        where.append((column, "lte", end))
    return where


def _in_range(value: Any, filters: dict | None) -> bool:
    filters = filters or {}
    start = parse_filter_date(filters.get("startDate"))
    end = parse_filter_date(filters.get("endDate"))
    if not start and not end:
        return True
    if not isinstance(value, str) or not value:
        return False
    if start and value < start:
        return False
    if end and value > end:
        return False
    return True


# Row value helpers.


def _safe_string(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip()
    return str(value)


def _to_number(value: Any):
    if value is None or isinstance(value, bool):
        return None
    try:
        numeric = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not numeric.is_finite():
        return None
    rounded = round(numeric, 2)
    if rounded == rounded.to_integral_value():
        return int(rounded)
    return float(rounded)


def format_eod_tasks(tasks: Any) -> str | None:
    if not tasks:
        return None
    if isinstance(tasks, str):
        return tasks.strip()
    entries = tasks if isinstance(tasks, list) else [tasks]
    lines: List[str] = []
    for entry in entries:
        if isinstance(entry, str):
            line = entry.strip()
        elif isinstance(entry, dict):
            parts: List[str] = []
            client = _safe_string(entry.get("clientDetails"))
            ticket = _safe_string(entry.get("ticket"))
            work_type = _safe_string(entry.get("typeOfWorkDone"))
            lifecycle = _safe_string(entry.get("taskLifecycle"))
            status = _safe_string(entry.get("taskStatus"))
            estimated = _to_number(entry.get("taskEstimatedTime"))
            spent = _to_number(entry.get("timeSpentOnTicket"))
            if client:
                parts.append(client)
            if ticket:
                parts.append(f"#{ticket}")
            if work_type:
                parts.append(work_type.replace("_", " "))
            if lifecycle:
                parts.append(f"Lifecycle: {lifecycle.replace('_', ' ')}")
            if status:
                parts.append(f"Status: {status.replace('_', ' ')}")
            if estimated is not None:
                parts.append(f"Est: {estimated}h")
            if spent is not None:
                parts.append(f"Spent: {spent}h")
            line = " • ".join(parts)
        else:
            line = ""
        if line and line.strip():
            lines.append(line)
    if not lines:
        return None
    return "\n".join(f"{idx}. {line}" for idx, line in enumerate(lines, start=1))


def _person_name(person: dict | None) -> str | None:
    if not person:
        return None
    return f"{person.get('first_name') or ''} {person.get('last_name') or ''}".strip() or None


def _money(row: dict, amount_key: str, currency_key: str = "currency") -> str | None:
    amount = row.get(amount_key)
    if amount is None or amount == "":
        return None
    currency = row.get(currency_key)
    return f"{currency} {amount}" if currency else str(amount)


def _period(row: dict) -> str | None:
    month = parse_filter_number(row.get("month"))
    year = row.get("year")
    if month is None or not 1 <= month <= 12 or year is None:
        return None
    return f"{_MONTH_NAMES[month - 1]} {year}"


def _employee_user_id(store, employee_id: str) -> str | None:
    employee = store.get("employee", employee_id)
    return employee.get("user_id") if employee else None


def _with_activity_type(store, rows: List[dict]) -> List[dict]:
    names: Dict[str, str | None] = {}
    enriched = []
    for row in rows:
        type_id = row.get("activity_type_id")
        if type_id and type_id not in names:
            activity_type = store.get("activity_type", type_id)
            names[type_id] = activity_type.get("name") if activity_type else None
        item = dict(row)
        item["activity_type_name"] = names.get(type_id) if type_id else None
        enriched.append(item)
    return enriched


# Resolvers.


def _eod_where(filters: dict | None) -> list:
    where = _date_range([], "date", filters)
    if parse_filter_boolean((filters or {}).get("lateOnly")) is True:
        where.append(("is_late", "eq", True))
    return where


def _resolve_employee_eod_reports(store, entity_id, limit, filters):
    user_id = _employee_user_id(store, entity_id)
    if not user_id:
        return []
    where = [("user_id", "eq", user_id)] + _eod_where(filters)
    return store.find("eod_report", where=where, order_by=("date", "desc"), limit=limit)


def _resolve_bulk_eod_reports(store, limit, filters):
    reports = store.find("eod_report", where=_eod_where(filters), order_by=("date", "desc"), limit=limit)
    user_ids = sorted({report.get("user_id") for report in reports if report.get("user_id")})
    users: Dict[str, dict] = {}
    if user_ids:
        for employee in store.find("employee", where=[("user_id", "in", user_ids)]):
            user = store.get("user", employee.get("user_id"))
            if user:
                users[employee["user_id"]] = user
    return [dict(report, employee=users.get(report.get("user_id"))) for report in reports]


def _resolve_employee_tasks(store, entity_id, limit, filters):
    user_id = _employee_user_id(store, entity_id)
    if not user_id:
        return []
    where = _date_range([("assigned_to_id", "eq", user_id)], "due_date", filters)
    return store.find("task", where=where, order_by=("due_date", "asc"), limit=limit)


def _activities_by(link_field: str) -> Resolver:
    def resolve(store, entity_id, limit, filters):
        where = _date_range([(link_field, "eq", entity_id)], "created_at", filters)
        rows = store.find("activity", where=where, order_by=("created_at", "desc"), limit=limit)
        return _with_activity_type(store, rows)

    return resolve


FEEDBACK_STATUS_OPTIONS = (("DRAFT", "Draft"), ("SUBMITTED", "Submitted"), ("SENT", "Sent"))
CHECK_IN_STATUS_OPTIONS = (("IN", "Check-In"), ("OUT", "Check-Out"))
QUOTE_STATUS_OPTIONS = (
    ("DRAFT", "Draft"),
    ("SENT", "Sent"),
    ("ACCEPTED", "Accepted"),
    ("REJECTED", "Rejected"),
    ("EXPIRED", "Expired"),
)


def _resolve_feedback_reports(store, entity_id, limit, filters):
    filters = filters or {}
    where: list = [("employee_id", "eq", entity_id)]
    year = parse_filter_number(filters.get("year"))
    month = parse_filter_number(filters.get("month"))
    status = parse_filter_choice(filters.get("status"), FEEDBACK_STATUS_OPTIONS)
    am_updated_by = parse_filter_text(filters.get("amUpdatedBy"))
    if year:
        where.append(("year", "eq", year))
    if month:
        where.append(("month", "eq", month))
    if status:
        where.append(("status", "eq", status))
    if parse_filter_boolean(filters.get("hasAmFeedback")) is True:
        where.append(("am_feedback", "not_null", None))
    if parse_filter_boolean(filters.get("hasHrFeedback")) is True:
        where.append(("hr_feedback", "not_null", None))
    if am_updated_by:
        where.append(("am_updated_by", "eq", am_updated_by))
    return store.find(
        "feedback_report",
        where=where,
        order_by=[("year", "desc"), ("month", "desc")],
        limit=limit,
    )


def _check_in_where(filters: dict | None) -> list:
    where = _date_range([], "date_time", filters)
    status = parse_filter_choice((filters or {}).get("status"), CHECK_IN_STATUS_OPTIONS)
    if status:
        where.append(("status", "eq", status))
    return where


def _resolve_employee_check_ins(store, entity_id, limit, filters):
    where = [("employee_id", "eq", entity_id)] + _check_in_where(filters)
    rows = store.find("check_in_out", where=where, order_by=("date_time", "desc"), limit=limit)
    employee = store.get("employee", entity_id)
    user = store.get("user", employee.get("user_id")) if employee and employee.get("user_id") else None
    return [dict(row, employee=user) for row in rows]


def _resolve_bulk_check_ins(store, limit, filters):
    rows = store.find("check_in_out", where=_check_in_where(filters), order_by=("date_time", "desc"), limit=limit)
    users: Dict[str, dict | None] = {}
    for employee_id in sorted({row.get("employee_id") for row in rows if row.get("employee_id")}):
        employee = store.get("employee", employee_id)
        users[employee_id] = store.get("user", employee.get("user_id")) if employee and employee.get("user_id") else None
    return [dict(row, employee=users.get(row.get("employee_id"))) for row in rows]


def _opportunities_by(link_field: str) -> Resolver:
    def resolve(store, entity_id, limit, filters):
        where = _date_range([(link_field, "eq", entity_id)], "updated_at", filters)
        return store.find("opportunity", where=where, order_by=("updated_at", "desc"), limit=limit)

    return resolve


def _leads_by(link_field: str) -> Resolver:
    def resolve(store, entity_id, limit, filters):
        where = _date_range([(link_field, "eq", entity_id)], "created_at", filters)
        return store.find("lead", where=where, order_by=("created_at", "desc"), limit=limit)

    return resolve


def _resolve_customer_tasks(store, entity_id, limit, filters):
    where = _date_range([("customer_id", "eq", entity_id)], "due_date", filters)
    return store.find("task", where=where, order_by=("due_date", "asc"), limit=limit)


def _resolve_lead_quotes(store, entity_id, limit, filters):
    where: list = [("lead_id", "eq", entity_id)]
    status = parse_filter_choice((filters or {}).get("status"), QUOTE_STATUS_OPTIONS)
    if status:
        where.append(("status", "eq", status))
    _date_range(where, "created_at", filters)
    return store.find("quote", where=where, order_by=("created_at", "desc"), limit=limit)


def _resolve_opportunity_lead(store, entity_id, limit, filters):
    opportunity = store.get("opportunity", entity_id)
    if not opportunity or not opportunity.get("lead_id"):
        return []
    lead = store.get("lead", opportunity["lead_id"])
    return [lead] if lead else []


def _resolve_candidate_opportunities(store, entity_id, limit, filters):
    positions = store.find("candidate_position", where=[("candidate_id", "eq", entity_id)], limit=limit)
    opportunities = []
    for link in positions:
        position = store.get("position", link.get("position_id")) if link.get("position_id") else None
        if not position or not position.get("opportunity_id"):
            continue
        opportunity = store.get("opportunity", position["opportunity_id"])
        if opportunity and _in_range(opportunity.get("updated_at"), filters):
            opportunities.append(opportunity)
    return opportunities


# Shared descriptor pieces.

_CREATED_RANGE = [
    FilterDescriptor("startDate", "Created on/after", "date"),
    FilterDescriptor("endDate", "Created on/before", "date"),
]
_UPDATED_RANGE = [
    FilterDescriptor("startDate", "Updated on/after", "date"),
    FilterDescriptor("endDate", "Updated on/before", "date"),
]
_DUE_RANGE = [
    FilterDescriptor("startDate", "Due on/after", "date"),
    FilterDescriptor("endDate", "Due on/before", "date"),
]
_DATE_RANGE = [
    FilterDescriptor("startDate", "Start date", "date"),
    FilterDescriptor("endDate", "End date", "date"),
]

_ACTIVITY_FIELDS = [
    RowField("subject", "Subject", lambda row: row.get("subject")),
    RowField("type", "Type", lambda row: row.get("activity_type_name") or "Activity"),
    RowField("createdAt", "Created", lambda row: row.get("created_at")),
    RowField("body", "Details", lambda row: row.get("body")),
]

_TASK_FIELDS = [
    RowField("title", "Title", lambda row: row.get("title")),
    RowField("status", "Status", lambda row: row.get("status")),
    RowField("priority", "Priority", lambda row: row.get("priority")),
    RowField("dueDate", "Due Date", lambda row: row.get("due_date")),
    RowField("createdAt", "Created", lambda row: row.get("created_at")),
]

_OPPORTUNITY_FIELDS = [
    RowField("title", "Title", lambda row: row.get("title")),
    RowField("stage", "Stage", lambda row: row.get("stage")),
    RowField("type", "Type", lambda row: row.get("type")),
    RowField("value", "Value", lambda row: _to_number(row.get("value"))),
    RowField("updatedAt", "Updated", lambda row: row.get("updated_at")),
]

_LEAD_FIELDS = [
    RowField("title", "Title", lambda row: row.get("title")),
    RowField("status", "Status", lambda row: row.get("status")),
    RowField("expectedCloseDate", "Expected Close", lambda row: row.get("expected_close_date")),
    RowField("source", "Source", lambda row: row.get("source")),
    RowField("createdAt", "Created", lambda row: row.get("created_at")),
]


def _activities(description: str, link_field: str) -> CollectionDescriptor:
    return CollectionDescriptor(
        key=CollectionKey.ACTIVITIES,
        label="Recent Activities",
        description=description,
        default_limit=5,
        default_format=CollectionFormat.BULLET_LIST,
        filters=_CREATED_RANGE,
        fields=_ACTIVITY_FIELDS,
        resolve=_activities_by(link_field),
    )


EMPLOYEE_COLLECTIONS: List[CollectionDescriptor] = [
    CollectionDescriptor(
        key=CollectionKey.EOD_REPORTS,
        label="EOD Reports",
        description="Recent end-of-day reports submitted by the employee.",
        default_limit=5,
        default_format=CollectionFormat.TABLE,
        filters=_DATE_RANGE + [FilterDescriptor("lateOnly", "Late submissions only", "boolean")],
        fields=[
            RowField("employeeName", "Employee", lambda row: _person_name(row.get("employee")), "Employee name"),
            RowField("date", "Date", lambda row: row.get("date"), "Report date"),
            RowField("summary", "Summary", lambda row: row.get("summary"), "Daily summary of accomplishments"),
            RowField(
                "tasksWorkedOn",
                "Tasks",
                lambda row: format_eod_tasks(row.get("tasks_worked_on")),
                "Tasks worked on during the day",
            ),
            RowField("hoursWorked", "Hours Worked", lambda row: _to_number(row.get("hours_worked")), "Reported hours worked"),
            RowField(
                "isLate",
                "Late Submission",
                lambda row: "Yes" if row.get("is_late") else "No",
                "Whether the report was submitted late",
            ),
            RowField("submittedAt", "Submitted At", lambda row: row.get("submitted_at")),
        ],
        resolve=_resolve_employee_eod_reports,
        resolve_bulk=_resolve_bulk_eod_reports,
    ),
    CollectionDescriptor(
        key=CollectionKey.TASKS,
        label="Assigned Tasks",
        description="Tasks currently assigned to the employee.",
        default_limit=5,
        default_format=CollectionFormat.TABLE,
        filters=_DUE_RANGE,
        fields=_TASK_FIELDS,
        resolve=_resolve_employee_tasks,
    ),
    _activities("Latest activities logged for this employee.", "employee_id"),
    CollectionDescriptor(
        key=CollectionKey.FEEDBACK_REPORTS,
        label="Feedback Reports",
        description="Monthly feedback reports for the employee.",
        default_limit=6,
        default_format=CollectionFormat.TABLE,
        filters=[
            FilterDescriptor("year", "Year", "number"),
            FilterDescriptor("month", "Month", "number"),
            FilterDescriptor("status", "Status", "select", options=FEEDBACK_STATUS_OPTIONS),
            FilterDescriptor("hasAmFeedback", "Has AM feedback", "boolean"),
            FilterDescriptor("hasHrFeedback", "Has HR feedback", "boolean"),
            FilterDescriptor("amUpdatedBy", "Account Manager", "text"),
        ],
        fields=[
            RowField("period", "Period", _period, "Month and year of the report"),
            RowField("status", "Status", lambda row: row.get("status")),
            RowField("tasksCount", "Tasks Count", lambda row: row.get("tasks_count")),
            RowField("totalDaysOffTaken", "Days Off Taken", lambda row: row.get("total_days_off_taken")),
            RowField("totalRemainingDaysOff", "Remaining Days Off", lambda row: row.get("total_remaining_days_off")),
            RowField("hrFeedback", "HR Feedback", lambda row: row.get("hr_feedback")),
            RowField("amFeedback", "AM Feedback", lambda row: row.get("am_feedback")),
            RowField("communicationRating", "Communication Rating", lambda row: row.get("communication_rating")),
            RowField("collaborationRating", "Collaboration Rating", lambda row: row.get("collaboration_rating")),
            RowField("taskEstimationRating", "Task Estimation Rating", lambda row: row.get("task_estimation_rating")),
            RowField("timelinessRating", "Timeliness Rating", lambda row: row.get("timeliness_rating")),
            RowField("employeeSummary", "Employee Summary", lambda row: row.get("employee_summary")),
            RowField("submittedAt", "Submitted At", lambda row: row.get("submitted_at")),
            RowField("sentAt", "Sent At", lambda row: row.get("sent_at")),
            RowField("sentTo", "Sent To", lambda row: row.get("sent_to")),
            RowField("createdAt", "Created", lambda row: row.get("created_at")),
        ],
        resolve=_resolve_feedback_reports,
    ),
    CollectionDescriptor(
        key=CollectionKey.CHECK_IN_OUTS,
        label="Check-In/Check-Out Records",
        description="Attendance check-in and check-out records.",
        default_limit=10,
        default_format=CollectionFormat.TABLE,
        filters=_DATE_RANGE + [FilterDescriptor("status", "Status", "select", options=CHECK_IN_STATUS_OPTIONS)],
        fields=[
            RowField("employeeName", "Employee", lambda row: _person_name(row.get("employee")), "Employee name"),
            RowField("dateTime", "Date & Time", lambda row: row.get("date_time"), "Check-in or check-out timestamp"),
            RowField("status", "Status", lambda row: row.get("status"), "Check-in or check-out status"),
            RowField("createdAt", "Created", lambda row: row.get("created_at"), "When the record was created"),
        ],
        resolve=_resolve_employee_check_ins,
        resolve_bulk=_resolve_bulk_check_ins,
    ),
]

CUSTOMER_COLLECTIONS: List[CollectionDescriptor] = [
    CollectionDescriptor(
        key=CollectionKey.OPPORTUNITIES,
        label="Opportunities",
        description="Opportunities opened for this customer.",
        default_limit=5,
        default_format=CollectionFormat.TABLE,
        filters=_UPDATED_RANGE,
        fields=_OPPORTUNITY_FIELDS,
        resolve=_opportunities_by("customer_id"),
    ),
    CollectionDescriptor(
        key=CollectionKey.LEADS,
        label="Related Leads",
        description="Leads converted into this customer.",
        default_limit=5,
        default_format=CollectionFormat.TABLE,
        filters=_CREATED_RANGE,
        fields=_LEAD_FIELDS,
        resolve=_leads_by("converted_customer_id"),
    ),
    _activities("Latest activities for this customer.", "customer_id"),
    CollectionDescriptor(
        key=CollectionKey.TASKS,
        label="Customer Tasks",
        description="Tasks linked to this customer.",
        default_limit=5,
        default_format=CollectionFormat.TABLE,
        filters=_DUE_RANGE,
        fields=_TASK_FIELDS[:4],
        resolve=_resolve_customer_tasks,
    ),
]

LEAD_COLLECTIONS: List[CollectionDescriptor] = [
    CollectionDescriptor(
        key=CollectionKey.OPPORTUNITIES,
        label="Opportunities",
        description="Opportunities created from this lead.",
        default_limit=5,
        default_format=CollectionFormat.TABLE,
        filters=_UPDATED_RANGE,
        fields=[item for item in _OPPORTUNITY_FIELDS if item.key != "type"],
        resolve=_opportunities_by("lead_id"),
    ),
    CollectionDescriptor(
        key=CollectionKey.QUOTES,
        label="Quotes",
        description="Quotes prepared for this lead.",
        default_limit=5,
        default_format=CollectionFormat.TABLE,
        filters=_CREATED_RANGE + [FilterDescriptor("status", "Status", "select", options=QUOTE_STATUS_OPTIONS)],
        fields=[
            RowField("quoteNumber", "Quote Number", lambda row: row.get("quote_number")),
            RowField("title", "Title", lambda row: row.get("title")),
            RowField("status", "Status", lambda row: row.get("status")),
            RowField("totalValue", "Total Value", lambda row: _money(row, "total_value")),
            RowField("createdAt", "Created", lambda row: row.get("created_at")),
            RowField("sentAt", "Sent At", lambda row: row.get("sent_at")),
        ],
        resolve=_resolve_lead_quotes,
    ),
    _activities("Latest activities for this lead.", "lead_id"),
]

OPPORTUNITY_COLLECTIONS: List[CollectionDescriptor] = [
    CollectionDescriptor(
        key=CollectionKey.LEADS,
        label="Lead History",
        description="Lead records connected to this opportunity.",
        default_limit=3,
        default_format=CollectionFormat.TABLE,
        fields=[item for item in _LEAD_FIELDS if item.key in ("title", "status", "createdAt")],
        resolve=_resolve_opportunity_lead,
    ),
    _activities("Latest activities for this opportunity.", "opportunity_id"),
]

CANDIDATE_COLLECTIONS: List[CollectionDescriptor] = [
    CollectionDescriptor(
        key=CollectionKey.OPPORTUNITIES,
        label="Related Opportunities",
        description="Opportunities linked via candidate positions.",
        default_limit=5,
        default_format=CollectionFormat.TABLE,
        filters=_UPDATED_RANGE,
        fields=_OPPORTUNITY_FIELDS[:4],
        resolve=_resolve_candidate_opportunities,
    ),
    _activities("Latest activities logged for this candidate.", "candidate_id"),
]

CONTACT_COLLECTIONS: List[CollectionDescriptor] = [
    CollectionDescriptor(
        key=CollectionKey.LEADS,
        label="Leads",
        description="Leads associated with this contact.",
        default_limit=5,
        default_format=CollectionFormat.TABLE,
        filters=_CREATED_RANGE,
        fields=[item for item in _LEAD_FIELDS if item.key in ("title", "status", "createdAt")],
        resolve=_leads_by("contact_id"),
    ),
    _activities("Latest activities for this contact.", "contact_id"),
]

TASK_COLLECTIONS: List[CollectionDescriptor] = [
    _activities("Latest activities for this task.", "task_id"),
]


COLLECTION_TABLES: Dict[EntityType, List[CollectionDescriptor]] = {
    EntityType.EMPLOYEE: EMPLOYEE_COLLECTIONS,
    EntityType.CUSTOMER: CUSTOMER_COLLECTIONS,
    EntityType.LEAD: LEAD_COLLECTIONS,
    EntityType.OPPORTUNITY: OPPORTUNITY_COLLECTIONS,
    EntityType.CANDIDATE: CANDIDATE_COLLECTIONS,
    EntityType.CONTACT: CONTACT_COLLECTIONS,
    EntityType.TASK: TASK_COLLECTIONS,
    EntityType.QUOTE: [],
}
