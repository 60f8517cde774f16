"""Field descriptor tables, one per entity type.

Selectors are pure functions over a typed snapshot. Keys are the names
operators use as ``{{placeholders}}`` in prompt templates.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List

from entity_types import EntityType
from snapshots import PersonRef


@dataclass(frozen=True)
class FieldDescriptor:
    key: str
    label: str
    select: Callable[[Any], Any]
    description: str | None = None

    def summary(self) -> dict:
        return {"key": self.key, "label": self.label, "description": self.description}


def _f(key: str, label: str, select: Callable[[Any], Any], description: str | None = None) -> FieldDescriptor:
    return FieldDescriptor(key=key, label=label, select=select, description=description)


def _date_text(value: date | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def _datetime_text(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _decimal_text(value: Decimal | None) -> str | None:
    return format(value, "f") if value is not None else None


def _number(value: Decimal | None):
    if value is None:
        return None
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _joined(items: List[str]) -> str | None:
    return ", ".join(items) if items else None


def _full_name(snapshot) -> str:
    return f"{snapshot.first_name or ''} {snapshot.last_name or ''}".strip()


def _person_name(person: PersonRef | None) -> str | None:
    return person.display_name() if person else None


def _person_attr(person: PersonRef | None, attr: str):
    return getattr(person, attr) if person else None


def tenure_months(hire_date: date | None, termination_date: date | None, today: date | None = None) -> int | None:
    if hire_date is None:
        return None
    end = termination_date or today or datetime.now(timezone.utc).date()
    months = (end - hire_date).days / 30.4375
    return max(0, round(months))


def _salary_display(employee) -> str | None:
    if not employee.salary:
        return None
    return f"{employee.salary_currency or 'USD'} {_decimal_text(employee.salary)}"


CANDIDATE_FIELDS: List[FieldDescriptor] = [
    _f("fullName", "Full name", _full_name, "Candidate full name"),
    _f("email", "Email", lambda c: c.email),
    _f("phone", "Phone", lambda c: c.phone),
    _f("currentTitle", "Current title", lambda c: c.current_title),
    _f("yearsOfExperience", "Years of experience", lambda c: c.years_of_experience),
    _f("skills", "Skills", lambda c: ", ".join(c.skills), "Comma separated skills the candidate listed"),
    _f("resumeUrl", "Resume URL", lambda c: c.resume),
    _f("linkedinUrl", "LinkedIn URL", lambda c: c.linkedin_url),
    _f("githubUrl", "GitHub URL", lambda c: c.github_url),
    _f("portfolioUrl", "Portfolio URL", lambda c: c.portfolio_url),
    _f("stage", "Pipeline stage", lambda c: c.stage),
    _f("rating", "Rating", lambda c: c.rating),
    _f("notes", "Notes", lambda c: c.notes),
]

EMPLOYEE_FIELDS: List[FieldDescriptor] = [
    _f("fullName", "Full name", lambda e: _full_name(e) or e.email, "Employee full name"),
    _f("email", "Email", lambda e: e.email),
    _f("phone", "Phone", lambda e: e.phone),
    _f("department", "Department", lambda e: e.department),
    _f("jobTitle", "Job title", lambda e: e.job_title),
    _f("status", "Employment status", lambda e: e.status),
    _f("contractType", "Contract type", lambda e: e.contract_type),
    _f("hireDate", "Hire date", lambda e: _date_text(e.hire_date), "ISO date string representing the hire date"),
    _f(
        "tenureMonths",
        "Tenure (months)",
        lambda e: tenure_months(e.hire_date, e.termination_date),
        "Approximate number of months employed",
    ),
    _f("managerName", "Manager name", lambda e: e.manager_name),
    _f("managerEmail", "Manager email", lambda e: e.manager_email),
    _f("managerTitle", "Manager job title", lambda e: e.manager_title),
    _f("salaryDisplay", "Salary (display)", _salary_display, "Formatted salary including currency"),
    _f("salaryAmount", "Salary amount", lambda e: _decimal_text(e.salary), "Raw salary value without currency formatting"),
    _f("salaryCurrency", "Salary currency", lambda e: e.salary_currency),
    _f("emergencyContactName", "Emergency contact name", lambda e: e.emergency_contact_name),
    _f("emergencyContactPhone", "Emergency contact phone", lambda e: e.emergency_contact_phone),
    _f("emergencyContactRelation", "Emergency contact relation", lambda e: e.emergency_contact_relation),
]

CUSTOMER_FIELDS: List[FieldDescriptor] = [
    _f("name", "Customer name", lambda c: c.name),
    _f("email", "Email", lambda c: c.email),
    _f("phone", "Phone", lambda c: c.phone),
    _f("website", "Website", lambda c: c.website),
    _f("industry", "Industry", lambda c: c.industry),
    _f("type", "Customer type", lambda c: c.type),
    _f("status", "Status", lambda c: c.status),
    _f("sentiment", "Sentiment", lambda c: c.sentiment),
    _f("address", "Address", lambda c: c.address),
    _f("city", "City", lambda c: c.city),
    _f("country", "Country", lambda c: c.country),
    _f("postalCode", "Postal code", lambda c: c.postal_code),
    _f("monthlyValue", "Monthly value", lambda c: _decimal_text(c.monthly_value)),
    _f("currency", "Currency", lambda c: c.currency),
    _f("notes", "Notes", lambda c: c.notes),
    _f("tags", "Tags", lambda c: _joined(c.tags), "Comma separated customer tags"),
]

CONTACT_FIELDS: List[FieldDescriptor] = [
    _f("fullName", "Full name", _full_name),
    _f("email", "Email", lambda c: c.email),
    _f("phone", "Phone", lambda c: c.phone),
    _f("role", "Role", lambda c: c.role),
    _f("companyName", "Company name", lambda c: c.company_name),
    _f("linkedinUrl", "LinkedIn URL", lambda c: c.linkedin_url),
    _f("notes", "Notes", lambda c: c.notes),
    _f("customerName", "Customer name", lambda c: c.customer_name),
]

LEAD_FIELDS: List[FieldDescriptor] = [
    _f("title", "Title", lambda l: l.title),
    _f("description", "Description", lambda l: l.description),
    _f("status", "Status", lambda l: l.status),
    _f("value", "Value", lambda l: _number(l.value)),
    _f("probability", "Probability", lambda l: l.probability),
    _f("source", "Source", lambda l: l.source),
    _f("expectedCloseDate", "Expected close date", lambda l: _date_text(l.expected_close_date)),
    _f("actualCloseDate", "Actual close date", lambda l: _date_text(l.actual_close_date)),
    _f("lostReason", "Lost reason", lambda l: l.lost_reason),
    _f("prospectCompanyName", "Prospect company", lambda l: l.prospect_company_name),
    _f("prospectWebsite", "Prospect website", lambda l: l.prospect_website),
    _f("prospectIndustry", "Prospect industry", lambda l: l.prospect_industry),
    _f("assignedTo", "Assigned to", lambda l: _person_name(l.assigned_to)),
    _f("contactName", "Primary contact name", lambda l: _person_name(l.primary_contact)),
    _f("contactEmail", "Primary contact email", lambda l: _person_attr(l.primary_contact, "email")),
    _f("contactPhone", "Primary contact phone", lambda l: _person_attr(l.primary_contact, "phone")),
]

TASK_FIELDS: List[FieldDescriptor] = [
    _f("title", "Title", lambda t: t.title),
    _f("description", "Description", lambda t: t.description),
    _f("status", "Status", lambda t: t.status),
    _f("priority", "Priority", lambda t: t.priority),
    _f("dueDate", "Due date", lambda t: _datetime_text(t.due_date)),
    _f("startDate", "Start date", lambda t: _datetime_text(t.start_date)),
    _f("completedAt", "Completed at", lambda t: _datetime_text(t.completed_at)),
    _f("tags", "Tags", lambda t: _joined(t.tags)),
    _f("estimatedHours", "Estimated hours", lambda t: _number(t.estimated_hours)),
    _f("actualHours", "Actual hours", lambda t: _number(t.actual_hours)),
    _f("assignedTo", "Assigned to", lambda t: _person_name(t.assigned_to)),
    _f("customerId", "Customer ID", lambda t: t.customer_id),
]

QUOTE_FIELDS: List[FieldDescriptor] = [
    _f("quoteNumber", "Quote number", lambda q: q.quote_number),
    _f("title", "Title", lambda q: q.title),
    _f("description", "Description", lambda q: q.description),
    _f("overview", "Overview", lambda q: q.overview),
    _f("functionalProposal", "Functional proposal", lambda q: q.functional_proposal),
    _f("technicalProposal", "Technical proposal", lambda q: q.technical_proposal),
    _f("teamComposition", "Team composition", lambda q: q.team_composition),
    _f("paymentTerms", "Payment terms", lambda q: q.payment_terms),
    _f("warrantyPeriod", "Warranty period", lambda q: q.warranty_period),
    _f("totalValue", "Total value", lambda q: _number(q.total_value)),
    _f("currency", "Currency", lambda q: q.currency),
    _f("status", "Status", lambda q: q.status),
    _f("sentAt", "Sent at", lambda q: _datetime_text(q.sent_at)),
    _f("sentTo", "Sent to", lambda q: q.sent_to),
    _f("leadTitle", "Lead title", lambda q: q.lead_title),
    _f("leadDescription", "Lead description", lambda q: q.lead_description),
    _f("contactName", "Contact name", lambda q: _person_name(q.primary_contact)),
    _f("contactEmail", "Contact email", lambda q: _person_attr(q.primary_contact, "email")),
    _f("contactPhone", "Contact phone", lambda q: _person_attr(q.primary_contact, "phone")),
]

OPPORTUNITY_FIELDS: List[FieldDescriptor] = [
    _f("title", "Title", lambda o: o.title),
    _f("description", "Description", lambda o: o.description),
    _f("stage", "Stage", lambda o: o.stage),
    _f("type", "Type", lambda o: o.type),
    _f("value", "Value", lambda o: _number(o.value)),
    _f("customerName", "Customer name", lambda o: o.customer_name),
    _f("customerIndustry", "Customer industry", lambda o: o.customer_industry),
    _f("leadTitle", "Lead title", lambda o: o.lead_title),
    _f("leadSummary", "Lead summary", lambda o: o.lead_description),
    _f("leadContactName", "Lead contact name", lambda o: _person_name(o.lead_contact)),
    _f("leadContactEmail", "Lead contact email", lambda o: _person_attr(o.lead_contact, "email")),
    _f("leadContactPhone", "Lead contact phone", lambda o: _person_attr(o.lead_contact, "phone")),
]


FIELD_TABLES: Dict[EntityType, List[FieldDescriptor]] = {
    EntityType.CANDIDATE: CANDIDATE_FIELDS,
    EntityType.EMPLOYEE: EMPLOYEE_FIELDS,
    EntityType.CUSTOMER: CUSTOMER_FIELDS,
    EntityType.CONTACT: CONTACT_FIELDS,
    EntityType.LEAD: LEAD_FIELDS,
    EntityType.TASK: TASK_FIELDS,
    EntityType.QUOTE: QUOTE_FIELDS,
    EntityType.OPPORTUNITY: OPPORTUNITY_FIELDS,
}
