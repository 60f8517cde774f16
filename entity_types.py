"""Closed tags shared across the AI action pipeline."""

from __future__ import annotations

from enum import Enum

from errors import ValidationError


class EntityType(str, Enum):
    CANDIDATE = "CANDIDATE"
    EMPLOYEE = "EMPLOYEE"
    CUSTOMER = "CUSTOMER"
    CONTACT = "CONTACT"
    LEAD = "LEAD"
    TASK = "TASK"
    QUOTE = "QUOTE"
    OPPORTUNITY = "OPPORTUNITY"


class CollectionKey(str, Enum):
    EOD_REPORTS = "EOD_REPORTS"
    TASKS = "TASKS"
    ACTIVITIES = "ACTIVITIES"
    FEEDBACK_REPORTS = "FEEDBACK_REPORTS"
    CHECK_IN_OUTS = "CHECK_IN_OUTS"
    OPPORTUNITIES = "OPPORTUNITIES"
    LEADS = "LEADS"
    QUOTES = "QUOTES"


class CollectionFormat(str, Enum):
    TABLE = "TABLE"
    BULLET_LIST = "BULLET_LIST"
    PLAIN_TEXT = "PLAIN_TEXT"


class OperationType(str, Enum):
    READ_ONLY = "READ_ONLY"
    UPDATE = "UPDATE"
    CREATE = "CREATE"


class ExecutionStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


BULK_ENTITY_ID = "ALL"

ACTIVITY_TYPE_KEY = "AI_ACTION"
ACTIVITY_VISIBILITY_PUBLIC = "PUBLIC"


def _coerce(enum_cls, value, label: str):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().upper())
        except ValueError:
            pass
    raise ValidationError(f"Unsupported {label}: {value}", path=label)


def parse_entity_type(value) -> EntityType:
    return _coerce(EntityType, value, "entity_type")


def parse_collection_key(value) -> CollectionKey:
    return _coerce(CollectionKey, value, "collection_key")


def parse_collection_format(value, default: CollectionFormat | None = None) -> CollectionFormat:
    if value is None and default is not None:
        return default
    return _coerce(CollectionFormat, value, "format")


def parse_operation_type(value) -> OperationType:
    if value is None:
        return OperationType.READ_ONLY
    return _coerce(OperationType, value, "operation_type")


def is_bulk(entity_id) -> bool:
    return entity_id is None or entity_id == "" or entity_id == BULK_ENTITY_ID
