"""Postgres-backed stores.

Tables:
  records_generic (tenant_id, entity_id, id, data jsonb, created_at, updated_at)
  ai_action_executions (tenant_id, id, action_id, entity_type, entity_id, status,
                        applied_at, data jsonb, created_at, updated_at)
  ai_actions (tenant_id, id, entity_type, is_active, data jsonb, created_at, updated_at)
  ai_action_attachments (tenant_id, id, action_id, entity_type, entity_id, data jsonb, created_at)
"""

from __future__ import annotations

import copy
import json
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterable, List, Tuple

from app.db import execute, fetch_all, fetch_one, get_conn

logger = logging.getLogger("aiact.db")

_ORG_ID: ContextVar[str] = ContextVar("org_id", default="default")

_OPERATORS = {"eq": "=", "gte": ">=", "lte": "<="}


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _json_dumps(value: object) -> str:
    return json.dumps(value, default=str)


def get_org_id() -> str:
    return _ORG_ID.get()


def set_org_id(value: str):
    return _ORG_ID.set(value)


def reset_org_id(token):
    _ORG_ID.reset(token)


def _is_safe_field_id(value: str) -> bool:
    if not value or not isinstance(value, str):
        return False
    return all(ch.isalnum() or ch in "._-" for ch in value)


def _text_param(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


def _where_sql(where: Iterable[Tuple[str, str, Any]] | None) -> Tuple[str, list]:
    clauses: List[str] = []
    params: list = []
    for field_name, op, value in where or []:
        if not _is_safe_field_id(field_name):
            raise ValueError(f"Unsafe field name: {field_name}")
        if op == "not_null":
            clauses.append("data ->> %s is not null")
            params.append(field_name)
        elif op == "in":
            values = [_text_param(v) for v in (value or [])]
            if not values:
                clauses.append("false")
                continue
            clauses.append("data ->> %s = any(%s)")
            params.extend([field_name, values])
        elif op in _OPERATORS:
            clauses.append(f"data ->> %s {_OPERATORS[op]} %s")
            params.extend([field_name, _text_param(value)])
        else:
            raise ValueError(f"Unsupported operator: {op}")
    return "".join(f" and {clause}" for clause in clauses), params


def _order_sql(order_by) -> Tuple[str, list]:
    if not order_by:
        return "order by updated_at desc", []
    items = [tuple(order_by)] if isinstance(order_by[0], str) else [tuple(item) for item in order_by]
    parts: List[str] = []
    params: list = []
    for field_name, direction in items:
        if not _is_safe_field_id(field_name):
            raise ValueError(f"Unsafe field name: {field_name}")
        parts.append(f"data ->> %s {'desc' if direction.lower() == 'desc' else 'asc'} nulls last")
        params.append(field_name)
    return "order by " + ", ".join(parts), params


def _record(row: dict | None) -> dict | None:
    if not row:
        return None
    record = copy.deepcopy(row.get("data") or {})
    record["id"] = str(row.get("id"))
    return record


class DbRecordStore:
    def get(self, kind: str, record_id: str | None) -> dict | None:
        if not record_id:
            return None
        with get_conn() as conn:
            row = fetch_one(
                conn,
                """
                select id, data
                from records_generic
                where tenant_id=%s and entity_id=%s and id=%s
                """,
                [get_org_id(), kind, record_id],
                query_name="records_generic.get",
            )
        return _record(row)

    def find(self, kind: str, where=None, order_by=None, limit: int | None = None) -> list[dict]:
        where_sql, where_params = _where_sql(where)
        order_sql, order_params = _order_sql(order_by)
        params = [get_org_id(), kind] + where_params + order_params
        limit_sql = ""
        if limit is not None:
            limit_sql = "limit %s"
            params.append(max(0, int(limit)))
        with get_conn() as conn:
            rows = fetch_all(
                conn,
                f"""
                select id, data
                from records_generic
                where tenant_id=%s and entity_id=%s{where_sql}
                {order_sql}
                {limit_sql}
                """,
                params,
                query_name="records_generic.find",
            )
        return [_record(row) for row in rows]

    def create(self, kind: str, data: dict) -> dict:
        record = copy.deepcopy(data)
        record["id"] = record.get("id") or str(uuid.uuid4())
        now = _now()
        record.setdefault("created_at", now)
        record.setdefault("updated_at", now)
        with get_conn() as conn:
            execute(
                conn,
                """
                insert into records_generic (tenant_id, entity_id, id, data, created_at, updated_at)
                values (%s,%s,%s,%s,%s,%s)
                """,
                [get_org_id(), kind, record["id"], _json_dumps(record), now, now],
                query_name="records_generic.create",
            )
        return record

    def update(self, kind: str, record_id: str, data: dict) -> dict:
        now = _now()
        changes = dict(copy.deepcopy(data), updated_at=now)
        with get_conn() as conn:
            row = fetch_one(
                conn,
                """
                update records_generic
                set data = data || %s::jsonb, updated_at=%s
                where tenant_id=%s and entity_id=%s and id=%s
                returning id, data
                """,
                [_json_dumps(changes), now, get_org_id(), kind, record_id],
                query_name="records_generic.update",
            )
        if not row:
            raise KeyError("record not found")
        return _record(row)


class DbExecutionStore:
    _COLUMNS = ("action_id", "entity_type", "entity_id", "status", "applied_at")

    def _row_to_execution(self, row: dict | None) -> dict | None:
        if not row:
            return None
        item = copy.deepcopy(row.get("data") or {})
        item["id"] = str(row.get("id"))
        for column in self._COLUMNS:
            value = row.get(column)
            if isinstance(value, datetime):
                value = value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
            item[column] = value
        item["created_at"] = str(row.get("created_at")) if row.get("created_at") else item.get("created_at")
        item["updated_at"] = str(row.get("updated_at")) if row.get("updated_at") else item.get("updated_at")
        return item

    def create(self, record: dict) -> dict:
        item = copy.deepcopy(record)
        item["id"] = item.get("id") or str(uuid.uuid4())
        item.setdefault("applied_at", None)
        item.setdefault("applied_changes", None)
        now = _now()
        item["created_at"] = now
        item["updated_at"] = now
        with get_conn() as conn:
            row = fetch_one(
                conn,
                """
                insert into ai_action_executions
                  (tenant_id, id, action_id, entity_type, entity_id, status, applied_at, data, created_at, updated_at)
                values (%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                returning *
                """,
                [
                    get_org_id(),
                    item["id"],
                    item.get("action_id"),
                    item.get("entity_type"),
                    item.get("entity_id"),
                    item.get("status"),
                    None,
                    _json_dumps(item),
                    now,
                    now,
                ],
                query_name="ai_action_executions.insert",
            )
        return self._row_to_execution(row)

    def update(self, execution_id: str, **changes: object) -> dict | None:
        sets = ["data = data || %s::jsonb", "updated_at=%s"]
        now = _now()
        params: list = [_json_dumps(dict(changes, updated_at=now)), now]
        for column in self._COLUMNS:
            if column in changes:
                sets.append(f"{column}=%s")
                params.append(changes[column])
        params.extend([get_org_id(), execution_id])
        with get_conn() as conn:
            row = fetch_one(
                conn,
                f"""
                update ai_action_executions
                set {', '.join(sets)}
                where tenant_id=%s and id=%s
                returning *
                """,
                params,
                query_name="ai_action_executions.update",
            )
        return self._row_to_execution(row)

    def get(self, execution_id: str) -> dict | None:
        with get_conn() as conn:
            row = fetch_one(
                conn,
                "select * from ai_action_executions where tenant_id=%s and id=%s",
                [get_org_id(), execution_id],
                query_name="ai_action_executions.get",
            )
        return self._row_to_execution(row)

    def list(
        self,
        action_id: str | None = None,
        entity_type: str | None = None,
        entity_id: str | None = None,
        limit: int = 50,
    ) -> list[dict]:
        where = "where tenant_id=%s"
        params: list = [get_org_id()]
        for column, value in (("action_id", action_id), ("entity_type", entity_type), ("entity_id", entity_id)):
            if value is not None:
                where += f" and {column}=%s"
                params.append(value)
        params.append(max(1, min(limit, 200)))
        with get_conn() as conn:
            rows = fetch_all(
                conn,
                f"""
                select * from ai_action_executions
                {where}
                order by created_at desc
                limit %s
                """,
                params,
                query_name="ai_action_executions.list",
            )
        return [self._row_to_execution(row) for row in rows]

    def claim_apply(self, execution_id: str, applied_at: str) -> bool:
        with get_conn() as conn:
            count = execute(
                conn,
                """
                update ai_action_executions
                set applied_at=%s,
                    data = data || jsonb_build_object('applied_at', %s::text),
                    updated_at=%s
                where tenant_id=%s and id=%s and status='SUCCESS' and applied_at is null
                """,
                [applied_at, applied_at, _now(), get_org_id(), execution_id],
                query_name="ai_action_executions.claim_apply",
            )
        return count == 1

    def finish_apply(self, execution_id: str, applied_changes: dict, entity_id: str | None = None) -> dict | None:
        changes: dict = {"applied_changes": applied_changes}
        if entity_id:
            changes["entity_id"] = entity_id
        return self.update(execution_id, **changes)

    def release_apply(self, execution_id: str) -> None:
        with get_conn() as conn:
            execute(
                conn,
                """
                update ai_action_executions
                set applied_at=null,
                    data = data || '{"applied_at": null}'::jsonb,
                    updated_at=%s
                where tenant_id=%s and id=%s and coalesce(data -> 'applied_changes', 'null'::jsonb) = 'null'::jsonb
                """,
                [_now(), get_org_id(), execution_id],
                query_name="ai_action_executions.release_apply",
            )


class DbActionStore:
    def create(self, action: dict) -> dict:
        item = copy.deepcopy(action)
        item["id"] = item.get("id") or str(uuid.uuid4())
        item.setdefault("is_active", True)
        item.setdefault("is_system", False)
        item.setdefault("operation_type", "READ_ONLY")
        item.setdefault("fields", [])
        item.setdefault("collections", [])
        item.setdefault("field_mappings", [])
        now = _now()
        item["created_at"] = now
        item["updated_at"] = now
        with get_conn() as conn:
            execute(
                conn,
                """
                insert into ai_actions (tenant_id, id, entity_type, is_active, data, created_at, updated_at)
                values (%s,%s,%s,%s,%s,%s,%s)
                """,
                [get_org_id(), item["id"], item.get("entity_type"), bool(item["is_active"]), _json_dumps(item), now, now],
                query_name="ai_actions.insert",
            )
        return item

    def create_attachment(self, record: dict) -> dict:
        item = copy.deepcopy(record)
        item["id"] = item.get("id") or str(uuid.uuid4())
        item.setdefault("is_system", False)
        item["created_at"] = _now()
        with get_conn() as conn:
            execute(
                conn,
                """
                insert into ai_action_attachments (tenant_id, id, action_id, entity_type, entity_id, data, created_at)
                values (%s,%s,%s,%s,%s,%s,%s)
                """,
                [
                    get_org_id(),
                    item["id"],
                    item.get("action_id"),
                    item.get("entity_type"),
                    item.get("entity_id"),
                    _json_dumps(item),
                    item["created_at"],
                ],
                query_name="ai_action_attachments.insert",
            )
        return item

    def get(self, action_id: str) -> dict | None:
        with get_conn() as conn:
            row = fetch_one(
                conn,
                "select id, data from ai_actions where tenant_id=%s and id=%s",
                [get_org_id(), action_id],
                query_name="ai_actions.get",
            )
        return _record(row)

    def list(self, entity_type: str | None = None, include_inactive: bool = False) -> list[dict]:
        where = "where tenant_id=%s"
        params: list = [get_org_id()]
        if entity_type is not None:
            where += " and entity_type=%s"
            params.append(entity_type)
        if not include_inactive:
            where += " and is_active"
        with get_conn() as conn:
            rows = fetch_all(
                conn,
                f"select id, data from ai_actions {where} order by data ->> 'name' asc",
                params,
                query_name="ai_actions.list",
            )
        return [_record(row) for row in rows]

    def find_attachment(self, action_id: str, entity_type: str, entity_id: str) -> dict | None:
        with get_conn() as conn:
            row = fetch_one(
                conn,
                """
                select id, data
                from ai_action_attachments
                where tenant_id=%s and action_id=%s and entity_type=%s and entity_id=%s
                order by created_at asc
                limit 1
                """,
                [get_org_id(), action_id, entity_type, entity_id],
                query_name="ai_action_attachments.find",
            )
        return _record(row)
