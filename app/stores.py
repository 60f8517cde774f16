"""In-memory stores for tests and local runs."""

from __future__ import annotations

import copy
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Tuple


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


Where = Iterable[Tuple[str, str, Any]]


def _matches(record: dict, where: Where | None) -> bool:
    for field_name, op, value in where or []:
        current = record.get(field_name)
        if op == "eq":
            if current != value:
                return False
        elif op == "in":
            if current not in (value or []):
                return False
        elif op == "not_null":
            if current is None:
                return False
        elif op in ("gte", "lte"):
            if current is None:
                return False
            try:
                ok = current >= value if op == "gte" else current <= value
            except TypeError:
                return False
            if not ok:
                return False
        else:
            raise ValueError(f"Unsupported operator: {op}")
    return True


def _normalize_order(order_by) -> List[Tuple[str, str]]:
    if not order_by:
        return []
    if isinstance(order_by[0], str):
        return [tuple(order_by)]
    return [tuple(item) for item in order_by]


def _sorted(records: List[dict], order_by) -> List[dict]:
    items = list(records)
    for field_name, direction in reversed(_normalize_order(order_by)):
        present = [r for r in items if r.get(field_name) is not None]
        missing = [r for r in items if r.get(field_name) is None]
        present.sort(key=lambda r: r.get(field_name), reverse=direction.lower() == "desc")
        items = present + missing
    return items


class MemoryRecordStore:
    """Entity store keyed by record kind (``candidate``, ``task``, ...)."""

    def __init__(self) -> None:
        self._records: Dict[str, Dict[str, dict]] = {}
        self.writes: List[Tuple[str, str, str]] = []

    def _bucket(self, kind: str) -> Dict[str, dict]:
        return self._records.setdefault(kind, {})

    def get(self, kind: str, record_id: str | None) -> dict | None:
        if not record_id:
            return None
        record = self._bucket(kind).get(record_id)
        return copy.deepcopy(record) if record else None

    def find(self, kind: str, where: Where | None = None, order_by=None, limit: int | None = None) -> list[dict]:
        items = [r for r in self._bucket(kind).values() if _matches(r, where)]
        items = _sorted(items, order_by)
        if limit is not None:
            items = items[: max(0, int(limit))]
        return [copy.deepcopy(r) for r in items]

    def create(self, kind: str, data: dict) -> dict:
        record = copy.deepcopy(data)
        record["id"] = record.get("id") or str(uuid.uuid4())
        now = _now()
        record.setdefault("created_at", now)
        record.setdefault("updated_at", now)
        self._bucket(kind)[record["id"]] = record
        self.writes.append(("create", kind, record["id"]))
        return copy.deepcopy(record)

    def update(self, kind: str, record_id: str, data: dict) -> dict:
        bucket = self._bucket(kind)
        if record_id not in bucket:
            raise KeyError("record not found")
        bucket[record_id].update(copy.deepcopy(data))
        bucket[record_id]["updated_at"] = _now()
        self.writes.append(("update", kind, record_id))
        return copy.deepcopy(bucket[record_id])


class MemoryExecutionStore:
    def __init__(self) -> None:
        self._executions: Dict[str, dict] = {}
        self._lock = threading.Lock()

    def create(self, record: dict) -> dict:
        now = _now()
        item = copy.deepcopy(record)
        item["id"] = item.get("id") or str(uuid.uuid4())
        item.setdefault("applied_at", None)
        item.setdefault("applied_changes", None)
        item["created_at"] = now
        item["updated_at"] = now
        with self._lock:
            self._executions[item["id"]] = item
        return copy.deepcopy(item)

    def update(self, execution_id: str, **changes: object) -> dict | None:
        with self._lock:
            item = self._executions.get(execution_id)
            if not item:
                return None
            item.update(copy.deepcopy(changes))
            item["updated_at"] = _now()
            return copy.deepcopy(item)

    def get(self, execution_id: str) -> dict | None:
        with self._lock:
            item = self._executions.get(execution_id)
            return copy.deepcopy(item) if item else None

    def list(
        self,
        action_id: str | None = None,
        entity_type: str | None = None,
        entity_id: str | None = None,
        limit: int = 50,
    ) -> list[dict]:
        with self._lock:
            items = [
                item
                for item in self._executions.values()
                if (action_id is None or item.get("action_id") == action_id)
                and (entity_type is None or item.get("entity_type") == entity_type)
                and (entity_id is None or item.get("entity_id") == entity_id)
            ]
            items.sort(key=lambda item: item.get("created_at") or "", reverse=True)
            return [copy.deepcopy(item) for item in items[: max(1, min(limit, 200))]]

    def claim_apply(self, execution_id: str, applied_at: str) -> bool:
        """Set ``applied_at`` only if the execution is SUCCESS and unapplied."""
        with self._lock:
            item = self._executions.get(execution_id)
            if not item or item.get("status") != "SUCCESS" or item.get("applied_at"):
                return False
            item["applied_at"] = applied_at
            item["updated_at"] = _now()
            return True

    def finish_apply(self, execution_id: str, applied_changes: dict, entity_id: str | None = None) -> dict | None:
        changes: Dict[str, Any] = {"applied_changes": applied_changes}
        if entity_id:
            changes["entity_id"] = entity_id
        return self.update(execution_id, **changes)

    def release_apply(self, execution_id: str) -> None:
        with self._lock:
            item = self._executions.get(execution_id)
            if item and item.get("applied_changes") is None:
                item["applied_at"] = None
                item["updated_at"] = _now()


class MemoryActionStore:
    def __init__(self) -> None:
        self._actions: Dict[str, dict] = {}
        self._attachments: Dict[str, dict] = {}

    def create(self, action: dict) -> dict:
        now = _now()
        item = copy.deepcopy(action)
        item["id"] = item.get("id") or str(uuid.uuid4())
        item.setdefault("is_active", True)
        item.setdefault("is_system", False)
        item.setdefault("operation_type", "READ_ONLY")
        item.setdefault("fields", [])
        item.setdefault("collections", [])
        item.setdefault("field_mappings", [])
        item["created_at"] = now
        item["updated_at"] = now
        self._actions[item["id"]] = item
        return copy.deepcopy(item)

    def get(self, action_id: str) -> dict | None:
        item = self._actions.get(action_id)
        return copy.deepcopy(item) if item else None

    def list(self, entity_type: str | None = None, include_inactive: bool = False) -> list[dict]:
        items = [
            item
            for item in self._actions.values()
            if (entity_type is None or item.get("entity_type") == entity_type)
            and (include_inactive or item.get("is_active", True))
        ]
        items.sort(key=lambda item: item.get("name") or "")
        return [copy.deepcopy(item) for item in items]

    def create_attachment(self, record: dict) -> dict:
        item = copy.deepcopy(record)
        item["id"] = item.get("id") or str(uuid.uuid4())
        item.setdefault("is_system", False)
        item["created_at"] = _now()
        self._attachments[item["id"]] = item
        return copy.deepcopy(item)

    def find_attachment(self, action_id: str, entity_type: str, entity_id: str) -> dict | None:
        for item in self._attachments.values():
            if (
                item.get("action_id") == action_id
                and item.get("entity_type") == entity_type
                and item.get("entity_id") == entity_id
            ):
                return copy.deepcopy(item)
        return None
