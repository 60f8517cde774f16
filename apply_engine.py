"""Apply an execution's proposed changes to the target entity, at most once."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from aiact import to_json_safe
from entity_catalog import get_profile
from entity_payloads import build_payload
from entity_types import ExecutionStatus, OperationType
from errors import ApplyError, ConflictError, NotFoundError, ValidationError

logger = logging.getLogger("aiact.apply")


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class ApplyEngine:
    def __init__(self, executions, store, activities=None, clock: Callable[[], str] = _now) -> None:
        self.executions = executions
        self.store = store
        self.activities = activities
        self.clock = clock

    def _load(self, execution_id: str) -> dict:
        execution = self.executions.get(execution_id)
        if not execution:
            raise NotFoundError("Execution not found", detail={"execution_id": execution_id})
        if execution.get("status") != ExecutionStatus.SUCCESS.value:
            raise ConflictError("Execution must be successful before applying changes")
        if execution.get("applied_at"):
            raise ConflictError("Changes have already been applied")
        if not execution.get("proposed_changes"):
            raise ConflictError("No proposed changes to apply")
        return execution

    def apply_changes(self, execution_id: str, triggered_by_id: str | None = None) -> Dict[str, Any]:
        execution = self._load(execution_id)
        changes = execution["proposed_changes"]
        try:
            operation = OperationType(str(changes.get("operation") or "").upper())
        except ValueError:
            raise ValidationError(f"Unsupported operation type: {changes.get('operation')}", path="operation") from None
        if operation == OperationType.READ_ONLY:
            raise ValidationError("Unsupported operation type: READ_ONLY", path="operation")
        profile = get_profile(changes.get("entity_type"))
        entity_id = changes.get("entity_id")

        current: dict = {}
        if operation == OperationType.UPDATE:
            if not entity_id:
                raise ValidationError("Entity ID is required for UPDATE operations", path="entity_id")
            current = self.store.get(profile.store_kind, entity_id)
            if current is None:
                raise NotFoundError(f"{profile.entity_type.value} with ID {entity_id} was not found")
        elif not profile.creatable:
            raise ValidationError(f"Create not supported for entity type: {profile.entity_type.value}", path="entity_type")

        raw_fields = {key: item.get("new_value") for key, item in (changes.get("fields") or {}).items()}
        payload, dropped = build_payload(profile.payload_cls, raw_fields)
        if payload.is_empty():
            raise ValidationError(
                "No writable fields remain after sanitizing proposed changes",
                path="fields",
                detail={"dropped_fields": dropped},
            )
        values = payload.as_changes()

        applied_at = self.clock()
        if not self.executions.claim_apply(execution_id, applied_at):
            raise ConflictError("Changes have already been applied")
        logger.info(
            "apply_claimed execution_id=%s operation=%s entity_type=%s fields=%s dropped=%s",
            execution_id,
            operation.value,
            profile.entity_type.value,
            sorted(values),
            len(dropped),
        )

        try:
            if operation == OperationType.UPDATE:
                self.store.update(profile.store_kind, entity_id, values)
            else:
                created = self.store.create(profile.store_kind, values)
                entity_id = created["id"]
        except Exception as exc:
            logger.exception("apply_write_failed execution_id=%s", execution_id)
            self.executions.release_apply(execution_id)
            raise ApplyError(
                "Failed to write changes to the entity",
                detail={"execution_id": execution_id, "error": str(exc)},
            ) from exc

        applied_changes: Dict[str, Any] = {
            "operation": operation.value,
            "entity_type": profile.entity_type.value,
            "entity_id": entity_id,
            "fields": {
                name: {"old_value": current.get(name) if operation == OperationType.UPDATE else None, "new_value": value}
                for name, value in values.items()
            },
            "dropped_fields": dropped,
            "applied_at": applied_at,
        }
        if operation == OperationType.CREATE:
            applied_changes["created_entity_id"] = entity_id
        applied_changes = to_json_safe(applied_changes)
        self.executions.finish_apply(
            execution_id,
            applied_changes,
            entity_id=entity_id if operation == OperationType.CREATE else None,
        )

        if operation == OperationType.UPDATE and self.activities is not None:
            self.activities.add_change(
                targets={profile.activity_target: entity_id},
                changes=[
                    {"field": name, "old_value": item["old_value"], "new_value": item["new_value"]}
                    for name, item in applied_changes["fields"].items()
                ],
                actor_id=triggered_by_id,
                metadata={"execution_id": execution_id},
            )
        logger.info("apply_done execution_id=%s entity_id=%s", execution_id, entity_id)
        return applied_changes
