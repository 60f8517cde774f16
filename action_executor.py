"""Run an AI action against an entity and record the execution.

An execution is written as PENDING right before the model call and moves
exactly once to SUCCESS or FAILED. Validation and lookups happen first so a
rejected request never leaves an execution row behind.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List

from action_catalog import find_attachment
from aiact import CanonicalJsonTypeError, to_json_safe
from change_mapper import build_proposed_changes
from collection_registry import CollectionRegistry
from entity_catalog import get_profile
from entity_payloads import to_storage_key
from entity_types import (
    BULK_ENTITY_ID,
    ExecutionStatus,
    OperationType,
    is_bulk,
    parse_collection_format,
    parse_operation_type,
)
from errors import NotFoundError, ValidationError
from field_registry import FieldRegistry
from prompt_builder import CollectionBlock, build_prompt, format_collection
from response_parser import parse_model_json

logger = logging.getLogger("aiact.executor")

ADHOC_ACTION_NAME = "Ad-hoc AI prompt"


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _raw_output(raw: Any) -> Any:
    try:
        return to_json_safe(raw)
    except CanonicalJsonTypeError:
        return str(raw)


class ActionExecutor:
    def __init__(
        self,
        actions,
        executions,
        store,
        model,
        activities=None,
        fields: FieldRegistry | None = None,
        collections: CollectionRegistry | None = None,
    ) -> None:
        self.actions = actions
        self.executions = executions
        self.store = store
        self.model = model
        self.activities = activities
        self.fields = fields or FieldRegistry(store)
        self.collections = collections or CollectionRegistry(store)

    def execute_saved_action(
        self,
        action_id: str,
        triggered_by_id: str | None,
        entity_id: str | None = None,
        field_keys_override: List[str] | None = None,
        prompt_override: str | None = None,
        extra_instructions: str | None = None,
    ) -> dict:
        action = self.actions.get(action_id)
        if not action:
            raise NotFoundError("AI action not found", detail={"action_id": action_id})
        if not action.get("is_active", True):
            raise ValidationError("AI action is inactive", path="action_id", detail={"action_id": action_id})
        field_keys = field_keys_override or [
            item.get("field_key") for item in action.get("fields") or [] if isinstance(item, dict)
        ]
        template = prompt_override if prompt_override and prompt_override.strip() else action.get("prompt_template")
        return self._run(action, field_keys, template or "", triggered_by_id, entity_id, extra_instructions)

    def execute_adhoc(
        self,
        entity_type,
        field_keys: List[str],
        prompt: str,
        triggered_by_id: str | None,
        entity_id: str | None = None,
        extra_instructions: str | None = None,
        model: str | None = None,
    ) -> dict:
        if not prompt or not prompt.strip():
            raise ValidationError("Prompt is required", path="prompt")
        action = {
            "id": None,
            "name": ADHOC_ACTION_NAME,
            "prompt_template": prompt,
            "entity_type": get_profile(entity_type).entity_type.value,
            "model": model,
            "operation_type": OperationType.READ_ONLY.value,
            "collections": [],
            "field_mappings": [],
        }
        return self._run(action, field_keys, prompt, triggered_by_id, entity_id, extra_instructions)

    def list_executions(
        self,
        action_id: str | None = None,
        entity_type=None,
        entity_id: str | None = None,
        limit: int = 50,
    ) -> List[dict]:
        type_value = get_profile(entity_type).entity_type.value if entity_type is not None else None
        return self.executions.list(action_id=action_id, entity_type=type_value, entity_id=entity_id, limit=limit)

    def get_execution(self, execution_id: str) -> dict:
        execution = self.executions.get(execution_id)
        if not execution:
            raise NotFoundError("Execution not found", detail={"execution_id": execution_id})
        return execution

    def _collection_blocks(self, profile, uses: List[dict], entity_id: str | None) -> List[CollectionBlock]:
        blocks: List[CollectionBlock] = []
        for use in uses:
            descriptor = self.collections.get_collection(profile.entity_type, use.get("collection_key"))
            if descriptor is None:
                logger.info("collection_skipped key=%s reason=unknown", use.get("collection_key"))
                continue
            labels = {item.key: item.label for item in descriptor.fields}
            pairs = [
                (item.get("field_key"), item.get("field_label") or labels[item.get("field_key")])
                for item in use.get("fields") or []
                if isinstance(item, dict) and item.get("field_key") in labels
            ]
            if not pairs:
                logger.info("collection_skipped key=%s reason=no_fields", descriptor.key.value)
                continue
            fmt = parse_collection_format(use.get("format"), descriptor.default_format)
            if fmt not in descriptor.formats():
                fmt = descriptor.default_format
            rows = self.collections.resolve_collection(
                profile.entity_type,
                descriptor.key,
                [key for key, _ in pairs],
                entity_id=entity_id,
                limit=use.get("limit"),
                filters=(use.get("metadata") or {}).get("filters"),
            )
            label = use.get("label") or descriptor.label
            blocks.append(
                CollectionBlock(
                    key=descriptor.key.value,
                    label=label,
                    text=format_collection(label, rows, pairs, fmt),
                    rows=rows,
                )
            )
        return blocks

    def _current_values(self, profile, entity_id: str, mappings: List[dict]) -> Dict[str, Any]:
        record = self.store.get(profile.store_kind, entity_id) or {}
        current: Dict[str, Any] = {}
        for mapping in mappings:
            target = (mapping.get("target_field") or "").strip()
            if target:
                current[target] = record.get(to_storage_key(target))
        return current

    def _propose(self, execution_id: str, profile, operation, mappings: List[dict], target_id, text: str):
        if operation == OperationType.READ_ONLY or not mappings:
            return None
        parsed = parse_model_json(text)
        if parsed is None:
            logger.info("execution_parse_miss id=%s", execution_id)
            return None
        current = {}
        if operation == OperationType.UPDATE and target_id:
            current = self._current_values(profile, target_id, mappings)
        proposed = build_proposed_changes(
            mappings,
            parsed,
            operation,
            profile.entity_type,
            target_id if operation == OperationType.UPDATE else None,
            current,
        )
        return to_json_safe(proposed) if proposed else None

    def _run(
        self,
        action: dict,
        field_keys: List[str],
        template: str,
        triggered_by_id: str | None,
        entity_id: str | None,
        extra_instructions: str | None,
    ) -> dict:
        profile = get_profile(action.get("entity_type"))
        self.fields.ensure_field_keys_supported(profile.entity_type, field_keys)
        bulk = is_bulk(entity_id)
        target_id = None if bulk else entity_id
        field_values = {} if bulk else self.fields.resolve_fields(profile.entity_type, entity_id, field_keys)
        blocks = self._collection_blocks(profile, action.get("collections") or [], target_id)

        operation = parse_operation_type(action.get("operation_type"))
        mappings = [item for item in action.get("field_mappings") or [] if isinstance(item, dict)]
        source_keys = [(item.get("source_key") or "").strip() for item in mappings]
        prompt = build_prompt(
            template,
            field_values,
            blocks,
            extra_instructions=extra_instructions,
            operation_type=operation,
            mapping_source_keys=[key for key in source_keys if key],
        )
        inputs = to_json_safe(
            dict(field_values, __collections={block.key: {"rows": block.rows, "formatted": block.text} for block in blocks})
        )
        attachment = find_attachment(self.actions, action.get("id"), profile.entity_type, target_id)

        execution = self.executions.create(
            {
                "action_id": action.get("id"),
                "attachment_id": attachment["id"] if attachment else None,
                "entity_type": profile.entity_type.value,
                "entity_id": BULK_ENTITY_ID if bulk else entity_id,
                "prompt": prompt,
                "inputs": inputs,
                "status": ExecutionStatus.PENDING.value,
                "triggered_by_id": triggered_by_id,
            }
        )
        execution_id = execution["id"]
        logger.info(
            "execution_started id=%s action_id=%s entity_type=%s entity_id=%s bulk=%s",
            execution_id,
            action.get("id"),
            profile.entity_type.value,
            execution["entity_id"],
            bulk,
        )

        start = time.perf_counter()
        try:
            result = self.model.generate(prompt, model=action.get("model"))
            elapsed_ms = (time.perf_counter() - start) * 1000
            proposed = self._propose(execution_id, profile, operation, mappings, target_id, result.text)
            activity_id = None
            if not bulk and self.activities is not None:
                activity = self.activities.record(
                    subject=f"AI • {action.get('name') or ADHOC_ACTION_NAME}",
                    body=f"AI response generated at {_now()}:\n\n{result.text}",
                    metadata={
                        "execution_id": execution_id,
                        "entity_type": profile.entity_type.value,
                        "entity_id": entity_id,
                        "field_keys": list(field_keys),
                        "context": to_json_safe(field_values),
                        "collections": [block.key for block in blocks],
                    },
                    targets={profile.activity_target: entity_id},
                    actor_id=triggered_by_id,
                )
                activity_id = activity["id"]
        except Exception as exc:
            self.executions.update(
                execution_id,
                status=ExecutionStatus.FAILED.value,
                error_message=str(exc),
                completed_at=_now(),
            )
            logger.warning("execution_failed id=%s error=%s", execution_id, exc)
            raise

        completed = self.executions.update(
            execution_id,
            status=ExecutionStatus.SUCCESS.value,
            output=result.text,
            raw_output=_raw_output(result.raw_response),
            proposed_changes=proposed,
            activity_id=activity_id,
            completed_at=_now(),
        )
        logger.info(
            "execution_succeeded id=%s ms=%.1f proposed_fields=%s",
            execution_id,
            elapsed_ms,
            len(proposed["fields"]) if proposed else 0,
        )
        return completed
