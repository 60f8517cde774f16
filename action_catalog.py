"""Action definition checks and system-row guards."""

from __future__ import annotations

from dataclasses import fields as dc_fields
from typing import Any, Dict, List

from entity_catalog import get_profile
from entity_payloads import to_storage_key
from entity_types import OperationType, is_bulk, parse_collection_format, parse_operation_type
from errors import ConflictError, ValidationError


def _issue(message: str, path: str) -> ValidationError:
    return ValidationError(message, path=path)


def _normalize_collection(index: int, use: dict, profile, collections) -> dict:
    path = f"collections[{index}]"
    if not isinstance(use, dict):
        raise _issue("Collection entry must be an object", path)
    descriptor = collections.ensure_collection_supported(profile.entity_type, use.get("collection_key"))
    fmt = parse_collection_format(use.get("format"), descriptor.default_format)
    if fmt not in descriptor.formats():
        raise _issue(f"Format {fmt.value} is not supported for {descriptor.key.value}", f"{path}.format")
    limit = use.get("limit")
    if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0):
        raise _issue("Collection limit must be a positive integer", f"{path}.limit")
    field_keys = [item.get("field_key") for item in use.get("fields") or [] if isinstance(item, dict)]
    if not field_keys:
        raise _issue(f"Select at least one field for {descriptor.key.value}", f"{path}.fields")
    collections.ensure_collection_fields_supported(profile.entity_type, descriptor.key, field_keys)
    return dict(use, collection_key=descriptor.key.value, format=fmt.value)


def _check_mappings(mappings: List[dict], profile, operation: OperationType) -> None:
    if operation == OperationType.READ_ONLY:
        return
    if not mappings:
        raise _issue(f"{operation.value} actions need at least one field mapping", "field_mappings")
    writable = {spec.name for spec in dc_fields(profile.payload_cls)}
    for idx, mapping in enumerate(mappings):
        path = f"field_mappings[{idx}]"
        source_key = (mapping.get("source_key") or "").strip() if isinstance(mapping, dict) else ""
        target = (mapping.get("target_field") or "").strip() if isinstance(mapping, dict) else ""
        if not source_key:
            raise _issue("Mapping source_key is required", f"{path}.source_key")
        if not target:
            raise _issue("Mapping target_field is required", f"{path}.target_field")
        if to_storage_key(target) not in writable:
            raise _issue(
                f"Field {target} cannot be written on {profile.entity_type.value}",
                f"{path}.target_field",
            )


def validate_action_definition(action: Dict[str, Any], fields, collections) -> Dict[str, Any]:
    """Check an action against the field and collection registries.

    Returns a normalized copy: enum values upper-cased, collection formats
    filled from their defaults.
    """
    if not isinstance(action, dict):
        raise _issue("Action must be an object", "action")
    if not (action.get("name") or "").strip():
        raise _issue("Action name is required", "name")
    if not (action.get("prompt_template") or "").strip():
        raise _issue("Prompt template is required", "prompt_template")
    profile = get_profile(action.get("entity_type"))
    operation = parse_operation_type(action.get("operation_type"))
    if operation == OperationType.CREATE and not profile.creatable:
        raise _issue(f"Create not supported for entity type: {profile.entity_type.value}", "operation_type")

    field_keys = [item.get("field_key") for item in action.get("fields") or [] if isinstance(item, dict)]
    fields.ensure_field_keys_supported(profile.entity_type, field_keys)

    normalized_collections = [
        _normalize_collection(idx, use, profile, collections) for idx, use in enumerate(action.get("collections") or [])
    ]
    mappings = list(action.get("field_mappings") or [])
    _check_mappings(mappings, profile, operation)

    return dict(
        action,
        entity_type=profile.entity_type.value,
        operation_type=operation.value,
        collections=normalized_collections,
        field_mappings=mappings,
    )


def ensure_action_mutable(action: dict) -> None:
    if action.get("is_system"):
        raise ConflictError("System AI actions cannot be modified or deleted", detail={"action_id": action.get("id")})


def ensure_attachment_mutable(attachment: dict) -> None:
    if attachment.get("is_system"):
        raise ConflictError(
            "System AI action attachments cannot be modified or deleted",
            detail={"attachment_id": attachment.get("id")},
        )


def find_attachment(actions, action_id: str | None, entity_type, entity_id: str | None) -> dict | None:
    """Attachment linking ``action_id`` to one entity, or None for bulk runs."""
    if not action_id or is_bulk(entity_id):
        return None
    return actions.find_attachment(action_id, get_profile(entity_type).entity_type.value, entity_id)
