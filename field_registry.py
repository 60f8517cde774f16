"""Entity field lookup and resolution for prompt templating."""

from __future__ import annotations

from typing import Any, Dict, List

from entity_catalog import get_profile
from errors import NotFoundError, ValidationError


class FieldRegistry:
    def __init__(self, store) -> None:
        self.store = store

    def list_fields(self, entity_type) -> List[dict]:
        return [item.summary() for item in get_profile(entity_type).fields]

    def ensure_field_keys_supported(self, entity_type, keys: List[str] | None) -> None:
        if not keys:
            raise ValidationError("At least one field must be selected", path="field_keys")
        profile = get_profile(entity_type)
        supported = {item.key for item in profile.fields}
        unsupported = [key for key in keys if key not in supported]
        if unsupported:
            raise ValidationError(
                f"Unsupported field(s) for {profile.entity_type.value.lower()} entity: {', '.join(str(key) for key in unsupported)}",
                path="field_keys",
                detail={"unsupported": unsupported},
            )

    def load_snapshot(self, entity_type, entity_id: str):
        profile = get_profile(entity_type)
        snapshot = profile.load(self.store, entity_id)
        if snapshot is None:
            raise NotFoundError(
                f"{profile.entity_type.value} with ID {entity_id} was not found",
                detail={"entity_type": profile.entity_type.value, "entity_id": entity_id},
            )
        return snapshot

    def ensure_entity_exists(self, entity_type, entity_id: str) -> None:
        self.load_snapshot(entity_type, entity_id)

    def resolve_fields(self, entity_type, entity_id: str, keys: List[str]) -> Dict[str, Any]:
        """Map each requested key through its selector.

        Unknown keys are dropped. Selector results of None stay None.
        """
        profile = get_profile(entity_type)
        snapshot = self.load_snapshot(profile.entity_type, entity_id)
        resolved: Dict[str, Any] = {}
        for key in keys:
            descriptor = profile.field(key)
            if descriptor is None:
                continue
            resolved[key] = descriptor.select(snapshot)
        return resolved
