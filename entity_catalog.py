"""One lookup table from entity type to everything the pipeline needs about it."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Type

from entity_collections import COLLECTION_TABLES, CollectionDescriptor
from entity_fields import FIELD_TABLES, FieldDescriptor
from entity_payloads import PAYLOAD_TYPES
from entity_types import EntityType, parse_entity_type
from snapshots import SNAPSHOT_LOADERS, SnapshotLoader


@dataclass(frozen=True)
class EntityProfile:
    entity_type: EntityType
    store_kind: str
    fields: List[FieldDescriptor]
    collections: List[CollectionDescriptor]
    load: SnapshotLoader
    payload_cls: Type
    activity_target: str
    creatable: bool = False

    def field(self, key: str) -> FieldDescriptor | None:
        for item in self.fields:
            if item.key == key:
                return item
        return None

    def collection(self, key) -> CollectionDescriptor | None:
        for item in self.collections:
            if item.key == key:
                return item
        return None


def _profile(entity_type: EntityType, store_kind: str, activity_target: str, creatable: bool = False) -> EntityProfile:
    return EntityProfile(
        entity_type=entity_type,
        store_kind=store_kind,
        fields=FIELD_TABLES[entity_type],
        collections=COLLECTION_TABLES[entity_type],
        load=SNAPSHOT_LOADERS[entity_type],
        payload_cls=PAYLOAD_TYPES[entity_type],
        activity_target=activity_target,
        creatable=creatable,
    )


ENTITY_CATALOG: Dict[EntityType, EntityProfile] = {
    EntityType.CANDIDATE: _profile(EntityType.CANDIDATE, "candidate", "candidate_id"),
    EntityType.EMPLOYEE: _profile(EntityType.EMPLOYEE, "employee", "employee_id"),
    EntityType.CUSTOMER: _profile(EntityType.CUSTOMER, "customer", "customer_id"),
    EntityType.CONTACT: _profile(EntityType.CONTACT, "contact", "contact_id", creatable=True),
    EntityType.LEAD: _profile(EntityType.LEAD, "lead", "lead_id", creatable=True),
    EntityType.TASK: _profile(EntityType.TASK, "task", "task_id", creatable=True),
    EntityType.QUOTE: _profile(EntityType.QUOTE, "quote", "quote_id", creatable=True),
    EntityType.OPPORTUNITY: _profile(EntityType.OPPORTUNITY, "opportunity", "opportunity_id"),
}

# every tag must have a profile
assert set(ENTITY_CATALOG) == set(EntityType)


def get_profile(entity_type) -> EntityProfile:
    return ENTITY_CATALOG[parse_entity_type(entity_type)]
