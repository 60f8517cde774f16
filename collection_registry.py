"""Related-row collections: lookup, validation and resolution."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from entity_catalog import get_profile
from entity_collections import CollectionDescriptor
from entity_types import is_bulk, parse_collection_key
from errors import ValidationError

logger = logging.getLogger("aiact.collections")


class CollectionRegistry:
    def __init__(self, store) -> None:
        self.store = store

    def get_collection(self, entity_type, collection_key) -> CollectionDescriptor | None:
        try:
            key = parse_collection_key(collection_key)
        except ValidationError:
            return None
        return get_profile(entity_type).collection(key)

    def list_collections(self, entity_type) -> List[dict]:
        return [item.summary() for item in get_profile(entity_type).collections]

    def list_collection_fields(self, entity_type, collection_key) -> List[dict]:
        descriptor = self.get_collection(entity_type, collection_key)
        if descriptor is None:
            return []
        return [item.summary() for item in descriptor.fields]

    def ensure_collection_supported(self, entity_type, collection_key) -> CollectionDescriptor:
        descriptor = self.get_collection(entity_type, collection_key)
        if descriptor is None:
            raise ValidationError(
                f"Collection {collection_key} is not supported for {get_profile(entity_type).entity_type.value}",
                path="collection_key",
            )
        return descriptor

    def ensure_collection_fields_supported(self, entity_type, collection_key, field_keys: List[str]) -> None:
        descriptor = self.ensure_collection_supported(entity_type, collection_key)
        supported = {item.key for item in descriptor.fields}
        unsupported = [key for key in field_keys if key not in supported]
        if unsupported:
            raise ValidationError(
                f"Unsupported fields for {descriptor.key.value}: {', '.join(str(key) for key in unsupported)}",
                path="collection_fields",
                detail={"unsupported": unsupported},
            )

    def resolve_collection(
        self,
        entity_type,
        collection_key,
        field_keys: List[str],
        entity_id: str | None = None,
        limit: int | None = None,
        filters: Dict[str, Any] | None = None,
    ) -> List[Dict[str, Any]]:
        """Fetch rows and project them onto ``field_keys``.

        Without ``entity_id`` (or with the ``ALL`` marker) the bulk resolver runs when the collection has
        one; otherwise the result is empty. Unknown collections also resolve
        to no rows.
        """
        descriptor = self.get_collection(entity_type, collection_key)
        if descriptor is None:
            return []
        take = limit if isinstance(limit, int) and limit > 0 else descriptor.default_limit
        if not is_bulk(entity_id):
            rows = descriptor.resolve(self.store, entity_id, take, filters or {})
        elif descriptor.resolve_bulk is not None:
            rows = descriptor.resolve_bulk(self.store, take, filters or {})
        else:
            logger.info("collection_bulk_unsupported key=%s", descriptor.key.value)
            return []
        selectors = [item for item in descriptor.fields if item.key in field_keys]
        return [{item.key: item.select(row) for item in selectors} for row in rows]
