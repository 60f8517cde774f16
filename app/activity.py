"""Audit activities written to the entity store under kind ``activity``."""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Dict, List

from entity_types import ACTIVITY_TYPE_KEY, ACTIVITY_VISIBILITY_PUBLIC

logger = logging.getLogger("aiact.activity")

AI_ACTIVITY_TYPE = {
    "key": ACTIVITY_TYPE_KEY,
    "name": "AI Action",
    "description": "Entries generated automatically by AI actions",
    "color": "#7C3AED",
    "icon": "sparkles",
    "is_active": True,
    "is_system": True,
    "order": 5,
}


class ActivityRecorder:
    def __init__(self, store) -> None:
        self.store = store
        self._type_lock = threading.Lock()
        self._type_id: str | None = None

    def ensure_activity_type(self) -> str:
        """Get or create the AI action activity type; concurrent callers share one create."""
        with self._type_lock:
            if self._type_id:
                return self._type_id
            existing = self.store.find("activity_type", where=[("key", "eq", ACTIVITY_TYPE_KEY)], limit=1)
            if existing:
                self._type_id = existing[0]["id"]
            else:
                created = self.store.create("activity_type", copy.deepcopy(AI_ACTIVITY_TYPE))
                logger.info("activity_type_created key=%s id=%s", ACTIVITY_TYPE_KEY, created["id"])
                self._type_id = created["id"]
            return self._type_id

    def record(
        self,
        subject: str,
        body: str,
        metadata: Dict[str, Any],
        targets: Dict[str, str],
        visibility: str = ACTIVITY_VISIBILITY_PUBLIC,
        actor_id: str | None = None,
        event_type: str = "ai_action",
    ) -> dict:
        data: Dict[str, Any] = {
            "activity_type_id": self.ensure_activity_type(),
            "event_type": event_type,
            "subject": subject,
            "body": body,
            "metadata": copy.deepcopy(metadata),
            "visibility": visibility,
            "created_by_id": actor_id,
        }
        data.update(targets)
        activity = self.store.create("activity", data)
        logger.info("activity_recorded id=%s event=%s targets=%s", activity["id"], event_type, sorted(targets))
        return activity

    def add_change(
        self,
        targets: Dict[str, str],
        changes: List[dict],
        actor_id: str | None = None,
        metadata: Dict[str, Any] | None = None,
    ) -> dict:
        names = ", ".join(change.get("field", "") for change in changes)
        return self.record(
            subject="AI • Changes applied",
            body=f"Updated fields: {names}" if names else "No fields updated",
            metadata=dict(metadata or {}, changes=copy.deepcopy(changes)),
            targets=targets,
            actor_id=actor_id,
            event_type="change",
        )
