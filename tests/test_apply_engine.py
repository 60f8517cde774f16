import os
import sys
import threading
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from app.activity import ActivityRecorder
from app.stores import MemoryExecutionStore, MemoryRecordStore
from apply_engine import ApplyEngine
from errors import ApplyError, ConflictError, NotFoundError, ValidationError


class FailingRecordStore(MemoryRecordStore):
    def __init__(self) -> None:
        super().__init__()
        self.fail_writes = True

    def update(self, kind, record_id, data):
        if self.fail_writes:
            raise RuntimeError("database unavailable")
        return super().update(kind, record_id, data)


def _proposal(operation="UPDATE", entity_type="CANDIDATE", entity_id="c1", fields=None):
    return {
        "operation": operation,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "fields": fields
        if fields is not None
        else {"skills": {"old_value": None, "new_value": ["Go", "Rust"], "source_key": "skills"}},
    }


class TestApplyEngine(unittest.TestCase):
    def setUp(self) -> None:
        self.store = MemoryRecordStore()
        self.store.create("candidate", {"id": "c1", "first_name": "John", "last_name": "Doe"})
        self.executions = MemoryExecutionStore()
        self.activities = ActivityRecorder(self.store)
        self.engine = ApplyEngine(self.executions, self.store, activities=self.activities, clock=lambda: "2024-01-01T00:00:00Z")

    def _execution(self, **overrides) -> str:
        record = {"entity_type": "CANDIDATE", "entity_id": "c1", "status": "SUCCESS", "proposed_changes": _proposal()}
        record.update(overrides)
        return self.executions.create(record)["id"]

    def _entity_writes(self) -> list:
        return [write for write in self.store.writes if write[1] == "candidate"]

    def test_update_writes_once_and_records_applied_changes(self) -> None:
        execution_id = self._execution()
        applied = self.engine.apply_changes(execution_id, triggered_by_id="u1")

        self.assertEqual(self.store.get("candidate", "c1")["skills"], ["Go", "Rust"])
        self.assertEqual(self._entity_writes(), [("update", "candidate", "c1")])
        self.assertEqual(
            applied,
            {
                "operation": "UPDATE",
                "entity_type": "CANDIDATE",
                "entity_id": "c1",
                "fields": {"skills": {"old_value": None, "new_value": ["Go", "Rust"]}},
                "dropped_fields": [],
                "applied_at": "2024-01-01T00:00:00Z",
            },
        )
        execution = self.executions.get(execution_id)
        self.assertEqual(execution["applied_at"], "2024-01-01T00:00:00Z")
        self.assertEqual(execution["applied_changes"], applied)

        changes = self.store.find("activity", where=[("event_type", "eq", "change")])
        self.assertEqual(len(changes), 1)
        self.assertEqual(changes[0]["candidate_id"], "c1")
        self.assertEqual(changes[0]["created_by_id"], "u1")
        self.assertEqual(changes[0]["metadata"]["execution_id"], execution_id)

    def test_second_apply_conflicts_without_writing(self) -> None:
        execution_id = self._execution()
        self.engine.apply_changes(execution_id)
        writes_before = list(self.store.writes)
        with self.assertRaises(ConflictError):
            self.engine.apply_changes(execution_id)
        self.assertEqual(self.store.writes, writes_before)

    def test_concurrent_applies_have_one_winner(self) -> None:
        execution_id = self._execution()
        barrier = threading.Barrier(8)
        outcomes = []
        lock = threading.Lock()

        def worker() -> None:
            barrier.wait()
            try:
                self.engine.apply_changes(execution_id)
                result = "applied"
            except ConflictError:
                result = "conflict"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(outcomes.count("applied"), 1)
        self.assertEqual(outcomes.count("conflict"), 7)
        self.assertEqual(self._entity_writes(), [("update", "candidate", "c1")])

    def test_rejects_unsuccessful_unproposed_and_missing(self) -> None:
        with self.assertRaises(NotFoundError):
            self.engine.apply_changes("missing")
        with self.assertRaises(ConflictError):
            self.engine.apply_changes(self._execution(status="FAILED"))
        with self.assertRaises(ConflictError):
            self.engine.apply_changes(self._execution(status="PENDING"))
        with self.assertRaises(ConflictError):
            self.engine.apply_changes(self._execution(proposed_changes=None))
        self.assertEqual(self._entity_writes(), [])

    def test_update_requires_entity_id(self) -> None:
        execution_id = self._execution(proposed_changes=_proposal(entity_id=None))
        with self.assertRaises(ValidationError):
            self.engine.apply_changes(execution_id)
        self.assertIsNone(self.executions.get(execution_id)["applied_at"])

    def test_empty_sanitized_payload_is_rejected(self) -> None:
        fields = {"favouriteColor": {"old_value": None, "new_value": "blue", "source_key": "c"}}
        execution_id = self._execution(proposed_changes=_proposal(fields=fields))
        with self.assertRaises(ValidationError) as ctx:
            self.engine.apply_changes(execution_id)
        self.assertEqual(ctx.exception.detail["dropped_fields"], [{"field": "favouriteColor", "reason": "not_writable"}])
        self.assertIsNone(self.executions.get(execution_id)["applied_at"])
        self.assertEqual(self._entity_writes(), [])

    def test_failed_coercions_are_dropped_not_fatal(self) -> None:
        fields = {
            "rating": {"old_value": None, "new_value": "excellent", "source_key": "rating"},
            "currentTitle": {"old_value": None, "new_value": "Staff Engineer", "source_key": "title"},
        }
        applied = self.engine.apply_changes(self._execution(proposed_changes=_proposal(fields=fields)))
        self.assertEqual(applied["fields"], {"current_title": {"old_value": None, "new_value": "Staff Engineer"}})
        self.assertEqual(applied["dropped_fields"], [{"field": "rating", "reason": "expected integer"}])
        self.assertEqual(self.store.get("candidate", "c1")["current_title"], "Staff Engineer")

    def test_write_failure_releases_claim(self) -> None:
        store = FailingRecordStore()
        store.create("candidate", {"id": "c1"})
        engine = ApplyEngine(self.executions, store)
        execution_id = self._execution()

        with self.assertRaises(ApplyError):
            engine.apply_changes(execution_id)
        execution = self.executions.get(execution_id)
        self.assertEqual(execution["status"], "SUCCESS")
        self.assertIsNone(execution["applied_at"])

        store.fail_writes = False
        applied = engine.apply_changes(execution_id)
        self.assertEqual(applied["entity_id"], "c1")
        self.assertEqual(store.get("candidate", "c1")["skills"], ["Go", "Rust"])

    def test_create_uses_new_entity_id(self) -> None:
        fields = {"title": {"old_value": None, "new_value": "Follow up", "source_key": "title"}}
        execution_id = self._execution(
            entity_type="TASK",
            entity_id="c1",
            proposed_changes=_proposal(operation="CREATE", entity_type="TASK", entity_id=None, fields=fields),
        )
        applied = self.engine.apply_changes(execution_id)
        created_id = applied["created_entity_id"]
        self.assertEqual(applied["entity_id"], created_id)
        self.assertEqual(self.store.get("task", created_id)["title"], "Follow up")
        self.assertEqual(self.executions.get(execution_id)["entity_id"], created_id)
        self.assertEqual(self.store.find("activity", where=[("event_type", "eq", "change")]), [])

    def test_create_rejected_for_non_creatable_type(self) -> None:
        fields = {"name": {"old_value": None, "new_value": "Acme", "source_key": "name"}}
        execution_id = self._execution(
            proposed_changes=_proposal(operation="CREATE", entity_type="CUSTOMER", entity_id=None, fields=fields)
        )
        with self.assertRaises(ValidationError):
            self.engine.apply_changes(execution_id)

    def test_update_on_missing_entity(self) -> None:
        execution_id = self._execution(proposed_changes=_proposal(entity_id="gone"))
        with self.assertRaises(NotFoundError):
            self.engine.apply_changes(execution_id)
        self.assertIsNone(self.executions.get(execution_id)["applied_at"])


if __name__ == "__main__":
    unittest.main()
