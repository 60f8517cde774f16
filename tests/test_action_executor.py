import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from action_executor import ActionExecutor
from app.activity import ActivityRecorder
from app.model_client import ModelResult
from app.stores import MemoryActionStore, MemoryExecutionStore, MemoryRecordStore
from apply_engine import ApplyEngine
from errors import ModelInvocationError, NotFoundError, ValidationError


class FakeModel:
    def __init__(self, text: str = "Looks good.", error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.calls = []

    def generate(self, prompt, model=None, temperature=None):
        self.calls.append({"prompt": prompt, "model": model})
        if self.error is not None:
            raise self.error
        return ModelResult(text=self.text, raw_response={"choices": [{"message": {"content": self.text}}]})


class BrokenActivities:
    def record(self, **kwargs):
        raise RuntimeError("activity store down")


class OpaqueRawModel:
    def generate(self, prompt, model=None, temperature=None):
        return ModelResult(text="ok", raw_response=object())


class ExecutorCase(unittest.TestCase):
    def setUp(self) -> None:
        self.store = MemoryRecordStore()
        self.store.create("candidate", {"id": "c1", "first_name": "John", "last_name": "Doe"})
        self.actions = MemoryActionStore()
        self.executions = MemoryExecutionStore()
        self.activities = ActivityRecorder(self.store)
        self.model = FakeModel()
        self.executor = ActionExecutor(self.actions, self.executions, self.store, self.model, activities=self.activities)

    def _action(self, **overrides) -> dict:
        action = {
            "name": "Summarize",
            "entity_type": "CANDIDATE",
            "prompt_template": "Summarize {{fullName}}",
            "fields": [{"field_key": "fullName"}],
        }
        action.update(overrides)
        return self.actions.create(action)


class TestSavedActions(ExecutorCase):
    def test_read_only_run_succeeds_without_proposal(self) -> None:
        action = self._action()
        self.model.text = "John is a strong candidate."
        execution = self.executor.execute_saved_action(action["id"], "u1", entity_id="c1")

        self.assertEqual(execution["status"], "SUCCESS")
        self.assertEqual(execution["prompt"], "Summarize John Doe")
        self.assertEqual(self.model.calls[0]["prompt"], "Summarize John Doe")
        self.assertIsNone(execution["proposed_changes"])
        self.assertEqual(execution["output"], "John is a strong candidate.")
        self.assertEqual(execution["inputs"], {"fullName": "John Doe", "__collections": {}})
        self.assertEqual(execution["triggered_by_id"], "u1")
        self.assertTrue(execution["completed_at"])

        activity = self.store.get("activity", execution["activity_id"])
        self.assertEqual(activity["subject"], "AI • Summarize")
        self.assertEqual(activity["candidate_id"], "c1")
        self.assertEqual(activity["visibility"], "PUBLIC")
        self.assertTrue(activity["body"].startswith("AI response generated at "))
        self.assertTrue(activity["body"].endswith(":\n\nJohn is a strong candidate."))
        self.assertEqual(activity["metadata"]["execution_id"], execution["id"])
        self.assertEqual(activity["metadata"]["field_keys"], ["fullName"])
        activity_type = self.store.get("activity_type", activity["activity_type_id"])
        self.assertEqual(activity_type["key"], "AI_ACTION")

    def test_update_proposal_then_apply(self) -> None:
        action = self._action(
            operation_type="UPDATE",
            prompt_template="List skills for {{fullName}}",
            field_mappings=[{"source_key": "skills", "target_field": "skills"}],
        )
        self.model.text = '```json\n{"skills": ["Go", "Rust"]}\n```'
        execution = self.executor.execute_saved_action(action["id"], "u1", entity_id="c1")

        self.assertIn('"skills"', execution["prompt"])
        self.assertEqual(
            execution["proposed_changes"],
            {
                "operation": "UPDATE",
                "entity_type": "CANDIDATE",
                "entity_id": "c1",
                "fields": {"skills": {"old_value": None, "new_value": ["Go", "Rust"], "source_key": "skills"}},
            },
        )

        engine = ApplyEngine(self.executions, self.store, activities=self.activities)
        engine.apply_changes(execution["id"], triggered_by_id="u1")
        self.assertEqual(self.store.get("candidate", "c1")["skills"], ["Go", "Rust"])
        self.assertEqual([w for w in self.store.writes if w[1] == "candidate"][-1], ("update", "candidate", "c1"))
        self.assertTrue(self.executions.get(execution["id"])["applied_at"])

    def test_update_without_difference_has_no_proposal(self) -> None:
        self.store.update("candidate", "c1", {"skills": ["Go", "Rust"], "current_title": "Engineer"})
        action = self._action(
            operation_type="UPDATE",
            field_mappings=[
                {"source_key": "skills", "target_field": "skills"},
                {"source_key": "title", "target_field": "currentTitle"},
            ],
        )
        self.model.text = '{"skills": ["Go", "Rust"], "title": " Engineer "}'
        execution = self.executor.execute_saved_action(action["id"], "u1", entity_id="c1")
        self.assertEqual(execution["status"], "SUCCESS")
        self.assertIsNone(execution["proposed_changes"])

    def test_parse_miss_is_still_success(self) -> None:
        action = self._action(operation_type="UPDATE", field_mappings=[{"source_key": "notes", "target_field": "notes"}])
        self.model.text = "I could not decide."
        execution = self.executor.execute_saved_action(action["id"], "u1", entity_id="c1")
        self.assertEqual(execution["status"], "SUCCESS")
        self.assertIsNone(execution["proposed_changes"])

    def test_create_proposal_has_no_entity_id(self) -> None:
        self.store.create("customer", {"id": "cu1", "name": "Acme"})
        action = self._action(
            entity_type="CUSTOMER",
            operation_type="CREATE",
            prompt_template="Draft a follow-up for {{name}}",
            fields=[{"field_key": "name"}],
            field_mappings=[{"source_key": "title", "target_field": "title"}],
        )
        self.model.text = '{"title": "Call Acme"}'
        execution = self.executor.execute_saved_action(action["id"], "u1", entity_id="cu1")
        self.assertEqual(execution["proposed_changes"]["operation"], "CREATE")
        self.assertIsNone(execution["proposed_changes"]["entity_id"])

    def test_model_failure_marks_failed_and_reraises(self) -> None:
        action = self._action()
        self.model.error = ModelInvocationError("Model request timed out")
        with self.assertRaises(ModelInvocationError):
            self.executor.execute_saved_action(action["id"], "u1", entity_id="c1")
        rows = self.executions.list()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["status"], "FAILED")
        self.assertEqual(rows[0]["error_message"], "Model request timed out")
        self.assertIsNone(rows[0].get("proposed_changes"))
        self.assertEqual(self.store.find("activity"), [])

    def test_activity_failure_marks_failed_and_reraises(self) -> None:
        action = self._action()
        executor = ActionExecutor(self.actions, self.executions, self.store, self.model, activities=BrokenActivities())
        with self.assertRaises(RuntimeError):
            executor.execute_saved_action(action["id"], "u1", entity_id="c1")
        rows = self.executions.list()
        self.assertEqual([row["status"] for row in rows], ["FAILED"])
        self.assertEqual(rows[0]["error_message"], "activity store down")
        self.assertTrue(rows[0]["completed_at"])

    def test_opaque_raw_response_is_stringified(self) -> None:
        action = self._action()
        executor = ActionExecutor(self.actions, self.executions, self.store, OpaqueRawModel(), activities=self.activities)
        execution = executor.execute_saved_action(action["id"], "u1", entity_id="c1")
        self.assertEqual(execution["status"], "SUCCESS")
        self.assertEqual(execution["output"], "ok")
        self.assertIsInstance(execution["raw_output"], str)
        self.assertTrue(execution["raw_output"].startswith("<object object"))

    def test_validation_and_lookup_fail_before_any_row(self) -> None:
        with self.assertRaises(NotFoundError):
            self.executor.execute_saved_action("missing", "u1", entity_id="c1")
        inactive = self._action(is_active=False)
        with self.assertRaises(ValidationError):
            self.executor.execute_saved_action(inactive["id"], "u1", entity_id="c1")
        bad_fields = self._action(fields=[{"field_key": "shoeSize"}])
        with self.assertRaises(ValidationError):
            self.executor.execute_saved_action(bad_fields["id"], "u1", entity_id="c1")
        no_fields = self._action(fields=[])
        with self.assertRaises(ValidationError):
            self.executor.execute_saved_action(no_fields["id"], "u1", entity_id="c1")
        good = self._action()
        with self.assertRaises(NotFoundError):
            self.executor.execute_saved_action(good["id"], "u1", entity_id="nobody")
        self.assertEqual(self.executions.list(), [])
        self.assertEqual(self.model.calls, [])

    def test_overrides_and_extra_instructions(self) -> None:
        self.store.update("candidate", "c1", {"email": "john@example.com"})
        action = self._action()
        execution = self.executor.execute_saved_action(
            action["id"],
            "u1",
            entity_id="c1",
            field_keys_override=["email"],
            prompt_override="Email {{email}}",
            extra_instructions="Keep it short.",
        )
        self.assertEqual(execution["prompt"], "Email john@example.com\n\nAdditional instructions:\nKeep it short.")
        self.assertEqual(execution["inputs"], {"email": "john@example.com", "__collections": {}})

    def test_each_run_creates_new_execution(self) -> None:
        action = self._action()
        first = self.executor.execute_saved_action(action["id"], "u1", entity_id="c1")
        second = self.executor.execute_saved_action(action["id"], "u1", entity_id="c1")
        self.assertNotEqual(first["id"], second["id"])
        self.assertEqual(len(self.executor.list_executions(action_id=action["id"])), 2)
        self.assertEqual(len(self.executor.list_executions(entity_type="candidate", entity_id="c1")), 2)
        self.assertEqual(self.executor.get_execution(first["id"])["id"], first["id"])
        with self.assertRaises(NotFoundError):
            self.executor.get_execution("missing")

    def test_attachment_linked(self) -> None:
        action = self._action()
        attachment = self.actions.create_attachment({"action_id": action["id"], "entity_type": "CANDIDATE", "entity_id": "c1"})
        execution = self.executor.execute_saved_action(action["id"], "u1", entity_id="c1")
        self.assertEqual(execution["attachment_id"], attachment["id"])

    def test_collections_rendered_into_prompt(self) -> None:
        self.store.create("activity", {"candidate_id": "c1", "subject": "Phone screen", "created_at": "2024-02-01T10:00:00Z"})
        action = self._action(
            prompt_template="Summarize {{fullName}}\n{{ACTIVITIES}}",
            collections=[
                {
                    "collection_key": "ACTIVITIES",
                    "format": "PLAIN_TEXT",
                    "fields": [{"field_key": "subject"}, {"field_key": "createdAt", "field_label": "When"}],
                },
                {"collection_key": "OPPORTUNITIES", "fields": [{"field_key": "title"}]},
                {"collection_key": "EOD_REPORTS", "fields": [{"field_key": "date"}]},
            ],
        )
        execution = self.executor.execute_saved_action(action["id"], "u1", entity_id="c1")
        self.assertEqual(
            execution["prompt"],
            "Summarize John Doe\n### Recent Activities\n1. Subject: Phone screen | When: 2024-02-01T10:00:00Z"
            "\n\n### Related Opportunities\n_No data available._",
        )
        self.assertEqual(set(execution["inputs"]["__collections"]), {"ACTIVITIES", "OPPORTUNITIES"})
        self.assertEqual(
            execution["inputs"]["__collections"]["ACTIVITIES"]["rows"],
            [{"subject": "Phone screen", "createdAt": "2024-02-01T10:00:00Z"}],
        )


class TestBulkAndAdhoc(ExecutorCase):
    def setUp(self) -> None:
        super().setUp()
        self.store.create("user", {"id": "u1", "first_name": "Ana", "last_name": "Lopez"})
        self.store.create("employee", {"id": "e1", "user_id": "u1"})
        self.store.create("eod_report", {"user_id": "u1", "date": "2024-03-01", "summary": "Shipped"})

    def test_bulk_run_has_no_activity(self) -> None:
        action = self._action(
            entity_type="EMPLOYEE",
            prompt_template="Team digest",
            collections=[
                {
                    "collection_key": "EOD_REPORTS",
                    "format": "PLAIN_TEXT",
                    "fields": [{"field_key": "employeeName"}, {"field_key": "summary", "field_label": "What"}],
                },
                {"collection_key": "TASKS", "fields": [{"field_key": "title"}]},
            ],
        )
        execution = self.executor.execute_saved_action(action["id"], "u9")
        self.assertEqual(execution["status"], "SUCCESS")
        self.assertEqual(execution["entity_id"], "ALL")
        self.assertIsNone(execution["activity_id"])
        self.assertEqual(self.store.find("activity"), [])
        self.assertEqual(
            execution["prompt"],
            "Team digest\n\n### EOD Reports\n1. Employee: Ana Lopez | What: Shipped"
            "\n\n### Assigned Tasks\n_No data available._",
        )
        self.assertEqual(execution["inputs"]["__collections"]["TASKS"]["rows"], [])

    def test_adhoc_prompt(self) -> None:
        execution = self.executor.execute_adhoc(
            "candidate", ["fullName"], "Hi {{ fullname }}", "u1", entity_id="c1", model="small-model"
        )
        self.assertIsNone(execution["action_id"])
        self.assertEqual(execution["prompt"], "Hi John Doe")
        self.assertEqual(self.model.calls[0]["model"], "small-model")
        activity = self.store.get("activity", execution["activity_id"])
        self.assertEqual(activity["subject"], "AI • Ad-hoc AI prompt")

    def test_adhoc_requires_prompt(self) -> None:
        with self.assertRaises(ValidationError):
            self.executor.execute_adhoc("CANDIDATE", ["fullName"], "   ", "u1", entity_id="c1")
        self.assertEqual(self.executions.list(), [])


if __name__ == "__main__":
    unittest.main()
