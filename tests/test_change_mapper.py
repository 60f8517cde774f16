import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from aiact import MISSING
from change_mapper import apply_transform, build_proposed_changes, extract_value, normalize_for_compare
from entity_types import EntityType, OperationType


class TestExtractValue(unittest.TestCase):
    def test_dot_path_with_trimmed_segments(self) -> None:
        parsed = {"a": {"b": {"c": 5}}}
        self.assertEqual(extract_value(parsed, "a.b.c"), 5)
        self.assertEqual(extract_value(parsed, " a . b . c "), 5)

    def test_missing_segment(self) -> None:
        self.assertIs(extract_value({"a": {}}, "a.b.c"), MISSING)
        self.assertIs(extract_value({"a": 1}, "a.b"), MISSING)
        self.assertIs(extract_value(None, "a"), MISSING)
        self.assertIs(extract_value({"a": 1}, "  "), MISSING)

    def test_null_is_not_missing(self) -> None:
        self.assertIsNone(extract_value({"a": None}, "a"))

    def test_json_literal_transform(self) -> None:
        self.assertEqual(extract_value({"a": "x"}, "a", "json:true"), True)
        self.assertEqual(extract_value({"a": "x"}, "a", 'json: {"k": [1]}'), {"k": [1]})

    def test_transform_does_not_revive_missing(self) -> None:
        self.assertIs(extract_value({}, "a", "json:1"), MISSING)

    def test_invalid_or_unknown_rules_keep_value(self) -> None:
        self.assertEqual(apply_transform("x", "json:{broken"), "x")
        self.assertEqual(apply_transform("x", "upper:"), "x")
        self.assertEqual(apply_transform("x", "no-colon"), "x")
        self.assertEqual(apply_transform("x", None), "x")


class TestNormalize(unittest.TestCase):
    def test_rules(self) -> None:
        self.assertEqual(normalize_for_compare(None), "")
        self.assertEqual(normalize_for_compare(MISSING), "")
        self.assertEqual(normalize_for_compare("  hi "), "hi")
        self.assertEqual(normalize_for_compare(True), "true")
        self.assertEqual(normalize_for_compare(3.0), "3")
        self.assertEqual(normalize_for_compare(3), "3")
        self.assertEqual(normalize_for_compare(2.5), "2.5")
        self.assertEqual(normalize_for_compare({"b": 1, "a": 2}), normalize_for_compare({"a": 2, "b": 1}))
        self.assertEqual(normalize_for_compare(["Go"]), '["Go"]')


class TestBuildProposedChanges(unittest.TestCase):
    def test_update_skips_unchanged_fields(self) -> None:
        mappings = [
            {"source_key": "notes", "target_field": "notes"},
            {"source_key": "rating", "target_field": " rating "},
        ]
        result = build_proposed_changes(
            mappings,
            {"notes": " same ", "rating": 4},
            OperationType.UPDATE,
            EntityType.CANDIDATE,
            "c1",
            current_values={"notes": "same", "rating": 3},
        )
        self.assertEqual(
            result,
            {
                "operation": "UPDATE",
                "entity_type": "CANDIDATE",
                "entity_id": "c1",
                "fields": {"rating": {"old_value": 3, "new_value": 4, "source_key": "rating"}},
            },
        )

    def test_update_with_skills_from_null(self) -> None:
        result = build_proposed_changes(
            [{"source_key": "skills", "target_field": "skills"}],
            {"skills": ["Go", "Rust"]},
            "UPDATE",
            "CANDIDATE",
            "c1",
            current_values={"skills": None},
        )
        self.assertEqual(
            result["fields"]["skills"],
            {"old_value": None, "new_value": ["Go", "Rust"], "source_key": "skills"},
        )

    def test_create_keeps_every_value(self) -> None:
        result = build_proposed_changes(
            [
                {"source_key": "title", "target_field": "title"},
                {"source_key": "missing", "target_field": "description"},
                {"source_key": "nil", "target_field": "status"},
            ],
            {"title": "Same as before", "nil": None},
            OperationType.CREATE,
            EntityType.TASK,
            None,
            current_values={"title": "Same as before"},
        )
        self.assertEqual(result["operation"], "CREATE")
        self.assertIsNone(result["entity_id"])
        self.assertEqual(
            result["fields"],
            {"title": {"old_value": None, "new_value": "Same as before", "source_key": "title"}},
        )

    def test_nothing_mapped_returns_none(self) -> None:
        mappings = [{"source_key": "notes", "target_field": "notes"}]
        self.assertIsNone(build_proposed_changes(mappings, {}, "UPDATE", "CANDIDATE", "c1"))
        self.assertIsNone(build_proposed_changes(mappings, {"notes": "x"}, "READ_ONLY", "CANDIDATE", "c1"))
        self.assertIsNone(build_proposed_changes(mappings, None, "UPDATE", "CANDIDATE", "c1"))
        self.assertIsNone(build_proposed_changes([], {"notes": "x"}, "UPDATE", "CANDIDATE", "c1"))

    def test_transform_rule_applied(self) -> None:
        result = build_proposed_changes(
            [{"source_key": "flag", "target_field": "stage", "transform_rule": 'json:"SCREENING"'}],
            {"flag": "yes"},
            "UPDATE",
            "CANDIDATE",
            "c1",
        )
        self.assertEqual(result["fields"]["stage"]["new_value"], "SCREENING")


if __name__ == "__main__":
    unittest.main()
