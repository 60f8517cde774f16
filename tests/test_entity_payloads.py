import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from entity_payloads import (
    CandidatePayload,
    CoercionError,
    CustomerPayload,
    QuotePayload,
    TaskPayload,
    build_payload,
    coerce_datetime,
    coerce_money,
    coerce_str_list,
    to_storage_key,
)


class TestCoercers(unittest.TestCase):
    def test_money(self) -> None:
        self.assertEqual(coerce_money("USD 1,200.50"), "1200.50")
        self.assertEqual(coerce_money(12), "12")
        self.assertEqual(coerce_money(2.5), "2.5")
        with self.assertRaises(CoercionError):
            coerce_money("n/a")
        with self.assertRaises(CoercionError):
            coerce_money(True)

    def test_str_list(self) -> None:
        self.assertEqual(coerce_str_list(["Go", " Rust ", None]), ["Go", "Rust"])
        self.assertEqual(coerce_str_list("a, b,"), ["a", "b"])
        with self.assertRaises(CoercionError):
            coerce_str_list(5)

    def test_datetime(self) -> None:
        self.assertEqual(coerce_datetime("2024-03-01"), "2024-03-01T00:00:00Z")
        self.assertEqual(coerce_datetime("2024-03-01T12:30:00+02:00"), "2024-03-01T10:30:00Z")
        with self.assertRaises(CoercionError):
            coerce_datetime("next week")

    def test_storage_key(self) -> None:
        self.assertEqual(to_storage_key("functionalProposal"), "functional_proposal")
        self.assertEqual(to_storage_key(" due_date "), "due_date")


class TestBuildPayload(unittest.TestCase):
    def test_unknown_and_failed_fields_dropped(self) -> None:
        payload, dropped = build_payload(
            CandidatePayload,
            {"skills": ["Go", "Rust"], "rating": "9", "favouriteColor": "blue", "notes": None},
        )
        self.assertEqual(payload.as_changes(), {"skills": ["Go", "Rust"]})
        self.assertEqual(
            dropped,
            [
                {"field": "rating", "reason": "expected value between 0 and 5"},
                {"field": "favouriteColor", "reason": "not_writable"},
                {"field": "notes", "reason": "empty_value"},
            ],
        )

    def test_camel_case_keys_map_to_columns(self) -> None:
        payload, dropped = build_payload(QuotePayload, {"functionalProposal": "Build it", "totalValue": "EUR 10"})
        self.assertEqual(payload.as_changes(), {"functional_proposal": "Build it", "total_value": "10"})
        self.assertEqual(dropped, [])

    def test_choice_and_upper(self) -> None:
        payload, dropped = build_payload(QuotePayload, {"status": "accepted"})
        self.assertEqual(payload.as_changes(), {"status": "ACCEPTED"})
        payload, dropped = build_payload(QuotePayload, {"status": "maybe"})
        self.assertTrue(payload.is_empty())
        self.assertEqual(dropped[0]["field"], "status")
        payload, _ = build_payload(TaskPayload, {"priority": "very high"})
        self.assertEqual(payload.priority, "VERY_HIGH")

    def test_currency_and_email(self) -> None:
        payload, dropped = build_payload(CustomerPayload, {"currency": "usd", "email": "not-an-email"})
        self.assertEqual(payload.as_changes(), {"currency": "USD"})
        self.assertEqual(dropped, [{"field": "email", "reason": "invalid email"}])


if __name__ == "__main__":
    unittest.main()
