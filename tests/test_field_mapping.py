# tests/test_field_mapping.py
import datetime as dt
import unittest
import sys
import os

# Add parent directory to path to import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from backend.errors import ValidationError
from utils.field_mapping import (
    display_code,
    expand,
    normalize,
    normalize_guest,
    placeholder_email,
)


class TestNormalize(unittest.TestCase):

    def test_legacy_keys_fill_canonical_fields(self):
        record = normalize({
            "companyName": "Acme",
            "founderName": "Jane",
            "founderEmail": "Jane@Acme.io",
            "teamSize": 7,
            "sector": "AI",
        })
        self.assertEqual(record["name"], "Acme")
        self.assertEqual(record["founder"], "Jane")
        self.assertEqual(record["email"], "jane@acme.io")
        self.assertEqual(record["employeeCount"], 7)

    def test_canonical_value_wins_over_legacy(self):
        record = normalize({
            "name": "Canonical",
            "companyName": "Legacy",
            "founder": "F",
            "sector": "AI",
        })
        self.assertEqual(record["name"], "Canonical")

    def test_blank_canonical_falls_back_to_legacy(self):
        record = normalize({"name": "  ", "companyName": "Legacy", "founder": "F", "sector": "AI"})
        self.assertEqual(record["name"], "Legacy")

    def test_create_applies_defaults(self):
        record = normalize({"name": "Acme", "founder": "Jane", "sector": "AI"})
        self.assertEqual(record["stage"], "S0")
        self.assertEqual(record["status"], "Active")
        self.assertEqual(record["fundingReceived"], 0.0)
        self.assertEqual(record["employeeCount"], 0)
        self.assertIsNotNone(record["onboardedDate"])

    def test_missing_required_fields(self):
        with self.assertRaises(ValidationError) as ctx:
            normalize({"founder": "Jane", "sector": "AI"})
        self.assertEqual(ctx.exception.message, "Company name is required")

        with self.assertRaises(ValidationError) as ctx:
            normalize({"name": "Acme", "sector": "AI"})
        self.assertEqual(ctx.exception.message, "Founder name is required")

        with self.assertRaises(ValidationError) as ctx:
            normalize({"name": "Acme", "founder": "Jane"})
        self.assertEqual(ctx.exception.message, "Sector is required")

    def test_other_sector_resolves_to_free_text(self):
        record = normalize({"name": "Q", "founder": "F", "sector": "Other", "sectorOther": "Quantum"})
        self.assertEqual(record["sector"], "Quantum")

    def test_problem_and_solution_build_description(self):
        record = normalize({
            "name": "Q", "founder": "F", "sector": "AI",
            "problemSolving": "Slow", "solution": "Fast",
        })
        self.assertEqual(record["description"], "Problem: Slow\nSolution: Fast")

    def test_zero_is_not_empty(self):
        record = normalize({"name": "Q", "founder": "F", "sector": "AI", "teamSize": 0})
        self.assertEqual(record["employeeCount"], 0)

    def test_partial_only_emits_sent_keys(self):
        record = normalize({"city": "Pune"}, partial=True)
        self.assertEqual(record, {"city": "Pune"})

    def test_partial_rejects_blanking_required_field(self):
        with self.assertRaises(ValidationError):
            normalize({"name": ""}, partial=True)

    def test_invalid_stage_rejected(self):
        with self.assertRaises(ValidationError):
            normalize({"name": "Q", "founder": "F", "sector": "AI", "stage": "S9"})


class TestExpand(unittest.TestCase):

    def test_legacy_mirrors_and_display_code(self):
        out = expand({"id": "abc123def456", "name": "Acme", "founder": "Jane", "employeeCount": 3})
        self.assertEqual(out["companyName"], "Acme")
        self.assertEqual(out["founderName"], "Jane")
        self.assertEqual(out["teamSize"], 3)
        self.assertEqual(out["magicCode"], "DEF456")

    def test_round_trip_through_normalize(self):
        canonical = normalize({
            "name": "Acme",
            "founder": "Jane",
            "email": "jane@acme.io",
            "phone": "+91 98765 43210",
            "sector": "AI",
            "stage": "S2",
            "status": "Graduated",
            "city": "Pune",
            "domain": "Health",
            "website": "https://acme.io",
            "description": "Problem: slow\nSolution: fast",
            "fundingReceived": 2500000.5,
            "revenueGenerated": 125000,
            "employeeCount": 12,
            "onboardedDate": "2024-01-15T09:30:00",
            "recognitionDate": "2024-06-01T00:00:00",
            "graduatedDate": "2025-02-28T00:00:00",
            "dpiitNo": "DIPP12345",
            "bhaskarId": "BHA-77",
            "guestId": "f" * 32,
        })
        self.assertEqual(canonical["onboardedDate"], dt.datetime(2024, 1, 15, 9, 30))
        self.assertEqual(canonical["revenueGenerated"], 125000.0)
        self.assertTrue(all(value is not None for value in canonical.values()))

        self.assertEqual(normalize(expand(canonical)), canonical)
        self.assertEqual(normalize(expand(dict(canonical, id="abc123def456"))), canonical)

    def test_display_code(self):
        self.assertEqual(display_code("abc123def456"), "DEF456")
        self.assertEqual(display_code(None), "")


class TestGuestFields(unittest.TestCase):

    def test_placeholder_email(self):
        self.assertEqual(placeholder_email("Mentor1"), "mentor1@guest.magic.com")

    def test_guest_defaults(self):
        fields = normalize_guest("  Mentor1 ", None, None)
        self.assertEqual(fields["username"], "mentor1")
        self.assertEqual(fields["email"], "mentor1@guest.magic.com")
        self.assertEqual(fields["name"], "Mentor1")

    def test_reserved_username_rejected_case_insensitively(self):
        with self.assertRaises(ValidationError) as ctx:
            normalize_guest("Admin")
        self.assertEqual(ctx.exception.message, 'Cannot use "admin" as guest username')


if __name__ == '__main__':
    unittest.main()
