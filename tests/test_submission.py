"""
Tests for the submission workflow
Tests full validation and finalization.
"""

import unittest

from sample_schemas import two_section_definition, two_section_schema

from checklist_studio.errors import SubmissionError, ValidationError
from checklist_studio.mutations import MutationEngine
from checklist_studio.responses import create_inspection
from checklist_studio.schema import load_builtin_schema, schema_from_dict
from checklist_studio.submission import finalize, submit, validate_for_submission


class TestValidateForSubmission(unittest.TestCase):
    """Test the accumulated validation errors."""

    def setUp(self):
        """Set up test fixtures."""
        self.schema = two_section_schema()
        self.engine = MutationEngine(self.schema)

    def test_required_field(self):
        """Test that a missing required field is reported."""
        inspection = create_inspection(self.schema, inspection_id="S-1")
        errors = validate_for_submission(inspection, self.schema)
        self.assertEqual(errors, [ValidationError("required_field", "", field="client_name")])

        self.engine.set_metadata(inspection, "client_name", "   ")
        self.assertEqual(len(validate_for_submission(inspection, self.schema)), 1)

        self.engine.set_metadata(inspection, "client_name", "Client")
        self.assertEqual(validate_for_submission(inspection, self.schema), [])

    def test_strict_policy_accumulates(self):
        """Test that every problem is reported, not only the first."""
        data = two_section_definition()
        data["submission"] = {
            "required_fields": ["client_name", "primary_signature"],
            "reject_incomplete_sections": True,
            "reject_unanswered_items": True,
        }
        schema = schema_from_dict(data)
        engine = MutationEngine(schema)
        inspection = create_inspection(schema, inspection_id="S-2")
        engine.toggle_item_option(inspection, "A", 1, "ok")
        engine.set_section_not_applicable(inspection, "B", True)

        codes = [error.code for error in validate_for_submission(inspection, schema)]
        self.assertEqual(codes, ["required_field", "required_field", "unanswered_item", "unanswered_item"])

        engine.set_section_not_applicable(inspection, "B", False)
        errors = validate_for_submission(inspection, schema)
        self.assertIn(ValidationError("incomplete_section", "", section_code="B"), errors)
        self.assertIn(ValidationError("unanswered_item", "", section_code="B", item_number=1), errors)

    def test_schema_mismatch(self):
        """Test validation against the wrong schema."""
        inspection = create_inspection(load_builtin_schema("pemp"))
        errors = validate_for_submission(inspection, self.schema)
        self.assertEqual([error.code for error in errors], ["schema_mismatch"])

    def test_builtin_pemp_policy(self):
        """Test that the equipment checklist needs a signature and every answer."""
        schema = load_builtin_schema("pemp")
        inspection = create_inspection(schema)
        codes = [error.code for error in validate_for_submission(inspection, schema)]
        self.assertEqual(codes.count("required_field"), 1)
        self.assertEqual(codes.count("unanswered_item"), 17)


class TestSubmit(unittest.TestCase):
    """Test finalize and submit."""

    def setUp(self):
        """Set up test fixtures."""
        self.schema = two_section_schema()
        self.inspection = create_inspection(self.schema, inspection_id="S-3", client_name="Client")

    def test_submit(self):
        """Test that a valid inspection is finalized as a copy."""
        submitted = submit(self.inspection, self.schema)
        self.assertTrue(submitted.is_submitted)
        self.assertIsNotNone(submitted.submitted_at)
        self.assertFalse(self.inspection.is_submitted)

    def test_submit_rejects_with_all_errors(self):
        """Test that SubmissionError carries the validation errors."""
        self.inspection.metadata.clear()
        with self.assertRaises(SubmissionError) as ctx:
            submit(self.inspection, self.schema)
        self.assertEqual([error.field for error in ctx.exception.errors], ["client_name"])

    def test_resubmission_rejected(self):
        """Test that a submitted inspection cannot be submitted again."""
        submitted = finalize(self.inspection)
        with self.assertRaises(SubmissionError) as ctx:
            submit(submitted, self.schema)
        self.assertEqual(ctx.exception.errors[0].code, "already_submitted")

    def test_finalize_keeps_submitted_at(self):
        """Test that finalizing twice keeps the first timestamp."""
        submitted = finalize(self.inspection)
        again = finalize(submitted)
        self.assertEqual(again.submitted_at, submitted.submitted_at)


if __name__ == '__main__':
    unittest.main()
