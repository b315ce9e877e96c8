"""
Tests for the Conformity Evaluator
Tests item, section and inspection status derivation.
"""

import unittest

from sample_schemas import ten_item_schema, two_section_schema

from checklist_studio.conformity import (
    ConformityEvaluator,
    ItemStatus,
    SectionStatus,
    evaluate_inspection,
    evaluate_item,
    evaluate_section,
)
from checklist_studio.mutations import MutationEngine
from checklist_studio.responses import ItemResponse, SectionResponse, create_inspection


class TestEvaluateItem(unittest.TestCase):
    """Test item classification."""

    def test_missing_response(self):
        """Test that no response is unanswered."""
        self.assertEqual(evaluate_item(None), ItemStatus.UNANSWERED)

    def test_empty_response(self):
        """Test that an empty response is unanswered."""
        self.assertEqual(evaluate_item(ItemResponse()), ItemStatus.UNANSWERED)

    def test_selected_option(self):
        """Test that any selection is OK unless it includes nc."""
        self.assertEqual(evaluate_item(ItemResponse({"cuivre"})), ItemStatus.OK)
        self.assertEqual(evaluate_item(ItemResponse({"cuivre", "nc"})), ItemStatus.NON_CONFORMING)

    def test_free_text_only(self):
        """Test that free text alone answers an item."""
        self.assertEqual(evaluate_item(ItemResponse(free_text="3 x 200A")), ItemStatus.OK)

    def test_custom_non_conformity_values(self):
        """Test that declared NC values drive the status."""
        response = ItemResponse({"anomaly"}, non_conformity_values=frozenset({"anomaly"}))
        self.assertEqual(evaluate_item(response), ItemStatus.NON_CONFORMING)


class TestEvaluateSection(unittest.TestCase):
    """Test section classification and its precedence."""

    def setUp(self):
        """Set up test fixtures."""
        self.schema = ten_item_schema()
        self.section = self.schema.sections[0]
        self.engine = MutationEngine(self.schema)
        self.inspection = create_inspection(self.schema, inspection_id="C-1")

    def _status(self):
        return evaluate_section(self.inspection.sections["S"], self.section)

    def test_no_answers_is_incomplete(self):
        """Test that an untouched section is incomplete."""
        self.assertEqual(self._status(), SectionStatus.INCOMPLETE)

    def test_missing_section_is_incomplete(self):
        """Test that a section without a response is incomplete."""
        self.assertEqual(evaluate_section(None, self.section), SectionStatus.INCOMPLETE)

    def test_partial(self):
        """Test that one OK item makes the section partial."""
        self.engine.toggle_item_option(self.inspection, "S", 4, "ok")
        self.assertEqual(self._status(), SectionStatus.PARTIAL)

    def test_nc_dominates(self):
        """Test that one nc among nine ok answers wins."""
        for number in range(1, 11):
            self.engine.toggle_item_option(self.inspection, "S", number, "nc" if number == 7 else "ok")
        self.assertEqual(self._status(), SectionStatus.NON_CONFORMING)

    def test_nc_alone_without_other_answers(self):
        """Test that a lone nc still makes the section non-conforming."""
        self.engine.toggle_item_option(self.inspection, "S", 10, "nc")
        self.assertEqual(self._status(), SectionStatus.NON_CONFORMING)

    def test_not_applicable_short_circuits(self):
        """Test that N/A wins even over stale nc answers."""
        self.engine.toggle_item_option(self.inspection, "S", 1, "nc")
        self.inspection.sections["S"].not_applicable = True
        self.assertEqual(self._status(), SectionStatus.NOT_APPLICABLE)

    def test_unknown_item_answers_are_ignored(self):
        """Test that answers to items missing from the schema do not count."""
        response = SectionResponse(items={99: ItemResponse({"nc"})})
        self.assertEqual(evaluate_section(response, self.section), SectionStatus.INCOMPLETE)


class TestEvaluateInspection(unittest.TestCase):
    """Test the inspection roll-up."""

    def setUp(self):
        """Set up test fixtures."""
        self.schema = two_section_schema()
        self.engine = MutationEngine(self.schema)
        self.inspection = create_inspection(self.schema, inspection_id="C-2")

    def test_fresh_inspection(self):
        """Test the assessment of an untouched inspection."""
        assessment = evaluate_inspection(self.inspection, self.schema)
        self.assertFalse(assessment.has_nonconformities)
        self.assertEqual(assessment.unanswered_sections, ("A", "B"))
        self.assertEqual(assessment.applicable_items, 4)
        self.assertEqual(assessment.answered_items, 0)
        self.assertEqual(assessment.progress, 0.0)

    def test_nonconformity_rollup(self):
        """Test that one NC item flags the inspection."""
        self.engine.toggle_item_option(self.inspection, "A", 2, "cuivre")
        self.engine.toggle_item_option(self.inspection, "A", 2, "nc")
        assessment = evaluate_inspection(self.inspection, self.schema)
        self.assertTrue(assessment.has_nonconformities)
        self.assertEqual(assessment.nonconforming_items, (("A", 2),))
        self.assertEqual(assessment.section_statuses["A"], SectionStatus.NON_CONFORMING)
        self.assertEqual(assessment.unanswered_sections, ("B",))

    def test_not_applicable_section_excluded(self):
        """Test that nc hidden under an N/A section is not counted."""
        self.engine.toggle_item_option(self.inspection, "B", 1, "nc")
        self.engine.set_section_not_applicable(self.inspection, "B", True)
        assessment = evaluate_inspection(self.inspection, self.schema)
        self.assertFalse(assessment.has_nonconformities)
        self.assertEqual(assessment.section_statuses["B"], SectionStatus.NOT_APPLICABLE)
        self.assertEqual(assessment.applicable_items, 3)
        self.assertNotIn("B", assessment.unanswered_sections)

    def test_missing_section_counts_as_incomplete(self):
        """Test that a section removed from the responses is still reported."""
        del self.inspection.sections["B"]
        assessment = evaluate_inspection(self.inspection, self.schema)
        self.assertEqual(assessment.section_statuses["B"], SectionStatus.INCOMPLETE)
        self.assertIn("B", assessment.unanswered_sections)

    def test_to_dict(self):
        """Test the plain-data form of an assessment."""
        self.engine.toggle_item_option(self.inspection, "A", 1, "ok")
        data = ConformityEvaluator(self.schema).evaluate_inspection(self.inspection).to_dict()
        self.assertEqual(data["section_statuses"], {"A": "partial", "B": "incomplete"})
        self.assertEqual(data["answered_items"], 1)

    def test_evaluation_is_pure(self):
        """Test that evaluating does not create or change responses."""
        del self.inspection.sections["B"]
        before = self.inspection.copy()
        evaluate_inspection(self.inspection, self.schema)
        self.assertEqual(self.inspection, before)


if __name__ == '__main__':
    unittest.main()
