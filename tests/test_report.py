"""
Tests for the Report Synthesizer
Tests report ordering, labels, export and the full inspection scenario.
"""

import json
import os
import shutil
import tempfile
import unittest
from pathlib import Path

import yaml

from sample_schemas import two_section_definition, two_section_schema

from checklist_studio.conformity import ItemStatus, SectionStatus, evaluate_inspection
from checklist_studio.mutations import MutationEngine
from checklist_studio.records import inspection_from_report
from checklist_studio.report import export_report, synthesize
from checklist_studio.responses import create_inspection
from checklist_studio.schema import schema_from_dict


class TestReportSynthesis(unittest.TestCase):
    """Test the synthesized section and item reports."""

    def setUp(self):
        """Set up test fixtures."""
        self.schema = two_section_schema()
        self.engine = MutationEngine(self.schema)
        self.inspection = create_inspection(self.schema, inspection_id="R-1",
                                            inspection_date="2024-03-01", client_name="Client")

    def test_end_to_end_scenario(self):
        """Test N/A section, mixed answers and the resulting report."""
        self.engine.set_section_not_applicable(self.inspection, "B", True)
        self.engine.toggle_item_option(self.inspection, "A", 1, "ok")
        self.engine.toggle_item_option(self.inspection, "A", 2, "cuivre")
        self.engine.toggle_item_option(self.inspection, "A", 2, "nc")

        assessment = evaluate_inspection(self.inspection, self.schema)
        self.assertEqual(assessment.section_statuses["A"], SectionStatus.NON_CONFORMING)
        self.assertEqual(assessment.section_statuses["B"], SectionStatus.NOT_APPLICABLE)
        self.assertTrue(assessment.has_nonconformities)

        sections = list(synthesize(self.inspection, self.schema))
        self.assertEqual(len(sections), 2)
        section_a, section_b = sections
        self.assertEqual(section_a.status, SectionStatus.NON_CONFORMING)
        self.assertEqual([item.number for item in section_a.items], [1, 2, 3])
        self.assertEqual(section_a.items[1].selected_options, ("cuivre", "nc"))
        self.assertEqual(section_a.items[1].status, ItemStatus.NON_CONFORMING)
        self.assertEqual(section_a.items[2].status, ItemStatus.UNANSWERED)
        self.assertTrue(section_b.not_applicable)
        self.assertEqual(section_b.items, ())

    def test_schema_order_not_answer_order(self):
        """Test that sections and items follow schema order."""
        data = two_section_definition()
        data["sections"][0]["order"] = 5
        schema = schema_from_dict(data)
        engine = MutationEngine(schema)
        inspection = create_inspection(schema, inspection_id="R-2")
        engine.toggle_item_option(inspection, "A", 3, "ok")
        engine.toggle_item_option(inspection, "A", 1, "ok")

        report = synthesize(inspection, schema)
        self.assertEqual([section.code for section in report], ["B", "A"])
        self.assertEqual(len(report), 2)

    def test_labels_follow_option_order(self):
        """Test that selected labels follow the schema option order."""
        self.engine.toggle_item_option(self.inspection, "A", 2, "nc")
        self.engine.toggle_item_option(self.inspection, "A", 2, "endommages")
        item = list(synthesize(self.inspection, self.schema))[0].items[1]
        self.assertEqual(item.selected_options, ("endommages", "nc"))
        self.assertEqual(item.selected_labels, ("Endommagés", "NC"))
        self.assertEqual(item.free_text_label, "Gauge")

    def test_unknown_codes_render_as_code(self):
        """Test that stale option codes are shown as-is."""
        self.inspection.sections["A"].items[1].selected_options.add("legacy")
        item = list(synthesize(self.inspection, self.schema))[0].items[0]
        self.assertEqual(item.selected_labels, ("legacy",))

    def test_context_and_extra_fields(self):
        """Test that only the section's declared fields are reported."""
        self.engine.set_section_context_field(self.inspection, "A", "location", "Garage")
        self.engine.set_section_extra_field(self.inspection, "A", "panel_type", "disjoncteurs")
        section_a, section_b = synthesize(self.inspection, self.schema)
        self.assertEqual(section_a.context, {"location": "Garage", "voltage": None})
        self.assertEqual(section_a.extra, {"panel_type": "disjoncteurs", "meter_number": None})
        self.assertEqual(section_b.context, {"current": None})

    def test_report_is_restartable_snapshot(self):
        """Test repeated iteration and isolation from later edits."""
        self.engine.toggle_item_option(self.inspection, "A", 1, "ok")
        report = synthesize(self.inspection, self.schema)
        first = [section.to_dict() for section in report]
        self.engine.toggle_item_option(self.inspection, "A", 1, "nc")
        second = [section.to_dict() for section in report]
        self.assertEqual(first, second)
        self.assertEqual(second[0]["status"], "partial")

    def test_flat_records(self):
        """Test that each section record precedes its item records."""
        self.engine.set_section_not_applicable(self.inspection, "B", True)
        records = synthesize(self.inspection, self.schema).to_records()
        self.assertEqual([record["record_type"] for record in records],
                         ["section", "item", "item", "item", "section"])
        self.assertEqual(records[1]["section_code"], "A")

    def test_header(self):
        """Test the report header."""
        self.engine.toggle_item_option(self.inspection, "A", 1, "nc")
        header = synthesize(self.inspection, self.schema).header()
        self.assertEqual(header["inspection_id"], "R-1")
        self.assertEqual(header["metadata"], {"client_name": "Client"})
        self.assertTrue(header["has_nonconformities"])
        self.assertEqual(header["nonconforming_item_count"], 1)


class TestReportRoundTrip(unittest.TestCase):
    """Test re-deriving responses from a report."""

    def test_round_trip(self):
        """Test that applicable sections survive report -> responses."""
        schema = two_section_schema()
        engine = MutationEngine(schema)
        inspection = create_inspection(schema, inspection_id="R-3", client_name="Client")
        engine.toggle_item_option(inspection, "A", 2, "aluminium")
        engine.toggle_item_option(inspection, "A", 2, "nc")
        engine.set_item_free_text(inspection, "A", 2, "#6")
        engine.set_section_context_field(inspection, "A", "voltage", "120/240")
        engine.set_section_not_applicable(inspection, "B", True)

        rebuilt = inspection_from_report(synthesize(inspection, schema), schema)
        item = rebuilt.sections["A"].items[2]
        self.assertEqual(item.selected_options, {"aluminium", "nc"})
        self.assertEqual(item.free_text, "#6")
        self.assertTrue(item.is_nonconforming)
        self.assertEqual(rebuilt.sections["A"].voltage, "120/240")
        self.assertTrue(rebuilt.sections["B"].not_applicable)
        self.assertEqual(rebuilt.metadata, {"client_name": "Client"})
        self.assertEqual(evaluate_inspection(rebuilt, schema), evaluate_inspection(inspection, schema))
        self.assertEqual([section.to_dict() for section in synthesize(rebuilt, schema)],
                         [section.to_dict() for section in synthesize(inspection, schema)])


class TestExportReport(unittest.TestCase):
    """Test report export."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.schema = two_section_schema()
        self.inspection = create_inspection(self.schema, inspection_id="R-4")
        MutationEngine(self.schema).toggle_item_option(self.inspection, "A", 2, "endommages")

    def tearDown(self):
        """Clean up test files."""
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_export_json(self):
        """Test JSON export."""
        path = export_report(synthesize(self.inspection, self.schema),
                             Path(self.temp_dir) / "out" / "report.json")
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        self.assertEqual(data["header"]["inspection_id"], "R-4")
        self.assertEqual(data["sections"][0]["items"][1]["selected_labels"], ["Endommagés"])

    def test_export_yaml(self):
        """Test YAML export."""
        path = export_report(synthesize(self.inspection, self.schema),
                             Path(self.temp_dir) / "report.yaml", format="yaml")
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        self.assertEqual([section["code"] for section in data["sections"]], ["A", "B"])

    def test_unsupported_format(self):
        """Test that unknown formats are rejected."""
        with self.assertRaises(ValueError):
            export_report(synthesize(self.inspection, self.schema),
                          Path(self.temp_dir) / "report.pdf", format="pdf")


if __name__ == '__main__':
    unittest.main()
