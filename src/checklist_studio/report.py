"""
Report Synthesizer

Flattens schema + responses + conformity status into an ordered sequence
of section and item records for an external document renderer. Output
order is always schema section order, then schema item order.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import yaml

from checklist_studio.conformity import ConformityEvaluator, ItemStatus, SectionStatus
from checklist_studio.responses import Inspection
from checklist_studio.schema import Schema, Section

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemReport:
    number: int
    name: str
    status: ItemStatus
    selected_options: Tuple[str, ...] = ()
    selected_labels: Tuple[str, ...] = ()
    free_text: Optional[str] = None
    free_text_label: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "selected_options": list(self.selected_options),
            "selected_labels": list(self.selected_labels),
            "free_text": self.free_text,
            "free_text_label": self.free_text_label,
        }


@dataclass(frozen=True)
class SectionReport:
    code: str
    name: str
    order: int
    status: SectionStatus
    context: Dict[str, Optional[str]] = field(default_factory=dict)
    extra: Dict[str, Optional[str]] = field(default_factory=dict)
    notes: Optional[str] = None
    items: Tuple[ItemReport, ...] = ()

    @property
    def not_applicable(self) -> bool:
        return self.status is SectionStatus.NOT_APPLICABLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "order": self.order,
            "status": self.status.value,
            "not_applicable": self.not_applicable,
            "context": dict(self.context),
            "extra": dict(self.extra),
            "notes": self.notes,
            "items": [item.to_dict() for item in self.items],
        }


class InspectionReport:
    """
    Restartable sequence of SectionReports for one inspection.

    The responses are snapshotted when the report is created; every
    iteration derives the section reports afresh from that snapshot.
    """

    def __init__(self, inspection: Inspection, schema: Schema,
                 evaluator: Optional[ConformityEvaluator] = None):
        self.inspection = inspection.copy()
        self.schema = schema
        self.evaluator = evaluator or ConformityEvaluator(schema)

    def __iter__(self) -> Iterator[SectionReport]:
        for section in self.schema.sections:
            yield self._section_report(section)

    def __len__(self) -> int:
        return len(self.schema.sections)

    def _section_report(self, section: Section) -> SectionReport:
        response = self.inspection.sections.get(section.code)
        status = self.evaluator.evaluate_section(response, section)

        context = {name: getattr(response, name) if response else None for name in section.context_fields}
        extra = {name: response.extra.get(name) if response else None for name in section.extra_fields}
        notes = response.notes if response else None

        items: List[ItemReport] = []
        if status is not SectionStatus.NOT_APPLICABLE:
            for item in section.items:
                item_response = response.items.get(item.number) if response else None
                selected = item_response.ordered_options(item) if item_response else []
                items.append(ItemReport(
                    number=item.number,
                    name=item.name,
                    status=self.evaluator.evaluate_item(item_response),
                    selected_options=tuple(selected),
                    selected_labels=tuple(item.label_for(value) for value in selected),
                    free_text=item_response.free_text if item_response else None,
                    free_text_label=item.free_text_label,
                    description=item.description,
                ))

        return SectionReport(
            code=section.code,
            name=section.name,
            order=section.order,
            status=status,
            context=context,
            extra=extra,
            notes=notes,
            items=tuple(items),
        )

    def header(self) -> Dict[str, Any]:
        assessment = self.evaluator.evaluate_inspection(self.inspection)
        return {
            "inspection_id": self.inspection.inspection_id,
            "schema_id": self.schema.schema_id,
            "schema_version": self.schema.version,
            "title": self.schema.title,
            "status": self.inspection.status,
            "inspection_date": self.inspection.inspection_date,
            "submitted_at": self.inspection.submitted_at,
            "metadata": dict(self.inspection.metadata),
            "notes": self.inspection.notes,
            "has_primary_signature": bool(self.inspection.primary_signature),
            "has_secondary_signature": bool(self.inspection.secondary_signature),
            "has_nonconformities": assessment.has_nonconformities,
            "nonconforming_item_count": len(assessment.nonconforming_items),
        }

    def to_records(self) -> List[Dict[str, Any]]:
        """
        Flat record sequence: each section record is followed by the
        records of its items.
        """
        records = []
        for section_report in self:
            section_record = section_report.to_dict()
            items = section_record.pop("items")
            records.append({"record_type": "section", **section_record})
            for item in items:
                records.append({"record_type": "item", "section_code": section_report.code, **item})
        return records

    def to_dict(self) -> Dict[str, Any]:
        return {
            "header": self.header(),
            "sections": [section_report.to_dict() for section_report in self],
        }


def synthesize(inspection: Inspection, schema: Schema,
               evaluator: Optional[ConformityEvaluator] = None) -> InspectionReport:
    """
    Build the renderable report of an inspection.

    Args:
        inspection: Inspection to report on
        schema: Schema the inspection follows
        evaluator: Optional evaluator (default: ConformityEvaluator(schema))

    Returns:
        InspectionReport, iterable once per render request or more
    """
    return InspectionReport(inspection, schema, evaluator)


def export_report(report: InspectionReport, filepath: Union[str, Path], format: str = "json") -> Path:
    """
    Export a synthesized report to file.

    Args:
        report: Report to export
        filepath: Output file path
        format: Output format ("json" or "yaml")

    Returns:
        Path of the written file
    """
    if format not in ("json", "yaml"):
        raise ValueError(f"Unsupported format: {format}")

    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    data = report.to_dict()

    with open(filepath, 'w', encoding='utf-8') as f:
        if format == "json":
            json.dump(data, f, indent=2, ensure_ascii=False)
        else:
            yaml.safe_dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)

    logger.info("Exported report %s to %s", report.inspection.inspection_id, filepath)
    return filepath
