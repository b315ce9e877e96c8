"""
Conformity Evaluator

Derives item, section and inspection status from a schema and the
current responses. Every function here is pure: safe to call on each
keystroke for live badges and again at submission.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from checklist_studio.responses import Inspection, ItemResponse, SectionResponse
from checklist_studio.schema import Schema, Section


class ItemStatus(str, Enum):
    OK = "ok"
    NON_CONFORMING = "non_conforming"
    UNANSWERED = "unanswered"


class SectionStatus(str, Enum):
    NOT_APPLICABLE = "not_applicable"
    NON_CONFORMING = "non_conforming"
    PARTIAL = "partial"
    INCOMPLETE = "incomplete"


@dataclass(frozen=True)
class InspectionAssessment:
    """Inspection-level roll-up of section statuses."""

    has_nonconformities: bool
    unanswered_sections: Tuple[str, ...] = ()
    section_statuses: Dict[str, SectionStatus] = field(default_factory=dict)
    nonconforming_items: Tuple[Tuple[str, int], ...] = ()
    answered_items: int = 0
    applicable_items: int = 0

    @property
    def progress(self) -> float:
        """Share of applicable items that carry an answer (0.0 - 1.0)."""
        if not self.applicable_items:
            return 1.0
        return self.answered_items / self.applicable_items

    def to_dict(self) -> Dict:
        return {
            "has_nonconformities": self.has_nonconformities,
            "unanswered_sections": list(self.unanswered_sections),
            "section_statuses": {code: status.value for code, status in self.section_statuses.items()},
            "nonconforming_items": [list(pair) for pair in self.nonconforming_items],
            "answered_items": self.answered_items,
            "applicable_items": self.applicable_items,
        }


def evaluate_item(response: Optional[ItemResponse]) -> ItemStatus:
    """Classify one item response; a missing response is unanswered."""
    if response is None:
        return ItemStatus.UNANSWERED
    if response.is_nonconforming:
        return ItemStatus.NON_CONFORMING
    if not response.is_answered:
        return ItemStatus.UNANSWERED
    return ItemStatus.OK


def evaluate_section(section_response: Optional[SectionResponse], section: Section) -> SectionStatus:
    """
    Classify a section.

    Not-applicable wins over everything, then any non-conforming item,
    then any answered item (partial). A section with no response at all
    is incomplete.
    """
    if section_response is None:
        return SectionStatus.INCOMPLETE
    if section_response.not_applicable:
        return SectionStatus.NOT_APPLICABLE

    has_answers = False
    for item in section.items:
        status = evaluate_item(section_response.items.get(item.number))
        if status is ItemStatus.NON_CONFORMING:
            return SectionStatus.NON_CONFORMING
        if status is ItemStatus.OK:
            has_answers = True

    return SectionStatus.PARTIAL if has_answers else SectionStatus.INCOMPLETE


def evaluate_inspection(inspection: Inspection, schema: Schema) -> InspectionAssessment:
    """
    Roll section statuses up to the inspection.

    ``has_nonconformities`` only considers sections that are applicable;
    answers hidden under a not-applicable section never count.
    """
    statuses: Dict[str, SectionStatus] = {}
    unanswered: List[str] = []
    nonconforming: List[Tuple[str, int]] = []
    answered = 0
    applicable = 0

    for section in schema.sections:
        section_response = inspection.sections.get(section.code)
        status = evaluate_section(section_response, section)
        statuses[section.code] = status

        if status is SectionStatus.INCOMPLETE:
            unanswered.append(section.code)
        if status is SectionStatus.NOT_APPLICABLE:
            continue

        applicable += len(section.items)
        if section_response is None:
            continue
        for item in section.items:
            item_status = evaluate_item(section_response.items.get(item.number))
            if item_status is ItemStatus.NON_CONFORMING:
                nonconforming.append((section.code, item.number))
            if item_status is not ItemStatus.UNANSWERED:
                answered += 1

    return InspectionAssessment(
        has_nonconformities=any(status is SectionStatus.NON_CONFORMING for status in statuses.values()),
        unanswered_sections=tuple(unanswered),
        section_statuses=statuses,
        nonconforming_items=tuple(nonconforming),
        answered_items=answered,
        applicable_items=applicable,
    )


class ConformityEvaluator:
    """Evaluator bound to one schema, handed to the report synthesizer."""

    def __init__(self, schema: Schema):
        self.schema = schema

    def evaluate_item(self, response: Optional[ItemResponse]) -> ItemStatus:
        return evaluate_item(response)

    def evaluate_section(self, section_response: Optional[SectionResponse], section: Section) -> SectionStatus:
        return evaluate_section(section_response, section)

    def evaluate_inspection(self, inspection: Inspection) -> InspectionAssessment:
        return evaluate_inspection(inspection, self.schema)
