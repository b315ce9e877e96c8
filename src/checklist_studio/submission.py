"""
Submission Workflow

Full validation and finalization of an inspection. Draft saves never go
through here; only the final submission path does.
"""

import logging
from typing import List

from checklist_studio.conformity import ItemStatus, SectionStatus, evaluate_item, evaluate_section
from checklist_studio.errors import SubmissionError, ValidationError
from checklist_studio.responses import SUBMITTED, Inspection, utcnow_iso
from checklist_studio.schema import Schema

logger = logging.getLogger(__name__)


def _is_missing(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def validate_for_submission(inspection: Inspection, schema: Schema) -> List[ValidationError]:
    """
    Collect every problem that prevents submission.

    Checks are not fail-fast so the caller can show all of them at once.

    Args:
        inspection: Inspection to validate
        schema: Schema the inspection follows (carries the submission policy)

    Returns:
        List of ValidationError; empty means submittable
    """
    errors: List[ValidationError] = []
    policy = schema.submission

    if inspection.schema_id != schema.schema_id:
        errors.append(ValidationError(
            "schema_mismatch",
            f"Inspection follows schema '{inspection.schema_id}', not '{schema.schema_id}'",
        ))
        return errors

    if inspection.is_submitted:
        errors.append(ValidationError("already_submitted", "Inspection has already been submitted"))

    for name in policy.required_fields:
        if _is_missing(inspection.field_value(name)):
            errors.append(ValidationError(
                "required_field",
                f"Required field is missing: {name}",
                field=name,
            ))

    for section in schema.sections:
        section_response = inspection.sections.get(section.code)
        status = evaluate_section(section_response, section)
        if status is SectionStatus.NOT_APPLICABLE:
            continue

        if policy.reject_incomplete_sections and status is SectionStatus.INCOMPLETE:
            errors.append(ValidationError(
                "incomplete_section",
                f"Section {section.code} ({section.name}) has no answers",
                section_code=section.code,
            ))

        if policy.reject_unanswered_items:
            for item in section.items:
                item_response = section_response.items.get(item.number) if section_response else None
                if evaluate_item(item_response) is ItemStatus.UNANSWERED:
                    errors.append(ValidationError(
                        "unanswered_item",
                        f"Item {section.code}.{item.number} ({item.name}) is unanswered",
                        section_code=section.code,
                        item_number=item.number,
                    ))

    return errors


def finalize(inspection: Inspection) -> Inspection:
    """
    Freeze an inspection as submitted.

    Returns a copy with status "submitted"; the mutation engine refuses
    any further change to it. The given inspection is left untouched.
    """
    submitted = inspection.copy()
    submitted.status = SUBMITTED
    submitted.submitted_at = submitted.submitted_at or utcnow_iso()
    return submitted


def submit(inspection: Inspection, schema: Schema) -> Inspection:
    """
    Validate then finalize an inspection.

    Raises:
        SubmissionError: With every validation error, if any
    """
    errors = validate_for_submission(inspection, schema)
    if errors:
        logger.info("Rejected submission of %s: %d problem(s)", inspection.inspection_id, len(errors))
        raise SubmissionError(errors)
    return finalize(inspection)
