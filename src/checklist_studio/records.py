"""
Persisted Response Records

Converts an inspection to the flat row format stored by the persistence
collaborator (one row per section, one per answered item) and rebuilds
an inspection from such rows.

Rebuilding never trusts a stored non-conformity flag: it is always
recomputed from the stored selection.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from checklist_studio.responses import (
    DRAFT,
    Inspection,
    ItemResponse,
    SectionResponse,
    create_inspection,
)
from checklist_studio.schema import Schema, SchemaRegistry

logger = logging.getLogger(__name__)

HEADER_FIELDS = (
    "inspection_id",
    "schema_id",
    "schema_version",
    "inspection_date",
    "metadata",
    "notes",
    "primary_signature",
    "secondary_signature",
    "status",
    "created_at",
    "submitted_at",
)


def section_record(inspection_id: str, section_code: str, response: SectionResponse) -> Dict[str, Any]:
    return {
        "inspection_id": inspection_id,
        "section_code": section_code,
        "item_number": None,
        "section_not_applicable": response.not_applicable,
        "section_location": response.location,
        "section_voltage": response.voltage,
        "section_current": response.current,
        "section_power": response.power,
        "section_notes": response.notes,
        "section_extra": dict(response.extra) or None,
        "selected_options": None,
        "free_text": None,
        "is_nonconforming": False,
    }


def item_record(inspection_id: str, section_code: str, item_number: int,
                response: ItemResponse, options: List[str]) -> Dict[str, Any]:
    return {
        "inspection_id": inspection_id,
        "section_code": section_code,
        "item_number": item_number,
        "section_not_applicable": False,
        "section_location": None,
        "section_voltage": None,
        "section_current": None,
        "section_power": None,
        "section_notes": None,
        "section_extra": None,
        "selected_options": options or None,
        "free_text": response.free_text,
        "is_nonconforming": response.is_nonconforming,
    }


def to_records(inspection: Inspection, schema: Schema) -> List[Dict[str, Any]]:
    """
    Emit the persisted rows of an inspection.

    Sections follow schema order and items schema item order. Answers of
    not-applicable sections are kept so that the flag stays reversible
    after a reload. Rows that could not be placed when the inspection was
    loaded are re-emitted unchanged at the end.

    Args:
        inspection: Inspection to serialize
        schema: Schema the inspection follows

    Returns:
        List of record dictionaries
    """
    records = []
    for section in schema.sections:
        response = inspection.sections.get(section.code)
        if response is None:
            continue
        records.append(section_record(inspection.inspection_id, section.code, response))
        for item in section.items:
            item_response = response.items.get(item.number)
            if item_response is None or not item_response.is_answered:
                continue
            records.append(item_record(
                inspection.inspection_id,
                section.code,
                item.number,
                item_response,
                item_response.ordered_options(item),
            ))

    for record in inspection.unrenderable_records:
        records.append({key: value for key, value in record.items() if key not in ("unrenderable", "reason")})
    return records


def _normalize_item_number(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def _normalize_options(raw: Any, where: str) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = [raw]
    options = []
    for value in raw:
        value = str(value)
        if value in options:
            logger.warning("Dropped duplicate option '%s' on %s", value, where)
            continue
        options.append(value)
    return options


def _flag_unrenderable(record: Dict[str, Any], reason: str) -> Dict[str, Any]:
    logger.warning("Unrenderable response row for section %s item %s: %s",
                   record.get("section_code"), record.get("item_number"), reason)
    return {**record, "unrenderable": True, "reason": reason}


def apply_records(inspection: Inspection, records: Iterable[Dict[str, Any]], schema: Schema) -> Inspection:
    """
    Populate an inspection from persisted rows.

    Rows are grouped by section code: the row without item number supplies
    the section fields, the others fill in item answers. Rows for sections
    or items unknown to the schema are kept on
    ``inspection.unrenderable_records`` instead of being dropped.
    """
    registry = SchemaRegistry(schema)

    for record in records:
        section_code = str(record.get("section_code", ""))
        try:
            item_number = _normalize_item_number(record.get("item_number"))
        except (TypeError, ValueError):
            inspection.unrenderable_records.append(_flag_unrenderable(record, "invalid item number"))
            continue

        if not registry.has_section(section_code):
            inspection.unrenderable_records.append(_flag_unrenderable(record, "unknown section"))
            continue
        section = registry.find_section(section_code)
        section_response = inspection.sections.setdefault(section_code, SectionResponse.for_section(section))

        if item_number is None:
            section_response.not_applicable = bool(record.get("section_not_applicable", False))
            section_response.location = record.get("section_location")
            section_response.voltage = record.get("section_voltage")
            section_response.current = record.get("section_current")
            section_response.power = record.get("section_power")
            section_response.notes = record.get("section_notes")
            section_response.extra = dict(record.get("section_extra") or {})
            continue

        item = section.find_item(item_number)
        if item is None:
            inspection.unrenderable_records.append(_flag_unrenderable(record, "unknown item"))
            continue

        where = f"item {section_code}.{item_number}"
        response = ItemResponse(
            selected_options=set(_normalize_options(record.get("selected_options"), where)),
            free_text=record.get("free_text") or None,
            non_conformity_values=item.non_conformity_values,
        )
        stored_flag = record.get("is_nonconforming")
        if stored_flag is not None and bool(stored_flag) != response.is_nonconforming:
            logger.warning("Recomputed non-conformity flag on %s: stored %s, selection says %s",
                           where, bool(stored_flag), response.is_nonconforming)
        section_response.items[item_number] = response

    return inspection


def from_records(records: Iterable[Dict[str, Any]], schema: Schema,
                 header: Optional[Dict[str, Any]] = None) -> Inspection:
    """
    Rebuild an inspection from persisted rows.

    Args:
        records: Persisted response rows
        schema: Schema currently loaded for this inspection type
        header: Optional inspection header (id, metadata, status...)

    Returns:
        Inspection whose non-conformity flags derive from the selections
    """
    records = list(records)
    header = dict(header or {})
    inspection_id = header.get("inspection_id")
    if inspection_id is None and records:
        inspection_id = records[0].get("inspection_id")

    inspection = create_inspection(schema, inspection_id=inspection_id,
                                   inspection_date=header.get("inspection_date"))
    inspection.metadata = dict(header.get("metadata") or {})
    inspection.notes = header.get("notes")
    inspection.primary_signature = header.get("primary_signature")
    inspection.secondary_signature = header.get("secondary_signature")
    inspection.status = header.get("status") or DRAFT
    inspection.created_at = header.get("created_at") or inspection.created_at
    inspection.submitted_at = header.get("submitted_at")
    if header.get("schema_version"):
        inspection.schema_version = str(header["schema_version"])

    return apply_records(inspection, records, schema)


def inspection_header(inspection: Inspection) -> Dict[str, Any]:
    return {name: getattr(inspection, name) for name in HEADER_FIELDS}


def inspection_from_report(report, schema: Schema) -> Inspection:
    """
    Re-derive an inspection's responses from a synthesized report.

    Not-applicable sections come back flagged but without item answers,
    since the report does not carry them.
    """
    source = report.inspection
    inspection = create_inspection(schema, inspection_id=source.inspection_id,
                                   inspection_date=source.inspection_date, **source.metadata)
    registry = SchemaRegistry(schema)

    for section_report in report:
        section = registry.find_section(section_report.code)
        response = SectionResponse.for_section(section)
        response.not_applicable = section_report.not_applicable
        for name, value in section_report.context.items():
            setattr(response, name, value)
        response.extra = {name: value for name, value in section_report.extra.items() if value is not None}
        response.notes = section_report.notes
        for item_report in section_report.items:
            item_response = response.items[item_report.number]
            item_response.selected_options = set(item_report.selected_options)
            item_response.free_text = item_report.free_text
        inspection.sections[section_report.code] = response

    return inspection
