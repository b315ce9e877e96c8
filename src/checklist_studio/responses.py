"""
Response Store

Mutable per-inspection state keyed by section code and item number. The
structures here hold answers only; the rules for changing them live in
``checklist_studio.mutations``.
"""

import copy
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, FrozenSet, List, Optional, Set

from checklist_studio.schema import NON_CONFORMITY_VALUES, Item, Schema, Section

DRAFT = "draft"
SUBMITTED = "submitted"


@dataclass
class ItemResponse:
    """
    Answer to one checklist item.

    ``is_nonconforming`` is always derived from ``selected_options``; it
    cannot be set on its own.
    """

    selected_options: Set[str] = field(default_factory=set)
    free_text: Optional[str] = None
    non_conformity_values: FrozenSet[str] = NON_CONFORMITY_VALUES

    @classmethod
    def for_item(cls, item: Item) -> "ItemResponse":
        return cls(non_conformity_values=item.non_conformity_values)

    @property
    def is_nonconforming(self) -> bool:
        return bool(self.selected_options & self.non_conformity_values)

    @property
    def is_answered(self) -> bool:
        return bool(self.selected_options) or bool(self.free_text)

    def ordered_options(self, item: Optional[Item] = None) -> List[str]:
        """
        Selected codes in schema option order; codes the item does not
        define follow in alphabetical order.
        """
        known = list(item.option_values) if item else []
        ordered = [value for value in known if value in self.selected_options]
        ordered.extend(sorted(value for value in self.selected_options if value not in known))
        return ordered


@dataclass
class SectionResponse:
    not_applicable: bool = False
    location: Optional[str] = None
    voltage: Optional[str] = None
    current: Optional[str] = None
    power: Optional[str] = None
    notes: Optional[str] = None
    extra: Dict[str, Optional[str]] = field(default_factory=dict)
    items: Dict[int, ItemResponse] = field(default_factory=dict)

    @classmethod
    def for_section(cls, section: Section) -> "SectionResponse":
        return cls(items={item.number: ItemResponse.for_item(item) for item in section.items})

    def context_values(self) -> Dict[str, Optional[str]]:
        return {
            "location": self.location,
            "voltage": self.voltage,
            "current": self.current,
            "power": self.power,
        }


@dataclass
class Inspection:
    """
    Aggregate root: one inspection's responses plus opaque metadata.

    Metadata (client, address, equipment identity...) and the two
    signature captures are carried for the caller and never interpreted
    by the engine beyond required-field checks at submission.
    """

    inspection_id: str
    schema_id: str
    schema_version: str
    sections: Dict[str, SectionResponse] = field(default_factory=dict)
    inspection_date: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    notes: Optional[str] = None
    primary_signature: Optional[str] = None
    secondary_signature: Optional[str] = None
    status: str = DRAFT
    created_at: Optional[str] = None
    submitted_at: Optional[str] = None
    # persisted rows the current schema cannot place, kept verbatim
    unrenderable_records: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def is_submitted(self) -> bool:
        return self.status == SUBMITTED

    def section(self, code: str) -> Optional[SectionResponse]:
        return self.sections.get(code)

    def field_value(self, name: str) -> Any:
        """Value of a top-level field or metadata key, used by required-field checks."""
        if name in ("inspection_date", "notes", "primary_signature", "secondary_signature"):
            return getattr(self, name)
        return self.metadata.get(name)

    def copy(self) -> "Inspection":
        return copy.deepcopy(self)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def generate_inspection_id() -> str:
    """Generate an inspection ID of the form INSP-YYYYMMDD-XXXXXXXX."""
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    unique_id = str(uuid.uuid4())[:8].upper()
    return f"INSP-{timestamp}-{unique_id}"


def create_inspection(schema: Schema, inspection_id: Optional[str] = None,
                      inspection_date: Optional[str] = None, **metadata) -> Inspection:
    """
    Create an empty inspection against a schema.

    Every section gets a SectionResponse and every item an empty
    ItemResponse; no section starts as not-applicable.

    Args:
        schema: Checklist schema the inspection follows
        inspection_id: Optional identifier (generated when omitted)
        inspection_date: ISO date (default: today)
        **metadata: Opaque inspection metadata (client_name, ...)

    Returns:
        New draft Inspection
    """
    return Inspection(
        inspection_id=inspection_id or generate_inspection_id(),
        schema_id=schema.schema_id,
        schema_version=schema.version,
        sections={section.code: SectionResponse.for_section(section) for section in schema.sections},
        inspection_date=inspection_date or date.today().isoformat(),
        metadata=dict(metadata),
        created_at=utcnow_iso(),
    )
