"""
Mutation Engine

Applies single user actions (toggle an option, type free text, mark a
section not applicable...) to an inspection's responses while enforcing
the schema's selection policy. All operations are synchronous and
in-memory; persisting the result is the caller's business.
"""

import logging
from typing import Optional

from checklist_studio.errors import InvalidOperationError
from checklist_studio.responses import Inspection, ItemResponse, SectionResponse
from checklist_studio.schema import CONTEXT_FIELDS, Schema, SchemaRegistry

logger = logging.getLogger(__name__)

SIGNATURE_SLOTS = ("primary", "secondary")


class MutationEngine:
    """
    Schema-driven rules for changing an inspection.

    The inspection is always passed explicitly, so one engine can serve
    any number of inspections built against its schema.

    Example:
        >>> engine = MutationEngine(schema)
        >>> engine.toggle_item_option(inspection, "2", 3, "cuivre")
        >>> engine.toggle_item_option(inspection, "2", 3, "nc")
    """

    def __init__(self, schema: Schema):
        self.schema = schema
        self.registry = SchemaRegistry(schema)

    def _check_editable(self, inspection: Inspection) -> None:
        if inspection.is_submitted:
            raise InvalidOperationError(
                f"Inspection {inspection.inspection_id} is submitted and can no longer be modified"
            )
        if inspection.schema_id != self.schema.schema_id:
            raise InvalidOperationError(
                f"Inspection {inspection.inspection_id} follows schema '{inspection.schema_id}', "
                f"not '{self.schema.schema_id}'"
            )

    def _section_response(self, inspection: Inspection, section_code: str) -> SectionResponse:
        section = self.registry.find_section(section_code)
        response = inspection.sections.get(section_code)
        if response is None:
            # section added to the schema after the inspection was created
            response = SectionResponse.for_section(section)
            inspection.sections[section_code] = response
        return response

    def _item_response(self, inspection: Inspection, section_code: str, item_number: int) -> ItemResponse:
        item = self.registry.find_item(section_code, item_number)
        section_response = self._section_response(inspection, section_code)
        response = section_response.items.get(item_number)
        if response is None:
            response = ItemResponse.for_item(item)
            section_response.items[item_number] = response
        else:
            response.non_conformity_values = item.non_conformity_values
        return response

    # Section-level operations

    def set_section_not_applicable(self, inspection: Inspection, section_code: str,
                                   flag: bool) -> SectionResponse:
        """
        Mark a section as not applicable (or undo it).

        Item answers are kept, so clearing the flag restores them.

        Raises:
            InvalidOperationError: If the section does not support N/A
        """
        self._check_editable(inspection)
        section = self.registry.find_section(section_code)
        if not section.supports_not_applicable:
            raise InvalidOperationError(f"Section {section_code} cannot be marked not applicable")
        response = self._section_response(inspection, section_code)
        response.not_applicable = bool(flag)
        return response

    def set_section_context_field(self, inspection: Inspection, section_code: str,
                                  field: str, value: Optional[str]) -> SectionResponse:
        """
        Set location, voltage, current or power on a section.

        Raises:
            InvalidOperationError: If the section does not expose the field
        """
        self._check_editable(inspection)
        section = self.registry.find_section(section_code)
        if field not in CONTEXT_FIELDS:
            raise InvalidOperationError(f"Unknown context field '{field}'")
        if not section.has_context_field(field):
            raise InvalidOperationError(f"Section {section_code} has no {field} field")
        response = self._section_response(inspection, section_code)
        setattr(response, field, value or None)
        return response

    def set_section_extra_field(self, inspection: Inspection, section_code: str,
                                name: str, value: Optional[str]) -> SectionResponse:
        """
        Set a section-specific extra field (panel type, meter number...).

        Choice fields only accept one of their declared codes; ``None``
        clears the field.

        Raises:
            InvalidOperationError: If the field is not declared or the
                                   choice is not allowed
        """
        self._check_editable(inspection)
        section = self.registry.find_section(section_code)
        if name not in section.extra_fields:
            raise InvalidOperationError(f"Section {section_code} has no extra field '{name}'")
        choices = section.extra_fields[name]
        if value is not None and choices is not None and value not in choices:
            raise InvalidOperationError(
                f"'{value}' is not a valid {name} for section {section_code} "
                f"(expected one of: {', '.join(choices)})"
            )
        response = self._section_response(inspection, section_code)
        if value is None:
            response.extra.pop(name, None)
        else:
            response.extra[name] = value
        return response

    def set_section_notes(self, inspection: Inspection, section_code: str,
                          notes: Optional[str]) -> SectionResponse:
        self._check_editable(inspection)
        response = self._section_response(inspection, section_code)
        response.notes = notes or None
        return response

    # Item-level operations

    def toggle_item_option(self, inspection: Inspection, section_code: str,
                           item_number: int, option_value: str) -> ItemResponse:
        """
        Toggle one option of an item.

        Rules, identical for every item:
        1. A selected option is simply deselected.
        2. A non-conformity option is added next to whatever is selected.
        3. Any other option replaces the current selection, except that
           selected non-conformity options are kept.
        An option declared exclusive always replaces the whole selection
        and is itself dropped when another option is chosen.

        Args:
            inspection: Inspection to modify
            section_code: Section code
            item_number: Item number within the section
            option_value: Option code to toggle

        Returns:
            The updated ItemResponse

        Raises:
            SchemaLookupError: If the section, item or option is unknown
        """
        self._check_editable(inspection)
        option = self.registry.find_option(section_code, item_number, option_value)
        response = self._item_response(inspection, section_code, item_number)
        selected = response.selected_options

        if option_value in selected:
            selected.discard(option_value)
        elif option.is_non_conformity and not option.exclusive:
            selected.add(option_value)
        else:
            item = self.registry.find_item(section_code, item_number)
            kept = set() if option.exclusive else selected & item.additive_values
            selected.clear()
            selected.update(kept)
            selected.add(option_value)

        logger.debug("Toggled %s on item %s.%s, selection now %s",
                     option_value, section_code, item_number, sorted(selected))
        return response

    def set_item_free_text(self, inspection: Inspection, section_code: str,
                           item_number: int, text: Optional[str]) -> ItemResponse:
        """
        Set the free-text answer of an item.

        Raises:
            InvalidOperationError: If the item does not accept free text
        """
        self._check_editable(inspection)
        item = self.registry.find_item(section_code, item_number)
        if not item.accepts_free_text:
            raise InvalidOperationError(f"Item {section_code}.{item_number} does not accept free text")
        response = self._item_response(inspection, section_code, item_number)
        response.free_text = text or None
        return response

    def clear_item(self, inspection: Inspection, section_code: str, item_number: int) -> ItemResponse:
        self._check_editable(inspection)
        response = self._item_response(inspection, section_code, item_number)
        response.selected_options.clear()
        response.free_text = None
        return response

    # Inspection-level operations

    def set_metadata(self, inspection: Inspection, key: str, value) -> None:
        self._check_editable(inspection)
        if value is None or value == "":
            inspection.metadata.pop(key, None)
        else:
            inspection.metadata[key] = value

    def set_inspection_date(self, inspection: Inspection, value: str) -> None:
        self._check_editable(inspection)
        inspection.inspection_date = value

    def set_notes(self, inspection: Inspection, notes: Optional[str]) -> None:
        self._check_editable(inspection)
        inspection.notes = notes or None

    def set_signature(self, inspection: Inspection, slot: str, data: Optional[str]) -> None:
        """
        Store (or clear) one of the two signature captures.

        Args:
            slot: "primary" or "secondary"
            data: Opaque signature payload (e.g. a data URI)
        """
        self._check_editable(inspection)
        if slot not in SIGNATURE_SLOTS:
            raise InvalidOperationError(f"Unknown signature slot '{slot}'")
        setattr(inspection, f"{slot}_signature", data or None)
