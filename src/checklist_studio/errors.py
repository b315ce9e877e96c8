"""
Checklist Studio Errors

Exception taxonomy shared by the schema registry, the mutation engine,
the submission workflow and the local inspection store.
"""

from typing import Optional


class ChecklistError(Exception):
    """Base class for all checklist engine errors."""


class SchemaDefinitionError(ChecklistError, ValueError):
    """Raised when a checklist definition file is malformed."""


class SchemaLookupError(ChecklistError, LookupError):
    """
    Raised when a section, item or option is not part of the loaded schema.

    Lookups are never silently defaulted: an unknown identifier is either a
    programming error or a version skew between schema and responses.
    """

    kind = "entry"

    def __init__(self, message: str, section_code: Optional[str] = None,
                 item_number: Optional[int] = None, option_value: Optional[str] = None):
        super().__init__(message)
        self.section_code = section_code
        self.item_number = item_number
        self.option_value = option_value


class UnknownSectionError(SchemaLookupError):
    """The section code does not exist in the schema."""

    kind = "section"

    def __init__(self, section_code: str):
        super().__init__(f"Unknown section: {section_code}", section_code=section_code)


class UnknownItemError(SchemaLookupError):
    """The section exists but has no item with this number."""

    kind = "item"

    def __init__(self, section_code: str, item_number: int):
        super().__init__(
            f"Unknown item {item_number} in section {section_code}",
            section_code=section_code,
            item_number=item_number,
        )


class UnknownOptionError(SchemaLookupError):
    """The item exists but does not offer this option."""

    kind = "option"

    def __init__(self, section_code: str, item_number: int, option_value: str):
        super().__init__(
            f"Item {section_code}.{item_number} has no option '{option_value}'",
            section_code=section_code,
            item_number=item_number,
            option_value=option_value,
        )


class InvalidOperationError(ChecklistError):
    """A mutation that the schema flags (or the inspection state) do not allow."""


class ValidationError(ChecklistError):
    """
    A single submission-time problem.

    Validation errors are accumulated into a list by
    ``validate_for_submission`` rather than raised one at a time.
    """

    def __init__(self, code: str, message: str, section_code: Optional[str] = None,
                 item_number: Optional[int] = None, field: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.section_code = section_code
        self.item_number = item_number
        self.field = field

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "section_code": self.section_code,
            "item_number": self.item_number,
            "field": self.field,
        }

    def __eq__(self, other):
        if not isinstance(other, ValidationError):
            return NotImplemented
        return self._key() == other._key()

    def _key(self):
        return (self.code, self.section_code, self.item_number, self.field)

    def __hash__(self):
        return hash(self._key())

    def __repr__(self):
        return f"ValidationError({self.code!r}, {self.message!r})"


class SubmissionError(ChecklistError):
    """Raised when an inspection is submitted while validation errors remain."""

    def __init__(self, errors):
        self.errors = list(errors)
        summary = "; ".join(error.message for error in self.errors)
        super().__init__(f"Inspection is not submittable ({len(self.errors)} problem(s)): {summary}")


class PersistenceError(ChecklistError):
    """Opaque failure of the persistence collaborator."""
