"""
Checklist Schema Registry
Provides loading and lookup of checklist definitions (sections, items, options).

A schema is immutable reference data: every other component receives it
as read-only input.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import yaml

from checklist_studio.config import settings
from checklist_studio.errors import (
    SchemaDefinitionError,
    UnknownItemError,
    UnknownOptionError,
    UnknownSectionError,
)

logger = logging.getLogger(__name__)

NOT_APPLICABLE_VALUES = frozenset({"na", "nac"})
NON_CONFORMITY_VALUES = frozenset({"nc"})

CONTEXT_FIELDS = ("location", "voltage", "current", "power")


class OptionClass(str, Enum):
    """Semantic class of an option, driving mutation and conformity rules."""

    ORDINARY = "ordinary"
    NOT_APPLICABLE = "not_applicable"
    NON_CONFORMITY = "non_conformity"


def classify_option(value: str, explicit: Optional[str] = None) -> OptionClass:
    """
    Classify an option value.

    Args:
        value: Option code (e.g. "ok", "nc", "cuivre")
        explicit: Optional class name declared in the schema, overrides the
                  naming convention

    Returns:
        OptionClass of the option
    """
    if explicit is not None:
        try:
            return OptionClass(explicit)
        except ValueError:
            raise SchemaDefinitionError(f"Unknown option class '{explicit}' for option '{value}'")
    if value in NON_CONFORMITY_VALUES:
        return OptionClass.NON_CONFORMITY
    if value in NOT_APPLICABLE_VALUES:
        return OptionClass.NOT_APPLICABLE
    return OptionClass.ORDINARY


@dataclass(frozen=True)
class Option:
    value: str
    label: str
    option_class: OptionClass = OptionClass.ORDINARY
    # replaces the whole selection, even when it flags a non-conformity
    exclusive: bool = False

    @property
    def is_non_conformity(self) -> bool:
        return self.option_class is OptionClass.NON_CONFORMITY

    @property
    def is_not_applicable(self) -> bool:
        return self.option_class is OptionClass.NOT_APPLICABLE


@dataclass(frozen=True)
class Item:
    number: int
    name: str
    options: Tuple[Option, ...] = ()
    accepts_free_text: bool = False
    free_text_label: Optional[str] = None
    description: Optional[str] = None

    def find_option(self, value: str) -> Optional[Option]:
        for option in self.options:
            if option.value == value:
                return option
        return None

    @property
    def option_values(self) -> Tuple[str, ...]:
        return tuple(option.value for option in self.options)

    @property
    def non_conformity_values(self) -> frozenset:
        """Option codes of this item that flag a non-conformity."""
        return frozenset(o.value for o in self.options if o.is_non_conformity)

    @property
    def additive_values(self) -> frozenset:
        """Non-conformity codes kept when another option replaces the selection."""
        return frozenset(o.value for o in self.options if o.is_non_conformity and not o.exclusive)

    def label_for(self, value: str) -> str:
        """Display label for an option code; unknown codes render as-is."""
        option = self.find_option(value)
        return option.label if option else value


@dataclass(frozen=True)
class Section:
    code: str
    name: str
    order: int = 0
    items: Tuple[Item, ...] = ()
    supports_not_applicable: bool = False
    has_location_field: bool = False
    has_voltage_field: bool = False
    has_current_field: bool = False
    has_power_field: bool = False
    # field name -> allowed choices, or None for free text
    extra_fields: Dict[str, Optional[Tuple[str, ...]]] = field(default_factory=dict)
    description: Optional[str] = None

    @property
    def context_fields(self) -> Tuple[str, ...]:
        """Context fields (location/voltage/current/power) this section exposes."""
        flags = {
            "location": self.has_location_field,
            "voltage": self.has_voltage_field,
            "current": self.has_current_field,
            "power": self.has_power_field,
        }
        return tuple(name for name in CONTEXT_FIELDS if flags[name])

    def has_context_field(self, name: str) -> bool:
        return name in self.context_fields

    def find_item(self, item_number: int) -> Optional[Item]:
        for item in self.items:
            if item.number == item_number:
                return item
        return None


@dataclass(frozen=True)
class SubmissionPolicy:
    required_fields: Tuple[str, ...] = ()
    reject_incomplete_sections: bool = False
    reject_unanswered_items: bool = False


@dataclass(frozen=True)
class Schema:
    """Ordered list of sections plus identity and submission policy."""

    schema_id: str
    version: str
    sections: Tuple[Section, ...]
    title: str = ""
    submission: SubmissionPolicy = field(default_factory=SubmissionPolicy)

    def __iter__(self) -> Iterator[Section]:
        return iter(self.sections)

    def __len__(self) -> int:
        return len(self.sections)

    @property
    def section_codes(self) -> List[str]:
        return [section.code for section in self.sections]

    def total_item_count(self) -> int:
        return total_item_count(self)

    def total_section_count(self) -> int:
        return total_section_count(self)


def total_item_count(schema: Schema) -> int:
    """Number of items over all sections, derived from the live lists."""
    return sum(len(section.items) for section in schema.sections)


def total_section_count(schema: Schema) -> int:
    """Number of sections, derived from the live list."""
    return len(schema.sections)


class SchemaRegistry:
    """
    Read-only lookup over one schema.

    Example:
        >>> registry = SchemaRegistry(load_builtin_schema("pemp"))
        >>> registry.find_item("PEMP", 8).name
        "Mode d'alimentation"
    """

    def __init__(self, schema: Schema):
        self._schema = schema
        self._sections = {section.code: section for section in schema.sections}

    def get_schema(self) -> Schema:
        return self._schema

    def find_section(self, code: str) -> Section:
        """
        Find a section by code.

        Raises:
            UnknownSectionError: If the schema has no such section
        """
        try:
            return self._sections[code]
        except KeyError:
            raise UnknownSectionError(code)

    def find_item(self, section_code: str, item_number: int) -> Item:
        """
        Find an item within a section.

        Raises:
            UnknownSectionError: If the section does not exist
            UnknownItemError: If the section exists but the item does not
        """
        section = self.find_section(section_code)
        item = section.find_item(item_number)
        if item is None:
            raise UnknownItemError(section_code, item_number)
        return item

    def find_option(self, section_code: str, item_number: int, value: str) -> Option:
        item = self.find_item(section_code, item_number)
        option = item.find_option(value)
        if option is None:
            raise UnknownOptionError(section_code, item_number, value)
        return option

    def has_section(self, code: str) -> bool:
        return code in self._sections


def version_key(version: str) -> Tuple[Tuple[int, Any], ...]:
    """
    Sort key for schema versions: dotted parts compare numerically where
    they are numbers, so "2020.10" sorts after "2020.9".
    """
    parts = []
    for part in str(version).replace("-", ".").split("."):
        parts.append((0, int(part)) if part.isdigit() else (1, part))
    return tuple(parts)


class SchemaCatalog:
    """Versioned catalog of schemas keyed by (schema_id, version)."""

    def __init__(self, schemas: Optional[List[Schema]] = None):
        self._schemas: Dict[Tuple[str, str], Schema] = {}
        self._latest: Dict[str, Schema] = {}
        for schema in schemas or []:
            self.register(schema)

    def register(self, schema: Schema) -> None:
        self._schemas[(schema.schema_id, schema.version)] = schema
        current = self._latest.get(schema.schema_id)
        if current is None or version_key(schema.version) >= version_key(current.version):
            self._latest[schema.schema_id] = schema

    def get(self, schema_id: str, version: Optional[str] = None) -> Schema:
        """
        Get a schema by id, optionally pinned to a version.

        Raises:
            SchemaDefinitionError: If no such schema (or version) is registered
        """
        if version is None:
            schema = self._latest.get(schema_id)
        else:
            schema = self._schemas.get((schema_id, version))
        if schema is None:
            wanted = schema_id if version is None else f"{schema_id}@{version}"
            raise SchemaDefinitionError(f"Schema not registered: {wanted}")
        return schema

    def __contains__(self, schema_id: str) -> bool:
        return schema_id in self._latest

    def schema_ids(self) -> List[str]:
        return sorted(self._latest)

    @classmethod
    def from_directories(cls, directories: Optional[List[Path]] = None) -> "SchemaCatalog":
        """Build a catalog from every *.yaml file in the given directories."""
        catalog = cls()
        for path in available_schemas(directories).values():
            catalog.register(load_schema(path))
        return catalog


def _parse_option(raw: Dict[str, Any], context: str) -> Option:
    if "value" not in raw:
        raise SchemaDefinitionError(f"{context}: option without a value")
    value = str(raw["value"])
    return Option(
        value=value,
        label=str(raw.get("label", value)),
        option_class=classify_option(value, raw.get("class")),
        exclusive=bool(raw.get("exclusive", False)),
    )


def _parse_item(raw: Dict[str, Any], section_code: str) -> Item:
    try:
        number = int(raw["number"])
    except (KeyError, TypeError, ValueError):
        raise SchemaDefinitionError(f"Section {section_code}: item without a valid number")

    context = f"Item {section_code}.{number}"
    options = tuple(_parse_option(o, context) for o in raw.get("options") or [])
    values = [option.value for option in options]
    if len(values) != len(set(values)):
        raise SchemaDefinitionError(f"{context}: duplicate option value")

    accepts_free_text = bool(raw.get("accepts_free_text", False))
    if not options and not accepts_free_text:
        raise SchemaDefinitionError(f"{context}: an item without options must accept free text")

    return Item(
        number=number,
        name=str(raw.get("name", "")),
        options=options,
        accepts_free_text=accepts_free_text,
        free_text_label=raw.get("free_text_label"),
        description=raw.get("description"),
    )


def _parse_extra_fields(raw: Optional[Dict[str, Any]]) -> Dict[str, Optional[Tuple[str, ...]]]:
    extra = {}
    for name, declared in (raw or {}).items():
        if isinstance(declared, (list, tuple)):
            extra[str(name)] = tuple(str(choice) for choice in declared)
        else:
            extra[str(name)] = None
    return extra


def _parse_section(raw: Dict[str, Any], position: int) -> Section:
    if "code" not in raw:
        raise SchemaDefinitionError(f"Section #{position}: missing code")
    code = str(raw["code"])

    items = tuple(_parse_item(item, code) for item in raw.get("items") or [])
    numbers = [item.number for item in items]
    if len(numbers) != len(set(numbers)):
        raise SchemaDefinitionError(f"Section {code}: duplicate item number")

    return Section(
        code=code,
        name=str(raw.get("name", code)),
        order=int(raw.get("order", position)),
        items=items,
        supports_not_applicable=bool(raw.get("supports_not_applicable", False)),
        has_location_field=bool(raw.get("has_location_field", False)),
        has_voltage_field=bool(raw.get("has_voltage_field", False)),
        has_current_field=bool(raw.get("has_current_field", False)),
        has_power_field=bool(raw.get("has_power_field", False)),
        extra_fields=_parse_extra_fields(raw.get("extra_fields")),
        description=raw.get("description"),
    )


def schema_from_dict(data: Dict[str, Any]) -> Schema:
    """
    Build a Schema from its plain-data definition.

    Args:
        data: Parsed schema document (see the built-in YAML files)

    Returns:
        Immutable Schema with sections sorted by their order key

    Raises:
        SchemaDefinitionError: If the definition breaks a schema invariant
    """
    if not isinstance(data, dict):
        raise SchemaDefinitionError("Schema definition must be a mapping")
    if "schema_id" not in data:
        raise SchemaDefinitionError("Schema definition has no schema_id")

    sections = [_parse_section(raw, position) for position, raw in enumerate(data.get("sections") or [], 1)]
    codes = [section.code for section in sections]
    if len(codes) != len(set(codes)):
        raise SchemaDefinitionError(f"Schema {data['schema_id']}: duplicate section code")
    # sorted() is stable, so equal order keys keep their document order
    sections = sorted(sections, key=lambda section: section.order)

    policy = data.get("submission") or {}
    submission = SubmissionPolicy(
        required_fields=tuple(policy.get("required_fields") or ()),
        reject_incomplete_sections=bool(policy.get("reject_incomplete_sections", False)),
        reject_unanswered_items=bool(policy.get("reject_unanswered_items", False)),
    )

    return Schema(
        schema_id=str(data["schema_id"]),
        version=str(data.get("version", "1")),
        sections=tuple(sections),
        title=str(data.get("title", "")),
        submission=submission,
    )


def load_schema(path: Union[str, Path]) -> Schema:
    """
    Load a schema from a YAML file.

    Args:
        path: Path to the schema definition

    Returns:
        Parsed Schema

    Raises:
        FileNotFoundError: If the file does not exist
        SchemaDefinitionError: If the YAML is invalid or breaks an invariant
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Checklist schema not found: {path}")
    except yaml.YAMLError as e:
        raise SchemaDefinitionError(f"Invalid YAML in schema {path}: {e}")

    schema = schema_from_dict(data)
    logger.debug("Loaded schema %s@%s from %s (%d sections, %d items)",
                 schema.schema_id, schema.version, path,
                 total_section_count(schema), total_item_count(schema))
    return schema


def available_schemas(directories: Optional[List[Path]] = None) -> Dict[str, Path]:
    """
    List schema files by schema id (the file stem).

    Later directories override earlier ones, so configured schemas can
    replace built-in definitions.
    """
    found = {}
    for directory in directories or settings.schema_dirs():
        directory = Path(directory)
        if not directory.is_dir():
            continue
        for path in sorted(directory.glob("*.yaml")):
            found[path.stem] = path
    return found


def load_builtin_schema(schema_id: str) -> Schema:
    """
    Load one of the schemas known to the configured schema directories.

    Raises:
        SchemaDefinitionError: If no schema file has this id
    """
    schemas = available_schemas()
    if schema_id not in schemas:
        raise SchemaDefinitionError(
            f"Unknown schema '{schema_id}'. Available: {', '.join(sorted(schemas)) or 'none'}"
        )
    return load_schema(schemas[schema_id])
