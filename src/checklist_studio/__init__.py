"""
Checklist Studio - Schema-driven inspection checklists

This package provides tools for:
1. Loading checklist schemas (sections, items, options)
2. Recording answers with schema-driven selection rules
3. Evaluating item, section and inspection conformity
4. Synthesizing report data for a document renderer
"""

__version__ = "1.0.0"

from .errors import (
    ChecklistError,
    InvalidOperationError,
    PersistenceError,
    SchemaDefinitionError,
    SchemaLookupError,
    SubmissionError,
    UnknownItemError,
    UnknownOptionError,
    UnknownSectionError,
    ValidationError,
)
from .schema import (
    Item,
    Option,
    OptionClass,
    Schema,
    SchemaCatalog,
    SchemaRegistry,
    Section,
    available_schemas,
    load_builtin_schema,
    load_schema,
    total_item_count,
    total_section_count,
)
from .responses import Inspection, ItemResponse, SectionResponse, create_inspection
from .mutations import MutationEngine
from .conformity import (
    ConformityEvaluator,
    InspectionAssessment,
    ItemStatus,
    SectionStatus,
    evaluate_inspection,
    evaluate_item,
    evaluate_section,
)
from .report import InspectionReport, ItemReport, SectionReport, export_report, synthesize
from .records import from_records, inspection_from_report, to_records
from .submission import finalize, submit, validate_for_submission
from .store import InspectionStore

__all__ = [
    "ChecklistError",
    "InvalidOperationError",
    "PersistenceError",
    "SchemaDefinitionError",
    "SchemaLookupError",
    "SubmissionError",
    "UnknownItemError",
    "UnknownOptionError",
    "UnknownSectionError",
    "ValidationError",
    "Item",
    "Option",
    "OptionClass",
    "Schema",
    "SchemaCatalog",
    "SchemaRegistry",
    "Section",
    "available_schemas",
    "load_builtin_schema",
    "load_schema",
    "total_item_count",
    "total_section_count",
    "Inspection",
    "ItemResponse",
    "SectionResponse",
    "create_inspection",
    "MutationEngine",
    "ConformityEvaluator",
    "InspectionAssessment",
    "ItemStatus",
    "SectionStatus",
    "evaluate_inspection",
    "evaluate_item",
    "evaluate_section",
    "InspectionReport",
    "ItemReport",
    "SectionReport",
    "export_report",
    "synthesize",
    "from_records",
    "inspection_from_report",
    "to_records",
    "finalize",
    "submit",
    "validate_for_submission",
    "InspectionStore",
]
