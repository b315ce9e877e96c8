"""
Checklist Studio CLI Commands
Command-line interface for filling, checking and submitting inspections.
"""

from pathlib import Path
from typing import Optional, Tuple

import click

from checklist_studio import __version__
from checklist_studio.config import settings
from checklist_studio.conformity import SectionStatus, evaluate_inspection
from checklist_studio.errors import ChecklistError
from checklist_studio.logger import configure_logging
from checklist_studio.mutations import MutationEngine
from checklist_studio.report import export_report, synthesize
from checklist_studio.responses import create_inspection
from checklist_studio.schema import CONTEXT_FIELDS, SchemaCatalog, total_item_count, total_section_count
from checklist_studio.store import InspectionStore
from checklist_studio.submission import submit as submit_inspection
from checklist_studio.submission import validate_for_submission

STATUS_BADGES = {
    SectionStatus.NOT_APPLICABLE: "N/A",
    SectionStatus.NON_CONFORMING: "✗ NC",
    SectionStatus.PARTIAL: "… partial",
    SectionStatus.INCOMPLETE: "○ incomplete",
}


class Workspace:
    """Store and schema catalog shared by the commands."""

    def __init__(self, store_path: Optional[str] = None):
        self.store = InspectionStore(store_path)
        self.catalog = SchemaCatalog.from_directories()

    def open(self, inspection_id: str):
        inspection = self.store.load(inspection_id, self.catalog)
        schema = self.store.schema_for(
            {"schema_id": inspection.schema_id, "schema_version": inspection.schema_version},
            self.catalog,
        )
        return inspection, schema


def _run(action):
    """Run an engine action, turning engine errors into CLI errors."""
    try:
        return action()
    except ChecklistError as e:
        raise click.ClickException(str(e))


def _parse_meta(pairs: Tuple[str, ...]) -> dict:
    metadata = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"Expected KEY=VALUE, got '{pair}'", param_hint="--meta")
        key, value = pair.split("=", 1)
        metadata[key.strip()] = value
    return metadata


def _edit(workspace: Workspace, inspection_id: str, change) -> None:
    """Load a draft, apply one change through the mutation engine, save it."""
    def action():
        inspection, schema = workspace.open(inspection_id)
        change(MutationEngine(schema), inspection)
        workspace.store.save_draft(inspection, schema)
        return inspection, schema
    return _run(action)


@click.group()
@click.version_option(version=__version__)
@click.option('--store', type=click.Path(file_okay=False), envvar='CHECKLIST_STORE_PATH',
              help='Inspection store directory')
@click.option('--log-level', default=None, help='Logging level (default: CHECKLIST_LOG_LEVEL or INFO)')
@click.pass_context
def cli(ctx, store: Optional[str], log_level: Optional[str]):
    """
    Checklist Studio - schema-driven inspection checklists

    Fill in electrical-installation and equipment checklists, follow their
    conformity status and produce report data for a document renderer.
    """
    configure_logging(log_level)
    ctx.obj = _run(lambda: Workspace(store))


@cli.command()
@click.pass_obj
def schemas(workspace: Workspace):
    """List available checklist schemas."""
    for schema_id in workspace.catalog.schema_ids():
        schema = workspace.catalog.get(schema_id)
        click.echo(f"{schema_id} (v{schema.version}): {total_section_count(schema)} sections, "
                   f"{total_item_count(schema)} items - {schema.title}")


@cli.command()
@click.argument('schema_id')
@click.option('--section', 'section_code', help='Show the items of one section')
@click.pass_obj
def show(workspace: Workspace, schema_id: str, section_code: Optional[str]):
    """Show the sections (or one section's items) of a schema."""
    schema = _run(lambda: workspace.catalog.get(schema_id))

    if section_code is None:
        for section in schema.sections:
            flags = [name for name in CONTEXT_FIELDS if section.has_context_field(name)]
            if section.supports_not_applicable:
                flags.insert(0, "N/A")
            click.echo(f"{section.code:>4}  {section.name} ({len(section.items)} items)"
                       + (f" [{', '.join(flags)}]" if flags else ""))
        return

    section = next((s for s in schema.sections if s.code == section_code), None)
    if section is None:
        raise click.ClickException(f"Unknown section: {section_code}")
    click.echo(f"{section.code} - {section.name}")
    for name, choices in section.extra_fields.items():
        click.echo(f"  extra field {name}: {', '.join(choices) if choices else 'text'}")
    for item in section.items:
        options = ", ".join(option.value for option in item.options)
        text = f" + text ({item.free_text_label or 'free text'})" if item.accepts_free_text else ""
        click.echo(f"  {item.number:>2}. {item.name}: {options}{text}")


@cli.command()
@click.option('--schema', 'schema_id', default=None, help='Schema id (default: CHECKLIST_DEFAULT_SCHEMA)')
@click.option('--id', 'inspection_id', default=None, help='Inspection id (generated if omitted)')
@click.option('--date', 'inspection_date', default=None, help='Inspection date (YYYY-MM-DD)')
@click.option('--meta', multiple=True, help='Metadata KEY=VALUE (repeatable)')
@click.pass_obj
def new(workspace: Workspace, schema_id: Optional[str], inspection_id: Optional[str],
        inspection_date: Optional[str], meta: Tuple[str, ...]):
    """Create a new draft inspection."""
    metadata = _parse_meta(meta)

    def action():
        schema = workspace.catalog.get(schema_id or settings.DEFAULT_SCHEMA)
        inspection = create_inspection(schema, inspection_id=inspection_id,
                                       inspection_date=inspection_date, **metadata)
        workspace.store.save_draft(inspection, schema)
        return inspection

    inspection = _run(action)
    click.echo(f"✓ Draft created: {inspection.inspection_id}")


@cli.command()
@click.argument('inspection_id')
@click.argument('section_code')
@click.argument('item_number', type=int)
@click.argument('option')
@click.pass_obj
def toggle(workspace: Workspace, inspection_id: str, section_code: str, item_number: int, option: str):
    """Toggle an option on an item."""
    def change(engine, inspection):
        response = engine.toggle_item_option(inspection, section_code, item_number, option)
        item = engine.registry.find_item(section_code, item_number)
        selected = ", ".join(item.label_for(v) for v in response.ordered_options(item)) or "-"
        marker = " (NC)" if response.is_nonconforming else ""
        click.echo(f"✓ {section_code}.{item_number}: {selected}{marker}")

    _edit(workspace, inspection_id, change)


@cli.command()
@click.argument('inspection_id')
@click.argument('section_code')
@click.argument('item_number', type=int)
@click.argument('text')
@click.pass_obj
def text(workspace: Workspace, inspection_id: str, section_code: str, item_number: int, text: str):
    """Set the free-text answer of an item."""
    _edit(workspace, inspection_id,
          lambda engine, inspection: engine.set_item_free_text(inspection, section_code, item_number, text))
    click.echo(f"✓ {section_code}.{item_number} text saved")


@cli.command()
@click.argument('inspection_id')
@click.argument('section_code')
@click.option('--on/--off', 'flag', default=True, help='Mark (or unmark) the section not applicable')
@click.pass_obj
def na(workspace: Workspace, inspection_id: str, section_code: str, flag: bool):
    """Mark a section not applicable."""
    _edit(workspace, inspection_id,
          lambda engine, inspection: engine.set_section_not_applicable(inspection, section_code, flag))
    click.echo(f"✓ Section {section_code} {'marked' if flag else 'no longer'} N/A")


@cli.command()
@click.argument('inspection_id')
@click.argument('section_code')
@click.argument('name')
@click.argument('value')
@click.pass_obj
def field(workspace: Workspace, inspection_id: str, section_code: str, name: str, value: str):
    """Set a section field (location, voltage, current, power, notes or an extra field)."""
    def change(engine, inspection):
        if name in CONTEXT_FIELDS:
            engine.set_section_context_field(inspection, section_code, name, value)
        elif name == "notes":
            engine.set_section_notes(inspection, section_code, value)
        else:
            engine.set_section_extra_field(inspection, section_code, name, value)

    _edit(workspace, inspection_id, change)
    click.echo(f"✓ {section_code}.{name} = {value}")


@cli.command()
@click.argument('inspection_id')
@click.argument('key')
@click.argument('value')
@click.pass_obj
def meta(workspace: Workspace, inspection_id: str, key: str, value: str):
    """Set inspection metadata (client_name, inspection_date, notes, ...)."""
    def change(engine, inspection):
        if key == "inspection_date":
            engine.set_inspection_date(inspection, value)
        elif key == "notes":
            engine.set_notes(inspection, value)
        else:
            engine.set_metadata(inspection, key, value)

    _edit(workspace, inspection_id, change)
    click.echo(f"✓ {key} = {value}")


@cli.command()
@click.argument('inspection_id')
@click.argument('signature_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--slot', type=click.Choice(['primary', 'secondary']), default='primary')
@click.pass_obj
def sign(workspace: Workspace, inspection_id: str, signature_file: str, slot: str):
    """Attach a signature capture (e.g. a data URI stored in a file)."""
    data = Path(signature_file).read_text(encoding='utf-8').strip()
    _edit(workspace, inspection_id,
          lambda engine, inspection: engine.set_signature(inspection, slot, data))
    click.echo(f"✓ {slot.capitalize()} signature attached")


@cli.command()
@click.argument('inspection_id')
@click.pass_obj
def status(workspace: Workspace, inspection_id: str):
    """Show the conformity status of each section."""
    inspection, schema = _run(lambda: workspace.open(inspection_id))
    assessment = evaluate_inspection(inspection, schema)

    click.echo(f"{inspection.inspection_id} [{inspection.status}] - {schema.title}")
    for section in schema.sections:
        badge = STATUS_BADGES[assessment.section_statuses[section.code]]
        click.echo(f"  {section.code:>4}  {badge:<13} {section.name}")

    click.echo(f"\nAnswered: {assessment.answered_items}/{assessment.applicable_items} "
               f"({assessment.progress:.0%})")
    if assessment.has_nonconformities:
        click.echo(f"⚠ Non-conformities: {len(assessment.nonconforming_items)}")
        for section_code, item_number in assessment.nonconforming_items:
            item = next(s for s in schema.sections if s.code == section_code).find_item(item_number)
            click.echo(f"  • {section_code}.{item_number} {item.name}")
    else:
        click.echo("✓ No non-conformity")


@cli.command()
@click.argument('inspection_id')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Output file path')
@click.option('--format', 'fmt', type=click.Choice(['json', 'yaml']), default='json')
@click.pass_obj
def report(workspace: Workspace, inspection_id: str, output: Optional[str], fmt: str):
    """Export the synthesized report data of an inspection."""
    inspection, schema = _run(lambda: workspace.open(inspection_id))
    output = output or f"{inspection_id}_report.{fmt}"
    path = export_report(synthesize(inspection, schema), output, fmt)
    click.echo(f"✓ Report exported to: {path}")


@cli.command()
@click.argument('inspection_id')
@click.pass_obj
def validate(workspace: Workspace, inspection_id: str):
    """Check whether an inspection can be submitted."""
    inspection, schema = _run(lambda: workspace.open(inspection_id))
    errors = validate_for_submission(inspection, schema)
    if not errors:
        click.echo("✓ Ready for submission")
        return
    click.echo(f"✗ {len(errors)} problem(s):")
    for error in errors:
        click.echo(f"  • {error.message}")
    raise SystemExit(1)


@cli.command()
@click.argument('inspection_id')
@click.pass_obj
def submit(workspace: Workspace, inspection_id: str):
    """Validate, finalize and store an inspection."""
    def action():
        inspection, schema = workspace.open(inspection_id)
        submitted = submit_inspection(inspection, schema)
        workspace.store.save_submitted(submitted, schema)
        return submitted

    submitted = _run(action)
    click.echo(f"✓ Inspection submitted: {submitted.inspection_id} at {submitted.submitted_at}")


@cli.command(name='list')
@click.option('--status', 'status_filter', type=click.Choice(['draft', 'submitted']), default=None)
@click.pass_obj
def list_inspections(workspace: Workspace, status_filter: Optional[str]):
    """List stored inspections."""
    headers = _run(lambda: workspace.store.list_inspections(status_filter))
    if not headers:
        click.echo("No inspections")
        return
    for header in headers:
        subject = header.get("metadata", {}).get("client_name") or "-"
        click.echo(f"{header['inspection_id']}  {header['status']:<9}  {header['schema_id']:<24}  "
                   f"{header.get('inspection_date') or '-'}  {subject}")


if __name__ == '__main__':
    cli()
