"""Command-line interface: add, list and update records, or work in a REPL.

    backlog-helper [-f data.xlsx] add task -t "Write docs" -p high
    backlog-helper list tasks
    backlog-helper update task --id <ID> --status done
    backlog-helper interactive

The add/update commands of every record kind are generated from that
kind's column layout, so options, prompts and validation follow the
sheet columns.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import click
import yaml
from rich.console import Console
from rich.markup import escape

from . import __version__, enums, prompts
from . import config as settings
from .display import print_records
from .records import (
    DATE,
    ENUM,
    ID,
    LAYOUTS,
    TIMESTAMP,
    Column,
    Layout,
    RecordKind,
    title_of,
)
from .store import SpreadsheetStore, StoreError

_log = logging.getLogger("backlog.cli")

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


@dataclass
class AppContext:
    store: SpreadsheetStore
    console: Console
    interactive: bool = False


def _app(ctx: click.Context) -> AppContext:
    app = ctx.find_object(AppContext)
    if app is None:
        raise click.UsageError("No data store configured.", ctx)
    return app


def _configure_logging(level: str, verbose: bool) -> None:
    resolved = logging.DEBUG if verbose else getattr(logging, level.upper())
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger("backlog").setLevel(resolved)


# ── Field handling ──

def _fields(layout: Layout) -> list[Column]:
    """Columns the user edits: everything except the id and timestamps."""
    return [c for c in layout.columns if c.kind not in (ID, TIMESTAMP)]


def _flag_hint(column: Column) -> str:
    hint = f"--{column.option}"
    if column.short:
        hint += f" or -{column.short}"
    return hint


def _option_for(column: Column, for_update: bool) -> click.Option:
    decls = [f"--{column.option}"]
    if column.short:
        decls.append(f"-{column.short}")
    decls.append(column.attr)

    help_text = column.help
    if column.required and not for_update:
        help_text = f"(Required) {help_text}"
    if column.kind == DATE:
        help_text += " (YYYY-MM-DD)"

    param_type = None
    if column.kind == ENUM:
        param_type = click.Choice(enums.names(column.enum), case_sensitive=False)
        choices = "; ".join(f"{m.value}: {enums.describe(m)}" for m in column.enum)
        help_text += f" ({choices})"
    return click.Option(decls, type=param_type, default=None, help=help_text)


def _clear_option_for(column: Column) -> click.Option:
    return click.Option(
        [f"--clear-{column.option}", f"clear_{column.attr}"],
        is_flag=True,
        default=False,
        help=f"Set {column.header} to empty.",
    )


def _prompt_fields(layout: Layout, values: dict[str, Any]) -> dict[str, Any]:
    prompted = dict(values)
    for column in _fields(layout):
        current = values.get(column.attr)
        if isinstance(current, Enum):
            current = current.value
        if column.kind == ENUM:
            prompted[column.attr] = prompts.prompt_enum(
                column.header, column.enum, required=column.required, current=current)
        elif column.kind == DATE:
            prompted[column.attr] = prompts.prompt(
                f"{column.header} (YYYY-MM-DD)", required=column.required, current=current,
                validator=prompts.is_valid_date, error="Invalid date format.")
        else:
            prompted[column.attr] = prompts.prompt(
                column.header, required=column.required, current=current)
    return prompted


def _build_record(layout: Layout, values: dict[str, Any], ctx: click.Context):
    """Validate gathered field values and construct the record."""
    fields: dict[str, Any] = {}
    for column in _fields(layout):
        raw = values.get(column.attr)
        if isinstance(raw, str) and not raw.strip():
            raw = None

        if raw is None:
            if column.required:
                raise click.UsageError(f"{column.header} ({_flag_hint(column)}) is required.", ctx)
            fields[column.attr] = None
            continue

        if column.kind == ENUM:
            member = raw if isinstance(raw, Enum) else enums.try_parse(column.enum, raw)
            if member is None:
                raise click.UsageError(
                    f'Invalid {column.header} value: "{raw}". '
                    f"Allowed: {enums.allowed_values(column.enum)}", ctx)
            fields[column.attr] = member
        elif column.kind == DATE:
            if not prompts.is_valid_date(raw):
                raise click.UsageError(f'Invalid {column.header} format: "{raw}". Use YYYY-MM-DD.', ctx)
            fields[column.attr] = raw
        else:
            fields[column.attr] = raw
    return layout.record_type(**fields)


# ── Command factories ──

def _make_add_command(kind: RecordKind) -> click.Command:
    layout = LAYOUTS[kind]

    @click.pass_context
    def callback(ctx: click.Context, **params):
        app = _app(ctx)
        values = {c.attr: params.get(c.attr) for c in _fields(layout)}
        if app.interactive:
            click.echo(f"\n--- Adding New {layout.label} ---")
            values = _prompt_fields(layout, values)
        record = _build_record(layout, values, ctx)
        try:
            new_id = app.store.add(record)
        except StoreError as e:
            raise click.ClickException(
                f'Error adding {layout.label.lower()} to Excel file "{app.store.file_path}": {e}')
        app.console.print(
            f"[bold green]✓[/bold green] {layout.label} added successfully with ID: {new_id}")

    return click.Command(
        kind.value,
        callback=callback,
        params=[_option_for(c, for_update=False) for c in _fields(layout)],
        help=f"Adds a new {layout.label.lower()}.",
    )


def _make_update_command(kind: RecordKind) -> click.Command:
    layout = LAYOUTS[kind]
    label = layout.label

    @click.pass_context
    def callback(ctx: click.Context, record_id: Optional[str], **params):
        app = _app(ctx)
        if app.interactive and not record_id:
            record_id = prompts.prompt(f"Enter the ID of the {label.lower()} to update", required=True)
        if not record_id:
            raise click.UsageError(f"{label} ID (--id or -i) is required for update.", ctx)

        try:
            existing = app.store.get_by_id(kind, record_id)
        except StoreError as e:
            raise click.ClickException(f'Error fetching {label.lower()} with ID "{record_id}": {e}')
        if existing is None:
            raise click.ClickException(f'{label} with ID "{record_id}" not found.')

        app.console.print(f"Updating {label}: {escape(title_of(existing))} (ID: {record_id})")

        values: dict[str, Any] = {}
        for column in _fields(layout):
            given = params.get(column.attr)
            if params.get(f"clear_{column.attr}"):
                values[column.attr] = None
            elif given is not None:
                values[column.attr] = given
            else:
                values[column.attr] = getattr(existing, column.attr)

        if app.interactive:
            click.echo("\nEnter new values or press Enter to keep current.")
            values = _prompt_fields(layout, values)

        record = _build_record(layout, values, ctx)
        record.id = existing.id
        record.created_at = existing.created_at

        try:
            updated = app.store.update(record)
        except StoreError as e:
            raise click.ClickException(
                f'Error updating {label.lower()} with ID "{record_id}" in Excel file '
                f'"{app.store.file_path}": {e}')
        if not updated:
            raise click.ClickException(f'{label} with ID "{record_id}" not found.')
        app.console.print(f'[bold green]✓[/bold green] {label} with ID "{record_id}" updated successfully.')

    params: list[click.Parameter] = [
        click.Option(["--id", "-i", "record_id"], default=None,
                     help=f"The unique ID of the {label.lower()} to update (Required).")
    ]
    params += [_option_for(c, for_update=True) for c in _fields(layout)]
    params += [_clear_option_for(c) for c in _fields(layout) if not c.required]
    return click.Command(
        kind.value,
        callback=callback,
        params=params,
        help=f"Updates an existing {label.lower()}.",
    )


def _make_list_command(kind: RecordKind) -> click.Command:
    layout = LAYOUTS[kind]

    @click.pass_context
    def callback(ctx: click.Context):
        app = _app(ctx)
        try:
            records = app.store.list_all(kind)
        except StoreError as e:
            raise click.ClickException(
                f'Error listing {layout.plural} from Excel file "{app.store.file_path}": {e}')
        app.console.print(f"\n--- Listing {layout.plural.title()} ---")
        print_records(app.console, kind, records)

    return click.Command(layout.plural, callback=callback, help=f"Lists all {layout.plural}.")


# ── Command tree ──

@click.group("add")
def add_group():
    """Add a new item (task, goal, plan, obstacle)."""


@click.group("list")
def list_group():
    """List items of one kind."""


@click.group("update")
def update_group():
    """Update an existing item by ID."""


for _kind in RecordKind:
    add_group.add_command(_make_add_command(_kind))
    list_group.add_command(_make_list_command(_kind))
    update_group.add_command(_make_update_command(_kind))


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="backlog-helper")
@click.option("--file", "-f", "file_path", type=click.Path(dir_okay=False), default=None,
              help="Path to the Excel data file.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, file_path: Optional[str], verbose: bool):
    """CLI tool to manage project items using an Excel file."""
    cfg = settings.get_config()
    _configure_logging(cfg["logging"]["level"], verbose)

    storage = cfg["storage"]
    store = SpreadsheetStore(
        file_path or storage["file"],
        daily_backup=storage["daily_backup"],
        backup_retain_days=storage["backup_retain_days"],
    )
    ctx.obj = AppContext(store=store, console=Console())
    ctx.call_on_close(store.invalidate)
    _log.debug("using data file %s", store.file_path)

    if ctx.invoked_subcommand is None:
        click.echo("No command specified. Entering interactive mode...")
        ctx.invoke(interactive)


cli.add_command(add_group)
cli.add_command(list_group)
cli.add_command(update_group)

repl = click.Group(
    "backlog-helper",
    commands=[add_group, list_group, update_group],
    help="Interactive mode. Type 'exit' or 'quit' to leave.",
)


def _run_repl_line(app: AppContext, args: list[str]) -> None:
    try:
        repl.main(args=args, prog_name="backlog-helper", obj=app, standalone_mode=False)
    except click.ClickException as e:
        e.show()
    except click.Abort:
        click.echo("Cancelled.")


@cli.command()
@click.pass_context
def interactive(ctx: click.Context):
    """Enter interactive mode (REPL) to manage items."""
    app = _app(ctx)
    click.echo('\nEntering interactive mode. Type "help" for commands, "exit" to quit.')
    click.echo(f"Working with file: {app.store.file_path}")

    repl_app = AppContext(store=app.store, console=app.console, interactive=True)
    while True:
        try:
            line = click.prompt("", prompt_suffix="> ", default="", show_default=False)
        except click.Abort:
            break
        line = line.strip()
        if line.lower() in ("exit", "quit"):
            break
        if not line:
            continue
        try:
            args = shlex.split(line)
        except ValueError as e:
            click.echo(f"Error: {e}")
            continue
        if args[0] == "help":
            args = args[1:] + ["--help"]
        _run_repl_line(repl_app, args)
        click.echo("")
    click.echo("Exit interactive mode.")


# ── Config ──

@cli.group("config")
def config_group():
    """Show or change settings."""


@config_group.command("show")
def config_show():
    """Print the effective configuration."""
    click.echo(f"# {settings.config_path()}")
    click.echo(yaml.safe_dump(settings.get_config(), default_flow_style=False), nl=False)


@config_group.command("set")
@click.argument("section")
@click.argument("key")
@click.argument("value")
def config_set(section: str, key: str, value: str):
    """Set SECTION.KEY to VALUE (parsed as YAML)."""
    try:
        updated = settings.set_config(section, key, settings.parse_value(value))
    except KeyError:
        raise click.UsageError(f"Unknown config key: {section}.{key}")
    except ValueError as e:
        raise click.UsageError(str(e))
    click.echo(f"{section}.{key} = {updated[section][key]!r}")


def main() -> None:
    cli(prog_name="backlog-helper")
