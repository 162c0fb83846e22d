"""Okapi CLI entrypoint.

Commands:
- define: create action definitions from a YAML/JSON file
- update: apply partial updates from a YAML/JSON file
- delete: delete an action definition and its logs
- list: show a space's action definitions
- log: record a completion (or a step completion/skip)
- submit: submit form data for a data-entry action or step
- timeline: show a space's merged activity feed
- stats: show a space's totals
- progress: show points and level
- clear: wipe all data (requires --yes)
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import structlog
import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from core.completion import CompletionRequest
from core.data_entry import DataEntryRequest
from core.engine import Engine
from core.errors import EngineError
from core.settings import load_settings
from schemas.actions import MultiStepAction
from tools.definition_loader import load_definition_updates, load_definitions

app = typer.Typer(add_completion=False, help="Okapi: actions, points and a space timeline")
console = Console()

_state: dict[str, object] = {}


@app.callback()
def main_options(
    db: Path | None = typer.Option(None, "--db", help="Path to the SQLite store"),
    config: Path | None = typer.Option(
        None, "--config", exists=True, readable=True, help="YAML/JSON settings file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log engine activity to stderr"),
) -> None:
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.WARNING
        ),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
    )
    _state["settings"] = load_settings(config, db_path=db)


def _engine() -> Engine:
    return Engine(_state.get("settings") or load_settings())


def _fail(err: Exception) -> None:
    console.print(f"[red]{type(err).__name__}: {escape(str(err))}[/red]")
    raise typer.Exit(code=1)


def _parse_fields(pairs: list[str]) -> dict[str, str]:
    data: dict[str, str] = {}
    for pair in pairs:
        if "=" not in pair:
            raise typer.BadParameter(f"Expected NAME=VALUE, got {pair!r}", param_hint="--field")
        name, value = pair.split("=", 1)
        data[name.strip()] = value
    return data


@app.command()
def define(path: Path = typer.Argument(..., exists=True, readable=True, help="Definitions file")) -> None:
    """Create action definitions from PATH."""
    engine = _engine()
    try:
        for item in load_definitions(path):
            created = engine.create_action_definition(item)
            console.print(f"Created [bold]{created.name}[/bold] ({created.variant}) id={created.id}")
    except (EngineError, PydanticValidationError, TypeError) as e:
        _fail(e)
    finally:
        engine.close()


@app.command()
def update(path: Path = typer.Argument(..., exists=True, readable=True, help="Updates file")) -> None:
    """Apply partial action definition updates from PATH."""
    engine = _engine()
    try:
        for item in load_definition_updates(path):
            updated = engine.update_action_definition(item)
            console.print(f"Updated [bold]{updated.name}[/bold] ({updated.variant}) id={updated.id}")
    except (EngineError, PydanticValidationError, TypeError) as e:
        _fail(e)
    finally:
        engine.close()


@app.command()
def delete(definition_id: str = typer.Argument(..., help="Action definition id")) -> None:
    """Delete an action definition together with its logs."""
    engine = _engine()
    try:
        engine.delete_action_definition(definition_id)
        console.print(f"Deleted {definition_id}")
    except EngineError as e:
        _fail(e)
    finally:
        engine.close()


@app.command("list")
def list_definitions(space_id: str = typer.Argument(..., help="Space id")) -> None:
    """List a space's action definitions."""
    engine = _engine()
    try:
        table = Table(title=f"Actions: {space_id}")
        table.add_column("ID")
        table.add_column("Name")
        table.add_column("Variant")
        table.add_column("Points", justify="right")
        table.add_column("Enabled")
        table.add_column("Steps/Fields")
        for d in engine.list_action_definitions(space_id):
            if isinstance(d, MultiStepAction):
                nested = ", ".join(f"{s.id}:{s.description}" for s in d.steps)
            else:
                nested = ", ".join(f.name for f in getattr(d, "form_fields", []))
            table.add_row(
                d.id, d.name, d.variant, str(d.points_for_completion), "yes" if d.is_enabled else "no", nested
            )
        console.print(table)
    finally:
        engine.close()


@app.command()
def log(
    space_id: str = typer.Argument(..., help="Space id"),
    definition_id: str = typer.Argument(..., help="Action definition id"),
    step: str | None = typer.Option(None, "--step", help="Step id of a multi-step action"),
    outcome: str | None = typer.Option(None, "--outcome", help="completed or skipped"),
    notes: str | None = typer.Option(None, "--notes"),
    duration_ms: int | None = typer.Option(None, "--duration-ms", min=0, help="Timer duration"),
) -> None:
    """Record a completion."""
    engine = _engine()
    try:
        result = engine.record_completion(
            CompletionRequest(
                space_id=space_id,
                action_definition_id=definition_id,
                completed_step_id=step,
                step_outcome=outcome,
                notes=notes,
                duration_ms=duration_ms,
            )
        )
        suffix = " [green](full completion)[/green]" if result.log.is_multi_step_full_completion else ""
        console.print(
            f"Logged: {result.log.points_awarded} points{suffix}. "
            f"Total {result.progress.points}, level {result.progress.level}."
        )
    except (EngineError, PydanticValidationError) as e:
        _fail(e)
    finally:
        engine.close()


@app.command()
def submit(
    space_id: str = typer.Argument(..., help="Space id"),
    definition_id: str = typer.Argument(..., help="Action definition id"),
    field: list[str] = typer.Option([], "--field", "-f", help="NAME=VALUE, repeatable"),
    step: str | None = typer.Option(None, "--step", help="Data-entry step id of a multi-step action"),
) -> None:
    """Submit form data."""
    engine = _engine()
    try:
        result = engine.submit_data_entry(
            DataEntryRequest(
                space_id=space_id,
                action_definition_id=definition_id,
                step_id=step,
                form_data=_parse_fields(field),
            )
        )
        console.print(
            f"Saved entry {result.entry.id}: {result.entry.points_awarded} points. "
            f"Total {result.progress.points}, level {result.progress.level}."
        )
    except (EngineError, PydanticValidationError) as e:
        _fail(e)
    finally:
        engine.close()


@app.command()
def timeline(
    space_id: str = typer.Argument(..., help="Space id"),
    limit: int | None = typer.Option(None, "--limit", min=0, help="Maximum items"),
) -> None:
    """Show the merged activity feed for a space."""
    engine = _engine()
    try:
        table = Table(title=f"Timeline: {space_id}")
        table.add_column("When")
        table.add_column("Kind")
        table.add_column("Title")
        table.add_column("Details")
        table.add_column("Points", justify="right")
        for item in engine.build_timeline(space_id, limit):
            table.add_row(
                item.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                item.kind,
                item.title,
                item.description or "",
                "" if item.points_awarded is None else str(item.points_awarded),
            )
        console.print(table)
    finally:
        engine.close()


@app.command()
def stats(space_id: str = typer.Argument(..., help="Space id")) -> None:
    """Show a space's totals."""
    engine = _engine()
    try:
        s = engine.space_stats(space_id)
        table = Table(title=f"Stats: {space_id}")
        table.add_column("Metric")
        table.add_column("Value", justify="right")
        table.add_row("Points earned", str(s.total_points_earned))
        table.add_row("Actions logged", str(s.actions_logged_count))
        table.add_row("Data entries", str(s.data_entries_count))
        table.add_row("Full completions", str(s.full_completions_count))
        console.print(table)
    finally:
        engine.close()


@app.command()
def progress() -> None:
    """Show the local user's points and level."""
    engine = _engine()
    try:
        p = engine.get_progress()
        console.print(f"Level {p.level}: {p.points} points")
    finally:
        engine.close()


@app.command()
def clear(yes: bool = typer.Option(False, "--yes", help="Confirm wiping all data")) -> None:
    """Delete every definition, log, problem, to-do and progress record."""
    if not yes:
        console.print("[yellow]Refusing to clear without --yes.[/yellow]")
        raise typer.Exit(code=2)
    engine = _engine()
    try:
        engine.clear_all_data()
        console.print("All data cleared.")
    finally:
        engine.close()


def main() -> int:
    """Entry point for `python -m cli.main`."""
    app()
    return 0


if __name__ == "__main__":
    sys.exit(main())
