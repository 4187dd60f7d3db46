"""
Command-line interface for the session planner.

Usage:
    python -m planner preview definition.json --store store.json --holidays holidays.json
    python -m planner generate definition.json --open 08:00 --close 17:00
    python -m planner commit definition.json --store store.json
    python -m planner holidays 2025 2026
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .commit import CommitOrchestrator
from .config import PlannerConfig
from .data.loader import (
    DataValidationError,
    load_definition,
    load_holidays,
    load_store,
    read_definition_data,
    save_store,
)
from .data.models import BranchHours
from .data.store import InMemorySessionStore
from .engine.generator import generate_for_definition
from .engine.holidays import HolidayProvider, MyHoraHolidayProvider, shift_holidays
from .engine.hours import parse_time_minutes
from .engine.reindex import reindex
from .errors import PlannerError, ScheduleConflictError, exit_code_for
from .log import configure_logging
from .output.formatters import ConsoleFormatter, sessions_table
from .output.schema import SessionPreview
from .preview import PreviewOrchestrator, fetch_holidays

# Create Typer app
app = typer.Typer(
    name="planner",
    help="Recurring schedule session generation and conflict detection.",
    add_completion=False,
)

# Rich console for pretty output
console = Console()

EXIT_OK = 0
EXIT_BLOCKED = 1
EXIT_BAD_INPUT = 2


# =============================================================================
# Helper Functions
# =============================================================================

def _config() -> PlannerConfig:
    return PlannerConfig.from_env()


def _load_store(store_path: Path) -> InMemorySessionStore:
    """Load a store snapshot, exiting with the bad-input code on failure."""
    if not store_path.exists():
        console.print(f"[red]Error:[/red] Store file not found: {store_path}")
        raise typer.Exit(code=EXIT_BAD_INPUT)

    try:
        return InMemorySessionStore(load_store(store_path))
    except (DataValidationError, json.JSONDecodeError) as e:
        console.print(f"[red]Error loading store:[/red] {e}")
        raise typer.Exit(code=EXIT_BAD_INPUT)


def _read_definition(definition_path: Path) -> dict:
    if not definition_path.exists():
        console.print(f"[red]Error:[/red] Definition file not found: {definition_path}")
        raise typer.Exit(code=EXIT_BAD_INPUT)

    try:
        return read_definition_data(definition_path)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON:[/red] {e}")
        raise typer.Exit(code=EXIT_BAD_INPUT)


def _holiday_provider(
    holidays_file: Optional[Path],
    online: bool,
    config: PlannerConfig,
) -> Optional[HolidayProvider]:
    """Holiday source chosen on the command line; file wins over online."""
    if holidays_file is not None:
        try:
            return load_holidays(holidays_file)
        except (OSError, DataValidationError, json.JSONDecodeError) as e:
            console.print(f"[red]Error loading holidays:[/red] {e}")
            raise typer.Exit(code=EXIT_BAD_INPUT)
    if online:
        return MyHoraHolidayProvider.from_config(config)
    return None


def _fail(error: PlannerError) -> None:
    console.print(f"[red]{type(error).__name__}:[/red] {error.message}")
    raise typer.Exit(code=exit_code_for(error))


def print_conflicts(error: ScheduleConflictError) -> None:
    """Print the conflicts that blocked a commit."""
    table = Table(title="Conflicts", show_header=True, header_style="bold red")
    table.add_column("Type")
    table.add_column("Detail")

    report = error.report
    if report.group_conflict:
        table.add_row("group", str(report.group_conflict))
    for entry in report.entries():
        table.add_row(entry.dimension.value, str(entry))

    console.print(table)


# =============================================================================
# Callback
# =============================================================================

@app.callback()
def main_callback(
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Enable debug logging",
    ),
) -> None:
    """Configure logging before any command runs."""
    config = _config()
    level = "DEBUG" if verbose else config.log_level
    configure_logging(level, handler=RichHandler(console=Console(stderr=True), show_path=False))


# =============================================================================
# Commands
# =============================================================================

@app.command()
def preview(
    definition_file: Path = typer.Argument(
        ...,
        help="Path to schedule definition JSON",
    ),
    store: Path = typer.Option(
        ...,
        "--store", "-s",
        help="Path to store snapshot JSON",
    ),
    holidays_file: Optional[Path] = typer.Option(
        None,
        "--holidays", "-H",
        help="Holiday file ({\"YYYY-MM-DD\": \"name\"})",
    ),
    online: bool = typer.Option(
        False,
        "--online",
        help="Fetch Thai public holidays from myhora.com",
    ),
    exclude_schedule: Optional[int] = typer.Option(
        None,
        "--exclude-schedule",
        help="Schedule id being edited; its sessions are not conflicts",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the preview result as JSON",
    ),
) -> None:
    """
    Preview the sessions a definition would create, without writing.

    Exit code 0 when the schedule can be created, 1 when it is blocked.

    Example:
        python -m planner preview definition.json --store store.json
    """
    config = _config()
    data = _read_definition(definition_file)
    session_store = _load_store(store)
    provider = _holiday_provider(holidays_file, online, config)

    result = PreviewOrchestrator(session_store, holiday_provider=provider, config=config).preview(
        data, exclude_schedule_id=exclude_schedule,
    )

    if as_json:
        typer.echo(result.to_json())
    else:
        ConsoleFormatter(use_colors=True).print(result, file=console.file)

    if not result.can_create:
        raise typer.Exit(code=EXIT_BLOCKED)


@app.command()
def generate(
    definition_file: Path = typer.Argument(
        ...,
        help="Path to schedule definition JSON",
    ),
    open_time: str = typer.Option(
        "08:00",
        "--open",
        help="Branch opening time",
    ),
    close_time: str = typer.Option(
        "21:00",
        "--close",
        help="Branch closing time",
    ),
    holidays_file: Optional[Path] = typer.Option(
        None,
        "--holidays", "-H",
        help="Holiday file to shift sessions off",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print sessions as JSON",
    ),
) -> None:
    """
    Generate sessions for a definition without a store.

    Example:
        python -m planner generate definition.json --open 08:00 --close 17:00
    """
    config = _config()
    if not definition_file.exists():
        console.print(f"[red]Error:[/red] Definition file not found: {definition_file}")
        raise typer.Exit(code=EXIT_BAD_INPUT)

    try:
        definition = load_definition(definition_file)
        branch_hours = BranchHours(
            open_minutes=parse_time_minutes(open_time),
            close_minutes=parse_time_minutes(close_time),
        )
    except (DataValidationError, json.JSONDecodeError, ValueError) as e:
        console.print(f"[red]Invalid input:[/red] {e}")
        raise typer.Exit(code=EXIT_BAD_INPUT)
    except PlannerError as e:
        _fail(e)

    provider = _holiday_provider(holidays_file, False, config)

    try:
        sessions = generate_for_definition(definition, branch_hours, config)
    except PlannerError as e:
        _fail(e)

    holidays, _ = fetch_holidays(provider, definition, sessions, config)
    if holidays and definition.auto_reschedule_holiday:
        sessions = shift_holidays(sessions, holidays).sessions
    sessions = reindex(sessions, definition.start_date)

    rows = [SessionPreview.from_candidate(s) for s in sessions]
    if as_json:
        typer.echo(json.dumps([row.model_dump(by_alias=True, mode="json") for row in rows], indent=2))
        return

    console.print(sessions_table(rows, title=f"{definition} ({len(rows)} sessions)"))


@app.command()
def commit(
    definition_file: Path = typer.Argument(
        ...,
        help="Path to schedule definition JSON",
    ),
    store: Path = typer.Option(
        ...,
        "--store", "-s",
        help="Path to store snapshot JSON; updated in place",
    ),
    holidays_file: Optional[Path] = typer.Option(
        None,
        "--holidays", "-H",
        help="Holiday file",
    ),
    online: bool = typer.Option(
        False,
        "--online",
        help="Fetch Thai public holidays from myhora.com",
    ),
    created_by: Optional[int] = typer.Option(
        None,
        "--created-by",
        help="User id recorded as the schedule's creator",
    ),
) -> None:
    """
    Create the schedule and its sessions in the store.

    Generation and conflict detection are re-run at write time; nothing is
    written if anything fails.

    Example:
        python -m planner commit definition.json --store store.json
    """
    config = _config()
    data = _read_definition(definition_file)
    session_store = _load_store(store)
    provider = _holiday_provider(holidays_file, online, config)

    orchestrator = CommitOrchestrator(session_store, holiday_provider=provider, config=config)
    try:
        record = orchestrator.commit(data, created_by=created_by)
    except ScheduleConflictError as e:
        print_conflicts(e)
        _fail(e)
    except PlannerError as e:
        _fail(e)

    save_store(session_store.snapshot, store)

    sessions = [s for s in session_store.snapshot.sessions if s.schedule_id == record.id]
    console.print(Panel(
        Text(f"Schedule {record.id} created", style="bold green"),
        title="Commit",
        subtitle=f"{len(sessions)} sessions, last on {record.estimated_end_date}",
    ))


@app.command()
def holidays(
    start_year: int = typer.Argument(
        ...,
        help="First Gregorian year",
    ),
    end_year: Optional[int] = typer.Argument(
        None,
        help="Last Gregorian year (defaults to start year)",
    ),
    holidays_file: Optional[Path] = typer.Option(
        None,
        "--file", "-f",
        help="Read holidays from a file instead of myhora.com",
    ),
) -> None:
    """
    List holidays for a range of years.

    Example:
        python -m planner holidays 2025 2026
    """
    config = _config()
    end_year = end_year if end_year is not None else start_year
    if end_year < start_year:
        console.print("[red]Error:[/red] END_YEAR must not be before START_YEAR")
        raise typer.Exit(code=EXIT_BAD_INPUT)

    provider = _holiday_provider(holidays_file, True, config)
    try:
        found = provider.get_holidays(start_year, end_year)
    except PlannerError as e:
        _fail(e)

    table = Table(title=f"Holidays {start_year}-{end_year}", show_header=True, header_style="bold cyan")
    table.add_column("Date")
    table.add_column("Name")
    for day, name in found.items():
        table.add_row(day.isoformat(), name or "-")

    console.print(table)
    console.print(f"\n[bold]{len(found)}[/bold] holidays")


# =============================================================================
# Main Entry Point
# =============================================================================

def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
