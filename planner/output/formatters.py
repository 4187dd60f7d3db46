"""
Output formatters for previews and session lists.

This module provides formatters for different output formats:
- JSON: Complete preview result
- CSV: One row per session, for spreadsheets
- Console: Pretty-printed for CLI (rich) or plain text
"""

from __future__ import annotations

import csv
import sys
from io import StringIO
from pathlib import Path
from typing import Optional, Sequence, TextIO

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .schema import IssueSeverity, PreviewResult, SessionPreview


# =============================================================================
# JSON Formatter
# =============================================================================

class JSONFormatter:
    """Formats preview results as JSON."""

    def __init__(self, indent: int = 2):
        self.indent = indent

    def format(self, result: PreviewResult) -> str:
        return result.to_json(indent=self.indent)

    def format_sessions_only(self, result: PreviewResult) -> str:
        """Only the session rows, as a JSON array."""
        rows = ",\n".join(
            row.model_dump_json(by_alias=True) for row in result.session_preview
        )
        return f"[\n{rows}\n]" if rows else "[]"


def format_json(result: PreviewResult, indent: int = 2) -> str:
    """Convenience function for JSON formatting."""
    return JSONFormatter(indent=indent).format(result)


# =============================================================================
# CSV Formatter
# =============================================================================

class CSVFormatter:
    """Formats session rows as CSV."""

    DEFAULT_COLUMNS = [
        "session_number",
        "week_number",
        "date",
        "day_name",
        "start_time",
        "end_time",
        "room_name",
        "teacher_name",
        "has_conflict",
        "notes",
    ]

    def __init__(self, columns: Optional[list[str]] = None, delimiter: str = ","):
        """
        Initialize CSV formatter.

        Args:
            columns: SessionPreview field names to include, in order
            delimiter: CSV field delimiter
        """
        self.columns = columns or list(self.DEFAULT_COLUMNS)
        self.delimiter = delimiter

    def format(self, sessions: Sequence[SessionPreview]) -> str:
        buffer = StringIO()
        self.write(sessions, buffer)
        return buffer.getvalue()

    def write(self, sessions: Sequence[SessionPreview], file: TextIO) -> None:
        writer = csv.writer(file, delimiter=self.delimiter)
        writer.writerow(self.columns)
        for session in sessions:
            writer.writerow([_cell(getattr(session, column)) for column in self.columns])


def format_csv(sessions: Sequence[SessionPreview]) -> str:
    """Convenience function for CSV formatting."""
    return CSVFormatter().format(sessions)


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else ""
    return str(value)


# =============================================================================
# Console Formatter
# =============================================================================

class ConsoleFormatter:
    """Formats preview results for console display."""

    def __init__(self, use_colors: bool = True, width: Optional[int] = None):
        """
        Initialize console formatter.

        Args:
            use_colors: Use rich tables and colors
            width: Console width (None = auto-detect)
        """
        self.use_colors = use_colors
        self.width = width

    def format(self, result: PreviewResult) -> str:
        if self.use_colors:
            return self._format_rich(result)
        return self._format_plain(result)

    def print(self, result: PreviewResult, file: Optional[TextIO] = None) -> None:
        """
        Print a preview result.

        Args:
            result: PreviewResult to print
            file: Output stream (default: stdout)
        """
        if file is None:
            file = sys.stdout

        if self.use_colors:
            self._print_rich(result, Console(file=file, width=self.width))
        else:
            file.write(self._format_plain(result))
            file.write("\n")

    def _format_plain(self, result: PreviewResult) -> str:
        """Format without colors."""
        lines = []

        verdict = "CAN CREATE" if result.can_create else "BLOCKED"
        lines.append("=" * 60)
        lines.append(f"SCHEDULE PREVIEW - {verdict} (stage: {result.stage_reached.value})")
        lines.append("=" * 60)
        lines.append("")

        lines.append(f"Sessions: {result.total_sessions}")
        if result.computed_end_date:
            lines.append(f"Last session: {result.computed_end_date.isoformat()}")
        lines.append(f"Conflicts: {result.conflict_report.total_conflicts}")
        lines.append("")

        if result.issues:
            lines.append("--- Issues ---")
            for issue in result.issues:
                lines.append(f"  {issue}")
            lines.append("")

        if result.holiday_impacts:
            lines.append("--- Holidays ---")
            for impact in result.holiday_impacts:
                moved = impact.new_date.isoformat() if impact.new_date else "not moved"
                name = f" ({impact.holiday_name})" if impact.holiday_name else ""
                lines.append(f"  #{impact.session_number} {impact.original_date.isoformat()}{name} -> {moved}")
            lines.append("")

        if result.session_preview:
            lines.append("--- Sessions ---")
            lines.extend(format_session_lines(result.session_preview))

        return "\n".join(lines)

    def _format_rich(self, result: PreviewResult) -> str:
        """Format with rich (returns string via capture)."""
        console = Console(record=True, width=self.width or 100)
        self._print_rich(result, console)
        return console.export_text()

    def _print_rich(self, result: PreviewResult, console: Console) -> None:
        verdict = Text(
            "CAN CREATE" if result.can_create else "BLOCKED",
            style="bold green" if result.can_create else "bold red",
        )
        console.print(Panel(
            verdict,
            title="Schedule Preview",
            subtitle=f"stage: {result.stage_reached.value}",
        ))

        console.print("\n[bold]Summary:[/bold]")
        console.print(f"  Sessions: {result.total_sessions}")
        if result.computed_end_date:
            console.print(f"  Last session: {result.computed_end_date.isoformat()}")
        console.print(f"  Conflicts: {result.conflict_report.total_conflicts}")

        if result.issues:
            table = Table(title="Issues", show_header=True, header_style="bold cyan")
            table.add_column("Severity")
            table.add_column("Code")
            table.add_column("Message")
            for issue in result.issues:
                style = "red" if issue.severity == IssueSeverity.ERROR else "yellow"
                severity = "FATAL" if issue.fatal else issue.severity.value
                table.add_row(Text(severity, style=style), issue.code, issue.message)
            console.print(table)

        if result.holiday_impacts:
            table = Table(title="Holidays", show_header=True, header_style="bold cyan")
            table.add_column("#", justify="right")
            table.add_column("Holiday")
            table.add_column("Date")
            table.add_column("Moved to")
            for impact in result.holiday_impacts:
                table.add_row(
                    str(impact.session_number),
                    impact.holiday_name or "-",
                    impact.original_date.isoformat(),
                    impact.new_date.isoformat() if impact.new_date else "-",
                )
            console.print(table)

        if result.session_preview:
            console.print(sessions_table(result.session_preview))


def sessions_table(sessions: Sequence[SessionPreview], title: str = "Sessions") -> Table:
    """Rich table of session rows; conflicting rows are highlighted."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Week", justify="right")
    table.add_column("Date")
    table.add_column("Day")
    table.add_column("Time")
    table.add_column("Room")
    table.add_column("Teacher")
    table.add_column("Notes", style="dim")

    for session in sessions:
        table.add_row(
            str(session.session_number),
            str(session.week_number),
            session.date.isoformat(),
            session.day_name,
            f"{session.start_time}-{session.end_time}",
            session.room_name or (str(session.room_id) if session.room_id is not None else "-"),
            session.teacher_name or (str(session.teacher_id) if session.teacher_id is not None else "-"),
            session.notes,
            style="red" if session.has_conflict else None,
        )
    return table


def format_session_lines(sessions: Sequence[SessionPreview]) -> list[str]:
    """Plain-text session lines."""
    lines = []
    for session in sessions:
        flag = " [CONFLICT]" if session.has_conflict else ""
        notes = f" - {session.notes}" if session.notes else ""
        lines.append(
            f"  #{session.session_number:>3} wk{session.week_number:<3} {session.date.isoformat()} "
            f"{session.day_name[:3]} {session.start_time}-{session.end_time}{flag}{notes}"
        )
    return lines


def format_console(result: PreviewResult, use_colors: bool = True) -> str:
    """Convenience function for console formatting."""
    return ConsoleFormatter(use_colors=use_colors).format(result)


def print_console(result: PreviewResult, use_colors: bool = True) -> None:
    """Print a preview result to the console."""
    ConsoleFormatter(use_colors=use_colors).print(result)


# =============================================================================
# File Utilities
# =============================================================================

def save_json(result: PreviewResult, filepath: str | Path, indent: int = 2) -> None:
    """Save a preview result to a JSON file."""
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_json(result, indent=indent))


def save_csv(sessions: Sequence[SessionPreview], filepath: str | Path) -> None:
    """Save session rows to a CSV file."""
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="") as f:
        CSVFormatter().write(sessions, f)
