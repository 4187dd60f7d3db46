"""Preview and conflict report output."""

from .schema import (
    ConflictDimension,
    ConflictEntry,
    ConflictReport,
    GroupConflict,
    HolidayImpact,
    IssueSeverity,
    PreviewIssue,
    PreviewResult,
    PreviewStage,
    SessionPreview,
)
from .formatters import (
    # Formatter classes
    JSONFormatter,
    CSVFormatter,
    ConsoleFormatter,
    # Convenience functions
    format_json,
    format_csv,
    format_console,
    format_session_lines,
    print_console,
    sessions_table,
    # File utilities
    save_json,
    save_csv,
)

__all__ = [
    # Schema models
    "ConflictDimension",
    "ConflictEntry",
    "ConflictReport",
    "GroupConflict",
    "HolidayImpact",
    "IssueSeverity",
    "PreviewIssue",
    "PreviewResult",
    "PreviewStage",
    "SessionPreview",
    # Formatter classes
    "JSONFormatter",
    "CSVFormatter",
    "ConsoleFormatter",
    # Formatter convenience functions
    "format_json",
    "format_csv",
    "format_console",
    "format_session_lines",
    "print_console",
    "sessions_table",
    # File utilities
    "save_json",
    "save_csv",
]
