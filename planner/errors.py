"""Exception taxonomy for the session planner.

Fatal problems are raised as one of the classes below and abort the pipeline.
Conflicts are not exceptions: they travel as a ``ConflictReport`` alongside a
successful result, and only the commit path turns them into
``ScheduleConflictError``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from planner.output.schema import ConflictReport


class PlannerError(Exception):
    """Base class for all planner errors."""

    code = "planner_error"

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}


class StructuralValidationError(PlannerError):
    """Raised when a definition is missing fields or has invalid values."""

    code = "invalid_field"


class DomainValidationError(PlannerError):
    """Raised when a definition is well-formed but violates a business rule."""

    code = "domain_invalid"


class InvalidBranchHours(DomainValidationError):
    """Raised when a branch's operating window is unusable."""

    code = "invalid_branch_hours"


class GenerationError(PlannerError):
    """Raised when sessions cannot be generated from a definition."""

    code = "generation_failed"


class InvalidTimeFormat(GenerationError):
    """Raised when a time-of-day string cannot be parsed."""

    code = "invalid_time_format"


class HolidayLookupError(PlannerError):
    """Raised when no holiday data could be fetched for any requested year."""

    code = "holiday_lookup_failed"


class ScheduleConflictError(PlannerError):
    """Raised by the commit path when committed sessions would be double-booked."""

    code = "schedule_conflict"

    def __init__(self, message: str, report: ConflictReport):
        super().__init__(message, details={"conflicts": report.total_conflicts})
        self.report = report


# Exit codes used by the CLI for each error family
EXIT_CODES = {
    StructuralValidationError: 2,
    DomainValidationError: 2,
    InvalidBranchHours: 2,
    GenerationError: 1,
    InvalidTimeFormat: 2,
    HolidayLookupError: 1,
    ScheduleConflictError: 1,
}


def exit_code_for(error: PlannerError) -> int:
    """Exit code for an error, walking its class hierarchy."""
    for cls in type(error).__mro__:
        if cls in EXIT_CODES:
            return EXIT_CODES[cls]
    return 1
