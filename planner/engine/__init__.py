"""
Session engine.

Pipeline stages, leaves first: time/branch-hours resolution, session
generation, holiday shifting, reindexing and conflict detection.
"""

from .hours import parse_time, parse_time_minutes, resolve_branch_hours
from .generator import (
    generate_for_definition,
    generate_sessions,
    legacy_slots,
    normalize_weekdays,
    validate_slots,
)
from .holidays import (
    HolidayProvider,
    HolidayShift,
    HolidayShiftResult,
    MyHoraHolidayProvider,
    StaticHolidayProvider,
    reschedule,
    shift_holidays,
)
from .reindex import reindex, week_number_for
from .conflicts import (
    ConflictCheckStats,
    ConflictDetector,
    find_group_conflict,
    find_participant_conflicts,
    find_room_conflicts,
    find_student_conflicts,
    find_teacher_conflicts,
    sessions_overlap,
)

__all__ = [
    # Hours
    "parse_time",
    "parse_time_minutes",
    "resolve_branch_hours",
    # Generator
    "generate_for_definition",
    "generate_sessions",
    "legacy_slots",
    "normalize_weekdays",
    "validate_slots",
    # Holidays
    "HolidayProvider",
    "HolidayShift",
    "HolidayShiftResult",
    "MyHoraHolidayProvider",
    "StaticHolidayProvider",
    "reschedule",
    "shift_holidays",
    # Reindex
    "reindex",
    "week_number_for",
    # Conflicts
    "ConflictCheckStats",
    "ConflictDetector",
    "find_group_conflict",
    "find_participant_conflicts",
    "find_room_conflicts",
    "find_student_conflicts",
    "find_teacher_conflicts",
    "sessions_overlap",
]
