"""
Session generation.

Expands a schedule definition into concrete dated sessions.

Two modes:
- Slot mode: a weekly template of (weekday, start time) slots
- Legacy mode: one start time, on an explicit weekday list or every day

Generation walks forward from the start date one calendar day at a time and
emits a session for every template slot falling on that day, so the output is
strictly chronological. Every window is checked against branch hours before
anything is produced.
"""

from __future__ import annotations

import datetime as dt
from collections import defaultdict
from typing import Iterable, Optional, Sequence

from planner.config import PlannerConfig
from planner.data.models import (
    BranchHours,
    CandidateSession,
    ScheduleDefinition,
    SessionSlot,
    day_name,
    minutes_to_time,
    time_of,
    weekday_index,
)
from planner.errors import GenerationError
from planner.log import get_logger

from .hours import parse_time

logger = get_logger(__name__)

ALL_WEEKDAYS = tuple(range(7))


def normalize_weekdays(days: Iterable[int]) -> list[int]:
    """
    Normalize client weekday values to 0-6 (0=Sunday).

    7 is treated as Sunday, negatives clamp to Sunday and larger values wrap.
    Duplicates are dropped; order is Sunday-first.
    """
    normalized = set()
    for day in days:
        if day == 7:
            day = 0
        if day < 0:
            day = 0
        if day > 6:
            day = day % 7
        normalized.add(day)
    return sorted(normalized)


def legacy_slots(start_time: str, weekdays: Optional[Sequence[int]] = None) -> list[SessionSlot]:
    """
    Build a slot template from a single start time.

    Args:
        start_time: Start time string, e.g. "09:00"
        weekdays: Explicit weekdays; every day of the week when empty

    Raises:
        InvalidTimeFormat: If the start time cannot be parsed
    """
    hour, minute = parse_time(start_time)
    days = normalize_weekdays(weekdays) if weekdays else list(ALL_WEEKDAYS)
    return [SessionSlot(weekday=day, start_hour=hour, start_minute=minute) for day in days]


def validate_slots(slots: Sequence[SessionSlot], hours_per_session: int, branch_hours: BranchHours) -> None:
    """
    Check every slot window against branch hours.

    Raises:
        GenerationError: On the first slot outside operating hours
    """
    for slot in slots:
        if not 0 <= slot.weekday <= 6:
            raise GenerationError(f"invalid weekday {slot.weekday} provided for session slot")

        start_minutes = slot.start_minutes
        end_minutes = start_minutes + hours_per_session * 60
        if not branch_hours.contains(start_minutes, end_minutes):
            raise GenerationError(
                f"session starting at {minutes_to_time(start_minutes)} on {day_name(slot.weekday)} "
                f"is outside branch hours ({branch_hours})",
                code="outside_branch_hours",
                details={
                    "weekday": slot.weekday,
                    "start_time": minutes_to_time(start_minutes),
                    "end_minutes": end_minutes,
                    "open_minutes": branch_hours.open_minutes,
                    "close_minutes": branch_hours.close_minutes,
                },
            )


def generate_sessions(
    definition: ScheduleDefinition,
    total_sessions: int,
    hours_per_session: int,
    branch_hours: BranchHours,
    slots: Optional[Sequence[SessionSlot]] = None,
    start_time: Optional[str] = None,
    weekdays: Optional[Sequence[int]] = None,
    config: Optional[PlannerConfig] = None,
) -> list[CandidateSession]:
    """
    Generate candidate sessions for a definition.

    Args:
        definition: Schedule definition (start date, default room/teacher)
        total_sessions: Number of sessions to produce
        hours_per_session: Length of each session in hours
        branch_hours: Operating window every session must fit in
        slots: Weekly slot template (slot mode)
        start_time: Legacy single start time, used when ``slots`` is empty
        weekdays: Legacy explicit weekdays; every day when empty
        config: Planner configuration (lookahead guard)

    Returns:
        Chronological list of sessions numbered from 1

    Raises:
        GenerationError: If inputs are unusable, a slot is outside branch
            hours, or the requested count cannot be reached within the
            lookahead window
    """
    config = config or PlannerConfig()

    if total_sessions <= 0:
        raise GenerationError("total sessions must be greater than zero")
    if hours_per_session <= 0:
        raise GenerationError("hours per session must be greater than zero")

    if slots:
        template = list(slots)
    elif start_time:
        template = legacy_slots(start_time, weekdays)
    else:
        raise GenerationError("session slots or a session start time are required to generate sessions")

    validate_slots(template, hours_per_session, branch_hours)

    # Group slots by weekday, ordered by start time
    slots_by_day: dict[int, list[SessionSlot]] = defaultdict(list)
    for slot in template:
        slots_by_day[slot.weekday].append(slot)
    for day_slots in slots_by_day.values():
        day_slots.sort(key=lambda s: s.start_minutes)

    start_date = definition.start_date
    duration = hours_per_session * 60
    sessions: list[CandidateSession] = []
    current = start_date

    for _ in range(config.max_lookahead_days + 1):
        if len(sessions) >= total_sessions:
            break

        for slot in slots_by_day.get(weekday_index(current), []):
            if len(sessions) >= total_sessions:
                break
            start_minutes = slot.start_minutes
            weeks_from_start = (current - start_date).days // 7
            sessions.append(CandidateSession(
                session_number=len(sessions) + 1,
                week_number=weeks_from_start + 1,
                date=current,
                start_time=time_of(start_minutes),
                end_time=time_of(start_minutes + duration),
                room_id=definition.default_room_id,
                assigned_teacher_id=definition.default_teacher_id,
            ))

        current += dt.timedelta(days=1)

    if len(sessions) != total_sessions:
        raise GenerationError(
            f"unable to generate the requested number of sessions ({len(sessions)}/{total_sessions}) "
            f"within {config.max_lookahead_days} days",
            details={"generated": len(sessions), "requested": total_sessions},
        )

    logger.debug(
        "Generated %d sessions from %s to %s",
        len(sessions), sessions[0].date, sessions[-1].date,
    )
    return sessions


def generate_for_definition(
    definition: ScheduleDefinition,
    branch_hours: BranchHours,
    config: Optional[PlannerConfig] = None,
) -> list[CandidateSession]:
    """Generate sessions using the definition's own slots or legacy start time."""
    return generate_sessions(
        definition,
        total_sessions=definition.total_sessions,
        hours_per_session=definition.hours_per_session,
        branch_hours=branch_hours,
        slots=definition.session_slots,
        start_time=definition.session_start_time,
        weekdays=definition.custom_recurring_days,
        config=config,
    )
