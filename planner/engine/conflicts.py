"""
Conflict detection for candidate sessions.

This module checks candidate sessions against committed sessions for
double-booking of:
- Rooms (including sessions that book the room only through their
  schedule's default room)
- Teachers (falling back to the schedule's default teacher)
- Participants (meeting/event attendee lists)
- Students (members of the group a class schedule teaches)

plus one coarse check: a group may hold only one active class schedule.

Two sessions conflict when they are on the same calendar day and their
half-open time windows overlap.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Protocol, Sequence

from planner.data.models import CandidateSession, CommittedSession, ScheduleType, minutes_to_time
from planner.data.store import Directory, SessionQuery, SessionStore
from planner.log import get_logger
from planner.output.schema import ConflictDimension, ConflictEntry, ConflictReport, GroupConflict

logger = get_logger(__name__)


class _TimedSession(Protocol):
    date: dt.date
    start_time: dt.time
    end_time: dt.time


@dataclass
class ConflictCheckStats:
    """Statistics about the last detection run."""
    candidates: int = 0
    room_sessions_checked: int = 0
    teacher_sessions_checked: int = 0
    participant_sessions_checked: int = 0
    student_sessions_checked: int = 0
    group_schedules_checked: int = 0


def sessions_overlap(a: _TimedSession, b: _TimedSession) -> bool:
    """Same calendar day and overlapping half-open [start, end) windows."""
    return a.date == b.date and a.start_time < b.end_time and b.start_time < a.end_time


# =============================================================================
# Dimension Checks
# =============================================================================

def find_room_conflicts(
    store: SessionStore,
    candidates: Sequence[CandidateSession],
    room_id: int,
    exclude_schedule_id: Optional[int] = None,
    room_name: str = "",
) -> tuple[list[ConflictEntry], int]:
    """
    Find committed sessions booking ``room_id`` at the same time as a candidate.

    Committed sessions without a room count as booking their schedule's
    default room.

    Returns:
        Tuple of (conflict entries, committed sessions examined)
    """
    query = _query_for(candidates, exclude_schedule_id, room_id=room_id)
    existing = store.find_sessions(query)
    entries = _collect(
        candidates, existing, ConflictDimension.ROOM,
        entities=lambda s: [room_id] if s.effective_room_id == room_id else [],
        names={room_id: room_name},
    )
    return entries, len(existing)


def find_teacher_conflicts(
    store: SessionStore,
    candidates: Sequence[CandidateSession],
    teacher_id: int,
    exclude_schedule_id: Optional[int] = None,
    teacher_name: str = "",
) -> tuple[list[ConflictEntry], int]:
    """
    Find committed sessions taught by ``teacher_id`` at the same time as a candidate.

    ``teacher_id`` must already be a canonical user id.
    """
    query = _query_for(candidates, exclude_schedule_id, teacher_id=teacher_id)
    existing = store.find_sessions(query)
    entries = _collect(
        candidates, existing, ConflictDimension.TEACHER,
        entities=lambda s: [teacher_id] if s.effective_teacher_id == teacher_id else [],
        names={teacher_id: teacher_name},
    )
    return entries, len(existing)


def find_participant_conflicts(
    store: SessionStore,
    candidates: Sequence[CandidateSession],
    user_ids: Iterable[int],
    exclude_schedule_id: Optional[int] = None,
    names: Optional[dict[int, str]] = None,
) -> tuple[list[ConflictEntry], int]:
    """Find committed sessions whose schedule lists any of ``user_ids`` as participant."""
    wanted = frozenset(user_ids)
    if not wanted:
        return [], 0
    query = _query_for(candidates, exclude_schedule_id, user_ids=wanted)
    existing = store.find_sessions(query)
    entries = _collect(
        candidates, existing, ConflictDimension.PARTICIPANT,
        entities=lambda s: sorted(wanted.intersection(s.participant_user_ids)),
        names=names or {},
    )
    return entries, len(existing)


def find_student_conflicts(
    store: SessionStore,
    candidates: Sequence[CandidateSession],
    student_ids: Iterable[int],
    exclude_schedule_id: Optional[int] = None,
    names: Optional[dict[int, str]] = None,
) -> tuple[list[ConflictEntry], int]:
    """Find committed class sessions whose group contains any of ``student_ids``."""
    wanted = frozenset(student_ids)
    if not wanted:
        return [], 0
    query = _query_for(candidates, exclude_schedule_id, student_ids=wanted)
    existing = store.find_sessions(query)
    entries = _collect(
        candidates, existing, ConflictDimension.STUDENT,
        entities=lambda s: sorted(wanted.intersection(s.student_ids)),
        names=names or {},
    )
    return entries, len(existing)


def find_group_conflict(
    store: SessionStore,
    group_id: int,
    exclude_schedule_id: Optional[int] = None,
    group_name: str = "",
) -> tuple[Optional[GroupConflict], int]:
    """
    Check whether a group already has an active class schedule.

    Independent of dates: holding the group at all is the conflict.
    """
    schedules = store.find_active_class_schedules(group_id, exclude_schedule_id)
    if not schedules:
        return None, 0

    existing = min(schedules, key=lambda s: s.id)
    conflict = GroupConflict(
        groupId=group_id,
        groupName=group_name,
        existingScheduleId=existing.id,
        existingScheduleName=existing.schedule_name,
        existingStatus=existing.status.value,
    )
    return conflict, len(schedules)


# =============================================================================
# Detector
# =============================================================================

class ConflictDetector:
    """
    Runs every conflict check for a candidate session list.

    Teacher ids are reconciled through the directory before comparison, so
    callers may pass a legacy teacher-profile id.
    """

    def __init__(self, store: SessionStore, directory: Optional[Directory] = None):
        self.store = store
        self.directory = directory
        self.stats = ConflictCheckStats()

    def detect(
        self,
        candidates: Sequence[CandidateSession],
        *,
        room_id: Optional[int] = None,
        teacher_id: Optional[int] = None,
        participant_user_ids: Iterable[int] = (),
        student_ids: Iterable[int] = (),
        group_id: Optional[int] = None,
        schedule_type: ScheduleType = ScheduleType.CLASS,
        exclude_schedule_id: Optional[int] = None,
    ) -> ConflictReport:
        """
        Check candidates on every dimension that applies.

        Args:
            candidates: Sessions to be created
            room_id: Room the candidates book
            teacher_id: Teacher of the candidates (user or legacy profile id)
            participant_user_ids: Attendees of a non-class schedule
            student_ids: Members of the class schedule's group
            group_id: Group of a class schedule
            schedule_type: Type of the schedule being created
            exclude_schedule_id: Schedule being edited, ignored as a source
                of conflicts

        Returns:
            ConflictReport; dimensions without conflicts are empty
        """
        self.stats = ConflictCheckStats(candidates=len(candidates))
        report = ConflictReport()

        if group_id is not None and schedule_type == ScheduleType.CLASS:
            report.group_conflict, self.stats.group_schedules_checked = find_group_conflict(
                self.store, group_id, exclude_schedule_id, self._group_name(group_id),
            )

        if not candidates:
            return report

        if room_id is not None:
            report.room_conflicts, self.stats.room_sessions_checked = find_room_conflicts(
                self.store, candidates, room_id, exclude_schedule_id, self._room_name(room_id),
            )

        canonical_teacher = self._canonical_teacher(teacher_id)
        if canonical_teacher is not None:
            report.teacher_conflicts, self.stats.teacher_sessions_checked = find_teacher_conflicts(
                self.store, candidates, canonical_teacher, exclude_schedule_id,
                self._user_name(canonical_teacher),
            )

        participants = sorted(set(participant_user_ids))
        if participants:
            report.participant_conflicts, self.stats.participant_sessions_checked = find_participant_conflicts(
                self.store, candidates, participants, exclude_schedule_id,
                {user_id: self._user_name(user_id) for user_id in participants},
            )

        students = sorted(set(student_ids))
        if students:
            report.student_conflicts, self.stats.student_sessions_checked = find_student_conflicts(
                self.store, candidates, students, exclude_schedule_id,
                {student_id: self._student_name(student_id) for student_id in students},
            )

        logger.debug(
            "Conflict check: %d candidates, %d conflicts (%s)",
            len(candidates), report.total_conflicts, self.stats,
        )
        return report

    def _canonical_teacher(self, teacher_id: Optional[int]) -> Optional[int]:
        if self.directory is None:
            return teacher_id
        return self.directory.canonical_teacher_id(teacher_id)

    def _room_name(self, room_id: int) -> str:
        return self.directory.room_name(room_id) if self.directory else ""

    def _user_name(self, user_id: int) -> str:
        return self.directory.user_name(user_id) if self.directory else ""

    def _student_name(self, student_id: int) -> str:
        return self.directory.student_name(student_id) if self.directory else ""

    def _group_name(self, group_id: int) -> str:
        if self.directory is None:
            return ""
        group = self.directory.get_group(group_id)
        return str(group) if group else ""


# =============================================================================
# Helper Functions
# =============================================================================

def _query_for(
    candidates: Sequence[CandidateSession],
    exclude_schedule_id: Optional[int],
    **dimension,
) -> SessionQuery:
    """Query covering the candidates' date range for one dimension."""
    dates = [c.date for c in candidates]
    return SessionQuery(
        start_date=min(dates),
        end_date=max(dates),
        exclude_schedule_id=exclude_schedule_id,
        **dimension,
    )


def _collect(
    candidates: Sequence[CandidateSession],
    existing: Sequence[CommittedSession],
    dimension: ConflictDimension,
    entities: Callable[[CommittedSession], list[int]],
    names: dict[int, str],
) -> list[ConflictEntry]:
    """
    Pair every candidate with every overlapping committed session.

    Args:
        candidates: Candidate sessions
        existing: Committed sessions returned by the store query
        dimension: Dimension being checked
        entities: Shared entity ids between the committed session and the
            candidate schedule
        names: Display names by entity id

    Returns:
        One entry per (entity, candidate, committed session) overlap, ordered
        by candidate then committed session
    """
    by_date: dict[dt.date, list[CommittedSession]] = {}
    for session in existing:
        by_date.setdefault(session.date, []).append(session)

    entries = []
    for candidate in sorted(candidates, key=lambda c: (c.sort_key, c.session_number)):
        for session in by_date.get(candidate.date, []):
            if not sessions_overlap(candidate, session):
                continue
            for entity_id in entities(session):
                entries.append(ConflictEntry(
                    dimension=dimension,
                    entityId=entity_id,
                    entityName=names.get(entity_id, ""),
                    sessionNumber=candidate.session_number,
                    sessionDate=candidate.date,
                    startTime=minutes_to_time(candidate.start_minutes),
                    endTime=minutes_to_time(candidate.end_minutes),
                    existingScheduleId=session.schedule_id,
                    existingScheduleName=session.schedule_name,
                    existingSessionId=session.session_id,
                    existingDate=session.date,
                    existingStartTime=minutes_to_time(session.start_minutes),
                    existingEndTime=minutes_to_time(session.end_minutes),
                ))
    return entries
