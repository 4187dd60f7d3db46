"""
Session store and directory.

The conflict detector only talks to a ``SessionStore``; the preview and commit
orchestrators also read the ``Directory`` (branches, rooms, users, groups).
``InMemorySessionStore`` implements both over a ``StoreSnapshot`` and is what
the CLI and the tests use.
"""

from __future__ import annotations

import datetime as dt
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import ContextManager, Iterator, Optional, Protocol

from planner.log import get_logger

from .models import (
    ACTIVE_SCHEDULE_STATUSES,
    INACTIVE_SESSION_STATUSES,
    Branch,
    CandidateSession,
    CommittedSession,
    Group,
    Room,
    ScheduleDefinition,
    ScheduleRecord,
    ScheduleStatus,
    ScheduleType,
    SessionRecord,
    StoreSnapshot,
    TeacherProfile,
    User,
)

logger = get_logger(__name__)


# =============================================================================
# Query
# =============================================================================

@dataclass(frozen=True)
class SessionQuery:
    """
    Filter for committed sessions.

    Only sessions of active schedules (assigned/scheduled) that are not
    cancelled or no-show, inside [start_date, end_date], are returned. When
    one or more dimension filters are set, a session matches if any of them
    does.
    """
    start_date: dt.date
    end_date: dt.date
    exclude_schedule_id: Optional[int] = None
    room_id: Optional[int] = None
    teacher_id: Optional[int] = None
    user_ids: frozenset[int] = frozenset()
    student_ids: frozenset[int] = frozenset()

    @property
    def has_dimension(self) -> bool:
        return (
            self.room_id is not None
            or self.teacher_id is not None
            or bool(self.user_ids)
            or bool(self.student_ids)
        )

    def matches(self, session: CommittedSession) -> bool:
        """Whether a joined session satisfies every filter."""
        if session.schedule_status not in ACTIVE_SCHEDULE_STATUSES:
            return False
        if session.status in INACTIVE_SESSION_STATUSES:
            return False
        if self.exclude_schedule_id is not None and session.schedule_id == self.exclude_schedule_id:
            return False
        if not (self.start_date <= session.date <= self.end_date):
            return False
        if not self.has_dimension:
            return True

        if self.room_id is not None and session.effective_room_id == self.room_id:
            return True
        if self.teacher_id is not None and session.effective_teacher_id == self.teacher_id:
            return True
        if self.user_ids and self.user_ids.intersection(session.participant_user_ids):
            return True
        if self.student_ids and self.student_ids.intersection(session.student_ids):
            return True
        return False


class SessionStore(Protocol):
    """Read/write interface the engine needs from persistence."""

    def find_sessions(self, query: SessionQuery) -> list[CommittedSession]:
        ...

    def find_active_class_schedules(
        self, group_id: int, exclude_schedule_id: Optional[int] = None
    ) -> list[ScheduleRecord]:
        ...

    def transaction(self) -> ContextManager[None]:
        ...

    def insert_schedule(
        self,
        definition: ScheduleDefinition,
        sessions: list[CandidateSession],
        created_by_user_id: Optional[int] = None,
    ) -> ScheduleRecord:
        ...


# =============================================================================
# Directory
# =============================================================================

class Directory:
    """Read-only lookups over branches, rooms, users, teachers and groups."""

    def __init__(self, snapshot: StoreSnapshot):
        self._branches = {b.id: b for b in snapshot.branches}
        self._rooms = {r.id: r for r in snapshot.rooms}
        self._users = {u.id: u for u in snapshot.users}
        self._teacher_profiles = {t.id: t for t in snapshot.teachers}
        self._groups = {g.id: g for g in snapshot.groups}
        self._student_users = {
            m.student_id: m.user_id
            for g in snapshot.groups for m in g.members
            if m.user_id is not None
        }

    def get_branch(self, branch_id: Optional[int]) -> Optional[Branch]:
        return self._branches.get(branch_id) if branch_id is not None else None

    def get_room(self, room_id: Optional[int]) -> Optional[Room]:
        return self._rooms.get(room_id) if room_id is not None else None

    def get_user(self, user_id: Optional[int]) -> Optional[User]:
        return self._users.get(user_id) if user_id is not None else None

    def get_teacher_profile(self, profile_id: Optional[int]) -> Optional[TeacherProfile]:
        return self._teacher_profiles.get(profile_id) if profile_id is not None else None

    def get_group(self, group_id: Optional[int]) -> Optional[Group]:
        return self._groups.get(group_id) if group_id is not None else None

    def canonical_teacher_id(self, raw_id: Optional[int]) -> Optional[int]:
        """
        Map a stored teacher reference to a user account id.

        Older rows reference a teacher profile instead of a user. A user with
        the given id wins; otherwise a matching profile is resolved to its
        user; otherwise the id is returned unchanged.
        """
        if raw_id is None:
            return None
        if raw_id in self._users:
            return raw_id
        profile = self._teacher_profiles.get(raw_id)
        if profile is not None:
            return profile.user_id
        return raw_id

    def branch_for(self, definition: ScheduleDefinition) -> Optional[Branch]:
        """Branch of a definition: explicit, else via its room, else via its group."""
        if definition.branch_id is not None:
            return self.get_branch(definition.branch_id)
        room = self.get_room(definition.default_room_id)
        if room and room.branch_id is not None:
            return self.get_branch(room.branch_id)
        group = self.get_group(definition.group_id)
        if group and group.branch_id is not None:
            return self.get_branch(group.branch_id)
        return None

    def room_name(self, room_id: Optional[int]) -> str:
        room = self.get_room(room_id)
        return str(room) if room else ""

    def user_name(self, user_id: Optional[int]) -> str:
        user = self.get_user(user_id)
        return str(user) if user else ""

    def student_name(self, student_id: Optional[int]) -> str:
        """Name of a student through the user account linked on any group membership."""
        return self.user_name(self._student_users.get(student_id))


# =============================================================================
# In-memory Store
# =============================================================================

class InMemorySessionStore:
    """
    Session store over a ``StoreSnapshot``.

    A re-entrant lock guards every read and write, and ``transaction()`` holds
    it for the whole block, so a commit's detect-then-insert cannot interleave
    with another commit.
    """

    def __init__(self, snapshot: Optional[StoreSnapshot] = None):
        self.snapshot = snapshot if snapshot is not None else StoreSnapshot()
        self.directory = Directory(self.snapshot)
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def find_sessions(self, query: SessionQuery) -> list[CommittedSession]:
        """Committed sessions matching a query, ordered by date and start."""
        with self._lock:
            schedules = {s.id: s for s in self.snapshot.schedules}
            result = []
            for record in self.snapshot.sessions:
                schedule = schedules.get(record.schedule_id)
                if schedule is None:
                    continue
                joined = self._join(record, schedule)
                if query.matches(joined):
                    result.append(joined)

        result.sort(key=lambda s: (s.date, s.start_time, s.session_id))
        return result

    def find_active_class_schedules(
        self, group_id: int, exclude_schedule_id: Optional[int] = None
    ) -> list[ScheduleRecord]:
        """Active class schedules already holding a group."""
        with self._lock:
            return [
                s for s in self.snapshot.schedules
                if s.group_id == group_id
                and s.schedule_type == ScheduleType.CLASS
                and s.is_active
                and s.id != exclude_schedule_id
            ]

    def _join(self, record: SessionRecord, schedule: ScheduleRecord) -> CommittedSession:
        group = self.directory.get_group(schedule.group_id)
        return CommittedSession(
            session_id=record.id,
            schedule_id=schedule.id,
            schedule_name=schedule.schedule_name,
            schedule_type=schedule.schedule_type,
            schedule_status=schedule.status,
            status=record.status,
            date=record.session_date,
            start_time=record.start_time,
            end_time=record.end_time,
            room_id=record.room_id,
            default_room_id=schedule.default_room_id,
            assigned_teacher_id=self.directory.canonical_teacher_id(record.assigned_teacher_id),
            default_teacher_id=self.directory.canonical_teacher_id(schedule.default_teacher_id),
            group_id=schedule.group_id,
            participant_user_ids=tuple(schedule.participant_user_ids),
            student_ids=tuple(group.student_ids) if group else (),
        )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Hold the store lock; roll rows back if the block raises."""
        with self._lock:
            schedules = list(self.snapshot.schedules)
            sessions = list(self.snapshot.sessions)
            try:
                yield
            except BaseException:
                self.snapshot.schedules = schedules
                self.snapshot.sessions = sessions
                logger.info("Transaction rolled back")
                raise

    def insert_schedule(
        self,
        definition: ScheduleDefinition,
        sessions: list[CandidateSession],
        created_by_user_id: Optional[int] = None,
    ) -> ScheduleRecord:
        """Insert one schedule row and its session rows together."""
        with self._lock:
            schedule_id = max((s.id for s in self.snapshot.schedules), default=0) + 1
            next_session_id = max((s.id for s in self.snapshot.sessions), default=0) + 1

            end_date = max((s.date for s in sessions), default=definition.estimated_end_date)
            schedule = ScheduleRecord(
                id=schedule_id,
                schedule_name=definition.schedule_name,
                schedule_type=definition.schedule_type,
                status=ScheduleStatus.ASSIGNED,
                recurring_pattern=definition.recurring_pattern,
                group_id=definition.group_id,
                participant_user_ids=list(definition.participant_user_ids),
                default_teacher_id=definition.default_teacher_id,
                default_room_id=definition.default_room_id,
                start_date=definition.start_date,
                estimated_end_date=end_date,
                total_hours=definition.total_hours,
                hours_per_session=definition.hours_per_session,
                session_per_week=definition.session_per_week,
                auto_reschedule_holiday=definition.auto_reschedule_holiday,
                created_by_user_id=created_by_user_id,
                notes=definition.notes,
            )

            rows = [
                SessionRecord(
                    id=next_session_id + offset,
                    schedule_id=schedule_id,
                    session_date=session.date,
                    start_time=session.start_time,
                    end_time=session.end_time,
                    session_number=session.session_number,
                    week_number=session.week_number,
                    status=session.status,
                    room_id=session.room_id,
                    assigned_teacher_id=session.assigned_teacher_id,
                    notes=session.notes,
                )
                for offset, session in enumerate(sessions)
            ]

            self.snapshot.schedules = [*self.snapshot.schedules, schedule]
            self.snapshot.sessions = [*self.snapshot.sessions, *rows]

        logger.info("Inserted schedule %d with %d sessions", schedule_id, len(rows))
        return schedule
