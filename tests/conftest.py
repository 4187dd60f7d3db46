"""Shared fixtures: a small branch directory and helpers to seed committed schedules."""

from __future__ import annotations

import datetime as dt
from typing import Callable, Optional

import pytest

from planner.data.models import (
    Branch,
    Group,
    GroupMember,
    PaymentStatus,
    Room,
    ScheduleRecord,
    ScheduleStatus,
    ScheduleType,
    SessionRecord,
    SessionStatus,
    StoreSnapshot,
    TeacherProfile,
    User,
    UserRole,
)
from planner.data.store import InMemorySessionStore


@pytest.fixture
def snapshot() -> StoreSnapshot:
    """
    Directory without any committed schedules.

    - Branch 1 (08:00-21:00) with rooms 10 and 11; branch 2 (08:00-17:00) with room 20
    - Teachers 100 and 101 (101 also has legacy profile id 5), admin 102, student user 200
    - Group 1: students 500 (deposit) and 501 (fully paid)
    - Group 2: student 502 (pending payment only)
    - Group 3: student 500 (fully paid), sharing a student with group 1
    """
    return StoreSnapshot(
        branches=[
            Branch(id=1, name="Sukhumvit", open_time="08:00", close_time="21:00"),
            Branch(id=2, name="Silom", open_time="08:00", close_time="17:00"),
        ],
        rooms=[
            Room(id=10, name="Room A", branch_id=1),
            Room(id=11, name="Room B", branch_id=1),
            Room(id=20, name="Silom 1", branch_id=2),
        ],
        users=[
            User(id=100, username="kru_an", role=UserRole.TEACHER, branch_id=1),
            User(id=101, username="kru_ben", role=UserRole.TEACHER, branch_id=1),
            User(id=102, username="admin", role=UserRole.ADMIN, branch_id=1),
            User(id=200, username="somchai", role=UserRole.STUDENT),
            User(id=201, username="malee", role=UserRole.STUDENT),
        ],
        teachers=[
            TeacherProfile(id=5, user_id=101, name="Ben"),
        ],
        groups=[
            Group(id=1, name="A1 Morning", branch_id=1, members=[
                GroupMember(student_id=500, payment_status=PaymentStatus.DEPOSIT_PAID),
                GroupMember(student_id=501, payment_status=PaymentStatus.FULLY_PAID),
            ]),
            Group(id=2, name="B1 Evening", branch_id=1, members=[
                GroupMember(student_id=502, payment_status=PaymentStatus.PENDING),
            ]),
            Group(id=3, name="C1 Weekend", branch_id=1, members=[
                GroupMember(student_id=500, payment_status=PaymentStatus.FULLY_PAID),
            ]),
        ],
    )


@pytest.fixture
def store(snapshot) -> InMemorySessionStore:
    return InMemorySessionStore(snapshot)


@pytest.fixture
def add_committed(store) -> Callable[..., ScheduleRecord]:
    """
    Seed a committed schedule with one session per (date, start, end) window.

    Usage:
        add_committed([("2025-01-06", "09:00", "10:00")], default_room_id=10)
    """

    def _add(
        windows: list[tuple[str, str, str]],
        schedule_type: ScheduleType = ScheduleType.CLASS,
        status: ScheduleStatus = ScheduleStatus.ASSIGNED,
        session_status: SessionStatus = SessionStatus.SCHEDULED,
        room_id: Optional[int] = None,
        teacher_id: Optional[int] = None,
        **schedule_fields,
    ) -> ScheduleRecord:
        schedule_id = max((s.id for s in store.snapshot.schedules), default=0) + 1
        next_id = max((s.id for s in store.snapshot.sessions), default=0) + 1
        schedule = ScheduleRecord(
            id=schedule_id,
            schedule_name=schedule_fields.pop("schedule_name", f"Existing {schedule_id}"),
            schedule_type=schedule_type,
            status=status,
            **schedule_fields,
        )
        rows = [
            SessionRecord(
                id=next_id + offset,
                schedule_id=schedule_id,
                session_date=dt.date.fromisoformat(day),
                start_time=dt.time.fromisoformat(start),
                end_time=dt.time.fromisoformat(end),
                session_number=offset + 1,
                status=session_status,
                room_id=room_id,
                assigned_teacher_id=teacher_id,
            )
            for offset, (day, start, end) in enumerate(windows)
        ]
        store.snapshot.schedules = [*store.snapshot.schedules, schedule]
        store.snapshot.sessions = [*store.snapshot.sessions, *rows]
        return schedule

    return _add
