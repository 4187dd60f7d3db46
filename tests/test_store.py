"""Tests for the in-memory session store and directory."""

from __future__ import annotations

import datetime as dt

import pytest

from planner.data.models import (
    CandidateSession,
    ScheduleDefinition,
    ScheduleStatus,
    ScheduleType,
    SessionStatus,
)
from planner.data.store import SessionQuery

JANUARY = dict(start_date=dt.date(2025, 1, 1), end_date=dt.date(2025, 1, 31))


def candidate(day: int, number: int) -> CandidateSession:
    return CandidateSession(
        session_number=number,
        date=dt.date(2025, 1, day),
        start_time=dt.time(9, 0),
        end_time=dt.time(10, 0),
    )


class TestDirectory:
    """Tests for Directory lookups."""

    def test_canonical_teacher_id(self, store):
        directory = store.directory
        assert directory.canonical_teacher_id(100) == 100
        assert directory.canonical_teacher_id(5) == 101  # legacy profile id
        assert directory.canonical_teacher_id(999) == 999
        assert directory.canonical_teacher_id(None) is None

    def test_branch_for_explicit(self, store):
        definition = ScheduleDefinition(
            start_date=dt.date(2025, 1, 6), total_hours=2, hours_per_session=1, branch_id=2,
        )
        assert store.directory.branch_for(definition).id == 2

    def test_branch_for_via_room(self, store):
        definition = ScheduleDefinition(
            start_date=dt.date(2025, 1, 6), total_hours=2, hours_per_session=1, default_room_id=20,
        )
        assert store.directory.branch_for(definition).id == 2

    def test_branch_for_via_group(self, store):
        definition = ScheduleDefinition(
            start_date=dt.date(2025, 1, 6), total_hours=2, hours_per_session=1, group_id=1,
        )
        assert store.directory.branch_for(definition).id == 1

    def test_branch_for_unknown(self, store):
        definition = ScheduleDefinition(start_date=dt.date(2025, 1, 6), total_hours=2, hours_per_session=1)
        assert store.directory.branch_for(definition) is None

    def test_names(self, store):
        assert store.directory.room_name(10) == "Room A"
        assert store.directory.room_name(None) == ""
        assert store.directory.user_name(100) == "kru_an"
        assert store.directory.user_name(999) == ""


class TestFindSessions:
    """Tests for find_sessions filtering."""

    def test_date_window(self, store, add_committed):
        add_committed([
            ("2024-12-31", "09:00", "10:00"),
            ("2025-01-06", "09:00", "10:00"),
            ("2025-02-01", "09:00", "10:00"),
        ], default_room_id=10)

        found = store.find_sessions(SessionQuery(**JANUARY))
        assert [s.date for s in found] == [dt.date(2025, 1, 6)]

    def test_inactive_schedules_and_sessions_skipped(self, store, add_committed):
        add_committed([("2025-01-06", "09:00", "10:00")], status=ScheduleStatus.CANCELLED)
        add_committed([("2025-01-07", "09:00", "10:00")], status=ScheduleStatus.PAUSED)
        add_committed([("2025-01-08", "09:00", "10:00")], session_status=SessionStatus.CANCELLED)
        add_committed([("2025-01-09", "09:00", "10:00")], session_status=SessionStatus.NO_SHOW)
        add_committed([("2025-01-10", "09:00", "10:00")], status=ScheduleStatus.SCHEDULED)

        found = store.find_sessions(SessionQuery(**JANUARY))
        assert [s.date.day for s in found] == [10]

    def test_exclude_schedule(self, store, add_committed):
        first = add_committed([("2025-01-06", "09:00", "10:00")])
        add_committed([("2025-01-07", "09:00", "10:00")])

        found = store.find_sessions(SessionQuery(**JANUARY, exclude_schedule_id=first.id))
        assert [s.date.day for s in found] == [7]

    def test_room_falls_back_to_schedule_default(self, store, add_committed):
        add_committed([("2025-01-06", "09:00", "10:00")], default_room_id=10)
        add_committed([("2025-01-07", "09:00", "10:00")], default_room_id=11, room_id=10)
        add_committed([("2025-01-08", "09:00", "10:00")], default_room_id=10, room_id=11)

        found = store.find_sessions(SessionQuery(**JANUARY, room_id=10))
        assert [s.date.day for s in found] == [6, 7]

    def test_teacher_ids_canonicalized(self, store, add_committed):
        add_committed([("2025-01-06", "09:00", "10:00")], default_teacher_id=5)
        add_committed([("2025-01-07", "09:00", "10:00")], teacher_id=101)

        found = store.find_sessions(SessionQuery(**JANUARY, teacher_id=101))
        assert [s.date.day for s in found] == [6, 7]
        assert all(s.effective_teacher_id == 101 for s in found)

    def test_participants_and_students(self, store, add_committed):
        add_committed(
            [("2025-01-06", "09:00", "10:00")],
            schedule_type=ScheduleType.MEETING,
            participant_user_ids=[200],
        )
        add_committed([("2025-01-07", "09:00", "10:00")], group_id=3)

        by_user = store.find_sessions(SessionQuery(**JANUARY, user_ids=frozenset({200})))
        by_student = store.find_sessions(SessionQuery(**JANUARY, student_ids=frozenset({500})))

        assert [s.date.day for s in by_user] == [6]
        assert [s.date.day for s in by_student] == [7]
        assert by_student[0].student_ids == (500,)

    def test_any_dimension_matches(self, store, add_committed):
        add_committed([("2025-01-06", "09:00", "10:00")], default_room_id=10)
        add_committed([("2025-01-07", "09:00", "10:00")], default_teacher_id=100)
        add_committed([("2025-01-08", "09:00", "10:00")], default_room_id=11)

        query = SessionQuery(**JANUARY, room_id=10, teacher_id=100)
        assert [s.date.day for s in store.find_sessions(query)] == [6, 7]

    def test_results_ordered(self, store, add_committed):
        add_committed([("2025-01-08", "09:00", "10:00"), ("2025-01-06", "14:00", "15:00")])
        add_committed([("2025-01-06", "09:00", "10:00")])

        found = store.find_sessions(SessionQuery(**JANUARY))
        assert [(s.date.day, s.start_time.hour) for s in found] == [(6, 9), (6, 14), (8, 9)]


class TestClassSchedules:
    """Tests for find_active_class_schedules."""

    def test_filters(self, store, add_committed):
        active = add_committed([], group_id=1)
        add_committed([], group_id=1, status=ScheduleStatus.COMPLETED)
        add_committed([], group_id=1, schedule_type=ScheduleType.MEETING)
        add_committed([], group_id=2)

        assert [s.id for s in store.find_active_class_schedules(1)] == [active.id]
        assert store.find_active_class_schedules(1, exclude_schedule_id=active.id) == []


class TestWrites:
    """Tests for insert_schedule and transaction."""

    def test_insert_schedule(self, store):
        definition = ScheduleDefinition(
            schedule_name="A1 Term 1",
            start_date=dt.date(2025, 1, 6),
            total_hours=2,
            hours_per_session=1,
            group_id=1,
            default_room_id=10,
        )
        record = store.insert_schedule(definition, [candidate(6, 1), candidate(13, 2)], created_by_user_id=102)

        assert record.id == 1
        assert record.status == ScheduleStatus.ASSIGNED
        assert record.estimated_end_date == dt.date(2025, 1, 13)
        assert record.created_by_user_id == 102
        assert [s.session_number for s in store.snapshot.sessions] == [1, 2]
        assert {s.schedule_id for s in store.snapshot.sessions} == {record.id}

    def test_ids_continue(self, store, add_committed):
        add_committed([("2025-01-06", "09:00", "10:00")])
        definition = ScheduleDefinition(start_date=dt.date(2025, 1, 6), total_hours=1, hours_per_session=1)

        record = store.insert_schedule(definition, [candidate(20, 1)])

        assert record.id == 2
        assert store.snapshot.sessions[-1].id == 2

    def test_transaction_rolls_back(self, store):
        definition = ScheduleDefinition(start_date=dt.date(2025, 1, 6), total_hours=1, hours_per_session=1)

        with pytest.raises(RuntimeError):
            with store.transaction():
                store.insert_schedule(definition, [candidate(6, 1)])
                raise RuntimeError("boom")

        assert store.snapshot.schedules == []
        assert store.snapshot.sessions == []

    def test_transaction_keeps_writes(self, store):
        definition = ScheduleDefinition(start_date=dt.date(2025, 1, 6), total_hours=1, hours_per_session=1)

        with store.transaction():
            store.insert_schedule(definition, [candidate(6, 1)])

        assert len(store.snapshot.schedules) == 1
