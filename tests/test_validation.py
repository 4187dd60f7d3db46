"""Tests for structural and domain validation."""

from __future__ import annotations

import datetime as dt

import pytest

from planner.config import PlannerConfig
from planner.data.models import Branch, ScheduleDefinition, ScheduleType, SessionSlot
from planner.data.store import InMemorySessionStore
from planner.errors import DomainValidationError, StructuralValidationError
from planner.validation import (
    coerce_definition,
    raise_for_issues,
    raise_for_structure,
    validate_domain,
    validate_structure,
)


def make_definition(**overrides) -> ScheduleDefinition:
    fields = dict(
        schedule_name="A1 Term 1",
        start_date=dt.date(2025, 1, 6),
        total_hours=8,
        hours_per_session=2,
        session_per_week=2,
        group_id=1,
        default_room_id=10,
        default_teacher_id=100,
        session_slots=[SessionSlot(weekday=1, start_hour=9), SessionSlot(weekday=3, start_hour=9)],
    )
    fields.update(overrides)
    return ScheduleDefinition(**fields)


def codes(issues) -> list[str]:
    return [issue.code for issue in issues]


class TestCoerceDefinition:
    """Tests for coerce_definition."""

    def test_passes_models_through(self):
        definition = make_definition()
        assert coerce_definition(definition) == (definition, [])

    def test_valid_mapping(self):
        parsed, issues = coerce_definition({
            "start_date": "2025-01-06", "total_hours": 4, "hours_per_session": 2,
        })
        assert parsed.total_sessions == 2
        assert issues == []

    def test_missing_and_invalid_fields(self):
        parsed, issues = coerce_definition({"total_hours": "many", "hours_per_session": 2})

        assert parsed is None
        assert sorted(codes(issues)) == ["invalid_field", "missing_field"]
        assert all(issue.fatal for issue in issues)
        missing = next(i for i in issues if i.code == "missing_field")
        assert missing.details["field"] == "start_date"


class TestValidateStructure:
    """Tests for validate_structure."""

    def test_valid_definition(self):
        assert validate_structure(make_definition()) == []

    def test_hours_not_divisible(self):
        issues = validate_structure(make_definition(total_hours=9))
        assert codes(issues) == ["hours_not_divisible"]
        assert issues[0].fatal

    def test_end_before_start(self):
        issues = validate_structure(make_definition(estimated_end_date=dt.date(2025, 1, 1)))
        assert codes(issues) == ["invalid_date_range"]

    def test_too_many_sessions(self):
        issues = validate_structure(make_definition(total_hours=40), PlannerConfig(max_sessions=10))
        assert codes(issues) == ["too_many_sessions"]
        assert issues[0].details == {"requested": 20, "limit": 10}

    def test_slot_count_mismatch(self):
        issues = validate_structure(make_definition(session_per_week=3))
        assert codes(issues) == ["slot_count_mismatch"]

    def test_duplicate_slot_weekday(self):
        slots = [SessionSlot(weekday=1, start_hour=9), SessionSlot(weekday=1, start_hour=14)]
        issues = validate_structure(make_definition(session_slots=slots))
        assert codes(issues) == ["duplicate_slot_weekday"]
        assert "Monday" in issues[0].message

    def test_needs_slots_or_start_time(self):
        issues = validate_structure(make_definition(session_slots=[], session_per_week=1))
        assert codes(issues) == ["missing_field"]

    def test_bad_legacy_start_time(self):
        issues = validate_structure(make_definition(session_slots=[], session_start_time="nine"))
        assert codes(issues) == ["invalid_field"]
        assert issues[0].details["field"] == "session_start_time"

    def test_class_requires_group(self):
        issues = validate_structure(make_definition(group_id=None))
        assert codes(issues) == ["missing_field"]
        assert issues[0].details["field"] == "group_id"

    def test_meeting_without_group(self):
        definition = make_definition(group_id=None, schedule_type=ScheduleType.MEETING, participant_user_ids=[200])
        assert validate_structure(definition) == []

    @pytest.mark.parametrize("schedule_type", [ScheduleType.MEETING, ScheduleType.EVENT, ScheduleType.APPOINTMENT])
    def test_non_class_requires_participants(self, schedule_type):
        issues = validate_structure(make_definition(group_id=None, schedule_type=schedule_type))

        assert codes(issues) == ["missing_field"]
        assert issues[0].fatal
        assert issues[0].details["field"] == "participant_user_ids"

    def test_legacy_pattern_warning(self):
        definition = make_definition(
            session_slots=[], session_start_time="09:00", recurring_pattern="monthly",
        )
        issues = validate_structure(definition)
        assert codes(issues) == ["pattern_not_differentiated"]
        assert not issues[0].is_error

    def test_reports_every_problem(self):
        definition = make_definition(
            total_hours=9, estimated_end_date=dt.date(2024, 12, 1), group_id=None, session_per_week=1,
        )
        assert sorted(codes(validate_structure(definition))) == [
            "hours_not_divisible", "invalid_date_range", "missing_field", "slot_count_mismatch",
        ]


class TestValidateDomain:
    """Tests for validate_domain."""

    def test_valid(self, store):
        check = validate_domain(make_definition(), store.directory)
        assert check.issues == []
        assert str(check.branch_hours) == "08:00-21:00"
        assert check.group.id == 1
        assert check.teacher_id == 100

    def test_branch_hours_from_room(self, store):
        check = validate_domain(make_definition(default_room_id=20), store.directory)
        assert str(check.branch_hours) == "08:00-17:00"

    def test_unknown_branch_and_room_are_fatal(self, store):
        check = validate_domain(make_definition(branch_id=9, default_room_id=99), store.directory)
        assert codes(check.issues) == ["branch_not_found", "room_not_found"]
        assert all(issue.fatal for issue in check.issues)
        assert check.branch_hours is None

    def test_invalid_branch_hours(self, snapshot):
        snapshot.branches[1] = Branch(id=2, name="Silom", open_time="18:00", close_time="09:00")
        store = InMemorySessionStore(snapshot)

        check = validate_domain(make_definition(default_room_id=20), store.directory)

        assert codes(check.issues) == ["invalid_branch_hours"]
        assert check.issues[0].fatal

    def test_group_not_found(self, store):
        check = validate_domain(make_definition(group_id=42), store.directory)
        assert codes(check.issues) == ["group_not_found"]
        assert not check.issues[0].fatal

    def test_no_eligible_members(self, store):
        check = validate_domain(make_definition(group_id=2), store.directory)
        assert codes(check.issues) == ["no_eligible_members"]
        assert not check.issues[0].fatal

    @pytest.mark.parametrize("teacher_id,expected", [
        (100, []),
        (102, []),  # admin
        (5, []),  # legacy profile of user 101
        (200, ["teacher_not_authorized"]),  # student
        (999, ["teacher_not_authorized"]),
    ])
    def test_teacher_role(self, store, teacher_id, expected):
        check = validate_domain(make_definition(default_teacher_id=teacher_id), store.directory)
        assert codes(check.issues) == expected

    def test_legacy_teacher_resolved(self, store):
        check = validate_domain(make_definition(default_teacher_id=5), store.directory)
        assert check.teacher_id == 101

    def test_unknown_participant(self, store):
        definition = make_definition(
            group_id=None, schedule_type=ScheduleType.MEETING, participant_user_ids=[200, 99999, 201],
        )
        check = validate_domain(definition, store.directory)

        assert codes(check.issues) == ["participant_not_found"]
        assert check.issues[0].details == {"user_id": 99999}
        assert not check.issues[0].fatal

    def test_known_participants(self, store):
        definition = make_definition(
            group_id=None, schedule_type=ScheduleType.EVENT, participant_user_ids=[200, 201],
        )
        assert validate_domain(definition, store.directory).issues == []


class TestRaising:
    """Tests for raise_for_issues / raise_for_structure."""

    def test_warnings_do_not_raise(self):
        definition = make_definition(session_slots=[], session_start_time="09:00", recurring_pattern="daily")
        assert raise_for_structure(definition) == definition

    def test_joins_messages(self, store):
        check = validate_domain(make_definition(group_id=2, default_teacher_id=200), store.directory)

        with pytest.raises(DomainValidationError) as exc:
            raise_for_issues(check.issues, DomainValidationError)

        assert exc.value.code == "no_eligible_members"
        assert "; " in exc.value.message
        assert exc.value.details["issues"] == ["no_eligible_members", "teacher_not_authorized"]

    def test_raw_mapping(self):
        with pytest.raises(StructuralValidationError) as exc:
            raise_for_structure({"total_hours": 4, "hours_per_session": 2})
        assert exc.value.code == "missing_field"

    def test_structure_error(self):
        with pytest.raises(StructuralValidationError, match="multiple of"):
            raise_for_structure(make_definition(total_hours=9))
