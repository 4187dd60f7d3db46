"""Tests for time parsing and branch hours resolution."""

from __future__ import annotations

import pytest

from planner.config import PlannerConfig
from planner.data.models import Branch, BranchHours
from planner.engine.hours import parse_time, parse_time_minutes, resolve_branch_hours
from planner.errors import GenerationError, InvalidBranchHours, InvalidTimeFormat


class TestParseTime:
    """Tests for parse_time."""

    @pytest.mark.parametrize("value,expected", [
        ("08:30", (8, 30)),
        ("08:30:00", (8, 30)),
        ("09:15:00Z", (9, 15)),
        ("2007-11-30T00:00:00+07:00", (0, 0)),
        ("2007-11-30 13:45:00", (13, 45)),
        ("  17:05 ", (17, 5)),
    ])
    def test_accepted_formats(self, value, expected):
        assert parse_time(value) == expected

    def test_embedded_time_is_found(self):
        assert parse_time("starts at 7:45 sharp") == (7, 45)

    @pytest.mark.parametrize("value", ["invalid", "", "25:00", "12:75", "1230"])
    def test_rejects_unparseable(self, value):
        with pytest.raises(InvalidTimeFormat):
            parse_time(value)

    def test_invalid_time_is_a_generation_error(self):
        with pytest.raises(GenerationError):
            parse_time("invalid")

    def test_minutes(self):
        assert parse_time_minutes("16:30") == 990


class TestResolveBranchHours:
    """Tests for resolve_branch_hours."""

    def test_defaults_without_branch(self):
        hours = resolve_branch_hours(None)
        assert hours == BranchHours(open_minutes=480, close_minutes=1260)

    def test_defaults_when_one_time_missing(self):
        branch = Branch(id=1, open_time="09:00")
        hours = resolve_branch_hours(branch)
        assert (hours.open_minutes, hours.close_minutes) == (480, 1260)

    def test_configured_defaults(self):
        config = PlannerConfig(default_open_minutes=420, default_close_minutes=1320)
        hours = resolve_branch_hours(None, config)
        assert (hours.open_minutes, hours.close_minutes) == (420, 1320)

    def test_branch_times(self):
        branch = Branch(id=1, open_time="08:00", close_time="17:00:00")
        hours = resolve_branch_hours(branch)
        assert (hours.open_minutes, hours.close_minutes) == (480, 1020)

    def test_close_before_open(self):
        branch = Branch(id=1, open_time="17:00", close_time="08:00")
        with pytest.raises(InvalidBranchHours) as exc:
            resolve_branch_hours(branch)
        assert exc.value.code == "invalid_branch_hours"

    def test_unparseable_time(self):
        branch = Branch(id=1, open_time="morning", close_time="17:00")
        with pytest.raises(InvalidBranchHours):
            resolve_branch_hours(branch)

    def test_contains(self):
        hours = BranchHours(open_minutes=480, close_minutes=1020)
        assert hours.contains(480, 1020)
        assert not hours.contains(990, 1050)
        assert str(hours) == "08:00-17:00"
