"""Tests for CLI module."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from planner.cli import app
from planner.data.loader import load_store, save_store


runner = CliRunner()

# INFO logs go to stderr; keep them out of captured JSON
QUIET = {"PLANNER_LOG_LEVEL": "WARNING"}


def invoke(args: list[str]):
    return runner.invoke(app, [str(arg) for arg in args], env=QUIET)


@pytest.fixture
def definition_data() -> dict:
    """Class definition as a client would send it (camelCase)."""
    return {
        "scheduleName": "A1 Term 1",
        "scheduleType": "class",
        "startDate": "2025-01-06",
        "totalHours": 8,
        "hoursPerSession": 2,
        "sessionPerWeek": 2,
        "groupId": 1,
        "defaultRoomId": 10,
        "defaultTeacherId": 100,
        "sessionSlots": [
            {"weekday": 1, "startHour": 9},
            {"weekday": 3, "startHour": 9},
        ],
    }


@pytest.fixture
def definition_file(definition_data, tmp_path) -> Path:
    """Create a temporary definition file."""
    filepath = tmp_path / "definition.json"
    filepath.write_text(json.dumps(definition_data))
    return filepath


@pytest.fixture
def store_file(snapshot, tmp_path) -> Path:
    """Write the shared directory snapshot to a store file."""
    filepath = tmp_path / "store.json"
    save_store(snapshot, filepath)
    return filepath


@pytest.fixture
def holidays_file(tmp_path) -> Path:
    filepath = tmp_path / "holidays.json"
    filepath.write_text(json.dumps({"2025-01-08": "Substitution Day"}))
    return filepath


class TestHelpCommand:
    """Tests for help output."""

    def test_main_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("preview", "generate", "commit", "holidays"):
            assert command in result.stdout

    @pytest.mark.parametrize("command", ["preview", "generate", "commit", "holidays"])
    def test_command_help(self, command):
        result = runner.invoke(app, [command, "--help"])
        assert result.exit_code == 0


class TestPreviewCommand:
    """Tests for the preview command."""

    def test_preview_json(self, definition_file, store_file):
        result = invoke(["preview", definition_file, "--store", store_file, "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["canCreate"] is True
        assert data["totalSessions"] == 4
        assert data["computedEndDate"] == "2025-01-15"

    def test_preview_console(self, definition_file, store_file):
        result = invoke(["preview", definition_file, "--store", store_file])

        assert result.exit_code == 0
        assert "CAN CREATE" in result.stdout

    def test_preview_with_holidays(self, definition_file, store_file, holidays_file):
        result = invoke(["preview", definition_file, "-s", store_file, "-H", holidays_file, "--json"])

        data = json.loads(result.stdout)
        assert data["computedEndDate"] == "2025-01-20"
        assert data["holidayImpacts"][0]["holidayName"] == "Substitution Day"

    def test_preview_blocked(self, definition_data, tmp_path, store_file):
        definition_data["groupId"] = 2
        path = tmp_path / "unpaid.json"
        path.write_text(json.dumps(definition_data))

        result = invoke(["preview", path, "--store", store_file, "--json"])

        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert [issue["code"] for issue in data["issues"]] == ["no_eligible_members"]

    def test_preview_invalid_definition(self, tmp_path, store_file):
        path = tmp_path / "broken.json"
        path.write_text(json.dumps({"totalHours": 8}))

        result = invoke(["preview", path, "--store", store_file, "--json"])

        assert result.exit_code == 1
        assert json.loads(result.stdout)["stageReached"] == "validating_structure"

    def test_preview_invalid_json(self, tmp_path, store_file):
        path = tmp_path / "broken.json"
        path.write_text("not valid json {")

        result = invoke(["preview", path, "--store", store_file])

        assert result.exit_code == 2
        assert "Invalid JSON" in result.stdout

    def test_preview_missing_store(self, definition_file, tmp_path):
        result = invoke(["preview", definition_file, "--store", tmp_path / "missing.json"])

        assert result.exit_code == 2
        assert "Store file not found" in result.stdout

    def test_preview_invalid_store(self, definition_file, tmp_path):
        path = tmp_path / "store.json"
        path.write_text(json.dumps({"rooms": [{"id": 1, "branchId": 9}]}))

        result = invoke(["preview", definition_file, "--store", path])

        assert result.exit_code == 2
        assert "unknown branch" in result.stdout


    def test_preview_store_not_an_object(self, definition_file, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("[]")

        result = invoke(["preview", definition_file, "--store", path])

        assert result.exit_code == 2
        assert "must be an object" in result.stdout


class TestGenerateCommand:
    """Tests for the generate command."""

    def test_generate_json(self, definition_file):
        result = invoke(["generate", definition_file, "--json"])

        assert result.exit_code == 0
        rows = json.loads(result.stdout)
        assert [row["date"] for row in rows] == ["2025-01-06", "2025-01-08", "2025-01-13", "2025-01-15"]
        assert rows[0]["startTime"] == "09:00"

    def test_generate_with_holidays(self, definition_file, holidays_file):
        result = invoke(["generate", definition_file, "--holidays", holidays_file, "--json"])

        rows = json.loads(result.stdout)
        assert rows[-1]["date"] == "2025-01-20"
        assert [row["sessionNumber"] for row in rows] == [1, 2, 3, 4]

    def test_generate_table(self, definition_file):
        result = invoke(["generate", definition_file])
        assert result.exit_code == 0
        assert "2025-01-06" in result.stdout

    def test_outside_branch_hours(self, definition_file):
        result = invoke(["generate", definition_file, "--close", "10:00"])

        assert result.exit_code == 1
        assert "GenerationError" in result.stdout

    def test_bad_open_time(self, definition_file):
        result = invoke(["generate", definition_file, "--open", "soon"])
        assert result.exit_code == 2

    def test_invalid_definition(self, tmp_path):
        path = tmp_path / "definition.json"
        path.write_text(json.dumps({"totalHours": 8}))

        result = invoke(["generate", path])

        assert result.exit_code == 2
        assert "start_date" in result.stdout

    def test_missing_file(self, tmp_path):
        result = invoke(["generate", tmp_path / "missing.json"])
        assert result.exit_code == 2


class TestCommitCommand:
    """Tests for the commit command."""

    def test_commit_writes_store(self, definition_file, store_file):
        result = invoke(["commit", definition_file, "--store", store_file, "--created-by", "102"])

        assert result.exit_code == 0
        assert "Schedule 1 created" in result.stdout

        snapshot = load_store(store_file)
        assert len(snapshot.schedules) == 1
        assert snapshot.schedules[0].created_by_user_id == 102
        assert len(snapshot.sessions) == 4

    def test_second_commit_conflicts(self, definition_file, store_file):
        invoke(["commit", definition_file, "--store", store_file])
        before = store_file.read_text()

        result = invoke(["commit", definition_file, "--store", store_file])

        assert result.exit_code == 1
        assert "Conflicts" in result.stdout
        assert store_file.read_text() == before

    def test_domain_error(self, definition_data, tmp_path, store_file):
        definition_data["defaultTeacherId"] = 200
        path = tmp_path / "definition.json"
        path.write_text(json.dumps(definition_data))

        result = invoke(["commit", path, "--store", store_file])

        assert result.exit_code == 2
        assert "teaching role" in result.stdout
        assert load_store(store_file).schedules == []


class TestHolidaysCommand:
    """Tests for the holidays command."""

    def test_from_file(self, holidays_file):
        result = invoke(["holidays", "2025", "--file", holidays_file])

        assert result.exit_code == 0
        assert "2025-01-08" in result.stdout
        assert "Substitution Day" in result.stdout

    def test_other_year_filtered(self, holidays_file):
        result = invoke(["holidays", "2026", "--file", holidays_file])

        assert result.exit_code == 0
        assert "2025-01-08" not in result.stdout

    def test_end_before_start(self, holidays_file):
        result = invoke(["holidays", "2026", "2025", "--file", holidays_file])
        assert result.exit_code == 2
