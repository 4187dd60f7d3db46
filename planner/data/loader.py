"""Load and validate schedule definitions, store snapshots and holiday files."""

from __future__ import annotations

import datetime as dt
import json
import re
from pathlib import Path
from typing import Any, Union

from pydantic import ValidationError

from planner.engine.holidays import StaticHolidayProvider

from .models import ScheduleDefinition, StoreSnapshot


class DataValidationError(Exception):
    """Raised when input data fails validation."""
    pass


def load_definition(path: Union[str, Path]) -> ScheduleDefinition:
    """
    Load a schedule definition from a JSON file.

    Args:
        path: Path to the JSON file

    Returns:
        Validated ScheduleDefinition

    Raises:
        FileNotFoundError: If the file doesn't exist
        json.JSONDecodeError: If the file isn't valid JSON
        DataValidationError: If the definition fails validation
    """
    data = _read_json(path)
    try:
        return ScheduleDefinition.model_validate(convert_keys_to_snake_case(data))
    except ValidationError as e:
        raise DataValidationError(_format_validation_error(e)) from e


def read_definition_data(path: Union[str, Path]) -> dict:
    """Raw, snake_cased definition data; validation is left to the caller."""
    return convert_keys_to_snake_case(_read_json(path))


def load_store(path: Union[str, Path]) -> StoreSnapshot:
    """
    Load a store snapshot (directory plus committed schedules) from JSON.

    Raises:
        FileNotFoundError: If the file doesn't exist
        json.JSONDecodeError: If the file isn't valid JSON
        DataValidationError: If the data fails validation
    """
    data = convert_keys_to_snake_case(_read_json(path))
    validate_store_data(data)
    try:
        return StoreSnapshot.model_validate(data)
    except ValidationError as e:
        raise DataValidationError(_format_validation_error(e)) from e


def save_store(snapshot: StoreSnapshot, path: Union[str, Path]) -> None:
    """Write a store snapshot back to JSON."""
    path = Path(path)
    with open(path, "w") as f:
        f.write(snapshot.model_dump_json(indent=2))


def validate_store_data(data: dict) -> None:
    """
    Validate store snapshot structure and references.

    Args:
        data: Snapshot dictionary with snake_case keys

    Raises:
        DataValidationError: If validation fails
    """
    if not isinstance(data, dict):
        raise DataValidationError(f"Store data must be an object, got {type(data).__name__}")

    errors = []

    known_sections = ["branches", "rooms", "users", "teachers", "groups", "schedules", "sessions"]
    for section in data:
        if section not in known_sections:
            errors.append(f"Unknown section: {section}")
    for section in known_sections:
        if section not in data:
            continue
        if not isinstance(data[section], list):
            errors.append(f"Section '{section}' must be a list")
            continue
        for i, item in enumerate(data[section]):
            if not isinstance(item, dict):
                errors.append(f"Section '{section}' entry {i} must be an object")

    if errors:
        raise DataValidationError("; ".join(errors))

    def ids_of(section: str) -> set:
        return {item["id"] for item in data.get(section, []) if isinstance(item, dict) and "id" in item}

    branch_ids = ids_of("branches")
    room_ids = ids_of("rooms")
    user_ids = ids_of("users")
    teacher_ids = ids_of("teachers")
    group_ids = ids_of("groups")
    schedule_ids = ids_of("schedules")

    for room in data.get("rooms", []):
        branch_id = room.get("branch_id")
        if branch_id is not None and branch_id not in branch_ids:
            errors.append(f"Room {room.get('id')} references unknown branch: {branch_id}")

    for teacher in data.get("teachers", []):
        user_id = teacher.get("user_id")
        if user_id is not None and user_id not in user_ids:
            errors.append(f"Teacher profile {teacher.get('id')} references unknown user: {user_id}")

    for group in data.get("groups", []):
        branch_id = group.get("branch_id")
        if branch_id is not None and branch_id not in branch_ids:
            errors.append(f"Group {group.get('id')} references unknown branch: {branch_id}")

    for i, schedule in enumerate(data.get("schedules", [])):
        if "id" not in schedule:
            errors.append(f"Schedule {i} missing 'id'")
            continue

        schedule_id = schedule["id"]
        group_id = schedule.get("group_id")
        if group_id is not None and group_id not in group_ids:
            errors.append(f"Schedule {schedule_id} references unknown group: {group_id}")

        room_id = schedule.get("default_room_id")
        if room_id is not None and room_id not in room_ids:
            errors.append(f"Schedule {schedule_id} references unknown room: {room_id}")

        teacher_id = schedule.get("default_teacher_id")
        if teacher_id is not None and teacher_id not in user_ids | teacher_ids:
            errors.append(f"Schedule {schedule_id} references unknown teacher: {teacher_id}")

    for i, session in enumerate(data.get("sessions", [])):
        if "id" not in session:
            errors.append(f"Session {i} missing 'id'")
            continue

        session_id = session["id"]
        if "schedule_id" not in session:
            errors.append(f"Session {session_id} missing 'schedule_id'")
        elif session["schedule_id"] not in schedule_ids:
            errors.append(f"Session {session_id} references unknown schedule: {session['schedule_id']}")

        room_id = session.get("room_id")
        if room_id is not None and room_id not in room_ids:
            errors.append(f"Session {session_id} references unknown room: {room_id}")

    # Check for duplicate IDs
    def check_duplicates(items: list, name: str):
        ids = [item["id"] for item in items if "id" in item]
        seen = set()
        for id_ in ids:
            if id_ in seen:
                errors.append(f"Duplicate {name} ID: {id_}")
            seen.add(id_)

    for section, name in [
        ("branches", "branch"), ("rooms", "room"), ("users", "user"), ("teachers", "teacher"),
        ("groups", "group"), ("schedules", "schedule"), ("sessions", "session"),
    ]:
        check_duplicates(data.get(section, []), name)

    if errors:
        raise DataValidationError("; ".join(errors))


def load_holidays(path: Union[str, Path]) -> StaticHolidayProvider:
    """
    Load a ``{"YYYY-MM-DD": "name"}`` holiday file.

    A plain list of ``"YYYY-MM-DD"`` strings is accepted too.

    Raises:
        DataValidationError: If an entry is not an ISO date
    """
    data = _read_json(path)
    if isinstance(data, dict):
        items = data.items()
    elif isinstance(data, list):
        items = ((day, "") for day in data)
    else:
        raise DataValidationError(f"Holiday file must be an object or a list, got {type(data).__name__}")

    holidays: dict[dt.date, str] = {}
    errors = []
    for raw, name in items:
        try:
            holidays[dt.date.fromisoformat(str(raw))] = str(name or "")
        except ValueError:
            errors.append(f"Invalid holiday date: {raw}")

    if errors:
        raise DataValidationError("; ".join(errors))
    return StaticHolidayProvider(holidays)


# =============================================================================
# Helper Functions
# =============================================================================

def _read_json(path: Union[str, Path]) -> Any:
    path = Path(path)
    with open(path) as f:
        return json.load(f)


def _format_validation_error(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'root'}: {err['msg']}"
        for err in error.errors()
    )


def convert_keys_to_snake_case(obj: Any) -> Any:
    """Recursively convert dictionary keys from camelCase to snake_case."""

    def to_snake_case(name: str) -> str:
        # Handle common patterns
        name = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1_\2', name)
        name = re.sub(r'([a-z\d])([A-Z])', r'\1_\2', name)
        return name.lower()

    if isinstance(obj, dict):
        return {to_snake_case(k): convert_keys_to_snake_case(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [convert_keys_to_snake_case(item) for item in obj]
    else:
        return obj
