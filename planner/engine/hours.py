"""Time-of-day parsing and branch operating hours."""

from __future__ import annotations

import datetime as dt
import re
from typing import Optional

from planner.config import PlannerConfig
from planner.data.models import Branch, BranchHours
from planner.errors import InvalidBranchHours, InvalidTimeFormat
from planner.log import get_logger

logger = get_logger(__name__)

# Layouts tried against the whole string before falling back to a search
_TIME_LAYOUTS = ("%H:%M", "%H:%M:%S", "%H:%M:%SZ", "%H:%M:%S%z")

_EMBEDDED_TIME = re.compile(r"(?<!\d)(\d{1,2}):(\d{2})(?::(\d{2}))?(?!\d)")


def parse_time(value: str) -> tuple[int, int]:
    """
    Parse the hour and minute out of a time or datetime string.

    Accepts "08:30", "08:30:00", "09:15:00Z", ISO datetimes such as
    "2007-11-30T00:00:00+07:00" and "2007-11-30 13:45:00". The wall-clock
    time written in the string is returned; offsets are not applied.

    Args:
        value: String to parse

    Returns:
        Tuple of (hour, minute)

    Raises:
        InvalidTimeFormat: If no HH:MM(:SS) time can be found
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidTimeFormat(f"invalid time format: {value!r}")

    text = value.strip()

    for layout in _TIME_LAYOUTS:
        try:
            parsed = dt.datetime.strptime(text, layout)
        except ValueError:
            continue
        return parsed.hour, parsed.minute

    try:
        parsed = dt.datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    else:
        return parsed.hour, parsed.minute

    match = _EMBEDDED_TIME.search(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if 0 <= hour <= 23 and 0 <= minute <= 59:
            return hour, minute

    raise InvalidTimeFormat(f"invalid time format: {value!r}")


def parse_time_minutes(value: str) -> int:
    """Parse a time string into minutes from midnight."""
    hour, minute = parse_time(value)
    return hour * 60 + minute


def resolve_branch_hours(branch: Optional[Branch], config: Optional[PlannerConfig] = None) -> BranchHours:
    """
    Resolve the operating window used to validate generated sessions.

    Branch-configured times are used when both are set; otherwise the
    configured defaults (08:00-21:00 unless overridden).

    Raises:
        InvalidBranchHours: If a configured time does not parse or the branch
            does not close after it opens
    """
    config = config or PlannerConfig()

    if branch is None or not branch.open_time or not branch.close_time:
        return BranchHours(
            open_minutes=config.default_open_minutes,
            close_minutes=config.default_close_minutes,
        )

    try:
        open_minutes = parse_time_minutes(branch.open_time)
        close_minutes = parse_time_minutes(branch.close_time)
    except InvalidTimeFormat as e:
        raise InvalidBranchHours(
            f"branch {branch.id} operating hours are invalid: {e}",
            details={"branch_id": branch.id},
        ) from e

    if close_minutes <= open_minutes:
        raise InvalidBranchHours(
            f"branch {branch.id} closes ({branch.close_time}) before it opens ({branch.open_time})",
            details={"branch_id": branch.id, "open_time": branch.open_time, "close_time": branch.close_time},
        )

    logger.debug("Branch %s hours %s-%s", branch.id, branch.open_time, branch.close_time)
    return BranchHours(open_minutes=open_minutes, close_minutes=close_minutes)
