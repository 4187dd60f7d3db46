"""
Holiday handling.

This module provides:
- ``shift_holidays`` / ``reschedule``: move sessions that land on holidays to
  the next free slot of the schedule's weekly template
- Holiday providers: a static mapping and the MyHora Thai public-holiday feed

Shifting is pure: the input list is never modified, and the old-date to
new-date mapping is recorded in the same pass that builds the output.
"""

from __future__ import annotations

import datetime as dt
import json
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Protocol, Sequence, Union

import requests

from planner.config import PlannerConfig
from planner.data.models import CandidateSession, weekday_index
from planner.errors import HolidayLookupError
from planner.log import get_logger

logger = get_logger(__name__)

RESCHEDULED_NOTE = "Rescheduled due to holiday"

# Days searched for a free template slot before falling back to any free day
MAX_TEMPLATE_SEARCH_DAYS = 366

HolidayInput = Union[Mapping[dt.date, str], Iterable[dt.date]]


# =============================================================================
# Shift Results
# =============================================================================

@dataclass(frozen=True)
class HolidayShift:
    """One session moved off a holiday."""
    session_number: int
    original_date: dt.date
    new_date: dt.date
    start_time: dt.time
    end_time: dt.time
    holiday_name: str = ""


@dataclass
class HolidayShiftResult:
    """Sessions after shifting, plus the shifts that produced them."""
    sessions: list[CandidateSession] = field(default_factory=list)
    shifts: list[HolidayShift] = field(default_factory=list)

    @property
    def date_map(self) -> dict[dt.date, dt.date]:
        """Original holiday date -> replacement date (first shift per date)."""
        mapping: dict[dt.date, dt.date] = {}
        for shift in self.shifts:
            mapping.setdefault(shift.original_date, shift.new_date)
        return mapping

    @property
    def shifted_count(self) -> int:
        return len(self.shifts)


# =============================================================================
# Shifting
# =============================================================================

def holiday_names(holidays: Optional[HolidayInput]) -> dict[dt.date, str]:
    """Normalize a holiday mapping or date collection into date -> name."""
    if not holidays:
        return {}
    if isinstance(holidays, Mapping):
        return {day: (name or "") for day, name in holidays.items()}
    return {day: "" for day in holidays}


def _weekly_template(sessions: Sequence[CandidateSession]) -> dict[int, list[tuple[dt.time, dt.time]]]:
    """Weekday -> sorted (start, end) windows used by the sessions."""
    windows: dict[int, set[tuple[dt.time, dt.time]]] = defaultdict(set)
    for session in sessions:
        windows[weekday_index(session.date)].add((session.start_time, session.end_time))
    return {day: sorted(slots) for day, slots in windows.items()}


def _next_template_slot(
    anchor: tuple[dt.date, dt.time],
    template: dict[int, list[tuple[dt.time, dt.time]]],
    holidays: Mapping[dt.date, str],
    taken: set[tuple[dt.date, dt.time]],
) -> Optional[tuple[dt.date, dt.time, dt.time]]:
    """First template slot strictly after ``anchor`` that is free and not a holiday."""
    anchor_date, anchor_start = anchor
    for offset in range(MAX_TEMPLATE_SEARCH_DAYS + 1):
        day = anchor_date + dt.timedelta(days=offset)
        if day in holidays:
            continue
        for start, end in template.get(weekday_index(day), []):
            if offset == 0 and start <= anchor_start:
                continue
            if (day, start) in taken:
                continue
            return day, start, end
    return None


def _next_free_day(
    anchor_date: dt.date,
    start: dt.time,
    holidays: Mapping[dt.date, str],
    taken: set[tuple[dt.date, dt.time]],
) -> dt.date:
    day = anchor_date + dt.timedelta(days=1)
    while day in holidays or (day, start) in taken:
        day += dt.timedelta(days=1)
    return day


def shift_holidays(sessions: Sequence[CandidateSession], holidays: Optional[HolidayInput]) -> HolidayShiftResult:
    """
    Move sessions that fall on holidays to the end of the schedule.

    Sessions not on a holiday keep their position. Each session on a holiday
    is dropped and a replacement is appended, placed on the next slot of the
    weekly template after the current last session that is neither a holiday
    nor already taken. Replacements appear in the order their holidays were
    encountered.

    Args:
        sessions: Chronological candidate sessions
        holidays: Mapping of date -> holiday name, or a collection of dates

    Returns:
        HolidayShiftResult with the new session list and the shift records
    """
    names = holiday_names(holidays)
    if not sessions:
        return HolidayShiftResult()

    kept = [s for s in sessions if s.date not in names]
    postponed = [s for s in sessions if s.date in names]
    if not postponed:
        return HolidayShiftResult(sessions=list(sessions))

    template = _weekly_template(sessions)
    taken = {(s.date, s.start_time) for s in kept}
    anchor_session = max(kept or postponed, key=lambda s: s.sort_key)
    anchor = (anchor_session.date, anchor_session.start_time)

    result = HolidayShiftResult(sessions=list(kept))

    for session in postponed:
        slot = _next_template_slot(anchor, template, names, taken)
        if slot is None:
            new_date = _next_free_day(anchor[0], session.start_time, names, taken)
            new_start, new_end = session.start_time, session.end_time
        else:
            new_date, new_start, new_end = slot

        replacement = session.model_copy(update={
            "date": new_date,
            "start_time": new_start,
            "end_time": new_end,
            "notes": RESCHEDULED_NOTE,
        })
        result.sessions.append(replacement)
        result.shifts.append(HolidayShift(
            session_number=session.session_number,
            original_date=session.date,
            new_date=new_date,
            start_time=new_start,
            end_time=new_end,
            holiday_name=names.get(session.date, ""),
        ))
        taken.add((new_date, new_start))
        anchor = (new_date, new_start)

    logger.debug("Shifted %d sessions off holidays", result.shifted_count)
    return result


def reschedule(sessions: Sequence[CandidateSession], holidays: Optional[HolidayInput]) -> list[CandidateSession]:
    """Sessions with holiday-landing ones moved to the end; see ``shift_holidays``."""
    return shift_holidays(sessions, holidays).sessions


def sessions_on_holidays(
    sessions: Sequence[CandidateSession], holidays: Optional[HolidayInput]
) -> list[CandidateSession]:
    """Sessions whose date is a holiday."""
    names = holiday_names(holidays)
    return [s for s in sessions if s.date in names]


# =============================================================================
# Providers
# =============================================================================

class HolidayProvider(Protocol):
    """Source of holiday dates."""

    def get_holidays(self, start_year: int, end_year: int) -> dict[dt.date, str]:
        ...


class StaticHolidayProvider:
    """Holidays from a fixed mapping."""

    def __init__(self, holidays: Optional[HolidayInput] = None):
        self._holidays = holiday_names(holidays)

    def get_holidays(self, start_year: int, end_year: int) -> dict[dt.date, str]:
        return {
            day: name for day, name in sorted(self._holidays.items())
            if start_year <= day.year <= end_year
        }


def parse_holiday_json(payload: Mapping) -> dict[dt.date, str]:
    """
    Extract holidays from the MyHora JSON calendar.

    The payload looks like ``{"VCALENDAR": [{"VEVENT": [{"DTSTART":
    "20250101", "SUMMARY": "New Year"}]}]}``.
    """
    holidays: dict[dt.date, str] = {}
    for calendar in payload.get("VCALENDAR") or []:
        for event in calendar.get("VEVENT") or []:
            raw = str(event.get("DTSTART") or "").strip()
            if not raw:
                raw = str(event.get("DTSTART;VALUE=DATE") or "").strip()
            day = _parse_compact_date(raw)
            if day is not None and day not in holidays:
                holidays[day] = str(event.get("SUMMARY") or "").strip()
    return holidays


def parse_holiday_ics(text: str) -> dict[dt.date, str]:
    """Extract holidays from an iCalendar document."""
    holidays: dict[dt.date, str] = {}
    current_date: Optional[dt.date] = None
    current_summary = ""

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if line.startswith("DTSTART"):
            _, _, value = line.partition(":")
            current_date = _parse_compact_date(value.strip())
        elif line.startswith("SUMMARY:"):
            current_summary = line[len("SUMMARY:"):].strip()
        elif line == "END:VEVENT":
            if current_date is not None and current_date not in holidays:
                holidays[current_date] = current_summary
            current_date = None
            current_summary = ""

    return holidays


def _parse_compact_date(value: str) -> Optional[dt.date]:
    """Parse the leading YYYYMMDD of an iCalendar date value."""
    value = value[:8]
    if len(value) != 8:
        return None
    try:
        return dt.datetime.strptime(value, "%Y%m%d").date()
    except ValueError:
        return None


class MyHoraHolidayProvider:
    """
    Thai public holidays from myhora.com.

    Years are requested in the Buddhist era (Gregorian + 543). The JSON feed
    is tried first and the iCalendar feed is the fallback. Years that fail are
    logged; the lookup only raises when no year produced any holiday.
    """

    JSON_URL = "https://www.myhora.com/calendar/ical/holiday.aspx?{year}.json"
    ICS_URL = "https://www.myhora.com/calendar/ical/holiday.aspx?{year}.ics"
    REFERER = "https://www.myhora.com/calendar/{year}.aspx"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = 15.0,
        user_agent: str = "Mozilla/5.0 (compatible; SessionPlanner/1.0)",
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.user_agent = user_agent

    @classmethod
    def from_config(cls, config: PlannerConfig) -> "MyHoraHolidayProvider":
        return cls(timeout=config.holiday_timeout_seconds, user_agent=config.holiday_user_agent)

    def get_holidays(self, start_year: int, end_year: int) -> dict[dt.date, str]:
        holidays: dict[dt.date, str] = {}
        failures: list[str] = []

        for year in range(start_year, end_year + 1):
            year_holidays: dict[dt.date, str] = {}
            year_errors: list[str] = []

            try:
                year_holidays = self.fetch_json(year)
            except HolidayLookupError as e:
                year_errors.append(e.message)

            if not year_holidays:
                try:
                    year_holidays = self.fetch_ics(year)
                except HolidayLookupError as e:
                    year_errors.append(e.message)

            if not year_holidays:
                if year_errors:
                    failures.append(f"{year}: {' | '.join(year_errors)}")
                continue

            for day, name in year_holidays.items():
                holidays.setdefault(day, name)

        if failures:
            if not holidays:
                raise HolidayLookupError(f"failed to fetch holidays: {'; '.join(failures)}")
            logger.warning("Partial holiday fetch failures: %s", "; ".join(failures))

        return dict(sorted(holidays.items()))

    def fetch_json(self, year: int) -> dict[dt.date, str]:
        """Holidays of one Gregorian year from the JSON feed."""
        body = self._get(self.JSON_URL, year, accept="application/json, text/plain, */*")
        text = body.strip()
        if not text:
            return {}
        if text.startswith("<"):
            raise HolidayLookupError(f"failed to decode holiday response for year {year}: unexpected html content")
        try:
            payload = json.loads(text)
        except ValueError as e:
            raise HolidayLookupError(f"failed to decode holiday response for year {year}: {e}") from e
        return parse_holiday_json(payload)

    def fetch_ics(self, year: int) -> dict[dt.date, str]:
        """Holidays of one Gregorian year from the iCalendar feed."""
        body = self._get(self.ICS_URL, year, accept="text/calendar, text/plain, */*")
        return parse_holiday_ics(body)

    def _get(self, url_template: str, year: int, accept: str) -> str:
        buddhist_year = year + 543
        headers = {
            "User-Agent": self.user_agent,
            "Accept": accept,
            "Referer": self.REFERER.format(year=buddhist_year),
        }
        try:
            response = self.session.get(
                url_template.format(year=buddhist_year),
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise HolidayLookupError(f"failed to fetch holidays for year {year}: {e}") from e
        return response.text
