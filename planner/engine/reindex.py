"""Session renumbering after generation and holiday shifting."""

from __future__ import annotations

import datetime as dt
from typing import Sequence

from planner.data.models import CandidateSession


def week_number_for(session_date: dt.date, schedule_start: dt.date) -> int:
    """Week of a date counted from the schedule start (1-based, never below 1)."""
    weeks = (session_date - schedule_start).days // 7
    return max(weeks, 0) + 1


def reindex(sessions: Sequence[CandidateSession], schedule_start: dt.date) -> list[CandidateSession]:
    """
    Sort sessions chronologically and renumber them.

    Sessions are ordered by (date, start_time), keeping the input order for
    ties. ``session_number`` runs from 1 and ``week_number`` is computed from
    ``schedule_start``. The input is not modified.

    Args:
        sessions: Sessions in any order
        schedule_start: First day of the schedule

    Returns:
        New, renumbered list
    """
    ordered = sorted(sessions, key=lambda s: s.sort_key)
    return [
        session.model_copy(update={
            "session_number": index,
            "week_number": week_number_for(session.date, schedule_start),
        })
        for index, session in enumerate(ordered, start=1)
    ]
