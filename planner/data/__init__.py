"""Data models and the session store.

The JSON loaders live in ``planner.data.loader``.
"""

from .models import (
    BranchHours,
    CandidateSession,
    CommittedSession,
    RecurringPattern,
    ScheduleDefinition,
    ScheduleRecord,
    ScheduleStatus,
    ScheduleType,
    SessionRecord,
    SessionSlot,
    SessionStatus,
    StoreSnapshot,
)
from .store import Directory, InMemorySessionStore, SessionQuery, SessionStore

__all__ = [
    # Models
    "BranchHours",
    "CandidateSession",
    "CommittedSession",
    "RecurringPattern",
    "ScheduleDefinition",
    "ScheduleRecord",
    "ScheduleStatus",
    "ScheduleType",
    "SessionRecord",
    "SessionSlot",
    "SessionStatus",
    "StoreSnapshot",
    # Store
    "Directory",
    "InMemorySessionStore",
    "SessionQuery",
    "SessionStore",
]
