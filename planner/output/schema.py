"""
Output schema for previews and conflict reports.

This module defines the JSON-serializable records returned by the preview and
commit orchestrators: conflict entries grouped by dimension, preview issues,
holiday impacts and the per-session preview rows.
"""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, computed_field

from planner.data.models import CandidateSession, day_name, weekday_index


# =============================================================================
# Enums
# =============================================================================

class IssueSeverity(str, Enum):
    """Severity of a preview issue."""
    ERROR = "error"
    WARNING = "warning"


class PreviewStage(str, Enum):
    """Preview pipeline stages, in execution order."""
    VALIDATING_STRUCTURE = "validating_structure"
    VALIDATING_DOMAIN = "validating_domain"
    GENERATING_SESSIONS = "generating_sessions"
    APPLYING_HOLIDAYS = "applying_holidays"
    REINDEXING = "reindexing"
    DETECTING_CONFLICTS = "detecting_conflicts"
    DONE = "done"


class ConflictDimension(str, Enum):
    """Resource a conflict was found on."""
    ROOM = "room"
    TEACHER = "teacher"
    PARTICIPANT = "participant"
    STUDENT = "student"


# =============================================================================
# Conflicts
# =============================================================================

class ConflictEntry(BaseModel):
    """A candidate session overlapping a committed session on one resource."""
    dimension: ConflictDimension
    entity_id: int = Field(alias="entityId")
    entity_name: str = Field(default="", alias="entityName")

    session_number: int = Field(alias="sessionNumber")
    session_date: dt.date = Field(alias="sessionDate")
    start_time: str = Field(alias="startTime")  # 'HH:MM'
    end_time: str = Field(alias="endTime")  # 'HH:MM'

    existing_schedule_id: int = Field(alias="existingScheduleId")
    existing_schedule_name: str = Field(default="", alias="existingScheduleName")
    existing_session_id: int = Field(alias="existingSessionId")
    existing_date: dt.date = Field(alias="existingDate")
    existing_start_time: str = Field(alias="existingStartTime")
    existing_end_time: str = Field(alias="existingEndTime")

    model_config = {"populate_by_name": True}

    def __str__(self) -> str:
        entity = self.entity_name or f"{self.dimension.value} {self.entity_id}"
        existing = self.existing_schedule_name or f"schedule {self.existing_schedule_id}"
        return (
            f"{entity}: session #{self.session_number} {self.session_date.isoformat()} "
            f"{self.start_time}-{self.end_time} overlaps {existing} "
            f"{self.existing_start_time}-{self.existing_end_time}"
        )


class GroupConflict(BaseModel):
    """A group already held by another active class schedule."""
    group_id: int = Field(alias="groupId")
    group_name: str = Field(default="", alias="groupName")
    existing_schedule_id: int = Field(alias="existingScheduleId")
    existing_schedule_name: str = Field(default="", alias="existingScheduleName")
    existing_status: str = Field(alias="existingStatus")

    model_config = {"populate_by_name": True}

    def __str__(self) -> str:
        group = self.group_name or f"group {self.group_id}"
        existing = self.existing_schedule_name or f"schedule {self.existing_schedule_id}"
        return f"{group} already has an active class schedule: {existing} ({self.existing_status})"


class ConflictReport(BaseModel):
    """All conflicts found for one candidate session list."""
    group_conflict: Optional[GroupConflict] = Field(default=None, alias="groupConflict")
    room_conflicts: list[ConflictEntry] = Field(default_factory=list, alias="roomConflicts")
    teacher_conflicts: list[ConflictEntry] = Field(default_factory=list, alias="teacherConflicts")
    participant_conflicts: list[ConflictEntry] = Field(default_factory=list, alias="participantConflicts")
    student_conflicts: list[ConflictEntry] = Field(default_factory=list, alias="studentConflicts")

    model_config = {"populate_by_name": True}

    @computed_field(alias="totalConflicts")
    @property
    def total_conflicts(self) -> int:
        return (
            (1 if self.group_conflict else 0)
            + len(self.room_conflicts)
            + len(self.teacher_conflicts)
            + len(self.participant_conflicts)
            + len(self.student_conflicts)
        )

    @property
    def has_conflicts(self) -> bool:
        return self.total_conflicts > 0

    def entries(self) -> list[ConflictEntry]:
        """Every dimension entry, room first."""
        return [
            *self.room_conflicts,
            *self.teacher_conflicts,
            *self.participant_conflicts,
            *self.student_conflicts,
        ]

    def conflicted_session_numbers(self) -> set[int]:
        return {entry.session_number for entry in self.entries()}


# =============================================================================
# Issues
# =============================================================================

class PreviewIssue(BaseModel):
    """A validation or conflict finding reported by the preview."""
    severity: IssueSeverity
    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    fatal: bool = False

    model_config = {"populate_by_name": True}

    @classmethod
    def error(cls, code: str, message: str, fatal: bool = False, **details: Any) -> PreviewIssue:
        return cls(severity=IssueSeverity.ERROR, code=code, message=message, details=details, fatal=fatal)

    @classmethod
    def warning(cls, code: str, message: str, **details: Any) -> PreviewIssue:
        return cls(severity=IssueSeverity.WARNING, code=code, message=message, details=details)

    @property
    def is_error(self) -> bool:
        return self.severity == IssueSeverity.ERROR

    def __str__(self) -> str:
        prefix = "FATAL" if self.fatal else self.severity.value.upper()
        return f"[{prefix}] {self.code}: {self.message}"


# =============================================================================
# Sessions
# =============================================================================

class HolidayImpact(BaseModel):
    """A session that fell on a holiday, and where it went."""
    session_number: int = Field(alias="sessionNumber")
    original_date: dt.date = Field(alias="originalDate")
    new_date: Optional[dt.date] = Field(default=None, alias="newDate")
    holiday_name: str = Field(default="", alias="holidayName")

    model_config = {"populate_by_name": True}


class SessionPreview(BaseModel):
    """One generated session as shown to the user."""
    session_number: int = Field(alias="sessionNumber")
    week_number: int = Field(alias="weekNumber")
    date: dt.date
    day_name: str = Field(alias="dayName")
    start_time: str = Field(alias="startTime")  # 'HH:MM'
    end_time: str = Field(alias="endTime")  # 'HH:MM'
    room_id: Optional[int] = Field(default=None, alias="roomId")
    room_name: Optional[str] = Field(default=None, alias="roomName")
    teacher_id: Optional[int] = Field(default=None, alias="teacherId")
    teacher_name: Optional[str] = Field(default=None, alias="teacherName")
    notes: str = ""
    has_conflict: bool = Field(default=False, alias="hasConflict")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_candidate(
        cls,
        session: CandidateSession,
        room_name: Optional[str] = None,
        teacher_name: Optional[str] = None,
        has_conflict: bool = False,
    ) -> SessionPreview:
        """Create from a CandidateSession."""
        return cls(
            sessionNumber=session.session_number,
            weekNumber=session.week_number,
            date=session.date,
            dayName=day_name(weekday_index(session.date)),
            startTime=f"{session.start_time:%H:%M}",
            endTime=f"{session.end_time:%H:%M}",
            roomId=session.room_id,
            roomName=room_name or None,
            teacherId=session.assigned_teacher_id,
            teacherName=teacher_name or None,
            notes=session.notes,
            hasConflict=has_conflict,
        )


# =============================================================================
# Complete Output
# =============================================================================

class PreviewResult(BaseModel):
    """Complete output of a preview run."""
    can_create: bool = Field(alias="canCreate")
    stage_reached: PreviewStage = Field(alias="stageReached")
    issues: list[PreviewIssue] = Field(default_factory=list)
    session_preview: list[SessionPreview] = Field(default_factory=list, alias="sessionPreview")
    holiday_impacts: list[HolidayImpact] = Field(default_factory=list, alias="holidayImpacts")
    conflict_report: ConflictReport = Field(default_factory=ConflictReport, alias="conflictReport")
    total_sessions: int = Field(default=0, alias="totalSessions")
    computed_end_date: Optional[dt.date] = Field(default=None, alias="computedEndDate")

    model_config = {"populate_by_name": True}

    @property
    def errors(self) -> list[PreviewIssue]:
        return [i for i in self.issues if i.is_error]

    @property
    def warnings(self) -> list[PreviewIssue]:
        return [i for i in self.issues if not i.is_error]

    @property
    def fatal_issues(self) -> list[PreviewIssue]:
        return [i for i in self.issues if i.fatal]

    def issue_codes(self) -> list[str]:
        return [i.code for i in self.issues]

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return self.model_dump_json(by_alias=True, indent=indent)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return self.model_dump(by_alias=True, mode="json")
