"""
Pydantic models for the session planner data model.

Time conventions:
- Times of day are ``datetime.time`` values or minutes from midnight (0-1439)
- Weekdays are 0-6 with 0=Sunday, matching the client payloads

Example times:
- 8:00 AM = 480
- 9:00 PM = 1260
"""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


# =============================================================================
# Constants and Enums
# =============================================================================

class Weekday(int, Enum):
    """Day of week: 0=Sunday through 6=Saturday."""
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6


class RecurringPattern(str, Enum):
    """Recurrence label attached to a schedule."""
    DAILY = "daily"
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"


class ScheduleType(str, Enum):
    """Kind of schedule."""
    CLASS = "class"
    MEETING = "meeting"
    EVENT = "event"
    HOLIDAY = "holiday"
    APPOINTMENT = "appointment"


class ScheduleStatus(str, Enum):
    """Lifecycle status of a schedule."""
    SCHEDULED = "scheduled"
    ASSIGNED = "assigned"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SessionStatus(str, Enum):
    """Lifecycle status of a single session."""
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    NO_SHOW = "no-show"


class PaymentStatus(str, Enum):
    """Payment state of a group member."""
    PENDING = "pending"
    DEPOSIT_PAID = "deposit_paid"
    FULLY_PAID = "fully_paid"


class UserRole(str, Enum):
    """Account role."""
    OWNER = "owner"
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


# Schedules whose sessions still occupy resources
ACTIVE_SCHEDULE_STATUSES = frozenset({ScheduleStatus.ASSIGNED, ScheduleStatus.SCHEDULED})

# Sessions that no longer occupy resources
INACTIVE_SESSION_STATUSES = frozenset({SessionStatus.CANCELLED, SessionStatus.NO_SHOW})

ELIGIBLE_PAYMENT_STATUSES = frozenset({PaymentStatus.DEPOSIT_PAID, PaymentStatus.FULLY_PAID})

TEACHING_ROLES = frozenset({UserRole.TEACHER, UserRole.ADMIN, UserRole.OWNER})

# Type aliases for documentation
MinutesFromMidnight = Annotated[int, Field(ge=0, le=1439, description="Time as minutes from midnight")]
WeekdayIndex = Annotated[int, Field(ge=0, le=6, description="Day of week (0=Sunday, 6=Saturday)")]

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


# =============================================================================
# Helper Functions
# =============================================================================

def minutes_to_time(minutes: int) -> str:
    """Convert minutes from midnight to HH:MM format."""
    h, m = divmod(minutes, 60)
    return f"{h:02d}:{m:02d}"


def time_to_minutes(time_str: str) -> int:
    """Convert HH:MM format to minutes from midnight."""
    h, m = map(int, time_str.strip().split(":")[:2])
    return h * 60 + m


def minutes_of(value: dt.time) -> int:
    """Minutes from midnight of a time of day."""
    return value.hour * 60 + value.minute


def time_of(minutes: int) -> dt.time:
    """Time of day for minutes from midnight."""
    h, m = divmod(minutes, 60)
    return dt.time(h, m)


def day_name(day: int) -> str:
    """Get day name from index (0=Sunday)."""
    return DAY_NAMES[day] if 0 <= day <= 6 else f"Day {day}"


def weekday_index(value: dt.date) -> int:
    """Sunday-based weekday index of a date."""
    # date.weekday() is Monday=0
    return (value.weekday() + 1) % 7


# =============================================================================
# Pipeline Records
# =============================================================================

class SessionSlot(BaseModel):
    """One weekly recurrence point: a weekday and a start time."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    weekday: WeekdayIndex = Field(description="Day of week (0=Sunday)")
    start_hour: int = Field(ge=0, le=23, description="Start hour")
    start_minute: int = Field(default=0, ge=0, le=59, description="Start minute")

    @property
    def start_minutes(self) -> int:
        """Start time in minutes from midnight."""
        return self.start_hour * 60 + self.start_minute

    def __str__(self) -> str:
        return f"{day_name(self.weekday)} {minutes_to_time(self.start_minutes)}"


class BranchHours(BaseModel):
    """Operating window of a branch, in minutes from midnight."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    open_minutes: MinutesFromMidnight = Field(default=480, description="Opening time")
    close_minutes: MinutesFromMidnight = Field(default=1260, description="Closing time")

    @model_validator(mode="after")
    def validate_time_range(self) -> "BranchHours":
        """Ensure the branch closes after it opens."""
        if self.close_minutes <= self.open_minutes:
            raise ValueError(
                f"close_minutes ({self.close_minutes}) must be greater than "
                f"open_minutes ({self.open_minutes})"
            )
        return self

    def contains(self, start_minutes: int, end_minutes: int) -> bool:
        """Whether a window lies entirely inside operating hours."""
        return self.open_minutes <= start_minutes and end_minutes <= self.close_minutes

    def __str__(self) -> str:
        return f"{minutes_to_time(self.open_minutes)}-{minutes_to_time(self.close_minutes)}"


class CandidateSession(BaseModel):
    """
    A proposed, not yet persisted session.

    Frozen: pipeline stages return updated copies via ``model_copy``.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    session_number: int = Field(ge=1, description="Sequential number from 1")
    week_number: int = Field(default=1, ge=1, description="Week counted from the schedule start")
    date: dt.date = Field(description="Calendar day of the session")
    start_time: dt.time = Field(description="Start time of day")
    end_time: dt.time = Field(description="End time of day")
    status: SessionStatus = Field(default=SessionStatus.SCHEDULED)
    notes: str = Field(default="")
    room_id: Optional[int] = Field(default=None, description="Room booked for the session")
    assigned_teacher_id: Optional[int] = Field(default=None, description="Teacher user id")

    @model_validator(mode="after")
    def validate_time_range(self) -> "CandidateSession":
        """Ensure start time is before end time."""
        if self.start_time >= self.end_time:
            raise ValueError(
                f"start_time ({self.start_time}) must be before end_time ({self.end_time})"
            )
        return self

    @property
    def start_minutes(self) -> int:
        return minutes_of(self.start_time)

    @property
    def end_minutes(self) -> int:
        return minutes_of(self.end_time)

    @property
    def sort_key(self) -> tuple[dt.date, dt.time]:
        return (self.date, self.start_time)

    def __str__(self) -> str:
        return (
            f"#{self.session_number} {self.date.isoformat()} "
            f"{self.start_time:%H:%M}-{self.end_time:%H:%M}"
        )


# =============================================================================
# Schedule Definition
# =============================================================================

class ScheduleDefinition(BaseModel):
    """
    Abstract recurring schedule, as submitted for preview or creation.

    Either ``session_slots`` (one per weekday, ``session_per_week`` of them)
    or the legacy ``session_start_time`` with optional
    ``custom_recurring_days`` drives generation.
    """
    model_config = ConfigDict(extra="forbid")

    schedule_name: str = Field(default="", description="Display name")
    schedule_type: ScheduleType = Field(default=ScheduleType.CLASS, description="Kind of schedule")
    start_date: dt.date = Field(description="First day sessions may fall on")
    estimated_end_date: Optional[dt.date] = Field(default=None, description="Expected last day")
    recurring_pattern: RecurringPattern = Field(default=RecurringPattern.WEEKLY)
    total_hours: int = Field(ge=1, description="Total teaching hours")
    hours_per_session: int = Field(ge=1, le=24, description="Length of each session in hours")
    session_per_week: int = Field(default=1, ge=1, description="Sessions per week")

    default_teacher_id: Optional[int] = Field(default=None, description="Teacher user id")
    default_room_id: Optional[int] = Field(default=None, description="Room id")
    branch_id: Optional[int] = Field(default=None, description="Branch id; derived from the room when unset")

    group_id: Optional[int] = Field(default=None, description="Learning group (class schedules)")
    participant_user_ids: list[int] = Field(default_factory=list, description="Participants (non-class)")

    session_slots: list[SessionSlot] = Field(default_factory=list, description="Weekly slots")
    session_start_time: Optional[str] = Field(default=None, description="Legacy single start time")
    custom_recurring_days: list[int] = Field(default_factory=list, description="Legacy explicit weekdays")

    auto_reschedule_holiday: bool = Field(default=True, description="Shift sessions off holidays")
    notes: str = Field(default="")

    @property
    def is_class(self) -> bool:
        return self.schedule_type == ScheduleType.CLASS

    @property
    def uses_slots(self) -> bool:
        return bool(self.session_slots)

    @property
    def total_sessions(self) -> int:
        """Number of sessions implied by total and per-session hours."""
        return self.total_hours // self.hours_per_session

    def __str__(self) -> str:
        name = self.schedule_name or "(unnamed)"
        return f"{name} [{self.schedule_type.value}] from {self.start_date.isoformat()}"


# =============================================================================
# Directory Records
# =============================================================================

class Branch(BaseModel):
    """Branch/facility with optional operating hours."""
    model_config = ConfigDict(extra="forbid")

    id: int = Field(description="Unique identifier")
    name: str = Field(default="", description="Branch name")
    open_time: Optional[str] = Field(default=None, description="Opening time, e.g. '08:00'")
    close_time: Optional[str] = Field(default=None, description="Closing time, e.g. '21:00'")
    active: bool = Field(default=True)

    def __str__(self) -> str:
        return self.name or f"Branch {self.id}"


class Room(BaseModel):
    """Room in a branch."""
    model_config = ConfigDict(extra="forbid")

    id: int = Field(description="Unique identifier")
    name: str = Field(default="", description="Room name/number")
    branch_id: Optional[int] = Field(default=None, description="Owning branch")
    capacity: Optional[int] = Field(default=None, ge=1, description="Max capacity")

    def __str__(self) -> str:
        return self.name or f"Room {self.id}"


class User(BaseModel):
    """User account."""
    model_config = ConfigDict(extra="forbid")

    id: int = Field(description="Unique identifier")
    username: str = Field(default="", description="Login/display name")
    role: UserRole = Field(default=UserRole.STUDENT)
    branch_id: Optional[int] = Field(default=None)

    @property
    def can_teach(self) -> bool:
        return self.role in TEACHING_ROLES

    def __str__(self) -> str:
        return self.username or f"User {self.id}"


class TeacherProfile(BaseModel):
    """Legacy teacher profile; ``id`` is not a user id."""
    model_config = ConfigDict(extra="forbid")

    id: int = Field(description="Profile identifier")
    user_id: int = Field(description="Linked user account")
    name: str = Field(default="")


class GroupMember(BaseModel):
    """Student membership in a group."""
    model_config = ConfigDict(extra="forbid")

    student_id: int = Field(description="Student identifier")
    user_id: Optional[int] = Field(default=None, description="Linked user account")
    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    status: str = Field(default="active")


class Group(BaseModel):
    """Learning group."""
    model_config = ConfigDict(extra="forbid")

    id: int = Field(description="Unique identifier")
    name: str = Field(default="")
    branch_id: Optional[int] = Field(default=None)
    members: list[GroupMember] = Field(default_factory=list)

    @property
    def student_ids(self) -> list[int]:
        return [m.student_id for m in self.members]

    @property
    def eligible_members(self) -> list[GroupMember]:
        """Members whose payment allows scheduling."""
        return [m for m in self.members if m.payment_status in ELIGIBLE_PAYMENT_STATUSES]

    def __str__(self) -> str:
        return self.name or f"Group {self.id}"


# =============================================================================
# Store Records
# =============================================================================

class ScheduleRecord(BaseModel):
    """Persisted schedule row."""
    model_config = ConfigDict(extra="forbid")

    id: int = Field(description="Unique identifier")
    schedule_name: str = Field(default="")
    schedule_type: ScheduleType = Field(default=ScheduleType.CLASS)
    status: ScheduleStatus = Field(default=ScheduleStatus.ASSIGNED)
    recurring_pattern: RecurringPattern = Field(default=RecurringPattern.WEEKLY)
    group_id: Optional[int] = Field(default=None)
    participant_user_ids: list[int] = Field(default_factory=list)
    default_teacher_id: Optional[int] = Field(default=None)
    default_room_id: Optional[int] = Field(default=None)
    start_date: Optional[dt.date] = Field(default=None)
    estimated_end_date: Optional[dt.date] = Field(default=None)
    total_hours: Optional[int] = Field(default=None)
    hours_per_session: Optional[int] = Field(default=None)
    session_per_week: Optional[int] = Field(default=None)
    auto_reschedule_holiday: bool = Field(default=True)
    created_by_user_id: Optional[int] = Field(default=None)
    notes: str = Field(default="")

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_SCHEDULE_STATUSES


class SessionRecord(BaseModel):
    """Persisted session row."""
    model_config = ConfigDict(extra="forbid")

    id: int = Field(description="Unique identifier")
    schedule_id: int = Field(description="Owning schedule")
    session_date: dt.date
    start_time: dt.time
    end_time: dt.time
    session_number: int = Field(default=1, ge=1)
    week_number: int = Field(default=1, ge=1)
    status: SessionStatus = Field(default=SessionStatus.SCHEDULED)
    room_id: Optional[int] = Field(default=None)
    assigned_teacher_id: Optional[int] = Field(default=None)
    notes: str = Field(default="")


class CommittedSession(BaseModel):
    """
    Committed session joined with its schedule's identity.

    This is the read model the conflict detector works on.
    ``assigned_teacher_id`` and ``default_teacher_id`` are canonical user ids.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    session_id: int
    schedule_id: int
    schedule_name: str = ""
    schedule_type: ScheduleType = ScheduleType.CLASS
    schedule_status: ScheduleStatus = ScheduleStatus.ASSIGNED
    status: SessionStatus = SessionStatus.SCHEDULED
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    room_id: Optional[int] = None
    default_room_id: Optional[int] = None
    assigned_teacher_id: Optional[int] = None
    default_teacher_id: Optional[int] = None
    group_id: Optional[int] = None
    participant_user_ids: tuple[int, ...] = ()
    student_ids: tuple[int, ...] = ()

    @property
    def effective_room_id(self) -> Optional[int]:
        """Booked room, falling back to the schedule's default (implicit booking)."""
        return self.room_id if self.room_id is not None else self.default_room_id

    @property
    def effective_teacher_id(self) -> Optional[int]:
        """Assigned teacher, falling back to the schedule's default."""
        if self.assigned_teacher_id is not None:
            return self.assigned_teacher_id
        return self.default_teacher_id

    @property
    def start_minutes(self) -> int:
        return minutes_of(self.start_time)

    @property
    def end_minutes(self) -> int:
        return minutes_of(self.end_time)


# =============================================================================
# Snapshot
# =============================================================================

class StoreSnapshot(BaseModel):
    """
    Complete directory and store contents.
    This is the model loaded from and written back to a store JSON file.
    """
    model_config = ConfigDict(extra="forbid")

    branches: list[Branch] = Field(default_factory=list)
    rooms: list[Room] = Field(default_factory=list)
    users: list[User] = Field(default_factory=list)
    teachers: list[TeacherProfile] = Field(default_factory=list)
    groups: list[Group] = Field(default_factory=list)
    schedules: list[ScheduleRecord] = Field(default_factory=list)
    sessions: list[SessionRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_no_duplicate_ids(self) -> "StoreSnapshot":
        """Ensure no duplicate IDs within each entity type."""
        errors: list[str] = []

        def check_duplicates(items: list, entity_name: str) -> None:
            seen: set[int] = set()
            for item in items:
                if item.id in seen:
                    errors.append(f"Duplicate {entity_name} ID: '{item.id}'")
                seen.add(item.id)

        check_duplicates(self.branches, "branch")
        check_duplicates(self.rooms, "room")
        check_duplicates(self.users, "user")
        check_duplicates(self.teachers, "teacher")
        check_duplicates(self.groups, "group")
        check_duplicates(self.schedules, "schedule")
        check_duplicates(self.sessions, "session")

        if errors:
            raise ValueError(f"Duplicate ID validation failed:\n" + "\n".join(f"  - {e}" for e in errors))

        return self

    def summary(self) -> dict[str, Any]:
        """Get a summary of the snapshot."""
        return {
            "branches": len(self.branches),
            "rooms": len(self.rooms),
            "users": len(self.users),
            "groups": len(self.groups),
            "schedules": len(self.schedules),
            "sessions": len(self.sessions),
        }
