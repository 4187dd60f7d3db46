"""
Definition validation.

Checks run before generation, split the way the preview reports them:
- Structural: the definition is internally consistent
- Domain: the definition fits the directory (branch, room, group, teacher)

Each check returns a list of ``PreviewIssue`` instead of raising, so the
preview can report every problem at once. ``raise_for_issues`` turns the
error-severity issues into one exception for the commit path.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from planner.config import PlannerConfig
from planner.data.models import BranchHours, Group, RecurringPattern, ScheduleDefinition, day_name
from planner.data.store import Directory
from planner.engine.hours import parse_time, resolve_branch_hours
from planner.errors import InvalidBranchHours, InvalidTimeFormat, PlannerError, StructuralValidationError
from planner.output.schema import PreviewIssue

# Labels the generator does not treat differently from a weekday list
UNDIFFERENTIATED_PATTERNS = frozenset({
    RecurringPattern.DAILY,
    RecurringPattern.BI_WEEKLY,
    RecurringPattern.MONTHLY,
    RecurringPattern.YEARLY,
})


@dataclass
class DomainCheck:
    """Result of the domain checks."""
    issues: list[PreviewIssue] = field(default_factory=list)
    branch_hours: Optional[BranchHours] = None
    group: Optional[Group] = None
    teacher_id: Optional[int] = None


# =============================================================================
# Structure
# =============================================================================

def coerce_definition(
    definition: Union[ScheduleDefinition, Mapping[str, Any]],
) -> tuple[Optional[ScheduleDefinition], list[PreviewIssue]]:
    """
    Validate a raw mapping into a ScheduleDefinition.

    Returns:
        Tuple of (definition or None, one fatal issue per validation error)
    """
    if isinstance(definition, ScheduleDefinition):
        return definition, []

    try:
        return ScheduleDefinition.model_validate(definition), []
    except ValidationError as e:
        issues = []
        for err in e.errors():
            location = ".".join(str(part) for part in err["loc"]) or "definition"
            code = "missing_field" if err["type"] == "missing" else "invalid_field"
            issues.append(PreviewIssue.error(code, f"{location}: {err['msg']}", fatal=True, field=location))
        return None, issues


def validate_structure(definition: ScheduleDefinition, config: Optional[PlannerConfig] = None) -> list[PreviewIssue]:
    """
    Check a definition for internal consistency.

    Every problem is reported; all errors here are fatal.
    """
    config = config or PlannerConfig()
    issues: list[PreviewIssue] = []

    if definition.total_hours % definition.hours_per_session != 0:
        issues.append(PreviewIssue.error(
            "hours_not_divisible",
            f"total_hours ({definition.total_hours}) must be a multiple of "
            f"hours_per_session ({definition.hours_per_session})",
            fatal=True,
            total_hours=definition.total_hours,
            hours_per_session=definition.hours_per_session,
        ))

    if definition.estimated_end_date and definition.estimated_end_date < definition.start_date:
        issues.append(PreviewIssue.error(
            "invalid_date_range",
            f"estimated_end_date ({definition.estimated_end_date}) is before start_date ({definition.start_date})",
            fatal=True,
        ))

    if definition.total_sessions > config.max_sessions:
        issues.append(PreviewIssue.error(
            "too_many_sessions",
            f"{definition.total_sessions} sessions requested; the limit is {config.max_sessions}",
            fatal=True,
            requested=definition.total_sessions,
            limit=config.max_sessions,
        ))

    if definition.uses_slots:
        issues.extend(_check_slots(definition))
    elif not definition.session_start_time:
        issues.append(PreviewIssue.error(
            "missing_field",
            "session_slots or session_start_time is required",
            fatal=True,
            field="session_slots",
        ))
    else:
        try:
            parse_time(definition.session_start_time)
        except InvalidTimeFormat as e:
            issues.append(PreviewIssue.error("invalid_field", e.message, fatal=True, field="session_start_time"))
        if definition.recurring_pattern in UNDIFFERENTIATED_PATTERNS:
            issues.append(PreviewIssue.warning(
                "pattern_not_differentiated",
                f"'{definition.recurring_pattern.value}' is generated from the weekday list "
                f"({'every day' if not definition.custom_recurring_days else 'explicit days'})",
                pattern=definition.recurring_pattern.value,
            ))

    if definition.is_class and definition.group_id is None:
        issues.append(PreviewIssue.error(
            "missing_field", "class schedules require a group_id", fatal=True, field="group_id",
        ))

    if not definition.is_class and not definition.participant_user_ids:
        issues.append(PreviewIssue.error(
            "missing_field",
            f"participant_user_ids is required for {definition.schedule_type.value} schedules",
            fatal=True,
            field="participant_user_ids",
        ))

    return issues


def _check_slots(definition: ScheduleDefinition) -> list[PreviewIssue]:
    issues = []
    slots = definition.session_slots

    if len(slots) != definition.session_per_week:
        issues.append(PreviewIssue.error(
            "slot_count_mismatch",
            f"{len(slots)} session slots given for session_per_week={definition.session_per_week}",
            fatal=True,
            slots=len(slots),
            session_per_week=definition.session_per_week,
        ))

    counts = Counter(slot.weekday for slot in slots)
    for weekday, count in sorted(counts.items()):
        if count > 1:
            issues.append(PreviewIssue.error(
                "duplicate_slot_weekday",
                f"{day_name(weekday)} appears in {count} session slots",
                fatal=True,
                weekday=weekday,
            ))

    return issues


# =============================================================================
# Domain
# =============================================================================

def validate_domain(
    definition: ScheduleDefinition,
    directory: Directory,
    config: Optional[PlannerConfig] = None,
) -> DomainCheck:
    """
    Check a definition against the directory.

    Unknown branch or room and unusable branch hours are fatal. A missing
    group, a group without paid members, an unknown participant and an
    unauthorized teacher are errors that block creation but let the preview
    continue.
    """
    check = DomainCheck()

    if definition.branch_id is not None and directory.get_branch(definition.branch_id) is None:
        check.issues.append(PreviewIssue.error(
            "branch_not_found", f"branch {definition.branch_id} not found",
            fatal=True, branch_id=definition.branch_id,
        ))

    if definition.default_room_id is not None and directory.get_room(definition.default_room_id) is None:
        check.issues.append(PreviewIssue.error(
            "room_not_found", f"room {definition.default_room_id} not found",
            fatal=True, room_id=definition.default_room_id,
        ))

    if not any(issue.fatal for issue in check.issues):
        try:
            check.branch_hours = resolve_branch_hours(directory.branch_for(definition), config)
        except InvalidBranchHours as e:
            check.issues.append(PreviewIssue.error(e.code, e.message, fatal=True, **e.details))

    if definition.is_class and definition.group_id is not None:
        check.group = directory.get_group(definition.group_id)
        if check.group is None:
            check.issues.append(PreviewIssue.error(
                "group_not_found", f"group {definition.group_id} not found", group_id=definition.group_id,
            ))
        elif not check.group.eligible_members:
            check.issues.append(PreviewIssue.error(
                "no_eligible_members",
                f"group {check.group} has no members with a paid deposit or full payment",
                group_id=check.group.id,
            ))

    if not definition.is_class:
        for user_id in definition.participant_user_ids:
            if directory.get_user(user_id) is None:
                check.issues.append(PreviewIssue.error(
                    "participant_not_found", f"participant user {user_id} not found", user_id=user_id,
                ))

    if definition.default_teacher_id is not None:
        check.teacher_id = directory.canonical_teacher_id(definition.default_teacher_id)
        teacher = directory.get_user(check.teacher_id)
        if teacher is None or not teacher.can_teach:
            check.issues.append(PreviewIssue.error(
                "teacher_not_authorized",
                f"user {definition.default_teacher_id} does not have a teaching role",
                teacher_id=definition.default_teacher_id,
            ))

    return check


# =============================================================================
# Raising
# =============================================================================

def raise_for_issues(issues: Sequence[PreviewIssue], error_class: type[PlannerError]) -> None:
    """
    Raise ``error_class`` when any issue is an error.

    Messages are joined with "; "; the first error's code is kept.
    """
    errors = [issue for issue in issues if issue.is_error]
    if not errors:
        return
    raise error_class(
        "; ".join(issue.message for issue in errors),
        code=errors[0].code,
        details={"issues": [issue.code for issue in errors]},
    )


def raise_for_structure(
    definition: Union[ScheduleDefinition, Mapping[str, Any]],
    config: Optional[PlannerConfig] = None,
) -> ScheduleDefinition:
    """Coerce and structurally validate a definition, raising on any error."""
    parsed, issues = coerce_definition(definition)
    raise_for_issues(issues, StructuralValidationError)
    raise_for_issues(validate_structure(parsed, config), StructuralValidationError)
    return parsed
