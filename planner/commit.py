"""
Schedule commit.

Re-runs conflict detection inside the store transaction, immediately before
writing, so a preview that went stale cannot slip a double-booking through.
Holidays are fetched and sessions built before the transaction opens, so
no network call ever holds the store lock. Unlike the preview, every
problem raises.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from planner.config import PlannerConfig
from planner.data.models import CandidateSession, ScheduleDefinition, ScheduleRecord
from planner.data.store import Directory, SessionStore
from planner.engine.conflicts import ConflictDetector
from planner.engine.generator import generate_for_definition
from planner.engine.holidays import HolidayProvider, shift_holidays
from planner.engine.hours import resolve_branch_hours
from planner.engine.reindex import reindex
from planner.errors import DomainValidationError, ScheduleConflictError
from planner.log import get_logger
from planner.output.schema import ConflictReport
from planner.preview import fetch_holidays
from planner.validation import DomainCheck, raise_for_issues, raise_for_structure, validate_domain

logger = get_logger(__name__)


@dataclass
class CommitPlan:
    """Sessions ready to be written, with the conflicts found for them."""
    definition: ScheduleDefinition
    sessions: list[CandidateSession] = field(default_factory=list)
    report: ConflictReport = field(default_factory=ConflictReport)
    domain: DomainCheck = field(default_factory=DomainCheck, repr=False)

    @property
    def can_commit(self) -> bool:
        return not self.report.has_conflicts


class CommitOrchestrator:
    """Generates, checks and writes schedules."""

    def __init__(
        self,
        store: SessionStore,
        directory: Optional[Directory] = None,
        holiday_provider: Optional[HolidayProvider] = None,
        config: Optional[PlannerConfig] = None,
    ):
        self.store = store
        self.directory = directory if directory is not None else store.directory
        self.holiday_provider = holiday_provider
        self.config = config or PlannerConfig()

    def build_sessions(self, definition: Union[ScheduleDefinition, Mapping[str, Any]]) -> CommitPlan:
        """
        Validate a definition and build its final session list.

        Fetches holidays, so this must not run under the store lock. The
        returned plan has an empty conflict report.

        Raises:
            StructuralValidationError: If the definition is malformed
            DomainValidationError: If it does not fit the directory
                (InvalidBranchHours for an unusable branch window)
            GenerationError: If sessions cannot be generated
        """
        parsed = raise_for_structure(definition, self.config)

        # InvalidBranchHours propagates with its own type
        branch_hours = resolve_branch_hours(self.directory.branch_for(parsed), self.config)

        domain = validate_domain(parsed, self.directory, self.config)
        raise_for_issues(domain.issues, DomainValidationError)

        sessions = generate_for_definition(parsed, branch_hours, self.config)

        holidays, _ = fetch_holidays(self.holiday_provider, parsed, sessions, self.config)
        if holidays and parsed.auto_reschedule_holiday:
            sessions = shift_holidays(sessions, holidays).sessions

        sessions = reindex(sessions, parsed.start_date)
        return CommitPlan(definition=parsed, sessions=sessions, domain=domain)

    def detect(self, plan: CommitPlan, exclude_schedule_id: Optional[int] = None) -> CommitPlan:
        """Fill in the plan's conflict report from the current store state."""
        parsed = plan.definition
        plan.report = ConflictDetector(self.store, self.directory).detect(
            plan.sessions,
            room_id=parsed.default_room_id,
            teacher_id=parsed.default_teacher_id,
            participant_user_ids=[] if parsed.is_class else parsed.participant_user_ids,
            student_ids=plan.domain.group.student_ids if plan.domain.group else [],
            group_id=parsed.group_id,
            schedule_type=parsed.schedule_type,
            exclude_schedule_id=exclude_schedule_id,
        )
        return plan

    def generate_for_commit(
        self,
        definition: Union[ScheduleDefinition, Mapping[str, Any]],
        exclude_schedule_id: Optional[int] = None,
    ) -> CommitPlan:
        """
        Build the final session list and its conflict report.

        Raises:
            StructuralValidationError: If the definition is malformed
            DomainValidationError: If it does not fit the directory
            GenerationError: If sessions cannot be generated
        """
        return self.detect(self.build_sessions(definition), exclude_schedule_id)

    def commit(
        self,
        definition: Union[ScheduleDefinition, Mapping[str, Any]],
        created_by: Optional[int] = None,
    ) -> ScheduleRecord:
        """
        Create a schedule and all of its sessions atomically.

        Only conflict detection and the insert run inside the transaction.

        Raises:
            ScheduleConflictError: If any conflict exists at write time
            PlannerError: Any fatal validation or generation error
        """
        plan = self.build_sessions(definition)

        with self.store.transaction():
            self.detect(plan)
            if not plan.can_commit:
                raise ScheduleConflictError(
                    f"schedule conflicts with {plan.report.total_conflicts} existing booking(s)",
                    plan.report,
                )
            record = self.store.insert_schedule(plan.definition, plan.sessions, created_by)

        logger.info("Committed schedule %d (%s) with %d sessions", record.id, record.schedule_name, len(plan.sessions))
        return record
