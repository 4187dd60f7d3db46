"""
Schedule preview.

Runs the whole pipeline for a definition without writing anything:

    structure -> domain -> generate -> holidays -> reindex -> conflicts

Every finding becomes a ``PreviewIssue``. A fatal issue stops the pipeline at
its stage; the issues gathered so far are still returned. Non-fatal errors
(conflicts, unpaid group, unauthorized teacher) let the remaining stages run
but block creation.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Mapping, Optional, Sequence, Union

from planner.config import PlannerConfig
from planner.data.models import CandidateSession, ScheduleDefinition
from planner.data.store import Directory, SessionStore
from planner.engine.conflicts import ConflictDetector
from planner.engine.generator import generate_for_definition
from planner.engine.holidays import HolidayProvider, holiday_names, sessions_on_holidays, shift_holidays
from planner.engine.reindex import reindex
from planner.errors import GenerationError, HolidayLookupError
from planner.log import get_logger
from planner.output.schema import (
    ConflictReport,
    HolidayImpact,
    PreviewIssue,
    PreviewResult,
    PreviewStage,
    SessionPreview,
)
from planner.validation import coerce_definition, validate_domain, validate_structure

logger = get_logger(__name__)


# =============================================================================
# Shared Pipeline Helpers
# =============================================================================

def holiday_year_range(
    definition: ScheduleDefinition,
    sessions: Sequence[CandidateSession],
    config: PlannerConfig,
) -> tuple[int, int]:
    """Years of holidays needed to place every session, shifted ones included."""
    last = max((s.date for s in sessions), default=definition.start_date)
    if definition.estimated_end_date and definition.estimated_end_date > last:
        last = definition.estimated_end_date
    return definition.start_date.year, last.year + config.holiday_years_ahead


def fetch_holidays(
    provider: Optional[HolidayProvider],
    definition: ScheduleDefinition,
    sessions: Sequence[CandidateSession],
    config: PlannerConfig,
) -> tuple[dict[dt.date, str], Optional[HolidayLookupError]]:
    """
    Ask the provider for holidays covering the sessions.

    A lookup failure is returned, not raised: the pipeline goes on without
    holidays.
    """
    if provider is None:
        return {}, None

    start_year, end_year = holiday_year_range(definition, sessions, config)
    try:
        return holiday_names(provider.get_holidays(start_year, end_year)), None
    except HolidayLookupError as e:
        logger.warning("Holiday lookup failed, continuing without holidays: %s", e.message)
        return {}, e


def conflict_issues(report: ConflictReport) -> list[PreviewIssue]:
    """One error issue per conflict entry, group conflict first."""
    issues = []
    if report.group_conflict is not None:
        conflict = report.group_conflict
        issues.append(PreviewIssue.error(
            "group_conflict",
            str(conflict),
            group_id=conflict.group_id,
            existing_schedule_id=conflict.existing_schedule_id,
        ))
    for entry in report.entries():
        issues.append(PreviewIssue.error(
            f"{entry.dimension.value}_conflict",
            str(entry),
            entity_id=entry.entity_id,
            session_number=entry.session_number,
            existing_schedule_id=entry.existing_schedule_id,
            existing_session_id=entry.existing_session_id,
        ))
    return issues


# =============================================================================
# Orchestrator
# =============================================================================

class PreviewOrchestrator:
    """
    Dry-run of schedule creation.

    Holds no per-call state, so one instance can serve concurrent previews
    over the same store.
    """

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

    def preview(
        self,
        definition: Union[ScheduleDefinition, Mapping[str, Any]],
        exclude_schedule_id: Optional[int] = None,
    ) -> PreviewResult:
        """
        Preview the sessions a definition would create.

        Args:
            definition: ScheduleDefinition or raw mapping
            exclude_schedule_id: Schedule being edited; its own sessions are
                not reported as conflicts

        Returns:
            PreviewResult; never raises for invalid input
        """
        issues: list[PreviewIssue] = []

        # Stage 1: structure
        stage = PreviewStage.VALIDATING_STRUCTURE
        parsed, coerce_problems = coerce_definition(definition)
        issues.extend(coerce_problems)
        if parsed is None:
            return self._halt(stage, issues)
        issues.extend(validate_structure(parsed, self.config))
        if _has_fatal(issues):
            return self._halt(stage, issues, parsed)

        # Stage 2: domain
        stage = PreviewStage.VALIDATING_DOMAIN
        domain = validate_domain(parsed, self.directory, self.config)
        issues.extend(domain.issues)
        if _has_fatal(issues):
            return self._halt(stage, issues, parsed)

        # Stage 3: generation
        stage = PreviewStage.GENERATING_SESSIONS
        try:
            sessions = generate_for_definition(parsed, domain.branch_hours, self.config)
        except GenerationError as e:
            issues.append(PreviewIssue.error(e.code, e.message, fatal=True, **e.details))
            return self._halt(stage, issues, parsed)

        # Stage 4: holidays
        stage = PreviewStage.APPLYING_HOLIDAYS
        holidays, lookup_error = fetch_holidays(self.holiday_provider, parsed, sessions, self.config)
        if lookup_error is not None:
            issues.append(PreviewIssue.warning(lookup_error.code, lookup_error.message))
        sessions, impacts = self._apply_holidays(parsed, sessions, holidays, issues)

        # Stage 5: numbering
        stage = PreviewStage.REINDEXING
        sessions = reindex(sessions, parsed.start_date)
        computed_end_date = sessions[-1].date
        if parsed.estimated_end_date and computed_end_date > parsed.estimated_end_date:
            issues.append(PreviewIssue.warning(
                "end_date_extended",
                f"last session falls on {computed_end_date}, after the estimated end date "
                f"{parsed.estimated_end_date}",
                estimated_end_date=parsed.estimated_end_date.isoformat(),
                computed_end_date=computed_end_date.isoformat(),
            ))

        # Stage 6: conflicts
        stage = PreviewStage.DETECTING_CONFLICTS
        report = ConflictDetector(self.store, self.directory).detect(
            sessions,
            room_id=parsed.default_room_id,
            teacher_id=parsed.default_teacher_id,
            participant_user_ids=[] if parsed.is_class else parsed.participant_user_ids,
            student_ids=domain.group.student_ids if domain.group else [],
            group_id=parsed.group_id,
            schedule_type=parsed.schedule_type,
            exclude_schedule_id=exclude_schedule_id,
        )
        issues.extend(conflict_issues(report))

        result = PreviewResult(
            canCreate=not any(issue.is_error for issue in issues),
            stageReached=PreviewStage.DONE,
            issues=issues,
            sessionPreview=self._session_rows(sessions, report),
            holidayImpacts=impacts,
            conflictReport=report,
            totalSessions=len(sessions),
            computedEndDate=computed_end_date,
        )
        logger.info(
            "Preview of %s: %d sessions, %d issues, can_create=%s",
            parsed, result.total_sessions, len(issues), result.can_create,
        )
        return result

    # -------------------------------------------------------------------------
    # Stage helpers
    # -------------------------------------------------------------------------

    def _apply_holidays(
        self,
        definition: ScheduleDefinition,
        sessions: list[CandidateSession],
        holidays: dict[dt.date, str],
        issues: list[PreviewIssue],
    ) -> tuple[list[CandidateSession], list[HolidayImpact]]:
        if not holidays:
            return sessions, []

        if definition.auto_reschedule_holiday:
            shifted = shift_holidays(sessions, holidays)
            impacts = [
                HolidayImpact(
                    sessionNumber=shift.session_number,
                    originalDate=shift.original_date,
                    newDate=shift.new_date,
                    holidayName=shift.holiday_name,
                )
                for shift in shifted.shifts
            ]
            return shifted.sessions, impacts

        impacts = []
        for session in sessions_on_holidays(sessions, holidays):
            name = holidays.get(session.date, "")
            impacts.append(HolidayImpact(
                sessionNumber=session.session_number,
                originalDate=session.date,
                holidayName=name,
            ))
            issues.append(PreviewIssue.warning(
                "session_on_holiday",
                f"session #{session.session_number} on {session.date} falls on a holiday"
                + (f" ({name})" if name else ""),
                session_number=session.session_number,
                date=session.date.isoformat(),
            ))
        return sessions, impacts

    def _session_rows(self, sessions: Sequence[CandidateSession], report: ConflictReport) -> list[SessionPreview]:
        conflicted = report.conflicted_session_numbers()
        rows = []
        for session in sessions:
            teacher_id = self.directory.canonical_teacher_id(session.assigned_teacher_id)
            rows.append(SessionPreview.from_candidate(
                session,
                room_name=self.directory.room_name(session.room_id),
                teacher_name=self.directory.user_name(teacher_id),
                has_conflict=session.session_number in conflicted,
            ))
        return rows

    def _halt(
        self,
        stage: PreviewStage,
        issues: list[PreviewIssue],
        definition: Optional[ScheduleDefinition] = None,
    ) -> PreviewResult:
        logger.info("Preview stopped at %s with %d issues", stage.value, len(issues))
        return PreviewResult(
            canCreate=False,
            stageReached=stage,
            issues=issues,
            totalSessions=definition.total_sessions if definition else 0,
        )


def _has_fatal(issues: Sequence[PreviewIssue]) -> bool:
    return any(issue.fatal for issue in issues)


def preview_schedule(
    store: SessionStore,
    definition: Union[ScheduleDefinition, Mapping[str, Any]],
    holiday_provider: Optional[HolidayProvider] = None,
    config: Optional[PlannerConfig] = None,
    exclude_schedule_id: Optional[int] = None,
) -> PreviewResult:
    """Convenience wrapper around ``PreviewOrchestrator.preview``."""
    orchestrator = PreviewOrchestrator(store, holiday_provider=holiday_provider, config=config)
    return orchestrator.preview(definition, exclude_schedule_id=exclude_schedule_id)
