"""Session Planner - recurring schedule generation and conflict detection."""

from .config import PlannerConfig
from .commit import CommitOrchestrator, CommitPlan
from .preview import PreviewOrchestrator, preview_schedule
from .data.models import CandidateSession, ScheduleDefinition, SessionSlot
from .data.store import Directory, InMemorySessionStore
from .output.schema import ConflictReport, PreviewIssue, PreviewResult, PreviewStage
from .cli import app as cli_app

__all__ = [
    # Configuration
    "PlannerConfig",
    # Orchestrators
    "CommitOrchestrator",
    "CommitPlan",
    "PreviewOrchestrator",
    "preview_schedule",
    # Models
    "CandidateSession",
    "ScheduleDefinition",
    "SessionSlot",
    "Directory",
    "InMemorySessionStore",
    # Results
    "ConflictReport",
    "PreviewIssue",
    "PreviewResult",
    "PreviewStage",
    # CLI
    "cli_app",
]
