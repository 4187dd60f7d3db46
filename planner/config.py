"""
Planner configuration.

Values can be set in code or loaded from ``PLANNER_*`` environment variables
(a ``.env`` file in the working directory is read first).

Example:
    PLANNER_DEFAULT_OPEN=08:00
    PLANNER_DEFAULT_CLOSE=21:00
    PLANNER_MAX_SESSIONS=300
"""

from __future__ import annotations

import os
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .data.models import MinutesFromMidnight, time_to_minutes


class PlannerConfig(BaseModel):
    """Engine-wide settings."""
    model_config = ConfigDict(extra="forbid")

    default_open_minutes: MinutesFromMidnight = Field(default=480, description="Branch open time when unset (08:00)")
    default_close_minutes: MinutesFromMidnight = Field(default=1260, description="Branch close time when unset (21:00)")
    max_sessions: int = Field(default=500, ge=1, description="Upper bound on sessions per schedule")
    max_lookahead_days: int = Field(default=732, ge=7, description="Calendar days the generator may walk")
    holiday_years_ahead: int = Field(default=1, ge=0, description="Extra years of holidays to fetch past the end date")
    holiday_timeout_seconds: float = Field(default=15.0, gt=0, description="HTTP timeout for holiday feeds")
    holiday_user_agent: str = Field(
        default="Mozilla/5.0 (compatible; SessionPlanner/1.0)",
        description="User-Agent sent to holiday feeds",
    )
    log_level: str = Field(default="INFO", description="Package log level")

    @model_validator(mode="after")
    def validate_default_hours(self) -> "PlannerConfig":
        """Ensure the default branch window is not empty."""
        if self.default_close_minutes <= self.default_open_minutes:
            raise ValueError(
                f"default_close_minutes ({self.default_close_minutes}) must be greater than "
                f"default_open_minutes ({self.default_open_minutes})"
            )
        return self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> "PlannerConfig":
        """
        Build a config from ``PLANNER_*`` variables.

        Args:
            environ: Mapping to read instead of ``os.environ``
            dotenv: Whether to load a ``.env`` file first

        Returns:
            Validated PlannerConfig
        """
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ

        values: dict[str, Any] = {}
        if "PLANNER_DEFAULT_OPEN" in environ:
            values["default_open_minutes"] = time_to_minutes(environ["PLANNER_DEFAULT_OPEN"])
        if "PLANNER_DEFAULT_CLOSE" in environ:
            values["default_close_minutes"] = time_to_minutes(environ["PLANNER_DEFAULT_CLOSE"])

        simple_fields = {
            "PLANNER_MAX_SESSIONS": "max_sessions",
            "PLANNER_MAX_LOOKAHEAD_DAYS": "max_lookahead_days",
            "PLANNER_HOLIDAY_YEARS_AHEAD": "holiday_years_ahead",
            "PLANNER_HOLIDAY_TIMEOUT": "holiday_timeout_seconds",
            "PLANNER_HOLIDAY_USER_AGENT": "holiday_user_agent",
            "PLANNER_LOG_LEVEL": "log_level",
        }
        for env_name, field_name in simple_fields.items():
            if env_name in environ:
                values[field_name] = environ[env_name]

        return cls.model_validate(values)
