"""Pydantic models for service layer return types.

These models provide type safety at service boundaries, converting database
dictionaries into typed objects with validation.
"""

import datetime

from pydantic import BaseModel, Field

from daydone.domain.daily_log import DailyLog
from daydone.domain.task import Task


class LeaderboardEntry(BaseModel):
    """User entry in the hours leaderboard."""

    user_id: str
    user_name: str
    total_hours: float
    rank: int


class LevelProgress(BaseModel):
    """Level reached for a number of points and what is left to the next one."""

    level: int
    points_to_next: float


class DashboardMetrics(BaseModel):
    """Hours for the periods around a reference date, with progress towards targets."""

    reference_date: datetime.date
    today: float
    week: float
    month: float
    year: float
    daily_target: float
    weekly_target: float
    monthly_target: float
    daily_progress: float
    weekly_progress: float
    monthly_progress: float


class PointsSummary(BaseModel):
    """All-time points (hours) and standing for a user."""

    user_id: str
    total_points: float
    rank: int
    total_users: int
    this_week_points: float
    level: int
    points_to_next: float


class SyncCounts(BaseModel):
    """How many task rows a save created, updated and deleted."""

    created: int = 0
    updated: int = 0
    deleted: int = 0


class DailyLogSnapshot(BaseModel):
    """A daily log with its tasks, ordered by creation."""

    daily_log: DailyLog
    tasks: list[Task] = Field(default_factory=list)


class SyncResult(BaseModel):
    """Authoritative state after a save plus what the save did."""

    daily_log: DailyLog
    tasks: list[Task]
    counts: SyncCounts
    is_new_log: bool = False


class TaskChangePlan(BaseModel):
    """Set difference between the persisted tasks of a day and the edited list."""

    to_delete: list[str] = Field(default_factory=list)
    to_update: list[str] = Field(default_factory=list)
    to_create: list[str] = Field(default_factory=list)
    to_adopt: dict[str, str] = Field(default_factory=dict, description="placeholder id -> persisted id")
    dropped: list[str] = Field(default_factory=list, description="blank tasks skipped or removed")
    unknown: list[str] = Field(default_factory=list, description="persisted ids not under this work log")


class CalendarCell(BaseModel):
    """One square of the contribution calendar; date is None for padding."""

    date: datetime.date | None = None
    hours: float = 0.0
    tier: int | None = None

    @property
    def is_empty(self) -> bool:
        return self.date is None


class MonthLabel(BaseModel):
    """Month name shown above the week column where the month first appears."""

    name: str
    week_index: int


class CalendarGrid(BaseModel):
    """Year laid out as week columns of seven cells, Monday first."""

    year: int
    weeks: list[list[CalendarCell]]
    month_labels: list[MonthLabel]
    total_hours: float
    active_days: int
