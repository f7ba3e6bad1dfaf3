"""DailyLog domain model: one user's hours and notes for a calendar date."""

import datetime

from pydantic import BaseModel, Field


class DailyLog(BaseModel):
    """Daily work log data transfer object."""

    id: str = Field(..., description="Unique work log ID from the record store")
    user_id: str = Field(..., description="ID of the user owning this log")
    date: datetime.date = Field(..., description="Calendar date the hours were worked")
    hours_worked: float = Field(default=0.0, ge=0, description="Hours worked that day")
    notes: str = Field(default="", description="Free-text notes for the day")
    version: int = Field(default=1, description="Optimistic-concurrency version")
    created: str | None = Field(default=None, description="Creation timestamp (ISO format)")
    updated: str | None = Field(default=None, description="Last update timestamp (ISO format)")
