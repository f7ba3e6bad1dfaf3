"""Task domain models and enums."""

from enum import StrEnum

from pydantic import BaseModel, Field


class TaskStatus(StrEnum):
    """Closed set of statuses a task can be in."""

    STARTED = "Started"
    IN_PROGRESS = "In Progress"
    FINISHED = "Finished"
    PENDING = "Pending"
    ON_HOLD = "On Hold"


class Task(BaseModel):
    """Persisted task attached to one daily log."""

    id: str = Field(..., description="Unique task ID from the record store")
    work_log_id: str = Field(..., description="ID of the daily log this task belongs to")
    user_id: str = Field(..., description="ID of the user owning the task")
    task_name: str = Field(..., description="Short name of the task")
    description: str | None = Field(default=None, description="Optional longer description")
    status: TaskStatus = Field(default=TaskStatus.STARTED, description="Current task status")
    client_ref: str | None = Field(default=None, description="Placeholder id the task was created from")
    version: int = Field(default=1, description="Optimistic-concurrency version")
    created: str | None = Field(default=None, description="Creation timestamp (ISO format)")
    updated: str | None = Field(default=None, description="Last update timestamp (ISO format)")


class EditedTask(BaseModel):
    """Client-side task as submitted for a save.

    The id is either a persisted task id or a placeholder ("temp-...") for a task
    that was added since the day was last loaded.
    """

    id: str = Field(..., description="Persisted task id or temporary placeholder id")
    task_name: str = Field(default="", description="Task name; blank placeholders are dropped on save")
    description: str | None = Field(default=None, description="Optional longer description")
    status: TaskStatus = Field(default=TaskStatus.STARTED, description="Task status")
    version: int | None = Field(default=None, description="Version the client last saw, if any")
