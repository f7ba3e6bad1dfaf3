"""Domain models and DTOs."""

from daydone.domain.daily_log import DailyLog
from daydone.domain.task import EditedTask, Task, TaskStatus
from daydone.domain.user import User, UserCreate


__all__ = [
    "DailyLog",
    "EditedTask",
    "Task",
    "TaskStatus",
    "User",
    "UserCreate",
]
