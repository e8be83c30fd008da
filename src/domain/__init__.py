"""Domain models and DTOs."""

from src.domain.create_models import CommentCreate, TaskCreate
from src.domain.log import TaskAction, TaskComment, TaskHistoryEntry
from src.domain.task import (
    TERMINAL_STATUSES,
    Frequency,
    Priority,
    Task,
    TaskStatus,
    TaskType,
    TaskView,
)
from src.domain.update_models import TaskCompletion, TaskUpdate


__all__ = [
    "TERMINAL_STATUSES",
    "CommentCreate",
    "Frequency",
    "Priority",
    "Task",
    "TaskAction",
    "TaskComment",
    "TaskCompletion",
    "TaskCreate",
    "TaskHistoryEntry",
    "TaskStatus",
    "TaskType",
    "TaskUpdate",
    "TaskView",
]
