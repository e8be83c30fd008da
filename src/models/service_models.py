"""Pydantic models for service layer return types.

These models provide type safety at service boundaries, converting database
dictionaries into typed objects with validation.
"""

from datetime import date

from pydantic import BaseModel

from src.domain.log import TaskComment
from src.domain.task import TaskView


class Pagination(BaseModel):
    """Paging metadata for task listings."""

    page: int
    limit: int
    total: int
    pages: int


class TaskPage(BaseModel):
    """One page of tasks with effective statuses applied."""

    tasks: list[TaskView]
    pagination: Pagination


class TaskDetail(BaseModel):
    """Single task together with its comments (newest first)."""

    task: TaskView
    comments: list[TaskComment]


class CompletionOutcome(BaseModel):
    """Persisted result of completing a task."""

    task: TaskView
    next_task: TaskView | None = None


class TaskStats(BaseModel):
    """Counters by effective status for one project."""

    total: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    overdue: int = 0
    cancelled: int = 0


class DueReminder(BaseModel):
    """A live task that needs attention, as seen by the reminder job."""

    task_id: str
    project_id: str
    title: str
    assigned_to: str | None = None
    due_date: date
    days_until_due: int
    is_overdue: bool
