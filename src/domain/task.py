"""Task domain models and enums for recurring project tasks."""

from datetime import date
from enum import StrEnum

from pydantic import BaseModel, Field


class TaskType(StrEnum):
    """Kind of warehouse work a task covers."""

    FIRE_SAFETY = "fire_safety"
    SECURITY = "security"
    MAINTENANCE = "maintenance"
    INSPECTION = "inspection"
    CLEANING = "cleaning"
    EQUIPMENT_CHECK = "equipment_check"
    OTHER = "other"


class Frequency(StrEnum):
    """How often a task recurs."""

    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMIANNUAL = "semiannual"
    YEARLY = "yearly"
    ONE_TIME = "one_time"


class Priority(StrEnum):
    """Task priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TaskStatus(StrEnum):
    """Task occurrence lifecycle state.

    OVERDUE is never stored; it is derived from the due date at read time.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


TERMINAL_STATUSES: frozenset[TaskStatus] = frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED})

# Sort weight used when listing tasks (highest priority first)
PRIORITY_RANK: dict[Priority, int] = {
    Priority.CRITICAL: 3,
    Priority.HIGH: 2,
    Priority.MEDIUM: 1,
    Priority.LOW: 0,
}


class Task(BaseModel):
    """Task data transfer object.

    ``id`` is None for drafts that have not been persisted yet.
    """

    id: str | None = Field(default=None, description="Unique task ID from database")
    project_id: str = Field(..., description="Owning project ID")
    title: str = Field(..., description="Task title")
    description: str = Field(default="", description="Detailed task description")
    task_type: TaskType = Field(default=TaskType.MAINTENANCE, description="Kind of work")
    frequency: Frequency = Field(default=Frequency.MONTHLY, description="Recurrence frequency")
    priority: Priority = Field(default=Priority.MEDIUM, description="Task priority")
    start_date: date = Field(..., description="Date the schedule begins")
    due_date: date = Field(..., description="Date the current occurrence is due")
    is_recurring: bool = Field(default=False, description="Whether completion generates a next occurrence")
    notify_before_days: int = Field(default=3, description="Reminder lead time in days")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Stored lifecycle state")
    assigned_to: str | None = Field(default=None, description="Assigned user ID")
    completed_at: date | None = Field(default=None, description="Completion date")
    completed_by: str | None = Field(default=None, description="User ID that completed the task")
    completion_notes: str | None = Field(default=None, description="Notes entered on completion")
    next_due_date: date | None = Field(default=None, description="Due date of the generated next occurrence")
    last_completed_at: str | None = Field(default=None, description="Timestamp of the last completion (ISO format)")
    parent_task_id: str | None = Field(default=None, description="Occurrence this task was generated from")
    created_by: str | None = Field(default=None, description="Creator user ID")
    updated_by: str | None = Field(default=None, description="Last editor user ID")
    created: str | None = Field(default=None, description="Creation timestamp (ISO format)")
    updated: str | None = Field(default=None, description="Last update timestamp (ISO format)")

    @property
    def is_terminal(self) -> bool:
        """Whether the occurrence is completed or cancelled."""
        return self.status in TERMINAL_STATUSES


class TaskView(Task):
    """Task as presented to clients, with derived fields filled in."""

    effective_status: TaskStatus = Field(..., description="Status with overdue applied")
    days_until_due: int = Field(..., description="Signed days until the due date (negative when late)")
    is_due_soon: bool = Field(default=False, description="Due within the reminder window")
