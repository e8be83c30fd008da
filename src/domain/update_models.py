"""Update models for database operations."""

from datetime import date

from pydantic import BaseModel, Field, field_validator

from src.domain.task import Priority, TaskStatus, TaskType


class TaskUpdate(BaseModel):
    """Partial update payload for a task; unset fields are left untouched."""

    title: str | None = Field(default=None, max_length=200)
    description: str | None = None
    task_type: TaskType | None = None
    frequency: str | None = Field(default=None, description="Recurrence frequency, one of the Frequency values")
    start_date: date | None = None
    due_date: date | None = None
    assigned_to: str | None = None
    priority: Priority | None = None
    status: TaskStatus | None = None
    is_recurring: bool | None = None
    notify_before_days: int | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        """Reject blank titles."""
        if v is not None and not v.strip():
            msg = "Title is required"
            raise ValueError(msg)
        return v.strip() if v else v

    @field_validator("assigned_to", mode="before")
    @classmethod
    def normalize_assignee(cls, v: object) -> object:
        """Accept numeric user IDs from the client."""
        if isinstance(v, int):
            return str(v)
        return v


class TaskCompletion(BaseModel):
    """Payload for completing a task."""

    completion_notes: str | None = Field(default=None, max_length=2000)
