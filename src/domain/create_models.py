"""Pydantic models for creating records in database."""

from datetime import date

from pydantic import BaseModel, Field, field_validator

from src.domain.task import Priority, TaskType


def _require_text(value: str, field_name: str) -> str:
    stripped = value.strip()
    if not stripped:
        msg = f"{field_name} is required"
        raise ValueError(msg)
    return stripped


class TaskCreate(BaseModel):
    """Request payload for creating a task.

    Schedule consistency (dates, recurrence, reminder window) is checked by the
    lifecycle engine so that every violation is reported together.
    """

    title: str = Field(..., max_length=200, description="Task title")
    description: str = Field(default="", description="Detailed task description")
    task_type: TaskType = Field(..., description="Kind of work")
    frequency: str = Field(..., description="Recurrence frequency, one of the Frequency values")
    start_date: date = Field(..., description="Date the schedule begins")
    due_date: date = Field(..., description="Date the first occurrence is due")
    assigned_to: str | None = Field(default=None, description="Assigned user ID")
    priority: Priority = Field(default=Priority.MEDIUM, description="Task priority")
    is_recurring: bool = Field(default=False, description="Generate a next occurrence on completion")
    notify_before_days: int = Field(default=3, description="Reminder lead time in days")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Reject blank titles."""
        return _require_text(v, "Title")

    @field_validator("assigned_to", mode="before")
    @classmethod
    def empty_assignee_is_none(cls, v: object) -> object:
        """The task form posts an empty string for 'unassigned'."""
        if v == "":
            return None
        if isinstance(v, int):
            return str(v)
        return v


class CommentCreate(BaseModel):
    """Request payload for adding a comment to a task."""

    content: str = Field(..., max_length=2000)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        """Reject blank comments."""
        return _require_text(v, "Content")
