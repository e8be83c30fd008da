"""History and comment domain models for the task audit trail."""

from enum import StrEnum

from pydantic import BaseModel, Field


class TaskAction(StrEnum):
    """Action recorded in the task history."""

    CREATED = "created"
    UPDATED = "updated"
    STARTED = "started"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DELETED = "deleted"


class TaskHistoryEntry(BaseModel):
    """Task history entry for the audit trail."""

    id: str = Field(..., description="Unique history ID from database")
    task_id: str = Field(..., description="ID of task this entry relates to")
    user_id: str | None = Field(default=None, description="ID of user who performed the action")
    action: TaskAction = Field(..., description="Action performed")
    old_value: str | None = Field(default=None, description="JSON snapshot before the change")
    new_value: str | None = Field(default=None, description="JSON payload of the change")
    created: str = Field(..., description="When the action occurred (ISO format)")


class TaskComment(BaseModel):
    """Comment left on a task."""

    id: str
    task_id: str
    user_id: str | None = None
    content: str
    created: str
