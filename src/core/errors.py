"""Task lifecycle error taxonomy and error classification utilities."""

from enum import Enum
from typing import Any

from pydantic import BaseModel

from src.core.db_client import DatabaseError, RecordNotFoundError


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Task lifecycle errors
    ERR_SCHEDULE_INVALID = "ERR_SCHEDULE_INVALID"
    ERR_TASK_TERMINAL = "ERR_TASK_TERMINAL"
    ERR_INVALID_RECURRENCE = "ERR_INVALID_RECURRENCE"
    ERR_INVALID_STATE_TRANSITION = "ERR_INVALID_STATE_TRANSITION"
    ERR_TASK_NOT_FOUND = "ERR_TASK_NOT_FOUND"

    # Storage errors
    ERR_DATABASE = "ERR_DATABASE"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class TaskLifecycleError(Exception):
    """Base class for task engine and service errors.

    Carries a machine-readable ``kind`` (one of the ErrorCode values) and a
    human-readable ``detail``.
    """

    kind: str = ErrorCode.ERR_UNKNOWN

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ScheduleViolation(BaseModel):
    """A single failed schedule rule, addressed to a form field."""

    field: str
    message: str


class ScheduleValidationError(TaskLifecycleError):
    """Raised when a task schedule breaks one or more rules."""

    kind = ErrorCode.ERR_SCHEDULE_INVALID

    def __init__(self, violations: list[ScheduleViolation]) -> None:
        self.violations = violations
        summary = "; ".join(f"{v.field}: {v.message}" for v in violations)
        super().__init__(f"Invalid task schedule: {summary}")


class AlreadyTerminalError(TaskLifecycleError):
    """Raised when acting on a task that is already completed or cancelled."""

    kind = ErrorCode.ERR_TASK_TERMINAL

    def __init__(self, task_id: str | None, status: str) -> None:
        self.task_id = task_id
        self.status = status
        super().__init__(f"Task {task_id or '<new>'} is already {status}")


class InvalidRecurrenceError(TaskLifecycleError):
    """Raised when a next occurrence is requested for a non-recurring frequency."""

    kind = ErrorCode.ERR_INVALID_RECURRENCE


class InvalidTransitionError(TaskLifecycleError):
    """Raised for a state change the task state machine does not allow."""

    kind = ErrorCode.ERR_INVALID_STATE_TRANSITION


class TaskNotFoundError(TaskLifecycleError):
    """Raised when a task does not exist within the requested project."""

    kind = ErrorCode.ERR_TASK_NOT_FOUND

    def __init__(self, task_id: str, project_id: str | None = None) -> None:
        self.task_id = task_id
        self.project_id = project_id
        where = f" in project {project_id}" if project_id else ""
        super().__init__(f"Task not found{where}: {task_id}")


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity
    details: list[dict[str, Any]] = []


def classify_error_with_response(exception: Exception) -> ErrorResponse:  # noqa: PLR0911
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised while serving a request

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    if isinstance(exception, ScheduleValidationError):
        return ErrorResponse(
            code=exception.kind,
            message="The task schedule is invalid.",
            suggestion="Fix the highlighted fields and submit again.",
            severity=ErrorSeverity.LOW,
            details=[v.model_dump() for v in exception.violations],
        )

    if isinstance(exception, AlreadyTerminalError):
        return ErrorResponse(
            code=exception.kind,
            message=f"This task is already {exception.status}.",
            suggestion="Reload the task list to see its current state.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, InvalidTransitionError):
        return ErrorResponse(
            code=exception.kind,
            message="This action cannot be performed in the task's current state.",
            suggestion="Reload the task and try again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, TaskNotFoundError | RecordNotFoundError):
        return ErrorResponse(
            code=ErrorCode.ERR_TASK_NOT_FOUND,
            message="Task not found.",
            suggestion="Check the project and task identifiers.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, InvalidRecurrenceError):
        return ErrorResponse(
            code=exception.kind,
            message="A next occurrence was requested for a one-time task.",
            suggestion="Report this to the maintainers.",
            severity=ErrorSeverity.HIGH,
        )

    if isinstance(exception, DatabaseError):
        return ErrorResponse(
            code=ErrorCode.ERR_DATABASE,
            message="The task store is unavailable.",
            suggestion="Please try again later.",
            severity=ErrorSeverity.CRITICAL,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, contact support.",
        severity=ErrorSeverity.MEDIUM,
    )
