"""Pure lifecycle functions for recurring project tasks.

Nothing here touches storage: every function takes task values and returns
new values. Callers in ``service`` own persistence.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from dateutil.relativedelta import relativedelta

from src.core.config import constants
from src.core.errors import (
    AlreadyTerminalError,
    InvalidRecurrenceError,
    InvalidTransitionError,
    ScheduleValidationError,
    ScheduleViolation,
)
from src.domain.task import TERMINAL_STATUSES, Frequency, Task, TaskStatus


logger = logging.getLogger(__name__)


# Calendar step per frequency. relativedelta clamps the day of month, so
# Jan 31 + 1 month is the last day of February.
RECURRENCE_STEPS: dict[Frequency, relativedelta] = {
    Frequency.DAILY: relativedelta(days=1),
    Frequency.WEEKLY: relativedelta(weeks=1),
    Frequency.BIWEEKLY: relativedelta(weeks=2),
    Frequency.MONTHLY: relativedelta(months=1),
    Frequency.QUARTERLY: relativedelta(months=3),
    Frequency.SEMIANNUAL: relativedelta(months=6),
    Frequency.YEARLY: relativedelta(years=1),
}

# Stored-state transitions. OVERDUE is derived and never a transition target.
ALLOWED_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.CANCELLED},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.CANCELLED},
    TaskStatus.OVERDUE: {TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.CANCELLED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.CANCELLED: set(),
}


@dataclass(frozen=True)
class CompletionResult:
    """Outcome of completing a task occurrence."""

    updated_task: Task
    new_task_draft: Task | None


def _today(today: date | None) -> date:
    return today if today is not None else date.today()


def can_transition(*, from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """Whether the state machine allows moving between two stored states."""
    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def compute_effective_status(task: Task, today: date | None = None) -> TaskStatus:
    """Return the status to present for a task on a given day.

    Completed and cancelled tasks keep their status. Any other task whose due
    date has passed is reported as overdue.
    """
    if task.status in TERMINAL_STATUSES:
        return task.status
    if _today(today) > task.due_date:
        return TaskStatus.OVERDUE
    return task.status


def days_until_due(task: Task, today: date | None = None) -> int:
    """Signed number of days from ``today`` to the due date (negative when late)."""
    return (task.due_date - _today(today)).days


def is_due_soon(task: Task, today: date | None = None) -> bool:
    """Whether a live task falls inside its reminder window."""
    if task.status in TERMINAL_STATUSES:
        return False
    remaining = days_until_due(task, today)
    return 0 <= remaining <= task.notify_before_days


def next_occurrence(due_date: date, frequency: Frequency | str) -> date:
    """Compute the due date following ``due_date`` for a recurring frequency.

    Raises:
        InvalidRecurrenceError: For ``one_time`` or an unknown frequency
    """
    try:
        step = RECURRENCE_STEPS[Frequency(frequency)]
    except (KeyError, ValueError) as e:
        msg = f"Frequency '{frequency}' has no next occurrence"
        raise InvalidRecurrenceError(msg) from e
    return due_date + step


def complete_task(
    task: Task,
    completed_by: str,
    completion_notes: str | None = None,
    today: date | None = None,
) -> CompletionResult:
    """Complete a task occurrence and, for recurring tasks, draft the next one.

    Raises:
        AlreadyTerminalError: If the task is already completed or cancelled
    """
    if task.status in TERMINAL_STATUSES:
        raise AlreadyTerminalError(task.id, task.status)

    completed_on = _today(today)
    generates_next = task.is_recurring and task.frequency != Frequency.ONE_TIME
    next_due = next_occurrence(task.due_date, task.frequency) if generates_next else None

    updated_task = task.model_copy(
        update={
            "status": TaskStatus.COMPLETED,
            "completed_at": completed_on,
            "completed_by": completed_by,
            "completion_notes": completion_notes,
            "next_due_date": next_due,
        }
    )

    new_task_draft = None
    if next_due is not None:
        new_task_draft = Task(
            project_id=task.project_id,
            title=task.title,
            description=task.description,
            task_type=task.task_type,
            frequency=task.frequency,
            priority=task.priority,
            start_date=task.due_date,
            due_date=next_due,
            is_recurring=task.is_recurring,
            notify_before_days=task.notify_before_days,
            status=TaskStatus.PENDING,
            assigned_to=task.assigned_to,
            parent_task_id=task.id,
            created_by=task.created_by,
        )

    logger.debug(
        "Completed task occurrence",
        extra={"task_id": task.id, "next_due_date": next_due.isoformat() if next_due else None},
    )
    return CompletionResult(updated_task=updated_task, new_task_draft=new_task_draft)


def start_task(task: Task) -> Task:
    """Move a pending task to in progress."""
    if task.status in TERMINAL_STATUSES:
        raise AlreadyTerminalError(task.id, task.status)
    if not can_transition(from_status=task.status, to_status=TaskStatus.IN_PROGRESS):
        msg = f"Cannot start: task {task.id} is in {task.status} state"
        raise InvalidTransitionError(msg)
    return task.model_copy(update={"status": TaskStatus.IN_PROGRESS})


def cancel_task(task: Task) -> Task:
    """Cancel a pending or in-progress task."""
    if task.status in TERMINAL_STATUSES:
        raise AlreadyTerminalError(task.id, task.status)
    return task.model_copy(update={"status": TaskStatus.CANCELLED})


def _read(task: Task | Mapping[str, Any], name: str) -> Any:
    if isinstance(task, Mapping):
        return task.get(name)
    return getattr(task, name)


def _as_date(value: Any) -> date | None:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def validate_schedule(task: Task | Mapping[str, Any]) -> None:
    """Check every schedule rule and report all violations at once.

    Accepts a Task or the raw field mapping a form submits.

    Raises:
        ScheduleValidationError: Listing every violated rule
    """
    violations: list[ScheduleViolation] = []

    start = _as_date(_read(task, "start_date"))
    due = _as_date(_read(task, "due_date"))
    if start is None:
        violations.append(ScheduleViolation(field="start_date", message="Start date must be a valid date"))
    if due is None:
        violations.append(ScheduleViolation(field="due_date", message="Due date must be a valid date"))
    if start is not None and due is not None and due < start:
        violations.append(ScheduleViolation(field="due_date", message="Due date cannot be before the start date"))

    raw_frequency = _read(task, "frequency")
    frequency: Frequency | None
    try:
        frequency = Frequency(raw_frequency)
    except ValueError:
        frequency = None
        violations.append(ScheduleViolation(field="frequency", message=f"Unknown frequency: {raw_frequency}"))

    if bool(_read(task, "is_recurring")) and frequency == Frequency.ONE_TIME:
        violations.append(ScheduleViolation(field="frequency", message="A recurring task cannot be one-time"))

    notify_before_days = _read(task, "notify_before_days")
    if isinstance(notify_before_days, bool) or not isinstance(notify_before_days, int):
        violations.append(ScheduleViolation(field="notify_before_days", message="Reminder lead time must be an integer"))
    elif notify_before_days < 0:
        violations.append(ScheduleViolation(field="notify_before_days", message="Reminder lead time cannot be negative"))
    elif notify_before_days > constants.MAX_NOTIFY_BEFORE_DAYS:
        violations.append(
            ScheduleViolation(
                field="notify_before_days",
                message=f"Reminder lead time cannot exceed {constants.MAX_NOTIFY_BEFORE_DAYS} days",
            )
        )

    if violations:
        raise ScheduleValidationError(violations)
