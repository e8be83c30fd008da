"""Analytics over project tasks.

- Status counters for the task dashboard (by effective status)
- Due-soon and overdue lookups feeding the reminder job
"""

import logging
from datetime import date

from src.core.db_client import sanitize_param
from src.core.logging import span
from src.domain.task import TaskStatus
from src.models.service_models import DueReminder, TaskStats
from src.modules.tasks import engine
from src.modules.tasks.service import LIVE_FILTER, fetch_tasks


logger = logging.getLogger(__name__)


async def get_task_stats(*, project_id: str, today: date | None = None) -> TaskStats:
    """Count a project's tasks by effective status."""
    with span("task_analytics.get_task_stats"):
        tasks = await fetch_tasks(filter_query=f'project_id = "{sanitize_param(project_id)}"')

        counts = dict.fromkeys(TaskStatus, 0)
        for task in tasks:
            counts[engine.compute_effective_status(task, today)] += 1

        return TaskStats(
            total=len(tasks),
            pending=counts[TaskStatus.PENDING],
            in_progress=counts[TaskStatus.IN_PROGRESS],
            completed=counts[TaskStatus.COMPLETED],
            overdue=counts[TaskStatus.OVERDUE],
            cancelled=counts[TaskStatus.CANCELLED],
        )


async def get_due_reminders(*, today: date | None = None) -> list[DueReminder]:
    """Live tasks across all projects that are overdue or inside their reminder window.

    Sorted by due date, most urgent first.
    """
    with span("task_analytics.get_due_reminders"):
        reminders = []
        for task in await fetch_tasks(filter_query=LIVE_FILTER):
            overdue = engine.compute_effective_status(task, today) == TaskStatus.OVERDUE
            if not overdue and not engine.is_due_soon(task, today):
                continue
            reminders.append(
                DueReminder(
                    task_id=task.id or "",
                    project_id=task.project_id,
                    title=task.title,
                    assigned_to=task.assigned_to,
                    due_date=task.due_date,
                    days_until_due=engine.days_until_due(task, today),
                    is_overdue=overdue,
                )
            )

        reminders.sort(key=lambda r: (r.due_date, r.task_id))
        logger.debug("Found %d tasks needing reminders", len(reminders))
        return reminders


async def get_overdue_tasks(*, today: date | None = None) -> list[DueReminder]:
    """Only the overdue subset of :func:`get_due_reminders`."""
    return [reminder for reminder in await get_due_reminders(today=today) if reminder.is_overdue]
