"""Scheduled jobs for the tasks module.

- Daily reminders for tasks that are overdue or inside their
  ``notify_before_days`` window, grouped by assignee
"""

import logging
from collections import defaultdict
from datetime import date

from src.core.logging import log_with_context
from src.models.service_models import DueReminder
from src.modules.tasks.analytics import get_due_reminders


logger = logging.getLogger(__name__)

UNASSIGNED = "unassigned"


def build_reminder_message(reminders: list[DueReminder]) -> str:
    """Render a plain-text reminder listing for one assignee."""
    lines = []
    for reminder in reminders:
        if reminder.is_overdue:
            when = f"{abs(reminder.days_until_due)} day(s) late"
        elif reminder.days_until_due == 0:
            when = "due today"
        else:
            when = f"{reminder.days_until_due} day(s) left"
        lines.append(f"- {reminder.title} (project {reminder.project_id}, due {reminder.due_date.isoformat()}, {when})")
    return f"{len(reminders)} task(s) need attention:\n" + "\n".join(lines)


async def send_due_reminders(today: date | None = None) -> dict[str, list[DueReminder]]:
    """Emit one reminder per assignee for due-soon and overdue tasks.

    Delivery is a structured log record; a notification channel can consume
    the ``task_due_reminder`` events.

    Returns:
        Reminders grouped by assignee (``"unassigned"`` for tasks without one)
    """
    logger.info("Running due task reminders job")

    reminders = await get_due_reminders(today=today)
    if not reminders:
        logger.info("No tasks need reminders")
        return {}

    by_assignee: dict[str, list[DueReminder]] = defaultdict(list)
    for reminder in reminders:
        by_assignee[reminder.assigned_to or UNASSIGNED].append(reminder)

    for assignee, items in by_assignee.items():
        log_with_context(
            logger,
            "warning" if any(item.is_overdue for item in items) else "info",
            "task_due_reminder",
            assigned_to=assignee,
            task_ids=[item.task_id for item in items],
            overdue_count=sum(1 for item in items if item.is_overdue),
            message_text=build_reminder_message(items),
        )

    logger.info("Completed due reminders job: %d tasks, %d assignees", len(reminders), len(by_assignee))
    return dict(by_assignee)
