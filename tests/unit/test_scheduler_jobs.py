"""Unit tests for the due reminder job."""

import logging
from datetime import date

import pytest

from src.models.service_models import DueReminder
from src.modules.tasks import scheduler_jobs, service


TODAY = date(2024, 3, 15)


def _reminder(**overrides) -> DueReminder:
    values = {
        "task_id": "1",
        "project_id": "7",
        "title": "Alarm test",
        "assigned_to": "42",
        "due_date": date(2024, 3, 17),
        "days_until_due": 2,
        "is_overdue": False,
    }
    values.update(overrides)
    return DueReminder(**values)


@pytest.mark.unit
class TestBuildReminderMessage:
    """Tests for build_reminder_message."""

    def test_lists_every_task(self):
        message = scheduler_jobs.build_reminder_message(
            [
                _reminder(title="Alarm test"),
                _reminder(task_id="2", title="Sprinkler check", due_date=date(2024, 3, 12), days_until_due=-3, is_overdue=True),
                _reminder(task_id="3", title="Dock sweep", due_date=TODAY, days_until_due=0),
            ]
        )

        assert message.startswith("3 task(s) need attention:")
        assert "Alarm test (project 7, due 2024-03-17, 2 day(s) left)" in message
        assert "Sprinkler check (project 7, due 2024-03-12, 3 day(s) late)" in message
        assert "Dock sweep (project 7, due 2024-03-15, due today)" in message


@pytest.mark.unit
class TestSendDueReminders:
    """Tests for send_due_reminders."""

    async def _add(self, patched_db, **fields):
        data = {
            "project_id": "7",
            "title": "Task",
            "task_type": "security",
            "frequency": "daily",
            "priority": "high",
            "start_date": "2024-03-01",
            "due_date": "2024-03-16",
            "is_recurring": True,
            "notify_before_days": 3,
            "status": "pending",
            **fields,
        }
        return await patched_db.create_record(collection=service.TASKS, data=data)

    async def test_groups_reminders_by_assignee(self, patched_db):
        await self._add(patched_db, title="Gate lock", assigned_to="1")
        await self._add(patched_db, title="CCTV review", assigned_to="1", due_date="2024-03-10")
        await self._add(patched_db, title="Badge audit", assigned_to="2")
        await self._add(patched_db, title="Fence walk")

        grouped = await scheduler_jobs.send_due_reminders(today=TODAY)

        assert set(grouped) == {"1", "2", scheduler_jobs.UNASSIGNED}
        assert [r.title for r in grouped["1"]] == ["CCTV review", "Gate lock"]
        assert [r.title for r in grouped["2"]] == ["Badge audit"]
        assert [r.title for r in grouped[scheduler_jobs.UNASSIGNED]] == ["Fence walk"]

    async def test_logs_one_event_per_assignee(self, patched_db, caplog):
        await self._add(patched_db, title="Gate lock", assigned_to="1")
        await self._add(patched_db, title="CCTV review", assigned_to="2", due_date="2024-03-10")

        with caplog.at_level(logging.INFO, logger="src.modules.tasks.scheduler_jobs"):
            await scheduler_jobs.send_due_reminders(today=TODAY)

        events = [r for r in caplog.records if r.getMessage() == "task_due_reminder"]
        assert len(events) == 2
        overdue_event = next(r for r in events if r.assigned_to == "2")
        assert overdue_event.levelno == logging.WARNING
        assert overdue_event.overdue_count == 1
        assert "CCTV review" in overdue_event.message_text

    async def test_nothing_due(self, patched_db):
        await self._add(patched_db, due_date="2024-05-01")
        await self._add(patched_db, status="completed", due_date="2024-03-10")

        assert await scheduler_jobs.send_due_reminders(today=TODAY) == {}
