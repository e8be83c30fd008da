"""Unit tests for task analytics."""

from datetime import date

import pytest

from src.modules.tasks import analytics, service


TODAY = date(2024, 3, 15)


@pytest.fixture
async def seeded_tasks(patched_db):
    """Tasks in project 7 covering every effective status, plus one in project 8."""

    async def add(**fields):
        data = {
            "project_id": "7",
            "title": "Task",
            "task_type": "inspection",
            "frequency": "weekly",
            "priority": "medium",
            "start_date": "2024-03-01",
            "due_date": "2024-03-20",
            "is_recurring": True,
            "notify_before_days": 3,
            "status": "pending",
            **fields,
        }
        return await patched_db.create_record(collection=service.TASKS, data=data)

    return {
        "pending": await add(title="Later", due_date="2024-04-01", assigned_to="1"),
        "due_soon": await add(title="Soon", due_date="2024-03-17", assigned_to="1"),
        "due_today": await add(title="Today", due_date="2024-03-15", notify_before_days=0),
        "in_progress": await add(title="Working", status="in_progress", due_date="2024-03-30"),
        "late": await add(title="Late", due_date="2024-03-10", assigned_to="2"),
        "late_in_progress": await add(title="Late WIP", status="in_progress", due_date="2024-03-12"),
        "completed": await add(title="Done", status="completed", due_date="2024-03-05"),
        "cancelled": await add(title="Dropped", status="cancelled", due_date="2024-03-14"),
        "other_project": await add(project_id="8", title="Elsewhere", due_date="2024-03-16"),
    }


@pytest.mark.unit
class TestGetTaskStats:
    """Tests for get_task_stats."""

    async def test_counts_by_effective_status(self, seeded_tasks):
        stats = await analytics.get_task_stats(project_id="7", today=TODAY)

        assert stats.model_dump() == {
            "total": 8,
            "pending": 3,
            "in_progress": 1,
            "completed": 1,
            "overdue": 2,
            "cancelled": 1,
        }

    async def test_empty_project(self, patched_db):
        stats = await analytics.get_task_stats(project_id="99", today=TODAY)

        assert stats.total == 0
        assert stats.overdue == 0


@pytest.mark.unit
class TestGetDueReminders:
    """Tests for get_due_reminders and get_overdue_tasks."""

    async def test_includes_due_soon_and_overdue_across_projects(self, seeded_tasks):
        reminders = await analytics.get_due_reminders(today=TODAY)

        titles = [r.title for r in reminders]
        assert titles == ["Late", "Late WIP", "Today", "Elsewhere", "Soon"]

    async def test_flags_overdue_with_negative_days(self, seeded_tasks):
        reminders = {r.title: r for r in await analytics.get_due_reminders(today=TODAY)}

        assert reminders["Late"].is_overdue is True
        assert reminders["Late"].days_until_due == -5
        assert reminders["Today"].is_overdue is False
        assert reminders["Today"].days_until_due == 0
        assert reminders["Soon"].assigned_to == "1"

    async def test_terminal_tasks_are_never_reminded(self, seeded_tasks):
        reminders = await analytics.get_due_reminders(today=TODAY)

        task_ids = {r.task_id for r in reminders}
        assert seeded_tasks["completed"]["id"] not in task_ids
        assert seeded_tasks["cancelled"]["id"] not in task_ids

    async def test_overdue_subset(self, seeded_tasks):
        overdue = await analytics.get_overdue_tasks(today=TODAY)

        assert [r.title for r in overdue] == ["Late", "Late WIP"]
        assert all(r.is_overdue for r in overdue)
