"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator, Callable
from datetime import date
from pathlib import Path
from typing import Any

import pytest

from src.core import db_client
from src.core.config import settings
from src.domain.task import Frequency, Priority, Task, TaskStatus, TaskType


# Fixed "today" so due-date arithmetic is deterministic
TODAY = date(2024, 3, 15)


@pytest.fixture
def today() -> date:
    """The reference date used by lifecycle tests."""
    return TODAY


@pytest.fixture
def make_task() -> Callable[..., Task]:
    """Factory for Task objects with sensible defaults."""

    def _make_task(**overrides: Any) -> Task:
        values: dict[str, Any] = {
            "id": "1",
            "project_id": "7",
            "title": "Fire extinguisher check",
            "task_type": TaskType.FIRE_SAFETY,
            "frequency": Frequency.MONTHLY,
            "priority": Priority.HIGH,
            "start_date": date(2024, 3, 1),
            "due_date": date(2024, 3, 20),
            "is_recurring": True,
            "notify_before_days": 3,
            "status": TaskStatus.PENDING,
            "assigned_to": "42",
            "created_by": "5",
        }
        values.update(overrides)
        return Task(**values)

    return _make_task


@pytest.fixture
async def sqlite_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[Path]:
    """Point the client at a fresh SQLite file with the schema applied."""
    db_path = tmp_path / "tasks.db"
    monkeypatch.setattr(settings, "sqlite_db_path", str(db_path))

    await db_client.init_db()
    yield db_path
    await db_client.close_connection()
