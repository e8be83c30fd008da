"""Pytest configuration and fixtures for unit tests."""

from datetime import date
from typing import Any

import pytest

from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches src.core.db_client functions to use InMemoryDBClient."""
    monkeypatch.setattr("src.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("src.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("src.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("src.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("src.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("src.core.db_client.transaction", in_memory_db.transaction)

    return in_memory_db


@pytest.fixture
def sample_task_data() -> dict[str, Any]:
    """Returns a valid task form submission."""
    return {
        "title": "Fire extinguisher check",
        "description": "Check pressure gauges in hall B",
        "task_type": "fire_safety",
        "frequency": "monthly",
        "start_date": date(2024, 3, 1),
        "due_date": date(2024, 3, 20),
        "assigned_to": "42",
        "priority": "high",
        "is_recurring": True,
        "notify_before_days": 3,
    }
