"""Pytest configuration and fixtures for unit tests."""

from datetime import date

import pytest

from daydone.domain.task import EditedTask, TaskStatus
from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches daydone.core.db_client functions to use InMemoryDBClient."""
    monkeypatch.setattr("daydone.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("daydone.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("daydone.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("daydone.core.db_client.delete_records", in_memory_db.delete_records)
    monkeypatch.setattr("daydone.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("daydone.core.db_client.get_first_record", in_memory_db.get_first_record)

    return in_memory_db


@pytest.fixture
async def alice(patched_db):
    """A stored user."""
    return await patched_db.create_record(collection="users", data={"name": "Alice", "email": "alice@example.com"})


@pytest.fixture
async def bob(patched_db):
    """A second stored user."""
    return await patched_db.create_record(collection="users", data={"name": "Bob"})


@pytest.fixture
def work_day():
    return date(2024, 3, 14)


@pytest.fixture
def make_task():
    """Factory for edited tasks."""

    def _make(task_id: str, name: str = "Write report", status: TaskStatus = TaskStatus.STARTED, **kwargs):
        return EditedTask(id=task_id, task_name=name, status=status, **kwargs)

    return _make


async def add_log(db: InMemoryDBClient, *, user_id: str, day: str, hours: float, notes: str = "") -> dict:
    """Store a daily log directly, bypassing the sync service."""
    return await db.create_record(
        collection="daily_logs",
        data={"user_id": user_id, "date": day, "hours_worked": hours, "notes": notes},
    )
