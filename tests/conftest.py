"""Pytest configuration and shared fixtures."""

import logging

import logfire
import pytest

from daydone.core import db_client
from daydone.core.config import settings


logger = logging.getLogger(__name__)


@pytest.fixture(scope="session", autouse=True)
def _quiet_logfire():
    """Keep spans local so tests never try to export telemetry."""
    logfire.configure(send_to_logfire=False, console=False)


@pytest.fixture
async def sqlite_db(tmp_path, monkeypatch):
    """Point the record store at a fresh SQLite file and create the schema."""
    db_path = str(tmp_path / "daydone_test.db")
    monkeypatch.setattr(settings, "sqlite_db_path", db_path)

    await db_client.init_db()
    logger.info("Initialized test database at %s", db_path)
    yield db_path

    await db_client.close_connection()
