"""SQLite schema management (code-first approach)."""

import logging

from daydone.core import db_client
from daydone.domain.task import TaskStatus


logger = logging.getLogger(__name__)


# Central list of all collections in the schema, in dependency order
COLLECTIONS = [
    "users",
    "daily_logs",
    "tasks",
]

_TIMESTAMP_DEFAULT = "(strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"

_STATUS_VALUES = ", ".join(f"'{status.value}'" for status in TaskStatus)


def _get_collection_ddl(collection_name: str) -> list[str]:
    """Get the CREATE statements for a collection.

    daily_logs is unique on (user_id, date). tasks reference their work log through
    (work_log_id, user_id) so a task can only hang off a log owned by the same user.
    """
    schemas = {
        "users": [
            f"""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL CHECK (length(trim(name)) > 0),
                email TEXT NOT NULL DEFAULT '',
                created TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
                updated TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT}
            )
            """,
        ],
        "daily_logs": [
            f"""
            CREATE TABLE IF NOT EXISTS daily_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users (id),
                date TEXT NOT NULL,
                hours_worked REAL NOT NULL DEFAULT 0 CHECK (hours_worked >= 0),
                notes TEXT NOT NULL DEFAULT '',
                version INTEGER NOT NULL DEFAULT 1,
                created TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
                updated TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
                UNIQUE (user_id, date),
                UNIQUE (id, user_id)
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_daily_logs_date ON daily_logs (date)",
        ],
        "tasks": [
            f"""
            CREATE TABLE IF NOT EXISTS tasks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                work_log_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                task_name TEXT NOT NULL CHECK (length(trim(task_name)) > 0),
                description TEXT,
                status TEXT NOT NULL CHECK (status IN ({_STATUS_VALUES})),
                client_ref TEXT,
                version INTEGER NOT NULL DEFAULT 1,
                created TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
                updated TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
                FOREIGN KEY (work_log_id, user_id) REFERENCES daily_logs (id, user_id) ON DELETE CASCADE
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_tasks_work_log ON tasks (work_log_id)",
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_tasks_client_ref ON tasks (work_log_id, client_ref)",
        ],
    }
    return schemas[collection_name]


async def init_db(*, db_path: str | None = None) -> None:
    """Create all tables and indexes (idempotent).

    Args:
        db_path: Optional database path. If not provided, uses settings.sqlite_db_path.
    """
    logger.info("Starting SQLite schema init...")

    conn = await db_client.get_connection(db_path=db_path)
    for collection_name in COLLECTIONS:
        for statement in _get_collection_ddl(collection_name):
            await conn.execute(statement)
        logger.info("Ensured collection: %s", collection_name)
    await conn.commit()

    logger.info("SQLite schema init complete")
