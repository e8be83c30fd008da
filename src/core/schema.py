"""SQLite schema management (code-first approach)."""

import logging

import aiosqlite

from src.core import db_client


logger = logging.getLogger(__name__)


# Central list of all collections in the schema, in dependency order
COLLECTIONS = [
    "project_tasks",
    "task_comments",
    "task_history",
]


_TABLE_DEFINITIONS: dict[str, str] = {
    "project_tasks": """
        CREATE TABLE IF NOT EXISTS project_tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_id INTEGER NOT NULL,
            task_type TEXT NOT NULL CHECK (task_type IN (
                'fire_safety', 'security', 'maintenance', 'inspection',
                'cleaning', 'equipment_check', 'other'
            )),
            title TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            frequency TEXT NOT NULL CHECK (frequency IN (
                'daily', 'weekly', 'biweekly', 'monthly', 'quarterly',
                'semiannual', 'yearly', 'one_time'
            )),
            assigned_to INTEGER,
            status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN (
                'pending', 'in_progress', 'completed', 'cancelled'
            )),
            priority TEXT NOT NULL DEFAULT 'medium' CHECK (priority IN ('low', 'medium', 'high', 'critical')),
            start_date TEXT NOT NULL,
            due_date TEXT NOT NULL,
            last_completed_at TEXT,
            next_due_date TEXT,
            completed_by INTEGER,
            completed_at TEXT,
            completion_notes TEXT,
            is_recurring INTEGER NOT NULL DEFAULT 0,
            notify_before_days INTEGER NOT NULL DEFAULT 3,
            parent_task_id INTEGER REFERENCES project_tasks(id) ON DELETE SET NULL,
            created_by INTEGER,
            updated_by INTEGER,
            created TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            updated TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
        )
    """,
    "task_comments": """
        CREATE TABLE IF NOT EXISTS task_comments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            task_id INTEGER NOT NULL REFERENCES project_tasks(id) ON DELETE CASCADE,
            user_id INTEGER,
            content TEXT NOT NULL,
            created TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
        )
    """,
    "task_history": """
        CREATE TABLE IF NOT EXISTS task_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            task_id INTEGER NOT NULL,
            user_id INTEGER,
            action TEXT NOT NULL,
            old_value TEXT,
            new_value TEXT,
            created TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
        )
    """,
}

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_project_tasks_project ON project_tasks (project_id)",
    "CREATE INDEX IF NOT EXISTS idx_project_tasks_due ON project_tasks (status, due_date)",
    "CREATE INDEX IF NOT EXISTS idx_task_comments_task ON task_comments (task_id)",
    "CREATE INDEX IF NOT EXISTS idx_task_history_task ON task_history (task_id)",
]


async def init_db(*, db_path: str | None = None) -> None:
    """Create all tables and indexes if they do not exist yet.

    Raises:
        DatabaseError: If the database cannot be opened or altered
    """
    try:
        conn = await db_client.get_connection(db_path=db_path)

        for collection in COLLECTIONS:
            await conn.execute(_TABLE_DEFINITIONS[collection])
            logger.debug("Ensured table", extra={"collection": collection})

        for index_sql in _INDEXES:
            await conn.execute(index_sql)

        await conn.commit()
    except (aiosqlite.Error, OSError) as e:
        msg = f"Failed to initialize schema: {e}"
        raise db_client.DatabaseError(msg) from e

    logger.info("Schema initialized", extra={"collections": COLLECTIONS, "db_path": str(db_client.get_db_path(db_path))})
