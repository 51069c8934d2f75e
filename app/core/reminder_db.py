"""
Lightweight SQLite store for reminders.

Creates reminder.db (path from REMINDER_DB_PATH). Table: reminders (id, name, created_date,
original_due_date, active_due_date, priority, description, snoozed_count).
Rows are returned as plain dicts so they can be serialized straight into prompts.
"""

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from app.core.config import MAX_REMINDERS, REMINDER_DB_PATH
from app.core.errors import ReminderCapacityError, ToolInputValidationError

logger = logging.getLogger(__name__)

_TABLE = "reminders"


def _resolve(db_path: str | Path | None) -> Path:
    return Path(db_path or REMINDER_DB_PATH).resolve()


def _get_conn(db_path: str | Path | None = None) -> sqlite3.Connection:
    path = _resolve(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    # Autocommit; transactions are opened explicitly where a read must guard a write.
    conn = sqlite3.connect(str(path), isolation_level=None)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str | Path | None = None) -> None:
    """Create the reminders table if it does not exist."""
    conn = _get_conn(db_path)
    try:
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {_TABLE} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                created_date TEXT NOT NULL DEFAULT (datetime('now')),
                original_due_date TEXT,
                active_due_date TEXT,
                priority TEXT,
                description TEXT,
                snoozed_count INTEGER NOT NULL DEFAULT 0
            )
            """
        )
    finally:
        conn.close()


def statement_verb(query: str) -> str:
    """Return the leading SQL keyword of a statement, upper-cased ('' when empty)."""
    parts = (query or "").strip().split(None, 1)
    return parts[0].upper() if parts else ""


def count_reminders(db_path: str | Path | None = None) -> int:
    init_db(db_path)
    conn = _get_conn(db_path)
    try:
        return int(conn.execute(f"SELECT COUNT(*) FROM {_TABLE}").fetchone()[0])
    finally:
        conn.close()


def list_reminders(db_path: str | Path | None = None) -> list[dict[str, Any]]:
    """Return all reminders, oldest first."""
    init_db(db_path)
    conn = _get_conn(db_path)
    try:
        cur = conn.execute(f"SELECT * FROM {_TABLE} ORDER BY id ASC")
        return [dict(row) for row in cur.fetchall()]
    finally:
        conn.close()


def add_reminder(
    name: str,
    due_date: str,
    priority: str = "medium",
    description: str = "",
    db_path: str | Path | None = None,
    max_rows: int = MAX_REMINDERS,
) -> int:
    """Insert one reminder directly (used by the seed script). Returns the new id."""
    created = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
    rows = execute_statement(
        f"INSERT INTO {_TABLE} (name, created_date, original_due_date, active_due_date, priority, description) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        [name, created, due_date, due_date, priority, description],
        db_path=db_path,
        max_rows=max_rows,
    )
    return int(rows[0]["last_row_id"])


def execute_statement(
    query: str,
    params: Sequence[Any] = (),
    db_path: str | Path | None = None,
    max_rows: int = MAX_REMINDERS,
) -> list[dict[str, Any]]:
    """
    Execute one statement against the reminders table.

    SELECT returns the matched rows. INSERT returns [{"changes", "last_row_id"}] and runs inside
    BEGIN IMMEDIATE together with the capacity count, so the table never grows past max_rows.
    UPDATE/DELETE return [{"changes"}].

    Raises:
        ReminderCapacityError: INSERT attempted while max_rows reminders already exist.
        ToolInputValidationError: SQLite rejected the statement.
    """
    init_db(db_path)
    verb = statement_verb(query)
    conn = _get_conn(db_path)
    try:
        if verb == "INSERT":
            conn.execute("BEGIN IMMEDIATE")
            total = int(conn.execute(f"SELECT COUNT(*) FROM {_TABLE}").fetchone()[0])
            if total >= max_rows:
                conn.execute("ROLLBACK")
                logger.info("[reminder_db] insert rejected total=%d limit=%d", total, max_rows)
                raise ReminderCapacityError(total, max_rows)
            cur = conn.execute(query, tuple(params))
            conn.execute("COMMIT")
            logger.info("[reminder_db] inserted id=%s", cur.lastrowid)
            return [{"changes": cur.rowcount, "last_row_id": cur.lastrowid}]

        cur = conn.execute(query, tuple(params))
        if verb == "SELECT":
            return [dict(row) for row in cur.fetchall()]
        logger.info("[reminder_db] %s changes=%d", verb, cur.rowcount)
        return [{"changes": cur.rowcount}]
    except sqlite3.Error as e:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        logger.warning("[reminder_db] statement failed: %s", e)
        raise ToolInputValidationError(str(e)) from e
    finally:
        conn.close()


def clear_all(db_path: str | Path | None = None) -> None:
    """Delete all rows."""
    init_db(db_path)
    conn = _get_conn(db_path)
    try:
        conn.execute(f"DELETE FROM {_TABLE}")
        logger.info("[reminder_db] cleared all reminders")
    finally:
        conn.close()
