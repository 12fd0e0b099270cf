from __future__ import annotations

from typing import Iterable

from sqlalchemy import text

from .connection import DatabaseConnection
from .sqlite_base import db_cursor

# The triggers keep the ledger append-only at the storage level: rows are never
# deleted, and the only permitted update is the synced 0 -> 1 flip.
SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS attendance_records (
        record_id   TEXT PRIMARY KEY,
        user_id     TEXT NOT NULL,
        record_type TEXT NOT NULL CHECK (record_type IN ('check-in', 'check-out')),
        record_date TEXT NOT NULL,
        record_time TEXT NOT NULL,
        created_at  INTEGER NOT NULL,
        synced      INTEGER NOT NULL DEFAULT 0,
        synced_at   TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_attendance_user_date ON attendance_records (user_id, record_date)",
    "CREATE INDEX IF NOT EXISTS idx_attendance_unsynced ON attendance_records (synced, created_at)",
    """
    CREATE TABLE IF NOT EXISTS members (
        user_id    TEXT PRIMARY KEY,
        name       TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS ledger_meta (
        meta_key   TEXT PRIMARY KEY,
        meta_value TEXT NOT NULL
    )
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_attendance_no_delete
    BEFORE DELETE ON attendance_records
    BEGIN
        SELECT RAISE(ABORT, 'attendance ledger is append-only');
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_attendance_only_sync_flip
    BEFORE UPDATE ON attendance_records
    WHEN OLD.synced = 1
        OR NEW.synced != 1
        OR NEW.record_id != OLD.record_id
        OR NEW.user_id != OLD.user_id
        OR NEW.record_type != OLD.record_type
        OR NEW.record_date != OLD.record_date
        OR NEW.record_time != OLD.record_time
        OR NEW.created_at != OLD.created_at
    BEGIN
        SELECT RAISE(ABORT, 'only the synced flag of an unsynced record may change');
    END
    """,
)


def _exec_statements(conn, statements: Iterable[str]) -> None:
    for stmt in statements:
        conn.execute(text(stmt))


def apply_schema(conn_factory: DatabaseConnection) -> None:
    """Create tables, indexes and triggers (idempotent: IF NOT EXISTS)."""
    with db_cursor(conn_factory) as conn:
        _exec_statements(conn, SCHEMA_STATEMENTS)


def integrity_check(conn_factory: DatabaseConnection) -> list[str]:
    """Run PRAGMA integrity_check; an empty list means the file is healthy."""
    with db_cursor(conn_factory) as conn:
        rows = [str(r[0]) for r in conn.execute(text("PRAGMA integrity_check")).fetchall()]
    return [] if rows == ["ok"] else rows


def list_tables(conn_factory: DatabaseConnection) -> list[str]:
    with db_cursor(conn_factory) as conn:
        result = conn.execute(text("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"))
        return [row[0] for row in result.fetchall()]
