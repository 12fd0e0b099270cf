from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy.engine import Connection, Result

from .connection import DatabaseConnection

CORRUPTION_MARKERS = (
    "database disk image is malformed",
    "file is not a database",
    "file is encrypted or is not a database",
)


@contextmanager
def db_cursor(conn_factory: DatabaseConnection) -> Iterator[Connection]:
    """Yield a connection inside a transaction: commit on success, rollback on error."""
    with conn_factory.serialized(), conn_factory.engine.begin() as conn:
        yield conn


def fetchone(result: Result) -> Optional[Dict[str, Any]]:
    row = result.mappings().first()
    return dict(row) if row else None


def fetchall(result: Result) -> List[Dict[str, Any]]:
    return [dict(r) for r in result.mappings().all()]


def is_corruption_error(exc: BaseException) -> bool:
    """True when SQLite reports a damaged database file."""
    message = str(getattr(exc, "orig", None) or exc).lower()
    return any(marker in message for marker in CORRUPTION_MARKERS)


def is_unique_violation(exc: BaseException) -> bool:
    message = str(getattr(exc, "orig", None) or exc).lower()
    return "unique constraint failed" in message
