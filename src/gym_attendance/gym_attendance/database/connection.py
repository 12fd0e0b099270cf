from __future__ import annotations

import threading
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import ContextManager, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool


@dataclass
class DBConfig:
    url: str
    echo: bool = False


def _is_memory_url(url: str) -> bool:
    return url in {"sqlite://", "sqlite:///:memory:"}


def ensure_sqlite_parent(url: str) -> None:
    """SQLite creates the database file but not its directory."""
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite" or _is_memory_url(url):
        return
    if parsed.database:
        Path(parsed.database).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


class DatabaseConnection:
    """Lazy SQLAlchemy engine factory for the on-device ledger.

    Note: SQLite is opened in WAL mode with synchronous=FULL so a committed
    append survives a crash or power loss.
    """

    def __init__(self, config: DBConfig):
        self._config = config
        self._engine: Optional[Engine] = None
        # A memory database is one shared sqlite3 connection; worker threads take turns on it.
        self._memory_lock = threading.RLock() if _is_memory_url(config.url) else None

    @property
    def url(self) -> str:
        return self._config.url

    def serialized(self) -> ContextManager:
        """Lock held around each transaction; a no-op for file databases."""
        return self._memory_lock if self._memory_lock is not None else nullcontext()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    def _create_engine(self) -> Engine:
        kwargs: dict = {"echo": self._config.echo, "future": True}
        if _is_memory_url(self._config.url):
            # One shared connection, otherwise each thread sees its own empty database.
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}

        engine = create_engine(self._config.url, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_conn, _record):
            cur = dbapi_conn.cursor()
            try:
                cur.execute("PRAGMA journal_mode=WAL")
                cur.execute("PRAGMA synchronous=FULL")
                cur.execute("PRAGMA busy_timeout=5000")
            finally:
                cur.close()

        return engine

    def connect(self):
        return self.engine.connect()

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
