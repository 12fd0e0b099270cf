from __future__ import annotations

import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.gym_attendance.gym_attendance.database.bootstrap import apply_schema, list_tables
from src.gym_attendance.gym_attendance.database.connection import DBConfig, DatabaseConnection, ensure_sqlite_parent


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    url = settings.DB_CONFIG["url"]
    ensure_sqlite_parent(url)

    conn = DatabaseConnection(DBConfig(url=url))
    try:
        apply_schema(conn)
        tables = list_tables(conn)
    finally:
        conn.dispose()
    print(f"OK: ledger schema applied -> {url} (tables={', '.join(tables)})")


if __name__ == "__main__":
    main()
