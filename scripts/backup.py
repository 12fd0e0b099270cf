"""Backup the on-device ledger.

Uses SQLite's online backup API, so the app may keep running (and writing)
while the copy is taken.
"""

from __future__ import annotations

import importlib
import sqlite3
import sys
from datetime import datetime
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.gym_attendance.gym_attendance.database.connection import DBConfig, DatabaseConnection


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    url = settings.DB_CONFIG["url"]
    if not url.startswith("sqlite:///") or url.endswith(":memory:"):
        raise SystemExit(f"Only file-backed SQLite ledgers can be backed up (got {url}).")

    out_dir = REPO_ROOT / "backups"
    out_dir.mkdir(parents=True, exist_ok=True)

    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    out_file = out_dir / f"ledger_{ts}.db"

    conn = DatabaseConnection(DBConfig(url=url))
    raw = conn.engine.raw_connection()
    target = sqlite3.connect(str(out_file))
    try:
        raw.driver_connection.backup(target)
    finally:
        target.close()
        raw.close()
        conn.dispose()
    print(f"OK: Backup created: {out_file}")


if __name__ == "__main__":
    main()
