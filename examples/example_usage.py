"""Example: drive the service layer directly (no Flask).

Records a check-in on this device, then tries to replicate it. Without a
reachable remote the record simply stays queued in the local ledger.
"""

import asyncio
import importlib

from config import get_settings_module

from src.gym_attendance.gym_attendance.container import build_container
from src.gym_attendance.gym_attendance.database.connection import ensure_sqlite_parent


async def run(container) -> None:
    service = container.attendance_service
    await container.ledger.open()
    await container.connectivity.refresh()

    record = await service.record_attendance("u1", "check-in")
    print("recorded:", record.to_dict())
    print("unsynced:", await service.unsynced_count())

    summary = await service.sync_now()
    print("sync:", summary.to_dict())

    await container.tasks.drain()
    for r in await service.get_history("u1"):
        print(r.work_date, r.work_time, r.record_type.value, "synced" if r.synced else "queued")


def main():
    settings = importlib.import_module(get_settings_module())
    ensure_sqlite_parent(settings.DB_CONFIG["url"])
    container = build_container(db_config=settings.DB_CONFIG, sync_config=settings.SYNC_CONFIG)
    try:
        asyncio.run(run(container))
    finally:
        container.conn.dispose()


if __name__ == "__main__":
    main()
