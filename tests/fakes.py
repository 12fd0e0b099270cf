from __future__ import annotations

import asyncio
from datetime import date, datetime, time
from pathlib import Path
from typing import Iterable, Optional

from src.gym_attendance.gym_attendance.attendance.model import AttendanceRecord
from src.gym_attendance.gym_attendance.attendance.service import AttendanceService
from src.gym_attendance.gym_attendance.attendance.sqlite_ledger import SQLiteLocalLedger
from src.gym_attendance.gym_attendance.core.enums import AttendanceType, Role
from src.gym_attendance.gym_attendance.core.exceptions import SyncTransportError
from src.gym_attendance.gym_attendance.database.connection import DBConfig, DatabaseConnection
from src.gym_attendance.gym_attendance.qr.codec import JsonQRCodec
from src.gym_attendance.gym_attendance.sync.engine import SyncEngine
from src.gym_attendance.gym_attendance.users.model import CurrentUser

ADMIN = CurrentUser(user_id="a1", name="Admin", role=Role.ADMIN)
MEMBER = CurrentUser(user_id="u1", name="Ann", role=Role.MEMBER)


class FakeRemote:
    """In-memory remote authority; upsert is idempotent by record id."""

    def __init__(self, *, reject: Iterable[str] = (), records: Iterable[AttendanceRecord] = (), delay: float = 0.0):
        self.store: dict[str, dict] = {}
        self.reject = set(reject)
        self.records = list(records)
        self.delay = delay
        self.upsert_calls = 0
        self.fetch_calls = 0

    async def upsert(self, record: AttendanceRecord) -> None:
        self.upsert_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if record.record_id in self.reject or record.user_id in self.reject:
            raise SyncTransportError("rejected: HTTP 422", status_code=422)
        self.store.setdefault(record.record_id, record.to_payload())

    async def fetch(self, *, user_id=None, work_date=None):
        self.fetch_calls += 1
        return [
            r
            for r in self.records
            if (user_id is None or r.user_id == user_id) and (work_date is None or r.work_date == work_date)
        ]


class StaticConnectivity:
    def __init__(self, online: bool = True):
        self.online = online

    def is_online(self) -> bool:
        return self.online


class FakeProbe:
    """Returns queued results in order, repeating the last one."""

    def __init__(self, *results):
        self.results = list(results) or [True]
        self.calls = 0

    async def check(self) -> bool:
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class FakeAuth:
    def __init__(self, user: Optional[CurrentUser] = None):
        self.user = user

    def current_user(self) -> Optional[CurrentUser]:
        return self.user


def make_ledger(tmp_path: Path, *, device_id: str = "dev1", name: str = "ledger.db"):
    conn = DatabaseConnection(DBConfig(url=f"sqlite:///{tmp_path / name}"))
    return conn, SQLiteLocalLedger(conn, device_id=device_id)


def make_record(
    record_id: str,
    user_id: str = "u1",
    *,
    record_type: AttendanceType = AttendanceType.CHECK_IN,
    on: date = date(2024, 1, 1),
    at: time = time(9, 0),
    created_at: int = 1,
    synced: bool = False,
) -> AttendanceRecord:
    return AttendanceRecord(
        record_id=record_id,
        user_id=user_id,
        record_type=record_type,
        work_date=on,
        work_time=at,
        created_at=created_at,
        synced=synced,
    )


def make_service(ledger, remote=None, connectivity=None, *, user=None, timeout: float = 1.0, **kwargs):
    remote = remote or FakeRemote()
    connectivity = connectivity or StaticConnectivity(True)
    engine = SyncEngine(ledger, remote, connectivity, timeout=timeout)
    service = AttendanceService(
        ledger,
        engine,
        connectivity,
        auth=FakeAuth(user),
        codec=JsonQRCodec(),
        **kwargs,
    )
    return service, engine


JAN_1_9AM = datetime(2024, 1, 1, 9, 0, 0)
