from __future__ import annotations

import asyncio
import threading
from datetime import date, time

import pytest
from sqlalchemy import text
from sqlalchemy.exc import DatabaseError

from src.gym_attendance.gym_attendance.attendance.sqlite_ledger import SQLiteLocalLedger
from src.gym_attendance.gym_attendance.core.exceptions import DuplicateIdError, NotFoundError, StorageCorruptionError
from src.gym_attendance.gym_attendance.database.connection import DBConfig, DatabaseConnection
from src.gym_attendance.gym_attendance.database.sqlite_base import db_cursor
from tests.fakes import make_ledger, make_record


def test_append_then_read_back(ledger):
    async def scenario():
        await ledger.open()
        await ledger.append(make_record("dev1-a", created_at=7))
        return await ledger.get("dev1-a")

    rec = asyncio.run(scenario())

    assert rec == make_record("dev1-a", created_at=7)


def test_duplicate_append_raises_and_leaves_ledger_unchanged(ledger):
    async def scenario():
        await ledger.open()
        await ledger.append(make_record("dev1-a", at=time(9, 0)))
        with pytest.raises(DuplicateIdError):
            await ledger.append(make_record("dev1-a", at=time(10, 0)))
        return await ledger.query()

    records = asyncio.run(scenario())

    assert len(records) == 1
    assert records[0].work_time == time(9, 0)


def test_mark_synced_unknown_id_raises(ledger):
    async def scenario():
        await ledger.open()
        await ledger.mark_synced("missing")

    with pytest.raises(NotFoundError):
        asyncio.run(scenario())


def test_mark_synced_is_idempotent(ledger):
    async def scenario():
        await ledger.open()
        await ledger.append(make_record("dev1-a"))
        await ledger.mark_synced("dev1-a")
        await ledger.mark_synced("dev1-a")
        return await ledger.get("dev1-a"), await ledger.list_unsynced()

    rec, unsynced = asyncio.run(scenario())

    assert rec.synced is True
    assert list(unsynced) == []


def test_query_orders_by_date_time_then_created_at(ledger):
    async def scenario():
        await ledger.open()
        await ledger.append(make_record("c", on=date(2024, 1, 2), at=time(8, 0), created_at=1))
        await ledger.append(make_record("b", on=date(2024, 1, 1), at=time(9, 0), created_at=5))
        await ledger.append(make_record("a", on=date(2024, 1, 1), at=time(9, 0), created_at=3))
        await ledger.append(make_record("z", user_id="u2", on=date(2024, 1, 1), at=time(7, 0), created_at=2))
        return await ledger.query(user_id="u1"), await ledger.query(work_date=date(2024, 1, 1))

    mine, day = asyncio.run(scenario())

    assert [r.record_id for r in mine] == ["a", "b", "c"]
    assert [r.record_id for r in day] == ["z", "a", "b"]


def test_list_unsynced_is_creation_ordered(ledger):
    async def scenario():
        await ledger.open()
        await ledger.append(make_record("late", at=time(7, 0), created_at=30))
        await ledger.append(make_record("early", at=time(11, 0), created_at=10))
        await ledger.append(make_record("done", created_at=20, synced=True))
        return await ledger.list_unsynced()

    unsynced = asyncio.run(scenario())

    assert [r.record_id for r in unsynced] == ["early", "late"]


def test_count_members_counts_distinct_users(ledger):
    async def scenario():
        await ledger.open()
        await ledger.append(make_record("a", user_id="u1"))
        await ledger.append(make_record("b", user_id="u1", created_at=2))
        await ledger.append(make_record("c", user_id="u2", created_at=3))
        return await ledger.count_members()

    assert asyncio.run(scenario()) == 2


def test_rows_cannot_be_deleted_or_rewritten(ledger_env):
    conn, ledger = ledger_env

    async def scenario():
        await ledger.open()
        await ledger.append(make_record("dev1-a"))

    asyncio.run(scenario())

    with pytest.raises(DatabaseError):
        with db_cursor(conn) as c:
            c.execute(text("DELETE FROM attendance_records WHERE record_id='dev1-a'"))

    with pytest.raises(DatabaseError):
        with db_cursor(conn) as c:
            c.execute(text("UPDATE attendance_records SET user_id='u9' WHERE record_id='dev1-a'"))


def test_device_id_survives_reopen(tmp_path):
    conn1, first = make_ledger(tmp_path, device_id="kiosk-1")
    conn2, second = make_ledger(tmp_path, device_id="kiosk-2")

    async def scenario():
        await first.open()
        a = await first.device_id()
        await second.open()
        b = await second.device_id()
        return a, b

    try:
        assert asyncio.run(scenario()) == ("kiosk-1", "kiosk-1")
    finally:
        conn1.dispose()
        conn2.dispose()


def test_device_id_is_generated_when_not_configured(tmp_path):
    conn, ledger = make_ledger(tmp_path, device_id=None)

    async def scenario():
        await ledger.open()
        return await ledger.device_id()

    try:
        assert asyncio.run(scenario()).startswith("device-")
    finally:
        conn.dispose()


def test_corrupt_file_halts_writes(tmp_path):
    (tmp_path / "ledger.db").write_bytes(b"this is not a sqlite database" * 64)
    conn, ledger = make_ledger(tmp_path)

    async def scenario():
        with pytest.raises(StorageCorruptionError):
            await ledger.open()
        with pytest.raises(StorageCorruptionError):
            await ledger.append(make_record("dev1-a"))

    try:
        asyncio.run(scenario())
        assert ledger.halted
    finally:
        conn.dispose()


def test_member_names_keep_latest_name(ledger):
    async def scenario():
        await ledger.open()
        await ledger.remember_member("u1", "Ann")
        await ledger.remember_member("u1", "Ann Lee")
        await ledger.remember_member("u2", "Bob")
        return await ledger.member_names(["u1", "u3"]), await ledger.member_names([])

    names, empty = asyncio.run(scenario())

    assert names == {"u1": "Ann Lee"}
    assert empty == {}


def test_memory_database_serializes_access_across_threads():
    conn = DatabaseConnection(DBConfig(url="sqlite:///:memory:"))
    seen: list[bool] = []

    try:
        with db_cursor(conn) as c:
            c.execute(text("SELECT 1"))
            worker = threading.Thread(target=lambda: seen.append(conn.serialized().acquire(blocking=False)))
            worker.start()
            worker.join()
    finally:
        conn.dispose()

    assert seen == [False]


def test_memory_ledger_handles_reads_during_writes():
    conn = DatabaseConnection(DBConfig(url="sqlite:///:memory:"))
    ledger = SQLiteLocalLedger(conn, device_id="mem")

    async def writer():
        for i in range(60):
            await ledger.append(make_record(f"mem-{i}", user_id=f"u{i % 3}", created_at=i + 1))

    async def reader():
        for _ in range(20):
            await ledger.query(user_id="u1")
            await ledger.list_unsynced()

    async def scenario():
        await ledger.open()
        await asyncio.gather(writer(), *(reader() for _ in range(20)))
        return await ledger.query(), await ledger.count_members()

    try:
        records, members = asyncio.run(scenario())
    finally:
        conn.dispose()

    assert len(records) == 60
    assert members == 3
