from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import date
from typing import Any, Dict, Iterable, Optional, Sequence

from sqlalchemy import bindparam, text
from sqlalchemy.exc import DatabaseError, IntegrityError

from ..common.datetime_utils import format_date, format_time, now_local, parse_iso_date, parse_iso_time
from ..core.constants import DEVICE_ID_META_KEY
from ..core.enums import AttendanceType
from ..core.exceptions import DuplicateIdError, NotFoundError, StorageCorruptionError, StorageError
from ..database.bootstrap import apply_schema, integrity_check
from ..database.connection import DatabaseConnection
from ..database.sqlite_base import db_cursor, fetchall, fetchone, is_corruption_error, is_unique_violation
from .ledger import LocalLedger
from .model import AttendanceRecord

logger = logging.getLogger(__name__)

_SELECT_COLUMNS = "record_id, user_id, record_type, record_date, record_time, created_at, synced"


class SQLiteLocalLedger(LocalLedger):
    """LocalLedger backed by a SQLite file.

    Mutations are serialized by one asyncio lock; the blocking database work
    runs in a worker thread so the event loop stays responsive. Reads take no
    lock and never wait on an in-flight sync.
    """

    def __init__(self, conn_factory: DatabaseConnection, *, device_id: Optional[str] = None):
        self._conn_factory = conn_factory
        self._configured_device_id = device_id
        self._device_id: Optional[str] = None
        self._write_lock = asyncio.Lock()
        self._halted_reason: Optional[str] = None

    @property
    def halted(self) -> bool:
        return self._halted_reason is not None

    async def open(self) -> None:
        """Apply the schema and verify the file. A damaged file halts writes."""
        await asyncio.to_thread(self._open_sync)

    def _open_sync(self) -> None:
        try:
            apply_schema(self._conn_factory)
            problems = integrity_check(self._conn_factory)
        except DatabaseError as e:
            raise self._translate(e) from e
        if problems:
            self._halt("integrity check failed: " + "; ".join(problems[:3]))

    # ----- mutations -------------------------------------------------------

    async def append(self, record: AttendanceRecord) -> None:
        async with self._write_lock:
            self._ensure_writable()
            await asyncio.to_thread(self._insert, record)
        logger.debug("Appended attendance record %s for user %s", record.record_id, record.user_id)

    def _insert(self, record: AttendanceRecord) -> None:
        try:
            with db_cursor(self._conn_factory) as conn:
                conn.execute(
                    text(
                        """
                        INSERT INTO attendance_records
                            (record_id, user_id, record_type, record_date, record_time, created_at, synced)
                        VALUES
                            (:record_id, :user_id, :record_type, :record_date, :record_time, :created_at, :synced)
                        """
                    ),
                    {
                        "record_id": record.record_id,
                        "user_id": record.user_id,
                        "record_type": record.record_type.value,
                        "record_date": format_date(record.work_date),
                        "record_time": format_time(record.work_time),
                        "created_at": int(record.created_at),
                        "synced": 1 if record.synced else 0,
                    },
                )
        except IntegrityError as e:
            if is_unique_violation(e):
                raise DuplicateIdError(record.record_id) from e
            raise StorageError(f"Rejected attendance record {record.record_id}: {e.orig}") from e
        except DatabaseError as e:
            raise self._translate(e) from e

    async def mark_synced(self, record_id: str) -> None:
        async with self._write_lock:
            self._ensure_writable()
            await asyncio.to_thread(self._flip_synced, record_id)

    def _flip_synced(self, record_id: str) -> None:
        try:
            with db_cursor(self._conn_factory) as conn:
                result = conn.execute(
                    text(
                        """
                        UPDATE attendance_records
                        SET synced=1, synced_at=:synced_at
                        WHERE record_id=:record_id AND synced=0
                        """
                    ),
                    {"record_id": record_id, "synced_at": now_local().isoformat(timespec="seconds")},
                )
                if result.rowcount > 0:
                    return
                exists = conn.execute(
                    text("SELECT 1 FROM attendance_records WHERE record_id=:record_id"),
                    {"record_id": record_id},
                ).first()
                if not exists:
                    raise NotFoundError(record_id)
        except DatabaseError as e:
            raise self._translate(e) from e

    # ----- reads -----------------------------------------------------------

    async def query(self, *, user_id: Optional[str] = None, work_date: Optional[date] = None) -> Sequence[AttendanceRecord]:
        return await asyncio.to_thread(self._select, user_id, work_date)

    def _select(self, user_id: Optional[str], work_date: Optional[date]) -> list[AttendanceRecord]:
        clauses: list[str] = []
        params: dict[str, object] = {}

        if user_id is not None:
            clauses.append("user_id=:user_id")
            params["user_id"] = str(user_id)
        if work_date is not None:
            clauses.append("record_date=:record_date")
            params["record_date"] = format_date(work_date)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        try:
            with db_cursor(self._conn_factory) as conn:
                rows = fetchall(
                    conn.execute(
                        text(
                            f"""
                            SELECT {_SELECT_COLUMNS}
                            FROM attendance_records
                            {where}
                            ORDER BY record_date ASC, record_time ASC, created_at ASC
                            """
                        ),
                        params,
                    )
                )
        except DatabaseError as e:
            raise self._translate(e) from e
        return [self._to_record(r) for r in rows]

    async def list_unsynced(self) -> Sequence[AttendanceRecord]:
        return await asyncio.to_thread(self._select_unsynced)

    def _select_unsynced(self) -> list[AttendanceRecord]:
        try:
            with db_cursor(self._conn_factory) as conn:
                rows = fetchall(
                    conn.execute(
                        text(
                            f"""
                            SELECT {_SELECT_COLUMNS}
                            FROM attendance_records
                            WHERE synced=0
                            ORDER BY created_at ASC
                            """
                        )
                    )
                )
        except DatabaseError as e:
            raise self._translate(e) from e
        return [self._to_record(r) for r in rows]

    async def get(self, record_id: str) -> Optional[AttendanceRecord]:
        return await asyncio.to_thread(self._select_one, record_id)

    def _select_one(self, record_id: str) -> Optional[AttendanceRecord]:
        try:
            with db_cursor(self._conn_factory) as conn:
                r = fetchone(
                    conn.execute(
                        text(f"SELECT {_SELECT_COLUMNS} FROM attendance_records WHERE record_id=:record_id"),
                        {"record_id": record_id},
                    )
                )
        except DatabaseError as e:
            raise self._translate(e) from e
        return self._to_record(r) if r else None

    async def count_members(self) -> int:
        return await asyncio.to_thread(self._count_members)

    def _count_members(self) -> int:
        try:
            with db_cursor(self._conn_factory) as conn:
                return int(conn.execute(text("SELECT COUNT(DISTINCT user_id) FROM attendance_records")).scalar() or 0)
        except DatabaseError as e:
            raise self._translate(e) from e

    async def remember_member(self, user_id: str, name: str) -> None:
        async with self._write_lock:
            self._ensure_writable()
            await asyncio.to_thread(self._upsert_member, str(user_id), str(name))

    def _upsert_member(self, user_id: str, name: str) -> None:
        try:
            with db_cursor(self._conn_factory) as conn:
                conn.execute(
                    text(
                        """
                        INSERT INTO members(user_id, name, updated_at)
                        VALUES(:user_id, :name, :updated_at)
                        ON CONFLICT(user_id) DO UPDATE SET name=excluded.name, updated_at=excluded.updated_at
                        """
                    ),
                    {"user_id": user_id, "name": name, "updated_at": now_local().isoformat(timespec="seconds")},
                )
        except DatabaseError as e:
            raise self._translate(e) from e

    async def member_names(self, user_ids: Iterable[str]) -> Dict[str, str]:
        ids = sorted({str(u) for u in user_ids})
        if not ids:
            return {}
        return await asyncio.to_thread(self._select_member_names, ids)

    def _select_member_names(self, ids: list[str]) -> Dict[str, str]:
        stmt = text("SELECT user_id, name FROM members WHERE user_id IN :ids").bindparams(
            bindparam("ids", expanding=True)
        )
        try:
            with db_cursor(self._conn_factory) as conn:
                rows = fetchall(conn.execute(stmt, {"ids": ids}))
        except DatabaseError as e:
            raise self._translate(e) from e
        return {str(r["user_id"]): str(r["name"]) for r in rows}

    async def device_id(self) -> str:
        if self._device_id is None:
            async with self._write_lock:
                if self._device_id is None:
                    self._device_id = await asyncio.to_thread(self._load_or_create_device_id)
        return self._device_id

    def _load_or_create_device_id(self) -> str:
        try:
            with db_cursor(self._conn_factory) as conn:
                r = fetchone(
                    conn.execute(
                        text("SELECT meta_value FROM ledger_meta WHERE meta_key=:key"),
                        {"key": DEVICE_ID_META_KEY},
                    )
                )
                if r:
                    return str(r["meta_value"])

                self._ensure_writable()
                value = self._configured_device_id or f"device-{uuid.uuid4().hex[:12]}"
                conn.execute(
                    text("INSERT INTO ledger_meta(meta_key, meta_value) VALUES(:key, :value)"),
                    {"key": DEVICE_ID_META_KEY, "value": value},
                )
                logger.info("Registered device id %s", value)
                return value
        except DatabaseError as e:
            raise self._translate(e) from e

    # ----- helpers ---------------------------------------------------------

    def _ensure_writable(self) -> None:
        if self._halted_reason is not None:
            raise StorageCorruptionError(f"Ledger writes are halted: {self._halted_reason}")

    def _halt(self, reason: str) -> None:
        if self._halted_reason is None:
            logger.critical("Attendance ledger storage is corrupt, halting writes: %s", reason)
        self._halted_reason = reason

    def _translate(self, exc: DatabaseError) -> StorageError:
        if is_corruption_error(exc):
            self._halt(str(exc.orig or exc))
            return StorageCorruptionError(f"Ledger storage is corrupt: {exc.orig or exc}")
        return StorageError(f"Ledger storage error: {exc.orig or exc}")

    @staticmethod
    def _to_record(r: Dict[str, Any]) -> AttendanceRecord:
        return AttendanceRecord(
            record_id=str(r["record_id"]),
            user_id=str(r["user_id"]),
            record_type=AttendanceType(r["record_type"]),
            work_date=parse_iso_date(r["record_date"]),
            work_time=parse_iso_time(r["record_time"]),
            created_at=int(r["created_at"]),
            synced=bool(r["synced"]),
        )
