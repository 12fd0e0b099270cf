from __future__ import annotations

from datetime import date
from typing import Iterable, Mapping, Optional, Protocol, Sequence

from .model import AttendanceRecord


class LocalLedger(Protocol):
    """Durable on-device store of attendance records.

    Note (DIP): the service and sync layers depend on this interface, not on a
    concrete database. All operations are coroutines; none of them touch the
    network.
    """

    async def append(self, record: AttendanceRecord) -> None:
        """Persist a new record before returning.

        Raises DuplicateIdError when the id already exists.
        """

        raise NotImplementedError

    async def mark_synced(self, record_id: str) -> None:
        """Flip synced to true. No-op when already synced.

        Raises NotFoundError when the id is unknown.
        """

        raise NotImplementedError

    async def query(self, *, user_id: Optional[str] = None, work_date: Optional[date] = None) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    async def list_unsynced(self) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    async def get(self, record_id: str) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    async def count_members(self) -> int:
        raise NotImplementedError

    async def remember_member(self, user_id: str, name: str) -> None:
        """Store the latest display name seen for a member."""

        raise NotImplementedError

    async def member_names(self, user_ids: Iterable[str]) -> Mapping[str, str]:
        raise NotImplementedError

    async def device_id(self) -> str:
        raise NotImplementedError
