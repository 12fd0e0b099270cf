from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal, Mapping, Optional, Union

from ..common.datetime_utils import format_date
from .model import AttendanceRecord


@dataclass(frozen=True)
class ScanResult:
    """Outcome of an admin QR scan, ready for user-visible messaging."""

    accepted: bool
    message: str
    member_name: Optional[str] = None
    record: Optional[AttendanceRecord] = None

    def to_dict(self) -> dict:
        return {
            "success": self.accepted,
            "message": self.message,
            "member_name": self.member_name,
            "record": self.record.to_dict() if self.record else None,
        }


def _recent(records: tuple[AttendanceRecord, ...], names: Optional[Mapping[str, str]] = None) -> list[dict]:
    if names is None:
        return [r.to_dict() for r in records]
    return [{**r.to_dict(), "memberName": names.get(r.user_id)} for r in records]


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="seconds") if value else None


@dataclass(frozen=True)
class MemberView:
    """Read-model for a member's home screen."""

    user_id: str
    name: str
    today: date
    total_attendance: int
    today_attendance: int
    unsynced_count: int
    online: bool
    last_synced_at: Optional[datetime]
    qr_payload: str
    recent: tuple[AttendanceRecord, ...] = field(default_factory=tuple)
    kind: Literal["member"] = "member"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "user_id": self.user_id,
            "name": self.name,
            "today": format_date(self.today),
            "total_attendance": self.total_attendance,
            "today_attendance": self.today_attendance,
            "unsynced_count": self.unsynced_count,
            "online": self.online,
            "last_synced_at": _ts(self.last_synced_at),
            "qr_payload": self.qr_payload,
            "recent": _recent(self.recent),
        }


@dataclass(frozen=True)
class AdminView:
    """Read-model for the administrator dashboard."""

    name: str
    today: date
    total_members: int
    today_attendance: int
    unsynced_count: int
    online: bool
    last_synced_at: Optional[datetime]
    recent: tuple[AttendanceRecord, ...] = field(default_factory=tuple)
    member_names: Mapping[str, str] = field(default_factory=dict)
    kind: Literal["admin"] = "admin"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "name": self.name,
            "today": format_date(self.today),
            "total_members": self.total_members,
            "today_attendance": self.today_attendance,
            "unsynced_count": self.unsynced_count,
            "online": self.online,
            "last_synced_at": _ts(self.last_synced_at),
            "recent": _recent(self.recent, self.member_names),
        }


DashboardView = Union[AdminView, MemberView]
