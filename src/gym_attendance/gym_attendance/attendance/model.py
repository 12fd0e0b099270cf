from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, time
from typing import Any, Mapping

from ..common.datetime_utils import format_date, format_time, parse_iso_date, parse_iso_time
from ..common.validators import require_field
from ..core.enums import AttendanceType
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one check-in/check-out event created on a device.

    `record_id` is assigned by the originating device and never changes, so a
    retried upload of the same event is recognized by the remote authority.
    """

    record_id: str
    user_id: str
    record_type: AttendanceType
    work_date: date
    work_time: time
    created_at: int
    synced: bool = False

    def sort_key(self) -> tuple[date, time, int]:
        return (self.work_date, self.work_time, self.created_at)

    def as_synced(self) -> "AttendanceRecord":
        return replace(self, synced=True)

    def to_payload(self) -> dict:
        """Wire format shared with the remote authority."""
        return {
            "id": self.record_id,
            "userId": self.user_id,
            "type": self.record_type.value,
            "date": format_date(self.work_date),
            "time": format_time(self.work_time),
            "createdAt": self.created_at,
        }

    def to_dict(self) -> dict:
        data = self.to_payload()
        data["synced"] = self.synced
        return data

    @classmethod
    def from_payload(cls, data: Mapping[str, Any], *, synced: bool = False) -> "AttendanceRecord":
        if not isinstance(data, Mapping):
            raise ValidationError("Attendance payload must be an object")
        try:
            return cls(
                record_id=str(require_field(data, "id")),
                user_id=str(require_field(data, "userId")),
                record_type=AttendanceType(require_field(data, "type")),
                work_date=parse_iso_date(str(require_field(data, "date"))),
                work_time=parse_iso_time(str(require_field(data, "time"))),
                created_at=int(data.get("createdAt") or 0),
                synced=synced,
            )
        except ValueError as e:
            raise ValidationError(f"Invalid attendance payload: {e}") from e
