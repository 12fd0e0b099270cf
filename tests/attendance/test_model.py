from __future__ import annotations

from datetime import date, time

import pytest

from src.gym_attendance.gym_attendance.attendance.model import AttendanceRecord
from src.gym_attendance.gym_attendance.core.enums import AttendanceType
from src.gym_attendance.gym_attendance.core.exceptions import ValidationError
from tests.fakes import make_record


def test_payload_uses_wire_keys():
    rec = make_record("dev1-a", created_at=42)

    assert rec.to_payload() == {
        "id": "dev1-a",
        "userId": "u1",
        "type": "check-in",
        "date": "2024-01-01",
        "time": "09:00:00",
        "createdAt": 42,
    }
    assert rec.to_dict()["synced"] is False


def test_from_payload_accepts_short_time_and_marks_synced():
    rec = AttendanceRecord.from_payload(
        {"id": "srv-1", "userId": "u2", "type": "check-out", "date": "2024-03-05", "time": "18:30"},
        synced=True,
    )

    assert rec.record_type == AttendanceType.CHECK_OUT
    assert rec.work_date == date(2024, 3, 5)
    assert rec.work_time == time(18, 30)
    assert rec.created_at == 0
    assert rec.synced is True


@pytest.mark.parametrize(
    "payload",
    [
        {"userId": "u1", "type": "check-in", "date": "2024-01-01", "time": "09:00"},
        {"id": "x", "userId": "u1", "type": "lunch", "date": "2024-01-01", "time": "09:00"},
        {"id": "x", "userId": "u1", "type": "check-in", "date": "01/01/2024", "time": "09:00"},
    ],
)
def test_from_payload_rejects_malformed(payload):
    with pytest.raises(ValidationError):
        AttendanceRecord.from_payload(payload)


def test_sort_key_breaks_ties_with_created_at():
    first = make_record("a", created_at=1)
    second = make_record("b", created_at=2)

    assert sorted([second, first], key=AttendanceRecord.sort_key) == [first, second]


def test_as_synced_keeps_identity():
    rec = make_record("dev1-a")
    synced = rec.as_synced()

    assert synced.synced is True
    assert synced.record_id == rec.record_id
    assert rec.synced is False
