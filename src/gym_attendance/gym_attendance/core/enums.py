from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User role used for view selection and permissions."""

    ADMIN = "admin"
    MEMBER = "member"


class AttendanceType(str, Enum):
    """Kind of attendance event recorded on the device."""

    CHECK_IN = "check-in"
    CHECK_OUT = "check-out"


class SyncStatus(str, Enum):
    """Outcome of a push_pending call as a whole."""

    COMPLETED = "completed"
    OFFLINE = "offline"
    IN_PROGRESS = "in_progress"
