from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Callable, Optional, Sequence

from ..common.datetime_utils import MonotonicClock, now_local
from ..common.validators import require_non_empty
from ..core.constants import DEFAULT_RECENT_ACTIVITY_LIMIT
from ..core.enums import AttendanceType
from ..core.exceptions import AuthenticationError, AuthorizationError, DecodeError, DuplicateIdError, ValidationError
from ..qr.codec import QRCodec
from ..sync.connectivity import ConnectivitySignal
from ..sync.engine import SyncEngine, SyncSummary
from ..sync.tasks import BackgroundTaskQueue
from ..users.auth import AuthProvider
from ..users.model import CurrentUser
from .ledger import LocalLedger
from .model import AttendanceRecord
from .views import AdminView, DashboardView, MemberView, ScanResult

logger = logging.getLogger(__name__)

INVALID_CODE_MESSAGE = "Invalid code"


def new_record_id(device_id: str) -> str:
    """Device-prefixed UUID: unique across devices without coordination."""
    return f"{device_id}-{uuid.uuid4().hex}"


class AttendanceService:
    """Application-facing API used by the presentation layer.

    Writes land in the local ledger first and are replicated in the
    background; reads never depend on the network.
    """

    def __init__(
        self,
        ledger: LocalLedger,
        sync_engine: SyncEngine,
        connectivity: ConnectivitySignal,
        *,
        auth: AuthProvider,
        codec: QRCodec,
        tasks: BackgroundTaskQueue | None = None,
        clock: MonotonicClock | None = None,
        id_factory: Callable[[str], str] | None = None,
        recent_limit: int = DEFAULT_RECENT_ACTIVITY_LIMIT,
    ):
        self._ledger = ledger
        self._sync = sync_engine
        self._connectivity = connectivity
        self._auth = auth
        self._codec = codec
        self._tasks = tasks or BackgroundTaskQueue()
        self._clock = clock or MonotonicClock()
        self._id_factory = id_factory or new_record_id
        self._recent_limit = int(recent_limit)

    @property
    def tasks(self) -> BackgroundTaskQueue:
        return self._tasks

    def current_user(self) -> CurrentUser:
        user = self._auth.current_user()
        if user is None:
            raise AuthenticationError("Please sign in to continue")
        return user

    async def record_attendance(
        self,
        user_id: str,
        record_type: AttendanceType | str,
        *,
        now: datetime | None = None,
        member_name: str | None = None,
    ) -> AttendanceRecord:
        user_id = require_non_empty(user_id, "User id")
        try:
            record_type = AttendanceType(record_type)
        except ValueError:
            raise ValidationError(f"Unknown attendance type: {record_type}")

        now = now or now_local()
        device_id = await self._ledger.device_id()
        record = AttendanceRecord(
            record_id=self._id_factory(device_id),
            user_id=user_id,
            record_type=record_type,
            work_date=now.date(),
            work_time=now.time().replace(microsecond=0),
            created_at=self._clock.stamp(),
        )

        try:
            await self._ledger.append(record)
        except DuplicateIdError:
            # Already landed: an earlier attempt with the same id succeeded.
            logger.info("Attendance record %s already stored", record.record_id)
            existing = await self._ledger.get(record.record_id)
            return existing or record

        if member_name and member_name.strip():
            await self._ledger.remember_member(user_id, member_name.strip())

        logger.info("Recorded %s for user %s (%s)", record_type.value, user_id, record.record_id)
        self._schedule_push()
        return record

    def _schedule_push(self) -> None:
        if self._connectivity.is_online():
            self._tasks.dispatch(self._sync.push_pending, name="push-pending")

    def handle_connectivity_change(self, online: bool) -> None:
        """Connectivity listener: retry queued records as soon as we are back online."""
        if online:
            self._tasks.dispatch(self._sync.push_pending, name="push-pending-reconnect")

    async def get_history(self, user_id: Optional[str] = None, work_date: Optional[date] = None) -> Sequence[AttendanceRecord]:
        return await self._ledger.query(user_id=user_id, work_date=work_date)

    async def unsynced_count(self) -> int:
        return len(await self._ledger.list_unsynced())

    async def sync_now(self) -> SyncSummary:
        return await self._sync.push_pending()

    async def refresh(self, user_id: Optional[str] = None, work_date: Optional[date] = None) -> int:
        return await self._sync.pull_remote(user_id=user_id, work_date=work_date)

    async def record_scan(self, payload: str, *, scanned_by: CurrentUser, now: datetime | None = None) -> ScanResult:
        if not scanned_by.is_admin:
            raise AuthorizationError("Only administrators can scan member codes")

        try:
            data = self._codec.decode(payload)
        except DecodeError as e:
            logger.info("Rejected QR scan: %s", e)
            return ScanResult(accepted=False, message=INVALID_CODE_MESSAGE)

        member_id = str(data.get("id") or "").strip()
        member_name = str(data.get("name") or "").strip()
        if not member_id or not member_name:
            logger.info("Rejected QR scan: missing id or name")
            return ScanResult(accepted=False, message=INVALID_CODE_MESSAGE)

        record = await self.record_attendance(member_id, AttendanceType.CHECK_IN, now=now, member_name=member_name)
        return ScanResult(
            accepted=True,
            message=f"Attendance recorded for {member_name}",
            member_name=member_name,
            record=record,
        )

    def member_qr_payload(self, user: CurrentUser) -> str:
        return self._codec.encode({"id": user.user_id, "name": user.name})

    async def dashboard(self, user: CurrentUser, *, today: date | None = None) -> DashboardView:
        today = today or now_local().date()
        unsynced = await self.unsynced_count()

        if user.is_admin:
            today_records = await self._ledger.query(work_date=today)
            recent = self._most_recent(today_records)
            return AdminView(
                name=user.name,
                today=today,
                total_members=await self._ledger.count_members(),
                today_attendance=len(today_records),
                unsynced_count=unsynced,
                online=self._connectivity.is_online(),
                last_synced_at=self._sync.last_synced_at,
                recent=recent,
                member_names=dict(await self._ledger.member_names(r.user_id for r in recent)),
            )

        mine = await self._ledger.query(user_id=user.user_id)
        return MemberView(
            user_id=user.user_id,
            name=user.name,
            today=today,
            total_attendance=len(mine),
            today_attendance=sum(1 for r in mine if r.work_date == today),
            unsynced_count=unsynced,
            online=self._connectivity.is_online(),
            last_synced_at=self._sync.last_synced_at,
            qr_payload=self.member_qr_payload(user),
            recent=self._most_recent(mine),
        )

    def _most_recent(self, records: Sequence[AttendanceRecord]) -> tuple[AttendanceRecord, ...]:
        if self._recent_limit <= 0:
            return ()
        return tuple(reversed(records[-self._recent_limit:]))
