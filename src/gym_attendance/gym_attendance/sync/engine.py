from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from ..attendance.ledger import LocalLedger
from ..attendance.model import AttendanceRecord
from ..common.datetime_utils import now_local
from ..core.constants import DEFAULT_SYNC_TIMEOUT_SECONDS
from ..core.enums import SyncStatus
from ..core.exceptions import ConcurrentSyncError, DuplicateIdError, LedgerError, NotFoundError, SyncTransportError
from .connectivity import ConnectivitySignal
from .remote import RemoteAuthority

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncFailure:
    record_id: str
    reason: str


@dataclass(frozen=True)
class SyncSummary:
    """Result of one push_pending call; failures are reported, never thrown."""

    status: SyncStatus
    succeeded: int = 0
    failed: tuple[SyncFailure, ...] = field(default_factory=tuple)
    finished_at: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def attempted(self) -> int:
        return self.succeeded + len(self.failed)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "succeeded": self.succeeded,
            "failed": [{"id": f.record_id, "reason": f.reason} for f in self.failed],
            "finished_at": self.finished_at.isoformat(timespec="seconds") if self.finished_at else None,
        }


class SyncEngine:
    """Moves unsynced ledger records to the remote authority.

    Delivery is at-least-once per record until acknowledged; the remote's
    idempotent upsert keyed by record id makes the effect at-most-once. Only
    one push runs at a time on a device.
    """

    def __init__(
        self,
        ledger: LocalLedger,
        remote: RemoteAuthority,
        connectivity: ConnectivitySignal,
        *,
        timeout: float = DEFAULT_SYNC_TIMEOUT_SECONDS,
    ):
        self._ledger = ledger
        self._remote = remote
        self._connectivity = connectivity
        self._timeout = float(timeout)
        self._push_lock = asyncio.Lock()
        self._rerun = False
        self._last_synced_at: Optional[datetime] = None

    @property
    def last_synced_at(self) -> Optional[datetime]:
        return self._last_synced_at

    @property
    def in_progress(self) -> bool:
        return self._push_lock.locked()

    def _begin(self) -> None:
        if self._push_lock.locked():
            raise ConcurrentSyncError("A sync is already in progress")

    async def push_pending(self) -> SyncSummary:
        if not self._connectivity.is_online():
            logger.debug("Offline, skipping push")
            return SyncSummary(status=SyncStatus.OFFLINE)

        try:
            self._begin()
        except ConcurrentSyncError:
            logger.debug("Push requested while another push is running, queued a rerun")
            self._rerun = True
            return SyncSummary(status=SyncStatus.IN_PROGRESS)

        async with self._push_lock:
            self._rerun = False
            return await self._push_all()

    async def _push_all(self) -> SyncSummary:
        """Push every unsynced record, then repeat while pushes were requested meanwhile.

        A record that failed once is not retried within the same call.
        """
        succeeded = 0
        failed: list[SyncFailure] = []
        failed_ids: set[str] = set()
        pending: list[AttendanceRecord] = []

        while True:
            self._rerun = False
            batch = [r for r in await self._ledger.list_unsynced() if r.record_id not in failed_ids]
            pending.extend(batch)

            for record in batch:
                reason = await self._push_one(record)
                if reason is None:
                    succeeded += 1
                else:
                    failed_ids.add(record.record_id)
                    failed.append(SyncFailure(record_id=record.record_id, reason=reason))

            if not self._rerun:
                break
            logger.debug("Records were queued during the push, running another pass")

        finished_at = now_local()
        self._last_synced_at = finished_at
        if failed:
            logger.warning("Sync finished: %d synced, %d failed", succeeded, len(failed))
        elif pending:
            logger.info("Sync finished: %d synced", succeeded)

        return SyncSummary(
            status=SyncStatus.COMPLETED,
            succeeded=succeeded,
            failed=tuple(failed),
            finished_at=finished_at,
        )

    async def _push_one(self, record: AttendanceRecord) -> Optional[str]:
        """Upload one record and mark it synced. Returns a failure reason or None."""
        record_id = record.record_id
        try:
            await asyncio.wait_for(self._remote.upsert(record), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Upload of %s timed out after %ss", record_id, self._timeout)
            return f"timeout after {self._timeout:g}s"
        except SyncTransportError as e:
            logger.warning("Upload of %s failed: %s", record_id, e)
            return str(e)
        except Exception as e:
            logger.exception("Upload of %s raised unexpectedly", record_id)
            return f"unexpected error: {e}"

        try:
            await self._ledger.mark_synced(record_id)
        except NotFoundError as e:
            logger.error("Acknowledged record vanished from the ledger: %s", e)
            return str(e)
        except LedgerError as e:
            logger.error("Could not mark %s as synced: %s", record_id, e)
            return str(e)
        return None

    async def pull_remote(self, *, user_id: Optional[str] = None, work_date: Optional[date] = None) -> int:
        """Import server-originated records unknown to this device. Returns how many landed."""
        if not self._connectivity.is_online():
            return 0

        try:
            remote_records = await asyncio.wait_for(
                self._remote.fetch(user_id=user_id, work_date=work_date),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Remote fetch timed out after %ss", self._timeout)
            return 0
        except SyncTransportError as e:
            logger.warning("Remote fetch failed: %s", e)
            return 0

        imported = 0
        for record in remote_records:
            try:
                await self._ledger.append(record.as_synced())
                imported += 1
            except DuplicateIdError:
                # The server already holds this id, so a local unsynced copy is acknowledged.
                local = await self._ledger.get(record.record_id)
                if local is not None and not local.synced:
                    await self._ledger.mark_synced(record.record_id)

        if imported:
            logger.info("Imported %d attendance records from the remote authority", imported)
        return imported
