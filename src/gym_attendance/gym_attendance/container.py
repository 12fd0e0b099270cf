from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .attendance.service import AttendanceService
from .attendance.sqlite_ledger import SQLiteLocalLedger
from .core.constants import (
    DEFAULT_PROBE_INTERVAL_SECONDS,
    DEFAULT_PROBE_TIMEOUT_SECONDS,
    DEFAULT_PROBE_URL,
    DEFAULT_SYNC_TIMEOUT_SECONDS,
)
from .core.exceptions import StorageCorruptionError
from .database.connection import DBConfig, DatabaseConnection
from .qr.codec import JsonQRCodec, QRCodec
from .runtime import AsyncRuntime
from .sync.connectivity import ConnectivityMonitor, ConnectivityProbe, HttpConnectivityProbe
from .sync.engine import SyncEngine
from .sync.remote import HttpRemoteAuthority, RemoteAuthority
from .sync.tasks import BackgroundTaskQueue
from .users.auth import AuthProvider, SessionAuthProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncConfig:
    remote_base_url: str
    remote_api_key: str = ""
    timeout: float = DEFAULT_SYNC_TIMEOUT_SECONDS
    probe_url: str = DEFAULT_PROBE_URL
    probe_interval: float = DEFAULT_PROBE_INTERVAL_SECONDS
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection
    runtime: AsyncRuntime

    ledger: SQLiteLocalLedger
    remote: RemoteAuthority
    connectivity: ConnectivityMonitor
    tasks: BackgroundTaskQueue
    sync_engine: SyncEngine

    auth: AuthProvider
    codec: QRCodec
    attendance_service: AttendanceService

    def start(self) -> None:
        """Start the runtime loop, open the ledger and begin connectivity polling."""
        self.runtime.start()
        try:
            self.runtime.run(self.ledger.open())
        except StorageCorruptionError:
            # Reads keep working for history display; writes stay refused.
            logger.critical("Ledger opened read-only: storage is corrupt")
        self.runtime.run(self._start_monitor())

    async def _start_monitor(self) -> None:
        self.connectivity.start()

    def shutdown(self) -> None:
        if self.runtime.running:
            self.runtime.run(self.connectivity.stop())
            self.runtime.run(self.tasks.close())
            self.runtime.stop()
        self.conn.dispose()


def build_container(
    *,
    db_config: dict,
    sync_config: dict,
    remote: Optional[RemoteAuthority] = None,
    probe: Optional[ConnectivityProbe] = None,
    auth: Optional[AuthProvider] = None,
    codec: Optional[QRCodec] = None,
) -> Container:
    conn = DatabaseConnection(DBConfig(url=str(db_config["url"]), echo=bool(db_config.get("echo", False))))
    config = SyncConfig(
        remote_base_url=str(sync_config.get("remote_base_url", "")),
        remote_api_key=str(sync_config.get("remote_api_key", "")),
        timeout=float(sync_config.get("timeout", DEFAULT_SYNC_TIMEOUT_SECONDS)),
        probe_url=str(sync_config.get("probe_url", DEFAULT_PROBE_URL)),
        probe_interval=float(sync_config.get("probe_interval", DEFAULT_PROBE_INTERVAL_SECONDS)),
        probe_timeout=float(sync_config.get("probe_timeout", DEFAULT_PROBE_TIMEOUT_SECONDS)),
    )

    ledger = SQLiteLocalLedger(conn, device_id=db_config.get("device_id") or None)
    remote = remote or HttpRemoteAuthority(config.remote_base_url, api_key=config.remote_api_key, timeout=config.timeout)
    connectivity = ConnectivityMonitor(
        probe or HttpConnectivityProbe(config.probe_url, timeout=config.probe_timeout),
        interval=config.probe_interval,
    )
    tasks = BackgroundTaskQueue()
    sync_engine = SyncEngine(ledger, remote, connectivity, timeout=config.timeout)

    auth = auth or SessionAuthProvider()
    codec = codec or JsonQRCodec()
    attendance_service = AttendanceService(
        ledger,
        sync_engine,
        connectivity,
        auth=auth,
        codec=codec,
        tasks=tasks,
    )
    connectivity.subscribe(attendance_service.handle_connectivity_change)

    return Container(
        conn=conn,
        runtime=AsyncRuntime(),
        ledger=ledger,
        remote=remote,
        connectivity=connectivity,
        tasks=tasks,
        sync_engine=sync_engine,
        auth=auth,
        codec=codec,
        attendance_service=attendance_service,
    )
