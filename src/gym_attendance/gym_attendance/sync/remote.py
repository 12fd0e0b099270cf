from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Optional, Protocol, Sequence

import requests

from ..attendance.model import AttendanceRecord
from ..common.datetime_utils import format_date
from ..core.constants import DEFAULT_SYNC_TIMEOUT_SECONDS
from ..core.exceptions import SyncTransportError, ValidationError

logger = logging.getLogger(__name__)


class RemoteAuthority(Protocol):
    """The remote source of truth for attendance.

    `upsert` must be idempotent by record id: repeating an id is a no-op
    success on the server, never a second insert.
    """

    async def upsert(self, record: AttendanceRecord) -> None:
        raise NotImplementedError

    async def fetch(self, *, user_id: Optional[str] = None, work_date: Optional[date] = None) -> Sequence[AttendanceRecord]:
        raise NotImplementedError


class HttpRemoteAuthority(RemoteAuthority):
    """Client for `PUT /attendance/{id}` and `GET /attendance`.

    requests is blocking, so each call runs in a worker thread.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str = "",
        timeout: float = DEFAULT_SYNC_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = float(timeout)
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json", "Accept": "application/json"})
        if api_key:
            self._session.headers["Authorization"] = f"Bearer {api_key}"

    async def upsert(self, record: AttendanceRecord) -> None:
        await asyncio.to_thread(self._put, record)

    def _put(self, record: AttendanceRecord) -> None:
        url = f"{self._base_url}/attendance/{record.record_id}"
        try:
            resp = self._session.put(url, json=record.to_payload(), timeout=self._timeout)
        except requests.Timeout as e:
            raise SyncTransportError(f"timeout after {self._timeout:g}s") from e
        except requests.RequestException as e:
            raise SyncTransportError(f"network error: {e}") from e

        if not resp.ok:
            raise SyncTransportError(f"rejected: HTTP {resp.status_code}", status_code=resp.status_code)

    async def fetch(self, *, user_id: Optional[str] = None, work_date: Optional[date] = None) -> Sequence[AttendanceRecord]:
        return await asyncio.to_thread(self._get, user_id, work_date)

    def _get(self, user_id: Optional[str], work_date: Optional[date]) -> list[AttendanceRecord]:
        params: dict[str, str] = {}
        if user_id is not None:
            params["userId"] = str(user_id)
        if work_date is not None:
            params["date"] = format_date(work_date)

        try:
            resp = self._session.get(f"{self._base_url}/attendance", params=params, timeout=self._timeout)
        except requests.Timeout as e:
            raise SyncTransportError(f"timeout after {self._timeout:g}s") from e
        except requests.RequestException as e:
            raise SyncTransportError(f"network error: {e}") from e

        if not resp.ok:
            raise SyncTransportError(f"rejected: HTTP {resp.status_code}", status_code=resp.status_code)

        try:
            body = resp.json()
        except ValueError as e:
            raise SyncTransportError("remote returned invalid JSON") from e

        items = body.get("records", []) if isinstance(body, dict) else body
        if not isinstance(items, list):
            raise SyncTransportError("remote returned an unexpected payload")

        records: list[AttendanceRecord] = []
        for item in items:
            try:
                records.append(AttendanceRecord.from_payload(item, synced=True))
            except ValidationError as e:
                logger.warning("Skipping malformed remote attendance record: %s", e)
        return records
