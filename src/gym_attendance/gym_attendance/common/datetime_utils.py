from __future__ import annotations

import threading
import time as _time
from datetime import date, datetime, time

from ..core.constants import DATE_FORMAT, TIME_FORMAT


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, DATE_FORMAT).date()


def parse_iso_time(value: str) -> time:
    """Parse HH:MM or HH:MM:SS string into time."""
    fmt = TIME_FORMAT if value.count(":") == 2 else "%H:%M"
    return datetime.strptime(value, fmt).time()


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def format_time(value: time) -> str:
    return value.strftime(TIME_FORMAT)


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


class MonotonicClock:
    """Strictly increasing nanosecond stamps for record ordering.

    Wall-clock based so stamps stay meaningful across restarts, but never
    repeats or goes backwards within a process.
    """

    def __init__(self):
        self._last = 0
        self._lock = threading.Lock()

    def stamp(self) -> int:
        with self._lock:
            value = max(_time.time_ns(), self._last + 1)
            self._last = value
            return value
