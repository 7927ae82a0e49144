"""Time sources and calendar-day derivation.

Components that need "now" take a Clock so tests can pin time with
FixedClock instead of patching the time module.
"""

import time
from datetime import date, datetime, tzinfo
from typing import Protocol
from zoneinfo import ZoneInfo

MS_PER_SECOND = 1000
MS_PER_DAY = 86_400_000


class Clock(Protocol):
    """Anything that can report the current time in Unix milliseconds."""

    def now_ms(self) -> int: ...


class SystemClock:
    """Wall-clock time."""

    def now_ms(self) -> int:
        return int(time.time() * MS_PER_SECOND)


class FixedClock:
    """Manually advanced clock for deterministic tests and replays."""

    def __init__(self, now_ms: int) -> None:
        self._now_ms = now_ms

    def now_ms(self) -> int:
        return self._now_ms

    def set(self, now_ms: int) -> None:
        self._now_ms = now_ms

    def advance(self, ms: int) -> None:
        self._now_ms += ms


def load_timezone(name: str) -> tzinfo:
    """Resolve an IANA timezone name such as "Asia/Kolkata"."""
    return ZoneInfo(name)


def calendar_day(timestamp_ms: int, tz: tzinfo) -> date:
    """Return the calendar day that contains timestamp_ms in the given timezone."""
    return datetime.fromtimestamp(timestamp_ms / MS_PER_SECOND, tz=tz).date()
