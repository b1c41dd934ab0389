"""
Clock Module

Injectable time source. Ledgers and the aggregation engine never call
``datetime.now()`` directly so revision timestamps and change windows can be
pinned in tests.
"""

import calendar
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional


class Clock(ABC):
    """Abstract clock interface"""

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time (timezone-aware)"""
        ...


class SystemClock(Clock):
    """Wall clock in UTC"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Clock that only moves when told to"""

    def __init__(self, current: Optional[datetime] = None):
        self._current = current or datetime(2024, 1, 31, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime) -> None:
        self._current = current

    def advance(self, delta: timedelta) -> datetime:
        """Move the clock forward and return the new time"""
        self._current = self._current + delta
        return self._current


def months_before(moment: datetime, months: int = 1) -> datetime:
    """Subtract calendar months, clamping the day to the target month's length"""
    month = moment.month - 1 - months
    year = moment.year + month // 12
    month = month % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)
