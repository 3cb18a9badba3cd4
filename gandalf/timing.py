"""Clocks and rate limit window arithmetic."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, time, timedelta, timezone

from .errors import InvalidUnitError

_DURATIONS = {
    "millisecond": timedelta(milliseconds=1),
    "second": timedelta(seconds=1),
    "minute": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
}

_ZERO_AWARE = datetime(1, 1, 1, tzinfo=timezone.utc)
_ZERO_NAIVE = datetime(1, 1, 1)


class TimeProvider(ABC):
    """Source of the current time; replaceable for tests."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time."""


class RealTimeProvider(TimeProvider):
    """Reads the system clock, in the local time zone."""

    def now(self) -> datetime:
        return datetime.now().astimezone()


def get_duration_for_unit(unit: str) -> timedelta:
    """Return the length of one window of ``unit``; unknown units mean one second."""
    return _DURATIONS.get(unit, _DURATIONS["second"])


def _next_boundary(moment: datetime, step: timedelta) -> datetime:
    """Add ``step`` and truncate to a multiple of it on the absolute time line."""
    if moment.tzinfo is None:
        offset = moment + step - _ZERO_NAIVE
        return _ZERO_NAIVE + (offset // step) * step
    offset = moment.astimezone(timezone.utc) + step - _ZERO_AWARE
    boundary = _ZERO_AWARE + (offset // step) * step
    return boundary.astimezone(moment.tzinfo)


def get_reset_time(now: datetime, unit: str) -> datetime:
    """Return when a window of ``unit`` that contains ``now`` ends.

    An empty unit means a day. Days and months end at local midnight in the
    time zone of ``now``.
    """
    if unit in ("millisecond", "second", "minute", "hour"):
        return _next_boundary(now, _DURATIONS[unit])
    if unit in ("day", ""):
        tomorrow = now.date() + timedelta(days=1)
        return datetime.combine(tomorrow, time(), tzinfo=now.tzinfo)
    if unit == "month":
        year = now.year + (1 if now.month == 12 else 0)
        month = now.month % 12 + 1
        return datetime(year, month, 1, tzinfo=now.tzinfo)
    raise InvalidUnitError(unit)