"""
Time source and local-day bucketing.

Every instant in the service is an aware UTC datetime. The "local day"
used for the once-per-day check-in guard and the daily escalation cap is
derived from a single fixed UTC offset, applied only here.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Anything that can tell the current instant."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock, always UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FrozenClock:
    """Manually driven clock for tests and replays."""

    def __init__(self, now: datetime):
        self._now = ensure_utc(now)

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = ensure_utc(now)

    def advance(self, delta: timedelta) -> datetime:
        self._now = self._now + delta
        return self._now


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def hours(value: float) -> timedelta:
    return timedelta(hours=float(value))


@dataclass(frozen=True)
class LocalDay:
    """Half-open [start, end) UTC interval covering one local calendar day."""

    date: date
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= ensure_utc(instant) < self.end


def local_day(now: datetime, offset: timedelta) -> LocalDay:
    """Return the local calendar day containing ``now`` for a fixed UTC offset."""
    local_now = ensure_utc(now).astimezone(timezone(offset))
    local_midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    start = local_midnight.astimezone(UTC)
    return LocalDay(date=local_now.date(), start=start, end=start + timedelta(days=1))


def local_date(instant: datetime, offset: timedelta) -> date:
    """Local calendar date of an instant."""
    return ensure_utc(instant).astimezone(timezone(offset)).date()
