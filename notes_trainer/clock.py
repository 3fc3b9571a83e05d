"""Injectable time source and the bucket keys derived from it."""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Protocol

HOUR_MS = 3_600_000


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime):
        self._now = ensure_aware(start)

    def now(self) -> datetime:
        return self._now

    def set(self, instant: datetime) -> None:
        self._now = ensure_aware(instant)

    def advance(self, delta: timedelta | None = None, **kwargs: float) -> datetime:
        self._now += delta if delta is not None else timedelta(**kwargs)
        return self._now


def ensure_aware(instant: datetime) -> datetime:
    # Naive timestamps are stored as UTC
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant


def epoch_ms(instant: datetime) -> int:
    return int(ensure_aware(instant).timestamp() * 1000)


def hour_bucket(instant: datetime) -> int:
    return epoch_ms(instant) // HOUR_MS


def calendar_date(instant: datetime, tz: tzinfo | None = None) -> date:
    """Calendar day of ``instant`` in ``tz``; None means the system zone, with its DST rules."""
    return ensure_aware(instant).astimezone(tz).date()


def date_key(instant: datetime, tz: tzinfo | None = None) -> str:
    return calendar_date(instant, tz).isoformat()
