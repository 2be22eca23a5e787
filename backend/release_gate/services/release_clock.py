from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

MAX_TRACK = 365


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(instant: datetime) -> datetime:
    # naive datetimes are read as UTC
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def day_of_year(instant: datetime) -> int:
    """Whole UTC days since UTC Jan 1 of the instant's year, plus one."""
    t = _as_utc(instant)
    start = datetime(t.year, 1, 1, tzinfo=timezone.utc)
    return (t - start).days + 1


def cutoff_for(instant: datetime, release_year: int) -> int:
    """
    Highest track number released at `instant`:
    0 before the release year, 365 after it, else the UTC day of year.
    Leap day 366 clamps to 365.
    """
    year = _as_utc(instant).year
    if year < release_year:
        return 0
    if year > release_year:
        return MAX_TRACK
    return min(day_of_year(instant), MAX_TRACK)


class ReleaseClock:
    """
    Reads the time source on every call. The cutoff is never cached,
    so the gate cannot serve a stale authorization.
    """

    def __init__(self, release_year: int, now: Callable[[], datetime] = utcnow) -> None:
        self.release_year = release_year
        self._now = now

    def current_cutoff(self) -> int:
        return cutoff_for(self._now(), self.release_year)
