# src/taskmaster/reminders/triggers.py

from __future__ import annotations

"""
Calendar triggers.

A trigger matches a set of (possibly partial) calendar components. One-shot
triggers built from a due date carry year/month/day/hour/minute; repeating
triggers usually carry only a few fields ("every day at 09:30" is hour+minute,
"every Monday at 10:00" adds weekday).

Seconds are never part of a trigger: fire times are whole minutes.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

# Enough to reach the next Feb 29 that also falls on a requested weekday.
_MAX_SEARCH_DAYS = 366 * 28


@dataclass(frozen=True, slots=True)
class DateComponents:
    """Calendar fields; None means "any". weekday follows ISO: 1=Monday .. 7=Sunday."""

    year: int | None = None
    month: int | None = None
    day: int | None = None
    hour: int | None = None
    minute: int | None = None
    weekday: int | None = None

    def __post_init__(self) -> None:
        _check_range("month", self.month, 1, 12)
        _check_range("day", self.day, 1, 31)
        _check_range("hour", self.hour, 0, 23)
        _check_range("minute", self.minute, 0, 59)
        _check_range("weekday", self.weekday, 1, 7)
        if all(
            v is None
            for v in (self.year, self.month, self.day, self.hour, self.minute, self.weekday)
        ):
            raise ValueError("at least one calendar component is required")

    @classmethod
    def from_datetime(cls, dt: datetime) -> DateComponents:
        return cls(year=dt.year, month=dt.month, day=dt.day, hour=dt.hour, minute=dt.minute)

    def matches_day(self, dt: datetime) -> bool:
        if self.year is not None and dt.year != self.year:
            return False
        if self.month is not None and dt.month != self.month:
            return False
        if self.day is not None and dt.day != self.day:
            return False
        if self.weekday is not None and dt.isoweekday() != self.weekday:
            return False
        return True

    def as_dict(self) -> dict[str, int]:
        out: dict[str, int] = {}
        for name in ("year", "month", "day", "hour", "minute", "weekday"):
            v = getattr(self, name)
            if v is not None:
                out[name] = v
        return out


def _check_range(name: str, value: int | None, lo: int, hi: int) -> None:
    if value is None:
        return
    if not lo <= int(value) <= hi:
        raise ValueError(f"{name} must be in [{lo}, {hi}], got {value}")


@dataclass(frozen=True, slots=True)
class CalendarTrigger:
    components: DateComponents
    repeats: bool = False

    @classmethod
    def at(cls, due: datetime) -> CalendarTrigger:
        """One-shot trigger for a due date (second-level precision is discarded)."""
        return cls(components=DateComponents.from_datetime(due), repeats=False)

    def next_fire_date(self, after: datetime) -> datetime | None:
        """
        First whole-minute datetime strictly later than `after` that matches the
        components, or None if there is none (e.g. a one-shot date in the past).
        """
        c = self.components
        start = after.replace(second=0, microsecond=0)
        day = start.replace(hour=0, minute=0)

        hours = [c.hour] if c.hour is not None else list(range(24))
        minutes = [c.minute] if c.minute is not None else list(range(60))

        for _ in range(_MAX_SEARCH_DAYS):
            if c.year is not None and day.year > c.year:
                return None
            if c.matches_day(day):
                for h in hours:
                    for m in minutes:
                        candidate = day.replace(hour=h, minute=m)
                        if candidate > after:
                            return candidate
            day = day + timedelta(days=1)
        return None
