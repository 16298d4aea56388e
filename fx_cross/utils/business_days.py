"""Calendar helpers for sizing rate windows around weekends."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterator

# ``date.weekday()`` values for Saturday and Sunday.
WEEKEND_DAYS = frozenset({5, 6})
FRIDAY = 4


@dataclass(frozen=True)
class DateRange:
    """Container representing a closed date range."""

    start: date
    end: date

    def days(self) -> Iterator[date]:
        return iter_days(self.start, self.end)

    def __contains__(self, day: object) -> bool:
        return isinstance(day, date) and self.start <= day <= self.end


def parse_date(value: str | date) -> date:
    """Parse a date string in ISO format to :class:`date`."""

    if isinstance(value, date):
        return value
    return datetime.strptime(value, "%Y-%m-%d").date()


def is_weekend(day: date) -> bool:
    return day.weekday() in WEEKEND_DAYS


def most_recent_business_day(day: date) -> date:
    """Roll a Saturday or Sunday back to the preceding Friday.

    Only the weekday is consulted; holidays are not known here.
    """

    if not is_weekend(day):
        return day
    return day - timedelta(days=day.weekday() - FRIDAY)


def subtract_business_days(day: date, count: int) -> date:
    """Step ``count`` business days back from ``day``.

    Each step first rolls a weekend back to Friday and then moves one calendar
    day back. The final result is not snapped, so it may be a weekend day: it is
    meant as a lower bound for a lookup window, not as a trading date.
    """

    if count < 0:
        raise ValueError("count must not be negative")
    current = day
    for _ in range(count):
        current = most_recent_business_day(current)
        current -= timedelta(days=1)
    return current


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day from ``start`` to ``end`` inclusive."""

    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def count_weekdays(start: date, end: date) -> int:
    """Return how many days in ``[start, end]`` are not weekend days."""

    return sum(1 for day in iter_days(start, end) if not is_weekend(day))


__all__ = [
    "DateRange",
    "count_weekdays",
    "is_weekend",
    "iter_days",
    "most_recent_business_day",
    "parse_date",
    "subtract_business_days",
]
