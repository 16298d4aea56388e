"""Rate cache interface shared by every storage backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Collection, Iterable, Sequence

from fx_cross.db.sqlite_manager import PersistenceResult
from fx_cross.ingestion.models import RateObservation
from fx_cross.utils.business_days import count_weekdays, is_weekend


class RateCache(ABC):
    """Persistent store of EUR rates and of days on which nothing was published.

    Backends only provide raw reads and idempotent writes; completeness is
    decided here so every backend answers :meth:`query_complete` identically.
    """

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create required tables/collections and verify connectivity."""

    @abstractmethod
    def fetch_observations(
        self, currencies: Collection[str], start: date, end: date
    ) -> list[RateObservation]:
        """Return stored observations for ``currencies`` within ``[start, end]``."""

    @abstractmethod
    def fetch_non_trading_days(self, start: date, end: date) -> set[date]:
        """Return dates within ``[start, end]`` marked as non-trading."""

    @abstractmethod
    def store(self, observations: Sequence[RateObservation]) -> PersistenceResult:
        """Insert observations, skipping keys that are already stored."""

    @abstractmethod
    def store_non_trading_days(self, days: Iterable[date]) -> PersistenceResult:
        """Mark ``days`` as non-trading, skipping days already marked."""

    def query_complete(
        self, currencies: Collection[str], start: date, end: date
    ) -> dict[str, list[RateObservation]]:
        """Return cached observations for the currencies fully covering the range.

        Currencies with partial or no coverage are left out of the mapping
        entirely and must be fetched again for the whole range.
        """

        wanted = set(currencies)
        if not wanted or start > end:
            return {}
        observations = self.fetch_observations(wanted, start, end)
        non_trading_days = self.fetch_non_trading_days(start, end)
        return complete_coverage(wanted, observations, non_trading_days, start, end)

    def close(self) -> None:  # pragma: no cover - optional cleanup hook
        """Backends may override to release connections/resources."""


def complete_coverage(
    currencies: Collection[str],
    observations: Iterable[RateObservation],
    non_trading_days: Iterable[date],
    start: date,
    end: date,
) -> dict[str, list[RateObservation]]:
    """Select currencies whose observation count matches the business-day count.

    A currency without any stored row in the range is never complete, even
    when every weekday of the range is marked as non-trading.
    """

    wanted = set(currencies)
    by_currency: dict[str, list[RateObservation]] = {}
    dates_with_data: set[date] = set()
    for observation in observations:
        if observation.currency not in wanted or not start <= observation.rate_date <= end:
            continue
        by_currency.setdefault(observation.currency, []).append(observation)
        dates_with_data.add(observation.rate_date)

    # A stored marker is only trusted while no rate exists for that date.
    effective_markers = {
        day
        for day in non_trading_days
        if start <= day <= end and not is_weekend(day) and day not in dates_with_data
    }
    required = count_weekdays(start, end) - len(effective_markers)

    complete: dict[str, list[RateObservation]] = {}
    for currency, rows in by_currency.items():
        covered = {row.rate_date for row in rows if not is_weekend(row.rate_date)}
        if len(covered) == required:
            complete[currency] = sorted(rows, key=lambda row: row.rate_date)
    return complete


__all__ = ["RateCache", "complete_coverage"]
