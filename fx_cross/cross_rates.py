"""Cross-rate generation on top of cached EUR reference rates."""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from fx_cross.db.base_backend import RateCache
from fx_cross.exceptions import CacheWriteFailure, InvalidRange
from fx_cross.ingestion.models import CrossRate, RateObservation
from fx_cross.ingestion.strategy import RateSource
from fx_cross.utils.business_days import (
    DateRange,
    is_weekend,
    iter_days,
    subtract_business_days,
)
from fx_cross.utils.logger import get_logger

LOGGER = get_logger(__name__)

REFERENCE_CURRENCY = "EUR"
# Rates are published with a lag of up to a few business days.
LOOKBACK_BUSINESS_DAYS = 3
CROSS_RATE_QUANTUM = Decimal("0.0001")

CurrencyPair = tuple[str, str]
RatesByDate = dict[date, dict[str, RateObservation]]


def triangulate(rate_from: float, rate_to: float) -> float:
    """Return ``rate_to / rate_from`` rounded half away from zero to 4 places."""

    quotient = Decimal(repr(rate_to)) / Decimal(repr(rate_from))
    return float(quotient.quantize(CROSS_RATE_QUANTUM, rounding=ROUND_HALF_UP))


class CrossRateEngine:
    """Builds day-by-day cross rates for currency pairs.

    Rates for the requested currencies are taken from ``cache`` when it holds
    the whole window and fetched from ``source`` otherwise. Days without a
    published rate reuse the most recent earlier rate. Business days found
    without any rate are written back to the cache as non-trading days.
    """

    def __init__(
        self,
        cache: RateCache,
        source: RateSource,
        *,
        reference_currency: str = REFERENCE_CURRENCY,
        lookback_days: int = LOOKBACK_BUSINESS_DAYS,
    ) -> None:
        self.cache = cache
        self.source = source
        self.reference_currency = reference_currency
        self.lookback_days = lookback_days

    def generate(
        self,
        pairs: Sequence[CurrencyPair],
        start: date,
        end: date,
        *,
        today: date,
    ) -> list[CrossRate]:
        """Return cross rates for every day in ``[start, end]`` and every pair.

        Output is ordered by date, then by the order of ``pairs``. A pair is
        omitted for a day when either currency has no applicable rate.
        ``today`` bounds non-trading day inference: the current day may simply
        not be published yet.
        """

        if start > end:
            raise InvalidRange("start date must not be after end date")

        ordered_pairs = [(code_from, code_to) for code_from, code_to in pairs]
        currencies = self._required_currencies(ordered_pairs)
        window = DateRange(subtract_business_days(start, self.lookback_days), end)

        observations = self._collect_observations(currencies, window)
        rates_by_date = self._group_by_date(observations)
        applicable_dates, non_trading_days = self._walk_window(rates_by_date, window, today)
        cross_rates = self._build_cross_rates(
            ordered_pairs, rates_by_date, applicable_dates, DateRange(start, end)
        )
        self._record_non_trading_days(non_trading_days)
        return cross_rates

    def _required_currencies(self, pairs: Iterable[CurrencyPair]) -> set[str]:
        return {
            code
            for pair in pairs
            for code in pair
            if code != self.reference_currency
        }

    def _collect_observations(
        self, currencies: set[str], window: DateRange
    ) -> list[RateObservation]:
        if not currencies:
            return []
        cached = self.cache.query_complete(currencies, window.start, window.end)
        missing = sorted(currencies - cached.keys())
        LOGGER.info(
            "Cache complete for %s, fetching %s (%s → %s)",
            sorted(cached) or "none",
            missing or "none",
            window.start,
            window.end,
        )
        observations = [row for rows in cached.values() for row in rows]
        if missing:
            fetched = [
                row
                for row in self.source.fetch(missing, window.start, window.end)
                if row.currency in missing and row.rate_date in window
            ]
            # Store failures propagate; only non-trading writes are best effort.
            self.cache.store(fetched)
            observations.extend(fetched)
        return observations

    def _group_by_date(self, observations: Iterable[RateObservation]) -> RatesByDate:
        grouped: RatesByDate = {}
        for row in observations:
            grouped.setdefault(row.rate_date, {})[row.currency] = row
        for rate_date, rates in grouped.items():
            rates[self.reference_currency] = RateObservation(
                currency=self.reference_currency, rate_date=rate_date, rate=1.0
            )
        return grouped

    @staticmethod
    def _walk_window(
        rates_by_date: RatesByDate,
        window: DateRange,
        today: date,
    ) -> tuple[dict[date, date | None], list[date]]:
        """Map each day to the latest day with rates and collect gaps.

        A weekday before ``today`` with no rates at all is a non-trading day,
        provided some earlier day of the window has rates. Days ahead of the
        first observation are left alone, so an empty answer from the source
        never turns into markers.
        """

        applicable: dict[date, date | None] = {}
        non_trading_days: list[date] = []
        current: date | None = None
        for day in window.days():
            if day in rates_by_date:
                current = day
            elif current is not None and not is_weekend(day) and day < today:
                non_trading_days.append(day)
            applicable[day] = current
        return applicable, non_trading_days

    @staticmethod
    def _build_cross_rates(
        pairs: Sequence[CurrencyPair],
        rates_by_date: RatesByDate,
        applicable_dates: dict[date, date | None],
        requested: DateRange,
    ) -> list[CrossRate]:
        results: list[CrossRate] = []
        for day in iter_days(requested.start, requested.end):
            applicable = applicable_dates.get(day)
            if applicable is None:
                continue
            rates = rates_by_date[applicable]
            for code_from, code_to in pairs:
                rate_from = rates.get(code_from)
                rate_to = rates.get(code_to)
                if rate_from is None or rate_to is None:
                    continue
                results.append(
                    CrossRate(
                        rate_date=day,
                        currency_from=code_from,
                        currency_to=code_to,
                        rate=triangulate(rate_from.rate, rate_to.rate),
                    )
                )
        return results

    def _record_non_trading_days(self, days: list[date]) -> None:
        if not days:
            return
        try:
            result = self.cache.store_non_trading_days(days)
        except CacheWriteFailure as exc:
            LOGGER.warning("Could not record %s non-trading days: %s", len(days), exc)
            return
        LOGGER.info("Recorded %s new non-trading days", result.inserted)


__all__ = [
    "CrossRateEngine",
    "LOOKBACK_BUSINESS_DAYS",
    "REFERENCE_CURRENCY",
    "triangulate",
]
