"""Abstractions for pluggable rate sources."""

from __future__ import annotations

from datetime import date
from typing import Collection, Protocol

from fx_cross.ingestion.models import RateObservation


class RateSource(Protocol):
    """Contract for fetching reference-currency rates.

    Implementations issue a single request covering every currency and the
    whole date span, and return the parsed observations. Transport failures are
    reported as :class:`~fx_cross.exceptions.SourceUnavailable` and unparseable
    rows as :class:`~fx_cross.exceptions.MalformedResponse`.
    """

    def fetch(
        self, currencies: Collection[str], start_date: date, end_date: date
    ) -> list[RateObservation]:
        ...  # pragma: no cover - protocol definition


__all__ = ["RateSource"]
