"""Data models shared across ingestion, storage and cross-rate generation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any


@dataclass(frozen=True, slots=True)
class RateObservation:
    """One reference-currency rate: 1 EUR buys ``rate`` units of ``currency``."""

    currency: str
    rate_date: date
    rate: float

    @property
    def key(self) -> tuple[str, date]:
        return (self.currency, self.rate_date)


@dataclass(frozen=True, slots=True)
class CrossRate:
    """Rate between two currencies on ``rate_date``, triangulated via EUR."""

    rate_date: date
    currency_from: str
    currency_to: str
    rate: float

    def as_dict(self) -> dict[str, Any]:
        return {
            "date": self.rate_date.isoformat(),
            "from": self.currency_from,
            "to": self.currency_to,
            "rate": self.rate,
        }


__all__ = ["CrossRate", "RateObservation"]
