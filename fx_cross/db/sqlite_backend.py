"""SQLite rate cache implementation."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Collection, Iterable, Sequence

from fx_cross.db import DEFAULT_SQLITE_DB_PATH
from fx_cross.db.base_backend import RateCache
from fx_cross.db.sqlite_manager import PersistenceResult, SQLiteManager
from fx_cross.ingestion.models import RateObservation


class SQLiteBackend(RateCache):
    """Rate cache backed by the bundled SQLite database."""

    def __init__(
        self,
        db_path: str | Path = DEFAULT_SQLITE_DB_PATH,
        *,
        manager: SQLiteManager | None = None,
    ) -> None:
        self.manager = manager or SQLiteManager(db_path)
        self.db_path = Path(self.manager.db_path)

    def ensure_schema(self) -> None:
        # ``SQLiteManager`` creates the schema in its constructor.
        return None

    def fetch_observations(
        self, currencies: Collection[str], start: date, end: date
    ) -> list[RateObservation]:
        return self.manager.fetch_range(start, end, currencies=currencies)

    def fetch_non_trading_days(self, start: date, end: date) -> set[date]:
        return self.manager.fetch_non_trading_days(start, end)

    def store(self, observations: Sequence[RateObservation]) -> PersistenceResult:
        return self.manager.insert_rates(observations)

    def store_non_trading_days(self, days: Iterable[date]) -> PersistenceResult:
        return self.manager.insert_non_trading_days(days)

    def close(self) -> None:  # pragma: no cover - trivial delegator
        self.manager.close()


__all__ = ["SQLiteBackend"]
