"""Shared logic for SQL (Postgres/MySQL) rate caches."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Collection, Iterable, Sequence

from sqlalchemy import TextClause, bindparam, create_engine, text
from sqlalchemy.engine import Connection, Engine, RowMapping
from sqlalchemy.exc import SQLAlchemyError

from fx_cross.db.base_backend import RateCache
from fx_cross.db.sqlite_manager import PersistenceResult, unique_by_key
from fx_cross.exceptions import CacheUnavailable, CacheWriteFailure
from fx_cross.ingestion.models import RateObservation
from fx_cross.utils.logger import get_logger

LOGGER = get_logger(__name__)

SCHEMA_SQL_RATES = """
CREATE TABLE IF NOT EXISTS reference_rates (
    rate_date DATE NOT NULL,
    currency_code VARCHAR(3) NOT NULL,
    rate NUMERIC(18, 6) NOT NULL,
    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY(rate_date, currency_code)
);
"""

SCHEMA_SQL_NON_TRADING = """
CREATE TABLE IF NOT EXISTS non_trading_days (
    rate_date DATE NOT NULL,
    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY(rate_date)
);
"""

SELECT_RATES_SQL = """
SELECT rate_date, currency_code, rate FROM reference_rates
WHERE rate_date >= :start_date AND rate_date <= :end_date AND currency_code IN :currencies
ORDER BY rate_date, currency_code
"""

SELECT_NON_TRADING_SQL = """
SELECT rate_date FROM non_trading_days
WHERE rate_date >= :start_date AND rate_date <= :end_date
"""


class RelationalBackend(RateCache):
    """Base class that encapsulates SQLAlchemy powered interactions.

    The insert statements skip keys that already exist so that concurrent
    callers storing the same window never produce duplicate rows. Dialects with
    native conflict handling override them.
    """

    INSERT_RATE_SQL = """
INSERT INTO reference_rates(rate_date, currency_code, rate)
SELECT :rate_date, :currency_code, :rate
WHERE NOT EXISTS (
    SELECT 1 FROM reference_rates
    WHERE rate_date = :rate_date AND currency_code = :currency_code
)
"""
    INSERT_NON_TRADING_SQL = """
INSERT INTO non_trading_days(rate_date)
SELECT :rate_date
WHERE NOT EXISTS (SELECT 1 FROM non_trading_days WHERE rate_date = :rate_date)
"""

    def __init__(self, url: str) -> None:
        self.url = url
        self._engine_instance: Engine | None = None

    def _get_engine(self) -> Engine:
        if self._engine_instance is None:
            try:
                self._engine_instance = create_engine(self.url, future=True)
            except ModuleNotFoundError as exc:
                raise CacheUnavailable(f"Missing database driver {exc.name!r}") from exc
        return self._engine_instance

    def ensure_schema(self) -> None:
        try:
            with self._get_engine().begin() as connection:
                LOGGER.info("Ensuring reference_rates schema exists")
                connection.execute(text("SELECT 1"))
                connection.execute(text(SCHEMA_SQL_RATES))
                connection.execute(text(SCHEMA_SQL_NON_TRADING))
        except SQLAlchemyError as exc:
            raise CacheUnavailable(f"Failed to prepare rate cache schema: {exc}") from exc

    def fetch_observations(
        self, currencies: Collection[str], start: date, end: date
    ) -> list[RateObservation]:
        if not currencies:
            return []
        query = text(SELECT_RATES_SQL).bindparams(bindparam("currencies", expanding=True))
        params = {
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "currencies": sorted(currencies),
        }
        rows = self._read(query, params, "rates")
        return [
            RateObservation(
                currency=row["currency_code"],
                rate_date=_normalise_rate_date(row["rate_date"]),
                rate=float(row["rate"]),
            )
            for row in rows
        ]

    def fetch_non_trading_days(self, start: date, end: date) -> set[date]:
        params = {"start_date": start.isoformat(), "end_date": end.isoformat()}
        rows = self._read(text(SELECT_NON_TRADING_SQL), params, "non-trading days")
        return {_normalise_rate_date(row["rate_date"]) for row in rows}

    def _read(self, query: TextClause, params: dict[str, Any], label: str) -> list[RowMapping]:
        try:
            with self._get_engine().connect() as connection:
                return list(connection.execute(query, params).mappings())
        except SQLAlchemyError as exc:
            raise CacheUnavailable(f"Failed to read {label}: {exc}") from exc

    def store(self, observations: Sequence[RateObservation]) -> PersistenceResult:
        unique_rows = unique_by_key(observations)
        params = [
            {
                "rate_date": row.rate_date.isoformat(),
                "currency_code": row.currency,
                "rate": row.rate,
            }
            for row in unique_rows
        ]
        result = self._insert_each(self.INSERT_RATE_SQL, params, "rates")
        result.skipped += len(observations) - len(unique_rows)
        LOGGER.info(
            "Inserted %s rates, skipped %s existing (total %s)",
            result.inserted,
            result.skipped,
            result.total,
        )
        return result

    def store_non_trading_days(self, days: Iterable[date]) -> PersistenceResult:
        params = [{"rate_date": day.isoformat()} for day in sorted(set(days))]
        return self._insert_each(self.INSERT_NON_TRADING_SQL, params, "non-trading days")

    def _insert_each(
        self, statement: str, params: list[dict[str, Any]], label: str
    ) -> PersistenceResult:
        result = PersistenceResult()
        if not params:
            return result
        try:
            with self._get_engine().begin() as connection:
                for row_params in params:
                    if self._execute_insert(connection, statement, row_params):
                        result.inserted += 1
                    else:
                        result.skipped += 1
        except SQLAlchemyError as exc:
            raise CacheWriteFailure(f"Failed to store {label}: {exc}") from exc
        return result

    @staticmethod
    def _execute_insert(connection: Connection, statement: str, params: dict[str, Any]) -> bool:
        return bool(connection.execute(text(statement), params).rowcount)

    def close(self) -> None:  # pragma: no cover - trivial resource cleanup
        if self._engine_instance is not None:
            self._engine_instance.dispose()


def _normalise_rate_date(value: object) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, datetime):
        return value.date()
    return date.fromisoformat(str(value))


__all__ = ["RelationalBackend"]
