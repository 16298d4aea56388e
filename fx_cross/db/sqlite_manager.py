"""SQLAlchemy ORM persistence for the bundled SQLite rate cache."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Collection, Iterable, Sequence, cast

from sqlalchemy import Column, Date, DateTime, Float, String, create_engine, select, text
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from fx_cross.db import DEFAULT_SQLITE_DB_PATH
from fx_cross.exceptions import CacheUnavailable, CacheWriteFailure
from fx_cross.ingestion.models import RateObservation
from fx_cross.utils.logger import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class _ReferenceRate(Base):
    __tablename__ = "reference_rates"

    rate_date = Column(Date, primary_key=True)
    currency_code = Column(String(3), primary_key=True)
    rate = Column(Float, nullable=False)
    created_at = Column(DateTime, server_default=text("CURRENT_TIMESTAMP"))


class _NonTradingDay(Base):
    __tablename__ = "non_trading_days"

    rate_date = Column(Date, primary_key=True)
    created_at = Column(DateTime, server_default=text("CURRENT_TIMESTAMP"))


@dataclass(slots=True)
class PersistenceResult:
    """Represents how many rows a batch inserted and how many already existed."""

    inserted: int = 0
    skipped: int = 0

    @property
    def total(self) -> int:
        """Return the number of rows submitted."""

        return self.inserted + self.skipped


def unique_by_key(rows: Iterable[RateObservation]) -> list[RateObservation]:
    """Drop repeated ``(currency, date)`` keys, keeping the first occurrence."""

    seen: set[tuple[str, date]] = set()
    unique: list[RateObservation] = []
    for row in rows:
        if row.key in seen:
            continue
        seen.add(row.key)
        unique.append(row)
    return unique


class SQLiteManager:
    """Reads and writes cached EUR rates and non-trading days in SQLite."""

    def __init__(self, db_path: str | Path = DEFAULT_SQLITE_DB_PATH) -> None:
        self.db_path = Path(db_path).expanduser().resolve()
        self.engine: Engine = create_engine(
            f"sqlite:///{self.db_path}",
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
        )
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise CacheUnavailable(f"Cannot prepare SQLite cache at {self.db_path}: {exc}") from exc
        self._SessionFactory: sessionmaker[Session] = sessionmaker(
            bind=self.engine, expire_on_commit=False, future=True
        )

    def insert_rates(self, rows: Sequence[RateObservation]) -> PersistenceResult:
        """Insert observations whose key is not stored yet; existing keys are kept."""

        result = PersistenceResult()
        unique_rows = unique_by_key(rows)
        result.skipped += len(rows) - len(unique_rows)
        if not unique_rows:
            return result
        try:
            with self._SessionFactory() as session:
                for row in unique_rows:
                    stmt = (
                        sqlite_insert(_ReferenceRate.__table__)
                        .values(
                            rate_date=row.rate_date,
                            currency_code=row.currency,
                            rate=row.rate,
                        )
                        .on_conflict_do_nothing(index_elements=["rate_date", "currency_code"])
                    )
                    if session.execute(stmt).rowcount:
                        result.inserted += 1
                    else:
                        result.skipped += 1
                session.commit()
        except SQLAlchemyError as exc:
            raise CacheWriteFailure(f"Failed to store rates in {self.db_path}: {exc}") from exc
        LOGGER.info(
            "Inserted %s rates, skipped %s existing (total %s)",
            result.inserted,
            result.skipped,
            result.total,
        )
        return result

    def insert_non_trading_days(self, days: Iterable[date]) -> PersistenceResult:
        result = PersistenceResult()
        try:
            with self._SessionFactory() as session:
                for day in sorted(set(days)):
                    stmt = (
                        sqlite_insert(_NonTradingDay.__table__)
                        .values(rate_date=day)
                        .on_conflict_do_nothing(index_elements=["rate_date"])
                    )
                    if session.execute(stmt).rowcount:
                        result.inserted += 1
                    else:
                        result.skipped += 1
                session.commit()
        except SQLAlchemyError as exc:
            raise CacheWriteFailure(
                f"Failed to store non-trading days in {self.db_path}: {exc}"
            ) from exc
        return result

    def fetch_range(
        self,
        start: date | None = None,
        end: date | None = None,
        *,
        currencies: Collection[str] | None = None,
    ) -> list[RateObservation]:
        stmt = select(_ReferenceRate).order_by(
            _ReferenceRate.rate_date, _ReferenceRate.currency_code
        )
        if start is not None:
            stmt = stmt.where(_ReferenceRate.rate_date >= start)
        if end is not None:
            stmt = stmt.where(_ReferenceRate.rate_date <= end)
        if currencies is not None:
            stmt = stmt.where(_ReferenceRate.currency_code.in_(sorted(currencies)))
        try:
            with self._SessionFactory() as session:
                models = list(session.execute(stmt).scalars())
        except SQLAlchemyError as exc:
            raise CacheUnavailable(f"Failed to read rates from {self.db_path}: {exc}") from exc
        return [
            RateObservation(
                currency=cast(str, model.currency_code),
                rate_date=cast(date, model.rate_date),
                rate=cast(float, model.rate),
            )
            for model in models
        ]

    def fetch_non_trading_days(
        self, start: date | None = None, end: date | None = None
    ) -> set[date]:
        stmt = select(_NonTradingDay.rate_date)
        if start is not None:
            stmt = stmt.where(_NonTradingDay.rate_date >= start)
        if end is not None:
            stmt = stmt.where(_NonTradingDay.rate_date <= end)
        try:
            with self._SessionFactory() as session:
                return {cast(date, day) for day in session.execute(stmt).scalars()}
        except SQLAlchemyError as exc:
            raise CacheUnavailable(
                f"Failed to read non-trading days from {self.db_path}: {exc}"
            ) from exc

    def close(self) -> None:  # pragma: no cover - trivial
        self.engine.dispose()

    def __enter__(self) -> "SQLiteManager":  # pragma: no cover - trivial
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.close()


__all__ = ["PersistenceResult", "SQLiteManager", "unique_by_key"]
