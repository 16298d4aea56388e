"""MongoDB rate cache."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Collection, Iterable, Sequence

from pymongo import MongoClient, UpdateOne
from pymongo.collection import Collection as MongoCollection
from pymongo.errors import BulkWriteError, PyMongoError

from fx_cross.db.base_backend import RateCache
from fx_cross.db.sqlite_manager import PersistenceResult, unique_by_key
from fx_cross.exceptions import CacheUnavailable, CacheWriteFailure
from fx_cross.ingestion.models import RateObservation
from fx_cross.utils.logger import get_logger

LOGGER = get_logger(__name__)


class MongoBackend(RateCache):
    """Rate cache that persists EUR rates inside MongoDB.

    Writes use ``$setOnInsert`` upserts against unique indexes, so a key that
    already exists is left untouched and concurrent writers cannot duplicate it.
    """

    def __init__(self, url: str, *, database: str | None = None) -> None:
        self.url = url
        try:
            self._client = MongoClient(url)
            db = self._client.get_default_database() if database is None else self._client[database]
        except PyMongoError as exc:
            raise CacheUnavailable(f"Cannot open MongoDB rate cache: {exc}") from exc
        if db is None:
            raise ValueError("MongoDB connection URI must include a database name")
        self._rates: MongoCollection = db["reference_rates"]
        self._non_trading: MongoCollection = db["non_trading_days"]

    def ensure_schema(self) -> None:
        try:
            LOGGER.info("Ensuring MongoDB rate collections exist")
            self._client.admin.command("ping")
            self._rates.create_index([("rate_date", 1), ("currency_code", 1)], unique=True)
            self._non_trading.create_index([("rate_date", 1)], unique=True)
        except PyMongoError as exc:
            raise CacheUnavailable(f"Failed to ensure MongoDB schema: {exc}") from exc

    def fetch_observations(
        self, currencies: Collection[str], start: date, end: date
    ) -> list[RateObservation]:
        if not currencies:
            return []
        query: dict[str, Any] = {
            "rate_date": {"$gte": start.isoformat(), "$lte": end.isoformat()},
            "currency_code": {"$in": sorted(currencies)},
        }
        try:
            docs = list(self._rates.find(query).sort("rate_date", 1))
        except PyMongoError as exc:
            raise CacheUnavailable(f"Failed to read MongoDB rates: {exc}") from exc
        return [
            RateObservation(
                currency=doc["currency_code"],
                rate_date=date.fromisoformat(doc["rate_date"]),
                rate=float(doc["rate"]),
            )
            for doc in docs
        ]

    def fetch_non_trading_days(self, start: date, end: date) -> set[date]:
        query = {"rate_date": {"$gte": start.isoformat(), "$lte": end.isoformat()}}
        try:
            docs = list(self._non_trading.find(query))
        except PyMongoError as exc:
            raise CacheUnavailable(f"Failed to read MongoDB non-trading days: {exc}") from exc
        return {date.fromisoformat(doc["rate_date"]) for doc in docs}

    def store(self, observations: Sequence[RateObservation]) -> PersistenceResult:
        unique_rows = unique_by_key(observations)
        operations = [
            UpdateOne(
                {"rate_date": row.rate_date.isoformat(), "currency_code": row.currency},
                {
                    "$setOnInsert": {
                        "rate_date": row.rate_date.isoformat(),
                        "currency_code": row.currency,
                        "rate": row.rate,
                        "created_at": datetime.now(timezone.utc),
                    }
                },
                upsert=True,
            )
            for row in unique_rows
        ]
        result = self._bulk_upsert(self._rates, operations, "rates")
        result.skipped += len(observations) - len(unique_rows)
        LOGGER.info(
            "Inserted %s rates, skipped %s existing (total %s)",
            result.inserted,
            result.skipped,
            result.total,
        )
        return result

    def store_non_trading_days(self, days: Iterable[date]) -> PersistenceResult:
        operations = [
            UpdateOne(
                {"rate_date": day.isoformat()},
                {
                    "$setOnInsert": {
                        "rate_date": day.isoformat(),
                        "created_at": datetime.now(timezone.utc),
                    }
                },
                upsert=True,
            )
            for day in sorted(set(days))
        ]
        return self._bulk_upsert(self._non_trading, operations, "non-trading days")

    @staticmethod
    def _bulk_upsert(
        collection: MongoCollection, operations: list[UpdateOne], label: str
    ) -> PersistenceResult:
        result = PersistenceResult()
        if not operations:
            return result
        try:
            outcome = collection.bulk_write(operations, ordered=False)
        except BulkWriteError as exc:
            details = exc.details or {}
            errors = details.get("writeErrors", [])
            # Racing upserts of one key surface as duplicate key errors (11000).
            if not errors or any(error.get("code") != 11000 for error in errors):
                raise CacheWriteFailure(f"Failed to store MongoDB {label}: {exc}") from exc
            result.inserted = details.get("nUpserted", 0)
            result.skipped = len(operations) - result.inserted
            return result
        except PyMongoError as exc:
            raise CacheWriteFailure(f"Failed to store MongoDB {label}: {exc}") from exc
        result.inserted = outcome.upserted_count
        result.skipped = len(operations) - outcome.upserted_count
        return result

    def close(self) -> None:  # pragma: no cover - trivial cleanup
        self._client.close()


__all__ = ["MongoBackend"]
