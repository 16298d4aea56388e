"""Mongo backend tests that monkeypatch pymongo primitives."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List

import pytest

from fx_cross.db import mongo_backend as mongo_module
from fx_cross.exceptions import CacheUnavailable, CacheWriteFailure
from fx_cross.ingestion.models import RateObservation


class _DummyCursor:
    def __init__(self, docs: List[Dict[str, Any]]) -> None:
        self._docs = docs

    def __iter__(self):
        return iter(self._docs)

    def sort(self, field: str, direction: int) -> List[Dict[str, Any]]:
        reverse = direction == -1
        return sorted(self._docs, key=lambda doc: doc[field], reverse=reverse)


class _DummyBulkResult:
    def __init__(self, upserted_count: int) -> None:
        self.upserted_count = upserted_count


class _DummyBulkWriteError(RuntimeError):
    def __init__(self, details: Dict[str, Any]) -> None:
        super().__init__("bulk write error")
        self.details = details


class _DummyUpdateOne:
    def __init__(
        self, filter: Dict[str, str], update: Dict[str, Dict[str, Any]], *, upsert: bool
    ) -> None:
        assert upsert is True
        self.filter = filter
        self.update = update


class _DummyCollection:
    def __init__(self) -> None:
        self.docs: Dict[tuple, Dict[str, Any]] = {}
        self.indexes: list[tuple[tuple[tuple[str, int], ...], bool]] = []
        self.fail_with: Exception | None = None

    def create_index(self, fields: list[tuple[str, int]], unique: bool) -> None:
        self.indexes.append((tuple(fields), unique))

    def bulk_write(self, operations: list[_DummyUpdateOne], ordered: bool) -> _DummyBulkResult:
        assert ordered is False
        if self.fail_with is not None:
            raise self.fail_with
        upserted = 0
        for op in operations:
            key = tuple(sorted(op.filter.items()))
            if key not in self.docs:
                self.docs[key] = dict(op.update["$setOnInsert"])
                upserted += 1
        return _DummyBulkResult(upserted)

    def find(self, query: Dict[str, Dict[str, Any]]) -> _DummyCursor:
        docs = list(self.docs.values())
        range_query = query.get("rate_date", {})
        if "$gte" in range_query:
            docs = [doc for doc in docs if doc["rate_date"] >= range_query["$gte"]]
        if "$lte" in range_query:
            docs = [doc for doc in docs if doc["rate_date"] <= range_query["$lte"]]
        if "currency_code" in query:
            wanted = set(query["currency_code"]["$in"])
            docs = [doc for doc in docs if doc["currency_code"] in wanted]
        return _DummyCursor(docs)


class _DummyDatabase(dict):
    def __getitem__(self, name: str) -> _DummyCollection:  # type: ignore[override]
        if name not in self:
            self[name] = _DummyCollection()
        return dict.__getitem__(self, name)


class _DummyClient:
    def __init__(self, url: str) -> None:
        self.url = url
        self.admin = self
        self.closed = False
        self.databases: Dict[str, _DummyDatabase] = {}

    def __getitem__(self, name: str) -> _DummyDatabase:
        return self.databases.setdefault(name, _DummyDatabase())

    def get_default_database(self) -> _DummyDatabase:
        return self.__getitem__("default")

    def command(self, name: str) -> None:
        assert name == "ping"

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def patch_mongo_client(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(mongo_module, "MongoClient", _DummyClient)
    monkeypatch.setattr(mongo_module, "PyMongoError", RuntimeError)
    monkeypatch.setattr(mongo_module, "BulkWriteError", _DummyBulkWriteError)
    monkeypatch.setattr(mongo_module, "UpdateOne", _DummyUpdateOne)


def _backend() -> mongo_module.MongoBackend:
    backend = mongo_module.MongoBackend("mongodb://example.com/", database="fx")
    backend.ensure_schema()
    return backend


def test_mongo_backend_roundtrip() -> None:
    backend = _backend()

    rows = [
        RateObservation(currency="USD", rate_date=date(2020, 11, 16), rate=1.1868),
        RateObservation(currency="PLN", rate_date=date(2020, 11, 16), rate=4.4805),
    ]
    assert backend.store(rows).inserted == 2

    again = backend.store(
        [
            RateObservation(currency="USD", rate_date=date(2020, 11, 16), rate=1.5),
            RateObservation(currency="USD", rate_date=date(2020, 11, 17), rate=1.1853),
        ]
    )
    assert again.inserted == 1
    assert again.skipped == 1

    fetched = backend.fetch_observations({"USD"}, date(2020, 11, 16), date(2020, 11, 17))
    assert [(row.rate_date, row.rate) for row in fetched] == [
        (date(2020, 11, 16), 1.1868),
        (date(2020, 11, 17), 1.1853),
    ]
    assert backend.query_complete({"USD", "PLN"}, date(2020, 11, 16), date(2020, 11, 17)).keys() == {
        "USD"
    }

    backend.close()
    assert backend._client.closed is True


def test_mongo_backend_creates_unique_indexes() -> None:
    backend = _backend()

    assert backend._rates.indexes == [((("rate_date", 1), ("currency_code", 1)), True)]
    assert backend._non_trading.indexes == [((("rate_date", 1),), True)]


def test_mongo_backend_non_trading_days() -> None:
    backend = _backend()

    first = backend.store_non_trading_days([date(2020, 12, 25), date(2021, 1, 1)])
    second = backend.store_non_trading_days([date(2020, 12, 25)])

    assert first.inserted == 2
    assert second.skipped == 1
    assert backend.fetch_non_trading_days(date(2020, 12, 1), date(2020, 12, 31)) == {
        date(2020, 12, 25)
    }


def test_mongo_backend_tolerates_racing_duplicate_keys() -> None:
    backend = _backend()
    backend._rates.fail_with = _DummyBulkWriteError(
        {"writeErrors": [{"code": 11000}], "nUpserted": 1}
    )

    result = backend.store(
        [
            RateObservation(currency="USD", rate_date=date(2020, 11, 16), rate=1.1868),
            RateObservation(currency="PLN", rate_date=date(2020, 11, 16), rate=4.4805),
        ]
    )

    assert result.inserted == 1
    assert result.skipped == 1


@pytest.mark.parametrize(
    "error",
    [
        _DummyBulkWriteError({"writeErrors": [{"code": 121}]}),
        RuntimeError("connection refused"),
    ],
)
def test_mongo_backend_wraps_write_errors(error: Exception) -> None:
    backend = _backend()
    backend._rates.fail_with = error

    with pytest.raises(CacheWriteFailure):
        backend.store([RateObservation(currency="USD", rate_date=date(2020, 11, 16), rate=1.18)])


def test_mongo_backend_requires_database_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(_DummyClient, "get_default_database", lambda self: None)

    with pytest.raises(ValueError, match="database name"):
        mongo_module.MongoBackend("mongodb://example.com/")


def test_mongo_backend_wraps_schema_and_read_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    backend = mongo_module.MongoBackend("mongodb://example.com/", database="fx")

    def _refuse(*args: Any, **kwargs: Any) -> None:
        raise RuntimeError("server selection timeout")

    monkeypatch.setattr(_DummyClient, "command", _refuse)
    monkeypatch.setattr(_DummyCollection, "find", _refuse)

    with pytest.raises(CacheUnavailable):
        backend.ensure_schema()
    with pytest.raises(CacheUnavailable):
        backend.fetch_observations({"USD"}, date(2020, 11, 16), date(2020, 11, 20))
    with pytest.raises(CacheUnavailable):
        backend.fetch_non_trading_days(date(2020, 11, 16), date(2020, 11, 20))
