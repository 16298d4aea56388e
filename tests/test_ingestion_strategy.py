from __future__ import annotations

from datetime import date

from fx_cross.ingestion.ecb_requests import ECBRequestsClient
from fx_cross.ingestion.models import RateObservation
from fx_cross.ingestion.strategy import RateSource


class _DummySource:
    def fetch(self, currencies, start_date: date, end_date: date) -> list[RateObservation]:
        return [RateObservation(currency=code, rate_date=start_date, rate=1.5) for code in currencies]


def test_rate_source_contract() -> None:
    source: RateSource = _DummySource()

    result = source.fetch(["USD", "PLN"], date(2020, 11, 16), date(2020, 11, 16))

    assert [row.key for row in result] == [
        ("USD", date(2020, 11, 16)),
        ("PLN", date(2020, 11, 16)),
    ]


def test_ecb_client_satisfies_rate_source() -> None:
    source: RateSource = ECBRequestsClient()

    assert source.fetch([], date(2020, 11, 16), date(2020, 11, 16)) == []
