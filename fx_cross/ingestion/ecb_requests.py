"""requests-based client for the ECB daily euro reference rates."""

from __future__ import annotations

import random
import time
from datetime import date
from typing import Collection, Optional

import requests

from fx_cross.exceptions import InvalidRange, SourceUnavailable
from fx_cross.ingestion.ecb_csv import ECBCSVParser
from fx_cross.ingestion.models import RateObservation
from fx_cross.utils.logger import get_logger

LOGGER = get_logger(__name__)

ECB_DATA_URL = "https://data-api.ecb.europa.eu/service/data/EXR/D.{currencies}.EUR.SP00.A"


class ECBRequestsClient:
    """Fetch EUR reference rates for many currencies in one request."""

    def __init__(
        self,
        *,
        base_url: str = ECB_DATA_URL,
        timeout: int = 30,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        session: Optional[requests.Session] = None,
        parser: Optional[ECBCSVParser] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.base_url = base_url
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.parser = parser or ECBCSVParser()
        self.session = session or requests.Session()
        # CSV is the smallest representation the service offers.
        self.session.headers.update({"Accept": "text/csv"})

    def build_url(self, currencies: Collection[str]) -> str:
        return self.base_url.format(currencies="+".join(sorted(set(currencies))))

    def fetch(
        self, currencies: Collection[str], start_date: date, end_date: date
    ) -> list[RateObservation]:
        """Return every published rate for ``currencies`` within the window."""

        if start_date > end_date:
            raise InvalidRange("start_date must not exceed end_date")
        if not currencies:
            return []

        url = self.build_url(currencies)
        params = {
            "startPeriod": start_date.isoformat(),
            "endPeriod": end_date.isoformat(),
            "detail": "dataonly",
        }
        body = self._download(url, params)
        observations = self.parser.parse(body)
        LOGGER.info(
            "Fetched %s ECB observations for %s (%s → %s)",
            len(observations),
            ",".join(sorted(set(currencies))),
            start_date,
            end_date,
        )
        return observations

    def _download(self, url: str, params: dict[str, str]) -> str:
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                LOGGER.debug("GET %s %s", url, params)
                response = self.session.get(url, params=params, timeout=self.timeout)
                # The service answers 404 when the window holds no observations.
                if response.status_code == 404:
                    LOGGER.info("ECB returned no data for %s", url)
                    return ""
                response.raise_for_status()
                return response.text
            except requests.RequestException as exc:
                last_error = exc
                LOGGER.warning(
                    "Attempt %s/%s to download ECB rates failed: %s",
                    attempt,
                    self.max_attempts,
                    exc,
                )
                if attempt < self.max_attempts:
                    jitter = random.uniform(0.5, 1.5)
                    time.sleep(self.backoff_seconds * attempt * jitter)
        raise SourceUnavailable(f"Unable to reach the ECB data service at {url}") from last_error

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "ECBRequestsClient":  # pragma: no cover - trivial
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # pragma: no cover - trivial
        self.close()


__all__ = ["ECBRequestsClient", "ECB_DATA_URL"]
