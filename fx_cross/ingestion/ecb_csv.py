"""Parser for the ECB statistical data warehouse CSV format."""

from __future__ import annotations

import csv
import math
from datetime import date

from fx_cross.exceptions import MalformedResponse
from fx_cross.ingestion.models import RateObservation
from fx_cross.utils.logger import get_logger

LOGGER = get_logger(__name__)

ECB_CSV_HEADER = (
    "KEY",
    "FREQ",
    "CURRENCY",
    "CURRENCY_DENOM",
    "EXR_TYPE",
    "EXR_SUFFIX",
    "TIME_PERIOD",
    "OBS_VALUE",
)
CURRENCY_INDEX = ECB_CSV_HEADER.index("CURRENCY")
TIME_PERIOD_INDEX = ECB_CSV_HEADER.index("TIME_PERIOD")
OBS_VALUE_INDEX = ECB_CSV_HEADER.index("OBS_VALUE")


class ECBCSVParser:
    """Turn an ECB ``EXR`` CSV body into :class:`RateObservation` rows.

    The header line must match :data:`ECB_CSV_HEADER` exactly. Any other
    layout is treated as an empty body rather than an error, which leaves the
    cache incomplete for the range so the next request simply fetches again.
    Rows lacking a currency, period or value are skipped; a value or period
    that is present but cannot be parsed fails the whole body.
    """

    def parse(self, body: str) -> list[RateObservation]:
        if not body.strip():
            return []
        lines = body.lstrip("\ufeff").replace("\r", "").split("\n")
        if lines[0] != ",".join(ECB_CSV_HEADER):
            LOGGER.warning("Unexpected ECB CSV header %r; treating body as empty", lines[0][:120])
            return []

        observations: list[RateObservation] = []
        for line_number, fields in enumerate(csv.reader(lines[1:]), start=2):
            currency = _field(fields, CURRENCY_INDEX)
            period = _field(fields, TIME_PERIOD_INDEX)
            value = _field(fields, OBS_VALUE_INDEX)
            if not currency or not period or not value:
                continue
            observations.append(
                RateObservation(
                    currency=currency,
                    rate_date=_parse_period(period, line_number),
                    rate=_parse_value(value, line_number),
                )
            )
        return observations


def _field(fields: list[str], index: int) -> str | None:
    if index >= len(fields):
        return None
    return fields[index].strip()


def _parse_period(raw: str, line_number: int) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise MalformedResponse(f"Invalid TIME_PERIOD {raw!r} on line {line_number}") from exc


def _parse_value(raw: str, line_number: int) -> float:
    # Some locales publish a decimal comma.
    normalised = raw.replace(",", ".")
    try:
        value = float(normalised)
    except ValueError as exc:
        raise MalformedResponse(f"Invalid OBS_VALUE {raw!r} on line {line_number}") from exc
    if not math.isfinite(value) or value <= 0:
        raise MalformedResponse(f"Out of range OBS_VALUE {raw!r} on line {line_number}")
    return value


__all__ = ["ECBCSVParser", "ECB_CSV_HEADER"]
