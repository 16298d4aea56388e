"""CLI for printing daily cross rates between currency pairs."""

from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import date
from typing import Sequence

from fx_cross import FxCross
from fx_cross.exceptions import FxCrossError
from fx_cross.ingestion.ecb_requests import ECBRequestsClient
from fx_cross.utils.business_days import parse_date
from fx_cross.utils.logger import get_logger

LOGGER = get_logger(__name__)

DB_URL_ENV = "FX_CROSS_DB_URL"

__all__ = ["parse_args", "parse_pair", "main"]


def parse_pair(value: str) -> tuple[str, str]:
    code_from, separator, code_to = value.partition(":")
    if not separator or not code_from or not code_to:
        raise argparse.ArgumentTypeError(f"Expected FROM:TO, got {value!r}")
    return code_from, code_to


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--pair",
        dest="pairs",
        action="append",
        type=parse_pair,
        required=True,
        help="Currency pair as FROM:TO (repeatable), e.g. USD:PLN",
    )
    parser.add_argument("--from", dest="start", required=True, help="Start date (YYYY-MM-DD)")
    parser.add_argument("--to", dest="end", help="End date (YYYY-MM-DD), defaults to --from")
    parser.add_argument(
        "--db",
        dest="db_url",
        default=os.environ.get(DB_URL_ENV),
        help=f"Rate cache DSN (default: ${DB_URL_ENV} or the bundled SQLite file)",
    )
    parser.add_argument("--timeout", type=int, default=30, help="ECB request timeout in seconds")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        start_date = parse_date(args.start)
        end_date = parse_date(args.end) if args.end else start_date
    except ValueError as exc:
        LOGGER.error("Invalid date: %s", exc)
        return 2

    try:
        fx = FxCross(args.db_url, source=ECBRequestsClient(timeout=args.timeout))
    except ValueError as exc:
        LOGGER.error("Invalid database configuration: %s", exc)
        return 2
    try:
        rows = fx.exchanges(args.pairs, start_date, end_date, today=date.today())
    except ValueError as exc:
        # Validation errors are caused by the request itself.
        LOGGER.error("%s", exc)
        return 2
    except FxCrossError as exc:
        LOGGER.error("Failed to build cross rates: %s", exc)
        return 1
    finally:
        fx.close()

    for row in rows:
        sys.stdout.write(json.dumps(row) + "\n")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
