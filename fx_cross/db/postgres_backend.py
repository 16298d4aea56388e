"""PostgreSQL rate cache."""

from __future__ import annotations

from fx_cross.db.relational_backend import RelationalBackend


class PostgresBackend(RelationalBackend):
    """Relational backend relying on ``ON CONFLICT DO NOTHING`` for existing keys."""

    INSERT_RATE_SQL = """
INSERT INTO reference_rates(rate_date, currency_code, rate)
VALUES(CAST(:rate_date AS DATE), :currency_code, :rate)
ON CONFLICT (rate_date, currency_code) DO NOTHING
"""
    INSERT_NON_TRADING_SQL = """
INSERT INTO non_trading_days(rate_date) VALUES(CAST(:rate_date AS DATE))
ON CONFLICT (rate_date) DO NOTHING
"""


__all__ = ["PostgresBackend"]
