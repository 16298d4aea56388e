"""MySQL rate cache."""

from __future__ import annotations

from fx_cross.db.relational_backend import RelationalBackend


class MySQLBackend(RelationalBackend):
    """Relational backend relying on ``INSERT IGNORE`` for existing keys."""

    INSERT_RATE_SQL = """
INSERT IGNORE INTO reference_rates(rate_date, currency_code, rate)
VALUES(:rate_date, :currency_code, :rate)
"""
    INSERT_NON_TRADING_SQL = """
INSERT IGNORE INTO non_trading_days(rate_date) VALUES(:rate_date)
"""


__all__ = ["MySQLBackend"]
