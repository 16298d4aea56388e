"""Helpers for working with the bundled SQLite rate cache."""

from __future__ import annotations

from pathlib import Path
from typing import Final

__all__ = ["DEFAULT_SQLITE_DB_PATH"]

# Resolved against this file so the cache location does not depend on the
# working directory.
DEFAULT_SQLITE_DB_PATH: Final[Path] = Path(__file__).resolve().with_name("rates.db")
