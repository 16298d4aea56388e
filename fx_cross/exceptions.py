"""Error types raised by fx_cross."""

from __future__ import annotations


class FxCrossError(Exception):
    """Base class for every error raised by the package."""


class InvalidRange(FxCrossError, ValueError):
    """Raised when a start date falls after the end date."""


class InvalidCurrencyCode(FxCrossError, ValueError):
    """Raised when a currency code is not three upper-case letters."""


class FutureStartDate(FxCrossError, ValueError):
    """Raised when rates are requested from a day that has not happened yet."""


class SourceUnavailable(FxCrossError, RuntimeError):
    """The upstream rate feed could not be reached or answered with an error."""


class MalformedResponse(FxCrossError, RuntimeError):
    """The upstream feed returned a row whose date or value cannot be parsed."""


class CacheWriteFailure(FxCrossError, RuntimeError):
    """The rate cache rejected a write."""


class CacheUnavailable(FxCrossError, RuntimeError):
    """The rate cache could not be opened, prepared or read."""


__all__ = [
    "CacheUnavailable",
    "CacheWriteFailure",
    "FutureStartDate",
    "FxCrossError",
    "InvalidCurrencyCode",
    "InvalidRange",
    "MalformedResponse",
    "SourceUnavailable",
]
