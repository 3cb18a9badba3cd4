"""Exceptions raised by the rate limiter."""

from __future__ import annotations


class GandalfError(Exception):
    """Base class for every error raised by this package."""

    default_message = "gandalf error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message if message is not None else self.default_message)


class RateLimitExceeded(GandalfError):
    """The key has no requests left in its current window."""

    default_message = "rate limit exceeded"


class KeyNotSetError(GandalfError, LookupError):
    """The key has never been used, or it has been purged."""

    default_message = "key not set"


class TransactionConflictError(GandalfError):
    """A storage transaction kept conflicting after every retry."""

    default_message = "database transaction conflict after retries exhausted"


class DatabaseError(GandalfError):
    """The storage backend failed."""

    default_message = "database error"


class InvalidUnitError(GandalfError, ValueError):
    """A rate limit unit that no reset time can be computed for."""

    def __init__(self, unit: str) -> None:
        self.unit = unit
        super().__init__(f"invalid rate limit unit: {unit}")


class ProviderError(GandalfError):
    """A rate limit data provider could not supply data for a key."""

    default_message = "failed to get rate limit data"