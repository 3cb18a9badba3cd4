"""Rate limit records and the providers that supply limits per key."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Tuple

from .errors import ProviderError

RateLimitFetcher = Callable[[str], Tuple[int, str]]


@dataclass
class RateLimitData:
    """Rate limit settings and window state for one key.

    ``rate_limit_unit`` is one of "millisecond", "second", "minute", "hour",
    "day" or "month".
    """

    rate_limit: int = 0
    rate_limit_unit: str = ""
    reset_time: Optional[datetime] = None
    last_reset: Optional[datetime] = None
    requests_left: int = 0


class RateLimitDataProvider(ABC):
    """Supplies the rate limit that applies to a key."""

    @abstractmethod
    def get_rate_limit_data(self, key: str) -> RateLimitData:
        """Return the limit and unit for ``key``; raise if there is none."""


@dataclass(frozen=True)
class StaticProvider(RateLimitDataProvider):
    """Applies the same limit to every key."""

    time_interval: int
    time_unit: str

    def get_rate_limit_data(self, key: str) -> RateLimitData:
        return RateLimitData(rate_limit=self.time_interval, rate_limit_unit=self.time_unit)


@dataclass(frozen=True)
class DataProvider(RateLimitDataProvider):
    """Looks the limit up per key through a fetcher returning (limit, unit)."""

    fetch_rate_limit: RateLimitFetcher

    def get_rate_limit_data(self, key: str) -> RateLimitData:
        try:
            rate_limit, rate_limit_unit = self.fetch_rate_limit(key)
        except Exception as exc:
            raise ProviderError(f"failed to fetch rate limit data: {exc}") from exc
        return RateLimitData(rate_limit=rate_limit, rate_limit_unit=rate_limit_unit)