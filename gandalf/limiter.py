"""Persistent, per-key fixed-window rate limiting."""

from __future__ import annotations

import json
import os
import random
import sqlite3
import threading
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator, Optional, Tuple, TypeVar

from .errors import (
    DatabaseError,
    InvalidUnitError,
    KeyNotSetError,
    ProviderError,
    RateLimitExceeded,
    TransactionConflictError,
)
from .providers import RateLimitData, RateLimitDataProvider, StaticProvider
from .timing import RealTimeProvider, TimeProvider, get_reset_time

T = TypeVar("T")

_DB_FILE = "limits.sqlite3"
_MAX_RETRIES = 11
_BUSY_TIMEOUT = 1.0
_DEFAULT_LIMIT = 100
_DEFAULT_UNIT = "second"


def _encode_time(moment: Optional[datetime]) -> Optional[str]:
    return moment.isoformat() if moment is not None else None


def _decode_time(text: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(text) if text else None


def _encode(data: RateLimitData) -> str:
    return json.dumps(
        {
            "rate_limit": data.rate_limit,
            "rate_limit_unit": data.rate_limit_unit,
            "reset_time": _encode_time(data.reset_time),
            "last_reset": _encode_time(data.last_reset),
            "requests_left": data.requests_left,
        },
        separators=(",", ":"),
    )


def _decode(text: str) -> RateLimitData:
    try:
        raw = json.loads(text)
        return RateLimitData(
            rate_limit=int(raw["rate_limit"]),
            rate_limit_unit=str(raw["rate_limit_unit"]),
            reset_time=_decode_time(raw.get("reset_time")),
            last_reset=_decode_time(raw.get("last_reset")),
            requests_left=int(raw["requests_left"]),
        )
    except (ValueError, KeyError, TypeError) as exc:
        raise DatabaseError(f"failed to unmarshal rate limit data: {exc}") from exc


def _window_over(now: datetime, reset_time: Optional[datetime]) -> bool:
    return reset_time is None or now >= reset_time


def _is_conflict(exc: sqlite3.Error) -> bool:
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def _backoff(attempt: int) -> float:
    base = (1 << attempt) / 3000.0
    return base + base * 0.25 * random.random()


def _check_key(key_id: str) -> None:
    if not key_id:
        raise DatabaseError("key cannot be empty")


def _open(db_path: "str | os.PathLike[str]") -> sqlite3.Connection:
    path = os.fspath(db_path)
    try:
        if not os.path.isdir(path):
            os.mkdir(path)
        conn = sqlite3.connect(
            os.path.join(path, _DB_FILE),
            timeout=_BUSY_TIMEOUT,
            isolation_level=None,
            check_same_thread=False,
        )
    except (OSError, sqlite3.Error) as exc:
        raise DatabaseError(f"failed to open database: {exc}") from exc
    try:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute(
            "CREATE TABLE IF NOT EXISTS rate_limits ("
            "key TEXT PRIMARY KEY, data TEXT NOT NULL)"
        )
    except sqlite3.Error as exc:
        conn.close()
        raise DatabaseError(f"failed to open database: {exc}") from exc
    return conn


class RateLimiter:
    """Rate limits calls per key, keeping window state in a directory on disk.

    Without a provider every key gets 100 requests per second; without a
    time provider the system clock is used.
    """

    def __init__(
        self,
        db_path: "str | os.PathLike[str]",
        provider: Optional[RateLimitDataProvider] = None,
        time_provider: Optional[TimeProvider] = None,
    ) -> None:
        self._provider = (
            provider
            if provider is not None
            else StaticProvider(time_interval=_DEFAULT_LIMIT, time_unit=_DEFAULT_UNIT)
        )
        self._clock = time_provider if time_provider is not None else RealTimeProvider()
        self._lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = _open(db_path)

    def __enter__(self) -> "RateLimiter":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the store; closing twice is harmless."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def limit(self, key_id: str, fn: Callable[[], T]) -> T:
        """Consume one request for ``key_id`` and return ``fn()``.

        Raises RateLimitExceeded, without calling ``fn``, when the key has no
        requests left in its window. Exceptions from ``fn`` propagate.
        """
        requests_left, _ = self._consume(key_id)
        if requests_left < 0:
            raise RateLimitExceeded()
        return fn()

    def peek(self, key_id: str) -> Tuple[int, str]:
        """Return (requests left, unit) for ``key_id`` without consuming a request."""
        _check_key(key_id)
        with self._lock, self._guard() as conn:
            row = conn.execute(
                "SELECT data FROM rate_limits WHERE key = ?", (key_id,)
            ).fetchone()
        if row is None:
            raise KeyNotSetError()
        data = _decode(row[0])
        if _window_over(self._clock.now(), data.reset_time):
            return data.rate_limit, data.rate_limit_unit
        return data.requests_left, data.rate_limit_unit

    def purge(self, key_id: str) -> None:
        """Forget the window state of ``key_id``, or of every key if it is empty."""
        with self._lock, self._guard() as conn:
            if key_id:
                conn.execute("DELETE FROM rate_limits WHERE key = ?", (key_id,))
            else:
                conn.execute("DELETE FROM rate_limits")

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise DatabaseError("database is closed")
        return self._conn

    @contextmanager
    def _guard(self) -> Iterator[sqlite3.Connection]:
        conn = self._connection()
        try:
            yield conn
        except sqlite3.Error as exc:
            raise DatabaseError(f"database error: {exc}") from exc

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._connection()
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")

    def _consume(self, key_id: str) -> Tuple[int, str]:
        try:
            settings = self._provider.get_rate_limit_data(key_id)
        except Exception as exc:
            raise ProviderError(f"failed to get rate limit data: {exc}") from exc
        _check_key(key_id)

        for attempt in range(_MAX_RETRIES):
            try:
                return self._consume_once(key_id, settings)
            except RateLimitExceeded:
                raise
            except sqlite3.OperationalError as exc:
                if not _is_conflict(exc):
                    raise DatabaseError(f"database error: {exc}") from exc
                if attempt == _MAX_RETRIES - 1:
                    raise TransactionConflictError() from exc
            except sqlite3.Error as exc:
                raise DatabaseError(f"database error: {exc}") from exc
            time.sleep(_backoff(attempt))
        raise TransactionConflictError()

    def _reset_time(self, now: datetime, unit: str) -> datetime:
        try:
            return get_reset_time(now, unit)
        except InvalidUnitError as exc:
            raise DatabaseError(f"failed to get reset time: {exc}") from exc

    def _consume_once(self, key_id: str, settings: RateLimitData) -> Tuple[int, str]:
        with self._lock, self._transaction() as conn:
            row = conn.execute(
                "SELECT data FROM rate_limits WHERE key = ?", (key_id,)
            ).fetchone()
            now = self._clock.now()
            if row is None:
                data = RateLimitData(
                    rate_limit=settings.rate_limit,
                    rate_limit_unit=settings.rate_limit_unit,
                    reset_time=self._reset_time(now, settings.rate_limit_unit),
                    last_reset=now,
                    requests_left=settings.rate_limit - 1,
                )
            else:
                data = _decode(row[0])
                if _window_over(now, data.reset_time):
                    data.reset_time = self._reset_time(now, settings.rate_limit_unit)
                    data.last_reset = now
                    data.requests_left = settings.rate_limit - 1
                elif data.requests_left > 0:
                    data.requests_left -= 1
                else:
                    raise RateLimitExceeded()
            conn.execute(
                "INSERT OR REPLACE INTO rate_limits (key, data) VALUES (?, ?)",
                (key_id, _encode(data)),
            )
        return data.requests_left, data.rate_limit_unit