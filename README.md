# gandalf

A small rate limiter that keeps its counters on disk. Each key has a
number of requests it may make per time unit. A call either runs and
uses up one request, or is refused because the window is exhausted.
Windows line up with clock boundaries: a `"second"` limit resets at
the start of the next second, a `"day"` limit at the next midnight,
and so on.

It needs nothing beyond the standard library; the counters live in an
SQLite database.

## Installing

```
pip install .
```

Running the tests:

```
pip install ".[test]"
pytest
```

## Using it

```python
from gandalf.errors import RateLimitExceeded
from gandalf.limiter import RateLimiter
from gandalf.providers import StaticProvider

provider = StaticProvider(5, "minute")  # 5 requests per minute for every key

with RateLimiter("limits.db", provider) as limiter:
    try:
        result = limiter.limit("customer-42", lambda: "did the work")
    except RateLimitExceeded:
        result = None  # try again in the next window

    requests_left, unit = limiter.peek("customer-42")
```

`RateLimiter(db_path, provider=None, time_provider=None)`:

- `db_path` is a directory. It is created if it does not exist (its
  parent must exist) and holds the SQLite file `limits.sqlite3`. If it
  cannot be opened, `DatabaseError` is raised.
- Without a provider every key gets 100 requests per `"second"`.
- Without a time provider the system clock is used.

Its methods:

- `limit(key_id, fn)` takes one request from the key's window and
  returns whatever `fn()` returns. If the window is used up it raises
  `RateLimitExceeded` and `fn` is not called. Exceptions raised by `fn`
  reach the caller unchanged. The first call for a key opens its window
  and already counts as one request.
- `peek(key_id)` returns `(requests_left, unit)` without using a
  request. A key that has never been used, or has been purged, raises
  `KeyNotSetError`. Once the window has ended, `peek` reports the full
  limit again; the stored state is only renewed by the next `limit`.
- `purge(key_id)` forgets the state of one key; `purge("")` forgets
  every key. Purging a key that is not stored does nothing.
- `close()` releases the store; closing twice is harmless, and any
  other call after closing raises `DatabaseError`. Using the limiter as
  a context manager closes it on exit.

An empty `key_id` is refused by `limit` and `peek` with `DatabaseError`.

One limiter may be shared between threads. Several processes may use
the same directory: while the database is busy, `limit` retries with a
short, growing back-off, and raises `TransactionConflictError` once the
retries run out.

### Units

`"millisecond"`, `"second"`, `"minute"`, `"hour"`, `"day"` and
`"month"` are accepted; an empty unit means `"day"`. Days and months
end at midnight in the time zone of the current time.

`gandalf.timing.get_reset_time(now, unit)` returns the moment the
window containing `now` ends, and raises `InvalidUnitError` for any
other unit. When a limiter meets such a unit while opening a window,
`limit` raises `DatabaseError`.

`gandalf.timing.get_duration_for_unit(unit)` returns the length of one
unit as a `timedelta`; `"month"` and unknown units count as one second.

### Limits per key

`StaticProvider(time_interval, time_unit)` gives every key the same
limit. `DataProvider` looks limits up with a function of your own that
returns `(requests, unit)`, for example from a table of customer plans:

```python
from gandalf.providers import DataProvider

PLANS = {"customer-42": (100, "hour")}

def fetch(key):
    return PLANS[key]

provider = DataProvider(fetch)
```

If the provider fails for a key, `limit` raises `ProviderError`. Any
object with a `get_rate_limit_data(key)` method returning a
`RateLimitData` can serve as a provider; subclass
`RateLimitDataProvider` to write one. Only `rate_limit` and
`rate_limit_unit` of the returned record are used.

A limit of zero or less refuses every call.

### Time

The limiter asks a `TimeProvider` for the current time through its
`now()` method. `RealTimeProvider` returns the system clock in the
local time zone; tests can pass their own subclass whose `now()`
returns a fixed, advanceable time.

### Errors

All errors in `gandalf.errors` derive from `GandalfError`:

- `RateLimitExceeded`: the key has no requests left in its window.
- `KeyNotSetError` (also a `LookupError`): `peek` on an unknown key.
- `InvalidUnitError` (also a `ValueError`): from `get_reset_time`.
- `ProviderError`: the provider could not supply a limit.
- `TransactionConflictError`: the store stayed busy after every retry.
- `DatabaseError`: any other storage failure, an empty key, or a closed
  limiter.

## What it does not do

It is a library only: there is no command-line tool and no server.
Windows are fixed and aligned to clock boundaries; there is no sliding
window or token bucket. Limits are not stored by the package itself;
they come from the provider on every `limit` call.