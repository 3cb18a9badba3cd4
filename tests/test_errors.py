import pytest

from gandalf.errors import (
    DatabaseError,
    GandalfError,
    InvalidUnitError,
    KeyNotSetError,
    ProviderError,
    RateLimitExceeded,
    TransactionConflictError,
)


@pytest.mark.parametrize(
    ("error_class", "message"),
    [
        (RateLimitExceeded, "rate limit exceeded"),
        (KeyNotSetError, "key not set"),
        (TransactionConflictError, "database transaction conflict after retries exhausted"),
        (DatabaseError, "database error"),
    ],
)
def test_default_messages(error_class, message):
    assert str(error_class()) == message


@pytest.mark.parametrize(
    ("error_class", "message"),
    [
        (RateLimitExceeded, "rate limit exceeded"),
        (KeyNotSetError, "key not set"),
        (TransactionConflictError, "database transaction conflict after retries exhausted"),
        (DatabaseError, "database error"),
        (ProviderError, "failed to get rate limit data"),
    ],
)
def test_errors_are_catchable_as_their_own_type_and_base(error_class, message):
    with pytest.raises(error_class) as own_info:
        raise error_class()
    assert str(own_info.value) == message
    with pytest.raises(GandalfError) as base_info:
        raise error_class()
    assert str(base_info.value) == message


def test_custom_message_overrides_default():
    assert str(DatabaseError("disk full")) == "disk full"


def test_invalid_unit_error_message_and_unit():
    error = InvalidUnitError("year")
    assert str(error) == "invalid rate limit unit: year"
    assert error.unit == "year"


def test_invalid_unit_error_is_value_error():
    error = InvalidUnitError("invalid_unit")
    assert isinstance(error, ValueError)
    assert isinstance(error, GandalfError)
    assert error.unit == "invalid_unit"
    assert str(error) == "invalid rate limit unit: invalid_unit"


def test_key_not_set_is_lookup_error():
    error = KeyNotSetError()
    assert isinstance(error, LookupError)
    assert str(error) == "key not set"


def test_provider_error_message():
    assert str(ProviderError()) == "failed to get rate limit data"
    assert str(ProviderError("failed to fetch rate limit data: boom")) == (
        "failed to fetch rate limit data: boom"
    )


def test_distinct_error_types_do_not_match_each_other():
    error = RateLimitExceeded()
    assert not isinstance(error, KeyNotSetError)
    assert not isinstance(error, DatabaseError)
    assert not isinstance(KeyNotSetError(), RateLimitExceeded)
    assert isinstance(error, GandalfError)
    assert str(error) == "rate limit exceeded"