"""Error Hierarchy — codes, HTTP statuses and REST envelope."""

from scheduling.core.errors import (
    CapacityError,
    ClassLimitError,
    ClassNotFoundError,
    ConflictError,
    ErrorCategory,
    SchedulingError,
    StoreConnectionError,
    TransactionTimeoutError,
    ValidationError,
)


def test_capacity_error_envelope():
    body = CapacityError("art 101 9:00").to_response()["error"]
    assert body["code"] == "CLASS_FULL"
    assert body["category"] == "business_rule"
    assert body["context"]["class_name"] == "art 101 9:00"


def test_http_statuses():
    assert ValidationError("bad", "x").http_status == 400
    assert ClassNotFoundError("art").http_status == 404
    assert CapacityError("art").http_status == 409
    assert ClassLimitError("s1", 5).http_status == 409
    assert ConflictError("c").http_status == 409
    assert StoreConnectionError("down").http_status == 503
    assert TransactionTimeoutError("t", attempts=1).http_status == 504


def test_all_errors_share_base():
    for err in (
        CapacityError("a"), ClassNotFoundError("a"), ConflictError("c"),
        StoreConnectionError("d"), TransactionTimeoutError("t", attempts=0),
    ):
        assert isinstance(err, SchedulingError)


def test_timeout_keeps_attempts_and_last_error():
    cause = ConflictError("c")
    err = TransactionTimeoutError("gave up", attempts=4, last_error=cause)
    assert err.attempts == 4
    assert err.last_error is cause
    assert err.category == ErrorCategory.TIMEOUT
    assert err.to_response()["error"]["context"]["attempt"] == 4
