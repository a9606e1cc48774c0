"""Error Classifier — retryable vs terminal decisions and backoff hints."""

import pytest

from scheduling.core.error_classifier import StoreErrorClassifier
from scheduling.core.errors import (
    CapacityError,
    ClassNotFoundError,
    ConflictError,
    DatabaseError,
    MalformedKeyError,
    StoreConnectionError,
    TransactionTimeoutError,
)


@pytest.fixture
def classifier():
    return StoreErrorClassifier(base_delay_ms=10, max_delay_ms=1000)


def test_conflict_is_retryable(classifier):
    verdict = classifier.classify(ConflictError("conflict"), attempt=0)
    assert verdict.retryable
    assert 7 <= verdict.backoff_ms <= 13


def test_connection_error_is_retryable(classifier):
    assert classifier.classify(StoreConnectionError("down"), attempt=0).retryable


def test_store_hint_overrides_backoff(classifier):
    verdict = classifier.classify(
        StoreConnectionError("busy", retry_after_ms=250), attempt=5,
    )
    assert verdict.retryable
    assert verdict.backoff_ms == 250


def test_backoff_grows_and_caps(classifier):
    early = classifier.classify(ConflictError("c"), attempt=1).backoff_ms
    late = classifier.classify(ConflictError("c"), attempt=50).backoff_ms
    assert 15 <= early <= 25
    assert 750 <= late <= 1250


@pytest.mark.parametrize("error", [
    CapacityError("art"),
    ClassNotFoundError("art"),
    MalformedKeyError("bad"),
    DatabaseError("boom", "commit"),
    TransactionTimeoutError("gave up", attempts=3),
    RuntimeError("unknown"),
    ValueError("bug"),
])
def test_everything_else_is_terminal(classifier, error):
    verdict = classifier.classify(error, attempt=0)
    assert not verdict.retryable
