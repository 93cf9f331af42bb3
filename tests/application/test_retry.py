"""Tests for retry policy."""

import asyncio

import pytest
from unittest.mock import AsyncMock

from issuecache.application.retry import RetryPolicy, retry_with_backoff
from issuecache.core.exceptions import (
    AuthenticationError,
    NotFoundError,
    RetryExhaustedError,
    TransientError,
)


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_first_attempt_succeeds(self, sleep):
        operation = AsyncMock(return_value="ok")

        result = asyncio.run(RetryPolicy(sleep=sleep).run(operation, "Op"))

        assert result == "ok"
        assert operation.await_count == 1
        assert sleep.delays == []

    def test_recovers_on_last_attempt(self, sleep):
        operation = AsyncMock(side_effect=[
            TransientError("1"), TransientError("2"), TransientError("3"), "ok",
        ])

        result = asyncio.run(RetryPolicy(sleep=sleep).run(operation, "Op"))

        assert result == "ok"
        assert operation.await_count == 4
        assert sleep.delays == [1.0, 3.0, 9.0]

    def test_exhausted(self, sleep):
        last = TransientError("still down")
        operation = AsyncMock(side_effect=[
            TransientError("1"), TransientError("2"), TransientError("3"), last,
        ])

        with pytest.raises(RetryExhaustedError) as excinfo:
            asyncio.run(RetryPolicy(sleep=sleep).run(operation, "Search for updated stories"))

        error = excinfo.value
        assert operation.await_count == 4
        assert error.attempts == 4
        assert error.operation == "Search for updated stories"
        assert str(error).startswith("Search for updated stories failed after 3 retries")
        assert error.__cause__ is last
        assert error.cause is last

    def test_not_found_not_retried(self, sleep):
        operation = AsyncMock(side_effect=NotFoundError("gone"))

        with pytest.raises(NotFoundError):
            asyncio.run(RetryPolicy(sleep=sleep).run(operation, "Op"))

        assert operation.await_count == 1
        assert sleep.delays == []

    def test_authentication_not_retried(self, sleep):
        operation = AsyncMock(side_effect=AuthenticationError("bad token"))

        with pytest.raises(AuthenticationError):
            asyncio.run(RetryPolicy(sleep=sleep).run(operation, "Op"))

        assert operation.await_count == 1

    def test_parse_error_not_retried(self, sleep):
        operation = AsyncMock(side_effect=KeyError("number"))

        with pytest.raises(KeyError):
            asyncio.run(RetryPolicy(sleep=sleep).run(operation, "Op"))

        assert operation.await_count == 1
        assert sleep.delays == []

    def test_custom_schedule(self, sleep):
        operation = AsyncMock(side_effect=[TransientError("x"), "ok"])
        policy = RetryPolicy(backoff_seconds=(0.5,), sleep=sleep)

        assert asyncio.run(policy.run(operation)) == "ok"
        assert policy.max_retries == 1
        assert sleep.delays == [0.5]

    def test_retry_with_backoff(self, sleep):
        operation = AsyncMock(side_effect=[TransientError("x"), 5])

        assert asyncio.run(retry_with_backoff(operation, "Op", sleep=sleep)) == 5
        assert sleep.delays == [1.0]
