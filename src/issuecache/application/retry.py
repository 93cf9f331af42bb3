"""
Retry - Bounded retry with fixed backoff for remote calls.

Applies to remote tracker calls only; local cache operations are never
retried. With the default schedule a call is attempted four times, with
sleeps of 1s, 3s and 9s in between.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from ..core.exceptions import (
    AuthenticationError,
    NotFoundError,
    NotSyncedError,
    PermissionError,
    RetryExhaustedError,
)
from ..core.ports.config_provider import DEFAULT_RETRY_BACKOFF_SECONDS


T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]

RETRY_BACKOFF_SECONDS = DEFAULT_RETRY_BACKOFF_SECONDS
MAX_RETRIES = len(RETRY_BACKOFF_SECONDS)

# Errors that a retry cannot fix; parse errors on a payload are deterministic
NON_RETRYABLE = (
    NotFoundError,
    NotSyncedError,
    AuthenticationError,
    PermissionError,
    KeyError,
    TypeError,
    ValueError,
)


class RetryPolicy:
    """
    Fixed-schedule retry for coroutines.

    Usage:
        policy = RetryPolicy()
        issue = await policy.run(lambda: tracker.get_issue(42), "Read issue #42")
    """

    def __init__(
        self,
        backoff_seconds: Sequence[float] = RETRY_BACKOFF_SECONDS,
        sleep: Optional[Sleep] = None,
    ):
        """
        Initialize the policy.

        Args:
            backoff_seconds: Delay before each retry; its length is the retry count
            sleep: Coroutine used to wait (asyncio.sleep by default)
        """
        self.backoff_seconds = tuple(backoff_seconds)
        self._sleep = sleep or asyncio.sleep
        self.logger = logging.getLogger("RetryPolicy")

    @property
    def max_retries(self) -> int:
        return len(self.backoff_seconds)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str = "operation",
    ) -> T:
        """
        Run ``operation`` until it succeeds or the schedule is exhausted.

        Raises:
            RetryExhaustedError: After the final attempt fails
            NotFoundError, AuthenticationError, PermissionError: Immediately
            KeyError, TypeError, ValueError: Immediately (malformed payloads)
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                return await operation()
            except NON_RETRYABLE:
                raise
            except Exception as e:
                last_error = e

                if attempt < self.max_retries:
                    delay = self.backoff_seconds[attempt]
                    self.logger.warning(
                        f"{operation_name} failed, retry {attempt + 1}/{self.max_retries} "
                        f"in {delay:g}s: {e}"
                    )
                    await self._sleep(delay)

        raise RetryExhaustedError(
            f"{operation_name} failed after {self.max_retries} retries: {last_error}",
            operation=operation_name,
            attempts=self.max_retries + 1,
            cause=last_error,
        ) from last_error

    async def sleep(self, seconds: float) -> None:
        """Wait using the policy's sleep function."""
        await self._sleep(seconds)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    operation_name: str = "operation",
    sleep: Optional[Sleep] = None,
) -> T:
    """Run ``operation`` with the default 1s/3s/9s schedule."""
    return await RetryPolicy(sleep=sleep).run(operation, operation_name)
