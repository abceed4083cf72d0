"""Rate-limit aware retry for asynchronous operations.

RetryExecutor wraps a zero-argument coroutine factory with bounded
exponential backoff. Only rate-limit signals are retried; every other
failure propagates on the attempt that raised it. The executor keeps no
state between calls, so a single instance can be shared by concurrent
event deliveries.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from src.stone.github.client import GitHubAPIError, RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY_MS = 1000

RATE_LIMIT_STATUS_CODES = {429}
RATE_LIMIT_MESSAGE_MARKER = "rate limit exceeded"


def is_rate_limit_error(exc: BaseException) -> bool:
    """Classify an exception as a rate-limit signal.

    Structured information wins: RateLimitError and status codes are
    checked before falling back to the exception message, which is the
    only signal some third-party clients provide.

    Args:
        exc: The exception raised by the wrapped operation.

    Returns:
        True if the operation should be retried after a backoff delay.
    """
    if isinstance(exc, RateLimitError):
        return True

    message = str(exc).lower()

    if isinstance(exc, GitHubAPIError):
        if exc.status_code in RATE_LIMIT_STATUS_CODES:
            return True
        # A plain 403 is a permission problem unless GitHub says otherwise
        return exc.status_code == 403 and RATE_LIMIT_MESSAGE_MARKER in message

    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(exc, "status", None)
    if status in RATE_LIMIT_STATUS_CODES:
        return True

    return RATE_LIMIT_MESSAGE_MARKER in message


class RetryExecutor:
    """Executes async actions with exponential backoff on rate limits.

    Attributes:
        is_retryable: Predicate deciding whether a failure is retried.
        sleep: Awaitable sleep function taking seconds; injectable so
            tests can record delays instead of waiting.
    """

    def __init__(
        self,
        is_retryable: Callable[[BaseException], bool] = is_rate_limit_error,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.is_retryable = is_retryable
        self.sleep = sleep or asyncio.sleep

    async def execute(
        self,
        action: Callable[[], Awaitable[T]],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_delay_ms: int = DEFAULT_INITIAL_DELAY_MS,
    ) -> T:
        """Run an action, retrying rate-limited failures.

        Args:
            action: Zero-argument callable returning an awaitable.
            max_attempts: Total number of attempts, including the first.
            initial_delay_ms: Delay before the second attempt; doubled
                after each subsequent retryable failure.

        Returns:
            The value produced by the first successful attempt.

        Raises:
            ValueError: If max_attempts is less than 1.
            Exception: The non-retryable failure, or the last retryable
                failure once attempts are exhausted, re-raised unchanged.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        attempt = 0
        delay_ms = initial_delay_ms

        while True:
            attempt += 1
            try:
                return await action()
            except Exception as exc:
                if not self.is_retryable(exc) or attempt >= max_attempts:
                    raise

                logger.warning(
                    "Rate limit exceeded, retrying in %dms",
                    delay_ms,
                    extra={
                        "attempt": attempt,
                        "max_attempts": max_attempts,
                        "delay_ms": delay_ms,
                    },
                )
                await self.sleep(delay_ms / 1000)
                delay_ms *= 2
