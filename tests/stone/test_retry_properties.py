"""Property-based and unit tests for RetryExecutor.

Covers the retry contract: only rate-limit failures are retried, delays
double from the initial delay, and the last failure is re-raised
unchanged once attempts run out.
"""

import asyncio
from typing import List

import pytest
from hypothesis import given, settings, strategies as st

from src.stone.github.client import GitHubAPIError, RateLimitError
from src.stone.retry import RetryExecutor, is_rate_limit_error


def run_async(coro):
    return asyncio.run(coro)


class RecordingSleep:
    """Async sleep replacement that records requested delays in seconds."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FlakyAction:
    """Action that raises the given error for the first `failures` calls."""

    def __init__(self, failures: int, error: Exception, value: str = "done"):
        self.failures = failures
        self.error = error
        self.value = value
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.value


def _rate_limit() -> RateLimitError:
    return RateLimitError("GitHub API rate limit exceeded", status_code=403)


# =============================================================================
# Properties
# =============================================================================


@settings(max_examples=100)
@given(
    max_attempts=st.integers(min_value=2, max_value=8),
    initial_delay_ms=st.integers(min_value=0, max_value=5000),
    data=st.data(),
)
def test_recovers_after_fewer_rate_limits_than_attempts(
    max_attempts, initial_delay_ms, data
):
    """k < max_attempts rate limits then success returns after k+1 calls."""
    k = data.draw(st.integers(min_value=0, max_value=max_attempts - 1))
    sleep = RecordingSleep()
    action = FlakyAction(failures=k, error=_rate_limit())

    result = run_async(
        RetryExecutor(sleep=sleep).execute(action, max_attempts, initial_delay_ms)
    )

    assert result == "done"
    assert action.calls == k + 1
    assert sleep.delays == [initial_delay_ms * (2 ** i) / 1000 for i in range(k)]


@settings(max_examples=100)
@given(max_attempts=st.integers(min_value=1, max_value=8))
def test_persistent_rate_limit_raises_after_max_attempts(max_attempts):
    sleep = RecordingSleep()
    error = _rate_limit()
    action = FlakyAction(failures=max_attempts + 10, error=error)

    with pytest.raises(RateLimitError) as exc_info:
        run_async(RetryExecutor(sleep=sleep).execute(action, max_attempts, 100))

    assert exc_info.value is error
    assert action.calls == max_attempts
    assert len(sleep.delays) == max_attempts - 1


@settings(max_examples=50)
@given(
    max_attempts=st.integers(min_value=1, max_value=8),
    status_code=st.sampled_from([400, 401, 404, 422, 500, 502]),
)
def test_non_retryable_error_fails_on_first_attempt(max_attempts, status_code):
    sleep = RecordingSleep()
    action = FlakyAction(
        failures=10, error=GitHubAPIError("boom", status_code=status_code)
    )

    with pytest.raises(GitHubAPIError):
        run_async(RetryExecutor(sleep=sleep).execute(action, max_attempts, 100))

    assert action.calls == 1
    assert sleep.delays == []


# =============================================================================
# Unit tests
# =============================================================================


class TestExecute:
    def test_returns_value_without_sleeping_on_success(self):
        sleep = RecordingSleep()
        action = FlakyAction(failures=0, error=_rate_limit(), value=42)

        result = run_async(RetryExecutor(sleep=sleep).execute(action))

        assert result == 42
        assert action.calls == 1
        assert sleep.delays == []

    def test_default_policy_is_three_attempts_from_one_second(self):
        sleep = RecordingSleep()
        action = FlakyAction(failures=5, error=_rate_limit())

        with pytest.raises(RateLimitError):
            run_async(RetryExecutor(sleep=sleep).execute(action))

        assert action.calls == 3
        assert sleep.delays == [1.0, 2.0]

    def test_plain_exception_is_not_wrapped(self):
        error = ValueError("bad payload")
        action = FlakyAction(failures=1, error=error)

        with pytest.raises(ValueError) as exc_info:
            run_async(RetryExecutor(sleep=RecordingSleep()).execute(action))

        assert exc_info.value is error

    def test_rejects_zero_attempts(self):
        action = FlakyAction(failures=0, error=_rate_limit())

        with pytest.raises(ValueError):
            run_async(RetryExecutor().execute(action, max_attempts=0))

        assert action.calls == 0

    def test_custom_retry_predicate(self):
        sleep = RecordingSleep()
        action = FlakyAction(failures=2, error=TimeoutError("slow"))
        executor = RetryExecutor(
            is_retryable=lambda exc: isinstance(exc, TimeoutError), sleep=sleep
        )

        assert run_async(executor.execute(action, 3, 10)) == "done"
        assert sleep.delays == [0.01, 0.02]


class TestIsRateLimitError:
    def test_rate_limit_error(self):
        assert is_rate_limit_error(_rate_limit())

    def test_github_429(self):
        assert is_rate_limit_error(GitHubAPIError("slow down", status_code=429))

    def test_github_403_permission_denied_is_permanent(self):
        assert not is_rate_limit_error(
            GitHubAPIError("Resource not accessible", status_code=403)
        )

    def test_github_403_with_rate_limit_message(self):
        assert is_rate_limit_error(
            GitHubAPIError("API rate limit exceeded for user", status_code=403)
        )

    def test_foreign_exception_with_status_attribute(self):
        class HttpError(Exception):
            status = 429

        assert is_rate_limit_error(HttpError("too many"))

    def test_message_fallback(self):
        assert is_rate_limit_error(RuntimeError("API rate limit exceeded"))

    def test_unrelated_errors(self):
        assert not is_rate_limit_error(RuntimeError("connection reset"))
        assert not is_rate_limit_error(GitHubAPIError("missing", status_code=404))
