"""Tests for retry logic."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from enhancer.errors import (
    ApiError,
    AuthenticationError,
    NetworkError,
    RateLimitError,
    ScrapingError,
    ValidationError,
)
from enhancer.retry import (
    RetryPolicy,
    is_not_client_error,
    is_transient,
    retry_async,
)

FAST = RetryPolicy(max_attempts=3, base_delay=0, max_delay=0)


@pytest.mark.asyncio
async def test_retry_succeeds_on_first_try():
    """No retries needed when function succeeds."""
    call_count = 0

    async def fn():
        nonlocal call_count
        call_count += 1
        return "ok"

    result = await retry_async(fn, policy=FAST)
    assert result == "ok"
    assert call_count == 1


@pytest.mark.asyncio
async def test_retry_succeeds_after_transient_failure():
    """Retries on transient error and eventually succeeds."""
    call_count = 0

    async def fn():
        nonlocal call_count
        call_count += 1
        if call_count < 3:
            raise ConnectionError("transient")
        return "ok"

    result = await retry_async(fn, policy=FAST)
    assert result == "ok"
    assert call_count == 3


@pytest.mark.asyncio
async def test_retry_invokes_exactly_max_attempts_then_raises():
    fn = AsyncMock(side_effect=NetworkError("reset", "http://x", "connection_reset"))

    with pytest.raises(NetworkError) as exc_info:
        await retry_async(fn, policy=FAST)

    assert fn.await_count == 3
    assert exc_info.value.attempts == 3


@pytest.mark.asyncio
async def test_retry_does_not_retry_non_transient():
    """Non-retryable exceptions are raised immediately."""
    fn = AsyncMock(side_effect=ValueError("bad input"))

    with pytest.raises(ValueError, match="bad input"):
        await retry_async(fn, policy=FAST)
    assert fn.await_count == 1


@pytest.mark.asyncio
async def test_auth_error_not_retried():
    fn = AsyncMock(side_effect=AuthenticationError("denied", status_code=401))

    with pytest.raises(AuthenticationError):
        await retry_async(fn, policy=FAST)
    assert fn.await_count == 1


@pytest.mark.asyncio
async def test_backoff_delays_are_jittered_and_capped():
    policy = RetryPolicy(max_attempts=4, base_delay=10.0, max_delay=15.0)
    fn = AsyncMock(side_effect=TimeoutError("slow"))

    with patch("enhancer.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        with pytest.raises(TimeoutError):
            await retry_async(fn, policy=policy)

    delays = [c.args[0] for c in mock_sleep.await_args_list]
    assert len(delays) == 3
    assert 5.0 <= delays[0] <= 10.0
    assert 10.0 <= delays[1] <= 15.0
    assert delays[2] == 15.0


@pytest.mark.asyncio
async def test_retry_after_hint_extends_delay():
    policy = RetryPolicy(max_attempts=2, base_delay=0.1, max_delay=30.0)
    fn = AsyncMock(side_effect=[RateLimitError("slow down", retry_after=7), "ok"])

    with patch("enhancer.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        assert await retry_async(fn, policy=policy) == "ok"

    assert mock_sleep.await_args.args[0] == 7


def test_is_transient_classification():
    assert is_transient(ApiError("boom", status_code=503))
    assert is_transient(RateLimitError("slow"))
    assert is_transient(httpx.ConnectError("refused"))
    assert not is_transient(ApiError("bad", status_code=400))
    assert not is_transient(ValidationError("invalid"))
    assert not is_transient(NetworkError("blocked", network_code="blocked"))


def test_scraping_predicate_stops_on_client_errors():
    assert not is_not_client_error(ScrapingError("gone", "http://x", "not_found", 404))
    assert not is_not_client_error(ScrapingError("bad", "x", "invalid_url"))
    assert is_not_client_error(ScrapingError("limited", "http://x", "rate_limited", 429))
    assert is_not_client_error(ScrapingError("oops", "http://x", "http_error", 502))
    assert is_not_client_error(ValidationError("thin content"))
