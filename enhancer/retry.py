"""Retry logic with jittered exponential backoff for network calls."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, replace
from typing import Callable

import httpx

from enhancer.errors import (
    ApiError,
    AuthenticationError,
    NetworkError,
    OperationTimeoutError,
    RateLimitError,
    ScrapingError,
)

logger = logging.getLogger(__name__)

RETRYABLE_EXCEPTIONS = (
    httpx.TimeoutException,
    httpx.ConnectError,
    httpx.RemoteProtocolError,
    ConnectionError,
    TimeoutError,
)


def _status_of(exc: BaseException) -> int | None:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return getattr(exc, "status_code", None)


def is_transient(exc: BaseException) -> bool:
    """Default predicate: network failures, timeouts, 5xx and 429."""
    if isinstance(exc, AuthenticationError):
        return False
    if isinstance(exc, NetworkError):
        return exc.network_code != "blocked"
    if isinstance(exc, (OperationTimeoutError, RateLimitError)):
        return True
    if isinstance(exc, (ApiError, httpx.HTTPStatusError)):
        status = _status_of(exc)
        return status is not None and (status >= 500 or status == 429)
    return isinstance(exc, RETRYABLE_EXCEPTIONS)


def is_not_client_error(exc: BaseException) -> bool:
    """Scraping predicate: retry anything except a definitive 4xx (429 excepted)."""
    status = _status_of(exc)
    if status is not None and 400 <= status < 500 and status != 429:
        return False
    if isinstance(exc, ScrapingError) and exc.reason == "invalid_url":
        return False
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try and how long to wait between attempts."""

    max_attempts: int = 3
    base_delay: float = 2.0
    max_delay: float = 30.0
    is_retryable: Callable[[BaseException], bool] = is_transient

    def with_attempts(self, max_attempts: int) -> RetryPolicy:
        return replace(self, max_attempts=max_attempts)

    def with_predicate(self, predicate: Callable[[BaseException], bool]) -> RetryPolicy:
        return replace(self, is_retryable=predicate)

    def backoff(self, attempt: int) -> float:
        """Delay before the attempt after ``attempt`` (1-based)."""
        jitter = random.uniform(0.5, 1.0)
        return min(self.base_delay * (2 ** (attempt - 1)) * jitter, self.max_delay)


DEFAULT_POLICY = RetryPolicy()
SCRAPING_POLICY = RetryPolicy(max_attempts=2, is_retryable=is_not_client_error)


def _retry_after(exc: BaseException) -> float | None:
    if isinstance(exc, RateLimitError):
        return exc.retry_after
    if isinstance(exc, httpx.HTTPStatusError):
        value = exc.response.headers.get("retry-after")
        if value:
            try:
                return float(value)
            except ValueError:
                return None
    return None


async def retry_async(
    fn,
    *args,
    policy: RetryPolicy = DEFAULT_POLICY,
    operation: str = "operation",
    **kwargs,
):
    """Call an async function, retrying per ``policy``.

    Non-retryable errors are raised immediately. After the last attempt the
    final error is raised with an ``attempts`` attribute set.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await fn(*args, **kwargs)
        except Exception as exc:
            if not policy.is_retryable(exc):
                if attempt > 1:
                    _annotate(exc, attempt)
                raise
            if attempt >= policy.max_attempts:
                _annotate(exc, attempt)
                logger.error(
                    "%s failed after %d attempt(s): %s: %s",
                    operation, attempt, type(exc).__name__, exc,
                )
                raise

            delay = policy.backoff(attempt)
            retry_after = _retry_after(exc)
            if retry_after is not None:
                # Honour the upstream hint, still bounded by max_delay
                delay = min(max(delay, retry_after), policy.max_delay)
            logger.warning(
                "Retry %d/%d for %s after %s: %s (waiting %.2fs%s)",
                attempt, policy.max_attempts - 1, operation,
                type(exc).__name__, exc, delay,
                f", retry-after {retry_after:g}s" if retry_after is not None else "",
            )
            await asyncio.sleep(delay)


def _annotate(exc: BaseException, attempts: int) -> None:
    exc.attempts = attempts  # type: ignore[attr-defined]
