"""Bounded retry helpers for external calls."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")

OnRetryFn = Callable[[BaseException, int], None]
ShouldRetryFn = Callable[[BaseException], bool]


def _backoff_seconds(backoff_factor: float, attempt: int) -> float:
    # attempt=1 => backoff_factor seconds, then doubling.
    if backoff_factor <= 0:
        return 0.0
    return backoff_factor * (2 ** (attempt - 1))


def retry(
    fn: Callable[[], T],
    *,
    max_retries: int,
    on_retry: OnRetryFn | None = None,
    should_retry: ShouldRetryFn | None = None,
    backoff_factor: float = 0.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` until it succeeds, at most ``max_retries + 1`` times.

    Args:
        fn: Zero-argument callable to execute
        max_retries: Number of retries after the first attempt
        on_retry: Called with (error, retry number) before each retry
        should_retry: Returns False for errors that must propagate immediately
        backoff_factor: Base delay in seconds, doubled on every retry
        sleep: Sleep function (injectable for tests)

    Returns:
        The first successful result

    Raises:
        The last error once the retry budget is exhausted
    """
    for attempt in range(max_retries + 1):
        try:
            return fn()
        except Exception as e:
            if should_retry and not should_retry(e):
                raise
            if attempt >= max_retries:
                raise
            if on_retry:
                on_retry(e, attempt + 1)
            delay = _backoff_seconds(backoff_factor, attempt + 1)
            if delay:
                sleep(delay)

    raise AssertionError("unreachable")


async def async_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int,
    on_retry: OnRetryFn | None = None,
    should_retry: ShouldRetryFn | None = None,
    backoff_factor: float = 0.0,
) -> T:
    """Async counterpart of :func:`retry`; ``fn`` returns a fresh awaitable per call."""
    for attempt in range(max_retries + 1):
        try:
            return await fn()
        except Exception as e:
            if should_retry and not should_retry(e):
                raise
            if attempt >= max_retries:
                raise
            if on_retry:
                on_retry(e, attempt + 1)
            delay = _backoff_seconds(backoff_factor, attempt + 1)
            if delay:
                await asyncio.sleep(delay)

    raise AssertionError("unreachable")
