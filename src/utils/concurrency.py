"""Shared concurrency primitives for upstream calls.

Two patterns are exposed:

1. **throttled_gather** -- ``asyncio.gather`` with every awaitable wrapped in
   a semaphore acquire/release.  Used to chunk the windows of an oversized
   document in parallel without flooding the LLM provider.

2. **retry_async** -- bounded exponential backoff around one upstream call.
   Only errors whose ``retryable`` flag is set are re-attempted; everything
   else (and ``asyncio.CancelledError``, which is not an ``Exception``)
   propagates on the first occurrence.  The surfaced error carries
   ``attempts`` and ``last_error`` in its context.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

from src.utils.errors import KMSError, RateLimitError
from src.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)

# Upper bound for any single backoff sleep, whatever the provider hints.
_MAX_BACKOFF_SECONDS = 30.0


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    limit: int = 3,
    return_exceptions: bool = False,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, at most ``limit`` at a time.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Optional shared semaphore.  When omitted a fresh one sized by
        *limit* is created for this call.
    limit:
        Concurrency bound used when *semaphore* is not given.
    return_exceptions:
        Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list
        Results in the same order as the input coroutines.
    """
    if semaphore is None:
        semaphore = asyncio.Semaphore(max(1, limit))

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


async def retry_async(
    operation: Callable[[], Awaitable[_T]],
    *,
    max_retries: int,
    backoff_base: float = 0.5,
    operation_name: str = "upstream_call",
    logger: structlog.BoundLogger | None = None,
    **log_fields: object,
) -> _T:
    """Run *operation* with up to ``max_retries`` retries on retryable errors.

    Parameters
    ----------
    operation:
        Zero-argument coroutine factory; called once per attempt.
    max_retries:
        Number of retries after the first attempt (``0`` = single attempt).
    backoff_base:
        Sleep before retry *n* is ``backoff_base * 2 ** (n - 1)`` seconds,
        or the provider's ``retry_after`` hint when that is larger.
    operation_name:
        Event prefix used for retry log lines.

    Raises
    ------
    KMSError
        The last error, with ``attempts`` and ``last_error`` in its context.
    """
    log = logger or _logger
    total_attempts = max(0, max_retries) + 1

    for attempt in range(1, total_attempts + 1):
        try:
            return await operation()
        except KMSError as exc:
            exc.with_context(attempts=attempt, last_error=str(exc))
            if not exc.retryable or attempt >= total_attempts:
                raise

            backoff = backoff_base * (2 ** (attempt - 1))
            if isinstance(exc, RateLimitError) and exc.retry_after:
                backoff = max(backoff, exc.retry_after)
            backoff = min(backoff, _MAX_BACKOFF_SECONDS)

            log.warning(
                f"{operation_name}_retry",
                attempt=attempt,
                max_attempts=total_attempts,
                backoff_seconds=backoff,
                error_type=type(exc).__name__,
                error=exc.message,
                **log_fields,
            )
            await asyncio.sleep(backoff)

    # range() above always returns or raises; keeps type checkers happy.
    raise RuntimeError("retry_async exhausted without result")
