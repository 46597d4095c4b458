"""
stratostream - Retry Logic

Exponential backoff with full jitter for whole request/response exchanges.

Handles:
- Rate limits (429) honoring the retry-after header
- Server errors (500, 502, 503)
- Overloaded (529) with a doubled base delay
- Transport errors (timeouts, resets)

Does NOT retry:
- Client errors (400, 401, 403, 404): fix the request
- Anything mid-stream: a stream that has delivered data is never re-issued

All delays are integer milliseconds.
"""

import asyncio
import random
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .errors import APIError, ErrorKind
from .logging import get_logger


T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_MS = 500
DEFAULT_MAX_DELAY_MS = 30_000

OnRetry = Callable[[int, int, APIError], Any]

logger = get_logger(__name__)


def calculate_delay(
    attempt: int,
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS
) -> int:
    """
    Calculate delay for a retry attempt using full jitter.

    The whole exponential value is the upper bound of a uniform draw,
    which spreads out clients backing off from the same incident.

    Args:
        attempt: Current retry attempt (0-based)
        base_delay_ms: Base delay in milliseconds
        max_delay_ms: Maximum delay in milliseconds

    Returns:
        Delay in milliseconds, between 1 and max_delay_ms
    """
    candidate = int(base_delay_ms * (2 ** attempt))
    jittered = random.randint(1, max(candidate, 1))
    return min(jittered, max_delay_ms)


def calculate_delay_for_error(
    error: Optional[APIError],
    attempt: int,
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS
) -> int:
    """
    Calculate delay for a retry attempt, honoring server hints.

    - A positive retry-after from the server is used verbatim
    - Overloaded errors double the base delay
    - Otherwise plain ``calculate_delay``
    """
    if error is not None:
        retry_after = error.retry_after_ms
        if isinstance(retry_after, int) and retry_after > 0:
            return retry_after

        if error.kind == ErrorKind.OVERLOADED:
            return calculate_delay(attempt, base_delay_ms * 2, max_delay_ms)

    return calculate_delay(attempt, base_delay_ms, max_delay_ms)


def _next_delay(
    error: APIError,
    attempt: int,
    max_retries: int,
    base_delay_ms: int,
    max_delay_ms: int,
    on_retry: Optional[OnRetry]
) -> int:
    """
    Decide what happens after a failed attempt.

    Re-raises the error when it must not be retried; otherwise returns the
    delay to sleep before the next attempt.
    """
    if not error.retryable:
        raise error

    if attempt >= max_retries:
        error.mark_retries_exhausted()
        logger.warning(
            f"Retries exhausted after {attempt + 1} attempts",
            error_kind=error.kind.value,
            status=error.status,
        )
        raise error

    delay_ms = calculate_delay_for_error(error, attempt, base_delay_ms, max_delay_ms)

    if on_retry:
        on_retry(attempt + 1, delay_ms, error)

    logger.warning(
        f"Retry {attempt + 1}/{max_retries} after {delay_ms}ms - Error: {error}",
        attempt=attempt + 1,
        delay_ms=delay_ms,
        error_kind=error.kind.value,
    )
    return delay_ms


def with_retry(
    func: Callable[[], T],
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS,
    on_retry: Optional[OnRetry] = None
) -> T:
    """
    Execute one whole exchange with retry logic.

    Args:
        func: Performs one complete request/response exchange. Returns the
            result or raises ``APIError``.
        max_retries: Maximum number of retries after the first attempt
        base_delay_ms: Base delay for backoff
        max_delay_ms: Backoff cap
        on_retry: Called before each retry with (attempt, delay_ms, error)

    Returns:
        The result of the first successful attempt

    Raises:
        APIError: Non-retryable errors immediately; retryable errors once
            the budget is spent, with ``retries_exhausted`` set
    """
    attempt = 0
    while True:
        try:
            return func()
        except APIError as e:
            delay_ms = _next_delay(
                e, attempt, max_retries, base_delay_ms, max_delay_ms, on_retry
            )

        time.sleep(delay_ms / 1000)
        attempt += 1


async def with_retry_async(
    func: Callable[[], Awaitable[T]],
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS,
    on_retry: Optional[OnRetry] = None
) -> T:
    """
    Execute one whole async exchange with retry logic.

    Same as with_retry but awaits ``func`` and sleeps with asyncio.
    """
    attempt = 0
    while True:
        try:
            return await func()
        except APIError as e:
            delay_ms = _next_delay(
                e, attempt, max_retries, base_delay_ms, max_delay_ms, on_retry
            )

        await asyncio.sleep(delay_ms / 1000)
        attempt += 1


class RetryHandler:
    """
    Configurable retry handler for whole-exchange requests.

    Example:
        handler = RetryHandler(max_retries=5, base_delay_ms=250)

        @handler.wrap
        def make_request():
            return client.create_message(body)

        result = make_request()
    """

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
        max_delay_ms: int = DEFAULT_MAX_DELAY_MS,
        on_retry: Optional[OnRetry] = None
    ):
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.on_retry = on_retry

    def execute(self, func: Callable[[], T]) -> T:
        """Execute a no-argument callable with retry logic."""
        return with_retry(
            func,
            max_retries=self.max_retries,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms,
            on_retry=self.on_retry
        )

    async def execute_async(self, func: Callable[[], Awaitable[T]]) -> T:
        """Execute a no-argument async callable with retry logic."""
        return await with_retry_async(
            func,
            max_retries=self.max_retries,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms,
            on_retry=self.on_retry
        )

    def wrap(self, func: Callable[..., T]) -> Callable[..., T]:
        """Wrap a synchronous function with retry logic."""
        def wrapper(*args: Any, **kwargs: Any) -> T:
            return self.execute(lambda: func(*args, **kwargs))

        return wrapper

    def wrap_async(self, func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        """Wrap an async function with retry logic."""
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await self.execute_async(lambda: func(*args, **kwargs))

        return wrapper
