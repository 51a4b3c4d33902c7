"""Retry logic for calls to the management API."""
import asyncio
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, TypeVar

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Network-level failures worth another attempt for requests that are safe to
# repeat. HTTP status errors are not retried: the remote system answered.
RETRYABLE_EXCEPTIONS = (
    httpx.TransportError,
    ConnectionResetError,
    TimeoutError,
)

# Failures raised before the request reached the server. Only these are
# retried for requests that change remote state.
NOT_SENT_EXCEPTIONS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
)


def with_retry(
    max_attempts: int = 3,
    min_wait: float = 1,
    max_wait: float = 10,
    exceptions: tuple = RETRYABLE_EXCEPTIONS,
) -> Callable:
    """Decorator factory for retrying a coroutine with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts
        min_wait: Minimum wait time between retries (seconds)
        max_wait: Maximum wait time between retries (seconds)
        exceptions: Tuple of exception types to retry on. Pass
            NOT_SENT_EXCEPTIONS for requests that must not reach the server twice.
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"with_retry requires a coroutine function, got {func!r}")

        @retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
            retry=retry_if_exception_type(exceptions),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await func(*args, **kwargs)

        return wrapper

    return decorator
