"""
Retry utilities for handling transient failures.

Exception Handling:
- By default, retries on RetryableException and its subclasses, plus the
  connection-level errors raised by httpx and the standard library
- NonRetryableException is never retried (propagates immediately)
- Can customize retryable_exceptions per operation

The orchestrator loops themselves never retry (a failed tick is simply
reported and the next tick starts from persisted state); retries are
reserved for one-shot boundary checks such as prover config validation.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

import httpx

from proof_orchestrator.shared.exceptions import RetryableException
from proof_orchestrator.shared.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)

DEFAULT_RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    RetryableException,
    httpx.TransportError,
    ConnectionError,
    TimeoutError,
)


def compute_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential: bool = True,
) -> float:
    """Delay before the retry that follows the given (0-based) attempt."""
    if exponential:
        return min(base_delay * (2**attempt), max_delay)
    return base_delay


async def retry_async_operation(
    operation: Callable[..., Awaitable[T]],
    *args: Any,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential: bool = True,
    retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    operation_name: Optional[str] = None,
    on_retry: Optional[Callable[[Exception, int, float], None]] = None,
    **kwargs: Any,
) -> T:
    """
    Retry an async operation with configurable backoff.

    Args:
        operation: Async function to call
        *args: Positional arguments for the operation
        max_attempts: Maximum attempts, the first call included
        base_delay: Initial delay between retries
        max_delay: Maximum delay between retries
        exponential: Use exponential backoff
        retryable_exceptions: Exception types to retry on
        operation_name: Optional name for logging
        on_retry: Optional callback called with (exception, attempt, delay)
        **kwargs: Keyword arguments for the operation

    Returns:
        Result of the operation

    Raises:
        The last retryable exception once every attempt is exhausted, or
        the first non-retryable exception immediately.

    Example:
        status = await retry_async_operation(
            client.get,
            url,
            max_attempts=5,
            operation_name="validate_config",
        )
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    if retryable_exceptions is None:
        retryable_exceptions = DEFAULT_RETRYABLE_EXCEPTIONS

    name = operation_name or getattr(operation, "__name__", "operation")
    last_exception: Optional[Exception] = None

    for attempt in range(max_attempts):
        try:
            return await operation(*args, **kwargs)
        except retryable_exceptions as e:
            last_exception = e

            if attempt < max_attempts - 1:
                delay = compute_delay(attempt, base_delay, max_delay, exponential)

                logger.warning(
                    f"Attempt {attempt + 1}/{max_attempts} failed for "
                    f"{name}: {e}. Retrying in {delay:.1f}s..."
                )

                if on_retry:
                    on_retry(e, attempt + 1, delay)

                await asyncio.sleep(delay)

    raise last_exception


class RetryConfig:
    """
    Configuration class for retry behavior.

    Can be used to share retry settings across multiple operations.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential: bool = True,
        retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential = exponential
        self.retryable_exceptions = (
            retryable_exceptions or DEFAULT_RETRYABLE_EXCEPTIONS
        )

    async def run(
        self,
        operation: Callable[..., Awaitable[T]],
        *args: Any,
        operation_name: Optional[str] = None,
        on_retry: Optional[Callable[[Exception, int, float], None]] = None,
        **kwargs: Any,
    ) -> T:
        """Run an async operation under this config."""
        return await retry_async_operation(
            operation,
            *args,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            exponential=self.exponential,
            retryable_exceptions=self.retryable_exceptions,
            operation_name=operation_name,
            on_retry=on_retry,
            **kwargs,
        )
