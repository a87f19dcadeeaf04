"""Retry with exponential back-off for async operations."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before retry number ``attempt`` (1-based): base, 2*base, 4*base... capped."""
    return min(base_delay * 2 ** (attempt - 1), max_delay)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 4,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    description: Optional[str] = None,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
) -> T:
    """
    Await ``operation`` until it succeeds or attempts run out.

    Only exceptions matching ``retry_on`` are retried; anything else
    propagates immediately. The last retryable exception is re-raised once
    ``max_attempts`` is reached.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        max_attempts: Total attempts including the first one
        base_delay: Delay in seconds before the first retry, doubled after each
        max_delay: Upper bound for a single delay
        retry_on: Exception types considered transient
        description: Label used in log messages
        on_retry: Callback invoked with (attempt, error) before sleeping

    Returns:
        The operation's result
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    label = description or getattr(operation, "__name__", "operation")

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except retry_on as e:
            if attempt == max_attempts:
                logger.error("%s failed after %d attempts: %s", label, attempt, e)
                raise

            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                "%s failed (attempt %d/%d, retrying in %.1fs): %s",
                label,
                attempt,
                max_attempts,
                delay,
                e,
            )
            if on_retry is not None:
                on_retry(attempt, e)
            if delay > 0:
                await asyncio.sleep(delay)

    raise RuntimeError("unreachable")
