"""Bounded retry with exponential backoff for async operations."""

import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from .exceptions import RetryExhaustedError
from .models import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    name: str,
    policy: RetryPolicy,
    fatal: Tuple[Type[BaseException], ...] = (),
) -> T:
    """
    Awaits operation() until it succeeds or the policy runs out of attempts.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt.
        name: Human readable stage name used in log lines and the final error.
        policy: Attempt count and delay bounds.
        fatal: Exception types the caller considers non-retryable. They are
               re-raised as-is on first sight without consuming an attempt.

    Returns:
        Whatever the first successful attempt returned.

    Raises:
        RetryExhaustedError: After policy.max_attempts failures, chained from
                             the last error.
    """
    max_attempts = max(1, policy.max_attempts)
    last_error: BaseException = RuntimeError(f"{name} was never attempted")

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except fatal:
            raise
        except Exception as e:
            last_error = e
            if attempt == max_attempts:
                break
            delay = policy.delay_for(attempt)
            logger.warning(
                f"{name} failed (attempt {attempt}/{max_attempts}): {e}. "
                f"Retrying in {delay:g} seconds..."
            )
            await asyncio.sleep(delay)

    logger.error(f"{name} failed after {max_attempts} attempt(s): {last_error}")
    raise RetryExhaustedError(name, max_attempts, last_error) from last_error
