"""Async retry with exponential backoff for store calls."""

import asyncio
from typing import Any, Awaitable, Callable

import structlog

from storage.errors import ResourceExhaustedError, TransientStoreError

logger = structlog.get_logger(__name__)


async def retry_with_backoff(
    func: Callable[..., Awaitable[Any]],
    *args,
    max_retries: int = 3,
    retry_delay: float = 1.0,
    operation: str = "store_call",
    **kwargs,
) -> Any:
    """Await ``func`` retrying transient failures with exponential backoff.

    Args:
        func: Coroutine function to execute
        *args: Positional arguments for function
        max_retries: Maximum number of attempts
        retry_delay: Initial delay between retries
        operation: Name used in log events
        **kwargs: Keyword arguments for function

    Returns:
        Function result

    Raises:
        TransientStoreError: If all retries fail
        ResourceExhaustedError: Immediately; callers degrade the write instead
    """
    last_exception = None
    max_retries = max(1, max_retries)

    for attempt in range(max_retries):
        try:
            return await func(*args, **kwargs)

        except ResourceExhaustedError as e:
            logger.warning("store_resource_exhausted_no_retry", operation=operation, error=str(e))
            raise

        except TransientStoreError as e:
            last_exception = e

            if attempt + 1 >= max_retries:
                break

            delay = retry_delay * (2**attempt)
            logger.warning(
                "store_call_retry",
                operation=operation,
                error=str(e),
                attempt=attempt + 1,
                max_retries=max_retries,
                delay=delay,
            )
            await asyncio.sleep(delay)

    logger.error(
        "store_call_max_retries",
        operation=operation,
        error=str(last_exception) if last_exception else "unknown",
    )
    raise last_exception
