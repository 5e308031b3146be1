"""
Retry decorator with exponential backoff.

Wraps calls to external HTTP services (the store directory webhook,
ticket image downloads) whose failures are usually transient.
"""

import asyncio
import functools
import logging
import random
from typing import Any, Callable, Tuple, Type

logger = logging.getLogger(__name__)


def backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
    jitter: bool = True,
) -> float:
    """
    Delay before retry number attempt + 1.

    Example:
        >>> backoff_delay(2, base_delay=1.0, max_delay=60.0, jitter=False)
        4.0
    """
    delay = min(base_delay * (exponential_base ** attempt), max_delay)
    if jitter:
        spread = delay * 0.2
        delay = max(0.0, delay + random.uniform(-spread, spread))
    return delay


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    exceptions: Tuple[Type[Exception], ...] = (Exception,)
):
    """
    Retry an async function on the given exceptions.

    Args:
        max_retries: Retries after the first attempt
        base_delay: Seconds before the first retry
        max_delay: Upper bound of any single delay
        exponential_base: Growth factor between retries
        jitter: Add ±20% random jitter to each delay
        exceptions: Exceptions that trigger a retry; anything else
            propagates immediately

    Example:
        @retry_with_backoff(max_retries=2, exceptions=(httpx.TransportError,))
        async def lookup(codigo: str) -> httpx.Response:
            async with httpx.AsyncClient() as client:
                return await client.post(url, json={"codigo": codigo})
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_retries:
                        logger.error(
                            "Giving up after retries",
                            extra={"function": func.__name__, "attempts": attempt + 1, "error": str(e)},
                            exc_info=True,
                        )
                        raise

                    delay = backoff_delay(attempt, base_delay, max_delay, exponential_base, jitter)
                    logger.info(
                        "Retrying after failure",
                        extra={
                            "function": func.__name__,
                            "attempt": attempt + 1,
                            "error_type": type(e).__name__,
                            "delay": round(delay, 2),
                        },
                    )
                    await asyncio.sleep(delay)
                    attempt += 1

        return wrapper
    return decorator
