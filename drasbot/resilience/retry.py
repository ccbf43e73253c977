"""
Retries for bridge HTTP calls

Transient failures (timeouts, dropped connections, 429, 5xx) are retried with
exponential backoff plus jitter. When the bridge answers 429 with a
`Retry-After` header, that wait is used instead of the computed backoff.
Everything else is raised on the first attempt.
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from drasbot.monitoring import record_retry

logger = logging.getLogger(__name__)

T = TypeVar('T')

MAX_RETRIES = 3
BASE_DELAY = 1.0  # seconds
MAX_DELAY = 30.0  # seconds
JITTER = 0.1  # fraction of the delay

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
TRANSIENT_TRANSPORT_ERRORS = (httpx.TimeoutException, httpx.ConnectError, httpx.RemoteProtocolError)


def is_retryable_error(exc: Exception) -> bool:
    """True for timeouts, refused/dropped connections, 429 and 5xx responses"""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, TRANSIENT_TRANSPORT_ERRORS)


def retry_after_seconds(exc: Exception) -> Optional[float]:
    """Delay requested by a 429 `Retry-After` header (seconds form only)"""
    if not isinstance(exc, httpx.HTTPStatusError) or exc.response.status_code != 429:
        return None
    header = exc.response.headers.get("Retry-After")
    if header is None:
        return None
    try:
        return min(max(float(header), 0.0), MAX_DELAY)
    except ValueError:
        return None


def calculate_backoff(attempt: int, base_delay: float = BASE_DELAY) -> float:
    """
    base_delay * 2**attempt, capped at MAX_DELAY, +/- JITTER.

    With the defaults: ~1s, ~2s, ~4s.
    """
    delay = min(base_delay * (2 ** attempt), MAX_DELAY)
    return max(delay + random.uniform(-JITTER * delay, JITTER * delay), 0.0)


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_retries: int = MAX_RETRIES,
    base_delay: float = BASE_DELAY,
    operation: Optional[str] = None,
    **kwargs: Any
) -> T:
    """
    Await `func(*args, **kwargs)`, retrying transient failures.

    Args:
        func: Coroutine function to call
        max_retries: Retries after the first attempt
        base_delay: First backoff delay in seconds
        operation: Name used in logs and the retry metric (defaults to the
            function name)

    Raises:
        The last error once retries are exhausted, or the first
        non-retryable one
    """
    name = operation or getattr(func, "__name__", "call")
    attempt = 0
    while True:
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not is_retryable_error(e):
                logger.warning(f"{name}: not retrying {type(e).__name__}: {e}")
                raise
            if attempt >= max_retries:
                if max_retries:
                    logger.error(f"{name}: giving up after {max_retries} retries ({type(e).__name__})")
                raise

            requested = retry_after_seconds(e)
            delay = requested if requested is not None else calculate_backoff(attempt, base_delay)
            attempt += 1
            record_retry(name)
            logger.info(f"{name}: retry {attempt}/{max_retries} in {delay:.2f}s after {type(e).__name__}")
            await asyncio.sleep(delay)
