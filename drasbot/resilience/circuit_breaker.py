"""
Circuit breaker in front of the WhatsApp bridge

After BRIDGE_BREAKER_FAIL_MAX consecutive failures the breaker opens and
bridge calls fail immediately for BRIDGE_BREAKER_RESET_SECONDS; the next call
after that is a trial that either closes it again or re-opens it.

Only transport trouble counts as a failure. A 4xx answer (other than 429)
means the bridge is up and refused this particular request, so it is passed
through without moving the breaker.

`call_async` relies on tornado's coroutine support, which interoperates with
asyncio.
"""

import logging
from typing import Any, Awaitable, Callable, TypeVar

import httpx
import pybreaker

from drasbot.config import BRIDGE_BREAKER_FAIL_MAX, BRIDGE_BREAKER_RESET_SECONDS
from drasbot.monitoring import record_circuit_breaker_state

logger = logging.getLogger(__name__)

T = TypeVar('T')


def is_request_rejection(exc: BaseException) -> bool:
    """A 4xx other than 429: the bridge answered, the request was bad"""
    if not isinstance(exc, httpx.HTTPStatusError):
        return False
    status = exc.response.status_code
    return 400 <= status < 500 and status != 429


class BreakerStateListener(pybreaker.CircuitBreakerListener):
    """Logs transitions and mirrors the state into the breaker gauge"""

    def state_change(self, cb: pybreaker.CircuitBreaker, old_state: Any, new_state: Any) -> None:
        state = new_state.name.lower().replace("-", "_")
        if state == "closed":
            logger.info(f"Breaker {cb.name} closed again ({old_state.name} -> {new_state.name})")
        else:
            logger.warning(f"Breaker {cb.name}: {old_state.name} -> {new_state.name}")
        record_circuit_breaker_state(cb.name, state)

    def failure(self, cb: pybreaker.CircuitBreaker, exc: BaseException) -> None:
        logger.warning(
            f"Breaker {cb.name} counted {type(exc).__name__} "
            f"({cb.fail_counter}/{cb.fail_max})"
        )


def create_breaker(
    name: str,
    fail_max: int = BRIDGE_BREAKER_FAIL_MAX,
    reset_timeout: int = BRIDGE_BREAKER_RESET_SECONDS
) -> pybreaker.CircuitBreaker:
    return pybreaker.CircuitBreaker(
        fail_max=fail_max,
        reset_timeout=reset_timeout,
        exclude=[is_request_rejection],
        name=name,
        listeners=[BreakerStateListener()]
    )


BRIDGE_BREAKER = create_breaker("bridge_api")


async def call_with_breaker(
    breaker: pybreaker.CircuitBreaker,
    func: Callable[..., Awaitable[T]],
    *args: Any,
    **kwargs: Any
) -> T:
    """
    Await `func(*args, **kwargs)` through `breaker`.

    Raises:
        pybreaker.CircuitBreakerError: the breaker is open, or this call
            was the failure that opened it
    """
    try:
        return await breaker.call_async(func, *args, **kwargs)
    except pybreaker.CircuitBreakerError:
        logger.warning(f"Breaker {breaker.name} open, skipping {getattr(func, '__name__', 'call')}")
        raise
