"""Resilience patterns for calls to the WhatsApp bridge

Circuit breaker and retry with backoff, protecting dispatch from a slow or
failing transport.
"""

from drasbot.resilience.circuit_breaker import (
    BRIDGE_BREAKER,
    BreakerStateListener,
    call_with_breaker,
    create_breaker,
)
from drasbot.resilience.retry import is_retryable_error, retry_with_backoff

__all__ = [
    "BRIDGE_BREAKER",
    "BreakerStateListener",
    "call_with_breaker",
    "create_breaker",
    "is_retryable_error",
    "retry_with_backoff",
]
