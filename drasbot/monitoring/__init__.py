"""Monitoring infrastructure for drasbot"""
from drasbot.monitoring.sentry_config import init_sentry, capture_exception, set_user_context
from drasbot.monitoring.prometheus_metrics import (
    metrics,
    track_dispatch,
    track_bridge_request,
    record_dispatch,
    record_context_expired,
    update_context_cache_size,
    record_command,
    record_retry,
    record_circuit_breaker_state,
)

__all__ = [
    "init_sentry",
    "capture_exception",
    "set_user_context",
    "metrics",
    "track_dispatch",
    "track_bridge_request",
    "record_dispatch",
    "record_context_expired",
    "update_context_cache_size",
    "record_command",
    "record_retry",
    "record_circuit_breaker_state",
]
