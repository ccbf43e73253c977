"""Prometheus metrics definitions and helpers"""
import logging
import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import Counter, Enum, Gauge, Histogram

from drasbot.config import ENABLE_PROMETHEUS

logger = logging.getLogger(__name__)


class PrometheusMetrics:
    """Container for all Prometheus metrics"""

    def __init__(self, enabled: bool = ENABLE_PROMETHEUS):
        if not enabled:
            logger.info("Prometheus metrics disabled")
            self._enabled = False
            return

        # Dispatch Metrics
        self.messages_dispatched_total = Counter(
            'drasbot_messages_dispatched_total',
            'Inbound messages dispatched',
            ['label']
        )

        self.handler_outcomes_total = Counter(
            'drasbot_handler_outcomes_total',
            'Handler outcomes',
            ['handler', 'outcome']
        )

        self.dispatch_duration_seconds = Histogram(
            'drasbot_dispatch_duration_seconds',
            'Time from receipt to reply hand-off',
            buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
        )

        # Context Metrics
        self.contexts_expired_total = Counter(
            'drasbot_contexts_expired_total',
            'Contexts cleared because their TTL elapsed',
            ['reason']
        )

        self.contexts_cached = Gauge(
            'drasbot_contexts_cached',
            'Active contexts held in the in-memory cache'
        )

        # Command Metrics
        self.commands_total = Counter(
            'drasbot_commands_total',
            'Command invocations by result',
            ['command', 'status']
        )

        # Bridge Metrics
        self.bridge_requests_total = Counter(
            'drasbot_bridge_requests_total',
            'Requests made to the WhatsApp bridge',
            ['endpoint', 'status']
        )

        self.bridge_request_duration_seconds = Histogram(
            'drasbot_bridge_request_duration_seconds',
            'Bridge request latency',
            ['endpoint'],
            buckets=[0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 15.0]
        )

        self.bridge_retries_total = Counter(
            'drasbot_bridge_retries_total',
            'Retry attempts against the bridge',
            ['operation']
        )

        self.circuit_breaker_state = Enum(
            'drasbot_circuit_breaker_state',
            'Current state of circuit breaker',
            ['breaker'],
            states=['closed', 'open', 'half_open']
        )

        self._enabled = True
        logger.info("Prometheus metrics initialized")

    @property
    def enabled(self) -> bool:
        """Check if metrics are enabled"""
        return self._enabled


# Global metrics instance
metrics = PrometheusMetrics()


@contextmanager
def track_dispatch() -> Iterator[None]:
    """Track dispatch latency"""
    if not metrics.enabled:
        yield
        return

    start_time = time.time()
    try:
        yield
    finally:
        metrics.dispatch_duration_seconds.observe(time.time() - start_time)


def record_dispatch(label: str, handler: str, outcome: str) -> None:
    """Record one dispatched message and the outcome of its handler"""
    if not metrics.enabled:
        return

    metrics.messages_dispatched_total.labels(label=label).inc()
    metrics.handler_outcomes_total.labels(handler=handler, outcome=outcome).inc()


def record_context_expired(reason: str, count: int = 1) -> None:
    """reason: 'read' (lazy check) or 'sweep' (periodic task)"""
    if not metrics.enabled or count <= 0:
        return

    metrics.contexts_expired_total.labels(reason=reason).inc(count)


def update_context_cache_size(size: int) -> None:
    if not metrics.enabled:
        return

    metrics.contexts_cached.set(size)


def record_command(command: str, status: str) -> None:
    if not metrics.enabled:
        return

    metrics.commands_total.labels(command=command, status=status).inc()


@contextmanager
def track_bridge_request(endpoint: str) -> Iterator[None]:
    """Track bridge request metrics"""
    if not metrics.enabled:
        yield
        return

    start_time = time.time()
    status = "error"

    try:
        yield
        status = "success"
    finally:
        metrics.bridge_request_duration_seconds.labels(endpoint=endpoint).observe(time.time() - start_time)
        metrics.bridge_requests_total.labels(endpoint=endpoint, status=status).inc()


def record_retry(operation: str) -> None:
    if not metrics.enabled:
        return

    metrics.bridge_retries_total.labels(operation=operation).inc()


def record_circuit_breaker_state(breaker: str, state: str) -> None:
    """
    Record circuit breaker state change.

    Args:
        breaker: Breaker name (bridge_api)
        state: New state (closed, open, half_open)
    """
    if not metrics.enabled:
        return

    try:
        metrics.circuit_breaker_state.labels(breaker=breaker).state(state)
    except Exception as e:
        logger.error(f"Failed to record circuit breaker state: {e}")
