"""
Prometheus Metrics Collector for the lift caller.

Provides metrics for monitoring:
- Access token exchanges and latency
- WebSocket session outcomes and connect latency
- Inbound frames (parsed / dropped)
- Destination calls
"""

import logging
from typing import Optional

from prometheus_client import Counter, Histogram, start_http_server

logger = logging.getLogger("lift.metrics")


# Token metrics
TOKEN_EXCHANGES_TOTAL = Counter(
    'lift_token_exchanges_total',
    'Access token exchanges with the auth endpoint',
    ['status']  # 'success', 'error'
)
TOKEN_EXCHANGE_LATENCY = Histogram(
    'lift_token_exchange_latency_seconds',
    'Access token exchange latency',
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0]
)

# Session metrics
SESSION_EVENTS_TOTAL = Counter(
    'lift_session_events_total',
    'WebSocket session lifecycle events',
    ['event']  # 'open', 'connect_failed', 'timeout', 'closed', 'lost'
)
SESSION_CONNECT_LATENCY = Histogram(
    'lift_session_connect_latency_seconds',
    'Time from connect attempt to open',
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0]
)
FRAMES_TOTAL = Counter(
    'lift_frames_total',
    'Inbound WebSocket frames',
    ['status']  # 'parsed', 'dropped'
)

# Call metrics
CALLS_TOTAL = Counter(
    'lift_calls_total',
    'Destination calls',
    ['status']  # 'sent', 'unavailable', 'failed'
)


class MetricsCollector:
    """
    Centralized metrics collector for the lift caller.

    Provides convenient methods for recording metrics
    and starts the Prometheus HTTP server.
    """

    def __init__(self, port: int = 9090, host: str = "0.0.0.0"):
        """
        Initialize metrics collector.

        Args:
            port: Port for Prometheus HTTP server
            host: Host to bind to
        """
        self.port = port
        self.host = host
        self._started = False

    def start(self) -> bool:
        """
        Start the Prometheus HTTP server.

        Returns:
            True if the server is running
        """
        if self._started:
            return True

        try:
            start_http_server(self.port, addr=self.host)
            self._started = True
            logger.info(f"Prometheus metrics server started on {self.host}:{self.port}")
            return True
        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")
            return False

    # Token metrics
    def token_exchange(self, latency: float, success: bool = True) -> None:
        """Record an access token exchange."""
        TOKEN_EXCHANGES_TOTAL.labels(status="success" if success else "error").inc()
        TOKEN_EXCHANGE_LATENCY.observe(latency)

    # Session metrics
    def session_event(self, event: str) -> None:
        """Record a session lifecycle event."""
        SESSION_EVENTS_TOTAL.labels(event=event).inc()

    def session_opened(self, latency: float) -> None:
        """Record a successful session open."""
        SESSION_EVENTS_TOTAL.labels(event="open").inc()
        SESSION_CONNECT_LATENCY.observe(latency)

    def frame_received(self, parsed: bool) -> None:
        """Record an inbound frame."""
        FRAMES_TOTAL.labels(status="parsed" if parsed else "dropped").inc()

    # Call metrics
    def call(self, status: str) -> None:
        """Record a destination call outcome."""
        CALLS_TOTAL.labels(status=status).inc()


_metrics: Optional[MetricsCollector] = None


def get_metrics() -> MetricsCollector:
    """Get or create the global metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
