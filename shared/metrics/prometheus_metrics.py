"""Prometheus metrics definitions and helpers.

Provides the HTTP and database metrics exported by the Brief server.
"""

from typing import Callable

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    REGISTRY,
    CollectorRegistry,
)


class HTTPMetrics:
    """Request and database metrics for one application instance."""

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        """Initialize HTTP metrics.

        Args:
            registry: Prometheus registry to use
        """
        self.registry = registry

        # Requests served
        self.requests_total = Counter(
            "brief_http_requests_total",
            "Total HTTP requests",
            ["method", "path", "status"],
            registry=registry,
        )

        # Request duration
        self.request_duration = Histogram(
            "brief_http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "path"],
            buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=registry,
        )

        # Requests in flight
        self.requests_in_progress = Gauge(
            "brief_http_requests_in_progress",
            "HTTP requests currently in progress",
            ["method"],
            registry=registry,
        )

        # Database reachability (1=reachable, 0=unreachable)
        self.database_up = Gauge(
            "brief_database_up",
            "Whether the last database ping succeeded",
            registry=registry,
        )

    def observe_request(self, method: str, path: str, status: int, duration_seconds: float) -> None:
        """Record a finished request."""
        self.requests_total.labels(method=method, path=path, status=str(status)).inc()
        self.request_duration.labels(method=method, path=path).observe(duration_seconds)


def get_metrics_handler(registry: CollectorRegistry = REGISTRY) -> Callable[[], bytes]:
    """Get metrics handler for HTTP endpoint.

    Args:
        registry: Prometheus registry to expose

    Returns:
        Function that generates Prometheus metrics output
    """

    def metrics_handler() -> bytes:
        return generate_latest(registry)

    return metrics_handler
