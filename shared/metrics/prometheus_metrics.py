"""Prometheus metrics definitions and helpers.

Provides metric definitions for the service request lifecycle: request
creation, status transitions, caller-visible errors, the outcome of
best-effort side effects, and HTTP request counts and latency.
"""

from typing import Callable

from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    REGISTRY,
    CollectorRegistry,
)


class LifecycleMetrics:
    """Service request lifecycle metrics."""

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        """Initialize lifecycle metrics.

        Args:
            registry: Prometheus registry to use
        """
        self.registry = registry

        self.requests_created = Counter(
            "service_requests_created_total",
            "Total number of service requests created",
            ["kind"],
            registry=registry,
        )

        self.transitions = Counter(
            "service_request_transitions_total",
            "Total number of successful status transitions",
            ["kind", "event"],
            registry=registry,
        )

        self.errors = Counter(
            "service_request_errors_total",
            "Total number of caller-visible lifecycle errors",
            ["kind", "error_code"],
            registry=registry,
        )

        # Side effects never fail the triggering call, so outcomes are only
        # observable here and in the logs.
        self.notifications = Counter(
            "notifications_dispatched_total",
            "Notification delivery attempts by outcome",
            ["outcome"],
            registry=registry,
        )

        self.channel_provisioning = Counter(
            "channel_provisioning_total",
            "Channel provisioning attempts by outcome",
            ["outcome"],
            registry=registry,
        )

        self.operation_duration = Histogram(
            "service_request_operation_seconds",
            "Time spent in lifecycle operations",
            ["kind", "operation"],
            buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=registry,
        )

        # HTTP layer
        self.http_requests = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status"],
            registry=registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=registry,
        )


def get_metrics_handler(registry: CollectorRegistry = REGISTRY) -> Callable[[], bytes]:
    """Get metrics handler for HTTP endpoint.

    Args:
        registry: Prometheus registry to render

    Returns:
        Function that generates Prometheus metrics output
    """

    def metrics_handler() -> bytes:
        return generate_latest(registry)

    return metrics_handler
