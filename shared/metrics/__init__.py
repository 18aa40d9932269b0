"""Metrics module using Prometheus."""

from .prometheus_metrics import (
    LifecycleMetrics,
    get_metrics_handler,
)

__all__ = [
    "LifecycleMetrics",
    "get_metrics_handler",
]
