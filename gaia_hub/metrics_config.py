"""Gaia Hub Metrics Configuration.

Driver operation metrics using OpenTelemetry with a Prometheus reader.
Disabled by default under pytest and CI.
"""

from __future__ import annotations

import os
import socket
import sys
import time

from opentelemetry import metrics
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.resources import Resource
from prometheus_client import CONTENT_TYPE_LATEST
from prometheus_client import generate_latest

SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "gaia-hub")
SERVICE_VERSION = os.getenv("OTEL_SERVICE_VERSION", "1.0.0")
DEPLOYMENT_ENVIRONMENT = os.getenv("DEPLOYMENT_ENVIRONMENT", "local")


def is_test_environment() -> bool:
    """Detect if running in test environment."""
    return (
        "pytest" in sys.modules
        or "PYTEST_CURRENT_TEST" in os.environ
        or "CI" in os.environ
        or "GITHUB_ACTIONS" in os.environ
    )


default_metrics_enabled = "false" if is_test_environment() else "true"
METRICS_ENABLED = os.getenv("GAIA_METRICS_ENABLED", default_metrics_enabled).lower() == "true"

meter = None
operations_counter = None
duration_histogram = None
prometheus_reader = None

_metrics_initialized = False


def get_resource() -> Resource:
    """Create OpenTelemetry resource with service information."""
    return Resource.create(
        {
            "service.name": SERVICE_NAME,
            "service.version": SERVICE_VERSION,
            "deployment.environment": DEPLOYMENT_ENVIRONMENT,
            "host.name": socket.gethostname(),
        }
    )


def initialize_metrics() -> None:
    """Initialize driver metrics with a Prometheus reader."""
    global meter, operations_counter, duration_histogram, prometheus_reader, _metrics_initialized

    _metrics_initialized = True
    if not METRICS_ENABLED:
        return

    prometheus_reader = PrometheusMetricReader()
    meter_provider = MeterProvider(resource=get_resource(), metric_readers=[prometheus_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter(__name__)

    operations_counter = meter.create_counter(
        name="gaia_driver_operations_total",
        description="Total number of storage driver operations",
        unit="1",
    )
    duration_histogram = meter.create_histogram(
        name="gaia_driver_operation_duration_ms",
        description="Storage driver operation latency",
        unit="ms",
    )


def ensure_metrics_initialized() -> None:
    if not _metrics_initialized:
        initialize_metrics()


def is_metrics_enabled() -> bool:
    """Check if metrics collection is enabled."""
    return METRICS_ENABLED and meter is not None


def record_operation_start() -> float:
    """Return the start timestamp for an operation."""
    ensure_metrics_initialized()
    return time.perf_counter()


def _record(backend: str, operation: str, status: str, start_time: float) -> None:
    if not is_metrics_enabled():
        return
    attributes = {"backend": backend, "operation": operation, "status": status}
    operations_counter.add(1, attributes)
    duration_histogram.record((time.perf_counter() - start_time) * 1000, attributes)


def record_operation_success(backend: str, operation: str, start_time: float) -> None:
    _record(backend, operation, "success", start_time)


def record_operation_error(backend: str, operation: str, start_time: float, error: BaseException) -> None:
    _record(backend, operation, type(error).__name__, start_time)


def get_metrics_export() -> tuple[str, str]:
    """Return the Prometheus exposition payload and its content type."""
    ensure_metrics_initialized()
    return generate_latest().decode("utf-8"), CONTENT_TYPE_LATEST
