"""
Prometheus metrics module for the Hive Wellness payments backend.

This module provides Prometheus-compatible metrics by leveraging existing
@measure_operation performance data plus payment-domain counters.
"""

import os
from threading import Lock
from time import monotonic
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry, separate from the process default
REGISTRY = CollectorRegistry()

http_request_duration_seconds = Histogram(
    "hive_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_total = Counter(
    "hive_http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

service_operation_duration_seconds = Histogram(
    "hive_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 8.0),
)

service_operations_total = Counter(
    "hive_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "hive_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

# Domain-specific custom counters
cancellations_total = Counter(
    "hive_cancellations_total",
    "Session cancellations processed",
    ["reason", "timing", "result"],  # result: refunded | fee_retained | rejected | error
    registry=REGISTRY,
)

refund_amount_minor_total = Counter(
    "hive_refund_amount_minor_total",
    "Sum of refunded amounts in minor currency units",
    registry=REGISTRY,
)

payout_requests_total = Counter(
    "hive_payout_requests_total",
    "Count of therapist payout requests",
    ["method", "status"],  # status: success | rejected | error
    registry=REGISTRY,
)


def _metrics_ttl_seconds() -> float:
    """Return cache TTL seconds based on SITE_MODE."""

    mode = (os.getenv("SITE_MODE") or "").strip().lower()
    if mode in {"ci", "test"}:
        return 2.0
    return 1.0


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None
    _cache_ttl_seconds: float = _metrics_ttl_seconds()

    @staticmethod
    def record_http_request(method: str, endpoint: str, duration: float, status_code: int) -> None:
        """Record HTTP request metrics."""
        labels = {"method": method, "endpoint": endpoint, "status_code": str(status_code)}

        http_request_duration_seconds.labels(**labels).observe(duration)
        http_requests_total.labels(**labels).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'CancellationService')
            operation: Operation/method name (e.g., 'handle_session_cancellation')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()

        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def get_metrics() -> bytes:
        """
        Generate Prometheus metrics in exposition format.

        Returns:
            Metrics data in Prometheus text format
        """
        now = monotonic()
        payload = PrometheusMetrics._cache_payload
        ts = PrometheusMetrics._cache_ts
        ttl = PrometheusMetrics._cache_ttl_seconds

        if payload is not None and ts is not None and (now - ts) <= ttl:
            return payload

        with PrometheusMetrics._cache_lock:
            payload = PrometheusMetrics._cache_payload
            ts = PrometheusMetrics._cache_ts
            ttl = PrometheusMetrics._cache_ttl_seconds

            if payload is None or ts is None or (now - ts) > ttl:
                PrometheusMetrics._refresh_cache_locked()
                payload = PrometheusMetrics._cache_payload

        return cast(bytes, payload)

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)

    @staticmethod
    def _refresh_cache_locked() -> None:
        """Refresh cached metrics payload. Caller must hold lock."""

        PrometheusMetrics._cache_payload = cast(bytes, generate_latest(REGISTRY))
        PrometheusMetrics._cache_ts = monotonic()
        PrometheusMetrics._cache_ttl_seconds = _metrics_ttl_seconds()

    @staticmethod
    def _invalidate_cache() -> None:
        """Invalidate cached metrics so next scrape refreshes."""

        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_ts = None
            PrometheusMetrics._cache_payload = None

    # Domain helpers
    @staticmethod
    def inc_cancellation(reason: str, timing: str, result: str) -> None:
        """Increment the cancellation counter for a reason/timing/result triple."""
        cancellations_total.labels(reason=reason, timing=timing, result=result).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def add_refund_amount(amount_minor: int) -> None:
        """Add a refunded amount (minor units) to the running total."""
        if amount_minor > 0:
            refund_amount_minor_total.inc(amount_minor)
            PrometheusMetrics._invalidate_cache()

    @staticmethod
    def inc_payout_request(method: str, status: str) -> None:
        """Increment payout request counter with given method/status labels."""
        payout_requests_total.labels(method=method, status=status).inc()
        PrometheusMetrics._invalidate_cache()


# Singleton instance
prometheus_metrics = PrometheusMetrics()
