"""
Prometheus metrics middleware for HTTP request tracking.

This middleware integrates with the prometheus_metrics module to
track HTTP request duration and status codes.
"""

import re
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..monitoring.prometheus_metrics import prometheus_metrics

METRICS_PATH = "/metrics"

# Stripe object ids: acct_..., pi_..., po_...
_PROCESSOR_ID = re.compile(r"^[a-z]{2,5}_[A-Za-z0-9_]+$")


def _endpoint_label(path: str) -> str:
    """Normalize ids out of the path to keep label cardinality low.

    Example: /earnings/therapists/acct_123/balance -> /earnings/therapists/:id/balance
    """
    return "/".join(
        ":id" if segment.isdigit() or _PROCESSOR_ID.match(segment) else segment
        for segment in path.split("/")
    )


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for HTTP requests."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics collection for the metrics endpoint itself
        if request.url.path == METRICS_PATH:
            return await call_next(request)

        start_time = time.time()
        response = await call_next(request)
        prometheus_metrics.record_http_request(
            method=request.method,
            endpoint=_endpoint_label(request.url.path),
            duration=time.time() - start_time,
            status_code=response.status_code,
        )
        return response
