# backend/app/services/base.py
"""
Base Service Pattern for the Hive Wellness payments backend

Provides common functionality for all service classes including:
- Logging
- Performance monitoring (in-process metrics and Prometheus)
"""

from functools import wraps
import logging
import time
from typing import Any, Callable, Dict, TypeVar, cast

from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


class BaseService:
    """
    Base class for all service layer components.

    Provides common patterns for:
    - Logging
    - Performance monitoring
    """

    # Class-level metrics storage
    _class_metrics: Dict[str, Dict[str, Dict[str, float]]] = {}

    def __init__(self) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)

    @staticmethod
    def measure_operation(operation_name: str) -> Callable:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("handle_session_cancellation")
            def handle_session_cancellation(self, request):
                # Method implementation

        Args:
            operation_name: Name of the operation for metrics

        Returns:
            Decorator function
        """

        F = TypeVar("F", bound=Callable[..., Any])

        def decorator(func: F) -> F:
            # Store the operation name on the function for later use
            func._operation_name = operation_name  # type: ignore[attr-defined]
            func._is_measured = True  # type: ignore[attr-defined]

            @wraps(func)
            def wrapper(self, *args, **kwargs):
                start_time = time.time()
                error_type = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    _finish(self, operation_name, time.time() - start_time, error_type)

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        """
        Log an operation with context.

        Use the @measure_operation decorator for timing.
        """
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})

    def _record_metric(self, operation: str, elapsed: float, success: bool) -> None:
        """
        Record performance metrics.

        Args:
            operation: Operation name
            elapsed: Time taken in seconds
            success: Whether operation succeeded
        """
        class_name = self.__class__.__name__
        metrics = BaseService._class_metrics.setdefault(class_name, {})

        if operation not in metrics:
            metrics[operation] = {
                "count": 0,
                "total_time": 0.0,
                "success_count": 0,
                "failure_count": 0,
                "min_time": float("inf"),
                "max_time": 0.0,
            }

        metric_data = metrics[operation]
        metric_data["count"] += 1
        metric_data["total_time"] += elapsed
        metric_data["min_time"] = min(metric_data["min_time"], elapsed)
        metric_data["max_time"] = max(metric_data["max_time"], elapsed)

        if success:
            metric_data["success_count"] += 1
        else:
            metric_data["failure_count"] += 1

    def get_metrics(self) -> Dict[str, Dict[str, float]]:
        """Return per-operation metrics for this service with computed averages."""
        result: Dict[str, Dict[str, float]] = {}
        for operation, data in BaseService._class_metrics.get(
            self.__class__.__name__, {}
        ).items():
            count = data["count"] or 1
            result[operation] = {
                **data,
                "avg_time": data["total_time"] / count,
                "success_rate": data["success_count"] / count,
            }
        return result


def _finish(service: Any, operation_name: str, elapsed: float, error_type: str | None) -> None:
    success = error_type is None

    if isinstance(service, BaseService):
        service._record_metric(operation_name, elapsed, success)

    # Only log if it's actually slow
    if elapsed > 1.0 and hasattr(service, "logger"):
        service.logger.warning(f"Slow operation detected: {operation_name} took {elapsed:.2f}s")

    try:
        prometheus_metrics.record_service_operation(
            service=service.__class__.__name__,
            operation=operation_name,
            duration=elapsed,
            status="success" if success else "error",
            error_type=error_type,
        )
    except Exception:
        # Don't let metrics collection break the operation
        logger.debug("Failed to record Prometheus metric for %s", operation_name, exc_info=True)
