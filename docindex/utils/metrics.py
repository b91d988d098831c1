"""
Metrics collection and monitoring utilities.
"""

import asyncio
import time
from typing import Callable
from functools import wraps
from prometheus_client import Counter, Histogram, generate_latest

from .logging import get_logger


class MetricsCollector:
    """Collector for backend operation metrics."""

    def __init__(self):
        self.logger = get_logger(__name__)

        # Backend operation metrics
        self.operation_counter = Counter(
            'docindex_operations_total',
            'Total number of document index operations',
            ['service', 'operation', 'target', 'status']
        )

        self.operation_duration = Histogram(
            'docindex_operation_duration_seconds',
            'Document index operation duration in seconds',
            ['service', 'operation', 'target']
        )

        # Retry metrics
        self.retry_counter = Counter(
            'docindex_retries_total',
            'Total number of retried backend calls',
            ['operation']
        )

        # Error metrics
        self.error_counter = Counter(
            'docindex_errors_total',
            'Total number of errors',
            ['service', 'error_type', 'operation']
        )

    def record_operation(self, service: str, operation: str, target: str,
                         duration: float, status: str = "success") -> None:
        """Record operation metrics."""
        self.operation_duration.labels(
            service=service,
            operation=operation,
            target=target
        ).observe(duration)

        self.operation_counter.labels(
            service=service,
            operation=operation,
            target=target,
            status=status
        ).inc()

    def record_retry(self, operation: str) -> None:
        """Record a retried call."""
        self.retry_counter.labels(operation=operation).inc()

    def record_error(self, service: str, error_type: str, operation: str) -> None:
        """Record error metrics."""
        self.error_counter.labels(
            service=service,
            error_type=error_type,
            operation=operation
        ).inc()

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest()


# Global metrics collector instance
metrics_collector = MetricsCollector()


def monitor_function(service: str, operation: str, target: str = "unknown"):
    """Decorator to monitor function execution time and success/failure."""
    def decorator(func: Callable) -> Callable:
        def _record(start_time: float, error: Exception = None) -> None:
            duration = time.time() - start_time
            metrics_collector.record_operation(
                service=service,
                operation=operation,
                target=target,
                duration=duration,
                status="error" if error else "success"
            )
            if error is not None:
                metrics_collector.record_error(
                    service=service,
                    error_type=type(error).__name__,
                    operation=operation
                )

        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _record(start_time, e)
                    raise
                _record(start_time)
                return result
            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _record(start_time, e)
                raise
            _record(start_time)
            return result
        return wrapper
    return decorator
