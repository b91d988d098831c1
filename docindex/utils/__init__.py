"""
Utility modules for the document indexing layer.
"""

from .logging import setup_logging, get_logger, LoggerMixin
from .metrics import MetricsCollector, metrics_collector, monitor_function
from .retry import RetryConfig, RetryPolicy

__all__ = [
    "setup_logging",
    "get_logger",
    "LoggerMixin",
    "MetricsCollector",
    "metrics_collector",
    "monitor_function",
    "RetryConfig",
    "RetryPolicy",
]
