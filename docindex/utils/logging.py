"""
Logging configuration and utilities for the document indexing layer.
"""

import re
import sys
import logging
import structlog
from typing import Optional, Dict, Any
from rich.logging import RichHandler
from rich.console import Console

from ..config import settings
from ..errors import DocIndexError

_configured = False

# "scheme://user:password@" in connection URLs
_URL_CREDENTIALS = re.compile(r"(\w+://[^:/@\s]*:)[^@\s]+@")


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None,
    force: bool = False
) -> None:
    """
    Setup structured logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format (json, text)
        log_file: Optional log file path
        force: Reconfigure even if logging was already set up
    """
    global _configured
    if _configured and not force:
        return

    # Use settings if not provided
    log_level = log_level or settings.monitoring.log_level
    log_format = log_format or settings.monitoring.log_format
    log_file = log_file or settings.monitoring.log_file
    level = getattr(logging, log_level.upper())

    # Configure structlog
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        redact_credentials,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()

    # Rich handler replaces the plain stream handler in development
    if settings.deployment.environment == "development":
        console = Console(stderr=True)
        rich_handler = RichHandler(console=console, rich_tracebacks=True, show_path=False)
        rich_handler.setLevel(level)
        root_logger.addHandler(rich_handler)
        root_logger.setLevel(level)
    else:
        logging.basicConfig(
            format="%(message)s",
            stream=sys.stdout,
            level=level,
        )

    # Add file handler if specified
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        root_logger.addHandler(file_handler)

    _configured = True


def redact_credentials(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Mask passwords in connection URLs before they are rendered."""
    for key, value in event_dict.items():
        if isinstance(value, str) and "://" in value:
            event_dict[key] = _URL_CREDENTIALS.sub(r"\1***@", value)
    return event_dict


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name

    Returns:
        Structured logger instance
    """
    return structlog.get_logger(name)


class LoggerMixin:
    """Mixin giving a class a logger bound to its component and record type."""

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        """Logger bound to this component and, when it has one, its record type."""
        context: Dict[str, Any] = {"component": self.__class__.__name__}
        record_type = getattr(self, "record_type", None)
        name = getattr(record_type, "name", None)
        if name is not None:
            context["record_type"] = name
        return get_logger(self.__class__.__name__).bind(**context)

    def log_error(self, error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
        """Log an error with the operation, record type and field path it carries."""
        fields: Dict[str, Any] = dict(context or {})
        if isinstance(error, DocIndexError):
            fields.update(error.context)
            message = error.message
        else:
            message = str(error)
        self.logger.error(
            "Operation failed",
            error_type=type(error).__name__,
            error_message=message,
            **fields,
        )
