"""
Retry with exponential backoff for idempotent backend calls.
"""

import asyncio
import random
from typing import Awaitable, Callable, Optional, TypeVar

from pydantic import BaseModel, Field

from ..config import settings
from ..errors import TransientBackendError
from .logging import get_logger
from .metrics import metrics_collector

T = TypeVar("T")

logger = get_logger(__name__)


class RetryConfig(BaseModel):
    """Retry configuration."""

    max_attempts: int = Field(default=3, ge=1, description="Total attempts including the first")
    base_delay: float = Field(default=0.1, ge=0.0, description="Initial delay in seconds")
    max_delay: float = Field(default=2.0, ge=0.0, description="Delay cap in seconds")
    exponential_base: float = Field(default=2.0, ge=1.0, description="Backoff multiplier")
    jitter: bool = Field(default=True, description="Randomize delays")

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        """Build the retry configuration from global settings."""
        return cls(
            max_attempts=settings.retry.max_attempts,
            base_delay=settings.retry.base_delay,
            max_delay=settings.retry.max_delay,
            jitter=settings.retry.jitter,
        )


class RetryPolicy:
    """
    Retry policy with exponential backoff and jitter.

    Only TransientBackendError is retried. Callers must only route
    idempotent operations through the policy.
    """

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or RetryConfig.from_settings()

    async def execute(self, func: Callable[[], Awaitable[T]], operation: str = "operation") -> T:
        """
        Execute an async callable, retrying transient failures.

        Args:
            func: Zero-argument coroutine factory
            operation: Operation name for logs and metrics

        Returns:
            Result of func()

        Raises:
            The last TransientBackendError once attempts are exhausted, or
            any non-transient error immediately.
        """
        for attempt in range(self.config.max_attempts):
            try:
                return await func()
            except TransientBackendError as e:
                if attempt == self.config.max_attempts - 1:
                    logger.error(
                        "Retries exhausted",
                        operation=operation,
                        attempts=self.config.max_attempts,
                        error=str(e),
                    )
                    raise

                delay = self._calculate_delay(attempt)
                metrics_collector.record_retry(operation)
                logger.warning(
                    "Retrying transient failure",
                    operation=operation,
                    attempt=attempt + 1,
                    max_attempts=self.config.max_attempts,
                    delay=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)

        raise RuntimeError("Retry loop exited without a result")

    def _calculate_delay(self, attempt: int) -> float:
        """Calculate delay for given attempt."""
        delay = self.config.base_delay * (self.config.exponential_base ** attempt)
        delay = min(delay, self.config.max_delay)

        if self.config.jitter:
            delay = delay * (0.5 + random.random() * 0.5)

        return delay
