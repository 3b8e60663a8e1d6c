"""Retry logic with exponential backoff.

This module provides the opt-in retry mechanism used for idempotent reads
whose outcome may lag behind a preceding write, such as a read issued right
after a delete against an eventually consistent server.
"""

import time
import random
from dataclasses import dataclass
from typing import Callable, TypeVar, Any, Dict, Generic, Optional, List

from ..exceptions import InfrastructureError, MaxRetriesExceededError

T = TypeVar("T")


@dataclass
class RetryOutcome(Generic[T]):
    """Result of a retried operation together with the attempts it took."""

    result: T
    attempts: int
    settled: bool


class RetryManager:
    """Manages retry logic with exponential backoff and jitter."""

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        backoff_factor: float = 2.0,
        jitter: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize retry manager.

        Args:
            max_retries: Maximum number of retry attempts
            base_delay: Base delay in seconds
            max_delay: Maximum delay in seconds
            backoff_factor: Multiplier for exponential backoff
            jitter: Whether to add random jitter to delays
            sleep: Function used to wait between attempts
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.jitter = jitter
        self._sleep = sleep

        # Retry conditions
        self._retry_conditions: List[Callable[[Exception], bool]] = []
        self._default_retry_conditions()

        # Metrics
        self._metrics = {
            "total_operations": 0,
            "settled_operations": 0,
            "unsettled_operations": 0,
            "failed_operations": 0,
            "total_retry_attempts": 0,
            "total_delay_time": 0.0,
        }

    def _default_retry_conditions(self) -> None:
        """Set up default retry conditions."""
        # Transport failures on an idempotent read are worth another attempt
        self.add_retry_condition(lambda exc: isinstance(exc, InfrastructureError))

    def add_retry_condition(self, condition: Callable[[Exception], bool]) -> None:
        """Add a condition for when to retry.

        Args:
            condition: Function that takes an exception and returns True if should retry
        """
        self._retry_conditions.append(condition)

    def should_retry(self, exception: Exception) -> bool:
        """Check if an exception should trigger a retry.

        Args:
            exception: Exception to check

        Returns:
            True if should retry, False otherwise
        """
        return any(condition(exception) for condition in self._retry_conditions)

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for a retry attempt.

        Args:
            attempt: Attempt number (0-based)

        Returns:
            Delay in seconds
        """
        delay = self.base_delay * (self.backoff_factor ** attempt)
        delay = min(delay, self.max_delay)

        if self.jitter:
            # Add random jitter between 0% and 100% of the delay
            delay += delay * random.random()

        return delay

    def execute_with_retry(
        self,
        operation: Callable[[], T],
        is_settled: Optional[Callable[[T], bool]] = None,
    ) -> RetryOutcome[T]:
        """Execute an operation until it settles or retries run out.

        An attempt is repeated when it raises a retryable exception, or when
        ``is_settled`` rejects its result. When the last attempt still does
        not settle, its result is returned with ``settled=False`` so callers
        can report what they actually observed.

        Args:
            operation: Function to execute
            is_settled: Predicate accepting a satisfactory result

        Returns:
            The last result and the number of attempts made

        Raises:
            MaxRetriesExceededError: If every attempt raised
        """
        self._metrics["total_operations"] += 1
        last_exception: Optional[Exception] = None
        total_delay = 0.0

        for attempt in range(self.max_retries + 1):
            try:
                result = operation()
            except Exception as e:
                last_exception = e
                if attempt == self.max_retries or not self.should_retry(e):
                    break
            else:
                last_exception = None
                settled = is_settled is None or is_settled(result)
                if settled or attempt == self.max_retries:
                    key = "settled_operations" if settled else "unsettled_operations"
                    self._metrics[key] += 1
                    self._metrics["total_delay_time"] += total_delay
                    return RetryOutcome(result=result, attempts=attempt + 1, settled=settled)

            delay = self.calculate_delay(attempt)
            total_delay += delay
            self._metrics["total_retry_attempts"] += 1
            self._sleep(delay)

        self._metrics["failed_operations"] += 1
        self._metrics["total_delay_time"] += total_delay

        raise MaxRetriesExceededError(
            f"Maximum retries ({self.max_retries}) exceeded",
            attempts=attempt + 1,
            last_exception=last_exception,
        )

    def get_metrics(self) -> Dict[str, Any]:
        """Get retry metrics.

        Returns:
            Dictionary of metrics
        """
        metrics = self._metrics.copy()

        if metrics["total_retry_attempts"] > 0:
            metrics["average_retry_delay"] = metrics["total_delay_time"] / metrics["total_retry_attempts"]
        else:
            metrics["average_retry_delay"] = 0.0

        return metrics

    def reset_metrics(self) -> None:
        """Reset all metrics to zero."""
        for key in self._metrics:
            self._metrics[key] = 0
