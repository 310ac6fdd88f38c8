"""
Retry strategies for step execution.

A step attempt either succeeds or yields a failed result; the runner asks
the strategy whether another attempt is allowed and how long to pause.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from e2e_replay.monitoring.logger import get_logger

logger = get_logger(__name__)


@dataclass
class RetryContext:
    """Bookkeeping for one step across its attempts."""
    operation_name: str
    attempt_number: int = 1
    failures: List[str] = field(default_factory=list)
    last_error: Optional[Exception] = None

    def add_attempt(self, failure: str, error: Optional[Exception] = None) -> None:
        """Record a failed attempt and advance the counter."""
        self.failures.append(failure)
        self.last_error = error
        self.attempt_number += 1


class RetryStrategy(ABC):
    """Abstract base class for retry strategies."""

    @abstractmethod
    def get_delay_ms(self, attempt: int) -> int:
        """Calculate delay in milliseconds before the given attempt."""
        pass

    @abstractmethod
    def should_retry(self, context: RetryContext) -> bool:
        """Determine if another attempt should be made."""
        pass


class FixedBackoffStrategy(RetryStrategy):
    """Constant pause, bounded number of additional attempts.

    ``max_retries`` counts retries, not attempts: ``max_retries=2`` allows
    three attempts in total.
    """

    def __init__(self, max_retries: int = 2, backoff_ms: int = 1000):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.backoff_ms = backoff_ms

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def get_delay_ms(self, attempt: int) -> int:
        return self.backoff_ms

    def should_retry(self, context: RetryContext) -> bool:
        """Check if retry should be attempted."""
        # attempt_number already points at the next attempt
        if context.attempt_number > self.max_attempts:
            logger.warning(
                f"Max attempts ({self.max_attempts}) reached for {context.operation_name}"
            )
            return False
        return True
