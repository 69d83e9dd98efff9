"""Retry policy with exponential backoff and jitter."""

import random
from dataclasses import dataclass
from typing import Optional

from ..config.constants import (
    DEFAULT_RETRY_BACKOFF_FACTOR,
    DEFAULT_RETRY_INITIAL_DELAY,
    DEFAULT_RETRY_JITTER_FACTOR,
    DEFAULT_RETRY_MAX_DELAY,
)
from .error_classifier import ErrorCategory, ErrorClassification


@dataclass
class RetryPolicy:
    """Backoff between attempts of one step.

    The number of attempts comes from the request (``retries``); this
    policy only decides which failures are retried and how long to wait.
    """
    initial_delay: float = DEFAULT_RETRY_INITIAL_DELAY
    max_delay: float = DEFAULT_RETRY_MAX_DELAY
    backoff_factor: float = DEFAULT_RETRY_BACKOFF_FACTOR
    jitter_factor: float = DEFAULT_RETRY_JITTER_FACTOR

    # Retry conditions by error category
    retry_on_timeout: bool = True
    retry_on_rate_limit: bool = True
    retry_on_server_error: bool = True
    retry_on_network_error: bool = True

    respect_retry_after: bool = True

    def should_retry_category(self, category: ErrorCategory) -> bool:
        """Check if error category should be retried."""
        category_map = {
            ErrorCategory.TIMEOUT: self.retry_on_timeout,
            ErrorCategory.RATE_LIMIT: self.retry_on_rate_limit,
            ErrorCategory.SERVER_ERROR: self.retry_on_server_error,
            ErrorCategory.NETWORK: self.retry_on_network_error,
        }
        return category_map.get(category, False)

    def should_retry(
        self,
        classification: ErrorClassification,
        attempt: int,
        max_attempts: int
    ) -> bool:
        """Decide whether attempt number ``attempt`` (1-based) gets a successor."""
        if attempt >= max_attempts:
            return False
        return classification.is_retryable and self.should_retry_category(classification.category)

    def delay_for(
        self,
        attempt: int,
        classification: Optional[ErrorClassification] = None
    ) -> float:
        """Delay in seconds before the attempt following ``attempt``."""
        if (
            self.respect_retry_after
            and classification is not None
            and classification.suggested_delay
        ):
            return min(classification.suggested_delay, self.max_delay)

        base = self.initial_delay * (self.backoff_factor ** max(attempt - 1, 0))
        # Jitter to prevent thundering herd
        jitter = random.uniform(0, self.jitter_factor * base) if base > 0 else 0.0
        return min(base + jitter, self.max_delay)
