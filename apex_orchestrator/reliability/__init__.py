"""Reliability layer: error classification, retry policy, circuit breaking.

This layer handles:
- Classification of capability errors into transient and permanent
- Retry delays with exponential backoff and jitter
- Circuit breaker thresholds and cooldowns
"""

from .circuit_breaker import (
    CircuitBreakerConfig, CircuitState, circuit_state, remaining_cooldown
)
from .error_classifier import (
    ErrorCategory, ErrorClassification, ErrorClassifier, TRANSIENT_CATEGORIES
)
from .retry import RetryPolicy

__all__ = [
    "CircuitBreakerConfig",
    "CircuitState",
    "circuit_state",
    "remaining_cooldown",
    "ErrorCategory",
    "ErrorClassification",
    "ErrorClassifier",
    "TRANSIENT_CATEGORIES",
    "RetryPolicy",
]
