"""
Circuit breaker policy for capability health.

The breaker state itself lives in each capability's ``HealthState`` and is
mutated only by the registry; this module holds the policy: when the
circuit opens and for how long.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..config.constants import (
    DEFAULT_BASE_COOLDOWN_SECONDS,
    DEFAULT_COOLDOWN_BACKOFF_FACTOR,
    DEFAULT_FAILURE_THRESHOLD,
    DEFAULT_MAX_COOLDOWN_SECONDS,
)
from ..models.capability import HealthState


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"        # Normal operation
    OPEN = "open"            # Cooling down, reject calls
    HALF_OPEN = "half_open"  # Cooldown elapsed, next outcome decides


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration."""
    failure_threshold: int = DEFAULT_FAILURE_THRESHOLD   # Consecutive failures before opening
    base_cooldown: float = DEFAULT_BASE_COOLDOWN_SECONDS  # Cooldown at the threshold
    backoff_factor: float = DEFAULT_COOLDOWN_BACKOFF_FACTOR
    max_cooldown: float = DEFAULT_MAX_COOLDOWN_SECONDS

    def __post_init__(self):
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.base_cooldown <= 0 or self.max_cooldown <= 0:
            raise ValueError("cooldowns must be positive")

    def cooldown_for(self, consecutive_failures: int) -> float:
        """Cooldown in seconds after ``consecutive_failures`` failures.

        Doubles (by ``backoff_factor``) with every failure past the
        threshold and is capped at ``max_cooldown``.
        """
        excess = max(consecutive_failures - self.failure_threshold, 0)
        # Cap the exponent so huge failure counts don't overflow
        cooldown = self.base_cooldown * (self.backoff_factor ** min(excess, 64))
        return min(cooldown, self.max_cooldown)

    def should_open(self, consecutive_failures: int) -> bool:
        return consecutive_failures >= self.failure_threshold


def circuit_state(health: HealthState, now: float) -> CircuitState:
    """Derive the breaker state of a health record at ``now``."""
    if health.in_cooldown(now):
        return CircuitState.OPEN
    if not health.available:
        return CircuitState.HALF_OPEN
    return CircuitState.CLOSED


def remaining_cooldown(health: HealthState, now: float) -> Optional[float]:
    """Seconds until the circuit half-opens, or None when not open."""
    if not health.in_cooldown(now):
        return None
    return health.cooldown_until - now
