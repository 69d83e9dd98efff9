"""Capability registry and circuit breaker.

The registry is the single owner of every capability's health state.
Dispatcher outcomes and health probes both report through
``record_outcome`` so the failure-counting policy is the same whatever
the source. Writes to one capability are serialized with a
per-capability lock.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from ..models.capability import Capability, CapabilityKind
from ..reliability.circuit_breaker import CircuitBreakerConfig, circuit_state
from .errors import CapabilityNotFound

logger = logging.getLogger(__name__)


class CapabilityRegistry:
    """Registry of capabilities and their health.

    Created at startup from configuration; capabilities live until
    shutdown.
    """

    def __init__(
        self,
        breaker_config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.time
    ):
        self.breaker_config = breaker_config or CircuitBreakerConfig()
        self._clock = clock
        self._capabilities: Dict[str, Capability] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def now(self) -> float:
        return self._clock()

    def register(self, capability: Capability) -> None:
        """Register a capability.

        Args:
            capability: Capability to register

        Raises:
            ValueError: If a capability with the same name is registered
        """
        if capability.name in self._capabilities:
            raise ValueError(f"Capability '{capability.name}' already registered")

        self._capabilities[capability.name] = capability
        self._locks[capability.name] = asyncio.Lock()
        logger.info(
            f"Registered capability '{capability.name}' ({capability.kind.value})"
        )

    def unregister(self, name: str) -> bool:
        """Unregister a capability (mainly for testing)."""
        if name in self._capabilities:
            del self._capabilities[name]
            del self._locks[name]
            logger.info(f"Unregistered capability '{name}'")
            return True
        return False

    def get(self, name: str) -> Capability:
        """Get a registered capability.

        Raises:
            CapabilityNotFound: If no capability has that name
        """
        try:
            return self._capabilities[name]
        except KeyError:
            raise CapabilityNotFound(name, list(self._capabilities)) from None

    def has(self, name: str) -> bool:
        return name in self._capabilities

    def list_all(self) -> List[Capability]:
        """All capabilities in planning order (kind priority, then registration)."""
        return sorted(self._capabilities.values(), key=lambda c: c.priority)

    def list_available(self) -> List[Capability]:
        """Capabilities whose circuit is not open, in planning order."""
        now = self.now()
        return [c for c in self.list_all() if not c.health.in_cooldown(now)]

    def list_by_kind(self, kind: CapabilityKind, available_only: bool = True) -> List[Capability]:
        source = self.list_available() if available_only else self.list_all()
        return [c for c in source if c.kind == kind]

    def is_available(self, name: str) -> bool:
        """False when unregistered or the circuit is open."""
        capability = self._capabilities.get(name)
        if capability is None:
            return False
        return not capability.health.in_cooldown(self.now())

    async def record_outcome(
        self,
        name: str,
        success: bool,
        error: Optional[str] = None
    ) -> None:
        """Record the outcome of a call or probe.

        On failure the consecutive failure count grows; at the threshold
        the circuit opens for an exponentially growing, capped cooldown.
        A success closes the circuit and resets the count.
        """
        capability = self.get(name)
        async with self._locks[name]:
            health = capability.health
            now = self.now()
            health.last_checked = now

            if success:
                if health.consecutive_failures or not health.available:
                    logger.info(
                        f"Capability '{name}' recovered",
                        extra={
                            "capability": name,
                            "previous_failures": health.consecutive_failures
                        }
                    )
                health.consecutive_failures = 0
                health.cooldown_until = None
                health.available = True
                health.last_error = None
                return

            health.consecutive_failures += 1
            health.last_error = error

            if self.breaker_config.should_open(health.consecutive_failures):
                cooldown = self.breaker_config.cooldown_for(health.consecutive_failures)
                health.available = False
                health.cooldown_until = now + cooldown
                logger.error(
                    f"Circuit for capability '{name}' opened for {cooldown:.1f}s",
                    extra={
                        "capability": name,
                        "consecutive_failures": health.consecutive_failures,
                        "cooldown_until": health.cooldown_until
                    }
                )
            else:
                logger.warning(
                    f"Capability '{name}' recorded failure",
                    extra={
                        "capability": name,
                        "consecutive_failures": health.consecutive_failures
                    }
                )

    async def reset(self, name: str) -> None:
        """Close the circuit and clear failure counts."""
        capability = self.get(name)
        async with self._locks[name]:
            capability.health.consecutive_failures = 0
            capability.health.cooldown_until = None
            capability.health.available = True
            capability.health.last_error = None
            logger.info(f"Capability '{name}' reset")

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Health of every capability for status reporting."""
        now = self.now()
        return {
            capability.name: {
                "kind": capability.kind.value,
                "state": circuit_state(capability.health, now).value,
                **capability.health.to_dict()
            }
            for capability in self.list_all()
        }

    def clear(self) -> None:
        """Remove all capabilities (mainly for testing)."""
        self._capabilities.clear()
        self._locks.clear()

    def __len__(self) -> int:
        return len(self._capabilities)

    def __contains__(self, name: str) -> bool:
        return name in self._capabilities
