"""Capability identity and health state."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class CapabilityKind(str, Enum):
    """Kinds of backend service a capability can offer."""
    INFERENCE = "inference"
    EXECUTION = "execution"
    STORAGE = "storage"
    PEER_NETWORK = "peer_network"
    TOOL_REGISTRY = "tool_registry"


# Planning order: generate, then run, then persist, then fan out.
KIND_PRIORITY: Dict[CapabilityKind, int] = {
    CapabilityKind.INFERENCE: 0,
    CapabilityKind.EXECUTION: 1,
    CapabilityKind.STORAGE: 2,
    CapabilityKind.PEER_NETWORK: 3,
    CapabilityKind.TOOL_REGISTRY: 4,
}


@dataclass
class HealthState:
    """Mutable health record of one capability.

    Only the registry writes to this record.
    """
    available: bool = True
    consecutive_failures: int = 0
    cooldown_until: Optional[float] = None
    last_checked: Optional[float] = None
    last_error: Optional[str] = None

    def in_cooldown(self, now: float) -> bool:
        """Check if the circuit is open at ``now``."""
        return self.cooldown_until is not None and self.cooldown_until > now

    def to_dict(self) -> Dict[str, Any]:
        return {
            "available": self.available,
            "consecutive_failures": self.consecutive_failures,
            "cooldown_until": self.cooldown_until,
            "last_checked": self.last_checked,
            "last_error": self.last_error,
        }


@dataclass
class Capability:
    """A registered backend offering one kind of service.

    Attributes:
        name: Unique capability name (e.g. "inference")
        kind: Kind tag used by the planner
        adapter: Object satisfying the ``CapabilityAdapter`` contract
        health: Health state, owned by the registry
        description: Human-readable description
    """
    name: str
    kind: CapabilityKind
    adapter: Any
    health: HealthState = field(default_factory=HealthState)
    description: str = ""

    @property
    def priority(self) -> int:
        return KIND_PRIORITY[self.kind]
