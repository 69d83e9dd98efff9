"""
APEX Orchestrator - capability orchestration router.

Accepts a natural-language task, plans which backend capabilities to use
(inference, code execution, storage, peer agents, tools), dispatches them
in stages with timeouts, retries and circuit breaking, and aggregates the
outputs into one result.
"""

__version__ = "0.1.0"

from .models import (
    Capability,
    CapabilityKind,
    HealthState,
    OrchestrationRequest,
    OrchestrationResult,
    Plan,
    RequestOptions,
    Stage,
    Step,
    StepResult,
    StepStatus,
)
from .orchestration import (
    CapabilityRegistry,
    Dispatcher,
    HealthMonitor,
    Orchestrator,
    OrchestrationSession,
    RuleBasedPlanner,
    SessionState,
    UnresolvableRequest,
    aggregate,
)
from .adapters import CancellationSignal, CapabilityAdapter, build_capabilities
from .config import OrchestratorSettings

__all__ = [
    # Models
    "Capability",
    "CapabilityKind",
    "HealthState",
    "OrchestrationRequest",
    "OrchestrationResult",
    "Plan",
    "RequestOptions",
    "Stage",
    "Step",
    "StepResult",
    "StepStatus",

    # Router
    "CapabilityRegistry",
    "Dispatcher",
    "HealthMonitor",
    "Orchestrator",
    "OrchestrationSession",
    "RuleBasedPlanner",
    "SessionState",
    "UnresolvableRequest",
    "aggregate",

    # Adapters
    "CancellationSignal",
    "CapabilityAdapter",
    "build_capabilities",

    # Config
    "OrchestratorSettings",
]
