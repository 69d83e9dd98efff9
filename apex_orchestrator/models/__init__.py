"""Data models for the APEX orchestrator."""

from .capability import Capability, CapabilityKind, HealthState, KIND_PRIORITY
from .request import ALL_TOOLS, OrchestrationRequest, RequestOptions
from .plan import Plan, Stage, Step
from .results import OrchestrationResult, StepResult, StepStatus

__all__ = [
    # Capabilities
    "Capability",
    "CapabilityKind",
    "HealthState",
    "KIND_PRIORITY",

    # Requests
    "ALL_TOOLS",
    "OrchestrationRequest",
    "RequestOptions",

    # Plans
    "Plan",
    "Stage",
    "Step",

    # Results
    "OrchestrationResult",
    "StepResult",
    "StepStatus",
]
