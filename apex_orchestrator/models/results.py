"""Step and orchestration results."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .plan import Step


class StepStatus(str, Enum):
    """Terminal status of a step."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"


class StepResult(BaseModel):
    """Terminal outcome of one plan step.

    Produced exactly once per step. Intermediate retry attempts stay
    inside the dispatcher; only ``attempts`` records how many were made.
    """

    step: Step
    status: StepStatus
    output: Any = None
    error: Optional[str] = None
    duration_ms: int = 0
    attempts: int = 0
    stage_index: int = 0
    started_at: Optional[float] = Field(
        default=None,
        description="Epoch seconds when the step was picked up"
    )
    finished_at: Optional[float] = Field(
        default=None,
        description="Epoch seconds when the step reached its terminal status"
    )

    @property
    def capability(self) -> str:
        return self.step.capability

    @property
    def succeeded(self) -> bool:
        return self.status == StepStatus.SUCCEEDED


class OrchestrationResult(BaseModel):
    """Aggregated result of one orchestration session.

    ``success``, ``output``, ``toolsUsed`` and ``processingTimeMs`` are
    consumed by external callers (audit logs) and keep their shape.
    """

    success: bool = Field(..., description="At least one final-stage step succeeded")

    output: Any = Field(
        default=None,
        description="Final stage output (mapping keyed by capability when several)"
    )

    tools_used: List[str] = Field(
        default_factory=list,
        serialization_alias="toolsUsed",
        description="Capabilities with a succeeded step, in order of first success"
    )

    processing_time_ms: int = Field(
        default=0,
        serialization_alias="processingTimeMs",
        description="Wall-clock time from session start to aggregation"
    )

    step_results: List[StepResult] = Field(
        default_factory=list,
        serialization_alias="stepResults"
    )

    session_id: Optional[str] = Field(default=None, serialization_alias="sessionId")

    metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        populate_by_name = True

    def to_response(self) -> Dict[str, Any]:
        """JSON-ready dict with the externally stable field names."""
        return self.model_dump(mode="json", by_alias=True)

    def to_audit_record(self) -> Dict[str, Any]:
        """The four fields audit consumers key off."""
        return {
            "success": self.success,
            "output": self.output,
            "toolsUsed": list(self.tools_used),
            "processingTimeMs": self.processing_time_ms,
        }
