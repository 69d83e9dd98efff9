"""Inbound orchestration request and its options."""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from ..config.constants import DEFAULT_RETRIES, DEFAULT_STEP_TIMEOUT_MS

ALL_TOOLS = "all"


class RequestOptions(BaseModel):
    """Execution options for a single orchestration."""

    save_result: bool = Field(
        default=False,
        description="Persist an audit record through a storage capability"
    )

    max_parallelism: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum concurrent steps within a stage (None = unbounded)"
    )

    timeout_ms: int = Field(
        default=DEFAULT_STEP_TIMEOUT_MS,
        ge=1,
        description="Per-step timeout in milliseconds"
    )

    retries: int = Field(
        default=DEFAULT_RETRIES,
        ge=0,
        le=10,
        description="Retry attempts per step for transient failures"
    )

    grace_ms: Optional[int] = Field(
        default=None,
        ge=0,
        description="Cancellation grace period (default: remaining step timeout)"
    )

    class Config:
        frozen = True


class OrchestrationRequest(BaseModel):
    """A natural-language task request. Immutable once accepted."""

    prompt: str = Field(..., min_length=1, description="Task description")

    context: Dict[str, Any] = Field(
        default_factory=dict,
        description="Caller supplied context passed to capabilities"
    )

    requested_tools: Union[Literal["all"], List[str]] = Field(
        default=ALL_TOOLS,
        description='Capability names to use, or "all"'
    )

    options: RequestOptions = Field(default_factory=RequestOptions)

    class Config:
        frozen = True

    @field_validator('requested_tools', mode='before')
    def normalize_requested_tools(cls, v):
        """Accept ``None``, ``"all"``, ``[]`` and ``["all"]`` as the wildcard."""
        if v is None:
            return ALL_TOOLS
        if isinstance(v, str):
            return ALL_TOOLS if v == ALL_TOOLS else [v]
        if isinstance(v, (list, tuple, set)):
            names = list(dict.fromkeys(v))
            if not names or ALL_TOOLS in names:
                return ALL_TOOLS
            return names
        return v

    @property
    def wants_all(self) -> bool:
        return self.requested_tools == ALL_TOOLS
