"""Execution plan: sequential stages of concurrent steps."""

from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel, Field


class Step(BaseModel):
    """One capability invocation within a stage."""
    id: str = Field(..., description="Step identifier, unique within a plan")
    capability: str = Field(..., description="Name of the capability to invoke")
    input: Dict[str, Any] = Field(default_factory=dict)
    depends_on: Optional[str] = Field(
        default=None,
        description="Id of a step in an earlier stage whose output feeds this one"
    )


class Stage(BaseModel):
    """Steps that may execute concurrently."""
    steps: List[Step] = Field(default_factory=list)


class Plan(BaseModel):
    """Ordered stages; stage N+1 starts only after stage N resolved."""
    stages: List[Stage] = Field(default_factory=list)
    reasoning: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def iter_steps(self) -> Iterator[Step]:
        for stage in self.stages:
            yield from stage.steps

    @property
    def step_count(self) -> int:
        return sum(len(stage.steps) for stage in self.stages)

    @property
    def capabilities(self) -> List[str]:
        """Capability names in plan order, without duplicates."""
        return list(dict.fromkeys(step.capability for step in self.iter_steps()))
