"""Fold step results into an orchestration result."""

from collections import Counter
from typing import Any, Dict, List, Optional, Sequence

from ..models.results import OrchestrationResult, StepResult, StepStatus


def _keyed_outputs(results: Sequence[StepResult]) -> Dict[str, Any]:
    """Map capability name to output; ``name:step_id`` when a name repeats."""
    counts = Counter(r.capability for r in results)
    outputs: Dict[str, Any] = {}
    for result in results:
        key = result.capability
        if counts[key] > 1:
            key = f"{result.capability}:{result.step.id}"
        outputs[key] = result.output
    return outputs


def _tools_used(results: Sequence[StepResult]) -> List[str]:
    positions = {id(r): i for i, r in enumerate(results)}
    succeeded = sorted(
        (r for r in results if r.succeeded),
        key=lambda r: (
            r.finished_at if r.finished_at is not None else float("inf"),
            r.stage_index,
            positions[id(r)],
        )
    )
    return list(dict.fromkeys(r.capability for r in succeeded))


def _span_ms(results: Sequence[StepResult]) -> int:
    starts = [r.started_at for r in results if r.started_at is not None]
    ends = [r.finished_at for r in results if r.finished_at is not None]
    if not starts or not ends:
        return sum(r.duration_ms for r in results)
    return max(int((max(ends) - min(starts)) * 1000), 0)


def aggregate(
    step_results: Sequence[StepResult],
    started_at: Optional[float] = None,
    completed_at: Optional[float] = None,
    session_id: Optional[str] = None
) -> OrchestrationResult:
    """
    Aggregate step results.

    Pure: the same inputs always give an equal result.

    Args:
        step_results: Terminal results of every step, in plan order
        started_at: Session start (epoch seconds)
        completed_at: Aggregation time (epoch seconds)
        session_id: Owning session id

    Returns:
        OrchestrationResult whose ``output`` is the final stage's succeeded
        output(s), or a partial mapping of earlier successes when the final
        stage produced nothing
    """
    results = list(step_results)

    counts = Counter(r.status for r in results)
    metadata: Dict[str, Any] = {
        "steps": len(results),
        **{status.value: counts.get(status, 0) for status in StepStatus},
    }

    if started_at is not None and completed_at is not None:
        processing_time_ms = max(int((completed_at - started_at) * 1000), 0)
    else:
        processing_time_ms = _span_ms(results)

    if not results:
        return OrchestrationResult(
            success=False,
            output=None,
            tools_used=[],
            processing_time_ms=processing_time_ms,
            step_results=[],
            session_id=session_id,
            metadata=metadata
        )

    final_stage = max(r.stage_index for r in results)
    final_successes = [r for r in results if r.stage_index == final_stage and r.succeeded]
    success = bool(final_successes)

    if len(final_successes) == 1:
        output = final_successes[0].output
    elif final_successes:
        output = _keyed_outputs(final_successes)
    else:
        earlier = [r for r in results if r.succeeded]
        output = _keyed_outputs(earlier) if earlier else None
        metadata["partial"] = bool(earlier)

    metadata["final_stage"] = final_stage

    return OrchestrationResult(
        success=success,
        output=output,
        tools_used=_tools_used(results),
        processing_time_ms=processing_time_ms,
        step_results=results,
        session_id=session_id,
        metadata=metadata
    )
