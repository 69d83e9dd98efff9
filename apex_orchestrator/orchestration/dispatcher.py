"""
Plan dispatcher.

Runs the stages of a plan in sequence and the steps of a stage
concurrently. Each step gets exactly one terminal ``StepResult``; capability
failures never escape this module.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..adapters.base import CancellationSignal
from ..models.capability import Capability
from ..models.plan import Plan, Stage, Step
from ..models.request import RequestOptions
from ..models.results import StepResult, StepStatus
from ..reliability.error_classifier import (
    ErrorCategory,
    ErrorClassification,
    ErrorClassifier,
)
from ..reliability.retry import RetryPolicy
from .errors import CapabilityUnavailable, PlanError
from .registry import CapabilityRegistry

logger = logging.getLogger(__name__)

UPSTREAM_FAILURE = "upstream failure"
CANCELLED = "cancelled"


def validate_plan(plan: Plan) -> None:
    """Check plan structure.

    Raises:
        PlanError: Empty stages, duplicate step ids, or a dependency that
            does not point at a step of an earlier stage
    """
    if not plan.stages:
        raise PlanError("Plan has no stages")

    earlier: set = set()
    for index, stage in enumerate(plan.stages):
        if not stage.steps:
            raise PlanError(f"Stage {index} has no steps")
        current = set()
        for step in stage.steps:
            if step.id in earlier or step.id in current:
                raise PlanError(f"Duplicate step id '{step.id}'")
            if step.depends_on is not None and step.depends_on not in earlier:
                raise PlanError(
                    f"Step '{step.id}' depends on '{step.depends_on}', "
                    f"which is not a step of an earlier stage"
                )
            current.add(step.id)
        earlier |= current


def _consume_result(task: "asyncio.Future") -> None:
    # Abandoned attempts: retrieve the outcome so asyncio doesn't warn
    if not task.cancelled():
        task.exception()


@dataclass
class _AttemptOutcome:
    kind: str  # "ok", "error", "timeout" or "cancelled"
    output: Any = None
    error: Optional[BaseException] = None


class Dispatcher:
    """Executes plans against the capabilities in a registry."""

    def __init__(
        self,
        registry: CapabilityRegistry,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], float] = time.time
    ):
        self.registry = registry
        self.retry_policy = retry_policy or RetryPolicy()
        self._clock = clock

    async def execute(
        self,
        plan: Plan,
        options: Optional[RequestOptions] = None,
        cancel_signal: Optional[CancellationSignal] = None
    ) -> List[StepResult]:
        """
        Execute a plan.

        Args:
            plan: Plan to execute
            options: Timeout, retry and parallelism options
            cancel_signal: Session cancellation signal

        Returns:
            One StepResult per step, in plan order

        Raises:
            PlanError: If the plan is malformed or names an unregistered capability
        """
        options = options or RequestOptions()
        signal = cancel_signal or CancellationSignal()

        validate_plan(plan)
        for step in plan.iter_steps():
            if not self.registry.has(step.capability):
                raise PlanError(f"Step '{step.id}' names unregistered capability '{step.capability}'")

        finished: Dict[str, StepResult] = {}
        ordered: List[StepResult] = []

        for index, stage in enumerate(plan.stages):
            if signal.cancelled:
                stage_results = [
                    self._result(step, index, StepStatus.SKIPPED, error=CANCELLED)
                    for step in stage.steps
                ]
            else:
                stage_results = await self._run_stage(index, stage, options, signal, finished)

            for result in stage_results:
                finished[result.step.id] = result
            ordered.extend(stage_results)

            logger.debug(
                f"Stage {index} resolved: "
                + ", ".join(f"{r.step.id}={r.status.value}" for r in stage_results)
            )

        return ordered

    async def _run_stage(
        self,
        index: int,
        stage: Stage,
        options: RequestOptions,
        signal: CancellationSignal,
        finished: Dict[str, StepResult]
    ) -> List[StepResult]:
        limit = min(options.max_parallelism or len(stage.steps), len(stage.steps))
        semaphore = asyncio.Semaphore(limit)

        async def run(step: Step) -> StepResult:
            async with semaphore:
                return await self._run_step(index, step, options, signal, finished)

        # gather keeps plan order regardless of completion order
        return list(await asyncio.gather(*(run(step) for step in stage.steps)))

    async def _run_step(
        self,
        index: int,
        step: Step,
        options: RequestOptions,
        signal: CancellationSignal,
        finished: Dict[str, StepResult]
    ) -> StepResult:
        started_at = self._clock()

        if signal.cancelled:
            return self._result(step, index, StepStatus.SKIPPED, error=CANCELLED, started_at=started_at)

        payload = dict(step.input)
        if step.depends_on is not None:
            upstream = finished.get(step.depends_on)
            if upstream is None or not upstream.succeeded:
                logger.info(f"Skipping step '{step.id}': upstream '{step.depends_on}' did not succeed")
                return self._result(step, index, StepStatus.SKIPPED, error=UPSTREAM_FAILURE, started_at=started_at)
            payload["upstream"] = upstream.output

        capability = self.registry.get(step.capability)
        if not self.registry.is_available(capability.name):
            error = CapabilityUnavailable(capability.name, capability.health.cooldown_until)
            logger.info(f"Skipping step '{step.id}': {error}")
            return self._result(step, index, StepStatus.SKIPPED, error=str(error), started_at=started_at)

        timeout = options.timeout_ms / 1000
        max_attempts = options.retries + 1
        status = StepStatus.FAILED
        error_text: Optional[str] = None
        attempt = 0

        while attempt < max_attempts:
            attempt += 1
            outcome = await self._attempt(capability, payload, timeout, options, signal)

            if outcome.kind == "ok":
                await self.registry.record_outcome(capability.name, True)
                return self._result(
                    step, index, StepStatus.SUCCEEDED,
                    output=outcome.output, started_at=started_at, attempts=attempt
                )

            if outcome.kind == "cancelled" or signal.cancelled:
                return self._result(
                    step, index, StepStatus.SKIPPED,
                    error=CANCELLED, started_at=started_at, attempts=attempt
                )

            if outcome.kind == "timeout":
                status = StepStatus.TIMED_OUT
                error_text = f"timed out after {options.timeout_ms}ms"
                classification = ErrorClassification(ErrorCategory.TIMEOUT, True)
            else:
                status = StepStatus.FAILED
                error_text = str(outcome.error) or type(outcome.error).__name__
                classification = ErrorClassifier.classify_error(outcome.error)

            await self.registry.record_outcome(capability.name, False, error_text)
            logger.warning(
                f"Step '{step.id}' attempt {attempt}/{max_attempts} {status.value}: {error_text}",
                extra={
                    "step_id": step.id,
                    "capability": capability.name,
                    "attempt": attempt,
                    "error_category": classification.category.value
                }
            )

            if not self.retry_policy.should_retry(classification, attempt, max_attempts):
                break
            if not self.registry.is_available(capability.name):
                logger.info(f"Circuit for '{capability.name}' opened, not retrying step '{step.id}'")
                break

            delay = self.retry_policy.delay_for(attempt, classification)
            if await self._sleep_unless_cancelled(delay, signal):
                return self._result(
                    step, index, StepStatus.SKIPPED,
                    error=CANCELLED, started_at=started_at, attempts=attempt
                )

        return self._result(
            step, index, status,
            error=error_text, started_at=started_at, attempts=attempt
        )

    async def _attempt(
        self,
        capability: Capability,
        payload: Dict[str, Any],
        timeout: float,
        options: RequestOptions,
        signal: CancellationSignal
    ) -> _AttemptOutcome:
        """One invocation under a timeout, raced against session cancellation."""
        attempt_signal = signal.child()
        started = time.monotonic()
        task = asyncio.ensure_future(capability.adapter.invoke(dict(payload), attempt_signal))
        cancel_waiter = asyncio.ensure_future(signal.wait())

        try:
            done, _ = await asyncio.wait(
                {task, cancel_waiter},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            attempt_signal.cancel(CANCELLED)
            task.cancel()
            raise
        finally:
            cancel_waiter.cancel()
            signal.detach(attempt_signal)

        if task in done:
            if task.cancelled():
                if signal.cancelled:
                    return _AttemptOutcome("cancelled")
                return _AttemptOutcome("error", error=asyncio.CancelledError("invocation cancelled"))
            error = task.exception()
            if error is not None:
                return _AttemptOutcome("error", error=error)
            return _AttemptOutcome("ok", output=task.result())

        if signal.cancelled:
            # The attempt signal was set through the parent; give the
            # adapter a bounded grace period to wind down.
            if options.grace_ms is not None:
                grace = options.grace_ms / 1000
            else:
                grace = max(timeout - (time.monotonic() - started), 0.0)
            if grace > 0:
                await asyncio.wait({task}, timeout=grace)
            if not task.done():
                task.cancel()
            task.add_done_callback(_consume_result)
            return _AttemptOutcome("cancelled")

        attempt_signal.cancel("timeout")
        task.cancel()
        task.add_done_callback(_consume_result)
        return _AttemptOutcome("timeout")

    @staticmethod
    async def _sleep_unless_cancelled(delay: float, signal: CancellationSignal) -> bool:
        """Back off for ``delay`` seconds; True if cancelled meanwhile."""
        if delay <= 0:
            return signal.cancelled
        try:
            await asyncio.wait_for(signal.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False

    def _result(
        self,
        step: Step,
        index: int,
        status: StepStatus,
        output: Any = None,
        error: Optional[str] = None,
        started_at: Optional[float] = None,
        attempts: int = 0
    ) -> StepResult:
        finished_at = self._clock()
        started_at = finished_at if started_at is None else started_at
        return StepResult(
            step=step,
            status=status,
            output=output,
            error=error,
            duration_ms=max(int((finished_at - started_at) * 1000), 0),
            attempts=attempts,
            stage_index=index,
            started_at=started_at,
            finished_at=finished_at
        )
