"""Unit tests for the orchestration session state machine."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from apex_orchestrator.models.capability import CapabilityKind
from apex_orchestrator.models.plan import Plan, Stage, Step
from apex_orchestrator.models.request import OrchestrationRequest, RequestOptions
from apex_orchestrator.models.results import StepStatus
from apex_orchestrator.orchestration.errors import (
    PlanError,
    SessionStateError,
    UnresolvableRequest,
)
from apex_orchestrator.orchestration.planning import RuleBasedPlanner
from apex_orchestrator.orchestration.session import OrchestrationSession, SessionState
from tests.helpers.fake_adapters import Sleep, make_capability


def new_session(registry, dispatcher, prompt="add two numbers and run it", planner=None, **request_kwargs):
    return OrchestrationSession(
        OrchestrationRequest(prompt=prompt, **request_kwargs),
        planner=planner or RuleBasedPlanner(),
        registry=registry,
        dispatcher=dispatcher,
    )


class TestSessionLifecycle:
    """Test state transitions."""

    @pytest.mark.asyncio
    async def test_completes(self, registry, dispatcher, inference, execution):
        registry.register(inference)
        registry.register(execution)
        session = new_session(registry, dispatcher)

        assert session.state == SessionState.CREATED
        result = await session.run()

        assert session.state == SessionState.COMPLETED
        assert session.result is result
        assert result.success is True
        assert result.session_id == session.id
        assert result.metadata["cancelled"] is False
        assert session.plan.step_count == 2

    @pytest.mark.asyncio
    async def test_partial_failure_still_completes(self, registry, dispatcher, inference):
        registry.register(inference)
        registry.register(make_capability("execution", CapabilityKind.EXECUTION, script=[RuntimeError("crash")]))
        session = new_session(registry, dispatcher)

        result = await session.run()

        assert session.state == SessionState.COMPLETED
        assert result.success is False
        assert result.tools_used == ["inference"]

    @pytest.mark.asyncio
    async def test_unresolvable_request_fails_session(self, registry, dispatcher, inference):
        registry.register(inference)
        session = new_session(registry, dispatcher, prompt="save it", requested_tools=["storage"])
        states = []
        original = session._transition

        def record(target):
            states.append(target)
            original(target)

        session._transition = record

        with pytest.raises(UnresolvableRequest):
            await session.run()

        assert session.state == SessionState.FAILED
        assert isinstance(session.error, UnresolvableRequest)
        assert SessionState.DISPATCHING not in states
        assert inference.adapter.call_count == 0

    @pytest.mark.asyncio
    async def test_malformed_plan_fails_session(self, registry, dispatcher, inference):
        registry.register(inference)
        planner = AsyncMock()
        planner.plan.return_value = Plan(stages=[Stage(steps=[
            Step(id="x", capability="inference", depends_on="nowhere")
        ])])
        session = new_session(registry, dispatcher, planner=planner)

        with pytest.raises(PlanError):
            await session.run()

        assert session.state == SessionState.FAILED

    @pytest.mark.asyncio
    async def test_cannot_run_twice(self, registry, dispatcher, inference):
        registry.register(inference)
        session = new_session(registry, dispatcher, prompt="hello")
        await session.run()

        with pytest.raises(SessionStateError):
            await session.run()


class TestSessionCancellation:
    """Test cancel() in each phase."""

    @pytest.mark.asyncio
    async def test_cancel_during_dispatch_completes(self, registry, dispatcher, execution):
        inference = make_capability("inference", CapabilityKind.INFERENCE, script=[Sleep(10)])
        registry.register(inference)
        registry.register(execution)
        session = new_session(registry, dispatcher, options=RequestOptions(timeout_ms=10_000))

        task = asyncio.create_task(session.run())
        await asyncio.wait_for(inference.adapter.started.wait(), timeout=1)
        assert session.state == SessionState.DISPATCHING

        assert session.cancel() is True
        result = await asyncio.wait_for(task, timeout=2)

        assert session.state == SessionState.COMPLETED
        assert result.success is False
        assert result.metadata["cancelled"] is True
        assert [r.status for r in result.step_results] == [StepStatus.SKIPPED, StepStatus.SKIPPED]
        assert all(r.error == "cancelled" for r in result.step_results)

    @pytest.mark.asyncio
    async def test_cancel_before_run_skips_everything(self, registry, dispatcher, inference, execution):
        registry.register(inference)
        registry.register(execution)
        session = new_session(registry, dispatcher)

        assert session.cancel() is True
        result = await session.run()

        assert session.state == SessionState.COMPLETED
        assert all(r.status == StepStatus.SKIPPED for r in result.step_results)
        assert inference.adapter.call_count == 0

    @pytest.mark.asyncio
    async def test_cancel_terminal_session_returns_false(self, registry, dispatcher, inference):
        registry.register(inference)
        session = new_session(registry, dispatcher, prompt="hello")
        await session.run()

        assert session.cancel() is False

    def test_to_dict(self, registry, dispatcher):
        session = new_session(registry, dispatcher, prompt="hello")
        data = session.to_dict()
        assert data["state"] == "created"
        assert data["result"] is None
