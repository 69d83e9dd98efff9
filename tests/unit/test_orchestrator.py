"""Unit tests for the orchestrator boundary."""

import asyncio

import pytest

from apex_orchestrator.config.settings import OrchestratorSettings
from apex_orchestrator.models.capability import CapabilityKind
from apex_orchestrator.models.request import OrchestrationRequest, RequestOptions
from apex_orchestrator.orchestration.dispatcher import Dispatcher
from apex_orchestrator.orchestration.errors import InvalidRequest, SessionConflict, UnresolvableRequest
from apex_orchestrator.orchestration.orchestrator import Orchestrator
from apex_orchestrator.orchestration.registry import CapabilityRegistry
from apex_orchestrator.orchestration.session import SessionState
from apex_orchestrator.reliability.circuit_breaker import CircuitBreakerConfig
from tests.helpers.fake_adapters import Sleep, make_capability


class TestSubmit:
    """Test submitting requests."""

    @pytest.mark.asyncio
    async def test_submit_dict_request(self, orchestrator, inference):
        orchestrator.register(inference)

        result = await orchestrator.submit({"prompt": "hello", "requested_tools": "all"})

        assert result.success is True
        assert result.tools_used == ["inference"]
        assert orchestrator.get_session(result.session_id).state == SessionState.COMPLETED

    @pytest.mark.asyncio
    async def test_unresolvable_propagates(self, orchestrator, inference):
        orchestrator.register(inference)

        with pytest.raises(UnresolvableRequest):
            await orchestrator.submit(OrchestrationRequest(prompt="x", requested_tools=["storage"]), session_id="s1")

        assert orchestrator.get_session("s1").state == SessionState.FAILED

    @pytest.mark.asyncio
    async def test_malformed_context_fails_session(self, orchestrator, inference):
        orchestrator.register(inference)

        with pytest.raises(InvalidRequest) as exc_info:
            await orchestrator.submit(
                OrchestrationRequest(prompt="x", context={"intents": ["bogus"]}), session_id="s2"
            )

        assert exc_info.value.field == "intents"
        assert orchestrator.get_session("s2").state == SessionState.FAILED
        assert inference.adapter.calls == []

    @pytest.mark.asyncio
    async def test_finished_session_id_can_be_reused(self, orchestrator, inference):
        orchestrator.register(inference)
        await orchestrator.submit(OrchestrationRequest(prompt="hello"), session_id="again")

        result = await orchestrator.submit(OrchestrationRequest(prompt="hello"), session_id="again")

        assert result.session_id == "again"
        assert len(inference.adapter.calls) == 2

    @pytest.mark.asyncio
    async def test_running_session_id_cannot_be_reused(self, orchestrator):
        inference = make_capability("inference", CapabilityKind.INFERENCE, script=[Sleep(10)])
        orchestrator.register(inference)

        task = asyncio.create_task(orchestrator.submit(
            OrchestrationRequest(prompt="hello", options=RequestOptions(timeout_ms=10_000)),
            session_id="busy"
        ))
        await asyncio.wait_for(inference.adapter.started.wait(), timeout=1)

        with pytest.raises(SessionConflict):
            orchestrator.create_session(OrchestrationRequest(prompt="again"), session_id="busy")

        assert orchestrator.cancel("busy") is True
        result = await asyncio.wait_for(task, timeout=2)
        assert result.metadata["cancelled"] is True

    def test_cancel_unknown_session(self, orchestrator):
        assert orchestrator.cancel("nope") is False


class TestPersistence:
    """Test audit record persistence."""

    @pytest.mark.asyncio
    async def test_save_result_persists_audit_record(self, orchestrator, inference, storage):
        orchestrator.register(inference)
        orchestrator.register(storage)

        result = await orchestrator.submit(OrchestrationRequest(
            prompt="hello",
            requested_tools=["inference"],
            options=RequestOptions(save_result=True)
        ))

        assert result.metadata["persisted"] is True
        saved = storage.adapter.calls[-1]
        assert saved["action"] == "save_interaction"
        record = saved["record"]
        assert record["prompt"] == "hello"
        assert record["toolsUsed"] == ["inference"]
        assert {"success", "output", "processingTimeMs", "timestamp"} <= set(record)

    @pytest.mark.asyncio
    async def test_persistence_failure_is_not_raised(self, orchestrator, inference):
        orchestrator.register(inference)
        orchestrator.register(make_capability("storage", CapabilityKind.STORAGE, script=[RuntimeError("notion down")]))

        result = await orchestrator.submit(OrchestrationRequest(
            prompt="hello",
            requested_tools=["inference"],
            options=RequestOptions(save_result=True)
        ))

        assert result.success is True
        assert result.metadata["persisted"] is False
        assert orchestrator.registry.get("storage").health.consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_no_storage_available(self, orchestrator, inference):
        orchestrator.register(inference)

        result = await orchestrator.submit(OrchestrationRequest(
            prompt="hello", options=RequestOptions(save_result=True)
        ))

        assert result.metadata["persisted"] is False


class TestLifecycle:
    """Test start, status and shutdown."""

    @pytest.mark.asyncio
    async def test_start_and_shutdown(self, orchestrator, inference):
        orchestrator.register(inference)

        await orchestrator.start()
        assert inference.adapter.startup_called
        assert orchestrator.status()["health_monitor_running"] is True

        await orchestrator.shutdown()
        assert inference.adapter.closed
        assert orchestrator.health_monitor.running is False

    @pytest.mark.asyncio
    async def test_status(self, orchestrator, inference, storage):
        orchestrator.register(inference)
        orchestrator.register(storage)
        for _ in range(3):
            await orchestrator.registry.record_outcome("storage", False, "down")

        status = orchestrator.status()

        assert status["available"] == ["inference"]
        assert status["capabilities"]["storage"]["state"] == "open"
        assert status["sessions"] == {"active": 0, "retained": 0}

    @pytest.mark.asyncio
    async def test_settings_fill_unset_options(self, inference):
        settings = OrchestratorSettings(step_timeout_ms=1234, retries=0)
        orchestrator = Orchestrator.from_settings(settings, [inference])

        session = orchestrator.create_session(OrchestrationRequest(prompt="hello"))
        assert session.request.options.timeout_ms == 1234
        assert session.request.options.retries == 0

        explicit = orchestrator.create_session(
            OrchestrationRequest(prompt="hello", options=RequestOptions(retries=5))
        )
        assert explicit.request.options.retries == 5
        assert explicit.request.options.timeout_ms == 1234

    def test_from_settings_breaker_config(self):
        settings = OrchestratorSettings(failure_threshold=5, max_cooldown_seconds=60.0)
        orchestrator = Orchestrator.from_settings(settings)

        assert orchestrator.registry.breaker_config.failure_threshold == 5
        assert orchestrator.registry.breaker_config.max_cooldown == 60.0


class TestConstruction:
    """Test wiring of injected components."""

    @pytest.mark.asyncio
    async def test_empty_registry_is_kept(self, inference):
        registry = CapabilityRegistry(CircuitBreakerConfig(failure_threshold=7))
        orchestrator = Orchestrator(registry=registry, dispatcher=Dispatcher(registry))

        orchestrator.register(inference)
        result = await orchestrator.submit(OrchestrationRequest(prompt="hello"))

        assert orchestrator.registry is registry
        assert orchestrator.health_monitor.registry is registry
        assert orchestrator.registry.breaker_config.failure_threshold == 7
        assert result.success is True
        assert result.tools_used == ["inference"]

    @pytest.mark.asyncio
    async def test_from_settings_without_capabilities(self, inference):
        settings = OrchestratorSettings(failure_threshold=4, retries=0)
        orchestrator = Orchestrator.from_settings(settings)

        orchestrator.register(inference)
        result = await orchestrator.submit(OrchestrationRequest(prompt="hello"))

        assert orchestrator.dispatcher.registry is orchestrator.registry
        assert orchestrator.health_monitor.registry is orchestrator.registry
        assert orchestrator.registry.breaker_config.failure_threshold == 4
        assert result.success is True


class TestSessionRetention:
    """Test eviction of finished sessions."""

    @pytest.mark.asyncio
    async def test_running_sessions_are_never_evicted(self, registry, dispatcher, inference):
        orchestrator = Orchestrator(registry=registry, dispatcher=dispatcher, max_sessions=2)
        orchestrator.register(inference)

        pending = orchestrator.create_session(OrchestrationRequest(prompt="later"), session_id="pending")
        await orchestrator.submit(OrchestrationRequest(prompt="one"), session_id="a")
        await orchestrator.submit(OrchestrationRequest(prompt="two"), session_id="b")
        await orchestrator.submit(OrchestrationRequest(prompt="three"), session_id="c")

        assert orchestrator.get_session("pending") is pending
        assert orchestrator.get_session("a") is None
        assert orchestrator.get_session("b") is None
        assert orchestrator.get_session("c") is not None
        assert orchestrator.status()["sessions"] == {"active": 1, "retained": 2}

    @pytest.mark.asyncio
    async def test_only_running_sessions_may_exceed_limit(self, registry, dispatcher, inference):
        orchestrator = Orchestrator(registry=registry, dispatcher=dispatcher, max_sessions=1)
        orchestrator.register(inference)

        orchestrator.create_session(OrchestrationRequest(prompt="x"), session_id="p1")
        orchestrator.create_session(OrchestrationRequest(prompt="y"), session_id="p2")

        assert orchestrator.get_session("p1") is not None
        assert orchestrator.get_session("p2") is not None


class TestSmokeTest:
    """Test the per-capability integration run."""

    @pytest.mark.asyncio
    async def test_runs_one_operation_per_capability(self, orchestrator, inference, execution, storage):
        for capability in (inference, execution, storage):
            orchestrator.register(capability)

        results = await orchestrator.smoke_test()

        assert set(results) == {"inference", "execution", "storage"}
        assert all(outcome["success"] for outcome in results.values())
        assert results["execution"]["output"]["code"] == 'print("Hello from the sandbox!")'
        assert storage.adapter.calls[0]["action"] == "save"
        assert storage.adapter.calls[0]["title"] == "APEX integration test"
        assert len(inference.adapter.calls) == 1

    @pytest.mark.asyncio
    async def test_reports_failures(self, orchestrator, inference):
        orchestrator.register(inference)
        orchestrator.register(make_capability(
            "peer_network", CapabilityKind.PEER_NETWORK, script=[ValueError("peers down")] * 10
        ))

        results = await orchestrator.smoke_test()

        assert results["inference"]["success"] is True
        assert results["peer_network"]["success"] is False
        assert results["peer_network"]["status"] == "failed"
        assert "peers down" in results["peer_network"]["error"]

    @pytest.mark.asyncio
    async def test_skips_capabilities_in_cooldown(self, orchestrator, inference, storage):
        orchestrator.register(inference)
        orchestrator.register(storage)
        orchestrator.registry.get("storage").health.available = False
        orchestrator.registry.get("storage").health.cooldown_until = orchestrator.registry.now() + 60

        results = await orchestrator.smoke_test()

        assert list(results) == ["inference"]
        assert storage.adapter.calls == []
