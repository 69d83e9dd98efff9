"""Unit tests for the capability registry and circuit breaker."""

import asyncio

import pytest

from apex_orchestrator.models.capability import CapabilityKind
from apex_orchestrator.orchestration.errors import CapabilityNotFound
from apex_orchestrator.orchestration.registry import CapabilityRegistry
from apex_orchestrator.reliability.circuit_breaker import (
    CircuitBreakerConfig,
    CircuitState,
    circuit_state,
    remaining_cooldown,
)
from tests.helpers.fake_adapters import make_capability


class TestRegistration:
    """Test registering and looking up capabilities."""

    def test_register_and_get(self, registry):
        capability = make_capability("inference", CapabilityKind.INFERENCE)
        registry.register(capability)

        assert registry.get("inference") is capability
        assert registry.has("inference")
        assert "inference" in registry
        assert len(registry) == 1

    def test_duplicate_name_rejected(self, registry):
        registry.register(make_capability("inference", CapabilityKind.INFERENCE))
        with pytest.raises(ValueError):
            registry.register(make_capability("inference", CapabilityKind.INFERENCE))

    def test_get_unknown_raises_not_found(self, registry):
        registry.register(make_capability("inference", CapabilityKind.INFERENCE))
        with pytest.raises(CapabilityNotFound) as exc_info:
            registry.get("storage")

        assert exc_info.value.name == "storage"
        assert exc_info.value.registered == ["inference"]
        # Still usable as a KeyError
        assert isinstance(exc_info.value, KeyError)

    def test_list_all_in_priority_order(self, registry):
        registry.register(make_capability("tools", CapabilityKind.TOOL_REGISTRY))
        registry.register(make_capability("storage", CapabilityKind.STORAGE))
        registry.register(make_capability("inference", CapabilityKind.INFERENCE))
        registry.register(make_capability("execution", CapabilityKind.EXECUTION))

        names = [c.name for c in registry.list_all()]
        assert names == ["inference", "execution", "storage", "tools"]

    def test_unregister(self, registry):
        registry.register(make_capability("inference", CapabilityKind.INFERENCE))
        assert registry.unregister("inference") is True
        assert registry.unregister("inference") is False
        assert not registry.has("inference")


class TestCircuitBreaker:
    """Test failure counting, cooldown and recovery."""

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, registry, clock):
        registry.register(make_capability("inference", CapabilityKind.INFERENCE))

        for _ in range(2):
            await registry.record_outcome("inference", False, "boom")
        assert registry.is_available("inference")
        assert registry.get("inference").health.consecutive_failures == 2

        await registry.record_outcome("inference", False, "boom")

        health = registry.get("inference").health
        assert health.consecutive_failures == 3
        assert health.available is False
        assert health.cooldown_until == pytest.approx(clock.now + 10.0)
        assert registry.list_available() == []
        assert not registry.is_available("inference")

    @pytest.mark.asyncio
    async def test_cooldown_elapses(self, registry, clock):
        registry.register(make_capability("inference", CapabilityKind.INFERENCE))
        for _ in range(3):
            await registry.record_outcome("inference", False)

        clock.advance(9.9)
        assert registry.list_available() == []

        clock.advance(0.2)
        assert [c.name for c in registry.list_available()] == ["inference"]
        assert circuit_state(registry.get("inference").health, clock.now) == CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_single_success_resets(self, registry, clock):
        registry.register(make_capability("inference", CapabilityKind.INFERENCE))
        for _ in range(3):
            await registry.record_outcome("inference", False, "boom")

        await registry.record_outcome("inference", True)

        health = registry.get("inference").health
        assert health.consecutive_failures == 0
        assert health.cooldown_until is None
        assert health.available is True
        assert health.last_error is None
        assert registry.is_available("inference")

    @pytest.mark.asyncio
    async def test_cooldown_grows_and_caps(self, clock):
        registry = CapabilityRegistry(
            CircuitBreakerConfig(failure_threshold=3, base_cooldown=10.0, max_cooldown=300.0),
            clock=clock
        )
        registry.register(make_capability("inference", CapabilityKind.INFERENCE))

        cooldowns = []
        for _ in range(10):
            await registry.record_outcome("inference", False)
            until = registry.get("inference").health.cooldown_until
            if until is not None:
                cooldowns.append(until - clock.now)

        assert cooldowns[:4] == [10.0, 20.0, 40.0, 80.0]
        assert max(cooldowns) == 300.0

    @pytest.mark.asyncio
    async def test_concurrent_failures_are_not_lost(self, registry):
        registry.register(make_capability("inference", CapabilityKind.INFERENCE))

        await asyncio.gather(*(
            registry.record_outcome("inference", False) for _ in range(25)
        ))

        assert registry.get("inference").health.consecutive_failures == 25

    @pytest.mark.asyncio
    async def test_record_outcome_unknown_capability(self, registry):
        with pytest.raises(CapabilityNotFound):
            await registry.record_outcome("missing", True)

    @pytest.mark.asyncio
    async def test_reset(self, registry):
        registry.register(make_capability("inference", CapabilityKind.INFERENCE))
        for _ in range(3):
            await registry.record_outcome("inference", False)

        await registry.reset("inference")

        assert registry.is_available("inference")
        assert registry.get("inference").health.consecutive_failures == 0

    @pytest.mark.asyncio
    async def test_snapshot(self, registry, clock):
        registry.register(make_capability("inference", CapabilityKind.INFERENCE))
        registry.register(make_capability("storage", CapabilityKind.STORAGE))
        for _ in range(3):
            await registry.record_outcome("storage", False, "down")

        snapshot = registry.snapshot()

        assert snapshot["inference"]["state"] == "closed"
        assert snapshot["storage"]["state"] == "open"
        assert snapshot["storage"]["kind"] == "storage"
        assert snapshot["storage"]["last_error"] == "down"
        assert remaining_cooldown(registry.get("storage").health, clock.now) == pytest.approx(10.0)


class TestCircuitBreakerConfig:
    """Test breaker policy validation."""

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            CircuitBreakerConfig(failure_threshold=0)

    def test_cooldown_below_threshold_is_base(self):
        config = CircuitBreakerConfig()
        assert config.cooldown_for(1) == config.base_cooldown
        assert not config.should_open(2)
        assert config.should_open(3)
