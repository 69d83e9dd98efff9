"""Shared pytest fixtures for APEX Orchestrator tests."""

import pytest

from apex_orchestrator.models.capability import CapabilityKind
from apex_orchestrator.orchestration.dispatcher import Dispatcher
from apex_orchestrator.orchestration.health import HealthMonitor
from apex_orchestrator.orchestration.orchestrator import Orchestrator
from apex_orchestrator.orchestration.registry import CapabilityRegistry
from apex_orchestrator.reliability.circuit_breaker import CircuitBreakerConfig
from apex_orchestrator.reliability.retry import RetryPolicy
from tests.helpers.fake_adapters import FakeClock, make_capability


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: end-to-end tests across router components")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    """Registry with the default breaker policy and a manual clock."""
    return CapabilityRegistry(CircuitBreakerConfig(), clock=clock)


@pytest.fixture
def fast_retry():
    """Retry policy without backoff delays."""
    return RetryPolicy(initial_delay=0.0, jitter_factor=0.0)


@pytest.fixture
def dispatcher(registry, fast_retry):
    return Dispatcher(registry, fast_retry)


@pytest.fixture
def inference():
    return make_capability(
        "inference",
        CapabilityKind.INFERENCE,
        default={"response": "```python\nprint(1 + 2)\n```", "model": "fake"}
    )


@pytest.fixture
def execution():
    return make_capability(
        "execution",
        CapabilityKind.EXECUTION,
        default=lambda input: {"output": "3\n", "code": input.get("code")}
    )


@pytest.fixture
def storage():
    return make_capability("storage", CapabilityKind.STORAGE, default={"page_id": "page-1"})


@pytest.fixture
def orchestrator(registry, dispatcher):
    """Orchestrator over the fixture registry with no capabilities yet."""
    return Orchestrator(
        registry=registry,
        dispatcher=dispatcher,
        health_monitor=HealthMonitor(registry, interval_seconds=0.01, timeout_seconds=0.5)
    )
