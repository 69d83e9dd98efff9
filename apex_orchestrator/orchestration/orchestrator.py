"""
Orchestrator boundary.

Owns the registry, planner, dispatcher and health monitor for the life of
the process and runs one session per submitted request.
"""

import asyncio
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Union

from ..adapters.base import CancellationSignal
from ..config.settings import OrchestratorSettings
from ..models.capability import Capability, CapabilityKind
from ..models.request import OrchestrationRequest
from ..models.results import OrchestrationResult
from ..reliability.circuit_breaker import CircuitBreakerConfig
from ..reliability.retry import RetryPolicy
from .dispatcher import Dispatcher
from .errors import SessionConflict, UnresolvableRequest
from .health import HealthMonitor
from .planning.planner import Planner
from .planning.rule_based import RuleBasedPlanner
from .registry import CapabilityRegistry
from .session import OrchestrationSession

logger = logging.getLogger(__name__)

MAX_RETAINED_SESSIONS = 1000

# One representative operation per kind, run by smoke_test()
SMOKE_INPUTS: Dict[CapabilityKind, Dict[str, Any]] = {
    CapabilityKind.INFERENCE: {"prompt": "Hello! This is a test of the inference integration."},
    CapabilityKind.EXECUTION: {"code": "print(\"Hello from the sandbox!\")", "language": "python"},
    CapabilityKind.STORAGE: {"action": "save", "title": "APEX integration test", "content": "Integration test page"},
    CapabilityKind.PEER_NETWORK: {"action": "ping"},
    CapabilityKind.TOOL_REGISTRY: {"action": "list_tools"},
}


class Orchestrator:
    """Routes natural-language requests across registered capabilities."""

    def __init__(
        self,
        registry: Optional[CapabilityRegistry] = None,
        planner: Optional[Planner] = None,
        dispatcher: Optional[Dispatcher] = None,
        health_monitor: Optional[HealthMonitor] = None,
        settings: Optional[OrchestratorSettings] = None,
        max_sessions: int = MAX_RETAINED_SESSIONS
    ):
        self.settings = settings
        self.registry = registry if registry is not None else CapabilityRegistry()
        self.planner = planner if planner is not None else RuleBasedPlanner()
        self.dispatcher = dispatcher if dispatcher is not None else Dispatcher(self.registry, RetryPolicy())
        self.health_monitor = health_monitor if health_monitor is not None else HealthMonitor(self.registry)
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, OrchestrationSession]" = OrderedDict()
        self._started = False

    @classmethod
    def from_settings(
        cls,
        settings: OrchestratorSettings,
        capabilities: Iterable[Capability] = (),
        planner: Optional[Planner] = None
    ) -> "Orchestrator":
        """Build an orchestrator with breaker and probe knobs from settings."""
        registry = CapabilityRegistry(CircuitBreakerConfig(
            failure_threshold=settings.failure_threshold,
            base_cooldown=settings.base_cooldown_seconds,
            max_cooldown=settings.max_cooldown_seconds
        ))
        for capability in capabilities:
            registry.register(capability)

        return cls(
            registry=registry,
            planner=planner,
            health_monitor=HealthMonitor(registry, interval_seconds=settings.probe_interval_seconds),
            settings=settings
        )

    def register(self, capability: Capability) -> None:
        self.registry.register(capability)

    def _apply_defaults(self, request: OrchestrationRequest) -> OrchestrationRequest:
        """Fill options the caller left unset from process settings."""
        if self.settings is None:
            return request
        explicit = request.options.model_fields_set
        update: Dict[str, Any] = {}
        if "timeout_ms" not in explicit:
            update["timeout_ms"] = self.settings.step_timeout_ms
        if "retries" not in explicit:
            update["retries"] = self.settings.retries
        if not update:
            return request
        return request.model_copy(update={"options": request.options.model_copy(update=update)})

    def create_session(
        self,
        request: Union[OrchestrationRequest, Dict[str, Any]],
        session_id: Optional[str] = None
    ) -> OrchestrationSession:
        """Create (but do not run) a session for a request.

        Raises:
            SessionConflict: If ``session_id`` belongs to a session still running
        """
        if not isinstance(request, OrchestrationRequest):
            request = OrchestrationRequest.model_validate(request)

        existing = self._sessions.get(session_id) if session_id else None
        if existing is not None and not existing.is_terminal:
            raise SessionConflict(session_id)

        session = OrchestrationSession(
            self._apply_defaults(request),
            planner=self.planner,
            registry=self.registry,
            dispatcher=self.dispatcher,
            session_id=session_id
        )
        self._sessions[session.id] = session
        self._sessions.move_to_end(session.id)
        self._prune_sessions()
        return session

    async def submit(
        self,
        request: Union[OrchestrationRequest, Dict[str, Any]],
        session_id: Optional[str] = None
    ) -> OrchestrationResult:
        """
        Run a request to completion.

        Args:
            request: The request (model or plain dict)
            session_id: Optional caller-chosen id, usable with ``cancel``

        Returns:
            OrchestrationResult, also on partial failure

        Raises:
            UnresolvableRequest: If no available capability can serve the request
            InvalidRequest: If the request context is malformed
            SessionConflict: If ``session_id`` belongs to a running session
        """
        session = self.create_session(request, session_id)
        result = await session.run()

        if session.request.options.save_result:
            result.metadata["persisted"] = await self._persist(session, result)

        return result

    def cancel(self, session_id: str) -> bool:
        """Cancel a running session; False if unknown or already finished."""
        session = self._sessions.get(session_id)
        if session is None:
            return False
        return session.cancel()

    def get_session(self, session_id: str) -> Optional[OrchestrationSession]:
        return self._sessions.get(session_id)

    def status(self) -> Dict[str, Any]:
        """Capability health and session counts for status reporting."""
        active = [s for s in self._sessions.values() if not s.is_terminal]
        return {
            "capabilities": self.registry.snapshot(),
            "probes": dict(self.health_monitor.last_results),
            "available": [c.name for c in self.registry.list_available()],
            "sessions": {
                "active": len(active),
                "retained": len(self._sessions),
            },
            "health_monitor_running": self.health_monitor.running,
        }

    async def smoke_test(self) -> Dict[str, Dict[str, Any]]:
        """
        Run one representative operation on every available capability.

        Each operation is a single-step session, so outcomes count towards
        the circuit breaker like any other call.

        Returns:
            Per capability: ``success`` plus ``output``, or ``error`` and ``status``
        """
        capabilities = self.registry.list_available()

        async def run(capability: Capability) -> Dict[str, Any]:
            request = OrchestrationRequest(
                prompt=f"Integration test of {capability.name}",
                context={"inputs": {capability.name: SMOKE_INPUTS[capability.kind]}},
                requested_tools=[capability.name]
            )
            try:
                result = await self.submit(request)
            except UnresolvableRequest as e:
                return {"success": False, "error": str(e), "status": "unavailable"}
            if result.success:
                return {"success": True, "output": result.output}
            step = result.step_results[0]
            return {"success": False, "error": step.error, "status": step.status.value}

        outcomes = await asyncio.gather(*(run(c) for c in capabilities))
        return {c.name: outcome for c, outcome in zip(capabilities, outcomes)}

    async def start(self, monitor: bool = True) -> None:
        """Run adapter startup hooks and start the health monitor."""
        if self._started:
            return
        for capability in self.registry.list_all():
            try:
                await capability.adapter.startup()
            except Exception as e:
                logger.error(f"Startup hook failed for '{capability.name}': {e}")
                await self.registry.record_outcome(capability.name, False, str(e))
        if monitor:
            self.health_monitor.start()
        self._started = True
        logger.info(f"Orchestrator started with {len(self.registry)} capabilities")

    async def shutdown(self) -> None:
        """Cancel running sessions, stop probing and close adapters."""
        for session in list(self._sessions.values()):
            session.cancel("shutdown")
        await self.health_monitor.stop()
        for capability in self.registry.list_all():
            try:
                await capability.adapter.close()
            except Exception as e:
                logger.warning(f"Error closing '{capability.name}': {e}")
        self._started = False
        logger.info("Orchestrator shut down")

    async def _persist(self, session: OrchestrationSession, result: OrchestrationResult) -> bool:
        """Save the audit record through the first available storage capability."""
        storage = self.registry.list_by_kind(CapabilityKind.STORAGE)
        if not storage:
            logger.warning(f"save_result requested but no storage capability is available (session {session.id})")
            return False

        capability = storage[0]
        record = {
            "prompt": session.request.prompt,
            **result.to_audit_record(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await asyncio.wait_for(
                capability.adapter.invoke(
                    {"action": "save_interaction", "record": record},
                    CancellationSignal()
                ),
                timeout=session.request.options.timeout_ms / 1000
            )
        except Exception as e:
            logger.error(f"Failed to persist result of session {session.id} to '{capability.name}': {e}")
            await self.registry.record_outcome(capability.name, False, str(e))
            return False

        await self.registry.record_outcome(capability.name, True)
        return True

    def _prune_sessions(self) -> None:
        """Evict the oldest finished sessions beyond ``max_sessions``; running ones stay."""
        excess = len(self._sessions) - self.max_sessions
        if excess <= 0:
            return
        finished = [sid for sid, session in self._sessions.items() if session.is_terminal]
        for session_id in finished[:excess]:
            del self._sessions[session_id]
