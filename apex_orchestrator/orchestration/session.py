"""Per-request orchestration session and its state machine."""

import asyncio
import logging
import time
import uuid
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..adapters.base import CancellationSignal
from ..models.plan import Plan
from ..models.request import OrchestrationRequest
from ..models.results import OrchestrationResult, StepResult
from .aggregator import aggregate
from .dispatcher import Dispatcher
from .errors import SessionStateError
from .planning.planner import Planner
from .registry import CapabilityRegistry

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle states of a session."""
    CREATED = "created"
    PLANNING = "planning"
    DISPATCHING = "dispatching"
    AGGREGATING = "aggregating"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = {SessionState.COMPLETED, SessionState.FAILED}

ALLOWED_TRANSITIONS: Dict[SessionState, set] = {
    SessionState.CREATED: {SessionState.PLANNING, SessionState.FAILED},
    SessionState.PLANNING: {SessionState.DISPATCHING, SessionState.FAILED},
    SessionState.DISPATCHING: {SessionState.AGGREGATING, SessionState.FAILED},
    SessionState.AGGREGATING: {SessionState.COMPLETED, SessionState.FAILED},
    SessionState.COMPLETED: set(),
    SessionState.FAILED: set(),
}


class OrchestrationSession:
    """
    Lifecycle of one request: plan, dispatch, aggregate.

    ``Failed`` is reached only by planning errors and programmer errors;
    capability failures end up in the result. A cancelled session still
    aggregates whatever results exist and ends ``Completed``.
    """

    def __init__(
        self,
        request: OrchestrationRequest,
        planner: Planner,
        registry: CapabilityRegistry,
        dispatcher: Dispatcher,
        session_id: Optional[str] = None,
        clock: Callable[[], float] = time.time
    ):
        self.id = session_id or str(uuid.uuid4())
        self.request = request
        self.planner = planner
        self.registry = registry
        self.dispatcher = dispatcher
        self._clock = clock

        self.state = SessionState.CREATED
        self.signal = CancellationSignal()
        self.plan: Optional[Plan] = None
        self.step_results: List[StepResult] = []
        self.result: Optional[OrchestrationResult] = None
        self.error: Optional[BaseException] = None
        self.created_at = clock()
        self.started_at: Optional[float] = None
        self.completed_at: Optional[float] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def cancelled(self) -> bool:
        return self.signal.cancelled

    def _transition(self, target: SessionState) -> None:
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise SessionStateError(self.state.value, target.value)
        logger.debug(f"Session {self.id}: {self.state.value} -> {target.value}")
        self.state = target

    def _fail(self, error: BaseException) -> None:
        self.error = error
        self.completed_at = self._clock()
        self._transition(SessionState.FAILED)
        logger.error(f"Session {self.id} failed: {error}")

    async def run(self) -> OrchestrationResult:
        """
        Run the session to completion.

        Returns:
            The aggregated OrchestrationResult

        Raises:
            UnresolvableRequest: If planning finds no viable capability
            InvalidRequest: If the request context is malformed
            PlanError: If the planner produced a malformed plan
            SessionStateError: If the session was already run
        """
        self._transition(SessionState.PLANNING)
        self.started_at = self._clock()

        try:
            self.plan = await self.planner.plan(self.request, self.registry)
            logger.info(
                f"Session {self.id} planned {self.plan.step_count} steps in "
                f"{len(self.plan.stages)} stages: {self.plan.capabilities}"
            )

            self._transition(SessionState.DISPATCHING)
            self.step_results = await self.dispatcher.execute(
                self.plan, self.request.options, self.signal
            )

            self._transition(SessionState.AGGREGATING)
            self.completed_at = self._clock()
            result = aggregate(
                self.step_results,
                started_at=self.started_at,
                completed_at=self.completed_at,
                session_id=self.id
            )
        except (Exception, asyncio.CancelledError) as e:
            self._fail(e)
            raise

        result.metadata["cancelled"] = self.cancelled
        if self.plan.reasoning:
            result.metadata["plan_reasoning"] = self.plan.reasoning
        self.result = result
        self._transition(SessionState.COMPLETED)

        logger.info(
            f"Session {self.id} completed",
            extra={
                "session_id": self.id,
                "success": result.success,
                "tools_used": result.tools_used,
                "processing_time_ms": result.processing_time_ms
            }
        )
        return result

    def cancel(self, reason: str = "cancelled") -> bool:
        """
        Request cancellation.

        Returns:
            False if the session already reached a terminal state
        """
        if self.is_terminal:
            return False
        logger.info(f"Cancelling session {self.id} in state {self.state.value}")
        self.signal.cancel(reason)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "state": self.state.value,
            "cancelled": self.cancelled,
            "error": str(self.error) if self.error else None,
            "created_at": self.created_at,
            "completed_at": self.completed_at,
            "result": self.result.to_response() if self.result else None,
        }
