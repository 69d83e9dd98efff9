"""Orchestration: registry, planning, dispatch, aggregation and sessions."""

from .errors import (
    CapabilityError,
    CapabilityNotFound,
    CapabilityUnavailable,
    InvalidRequest,
    OrchestratorError,
    PlanError,
    SessionConflict,
    SessionStateError,
    TransientCapabilityError,
    UnresolvableRequest,
    ValidationError,
)
from .registry import CapabilityRegistry
from .planning import IntentClassifier, ModelPlanner, Planner, RuleBasedPlanner
from .dispatcher import Dispatcher, validate_plan
from .aggregator import aggregate
from .health import HealthMonitor
from .session import OrchestrationSession, SessionState
from .orchestrator import Orchestrator

__all__ = [
    'CapabilityError',
    'CapabilityNotFound',
    'CapabilityUnavailable',
    'InvalidRequest',
    'OrchestratorError',
    'PlanError',
    'SessionConflict',
    'SessionStateError',
    'TransientCapabilityError',
    'UnresolvableRequest',
    'ValidationError',
    'CapabilityRegistry',
    'IntentClassifier',
    'ModelPlanner',
    'Planner',
    'RuleBasedPlanner',
    'Dispatcher',
    'validate_plan',
    'aggregate',
    'HealthMonitor',
    'OrchestrationSession',
    'SessionState',
    'Orchestrator',
]
