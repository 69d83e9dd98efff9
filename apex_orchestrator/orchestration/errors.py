"""Orchestration-specific error definitions."""

from typing import Any, Dict, List, Optional

from ..reliability.error_classifier import ErrorCategory


class OrchestratorError(Exception):
    """Base exception for orchestration errors."""
    pass


class UnresolvableRequest(OrchestratorError):
    """Raised by a planner when no viable capability can serve the request."""

    def __init__(
        self,
        message: str,
        requested_tools: Optional[List[str]] = None,
        available: Optional[List[str]] = None
    ):
        self.requested_tools = requested_tools or []
        self.available = available or []
        super().__init__(message)


class InvalidRequest(OrchestratorError):
    """Raised by a planner when the request context is malformed."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class SessionConflict(OrchestratorError, ValueError):
    """Raised when a session id is reused while its session is still running."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' is already running")


class PlanError(OrchestratorError):
    """Raised for a malformed plan (programmer error)."""
    pass


class SessionStateError(OrchestratorError):
    """Raised on an illegal session state transition."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Illegal session transition: {current} -> {target}")


class CapabilityNotFound(OrchestratorError, KeyError):
    """Raised when a capability name is not registered."""

    def __init__(self, name: str, registered: Optional[List[str]] = None):
        self.name = name
        self.registered = registered or []
        OrchestratorError.__init__(
            self,
            f"Capability '{name}' not found. Registered capabilities: {self.registered}"
        )

    def __str__(self) -> str:
        return self.args[0]


class CapabilityError(OrchestratorError):
    """Exception raised when a capability invocation fails.

    Subclasses fix ``category`` so the error classifier and the
    dispatcher can decide on retries without inspecting messages.
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        capability: Optional[str] = None,
        status_code: Optional[int] = None,
        original_error: Optional[BaseException] = None,
        retry_after: Optional[float] = None,
        metadata: Optional[Dict[str, Any]] = None
    ):
        self.capability = capability
        self.status_code = status_code
        self.original_error = original_error
        self.retry_after = retry_after
        self.metadata = metadata or {}
        super().__init__(message)


class TransientCapabilityError(CapabilityError):
    """Network or timeout class failure; retried by the dispatcher."""

    category = ErrorCategory.NETWORK
    is_retryable = True

    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.NETWORK, **kwargs):
        super().__init__(message, **kwargs)
        self.category = category


class ValidationError(CapabilityError):
    """Malformed input to a capability; never retried."""

    category = ErrorCategory.VALIDATION
    is_retryable = False


class CapabilityUnavailable(CapabilityError):
    """The capability's circuit is open."""

    category = ErrorCategory.UNAVAILABLE
    is_retryable = False

    def __init__(self, capability: str, cooldown_until: Optional[float] = None):
        self.cooldown_until = cooldown_until
        super().__init__(
            f"Capability '{capability}' is unavailable (circuit open)",
            capability=capability
        )
