"""
Structured logging utility for capability adapters.

Every backend adapter logs through a ``CapabilityLogger`` so that log
lines carry the same leading fields (capability, kind). Session ids are
logged by the session itself, not by adapters.
"""

import logging
import time
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Optional


class CapabilityLogger:
    """Structured logger for one capability adapter."""

    def __init__(self, capability_name: str, kind: Optional[str] = None):
        """
        Initialize logger for a specific capability.

        Args:
            capability_name: Name of the capability (e.g., "inference")
            kind: Capability kind tag
        """
        self.capability = capability_name
        self.kind = kind
        self.logger = logging.getLogger(f"apex_orchestrator.adapters.{capability_name}")

    def _format_message(self, message: str, **kwargs) -> str:
        """Format message with structured fields."""
        fields = [f"capability={self.capability}"]
        if self.kind:
            fields.append(f"kind={self.kind}")

        for key, value in kwargs.items():
            if value is not None:
                fields.append(f"{key}={value}")

        return f"[{' '.join(fields)}] {message}"

    def debug(self, message: str, **kwargs):
        self.logger.debug(self._format_message(message, **kwargs))

    def info(self, message: str, **kwargs):
        self.logger.info(self._format_message(message, **kwargs))

    def warning(self, message: str, **kwargs):
        self.logger.warning(self._format_message(message, **kwargs))

    def error(self, message: str, error: Optional[Exception] = None, **kwargs):
        """Log error message, adding the error type and text when given."""
        if error:
            kwargs['error_type'] = type(error).__name__
            kwargs['error_msg'] = str(error)

        self.logger.error(self._format_message(message, **kwargs))

    @contextmanager
    def track_invocation(self, operation: str, invocation_id: Optional[str] = None):
        """
        Context manager to time an adapter call and log its outcome.

        Args:
            operation: The operation being performed (e.g., "generate", "execute")
            invocation_id: Optional id (generated if not provided)

        Yields:
            Dict with invocation metadata including invocation_id
        """
        if invocation_id is None:
            invocation_id = str(uuid.uuid4())[:8]

        start_time = time.time()
        self.debug(f"Starting {operation}", invocation_id=invocation_id)

        metadata: Dict[str, Any] = {
            'invocation_id': invocation_id,
            'operation': operation,
            'start_time': start_time,
        }

        try:
            yield metadata

            duration = time.time() - start_time
            self.info(
                f"Completed {operation}",
                invocation_id=invocation_id,
                duration_ms=int(duration * 1000)
            )

        except Exception as e:
            duration = time.time() - start_time
            self.error(
                f"Failed {operation}",
                invocation_id=invocation_id,
                duration_ms=int(duration * 1000),
                error=e
            )
            raise
