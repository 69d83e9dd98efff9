"""
Base Capability Adapter Interface

This module defines the abstract base class for all backend adapters.
Every backend (model serving, sandbox, document store, peer network,
tool registry) is wrapped in one adapter so the router can invoke it
without knowing its wire format.

The adapter is responsible for:
- Translating the step input into a backend request
- Making the call and honoring cancellation
- Returning JSON-serializable output
- Mapping backend failures onto the capability error taxonomy

Adapters should NOT contain:
- Retry logic (the dispatcher retries)
- Health bookkeeping (the registry owns health state)
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..models.capability import CapabilityKind


class CancellationSignal:
    """Cooperative cancellation flag passed to ``invoke``.

    A signal may have a parent; cancelling the parent cancels every child
    created from it. Adapters that do incremental work should check
    ``cancelled`` between units of work or race ``wait()``.
    """

    def __init__(self, parent: Optional["CancellationSignal"] = None):
        self._event = asyncio.Event()
        self._reason: Optional[str] = None
        self._children = []
        if parent is not None:
            parent._children.append(self)
            if parent.cancelled:
                self.cancel(parent.reason)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        """Set the signal (idempotent) and propagate to children."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        for child in self._children:
            child.cancel(reason)

    def child(self) -> "CancellationSignal":
        return CancellationSignal(parent=self)

    def detach(self, child: "CancellationSignal") -> None:
        """Forget a finished child so long sessions don't accumulate them."""
        try:
            self._children.remove(child)
        except ValueError:
            pass

    async def wait(self) -> Optional[str]:
        """Wait until cancelled and return the reason."""
        await self._event.wait()
        return self._reason

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise asyncio.CancelledError(self._reason)


class CapabilityAdapter(ABC):
    """
    Abstract base class for capability adapters.

    Adapters are polymorphic over ``kind``; the registry and dispatcher
    never look at the concrete backend type.
    """

    kind: CapabilityKind

    @abstractmethod
    async def invoke(self, input: Dict[str, Any], signal: CancellationSignal) -> Any:
        """
        Invoke the backend.

        Args:
            input: Step input payload. When the step depends on an earlier
                step, the upstream output is available as ``input["upstream"]``.
            signal: Cancellation signal; must be honored for incremental work

        Returns:
            JSON-serializable output

        Raises:
            TransientCapabilityError: Network/timeout class failures
            ValidationError: Malformed input
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True when the backend answers."""
        pass

    async def startup(self) -> None:
        """Optional hook run when the orchestrator starts."""
        return None

    async def close(self) -> None:
        """Optional hook run on shutdown."""
        return None
