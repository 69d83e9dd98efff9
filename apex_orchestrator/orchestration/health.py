"""Periodic health probing of registered capabilities."""

import asyncio
import logging
from typing import Dict, Optional

from ..config.constants import (
    DEFAULT_PROBE_INTERVAL_SECONDS,
    DEFAULT_PROBE_TIMEOUT_SECONDS,
)
from ..models.capability import Capability
from .registry import CapabilityRegistry

logger = logging.getLogger(__name__)


class HealthMonitor:
    """
    Probes capabilities on a fixed interval.

    Probe outcomes go through ``registry.record_outcome``, the same path
    the dispatcher uses, so a failing probe counts towards the circuit
    breaker exactly like a failing call. Capabilities in cooldown are not
    probed.
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        interval_seconds: float = DEFAULT_PROBE_INTERVAL_SECONDS,
        timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS
    ):
        self.registry = registry
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self.last_results: Dict[str, bool] = {}
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def probe(self, capability: Capability) -> bool:
        """Run one health check; exceptions and timeouts count as failure."""
        error: Optional[str] = None
        try:
            healthy = bool(await asyncio.wait_for(
                capability.adapter.health_check(),
                timeout=self.timeout_seconds
            ))
            if not healthy:
                error = "health check failed"
        except asyncio.TimeoutError:
            healthy = False
            error = f"health check timed out after {self.timeout_seconds}s"
        except Exception as e:
            healthy = False
            error = f"health check error: {e}"

        self.last_results[capability.name] = healthy
        await self.registry.record_outcome(capability.name, healthy, error)

        if not healthy:
            logger.warning(f"Probe failed for '{capability.name}': {error}")
        return healthy

    async def probe_all(self) -> Dict[str, bool]:
        """Probe every capability outside cooldown concurrently."""
        capabilities = self.registry.list_available()
        if not capabilities:
            return {}
        outcomes = await asyncio.gather(*(self.probe(c) for c in capabilities))
        return {c.name: healthy for c, healthy in zip(capabilities, outcomes)}

    async def _loop(self) -> None:
        while True:
            try:
                await self.probe_all()
            except Exception as e:
                logger.error(f"Health probe round failed: {e}")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        """Start the background probe loop (needs a running event loop)."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info(f"Health monitor started (interval {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background probe loop."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Health monitor stopped")
