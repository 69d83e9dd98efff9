"""Rule-based planner: keyword intents mapped onto capability kinds."""

import logging
from typing import List, Optional, Set

from ...models.capability import Capability, CapabilityKind
from ...models.plan import Plan
from ...models.request import OrchestrationRequest
from ..errors import UnresolvableRequest
from ..registry import CapabilityRegistry
from .planner import IntentClassifier, Planner, build_plan, kinds_for, validate_context

logger = logging.getLogger(__name__)


class RuleBasedPlanner(Planner):
    """Default planner.

    * Explicit ``requested_tools``: every named capability that is
      registered and available is planned.
    * ``"all"``: every available capability whose kind matches a
      detected intent is planned.
    """

    def __init__(self, classifier: Optional[IntentClassifier] = None):
        self.classifier = classifier or IntentClassifier()

    async def detect_kinds(
        self,
        request: OrchestrationRequest,
        registry: CapabilityRegistry
    ) -> Set[CapabilityKind]:
        """Capability kinds relevant to the request."""
        return kinds_for(self.classifier.classify(request))

    async def plan(
        self,
        request: OrchestrationRequest,
        registry: CapabilityRegistry
    ) -> Plan:
        validate_context(request)
        available = registry.list_available()

        if not request.wants_all:
            requested = list(request.requested_tools)
            selected = [c for c in available if c.name in requested]
            if not selected:
                raise UnresolvableRequest(
                    f"None of the requested capabilities are available: {requested}",
                    requested_tools=requested,
                    available=[c.name for c in available]
                )
            missing = [name for name in requested if name not in {c.name for c in selected}]
            if missing:
                logger.warning(f"Requested capabilities not available, planning without them: {missing}")
            return build_plan(
                request,
                selected,
                reasoning="Explicitly requested capabilities",
                metadata={"selection": "explicit", "unavailable": missing}
            )

        kinds = await self.detect_kinds(request, registry)
        selected = self._select(available, kinds)
        if not selected:
            raise UnresolvableRequest(
                f"No available capability matches the request (kinds: {sorted(k.value for k in kinds)})",
                requested_tools=["all"],
                available=[c.name for c in available]
            )

        return build_plan(
            request,
            selected,
            reasoning=f"Detected kinds: {', '.join(sorted(k.value for k in kinds))}",
            metadata={"selection": "intent", "kinds": sorted(k.value for k in kinds)}
        )

    @staticmethod
    def _select(available: List[Capability], kinds: Set[CapabilityKind]) -> List[Capability]:
        return [c for c in available if c.kind in kinds]
