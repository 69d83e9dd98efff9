"""Planner that asks an inference capability which capability kinds apply."""

import asyncio
import json
import logging
import re
from typing import Any, Optional, Set

from ...adapters.base import CancellationSignal
from ...models.capability import CapabilityKind
from ...models.request import OrchestrationRequest
from ..registry import CapabilityRegistry
from .planner import INTENT_KINDS, Intent, IntentClassifier
from .rule_based import RuleBasedPlanner

logger = logging.getLogger(__name__)

CLASSIFICATION_PROMPT = """Decide which services are needed to complete the task below.
Available services: {kinds}.
Answer with a JSON array of service names only, for example ["inference", "execution"].

Task: {prompt}"""

JSON_ARRAY = re.compile(r"\[[^\[\]]*\]", re.DOTALL)


class ModelPlanner(RuleBasedPlanner):
    """
    Rule-based planner whose intent detection is delegated to a model.

    Only ``"all"`` requests consult the model; explicit tool lists are
    planned exactly as the rule-based planner does. Any failure of the
    model call (unavailable, timeout, unparseable answer) falls back to
    keyword classification. Inference is always planned.
    """

    def __init__(
        self,
        inference_capability: str = "inference",
        timeout_seconds: float = 10.0,
        classifier: Optional[IntentClassifier] = None
    ):
        super().__init__(classifier)
        self.inference_capability = inference_capability
        self.timeout_seconds = timeout_seconds

    async def detect_kinds(
        self,
        request: OrchestrationRequest,
        registry: CapabilityRegistry
    ) -> Set[CapabilityKind]:
        if request.context.get("intents") or not registry.is_available(self.inference_capability):
            return await super().detect_kinds(request, registry)

        capability = registry.get(self.inference_capability)
        prompt = CLASSIFICATION_PROMPT.format(
            kinds=", ".join(kind.value for kind in CapabilityKind),
            prompt=request.prompt
        )
        signal = CancellationSignal()

        try:
            output = await asyncio.wait_for(
                capability.adapter.invoke({"prompt": prompt, "task": "general", "format": "json"}, signal),
                timeout=self.timeout_seconds
            )
            kinds = self.parse_kinds(output)
        except Exception as e:
            signal.cancel("planning failed")
            logger.warning(f"Model planning failed, falling back to keywords: {e}")
            await registry.record_outcome(self.inference_capability, False, str(e))
            return await super().detect_kinds(request, registry)

        await registry.record_outcome(self.inference_capability, True)
        if not kinds:
            logger.info("Model returned no usable kinds, falling back to keywords")
            return await super().detect_kinds(request, registry)

        kinds.add(CapabilityKind.INFERENCE)
        logger.debug(f"Model selected kinds: {sorted(k.value for k in kinds)}")
        return kinds

    @staticmethod
    def parse_kinds(output: Any) -> Set[CapabilityKind]:
        """Extract capability kinds from a model answer.

        Accepts kind values ("execution") and intent names ("execute").
        Unknown names are ignored.
        """
        if isinstance(output, dict):
            output = output.get("response", output.get("text", ""))
        if isinstance(output, list):
            names = output
        else:
            match = JSON_ARRAY.search(str(output or ""))
            if not match:
                return set()
            try:
                names = json.loads(match.group(0))
            except json.JSONDecodeError:
                return set()

        kinds: Set[CapabilityKind] = set()
        for name in names:
            if not isinstance(name, str):
                continue
            value = name.strip().lower()
            try:
                kinds.add(CapabilityKind(value))
                continue
            except ValueError:
                pass
            try:
                kinds.add(INTENT_KINDS[Intent(value)])
            except ValueError:
                continue
        return kinds
