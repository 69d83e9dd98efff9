"""Core planner interface, intent classification and plan construction."""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, TYPE_CHECKING

from ...models.capability import Capability, CapabilityKind, KIND_PRIORITY
from ...models.plan import Plan, Stage, Step
from ...models.request import OrchestrationRequest
from ..errors import InvalidRequest

if TYPE_CHECKING:
    from ..registry import CapabilityRegistry


class Intent(str, Enum):
    """What the request asks for, independent of which backend serves it."""
    GENERATE = "generate"
    EXECUTE = "execute"
    STORE = "store"
    DELEGATE = "delegate"
    TOOLS = "tools"


INTENT_KINDS: Dict[Intent, CapabilityKind] = {
    Intent.GENERATE: CapabilityKind.INFERENCE,
    Intent.EXECUTE: CapabilityKind.EXECUTION,
    Intent.STORE: CapabilityKind.STORAGE,
    Intent.DELEGATE: CapabilityKind.PEER_NETWORK,
    Intent.TOOLS: CapabilityKind.TOOL_REGISTRY,
}

# Which earlier kinds a step consumes, most preferred first
UPSTREAM_KINDS: Dict[CapabilityKind, tuple] = {
    CapabilityKind.INFERENCE: (),
    CapabilityKind.EXECUTION: (CapabilityKind.INFERENCE,),
    CapabilityKind.STORAGE: (CapabilityKind.EXECUTION, CapabilityKind.INFERENCE),
    CapabilityKind.PEER_NETWORK: (CapabilityKind.INFERENCE,),
    CapabilityKind.TOOL_REGISTRY: (),
}

REASONING_PATTERN = re.compile(r"\b(?:why|explain|reason|prove|analy[sz]e|compare)\b", re.IGNORECASE)


@dataclass
class IntentRule:
    """Keyword rule: any keyword present (as a whole word) signals the intent."""
    intent: Intent
    keywords: List[str]
    description: Optional[str] = None
    _pattern: Any = field(init=False, repr=False, default=None)

    def __post_init__(self):
        alternatives = "|".join(re.escape(k) for k in self.keywords)
        self._pattern = re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)

    def matches(self, text: str) -> bool:
        return bool(self._pattern.search(text or ""))


DEFAULT_INTENT_RULES: List[IntentRule] = [
    IntentRule(
        Intent.EXECUTE,
        ["run", "execute", "code", "script", "compute", "calculate", "program",
         "python", "javascript", "sandbox", "evaluate"],
        description="Code execution in a sandbox"
    ),
    IntentRule(
        Intent.STORE,
        ["save", "store", "persist", "notion", "document", "note", "notes",
         "record", "remember", "archive"],
        description="Persist results to the document store"
    ),
    IntentRule(
        Intent.DELEGATE,
        ["agent", "agents", "delegate", "peer", "peers", "network", "broadcast",
         "collaborate", "a2a"],
        description="Fan out to the peer-agent network"
    ),
    IntentRule(
        Intent.TOOLS,
        ["tool", "tools", "mcp", "search", "fetch", "lookup"],
        description="Use the generic tool registry"
    ),
]


def validate_context(request: OrchestrationRequest) -> None:
    """
    Check the context keys the planner reads.

    ``intents`` must be a list of intent names, ``inputs`` an object of
    per-capability objects and ``task`` a string.

    Raises:
        InvalidRequest: If one of them is malformed
    """
    context = request.context

    forced = context.get("intents")
    if forced is not None:
        if not isinstance(forced, (list, tuple)) or not all(isinstance(v, str) for v in forced):
            raise InvalidRequest("'intents' must be a list of intent names", field="intents")
        known = {intent.value for intent in Intent}
        unknown = [value for value in forced if value not in known]
        if unknown:
            raise InvalidRequest(
                f"Unknown intents {unknown}; expected any of {sorted(known)}",
                field="intents"
            )

    inputs = context.get("inputs")
    if inputs is not None:
        if not isinstance(inputs, dict):
            raise InvalidRequest("'inputs' must map capability names to objects", field="inputs")
        bad = sorted(name for name, value in inputs.items() if not isinstance(value, dict))
        if bad:
            raise InvalidRequest(f"'inputs' entries must be objects: {bad}", field="inputs")

    task = context.get("task")
    if task is not None and not isinstance(task, str):
        raise InvalidRequest("'task' must be a string", field="task")


class IntentClassifier:
    """Keyword intent classifier.

    ``generate`` is always detected. Callers can force intents through
    ``request.context["intents"]``.
    """

    def __init__(self, rules: Optional[List[IntentRule]] = None):
        self.rules = list(rules) if rules is not None else list(DEFAULT_INTENT_RULES)

    def add_rule(self, rule: IntentRule) -> None:
        self.rules.append(rule)

    def classify(self, request: OrchestrationRequest) -> Set[Intent]:
        validate_context(request)
        forced = request.context.get("intents")
        if forced:
            intents = {Intent(value) for value in forced}
            intents.add(Intent.GENERATE)
            return intents

        intents = {Intent.GENERATE}
        for rule in self.rules:
            if rule.matches(request.prompt):
                intents.add(rule.intent)
        return intents


def kinds_for(intents: Iterable[Intent]) -> Set[CapabilityKind]:
    return {INTENT_KINDS[intent] for intent in intents}


def inference_task(request: OrchestrationRequest, kinds: Set[CapabilityKind]) -> str:
    """Pick the model family for the inference step."""
    if request.context.get("task"):
        return request.context["task"]
    if CapabilityKind.EXECUTION in kinds:
        return "code"
    if REASONING_PATTERN.search(request.prompt):
        return "reasoning"
    return "general"


def default_input(
    capability: Capability,
    request: OrchestrationRequest,
    kinds: Set[CapabilityKind]
) -> Dict[str, Any]:
    """Default step input for a capability, merged with per-capability
    overrides from ``request.context["inputs"][name]``."""
    context = request.context
    kind = capability.kind

    if kind == CapabilityKind.INFERENCE:
        payload = {
            "prompt": request.prompt,
            "context": {k: v for k, v in context.items() if k != "inputs"},
            "task": inference_task(request, kinds),
        }
    elif kind == CapabilityKind.EXECUTION:
        payload = {"language": context.get("language", "python")}
        if context.get("code"):
            payload["code"] = context["code"]
    elif kind == CapabilityKind.STORAGE:
        payload = {"action": "save", "title": request.prompt[:100], "prompt": request.prompt}
    elif kind == CapabilityKind.PEER_NETWORK:
        payload = {"action": "broadcast", "message": request.prompt}
    else:
        if context.get("tool"):
            payload = {
                "action": "call_tool",
                "tool": context["tool"],
                "arguments": context.get("arguments", {}),
            }
        else:
            payload = {"action": "list_tools"}

    overrides = (context.get("inputs") or {}).get(capability.name)
    if overrides:
        payload.update(overrides)
    return payload


def build_plan(
    request: OrchestrationRequest,
    capabilities: List[Capability],
    reasoning: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> Plan:
    """Lay capabilities out as one stage per kind in priority order.

    Capabilities of the same kind share a stage and run concurrently.
    Each step depends on the first step of the nearest earlier stage it
    consumes (see ``UPSTREAM_KINDS``).
    """
    ordered = sorted(capabilities, key=lambda c: c.priority)
    kinds = {c.kind for c in ordered}

    stages: List[Stage] = []
    first_step_of: Dict[CapabilityKind, str] = {}

    for kind in sorted(kinds, key=lambda k: KIND_PRIORITY[k]):
        upstream = next(
            (first_step_of[k] for k in UPSTREAM_KINDS[kind] if k in first_step_of),
            None
        )
        steps = [
            Step(
                id=capability.name,
                capability=capability.name,
                input=default_input(capability, request, kinds),
                depends_on=upstream
            )
            for capability in ordered
            if capability.kind == kind
        ]
        first_step_of[kind] = steps[0].id
        stages.append(Stage(steps=steps))

    return Plan(
        stages=stages,
        reasoning=reasoning,
        metadata=metadata or {}
    )


class Planner(ABC):
    """Abstract base class for planners that turn a request into a plan."""

    @abstractmethod
    async def plan(
        self,
        request: OrchestrationRequest,
        registry: "CapabilityRegistry"
    ) -> Plan:
        """
        Plan which capabilities to invoke, in what order.

        Args:
            request: The accepted request
            registry: Registry to read capability availability from

        Returns:
            Plan of sequential stages

        Raises:
            UnresolvableRequest: If no available capability can serve the request
            InvalidRequest: If the request context is malformed
        """
        pass
