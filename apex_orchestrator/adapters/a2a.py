"""Peer-network capability backed by an A2A discovery service."""

from typing import Any, Dict, List, Optional

import httpx

from ..models.capability import CapabilityKind
from ..orchestration.errors import ValidationError
from .base import CancellationSignal
from .http_client import HTTPCapabilityAdapter


class A2AAdapter(HTTPCapabilityAdapter):
    """Agent-to-agent messaging through the discovery service.

    Actions: ``broadcast`` (default), ``ping``, ``discover``.
    """

    kind = CapabilityKind.PEER_NETWORK
    health_path = "/ping"

    def __init__(
        self,
        base_url: str,
        agent_id: str,
        name: str = "peer_network",
        capabilities: Optional[List[str]] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.agent_id = agent_id
        self.advertised = capabilities or ["inference", "orchestration"]
        super().__init__(name, base_url, timeout=timeout, transport=transport)

    async def startup(self) -> None:
        await self._request(
            "POST", "/agents/register",
            json={"agentId": self.agent_id, "capabilities": self.advertised}
        )
        self.log.info(f"Registered agent '{self.agent_id}'")

    async def discover(self, signal: Optional[CancellationSignal] = None) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/agents", signal)
        agents = data.get("agents", []) if isinstance(data, dict) else data
        return [a for a in agents if a.get("agentId") != self.agent_id]

    async def invoke(self, input: Dict[str, Any], signal: CancellationSignal) -> Dict[str, Any]:
        action = input.get("action", "broadcast")

        if action == "ping":
            data = await self._request("GET", "/ping", signal)
            return {"action": action, "status": data}

        if action == "discover":
            agents = await self.discover(signal)
            return {"action": action, "agents": agents, "count": len(agents)}

        if action == "broadcast":
            message = input.get("message")
            if not message:
                raise ValidationError("'message' is required for broadcast", capability=self.name)
            body = {
                "from": self.agent_id,
                "message": message,
                "payload": input.get("upstream"),
            }
            with self.log.track_invocation("broadcast"):
                data = await self._request("POST", "/broadcast", signal, json=body)
            responses = data.get("responses", [])
            return {
                "action": action,
                "delivered": data.get("delivered", len(responses)),
                "responses": responses,
            }

        raise ValidationError(f"Unknown peer network action '{action}'", capability=self.name)
