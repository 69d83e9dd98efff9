"""Tool-registry capability backed by an MCP tool server."""

from typing import Any, Dict, List, Optional

import httpx

from ..models.capability import CapabilityKind
from ..orchestration.errors import ValidationError
from .base import CancellationSignal
from .http_client import HTTPCapabilityAdapter


class MCPAdapter(HTTPCapabilityAdapter):
    """Lists and calls tools exposed by the MCP server.

    Tool discovery is a read-only query; discovered tools are not added to
    the running plan.
    """

    kind = CapabilityKind.TOOL_REGISTRY

    def __init__(
        self,
        base_url: str,
        name: str = "tool_registry",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(name, base_url, timeout=timeout, transport=transport)

    async def list_tools(self, signal: Optional[CancellationSignal] = None) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/tools", signal)
        return data.get("tools", []) if isinstance(data, dict) else data

    async def call_tool(
        self,
        tool: str,
        arguments: Optional[Dict[str, Any]] = None,
        signal: Optional[CancellationSignal] = None
    ) -> Any:
        with self.log.track_invocation("call_tool") as info:
            info["tool"] = tool
            data = await self._request(
                "POST", f"/tools/{tool}/call", signal, json={"arguments": arguments or {}}
            )
        return data.get("result", data) if isinstance(data, dict) else data

    async def invoke(self, input: Dict[str, Any], signal: CancellationSignal) -> Dict[str, Any]:
        action = input.get("action", "list_tools")

        if action == "list_tools":
            tools = await self.list_tools(signal)
            return {"action": action, "tools": tools, "count": len(tools)}

        if action == "call_tool":
            tool = input.get("tool")
            if not tool:
                raise ValidationError("'tool' is required for call_tool", capability=self.name)
            arguments = input.get("arguments") or {}
            if not isinstance(arguments, dict):
                raise ValidationError("'arguments' must be an object", capability=self.name)
            result = await self.call_tool(tool, arguments, signal)
            return {"action": action, "tool": tool, "result": result}

        raise ValidationError(f"Unknown tool registry action '{action}'", capability=self.name)
