"""Build the configured capabilities from settings."""

import logging
from typing import Callable, Dict, List, Optional

import httpx

from ..config.settings import OrchestratorSettings
from ..models.capability import Capability, CapabilityKind
from .a2a import A2AAdapter
from .base import CapabilityAdapter
from .e2b import E2BAdapter
from .mcp import MCPAdapter
from .notion import NotionAdapter
from .ollama import OllamaAdapter

logger = logging.getLogger(__name__)

AdapterBuilder = Callable[[OrchestratorSettings, Optional[httpx.AsyncBaseTransport]], Optional[CapabilityAdapter]]


def _build_inference(settings, transport):
    return OllamaAdapter(
        base_url=settings.ollama_base_url,
        models=settings.ollama_models,
        transport=transport
    )


def _build_execution(settings, transport):
    if not settings.e2b_api_key:
        return None
    return E2BAdapter(
        api_key=settings.e2b_api_key,
        base_url=settings.e2b_api_url,
        template=settings.e2b_template,
        transport=transport
    )


def _build_storage(settings, transport):
    if not (settings.notion_api_key and settings.notion_database_id):
        return None
    return NotionAdapter(
        api_key=settings.notion_api_key,
        database_id=settings.notion_database_id,
        base_url=settings.notion_api_url,
        transport=transport
    )


def _build_peer_network(settings, transport):
    if not settings.a2a_network_enabled:
        return None
    return A2AAdapter(
        base_url=settings.a2a_base_url,
        agent_id=settings.a2a_agent_id,
        transport=transport
    )


def _build_tool_registry(settings, transport):
    if not settings.mcp_tools_enabled:
        return None
    return MCPAdapter(base_url=settings.mcp_base_url, transport=transport)


ADAPTER_BUILDERS: Dict[CapabilityKind, AdapterBuilder] = {
    CapabilityKind.INFERENCE: _build_inference,
    CapabilityKind.EXECUTION: _build_execution,
    CapabilityKind.STORAGE: _build_storage,
    CapabilityKind.PEER_NETWORK: _build_peer_network,
    CapabilityKind.TOOL_REGISTRY: _build_tool_registry,
}

DESCRIPTIONS: Dict[CapabilityKind, str] = {
    CapabilityKind.INFERENCE: "Local model inference (Ollama)",
    CapabilityKind.EXECUTION: "Sandboxed code execution (E2B)",
    CapabilityKind.STORAGE: "Document storage (Notion)",
    CapabilityKind.PEER_NETWORK: "Agent-to-agent network (A2A)",
    CapabilityKind.TOOL_REGISTRY: "Tool server (MCP)",
}


def build_capabilities(
    settings: OrchestratorSettings,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> List[Capability]:
    """
    Create one capability per configured backend.

    Backends without credentials, or disabled by flag, are left out.

    Args:
        settings: Process settings
        transport: Optional httpx transport shared by all adapters (tests)

    Returns:
        Capabilities named after their kind, in planning order
    """
    capabilities = []
    for kind, builder in ADAPTER_BUILDERS.items():
        adapter = builder(settings, transport)
        if adapter is None:
            logger.info(f"Capability '{kind.value}' not configured, skipping")
            continue
        capabilities.append(Capability(
            name=adapter.name,
            kind=kind,
            adapter=adapter,
            description=DESCRIPTIONS[kind]
        ))
    return capabilities
