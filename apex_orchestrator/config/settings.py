"""Process configuration loaded from the environment."""

import os
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_A2A_AGENT_ID,
    DEFAULT_A2A_DISCOVERY_PORT,
    DEFAULT_BASE_COOLDOWN_SECONDS,
    DEFAULT_E2B_API_URL,
    DEFAULT_E2B_TEMPLATE,
    DEFAULT_FAILURE_THRESHOLD,
    DEFAULT_HTTP_PORT,
    DEFAULT_MAX_COOLDOWN_SECONDS,
    DEFAULT_MCP_SERVER_PORT,
    DEFAULT_NOTION_API_URL,
    DEFAULT_OLLAMA_BASE_URL,
    DEFAULT_OLLAMA_MODELS,
    DEFAULT_PROBE_INTERVAL_SECONDS,
    DEFAULT_RETRIES,
    DEFAULT_STEP_TIMEOUT_MS,
    ENV_PREFIX,
)


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


class OrchestratorSettings(BaseModel):
    """Backend endpoints, credentials and router knobs."""

    port: int = DEFAULT_HTTP_PORT

    # Inference (Ollama)
    ollama_base_url: str = DEFAULT_OLLAMA_BASE_URL
    ollama_models: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_OLLAMA_MODELS)
    )

    # Storage (Notion)
    notion_api_key: Optional[str] = None
    notion_database_id: Optional[str] = None
    notion_api_url: str = DEFAULT_NOTION_API_URL

    # Execution (E2B)
    e2b_api_key: Optional[str] = None
    e2b_api_url: str = DEFAULT_E2B_API_URL
    e2b_template: str = DEFAULT_E2B_TEMPLATE

    # Tool registry (MCP)
    mcp_tools_enabled: bool = False
    mcp_server_port: int = DEFAULT_MCP_SERVER_PORT

    # Peer network (A2A)
    a2a_network_enabled: bool = False
    a2a_agent_id: str = DEFAULT_A2A_AGENT_ID
    a2a_discovery_port: int = DEFAULT_A2A_DISCOVERY_PORT

    # Router
    failure_threshold: int = Field(default=DEFAULT_FAILURE_THRESHOLD, ge=1)
    base_cooldown_seconds: float = Field(default=DEFAULT_BASE_COOLDOWN_SECONDS, gt=0)
    max_cooldown_seconds: float = Field(default=DEFAULT_MAX_COOLDOWN_SECONDS, gt=0)
    probe_interval_seconds: float = Field(default=DEFAULT_PROBE_INTERVAL_SECONDS, gt=0)
    step_timeout_ms: int = Field(default=DEFAULT_STEP_TIMEOUT_MS, ge=1)
    retries: int = Field(default=DEFAULT_RETRIES, ge=0)

    @property
    def mcp_base_url(self) -> str:
        return f"http://localhost:{self.mcp_server_port}"

    @property
    def a2a_base_url(self) -> str:
        return f"http://localhost:{self.a2a_discovery_port}"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "OrchestratorSettings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)

        Returns:
            OrchestratorSettings with unset variables left at their defaults
        """
        env = os.environ if environ is None else environ
        values = {}

        def put(key: str, name: str, convert=None):
            raw = env.get(name)
            if raw is None or raw == "":
                return
            values[key] = convert(raw) if convert else raw

        put("port", "PORT", int)
        put("ollama_base_url", "OLLAMA_BASE_URL")
        models = dict(DEFAULT_OLLAMA_MODELS)
        for task in models:
            override = env.get(f"OLLAMA_MODEL_{task.upper()}")
            if override:
                models[task] = override
        values["ollama_models"] = models

        put("notion_api_key", "NOTION_API_KEY")
        put("notion_database_id", "NOTION_DATABASE_ID")
        put("e2b_api_key", "E2B_API_KEY")
        put("e2b_api_url", "E2B_API_URL")
        put("e2b_template", "E2B_SANDBOX_TEMPLATE")
        put("mcp_tools_enabled", "MCP_TOOLS_ENABLED", _flag)
        put("mcp_server_port", "MCP_SERVER_PORT", int)
        put("a2a_network_enabled", "A2A_NETWORK_ENABLED", _flag)
        put("a2a_agent_id", "A2A_AGENT_ID")
        put("a2a_discovery_port", "A2A_DISCOVERY_PORT", int)

        put("failure_threshold", f"{ENV_PREFIX}FAILURE_THRESHOLD", int)
        put("base_cooldown_seconds", f"{ENV_PREFIX}BASE_COOLDOWN_SECONDS", float)
        put("max_cooldown_seconds", f"{ENV_PREFIX}MAX_COOLDOWN_SECONDS", float)
        put("probe_interval_seconds", f"{ENV_PREFIX}PROBE_INTERVAL_SECONDS", float)
        put("step_timeout_ms", f"{ENV_PREFIX}STEP_TIMEOUT_MS", int)
        put("retries", f"{ENV_PREFIX}RETRIES", int)

        return cls(**values)
