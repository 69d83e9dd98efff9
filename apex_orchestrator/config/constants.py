"""
Router defaults

Central location for the tunables of the capability router. Every value
can be overridden through ``OrchestratorSettings`` (see settings.py) or,
per request, through ``RequestOptions``.
"""

# Circuit breaker
DEFAULT_FAILURE_THRESHOLD = 3
DEFAULT_BASE_COOLDOWN_SECONDS = 10.0
DEFAULT_MAX_COOLDOWN_SECONDS = 300.0  # 5 minutes
DEFAULT_COOLDOWN_BACKOFF_FACTOR = 2.0

# Dispatch
DEFAULT_STEP_TIMEOUT_MS = 30_000
DEFAULT_RETRIES = 2
DEFAULT_RETRY_INITIAL_DELAY = 0.25
DEFAULT_RETRY_MAX_DELAY = 5.0
DEFAULT_RETRY_BACKOFF_FACTOR = 2.0
DEFAULT_RETRY_JITTER_FACTOR = 0.1

# Health monitoring
DEFAULT_PROBE_INTERVAL_SECONDS = 30.0
DEFAULT_PROBE_TIMEOUT_SECONDS = 5.0

# Backends
DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"
DEFAULT_OLLAMA_MODELS = {
    "general": "llama3.1:8b",
    "code": "deepseek-coder:6.7b",
    "reasoning": "deepseek-r1:67b",
    "vision": "llava:13b",
}
DEFAULT_E2B_API_URL = "https://api.e2b.dev"
DEFAULT_E2B_TEMPLATE = "python"
DEFAULT_NOTION_API_URL = "https://api.notion.com"
NOTION_API_VERSION = "2022-06-28"
DEFAULT_MCP_SERVER_PORT = 3001
DEFAULT_A2A_AGENT_ID = "ollama-apex-agent"
DEFAULT_A2A_DISCOVERY_PORT = 3002
DEFAULT_HTTP_PORT = 3000

# Environment variable prefix for router knobs
ENV_PREFIX = "APEX_"
