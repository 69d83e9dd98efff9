"""Backend adapters for the capability router."""

from .base import CancellationSignal, CapabilityAdapter
from .errors import ErrorMapper
from .http_client import HTTPCapabilityAdapter
from .ollama import OllamaAdapter
from .e2b import E2BAdapter, extract_code
from .notion import NotionAdapter
from .a2a import A2AAdapter
from .mcp import MCPAdapter
from .factory import build_capabilities

__all__ = [
    'CancellationSignal',
    'CapabilityAdapter',
    'ErrorMapper',
    'HTTPCapabilityAdapter',
    'OllamaAdapter',
    'E2BAdapter',
    'extract_code',
    'NotionAdapter',
    'A2AAdapter',
    'MCPAdapter',
    'build_capabilities',
]
