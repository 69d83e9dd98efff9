"""HTTP API layer for the APEX orchestrator.

Serve it with the 'http' extra installed:

    pip install apex-orchestrator[http]
    apex-orchestrator serve
"""

from .api import create_app, router

__all__ = ["create_app", "router"]
