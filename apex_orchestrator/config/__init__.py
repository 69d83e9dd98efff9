"""Configuration for the APEX orchestrator."""

from .settings import OrchestratorSettings

__all__ = ["OrchestratorSettings"]
