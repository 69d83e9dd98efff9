"""Observability helpers."""

from .logging import CapabilityLogger

__all__ = ["CapabilityLogger"]
