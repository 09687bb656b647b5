"""
Interfaces Module

Protocols for pluggable infrastructure.
"""

from .durable_store import DurableStore

__all__ = ["DurableStore"]
