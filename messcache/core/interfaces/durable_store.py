"""
Durable Store Protocol

Abstract interface of the key-value backend behind the persistent cache tier.

Architectural Decision: Protocol-based abstraction
- The persistent tier never knows which backend it talks to
- Tests inject an in-memory store; deployments inject Redis
- Values are opaque strings (the serialized cache entry)

Author: Mess Platform Team
Date: 2025-12-08
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class DurableStore(Protocol):
    """
    Protocol for string key-value stores that outlive the process.

    Implementations:
    - InMemoryDurableStore: tests / single-process development
    - RedisDurableStore: production, survives restarts

    Implementations may raise on backend failure; the persistent cache
    absorbs those errors.
    """

    async def get(self, key: str) -> str | None:
        """Stored value, or None if absent."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        ...

    async def delete(self, key: str) -> None:
        """Remove key if present."""
        ...

    async def keys(self, prefix: str) -> list[str]:
        """All stored keys that start with prefix."""
        ...
