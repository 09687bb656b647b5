"""
Cache Entry

The unit stored by both cache tiers.

Expiry and refresh eligibility are pure functions of (timestamp, ttl, now),
so the memory tier and the persistent tier age entries identically.
"""

from dataclasses import asdict, dataclass
from typing import Any

import orjson

from messcache.core.config.constants import REFRESH_THRESHOLD_RATIO


@dataclass
class CacheEntry:
    """
    Cached value with its write time and lifetime.

    Attributes:
        data: Cached payload (must be JSON-serializable for the persistent tier)
        timestamp: Write time (epoch ms)
        ttl: Lifetime (ms)
        etag: Optional validator supplied by the caller
    """

    data: Any
    timestamp: float
    ttl: float
    etag: str = ""

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_expired(self, now: float) -> bool:
        """Expired strictly after timestamp + ttl."""
        return self.age(now) > self.ttl

    def should_refresh(self, now: float) -> bool:
        """Stale-while-revalidate: aged past 80% of its ttl."""
        return self.age(now) > self.ttl * REFRESH_THRESHOLD_RATIO

    def to_json(self) -> str:
        return orjson.dumps(asdict(self)).decode()

    @classmethod
    def from_json(cls, raw: str | bytes) -> "CacheEntry":
        """
        Parse a serialized entry.

        Raises:
            orjson.JSONDecodeError: Malformed payload
            ValueError: Payload is not an entry record
        """
        payload = orjson.loads(raw)
        if not isinstance(payload, dict) or "timestamp" not in payload or "ttl" not in payload:
            raise ValueError("Serialized cache entry is missing timestamp/ttl")
        return cls(
            data=payload.get("data"),
            timestamp=float(payload["timestamp"]),
            ttl=float(payload["ttl"]),
            etag=payload.get("etag") or "",
        )
