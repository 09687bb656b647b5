"""
Mess request/cache orchestration layer.

In-flight de-duplication, a two-tier TTL cache with stale-while-revalidate,
per-key rate limiting, retries with exponential backoff, a priority
throttling queue and a passive performance monitor.
"""

__version__ = "1.0.0"
