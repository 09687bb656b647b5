"""
Infrastructure Module

Cache tiers, durable store backends and the cache orchestrator.
"""
