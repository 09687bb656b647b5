"""
Application Module

FastAPI diagnostics surface over the cache layer.
"""
