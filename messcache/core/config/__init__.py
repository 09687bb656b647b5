"""
Configuration Module

Centralized, type-safe configuration for the request/cache orchestration layer.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: System-wide constants and enums (ResourceClass, RequestPriority, Stage)

Usage:
------
```python
from messcache.core.config import get_settings
from messcache.core.config.constants import ResourceClass

settings = get_settings()
photo_limit = settings.rate_limit.RATE_LIMIT_PHOTO_MAX
```
"""

from messcache.core.config.settings import Settings, get_settings, reload_settings

__all__ = ["Settings", "get_settings", "reload_settings"]
