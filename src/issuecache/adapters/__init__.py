"""
Adapters - Concrete implementations of ports.

This module contains implementations for:
- Cache: on-disk document mirror with JSON index
- Trackers: tool-call backed remote tracker
- Config: Environment variables
"""

from .cache import CacheManager
from .tracker import CallableTrackerAdapter
from .config import EnvironmentConfigProvider

__all__ = [
    "CacheManager",
    "CallableTrackerAdapter",
    "EnvironmentConfigProvider",
]
