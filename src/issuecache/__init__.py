"""
issuecache - Local document cache synchronized with a remote issue tracker.

The remote tracker is the source of truth. The cache mirrors stories,
PRDs and epics on disk for fast reads, and the sync engine keeps the two
reconciled with incremental pulls and verified write-through.

Usage:
    from issuecache import create_cache_system, load_config

    cache, engine = create_cache_system(load_config(), client=tool_client)
    await engine.incremental_sync()
    doc = cache.read("2-5-auth")
"""

from .adapters.cache import CacheManager
from .adapters.config import EnvironmentConfigProvider
from .adapters.tracker import CallableTrackerAdapter
from .application.sync import SyncEngine, SyncGuard
from .bootstrap import create_cache_system, load_config, setup_logging
from .core.domain import DocumentType
from .core.exceptions import IssueCacheError

__version__ = "0.1.0"

__all__ = [
    "CacheManager",
    "CallableTrackerAdapter",
    "DocumentType",
    "EnvironmentConfigProvider",
    "IssueCacheError",
    "SyncEngine",
    "SyncGuard",
    "create_cache_system",
    "load_config",
    "setup_logging",
]
