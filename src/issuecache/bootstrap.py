"""
Bootstrap - Logging setup and component wiring.

Builds a CacheManager and a SyncEngine from one AppConfig so callers
do not have to know how the layers fit together.
"""

import logging
from typing import Optional

from .adapters.cache.manager import CacheManager
from .adapters.config.environment import EnvironmentConfigProvider
from .adapters.tracker.callable_adapter import CallableTrackerAdapter, ToolClient
from .application.retry import Sleep
from .application.sync.engine import SyncEngine
from .application.sync.guard import SyncGuard
from .core.domain.events import EventBus
from .core.exceptions import IssueCacheError
from .core.ports.config_provider import AppConfig
from .core.ports.remote_tracker import RemoteTrackerPort


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )


def load_config(overrides: Optional[dict] = None) -> AppConfig:
    """
    Load configuration from the environment.

    Raises:
        IssueCacheError: If the configuration is incomplete or invalid
    """
    provider = EnvironmentConfigProvider(overrides=overrides)
    errors = provider.validate()
    if errors:
        raise IssueCacheError("Invalid configuration: " + "; ".join(errors))
    return provider.load()


def create_cache_system(
    config: AppConfig,
    client: Optional[ToolClient] = None,
    tracker: Optional[RemoteTrackerPort] = None,
    event_bus: Optional[EventBus] = None,
    guard: Optional[SyncGuard] = None,
    sleep: Optional[Sleep] = None,
) -> tuple[CacheManager, SyncEngine]:
    """
    Wire a cache manager and sync engine together.

    Args:
        config: Application configuration
        client: Tool-call coroutine, wrapped in a CallableTrackerAdapter
        tracker: Ready-made tracker port (takes precedence over ``client``)
        event_bus: Optional shared event bus
        guard: Optional shared sync guard
        sleep: Optional sleep coroutine for retries and settle delays

    Returns:
        Tuple of (CacheManager, SyncEngine)
    """
    if tracker is None:
        if client is None:
            raise IssueCacheError("Either a tool client or a tracker is required")
        tracker = CallableTrackerAdapter(client, owner=config.cache.owner, repo=config.cache.repo)

    cache = CacheManager(config.cache)
    engine = SyncEngine(
        cache,
        tracker,
        config=config.sync,
        event_bus=event_bus,
        guard=guard,
        sleep=sleep,
    )
    return cache, engine
