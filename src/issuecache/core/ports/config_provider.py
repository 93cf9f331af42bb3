"""
Config Provider Port - Abstract interface for configuration sources.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional


DEFAULT_STALENESS_THRESHOLD_MINUTES = 5
DEFAULT_LOCK_TTL_HOURS = 8
DEFAULT_RETRY_BACKOFF_SECONDS = (1.0, 3.0, 9.0)
DEFAULT_SETTLE_DELAY_SECONDS = 1.0


@dataclass
class CacheConfig:
    """Configuration of one cache root."""

    cache_dir: Path
    staleness_threshold_minutes: float = DEFAULT_STALENESS_THRESHOLD_MINUTES
    owner: Optional[str] = None
    repo: Optional[str] = None

    def __post_init__(self):
        self.cache_dir = Path(self.cache_dir)
        if not self.staleness_threshold_minutes:
            self.staleness_threshold_minutes = DEFAULT_STALENESS_THRESHOLD_MINUTES


@dataclass
class SyncConfig:
    """Configuration for sync operations."""

    lock_ttl_hours: float = DEFAULT_LOCK_TTL_HOURS
    retry_backoff_seconds: tuple[float, ...] = DEFAULT_RETRY_BACKOFF_SECONDS
    settle_delay_seconds: float = DEFAULT_SETTLE_DELAY_SECONDS
    dry_run: bool = False

    @property
    def max_retries(self) -> int:
        return len(self.retry_backoff_seconds)


@dataclass
class AppConfig:
    """Complete application configuration."""

    cache: CacheConfig
    sync: SyncConfig
    verbose: bool = False


class ConfigProviderPort(ABC):
    """Abstract interface for configuration providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the provider name."""
        ...

    @abstractmethod
    def load(self) -> AppConfig:
        """Load complete configuration."""
        ...

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Set a configuration value."""
        ...

    @abstractmethod
    def validate(self) -> list[str]:
        """Validate configuration, returning a list of problems."""
        ...
