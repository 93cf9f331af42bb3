"""
Environment Config Provider - Load configuration from environment variables.

Supports:
- Environment variables (ISSUECACHE_DIR, ISSUECACHE_OWNER, ISSUECACHE_REPO, ...)
- .env files
- Explicit overrides (e.g. from a calling tool)
"""

import os
from pathlib import Path
from typing import Any, Optional

from ...core.ports.config_provider import (
    ConfigProviderPort,
    AppConfig,
    CacheConfig,
    SyncConfig,
    DEFAULT_LOCK_TTL_HOURS,
    DEFAULT_SETTLE_DELAY_SECONDS,
    DEFAULT_STALENESS_THRESHOLD_MINUTES,
)


DEFAULT_CACHE_DIR = ".issuecache"


class EnvironmentConfigProvider(ConfigProviderPort):
    """
    Configuration provider that loads from environment variables and .env files.

    Precedence, lowest first: .env file, environment, overrides.
    """

    ENV_MAPPING = {
        "ISSUECACHE_DIR": "cache_dir",
        "ISSUECACHE_STALENESS_MINUTES": "staleness_threshold_minutes",
        "ISSUECACHE_OWNER": "owner",
        "ISSUECACHE_REPO": "repo",
        "ISSUECACHE_LOCK_TTL_HOURS": "lock_ttl_hours",
        "ISSUECACHE_SETTLE_SECONDS": "settle_delay_seconds",
        "ISSUECACHE_DRY_RUN": "dry_run",
        "ISSUECACHE_VERBOSE": "verbose",
    }

    def __init__(
        self,
        env_file: Optional[Path] = None,
        overrides: Optional[dict[str, Any]] = None,
    ):
        """
        Initialize the config provider.

        Args:
            env_file: Path to .env file (auto-detected if not specified)
            overrides: Explicit value overrides, keyed by config name
        """
        self._values: dict[str, Any] = {}
        self._env_file = env_file
        self._overrides = {
            self._normalize(k): v for k, v in (overrides or {}).items() if v is not None
        }

        # Load configuration
        self._load_env_file()
        self._load_environment()

    # -------------------------------------------------------------------------
    # ConfigProviderPort Implementation
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return "Environment"

    def load(self) -> AppConfig:
        """Load complete configuration."""
        cache = CacheConfig(
            cache_dir=Path(self.get("cache_dir", DEFAULT_CACHE_DIR)),
            staleness_threshold_minutes=self._get_float(
                "staleness_threshold_minutes", DEFAULT_STALENESS_THRESHOLD_MINUTES
            ),
            owner=self.get("owner"),
            repo=self.get("repo"),
        )

        sync = SyncConfig(
            lock_ttl_hours=self._get_float("lock_ttl_hours", DEFAULT_LOCK_TTL_HOURS),
            settle_delay_seconds=self._get_float(
                "settle_delay_seconds", DEFAULT_SETTLE_DELAY_SECONDS
            ),
            dry_run=self._get_bool("dry_run", False),
        )

        return AppConfig(
            cache=cache,
            sync=sync,
            verbose=self._get_bool("verbose", False),
        )

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        key = self._normalize(key)

        # Check overrides first
        if key in self._overrides:
            return self._overrides[key]

        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value."""
        self._values[self._normalize(key)] = value

    def validate(self) -> list[str]:
        """Validate configuration."""
        errors = []

        if not self.get("owner"):
            errors.append("Missing ISSUECACHE_OWNER - set in environment or .env file")
        if not self.get("repo"):
            errors.append("Missing ISSUECACHE_REPO - set in environment or .env file")

        for key in ("staleness_threshold_minutes", "lock_ttl_hours", "settle_delay_seconds"):
            value = self.get(key)
            if value is None:
                continue
            try:
                if float(value) < 0:
                    errors.append(f"{key} must not be negative")
            except (TypeError, ValueError):
                errors.append(f"{key} must be a number, got {value!r}")

        return errors

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    @staticmethod
    def _normalize(key: str) -> str:
        return key.lower().replace("-", "_")

    def _get_float(self, key: str, default: float) -> float:
        value = self.get(key)
        if value is None or value == "":
            return default
        return float(value)

    def _get_bool(self, key: str, default: bool) -> bool:
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        return str(value).lower() in ("true", "1", "yes")

    def _load_env_file(self) -> None:
        """Load values from .env file."""
        env_file = self._find_env_file()
        if not env_file:
            return

        for line in env_file.read_text().splitlines():
            line = line.strip()

            # Skip empty lines and comments
            if not line or line.startswith("#"):
                continue

            # Parse key=value
            if "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")

            config_key = self.ENV_MAPPING.get(key)
            if config_key:
                self._values[config_key] = value

    def _find_env_file(self) -> Optional[Path]:
        """Find .env file."""
        if self._env_file is not None:
            return self._env_file if self._env_file.exists() else None

        # Check current directory
        cwd_env = Path.cwd() / ".env"
        if cwd_env.exists():
            return cwd_env

        return None

    def _load_environment(self) -> None:
        """Load values from environment variables."""
        for env_key, config_key in self.ENV_MAPPING.items():
            raw_value = os.environ.get(env_key)
            if raw_value is not None:
                self._values[config_key] = raw_value
