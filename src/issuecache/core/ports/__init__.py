"""
Ports - Abstract interfaces for external dependencies.

Ports define the contracts that adapters must implement.
This enables dependency inversion and easy testing.
"""

from .remote_tracker import RemoteTrackerPort, RemoteIssue, IssueQuery
from .config_provider import (
    ConfigProviderPort,
    AppConfig,
    CacheConfig,
    SyncConfig,
)

__all__ = [
    "RemoteTrackerPort",
    "RemoteIssue",
    "IssueQuery",
    "ConfigProviderPort",
    "AppConfig",
    "CacheConfig",
    "SyncConfig",
]
