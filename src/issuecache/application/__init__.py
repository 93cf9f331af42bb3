"""
Application layer - Use cases built on the core ports.

This module contains:
- commands/: Remote write operations with dry-run support
- sync/: Cache/tracker reconciliation
- retry: Bounded retry for remote calls
"""

from .commands import (
    AddCommentCommand,
    Command,
    CommandBatch,
    CommandResult,
    SetAssigneesCommand,
    UpdateLabelsCommand,
)
from .retry import RetryPolicy, retry_with_backoff
from .sync import SyncEngine, SyncGuard, SyncResult

__all__ = [
    "AddCommentCommand",
    "Command",
    "CommandBatch",
    "CommandResult",
    "SetAssigneesCommand",
    "UpdateLabelsCommand",
    "RetryPolicy",
    "retry_with_backoff",
    "SyncEngine",
    "SyncGuard",
    "SyncResult",
]
