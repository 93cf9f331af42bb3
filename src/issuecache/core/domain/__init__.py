"""
Domain - Entities, events and enums with no I/O.
"""

from .entities import (
    EPOCH,
    CachedDocument,
    CacheStats,
    DocumentMetadata,
    DocumentType,
    Lock,
    LockedDocument,
    LockStatus,
    ReviewStatus,
    TypeStats,
    WriteResult,
    format_timestamp,
    parse_timestamp,
)
from .events import (
    DomainEvent,
    DocumentSynced,
    EventBus,
    IssueUpdated,
    LockAcquired,
    LockReleased,
    SyncCompleted,
    SyncSkipped,
    SyncStarted,
)

__all__ = [
    "EPOCH",
    "CachedDocument",
    "CacheStats",
    "DocumentMetadata",
    "DocumentType",
    "Lock",
    "LockedDocument",
    "LockStatus",
    "ReviewStatus",
    "TypeStats",
    "WriteResult",
    "format_timestamp",
    "parse_timestamp",
    # Events
    "DomainEvent",
    "DocumentSynced",
    "EventBus",
    "IssueUpdated",
    "LockAcquired",
    "LockReleased",
    "SyncCompleted",
    "SyncSkipped",
    "SyncStarted",
]
