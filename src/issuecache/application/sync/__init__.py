"""
Sync - Reconciliation between the local cache and the remote tracker.
"""

from .converter import (
    TYPE_STORY_LABEL,
    epic_label,
    extract_status,
    extract_story_key,
    render_story,
    status_label,
    story_label,
)
from .engine import SyncEngine
from .guard import SyncGuard
from .results import (
    AssignResult,
    Availability,
    AvailableStory,
    PrefetchResult,
    PushResult,
    StorySyncResult,
    SyncFailure,
    SyncResult,
)

__all__ = [
    "SyncEngine",
    "SyncGuard",
    # Results
    "AssignResult",
    "Availability",
    "AvailableStory",
    "PrefetchResult",
    "PushResult",
    "StorySyncResult",
    "SyncFailure",
    "SyncResult",
    # Conversion
    "TYPE_STORY_LABEL",
    "epic_label",
    "extract_status",
    "extract_story_key",
    "render_story",
    "status_label",
    "story_label",
]
