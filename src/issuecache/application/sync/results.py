"""
Sync Results - Structured outcomes of sync engine operations.

Batch operations report parallel success and failure lists rather than
raising on the first bad item.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from ...core.ports.remote_tracker import RemoteIssue


@dataclass(frozen=True)
class SyncFailure:
    """One item that could not be reconciled."""

    item: str  # story key, or "#<issue number>" when no key was found
    error: str

    def __str__(self) -> str:
        return f"{self.item}: {self.error}"


@dataclass
class SyncResult:
    """
    Result of an incremental or full sync pass.

    Attributes:
        updated: Keys whose cached content changed.
        unchanged: Keys whose content already matched the cache.
        errors: Items that failed; the pass continued past them.
        skipped: True if another pass was already running.
        reason: Why the pass was skipped.
        forced: Whether the watermark was ignored.
        watermark: The "changed since" bound used for the query.
        committed_watermark: The watermark recorded after the pass.
    """

    updated: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    errors: list[SyncFailure] = field(default_factory=list)
    skipped: bool = False
    reason: Optional[str] = None
    forced: bool = False
    watermark: Optional[datetime] = None
    committed_watermark: Optional[datetime] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @classmethod
    def skip(cls, reason: str) -> "SyncResult":
        return cls(skipped=True, reason=reason)

    @property
    def success(self) -> bool:
        return not self.skipped and not self.errors

    @property
    def duration(self) -> Optional[timedelta]:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    def add_error(self, item: str, error: str) -> None:
        self.errors.append(SyncFailure(item=item, error=error))


@dataclass(frozen=True)
class StorySyncResult:
    """Result of reconciling one story."""

    key: str
    status: str  # "updated" or "unchanged"
    remote_id: Optional[int] = None

    @property
    def changed(self) -> bool:
        return self.status == "updated"


@dataclass
class PrefetchResult:
    """Result of warming the cache for one epic."""

    group_id: str
    stories: list[str] = field(default_factory=list)
    errors: list[SyncFailure] = field(default_factory=list)


@dataclass
class PushResult:
    """Result of a write-through to the remote issue."""

    key: str
    remote_id: int
    verified: bool = False
    comment_added: bool = False
    labels: Optional[list[str]] = None
    dry_run: bool = False
    issue: Optional[RemoteIssue] = None


@dataclass
class AssignResult:
    """Result of an assign or unassign."""

    key: str
    remote_id: int
    assignee: Optional[str] = None
    lock_expiry: Optional[datetime] = None
    unlocked: bool = False
    dry_run: bool = False


@dataclass
class Availability:
    """Whether a story can be picked up by an actor."""

    available: bool
    holder: Optional[str] = None
    expires_at: Optional[datetime] = None
    remote_id: Optional[int] = None
    source: Optional[str] = None  # cache, remote
    error: Optional[str] = None


@dataclass(frozen=True)
class AvailableStory:
    """An unassigned story open for pickup."""

    key: str
    title: str
    remote_id: int
    status: str
    labels: tuple[str, ...] = ()
    url: Optional[str] = None
