"""
Domain Entities - Documents, metadata records and soft locks.

These are plain dataclasses with no I/O. The on-disk representation is
produced by ``to_dict`` / ``from_dict`` so the cache index stays readable
JSON with stable snake_case field names.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Format a datetime as an ISO-8601 UTC string."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


class DocumentType(Enum):
    """Kinds of documents mirrored by the cache."""

    STORY = "story"
    PRD = "prd"
    EPIC = "epic"

    @property
    def section(self) -> str:
        """Name of the index section and content subdirectory."""
        return {
            DocumentType.STORY: "stories",
            DocumentType.PRD: "prds",
            DocumentType.EPIC: "epics",
        }[self]

    @property
    def label(self) -> str:
        """Human-readable name used in messages."""
        return {
            DocumentType.STORY: "Story",
            DocumentType.PRD: "PRD",
            DocumentType.EPIC: "Epic",
        }[self]

    def filename(self, key: str) -> str:
        """Content file name for a key of this type."""
        if self is DocumentType.EPIC:
            return f"epic-{key}.md"
        return f"{key}.md"


class ReviewStatus(Enum):
    """Lifecycle of a PRD or epic under crowd review."""

    DRAFT = "draft"
    FEEDBACK = "feedback"
    SYNTHESIS = "synthesis"
    SIGNOFF = "signoff"
    APPROVED = "approved"

    @classmethod
    def from_string(cls, value: str) -> "ReviewStatus":
        """Parse status from string, defaulting to DRAFT."""
        value = (value or "").strip().lower()
        for status in cls:
            if status.value == value:
                return status
        return cls.DRAFT


@dataclass
class Lock:
    """Advisory reservation of a document by one actor."""

    holder: str
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        """Check expiry lazily against the given instant."""
        return self.expires_at is not None and self.expires_at < now

    def to_dict(self) -> dict[str, Any]:
        return {
            "holder": self.holder,
            "expires_at": format_timestamp(self.expires_at),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["Lock"]:
        if not data or not data.get("holder"):
            return None
        return cls(
            holder=data["holder"],
            expires_at=parse_timestamp(data.get("expires_at")),
        )


@dataclass(frozen=True)
class LockStatus:
    """
    Result of a lock query.

    An expired lock reports only ``previous_holder``; a live lock reports
    ``holder`` and ``expires_at``.
    """

    expired: bool
    holder: Optional[str] = None
    expires_at: Optional[datetime] = None
    previous_holder: Optional[str] = None


@dataclass
class DocumentMetadata:
    """Sync and lock metadata for one cached document."""

    remote_id: Optional[int] = None
    remote_updated_at: Optional[str] = None
    cache_timestamp: Optional[datetime] = None
    content_hash: Optional[str] = None
    lock: Optional[Lock] = None

    # Type-specific fields
    status: Optional[str] = None
    version: Optional[int] = None
    stakeholders: list[str] = field(default_factory=list)
    lineage_key: Optional[str] = None
    owner: Optional[str] = None
    members: list[str] = field(default_factory=list)
    review_id: Optional[int] = None
    feedback_deadline: Optional[str] = None
    signoff_deadline: Optional[str] = None

    def is_stakeholder(self, username: str) -> bool:
        """Check stakeholder membership, ignoring a leading '@'."""
        wanted = username.lstrip("@")
        return any(s.lstrip("@") == wanted for s in self.stakeholders)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the cache index."""
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "cache_timestamp":
                value = format_timestamp(value)
            elif f.name == "lock":
                value = value.to_dict() if value else None
            elif isinstance(value, list):
                value = list(value)
            data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "DocumentMetadata":
        """Deserialize from the cache index, ignoring unknown fields."""
        data = data or {}
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for name, value in data.items():
            if name not in known:
                continue
            if name == "cache_timestamp":
                value = parse_timestamp(value)
            elif name == "lock":
                value = Lock.from_dict(value)
            elif name in ("stakeholders", "members"):
                value = list(value or [])
            kwargs[name] = value
        return cls(**kwargs)


@dataclass
class CachedDocument:
    """A document read back from the cache."""

    key: str
    doc_type: DocumentType
    content: str
    metadata: Optional[DocumentMetadata]
    is_stale: bool
    warning: Optional[str] = None


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a cache write."""

    key: str
    path: Path
    content_hash: str
    timestamp: datetime


@dataclass(frozen=True)
class LockedDocument:
    """Entry in a listing of locked documents."""

    key: str
    holder: str
    expires_at: Optional[datetime]
    expired: bool


@dataclass
class TypeStats:
    """Counters for one document type."""

    count: int = 0
    stale_count: int = 0
    locked_count: int = 0
    size_bytes: int = 0
    by_status: dict[str, int] = field(default_factory=dict)

    @property
    def fresh_count(self) -> int:
        return self.count - self.stale_count


@dataclass
class CacheStats:
    """Aggregate statistics for a cache root."""

    stories: TypeStats
    prds: TypeStats
    epics: TypeStats
    last_sync: Optional[datetime]
    staleness_threshold_minutes: float

    @property
    def total_size_bytes(self) -> int:
        return self.stories.size_bytes + self.prds.size_bytes + self.epics.size_bytes

    @property
    def total_size_kb(self) -> int:
        return round(self.total_size_bytes / 1024)
