"""
Cache Manager - Fast local mirror of tracker documents.

The remote issue tracker is the source of truth; this cache is a
disposable performance layer that lets readers get document content
without a network round trip. Each cache root holds:

- one content file per document under a type-scoped subdirectory
  (``stories/``, ``prds/``, ``epics/``)
- one JSON index with sync, hash and soft-lock metadata per document

Every logical update reads the whole index, mutates it in memory and
rewrites it atomically. Nothing guards that read-modify-write inside a
process, so concurrent writers must be sequenced by the caller.
"""

import hashlib
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from ...core.domain.entities import (
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
from ...core.exceptions import NotFoundError
from ...core.ports.config_provider import CacheConfig
from .index import CACHE_META_FILENAME, IndexStore, atomic_write_text


Clock = Callable[[], datetime]

_EPOCH_ISO = format_timestamp(EPOCH)

# Defaults applied on first write of a review document
_REVIEW_DEFAULTS: dict[DocumentType, dict[str, Any]] = {
    DocumentType.STORY: {},
    DocumentType.PRD: {"version": 1, "status": ReviewStatus.DRAFT.value, "stakeholders": []},
    DocumentType.EPIC: {"version": 1, "status": ReviewStatus.DRAFT.value, "stakeholders": [], "members": []},
}


def content_digest(content: str) -> str:
    """SHA-256 hex digest of document content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CacheManager:
    """
    Durable, atomic local mirror of documents plus sync and lock metadata.

    CacheManager is the sole authority for staleness decisions. Staleness
    is advisory: stale content is still returned, with a warning.
    """

    def __init__(
        self,
        config: CacheConfig,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the cache manager.

        Args:
            config: Cache configuration (root directory, staleness threshold)
            clock: Optional callable returning the current aware datetime
        """
        self.config = config
        self.cache_dir = config.cache_dir
        self.staleness_threshold_minutes = config.staleness_threshold_minutes
        self.meta_path = self.cache_dir / CACHE_META_FILENAME
        self.logger = logging.getLogger("CacheManager")
        self._clock = clock or utc_now
        self._store = IndexStore(self.meta_path, owner=config.owner, repo=config.repo)

        self._ensure_cache_dir()

    # -------------------------------------------------------------------------
    # Index Access
    # -------------------------------------------------------------------------

    def load_index(self) -> dict[str, Any]:
        """Load the raw cache index (migrated, recovered if corrupt)."""
        return self._store.load()

    def save_index(self, index: dict[str, Any]) -> None:
        """Atomically rewrite the raw cache index."""
        self._store.save(index)

    def get_metadata(
        self,
        key: str,
        doc_type: DocumentType = DocumentType.STORY,
    ) -> Optional[DocumentMetadata]:
        """Get the metadata record for a key, or None."""
        record = self.load_index()[doc_type.section].get(key)
        if record is None:
            return None
        return DocumentMetadata.from_dict(record)

    def get_path(self, key: str, doc_type: DocumentType = DocumentType.STORY) -> Path:
        """Get the content file path for a key."""
        return self.cache_dir / doc_type.section / doc_type.filename(key)

    # -------------------------------------------------------------------------
    # Read / Write
    # -------------------------------------------------------------------------

    def read(
        self,
        key: str,
        doc_type: DocumentType = DocumentType.STORY,
        ignore_stale: bool = False,
    ) -> Optional[CachedDocument]:
        """
        Read a document from the cache with a staleness check.

        Args:
            key: Document key (e.g. "2-5-auth")
            doc_type: Document type
            ignore_stale: Suppress the stale warning

        Returns:
            CachedDocument, or None if no content is cached
        """
        path = self.get_path(key, doc_type)
        if not path.exists():
            return None

        content = path.read_text(encoding="utf-8")
        metadata = self.get_metadata(key, doc_type)
        stale = self._is_record_stale(metadata)

        warning = None
        if stale and not ignore_stale:
            warning = (
                f"{doc_type.label} cache is stale "
                f"(>{self.staleness_threshold_minutes:g} min old). Sync recommended."
            )

        return CachedDocument(
            key=key,
            doc_type=doc_type,
            content=content,
            metadata=metadata,
            is_stale=stale,
            warning=warning,
        )

    def write(
        self,
        key: str,
        content: str,
        metadata: Optional[dict[str, Any]] = None,
        doc_type: DocumentType = DocumentType.STORY,
    ) -> WriteResult:
        """
        Write a document to the cache and update its metadata.

        The content file is replaced atomically. ``metadata`` is merged over
        the previous record: fields it does not mention are preserved,
        fields it sets to None are cleared.

        Args:
            key: Document key
            content: Document content
            metadata: Partial metadata (DocumentMetadata field names)
            doc_type: Document type

        Returns:
            WriteResult with path, digest and cache timestamp
        """
        path = self.get_path(key, doc_type)
        digest = content_digest(content)

        atomic_write_text(path, content)

        index = self.load_index()
        previous = index[doc_type.section].get(key)
        record = self._merge_record(doc_type, previous, metadata)

        timestamp = self._next_timestamp(previous)
        record["cache_timestamp"] = format_timestamp(timestamp)
        record["content_hash"] = digest
        index[doc_type.section][key] = record
        self.save_index(index)

        self.logger.debug(f"Cached {doc_type.value} {key} ({digest[:12]})")

        return WriteResult(key=key, path=path, content_hash=digest, timestamp=timestamp)

    def update_metadata(
        self,
        key: str,
        metadata: dict[str, Any],
        doc_type: DocumentType = DocumentType.STORY,
    ) -> DocumentMetadata:
        """Merge metadata into a record without touching content."""
        index = self.load_index()
        previous = index[doc_type.section].get(key)
        record = self._merge_record(doc_type, previous, metadata, apply_defaults=False)
        index[doc_type.section][key] = record
        self.save_index(index)
        return DocumentMetadata.from_dict(record)

    def update_status(
        self,
        key: str,
        status: str,
        doc_type: DocumentType = DocumentType.PRD,
    ) -> None:
        """
        Set the review status of a cached document.

        Raises:
            NotFoundError: If the document is not cached
        """
        index = self.load_index()
        record = index[doc_type.section].get(key)
        if record is None:
            raise NotFoundError(f"{doc_type.label} not found in cache: {key}", key=key)

        record["status"] = status
        record["cache_timestamp"] = format_timestamp(self._next_timestamp(record))
        self.save_index(index)

    def delete(self, key: str, doc_type: DocumentType = DocumentType.STORY) -> None:
        """Remove a document's content file and metadata record."""
        path = self.get_path(key, doc_type)
        if path.exists():
            path.unlink()

        index = self.load_index()
        if index[doc_type.section].pop(key, None) is not None:
            self.save_index(index)
        self.logger.debug(f"Deleted {doc_type.value} {key} from cache")

    def has_content_changed(
        self,
        key: str,
        candidate: str,
        doc_type: DocumentType = DocumentType.STORY,
    ) -> bool:
        """Compare candidate content against the stored digest."""
        metadata = self.get_metadata(key, doc_type)
        if metadata is None or not metadata.content_hash:
            return True
        return content_digest(candidate) != metadata.content_hash

    # -------------------------------------------------------------------------
    # Staleness
    # -------------------------------------------------------------------------

    def invalidate(self, key: str, doc_type: DocumentType = DocumentType.STORY) -> None:
        """Mark a document stale without deleting its content."""
        index = self.load_index()
        record = index[doc_type.section].get(key)
        if record is not None:
            record["cache_timestamp"] = _EPOCH_ISO
            self.save_index(index)

    def invalidate_all(self) -> None:
        """Mark every cached document stale without deleting content."""
        index = self.load_index()
        for doc_type in DocumentType:
            for record in index[doc_type.section].values():
                record["cache_timestamp"] = _EPOCH_ISO
        self.save_index(index)
        self.logger.info("Invalidated all cached documents")

    def is_stale(self, key: str, doc_type: DocumentType = DocumentType.STORY) -> bool:
        """True if the document is missing or older than the threshold."""
        return self._is_record_stale(self.get_metadata(key, doc_type))

    def get_cache_age(
        self,
        key: str,
        doc_type: DocumentType = DocumentType.STORY,
    ) -> Optional[int]:
        """Cache age in whole minutes, or None if never cached."""
        metadata = self.get_metadata(key, doc_type)
        if metadata is None or metadata.cache_timestamp is None:
            return None
        age = self._clock() - metadata.cache_timestamp
        return int(age.total_seconds() // 60)

    def get_last_sync(self) -> Optional[datetime]:
        """Timestamp of the last committed sync pass."""
        return parse_timestamp(self.load_index().get("last_sync"))

    def update_last_sync(self, timestamp: Optional[datetime] = None) -> datetime:
        """Commit a new sync watermark (defaults to now)."""
        timestamp = timestamp or self._clock()
        index = self.load_index()
        index["last_sync"] = format_timestamp(timestamp)
        self.save_index(index)
        return timestamp

    def list_keys(self, doc_type: DocumentType = DocumentType.STORY) -> list[str]:
        """All cached keys of a type."""
        return list(self.load_index()[doc_type.section].keys())

    def get_stale_keys(self, doc_type: DocumentType = DocumentType.STORY) -> list[str]:
        """Keys of a type whose cache is stale."""
        section = self.load_index()[doc_type.section]
        return [
            key for key, record in section.items()
            if self._is_record_stale(DocumentMetadata.from_dict(record))
        ]

    # -------------------------------------------------------------------------
    # Soft Locks
    # -------------------------------------------------------------------------

    def acquire_lock(
        self,
        key: str,
        holder: str,
        ttl: timedelta,
        doc_type: DocumentType = DocumentType.STORY,
    ) -> Lock:
        """Record an advisory lock for ``holder`` expiring after ``ttl``."""
        lock = Lock(holder=holder, expires_at=self._clock() + ttl)
        self._set_lock(key, lock, doc_type)
        self.logger.debug(f"Locked {key} for {holder} until {format_timestamp(lock.expires_at)}")
        return lock

    def release_lock(self, key: str, doc_type: DocumentType = DocumentType.STORY) -> None:
        """Clear the lock on a document, if any."""
        index = self.load_index()
        record = index[doc_type.section].get(key)
        if record is not None and record.get("lock"):
            record["lock"] = None
            self.save_index(index)

    def get_lock_status(
        self,
        key: str,
        doc_type: DocumentType = DocumentType.STORY,
    ) -> Optional[LockStatus]:
        """
        Query a document's lock. Expiry is evaluated now, not swept.

        Returns:
            None if unlocked, LockStatus(expired=True, previous_holder) if
            past expiry, else LockStatus(holder, expires_at, expired=False)
        """
        metadata = self.get_metadata(key, doc_type)
        if metadata is None or metadata.lock is None:
            return None

        lock = metadata.lock
        if lock.is_expired(self._clock()):
            return LockStatus(expired=True, previous_holder=lock.holder)

        return LockStatus(expired=False, holder=lock.holder, expires_at=lock.expires_at)

    def get_locked(self, doc_type: DocumentType = DocumentType.STORY) -> list[LockedDocument]:
        """All documents of a type carrying a lock, expired or not."""
        now = self._clock()
        locked = []
        for key, record in self.load_index()[doc_type.section].items():
            lock = Lock.from_dict(record.get("lock"))
            if lock is None:
                continue
            locked.append(LockedDocument(
                key=key,
                holder=lock.holder,
                expires_at=lock.expires_at,
                expired=lock.is_expired(now),
            ))
        return locked

    # -------------------------------------------------------------------------
    # Review Queries
    # -------------------------------------------------------------------------

    def get_by_status(
        self,
        doc_type: DocumentType,
        status: str,
    ) -> list[tuple[str, DocumentMetadata]]:
        """Documents of a type in a given review status."""
        return [
            (key, metadata) for key, metadata in self._iter_metadata(doc_type)
            if metadata.status == status
        ]

    def get_epics_by_prd(self, prd_key: str) -> list[tuple[str, DocumentMetadata]]:
        """Epics whose lineage points at the given PRD."""
        return [
            (key, metadata) for key, metadata in self._iter_metadata(DocumentType.EPIC)
            if metadata.lineage_key == prd_key
        ]

    def get_needing_attention(self, username: str) -> dict[str, list[str]]:
        """
        Review work waiting on a stakeholder.

        Returns:
            Dict with ``prd_feedback``, ``prd_signoff`` and
            ``epic_feedback`` key lists
        """
        attention: dict[str, list[str]] = {
            "prd_feedback": [],
            "prd_signoff": [],
            "epic_feedback": [],
        }

        for key, metadata in self._iter_metadata(DocumentType.PRD):
            if not metadata.is_stakeholder(username):
                continue
            if metadata.status == ReviewStatus.FEEDBACK.value:
                attention["prd_feedback"].append(key)
            elif metadata.status == ReviewStatus.SIGNOFF.value:
                attention["prd_signoff"].append(key)

        for key, metadata in self._iter_metadata(DocumentType.EPIC):
            if metadata.is_stakeholder(username) and metadata.status == ReviewStatus.FEEDBACK.value:
                attention["epic_feedback"].append(key)

        return attention

    def get_stats(self) -> CacheStats:
        """Counts, sizes and status histograms across document types."""
        index = self.load_index()
        now = self._clock()
        per_type = {}

        for doc_type in DocumentType:
            stats = TypeStats()
            for record in index[doc_type.section].values():
                metadata = DocumentMetadata.from_dict(record)
                stats.count += 1
                if self._is_record_stale(metadata):
                    stats.stale_count += 1
                if metadata.lock and not metadata.lock.is_expired(now):
                    stats.locked_count += 1
                if doc_type is not DocumentType.STORY and metadata.status:
                    stats.by_status[metadata.status] = stats.by_status.get(metadata.status, 0) + 1

            directory = self.cache_dir / doc_type.section
            stats.size_bytes = sum(
                p.stat().st_size for p in directory.glob("*.md") if p.is_file()
            )
            per_type[doc_type] = stats

        return CacheStats(
            stories=per_type[DocumentType.STORY],
            prds=per_type[DocumentType.PRD],
            epics=per_type[DocumentType.EPIC],
            last_sync=parse_timestamp(index.get("last_sync")),
            staleness_threshold_minutes=self.staleness_threshold_minutes,
        )

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    def _ensure_cache_dir(self) -> None:
        """Create the cache root and per-type subdirectories."""
        for doc_type in DocumentType:
            (self.cache_dir / doc_type.section).mkdir(parents=True, exist_ok=True)

    def _is_record_stale(self, metadata: Optional[DocumentMetadata]) -> bool:
        if metadata is None or metadata.cache_timestamp is None:
            return True
        threshold = timedelta(minutes=self.staleness_threshold_minutes)
        return self._clock() - metadata.cache_timestamp > threshold

    def _next_timestamp(self, previous: Optional[dict[str, Any]]) -> datetime:
        """Now, but never earlier than the record's previous timestamp."""
        now = self._clock()
        if previous:
            last = parse_timestamp(previous.get("cache_timestamp"))
            if last is not None and last > now:
                return last
        return now

    def _merge_record(
        self,
        doc_type: DocumentType,
        previous: Optional[dict[str, Any]],
        metadata: Optional[dict[str, Any]],
        apply_defaults: bool = True,
    ) -> dict[str, Any]:
        """Overlay partial metadata on the previous record."""
        record: dict[str, Any] = {}
        if apply_defaults and previous is None:
            record.update(_REVIEW_DEFAULTS[doc_type])
        if previous:
            record.update(previous)

        for name, value in (metadata or {}).items():
            if isinstance(value, Lock):
                value = value.to_dict()
            elif isinstance(value, datetime):
                value = format_timestamp(value)
            record[name] = value

        # Round-trip through the dataclass to normalise field names and types
        return DocumentMetadata.from_dict(record).to_dict()

    def _set_lock(self, key: str, lock: Optional[Lock], doc_type: DocumentType) -> None:
        index = self.load_index()
        record = index[doc_type.section].setdefault(key, {})
        record["lock"] = lock.to_dict() if lock else None
        self.save_index(index)

    def _iter_metadata(self, doc_type: DocumentType):
        for key, record in self.load_index()[doc_type.section].items():
            yield key, DocumentMetadata.from_dict(record)
