"""
Cache Index Store - Persistence of the cache metadata file.

The index is a single JSON document per cache root. Every save goes
through a write-to-temp-then-rename so readers never observe a partial
file, and every load is validated against a JSON Schema and migrated to
the current schema version.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

import jsonschema

from ...core.domain.entities import parse_timestamp
from ...core.exceptions import CorruptIndexError


CACHE_META_FILENAME = ".issuecache-meta.json"
SCHEMA_VERSION = "2.0.0"
SECTIONS = ("stories", "prds", "epics")

_RECORD_SCHEMA = {
    "type": "object",
    "properties": {
        "remote_id": {"type": ["integer", "string", "null"]},
        "cache_timestamp": {"type": ["string", "null"]},
        "content_hash": {"type": ["string", "null"]},
        "lock": {
            "type": ["object", "null"],
            "properties": {
                "holder": {"type": ["string", "null"]},
                "expires_at": {"type": ["string", "null"]},
            },
        },
        "stakeholders": {"type": ["array", "null"], "items": {"type": "string"}},
        "members": {"type": ["array", "null"], "items": {"type": "string"}},
    },
}

INDEX_SCHEMA = {
    "type": "object",
    "properties": {
        "version": {"type": ["string", "null"]},
        "last_sync": {"type": ["string", "null"]},
        "owner": {"type": ["string", "null"]},
        "repo": {"type": ["string", "null"]},
        **{
            section: {"type": "object", "additionalProperties": _RECORD_SCHEMA}
            for section in SECTIONS
        },
    },
}

# v1 field name -> current field name
_LEGACY_FIELDS = {
    "github_issue": "remote_id",
    "github_updated_at": "remote_updated_at",
    "local_hash": "content_hash",
    "prd_key": "lineage_key",
    "review_issue": "review_id",
}

logger = logging.getLogger("CacheIndex")


def atomic_write_text(path: Path, content: str) -> None:
    """
    Replace ``path`` with ``content`` atomically.

    The temp sibling is removed if the write fails, so the previous file
    is left intact and no ``.tmp`` file lingers.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    try:
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, path)
    except OSError:
        if tmp.exists():
            tmp.unlink()
        raise


def schema_major(version: Optional[str]) -> int:
    """
    Major component of an index version.

    Missing or unreadable versions count as 1, the original layout.
    """
    try:
        return int(str(version).split(".")[0])
    except (TypeError, ValueError):
        return 1


CURRENT_MAJOR = schema_major(SCHEMA_VERSION)


def needs_migration(version: Optional[str]) -> bool:
    """True if an index predates the current schema major version."""
    return schema_major(version) < CURRENT_MAJOR


def _check_timestamps(index: dict[str, Any]) -> None:
    """Raise CorruptIndexError for any timestamp that does not parse."""
    values = [("last_sync", index.get("last_sync"))]
    for section in SECTIONS:
        for key, record in (index.get(section) or {}).items():
            values.append((f"{section}.{key}.cache_timestamp", record.get("cache_timestamp")))
            lock = record.get("lock")
            if isinstance(lock, dict):
                values.append((f"{section}.{key}.lock.expires_at", lock.get("expires_at")))
            if "locked_until" in record:
                values.append((f"{section}.{key}.locked_until", record["locked_until"]))

    for path, value in values:
        try:
            parse_timestamp(value)
        except ValueError as e:
            raise CorruptIndexError(f"Invalid timestamp at {path}: {value!r}", cause=e) from None


class IndexStore:
    """
    Reads and writes the cache index file.

    Corrupt files are reported as CorruptIndexError by ``read``; ``load``
    recovers from that by reinitializing an empty index.
    """

    def __init__(
        self,
        meta_path: Path,
        owner: Optional[str] = None,
        repo: Optional[str] = None,
    ):
        self.meta_path = Path(meta_path)
        self.owner = owner
        self.repo = repo

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def load(self) -> dict[str, Any]:
        """Load the index, creating or recovering it as needed."""
        if not self.meta_path.exists():
            return self.initialize()

        try:
            index = self.read()
        except CorruptIndexError as e:
            logger.warning(f"Failed to parse cache meta, reinitializing: {e}")
            return self.initialize()

        return self.migrate(index)

    def read(self) -> dict[str, Any]:
        """Parse and validate the index file without migrating it."""
        try:
            index = json.loads(self.meta_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptIndexError(f"Unparseable cache index: {e}", cause=e)

        try:
            jsonschema.validate(instance=index, schema=INDEX_SCHEMA)
        except jsonschema.ValidationError as e:
            path = ".".join(str(p) for p in e.absolute_path) or "(root)"
            raise CorruptIndexError(f"Invalid cache index at {path}: {e.message}") from None

        _check_timestamps(index)

        return index

    def save(self, index: dict[str, Any]) -> None:
        """Write the index atomically."""
        atomic_write_text(self.meta_path, json.dumps(index, indent=2))

    def initialize(self) -> dict[str, Any]:
        """Write and return a fresh, empty index."""
        index = {
            "version": SCHEMA_VERSION,
            "last_sync": None,
            "owner": self.owner,
            "repo": self.repo,
            **{section: {} for section in SECTIONS},
        }
        self.save(index)
        return index

    def migrate(self, index: dict[str, Any]) -> dict[str, Any]:
        """
        Upgrade an older index in place.

        Missing sections are added empty and legacy record fields are
        renamed; the file is then rewritten at the current version.
        Complete current-version indexes are returned untouched. Indexes
        written by a newer schema are never rewritten; missing sections
        are filled in memory only.
        """
        version = index.get("version")
        missing = [s for s in SECTIONS if not isinstance(index.get(s), dict)]

        if schema_major(version) > CURRENT_MAJOR:
            logger.warning(f"Cache index version {version} is newer than {SCHEMA_VERSION}, not rewriting")
            for section in missing:
                index[section] = {}
            return index

        if not needs_migration(version):
            if missing:
                for section in missing:
                    index[section] = {}
                self.save(index)
                logger.info(f"Added missing cache index sections: {', '.join(missing)}")
            return index

        old_version = version or "1.0.0"

        for section in SECTIONS:
            if not isinstance(index.get(section), dict):
                index[section] = {}
            for key, record in index[section].items():
                index[section][key] = self._migrate_record(section, record)

        index.setdefault("last_sync", None)
        index.setdefault("owner", self.owner)
        index.setdefault("repo", self.repo)
        index["version"] = SCHEMA_VERSION

        self.save(index)
        logger.info(f"Migrated cache index from {old_version} to {SCHEMA_VERSION}")
        return index

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    def _migrate_record(self, section: str, record: dict[str, Any]) -> dict[str, Any]:
        migrated = dict(record)

        for old_name, new_name in _LEGACY_FIELDS.items():
            if old_name in migrated:
                value = migrated.pop(old_name)
                migrated.setdefault(new_name, value)

        # Epics listed their stories under "stories"
        if section == "epics" and "stories" in migrated:
            migrated.setdefault("members", migrated.pop("stories"))

        if "locked_by" in migrated or "locked_until" in migrated:
            holder = migrated.pop("locked_by", None)
            expires_at = migrated.pop("locked_until", None)
            if "lock" not in migrated:
                migrated["lock"] = (
                    {"holder": holder, "expires_at": expires_at} if holder else None
                )

        return migrated
