"""Tests for domain entities."""

from datetime import datetime, timedelta, timezone

from issuecache.core.domain.entities import (
    DocumentMetadata,
    DocumentType,
    Lock,
    ReviewStatus,
    format_timestamp,
    parse_timestamp,
)


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestTimestamps:
    """Tests for timestamp helpers."""

    def test_parse_zulu(self):
        assert parse_timestamp("2026-03-01T12:00:00Z") == NOW

    def test_parse_naive_assumed_utc(self):
        assert parse_timestamp("2026-03-01T12:00:00") == NOW

    def test_parse_empty(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None

    def test_format(self):
        assert format_timestamp(NOW) == "2026-03-01T12:00:00+00:00"
        assert format_timestamp(None) is None


class TestDocumentType:
    """Tests for DocumentType."""

    def test_sections(self):
        assert DocumentType.STORY.section == "stories"
        assert DocumentType.PRD.section == "prds"
        assert DocumentType.EPIC.section == "epics"

    def test_filenames(self):
        assert DocumentType.STORY.filename("2-5-auth") == "2-5-auth.md"
        assert DocumentType.EPIC.filename("2") == "epic-2.md"


class TestReviewStatus:
    """Tests for ReviewStatus."""

    def test_from_string(self):
        assert ReviewStatus.from_string("Signoff") == ReviewStatus.SIGNOFF
        assert ReviewStatus.from_string("unknown") == ReviewStatus.DRAFT
        assert ReviewStatus.from_string(None) == ReviewStatus.DRAFT


class TestLock:
    """Tests for Lock."""

    def test_expiry_boundary(self):
        lock = Lock(holder="alice", expires_at=NOW)

        assert not lock.is_expired(NOW)
        assert lock.is_expired(NOW + timedelta(seconds=1))

    def test_round_trip(self):
        lock = Lock(holder="alice", expires_at=NOW)

        assert Lock.from_dict(lock.to_dict()) == lock

    def test_from_empty(self):
        assert Lock.from_dict(None) is None
        assert Lock.from_dict({"holder": None}) is None


class TestDocumentMetadata:
    """Tests for DocumentMetadata."""

    def test_from_dict_ignores_unknown(self):
        metadata = DocumentMetadata.from_dict({"remote_id": 42, "legacy": True})

        assert metadata.remote_id == 42
        assert not hasattr(metadata, "legacy")

    def test_to_dict_serializes_nested(self):
        metadata = DocumentMetadata(
            cache_timestamp=NOW,
            lock=Lock(holder="alice", expires_at=NOW),
        )

        data = metadata.to_dict()

        assert data["cache_timestamp"] == "2026-03-01T12:00:00+00:00"
        assert data["lock"] == {"holder": "alice", "expires_at": "2026-03-01T12:00:00+00:00"}

    def test_is_stakeholder(self):
        metadata = DocumentMetadata(stakeholders=["@alice", "bob"])

        assert metadata.is_stakeholder("alice")
        assert metadata.is_stakeholder("@bob")
        assert not metadata.is_stakeholder("carol")
