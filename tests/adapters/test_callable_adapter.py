"""Tests for CallableTrackerAdapter."""

import asyncio
from datetime import datetime, timezone

import pytest
from unittest.mock import AsyncMock

from issuecache.adapters.tracker import CallableTrackerAdapter
from issuecache.core.exceptions import NotFoundError, PermissionError, TransientError
from issuecache.core.ports.remote_tracker import IssueQuery, RemoteIssue


ISSUE_PAYLOAD = {
    "number": 42,
    "title": "Story 2-5-auth: Login",
    "body": "Body",
    "state": "open",
    "labels": [{"name": "type:story"}, {"name": "story:2-5-auth"}],
    "assignees": [{"login": "alice"}],
    "updated_at": "2026-03-01T10:00:00Z",
    "html_url": "https://github.com/acme/app/issues/42",
}


@pytest.fixture
def client():
    return AsyncMock()


@pytest.fixture
def adapter(client):
    return CallableTrackerAdapter(client, owner="acme", repo="app")


class TestBuildQuery:
    """Tests for search query rendering."""

    def test_labels(self, adapter):
        query = IssueQuery(labels=("type:story", "epic:2"))

        assert adapter.build_query(query) == "repo:acme/app label:type:story label:epic:2"

    def test_updated_since_full_timestamp(self, adapter):
        since = datetime(2026, 3, 1, 12, 30, 15, tzinfo=timezone.utc)
        query = IssueQuery(labels=("type:story",), updated_since=since)

        assert adapter.build_query(query).endswith("updated:>=2026-03-01T12:30:15Z")

    def test_unassigned_and_any_labels(self, adapter):
        query = IssueQuery(
            labels=("type:story",),
            any_labels=("status:ready-for-dev", "status:backlog"),
            unassigned=True,
        )

        assert adapter.build_query(query) == (
            "repo:acme/app label:type:story no:assignee "
            "(label:status:ready-for-dev OR label:status:backlog)"
        )


class TestRemoteIssueParsing:
    """Tests for RemoteIssue.from_dict."""

    def test_parse_objects(self):
        issue = RemoteIssue.from_dict(ISSUE_PAYLOAD)

        assert issue.number == 42
        assert issue.labels == ["type:story", "story:2-5-auth"]
        assert issue.assignee == "alice"
        assert issue.url == "https://github.com/acme/app/issues/42"

    def test_placeholder_keeps_number(self):
        issue = RemoteIssue.placeholder({"number": 7, "labels": 5}, "TypeError: bad labels")

        assert issue.number == 7
        assert issue.malformed
        assert issue.labels == []

    def test_parse_plain_strings_and_single_assignee(self):
        issue = RemoteIssue.from_dict({
            "number": 7,
            "labels": ["type:story"],
            "assignee": {"login": "bob"},
        })

        assert issue.labels == ["type:story"]
        assert issue.assignees == ["bob"]
        assert issue.state == "open"


class TestOperations:
    """Tests for operation dispatch."""

    def test_search(self, adapter, client):
        client.return_value = {"items": [ISSUE_PAYLOAD]}

        issues = asyncio.run(adapter.search_issues(IssueQuery(labels=("type:story",))))

        assert [i.number for i in issues] == [42]
        client.assert_awaited_once_with(
            "search_issues", {"query": "repo:acme/app label:type:story"}
        )

    def test_search_malformed_item(self, adapter, client):
        client.return_value = {"items": [
            ISSUE_PAYLOAD,
            {"title": "No number"},
            "not an object",
        ]}

        issues = asyncio.run(adapter.search_issues(IssueQuery()))

        assert len(issues) == 3
        assert not issues[0].malformed
        assert issues[1].malformed
        assert issues[1].number == 0
        assert "number" in issues[1].parse_error
        assert issues[2].malformed

    def test_search_empty(self, adapter, client):
        client.return_value = {}

        assert asyncio.run(adapter.search_issues(IssueQuery())) == []

    def test_get_issue(self, adapter, client):
        client.return_value = ISSUE_PAYLOAD

        issue = asyncio.run(adapter.get_issue(42))

        assert issue.title == "Story 2-5-auth: Login"
        client.assert_awaited_once_with("issue_read", {
            "method": "get", "owner": "acme", "repo": "app", "issue_number": 42,
        })

    def test_get_issue_missing(self, adapter, client):
        client.return_value = None

        with pytest.raises(NotFoundError):
            asyncio.run(adapter.get_issue(404))

    def test_update_only_sends_given_fields(self, adapter, client):
        client.return_value = ISSUE_PAYLOAD

        asyncio.run(adapter.update_issue(42, assignees=["alice"]))

        operation, params = client.await_args.args
        assert operation == "issue_write"
        assert params["method"] == "update"
        assert params["assignees"] == ["alice"]
        assert "labels" not in params
        assert "body" not in params

    def test_update_without_payload(self, adapter, client):
        client.return_value = {"ok": True}

        issue = asyncio.run(adapter.update_issue(42, labels=["a"]))

        assert issue.number == 42
        assert issue.labels == ["a"]

    def test_create_issue(self, adapter, client):
        client.return_value = {"number": 50, "title": "New"}

        issue = asyncio.run(adapter.create_issue("New", "Body", labels=["type:story"]))

        assert issue.number == 50
        params = client.await_args.args[1]
        assert params["method"] == "create"
        assert params["labels"] == ["type:story"]

    def test_add_comment(self, adapter, client):
        client.return_value = {"id": 1}

        asyncio.run(adapter.add_comment(42, "hello"))

        client.assert_awaited_once_with("add_issue_comment", {
            "owner": "acme", "repo": "app", "issue_number": 42, "body": "hello",
        })


class TestErrorMapping:
    """Tests for client error translation."""

    def test_foreign_error_becomes_transient(self, adapter, client):
        client.side_effect = ConnectionError("reset")

        with pytest.raises(TransientError) as excinfo:
            asyncio.run(adapter.get_issue(42))

        assert isinstance(excinfo.value.cause, ConnectionError)

    def test_own_errors_pass_through(self, adapter, client):
        client.side_effect = PermissionError("denied")

        with pytest.raises(PermissionError):
            asyncio.run(adapter.add_comment(42, "hi"))
