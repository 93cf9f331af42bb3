"""Shared fixtures: fake clock, recording sleep and an in-memory tracker."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from issuecache.core.domain.entities import parse_timestamp
from issuecache.core.exceptions import NotFoundError
from issuecache.core.ports.config_provider import CacheConfig
from issuecache.core.ports.remote_tracker import IssueQuery, RemoteIssue, RemoteTrackerPort
from issuecache.adapters.cache import CacheManager


START = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingSleep:
    """Sleep coroutine that records delays instead of waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeTracker(RemoteTrackerPort):
    """
    In-memory tracker.

    ``failures`` maps a method name to a list of exceptions raised, in
    order, by the next calls to that method.
    """

    def __init__(self):
        self.issues: dict[int, RemoteIssue] = {}
        self.comments: dict[int, list[str]] = {}
        self.calls: list[tuple[str, object]] = []
        self.failures: dict[str, list[Exception]] = {}
        self.ignore_assignees = False

    @property
    def name(self) -> str:
        return "Fake"

    def add(self, issue: RemoteIssue) -> RemoteIssue:
        self.issues[issue.number] = issue
        return issue

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def _record(self, method: str, arg=None) -> None:
        self.calls.append((method, arg))
        pending = self.failures.get(method)
        if pending:
            raise pending.pop(0)

    async def search_issues(self, query: IssueQuery) -> list[RemoteIssue]:
        self._record("search_issues", query)
        results = []
        for issue in self.issues.values():
            if not all(label in issue.labels for label in query.labels):
                continue
            if query.any_labels and not any(l in issue.labels for l in query.any_labels):
                continue
            if query.unassigned and issue.assignees:
                continue
            if query.updated_since is not None:
                updated = parse_timestamp(issue.updated_at)
                if updated is None or updated < query.updated_since:
                    continue
            results.append(issue)
        return results

    async def get_issue(self, remote_id: int) -> RemoteIssue:
        self._record("get_issue", remote_id)
        if remote_id not in self.issues:
            raise NotFoundError(f"Issue #{remote_id} not found")
        return self.issues[remote_id]

    async def create_issue(self, title: str, body: str, labels: Optional[list] = None) -> RemoteIssue:
        self._record("create_issue", title)
        number = max(self.issues, default=0) + 1
        return self.add(RemoteIssue(number=number, title=title, body=body, labels=list(labels or [])))

    async def update_issue(self, remote_id, labels=None, assignees=None, body=None) -> RemoteIssue:
        self._record("update_issue", {"labels": labels, "assignees": assignees})
        issue = self.issues[remote_id]
        if labels is not None:
            issue.labels = list(labels)
        if assignees is not None and not self.ignore_assignees:
            issue.assignees = list(assignees)
        if body is not None:
            issue.body = body
        return issue

    async def add_comment(self, remote_id: int, body: str) -> None:
        self._record("add_comment", body)
        self.comments.setdefault(remote_id, []).append(body)


def story_issue(
    number: int,
    key: Optional[str],
    status: str = "ready-for-dev",
    epic: Optional[int] = 2,
    assignees: Optional[list] = None,
    updated_at: str = "2026-03-01T11:00:00Z",
) -> RemoteIssue:
    labels = ["type:story", f"status:{status}"]
    if key:
        labels.append(f"story:{key}")
    if epic is not None:
        labels.append(f"epic:{epic}")
    return RemoteIssue(
        number=number,
        title=f"Story {key}: Example" if key else "Untitled",
        body="Story body",
        labels=labels,
        assignees=list(assignees or []),
        updated_at=updated_at,
        url=f"https://github.com/acme/app/issues/{number}",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def tracker():
    return FakeTracker()


@pytest.fixture
def cache(tmp_path, clock):
    config = CacheConfig(cache_dir=tmp_path / "cache", owner="acme", repo="app")
    return CacheManager(config, clock=clock)


@pytest.fixture
def make_story():
    return story_issue
