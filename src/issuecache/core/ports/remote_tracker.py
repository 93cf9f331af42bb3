"""
Remote Tracker Port - Abstract interface for the source of truth.

The remote issue tracker owns authoritative document state. This port
exposes one coroutine per remote capability (search, read, create, update,
comment) so implementations are swappable and easy to mock.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..exceptions import (
    AuthenticationError,
    NotFoundError,
    PermissionError,
    RemoteTrackerError,
    TransientError,
)


def _label_name(label: Any) -> Optional[str]:
    if isinstance(label, str):
        return label
    if isinstance(label, dict):
        return label.get("name")
    return None


def _login(user: Any) -> Optional[str]:
    if isinstance(user, str):
        return user
    if isinstance(user, dict):
        return user.get("login")
    return None


@dataclass
class RemoteIssue:
    """Tracker-agnostic view of a remote issue."""

    number: int
    title: str = ""
    body: Optional[str] = None
    state: str = "open"
    labels: list[str] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)
    updated_at: Optional[str] = None
    url: Optional[str] = None
    parse_error: Optional[str] = None

    @property
    def malformed(self) -> bool:
        """True for a placeholder standing in for an unparseable payload."""
        return self.parse_error is not None

    @property
    def assignee(self) -> Optional[str]:
        """Primary assignee, if any."""
        return self.assignees[0] if self.assignees else None

    def has_label(self, label: str) -> bool:
        return label in self.labels

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RemoteIssue":
        """
        Parse a GitHub-style issue payload.

        Labels may be plain strings or ``{"name": ...}`` objects; assignees
        come from ``assignees`` and fall back to the single ``assignee``.
        """
        labels = [
            name for name in (_label_name(lbl) for lbl in data.get("labels") or [])
            if name
        ]

        assignees = [
            login for login in (_login(a) for a in data.get("assignees") or [])
            if login
        ]
        single = _login(data.get("assignee"))
        if single and single not in assignees:
            assignees.insert(0, single)

        return cls(
            number=data["number"],
            title=data.get("title") or "",
            body=data.get("body"),
            state=data.get("state") or "open",
            labels=labels,
            assignees=assignees,
            updated_at=data.get("updated_at"),
            url=data.get("html_url"),
        )

    @classmethod
    def placeholder(cls, data: Any, error: str) -> "RemoteIssue":
        """Stand-in for a payload that ``from_dict`` could not parse."""
        number = data.get("number") if isinstance(data, dict) else None
        return cls(
            number=number if isinstance(number, int) else 0,
            parse_error=error,
        )


@dataclass(frozen=True)
class IssueQuery:
    """
    Structured issue search.

    Attributes:
        labels: Every one of these labels must be present.
        any_labels: At least one of these labels must be present.
        updated_since: Only issues updated at or after this instant.
        unassigned: Only issues with no assignee.
    """

    labels: tuple[str, ...] = ()
    any_labels: tuple[str, ...] = ()
    updated_since: Optional[datetime] = None
    unassigned: bool = False


class RemoteTrackerPort(ABC):
    """
    Abstract interface for the remote issue tracker.

    All methods are coroutines; every call is a suspension point.
    Implementations raise NotFoundError for missing issues and
    RemoteTrackerError subclasses for everything else.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the tracker name."""
        ...

    @abstractmethod
    async def search_issues(self, query: IssueQuery) -> list[RemoteIssue]:
        """Search issues matching the query."""
        ...

    @abstractmethod
    async def get_issue(self, remote_id: int) -> RemoteIssue:
        """Read a single issue."""
        ...

    @abstractmethod
    async def create_issue(
        self,
        title: str,
        body: str,
        labels: Optional[list[str]] = None,
    ) -> RemoteIssue:
        """Create an issue and return it."""
        ...

    @abstractmethod
    async def update_issue(
        self,
        remote_id: int,
        labels: Optional[list[str]] = None,
        assignees: Optional[list[str]] = None,
        body: Optional[str] = None,
    ) -> RemoteIssue:
        """
        Update an issue.

        Only the arguments that are not None are changed. ``labels`` and
        ``assignees`` replace the whole set.
        """
        ...

    @abstractmethod
    async def add_comment(self, remote_id: int, body: str) -> None:
        """Add a comment to an issue."""
        ...


__all__ = [
    "RemoteTrackerPort",
    "RemoteIssue",
    "IssueQuery",
    "RemoteTrackerError",
    "AuthenticationError",
    "NotFoundError",
    "PermissionError",
    "TransientError",
]
