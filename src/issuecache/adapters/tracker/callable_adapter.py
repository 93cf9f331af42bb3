"""
Callable Tracker Adapter - RemoteTrackerPort over a tool-call function.

Agent runtimes expose the tracker as a single coroutine
``client(operation_name, params) -> result`` (for example a GitHub MCP
server). This adapter turns that string-keyed dispatch into the typed
RemoteTrackerPort so the sync engine never builds operation names or
query strings itself.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from ...core.domain.entities import format_timestamp
from ...core.exceptions import IssueCacheError, NotFoundError, TransientError
from ...core.ports.remote_tracker import IssueQuery, RemoteIssue, RemoteTrackerPort


ToolClient = Callable[[str, dict[str, Any]], Awaitable[Any]]


class CallableTrackerAdapter(RemoteTrackerPort):
    """
    GitHub-flavoured implementation of RemoteTrackerPort.

    Operations used: ``search_issues``, ``issue_read``, ``issue_write``
    and ``add_issue_comment``.
    """

    def __init__(
        self,
        client: ToolClient,
        owner: str,
        repo: str,
    ):
        """
        Initialize the adapter.

        Args:
            client: Coroutine function taking (operation_name, params)
            owner: Repository owner
            repo: Repository name
        """
        self._client = client
        self.owner = owner
        self.repo = repo
        self.logger = logging.getLogger("CallableTrackerAdapter")

    # -------------------------------------------------------------------------
    # RemoteTrackerPort Implementation
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return "GitHub"

    async def search_issues(self, query: IssueQuery) -> list[RemoteIssue]:
        data = await self._call("search_issues", {"query": self.build_query(query)})
        items = (data or {}).get("items") or []
        return [self._parse_item(item) for item in items]

    async def get_issue(self, remote_id: int) -> RemoteIssue:
        data = await self._call("issue_read", {
            "method": "get",
            **self._repo_params(),
            "issue_number": remote_id,
        })
        if not data:
            raise NotFoundError(f"Issue #{remote_id} not found", key=str(remote_id))
        return RemoteIssue.from_dict(data)

    async def create_issue(
        self,
        title: str,
        body: str,
        labels: Optional[list[str]] = None,
    ) -> RemoteIssue:
        data = await self._call("issue_write", {
            "method": "create",
            **self._repo_params(),
            "title": title,
            "body": body,
            "labels": list(labels or []),
        })
        issue = RemoteIssue.from_dict(data)
        self.logger.info(f"Created issue #{issue.number}")
        return issue

    async def update_issue(
        self,
        remote_id: int,
        labels: Optional[list[str]] = None,
        assignees: Optional[list[str]] = None,
        body: Optional[str] = None,
    ) -> RemoteIssue:
        params: dict[str, Any] = {
            "method": "update",
            **self._repo_params(),
            "issue_number": remote_id,
        }
        if labels is not None:
            params["labels"] = list(labels)
        if assignees is not None:
            params["assignees"] = list(assignees)
        if body is not None:
            params["body"] = body

        data = await self._call("issue_write", params)
        if isinstance(data, dict) and "number" in data:
            return RemoteIssue.from_dict(data)
        return RemoteIssue(
            number=remote_id,
            labels=list(labels or []),
            assignees=list(assignees or []),
        )

    async def add_comment(self, remote_id: int, body: str) -> None:
        await self._call("add_issue_comment", {
            **self._repo_params(),
            "issue_number": remote_id,
            "body": body,
        })

    # -------------------------------------------------------------------------
    # Query Building
    # -------------------------------------------------------------------------

    def build_query(self, query: IssueQuery) -> str:
        """Render an IssueQuery as a GitHub search string."""
        parts = [f"repo:{self.owner}/{self.repo}"]
        parts.extend(f"label:{label}" for label in query.labels)

        if query.unassigned:
            parts.append("no:assignee")

        if query.any_labels:
            alternatives = " OR ".join(f"label:{label}" for label in query.any_labels)
            parts.append(f"({alternatives})")

        if query.updated_since is not None:
            # Full timestamp, not a date: a date would reach back before the watermark
            since = format_timestamp(query.updated_since).replace("+00:00", "Z")
            parts.append(f"updated:>={since}")

        return " ".join(parts)

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    def _parse_item(self, item: Any) -> RemoteIssue:
        """Parse one search item; unparseable items become placeholders."""
        try:
            return RemoteIssue.from_dict(item)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            error = f"{type(e).__name__}: {e}"
            self.logger.warning(f"Unparseable search item: {error}")
            return RemoteIssue.placeholder(item, error)

    def _repo_params(self) -> dict[str, str]:
        return {"owner": self.owner, "repo": self.repo}

    async def _call(self, operation: str, params: dict[str, Any]) -> Any:
        """Invoke the tool client, mapping foreign errors to TransientError."""
        self.logger.debug(f"{operation} {params}")
        try:
            return await self._client(operation, params)
        except IssueCacheError:
            raise
        except Exception as e:
            raise TransientError(f"{operation} failed: {e}", cause=e) from e
