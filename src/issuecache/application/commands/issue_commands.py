"""
Issue Commands - Comment, label and assignee writes.

Each command is independent and idempotent at the level the tracker
allows: label changes read the current set and rewrite it, never append
blindly, and assignee changes replace the whole set.
"""

from typing import Optional

from ...core.domain.events import EventBus, IssueUpdated
from ..retry import RetryPolicy
from .base import Command, CommandResult


class AddCommentCommand(Command):
    """Add a comment to a remote issue."""

    def __init__(
        self,
        tracker,
        remote_id: int,
        body: str,
        key: str = "",
        retry: Optional[RetryPolicy] = None,
        event_bus: Optional[EventBus] = None,
        dry_run: bool = False,
    ):
        super().__init__(tracker, retry=retry, event_bus=event_bus, dry_run=dry_run)
        self.remote_id = remote_id
        self.body = body
        self.key = key

    @property
    def description(self) -> str:
        return f"add comment to issue #{self.remote_id}"

    def validate(self) -> Optional[str]:
        if not self.remote_id:
            return "Remote issue id is required"
        if not self.body:
            return "Comment body is required"
        return None

    async def _execute(self) -> CommandResult:
        await self.retry.run(
            lambda: self.tracker.add_comment(self.remote_id, self.body),
            f"Add comment to issue #{self.remote_id}",
        )
        if self.event_bus:
            self.event_bus.publish(IssueUpdated(
                key=self.key,
                remote_id=self.remote_id,
                comment_added=True,
            ))
        return CommandResult.ok()


class UpdateLabelsCommand(Command):
    """Apply add/remove label deltas to a remote issue."""

    def __init__(
        self,
        tracker,
        remote_id: int,
        add_labels: Optional[list[str]] = None,
        remove_labels: Optional[list[str]] = None,
        key: str = "",
        retry: Optional[RetryPolicy] = None,
        event_bus: Optional[EventBus] = None,
        dry_run: bool = False,
    ):
        super().__init__(tracker, retry=retry, event_bus=event_bus, dry_run=dry_run)
        self.remote_id = remote_id
        self.add_labels = list(add_labels or [])
        self.remove_labels = list(remove_labels or [])
        self.key = key

    @property
    def description(self) -> str:
        return (
            f"update labels on issue #{self.remote_id} "
            f"(+{self.add_labels} -{self.remove_labels})"
        )

    def validate(self) -> Optional[str]:
        if not self.remote_id:
            return "Remote issue id is required"
        if not self.add_labels and not self.remove_labels:
            return "No label changes given"
        return None

    @staticmethod
    def apply_delta(
        current: list[str],
        add_labels: list[str],
        remove_labels: list[str],
    ) -> list[str]:
        """Remove then add, preserving order and never duplicating."""
        labels = [label for label in current if label not in remove_labels]
        for label in add_labels:
            if label not in labels:
                labels.append(label)
        return labels

    async def _execute(self) -> CommandResult:
        issue = await self.retry.run(
            lambda: self.tracker.get_issue(self.remote_id),
            f"Read issue #{self.remote_id}",
        )
        labels = self.apply_delta(issue.labels, self.add_labels, self.remove_labels)

        if labels == issue.labels:
            return CommandResult.skip("labels unchanged")

        await self.retry.run(
            lambda: self.tracker.update_issue(self.remote_id, labels=labels),
            f"Update labels on issue #{self.remote_id}",
        )
        if self.event_bus:
            self.event_bus.publish(IssueUpdated(
                key=self.key,
                remote_id=self.remote_id,
                labels=tuple(labels),
            ))
        return CommandResult.ok(labels)


class SetAssigneesCommand(Command):
    """Replace the assignee set of a remote issue."""

    def __init__(
        self,
        tracker,
        remote_id: int,
        assignees: list[str],
        retry: Optional[RetryPolicy] = None,
        event_bus: Optional[EventBus] = None,
        dry_run: bool = False,
    ):
        super().__init__(tracker, retry=retry, event_bus=event_bus, dry_run=dry_run)
        self.remote_id = remote_id
        self.assignees = list(assignees)

    @property
    def description(self) -> str:
        if self.assignees:
            return f"assign issue #{self.remote_id} to {', '.join(self.assignees)}"
        return f"unassign issue #{self.remote_id}"

    def validate(self) -> Optional[str]:
        if not self.remote_id:
            return "Remote issue id is required"
        return None

    async def _execute(self) -> CommandResult:
        issue = await self.retry.run(
            lambda: self.tracker.update_issue(self.remote_id, assignees=self.assignees),
            f"Set assignees on issue #{self.remote_id}",
        )
        return CommandResult.ok(issue)
