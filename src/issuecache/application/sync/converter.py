"""
Issue Converter - Map remote issues to cached story documents.

Rendering is deterministic: the same remote issue always yields the same
content, so an unchanged issue hashes identically and a reconciliation
pass can skip it without touching the cache.
"""

import re
from typing import Optional

from ...core.ports.remote_tracker import RemoteIssue


# Label taxonomy
TYPE_STORY_LABEL = "type:story"
STORY_LABEL_PREFIX = "story:"
EPIC_LABEL_PREFIX = "epic:"
STATUS_LABEL_PREFIX = "status:"

STATUS_BACKLOG = "backlog"
STATUS_READY = "ready-for-dev"
STATUS_IN_PROGRESS = "in-progress"
STATUS_DONE = "done"

_TITLE_KEY_PATTERN = re.compile(r"Story\s+(\d+-\d+-[a-zA-Z0-9-]+)", re.IGNORECASE)
_TITLE_PREFIX_PATTERN = re.compile(r"^\s*Story\s+[\w-]+:\s*", re.IGNORECASE)


def story_label(key: str) -> str:
    return f"{STORY_LABEL_PREFIX}{key}"


def epic_label(group_id) -> str:
    return f"{EPIC_LABEL_PREFIX}{group_id}"


def status_label(status: str) -> str:
    return f"{STATUS_LABEL_PREFIX}{status}"


def extract_story_key(issue: RemoteIssue) -> Optional[str]:
    """
    Find the story key of an issue.

    A ``story:<key>`` label wins; otherwise a title of the form
    ``Story 2-5-auth: ...`` is used. Returns None if neither is present.
    """
    for label in issue.labels:
        if label.startswith(STORY_LABEL_PREFIX):
            key = label[len(STORY_LABEL_PREFIX):].strip()
            if key:
                return key

    match = _TITLE_KEY_PATTERN.search(issue.title or "")
    if match:
        return match.group(1)

    return None


def extract_status(issue: RemoteIssue) -> str:
    """Status from a ``status:`` label, else derived from open/closed state."""
    for label in issue.labels:
        if label.startswith(STATUS_LABEL_PREFIX):
            return label[len(STATUS_LABEL_PREFIX):]
    return STATUS_DONE if issue.state == "closed" else STATUS_BACKLOG


def render_story(issue: RemoteIssue, key: str) -> str:
    """Render a remote issue as cached story markdown."""
    title = _TITLE_PREFIX_PATTERN.sub("", issue.title or "")

    lines = [
        f"# Story {key}: {title}",
        "",
        f"**Issue:** #{issue.number}",
        f"**Status:** {extract_status(issue)}",
        f"**Assignee:** {issue.assignee or 'Unassigned'}",
        f"**Last Updated:** {issue.updated_at or 'unknown'}",
        "",
    ]

    if issue.body:
        lines.append(issue.body)

    lines.extend(["", "---", f"_Synced from issue #{issue.number} (updated {issue.updated_at or 'unknown'})_"])

    return "\n".join(lines)
