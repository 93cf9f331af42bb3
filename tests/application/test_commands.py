"""Tests for application commands."""

import asyncio

import pytest
from unittest.mock import AsyncMock, Mock

from issuecache.application.commands import (
    AddCommentCommand,
    CommandBatch,
    CommandResult,
    SetAssigneesCommand,
    UpdateLabelsCommand,
)
from issuecache.application.retry import RetryPolicy
from issuecache.core.domain.events import EventBus, IssueUpdated
from issuecache.core.exceptions import RetryExhaustedError, TransientError
from issuecache.core.ports.remote_tracker import RemoteIssue


class TestCommandResult:
    """Tests for CommandResult."""

    def test_ok(self):
        result = CommandResult.ok("data")
        assert result.success
        assert result.data == "data"
        assert not result.dry_run

    def test_ok_dry_run(self):
        result = CommandResult.ok("data", dry_run=True)
        assert result.success
        assert result.dry_run

    def test_fail(self):
        result = CommandResult.fail("error message")
        assert not result.success
        assert result.error == "error message"

    def test_skip(self):
        result = CommandResult.skip("reason")
        assert result.success
        assert result.skipped
        assert result.skip_reason == "reason"


@pytest.fixture
def mock_tracker():
    tracker = Mock()
    tracker.get_issue = AsyncMock(return_value=RemoteIssue(
        number=42,
        labels=["type:story", "status:ready-for-dev"],
    ))
    tracker.update_issue = AsyncMock(return_value=RemoteIssue(number=42, assignees=["alice"]))
    tracker.add_comment = AsyncMock(return_value=None)
    return tracker


@pytest.fixture
def retry(sleep):
    return RetryPolicy(sleep=sleep)


class TestAddCommentCommand:
    """Tests for AddCommentCommand."""

    def test_validate_missing_id(self, mock_tracker):
        cmd = AddCommentCommand(tracker=mock_tracker, remote_id=None, body="Hi")
        assert cmd.validate() is not None

    def test_validate_missing_body(self, mock_tracker):
        cmd = AddCommentCommand(tracker=mock_tracker, remote_id=42, body="")
        assert cmd.validate() is not None

    def test_execute_dry_run(self, mock_tracker):
        cmd = AddCommentCommand(tracker=mock_tracker, remote_id=42, body="Hi", dry_run=True)

        result = asyncio.run(cmd.execute())

        assert result.success
        assert result.dry_run
        mock_tracker.add_comment.assert_not_called()

    def test_execute_success(self, mock_tracker, retry):
        bus = EventBus()
        cmd = AddCommentCommand(
            tracker=mock_tracker, remote_id=42, body="Hi",
            key="2-5-auth", retry=retry, event_bus=bus,
        )

        result = asyncio.run(cmd.execute())

        assert result.success
        mock_tracker.add_comment.assert_awaited_once_with(42, "Hi")
        event = bus.get_history()[0]
        assert isinstance(event, IssueUpdated)
        assert event.comment_added
        assert event.key == "2-5-auth"

    def test_execute_exhausted(self, mock_tracker, retry, sleep):
        mock_tracker.add_comment.side_effect = TransientError("down")
        cmd = AddCommentCommand(tracker=mock_tracker, remote_id=42, body="Hi", retry=retry)

        result = asyncio.run(cmd.execute())

        assert not result.success
        assert isinstance(result.exception, RetryExhaustedError)
        assert mock_tracker.add_comment.await_count == 4
        assert sleep.delays == [1.0, 3.0, 9.0]


class TestUpdateLabelsCommand:
    """Tests for UpdateLabelsCommand."""

    def test_apply_delta(self):
        labels = UpdateLabelsCommand.apply_delta(
            ["type:story", "status:backlog", "status:ready-for-dev"],
            add_labels=["status:in-progress"],
            remove_labels=["status:backlog", "status:ready-for-dev"],
        )
        assert labels == ["type:story", "status:in-progress"]

    def test_apply_delta_no_duplicates(self):
        labels = UpdateLabelsCommand.apply_delta(["a"], add_labels=["a", "b"], remove_labels=[])
        assert labels == ["a", "b"]

    def test_validate_no_changes(self, mock_tracker):
        cmd = UpdateLabelsCommand(tracker=mock_tracker, remote_id=42)
        assert cmd.validate() is not None

    def test_execute_applies_delta(self, mock_tracker, retry):
        cmd = UpdateLabelsCommand(
            tracker=mock_tracker, remote_id=42,
            add_labels=["status:in-progress"],
            remove_labels=["status:ready-for-dev"],
            retry=retry,
        )

        result = asyncio.run(cmd.execute())

        assert result.success
        assert result.data == ["type:story", "status:in-progress"]
        mock_tracker.update_issue.assert_awaited_once_with(
            42, labels=["type:story", "status:in-progress"]
        )

    def test_execute_unchanged_skips_update(self, mock_tracker, retry):
        cmd = UpdateLabelsCommand(
            tracker=mock_tracker, remote_id=42,
            add_labels=["status:ready-for-dev"],
            remove_labels=["status:done"],
            retry=retry,
        )

        result = asyncio.run(cmd.execute())

        assert result.success
        assert result.skipped
        mock_tracker.update_issue.assert_not_called()


class TestSetAssigneesCommand:
    """Tests for SetAssigneesCommand."""

    def test_description(self, mock_tracker):
        assert "alice" in SetAssigneesCommand(mock_tracker, 42, ["alice"]).description
        assert "unassign" in SetAssigneesCommand(mock_tracker, 42, []).description

    def test_execute(self, mock_tracker, retry):
        cmd = SetAssigneesCommand(mock_tracker, 42, ["alice"], retry=retry)

        result = asyncio.run(cmd.execute())

        assert result.success
        assert result.data.assignees == ["alice"]
        mock_tracker.update_issue.assert_awaited_once_with(42, assignees=["alice"])


class TestCommandBatch:
    """Tests for CommandBatch."""

    def test_execute_all(self, mock_tracker, retry):
        batch = CommandBatch()
        batch.add(AddCommentCommand(mock_tracker, 42, "One", retry=retry))
        batch.add(AddCommentCommand(mock_tracker, 42, "Two", retry=retry))

        results = asyncio.run(batch.execute_all())

        assert len(results) == 2
        assert batch.all_succeeded
        assert batch.executed_count == 2
        assert batch.first_failure is None

    def test_stop_on_error(self, mock_tracker, retry):
        batch = CommandBatch(stop_on_error=True)
        batch.add(AddCommentCommand(mock_tracker, 42, "", retry=retry))
        batch.add(AddCommentCommand(mock_tracker, 42, "Two", retry=retry))

        results = asyncio.run(batch.execute_all())

        assert len(results) == 1
        assert batch.failed_count == 1
        mock_tracker.add_comment.assert_not_called()

    def test_continue_on_error(self, mock_tracker, retry):
        batch = CommandBatch(stop_on_error=False)
        batch.add(AddCommentCommand(mock_tracker, 42, "", retry=retry))
        batch.add(AddCommentCommand(mock_tracker, 42, "Two", retry=retry))

        results = asyncio.run(batch.execute_all())

        assert len(results) == 2
        assert not batch.all_succeeded
        assert batch.first_failure is results[0]
        mock_tracker.add_comment.assert_awaited_once_with(42, "Two")
