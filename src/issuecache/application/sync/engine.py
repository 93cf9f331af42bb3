"""
Sync Engine - Reconciles the local cache with the remote tracker.

The remote tracker is the source of truth. The engine pulls changed
issues into the cache (incremental and full sync, single-story sync,
epic pre-fetch) and pushes local actions back (comments, labels,
assignment) with bounded retries.

Features:
- Incremental sync driven by a committed watermark
- Epic pre-fetch in a single search
- Retry with fixed 1s/3s/9s backoff on every remote call
- Post-write verification after an eventual-consistency settle delay
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ...adapters.cache.manager import CacheManager
from ...core.domain.entities import Lock
from ...core.domain.events import (
    DocumentSynced,
    EventBus,
    LockAcquired,
    LockReleased,
    SyncCompleted,
    SyncSkipped,
    SyncStarted,
)
from ...core.exceptions import (
    IssueCacheError,
    NotFoundError,
    NotSyncedError,
    VerificationError,
)
from ...core.ports.config_provider import SyncConfig
from ...core.ports.remote_tracker import IssueQuery, RemoteIssue, RemoteTrackerPort
from ..commands import (
    AddCommentCommand,
    CommandBatch,
    SetAssigneesCommand,
    UpdateLabelsCommand,
)
from ..retry import RetryPolicy, Sleep
from .converter import (
    STATUS_BACKLOG,
    STATUS_IN_PROGRESS,
    STATUS_READY,
    TYPE_STORY_LABEL,
    epic_label,
    extract_status,
    extract_story_key,
    render_story,
    status_label,
    story_label,
)
from .guard import SyncGuard
from .results import (
    AssignResult,
    Availability,
    AvailableStory,
    PrefetchResult,
    PushResult,
    StorySyncResult,
    SyncFailure,
    SyncResult,
)


SYNC_IN_PROGRESS = "sync_in_progress"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncEngine:
    """
    Orchestrates reconciliation between the cache and the remote tracker.

    At most one sync pass runs per guard; a concurrent request returns a
    skipped result instead of queueing.
    """

    def __init__(
        self,
        cache: CacheManager,
        tracker: RemoteTrackerPort,
        config: Optional[SyncConfig] = None,
        event_bus: Optional[EventBus] = None,
        guard: Optional[SyncGuard] = None,
        sleep: Optional[Sleep] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the engine.

        Args:
            cache: Cache manager for the local mirror
            tracker: Remote tracker port (source of truth)
            config: Sync configuration
            event_bus: Optional event bus
            guard: Optional shared in-flight guard
            sleep: Coroutine used for backoff and settle delays
            clock: Callable returning the current aware datetime
        """
        self.cache = cache
        self.tracker = tracker
        self.config = config or SyncConfig()
        self.event_bus = event_bus or EventBus()
        self.guard = guard or SyncGuard()
        self.retry = RetryPolicy(self.config.retry_backoff_seconds, sleep=sleep)
        self.logger = logging.getLogger("SyncEngine")
        self._clock = clock or _utc_now

    @property
    def sync_in_progress(self) -> bool:
        return self.guard.in_progress

    @property
    def lock_ttl(self) -> timedelta:
        return timedelta(hours=self.config.lock_ttl_hours)

    # -------------------------------------------------------------------------
    # Pull: Remote -> Cache
    # -------------------------------------------------------------------------

    async def incremental_sync(self, force: bool = False) -> SyncResult:
        """
        Fetch stories changed since the last committed sync.

        Args:
            force: Ignore the watermark and fetch every story

        Returns:
            SyncResult with updated/unchanged/error lists
        """
        token = self.guard.try_acquire()
        if token is None:
            self.logger.info("Sync already in progress, skipping")
            self.event_bus.publish(SyncSkipped(reason=SYNC_IN_PROGRESS))
            return SyncResult.skip(SYNC_IN_PROGRESS)

        try:
            return await self._run_sync_pass(force)
        finally:
            self.guard.release(token)

    async def full_sync(self) -> SyncResult:
        """Invalidate the whole mirror, then run a forced sync pass."""
        self.logger.info("Starting full sync (initial cache population)")
        self.cache.invalidate_all()
        return await self.incremental_sync(force=True)

    async def sync_story(
        self,
        key: str,
        issue: Optional[RemoteIssue] = None,
    ) -> StorySyncResult:
        """
        Reconcile one story with its remote issue.

        The cache is written only when the rendered content differs from
        what is stored; an unchanged story keeps its cache timestamp.

        Args:
            key: Story key
            issue: Optional pre-fetched remote issue

        Raises:
            NotFoundError: If no remote issue carries the story label
        """
        if issue is None:
            issue = await self._find_story_issue(key)

        content = render_story(issue, key)

        if not self.cache.has_content_changed(key, content):
            self.logger.debug(f"{key} unchanged")
            return StorySyncResult(key=key, status="unchanged", remote_id=issue.number)

        lock = None
        if issue.assignee:
            lock = Lock(holder=issue.assignee, expires_at=self._clock() + self.lock_ttl)

        self.cache.write(key, content, {
            "remote_id": issue.number,
            "remote_updated_at": issue.updated_at,
            "status": extract_status(issue),
            "lock": lock,
        })

        self.logger.info(f"{key} synced (issue #{issue.number})")
        self.event_bus.publish(DocumentSynced(key=key, remote_id=issue.number))

        return StorySyncResult(key=key, status="updated", remote_id=issue.number)

    async def pre_fetch_epic(self, group_id) -> PrefetchResult:
        """
        Warm the cache with every story of an epic in one search.

        Issues without a story key are skipped; unparseable issues are
        recorded as errors.
        """
        self.logger.info(f"Pre-fetching epic {group_id}")
        result = PrefetchResult(group_id=str(group_id))

        issues = await self.retry.run(
            lambda: self.tracker.search_issues(
                IssueQuery(labels=(epic_label(group_id), TYPE_STORY_LABEL))
            ),
            f"Pre-fetch epic {group_id}",
        )

        for issue in issues:
            if issue.malformed:
                result.errors.append(SyncFailure(
                    item=f"#{issue.number or '?'}",
                    error=f"Unparseable issue: {issue.parse_error}",
                ))
                continue

            key = extract_story_key(issue)
            if not key:
                self.logger.debug(f"Skipping issue #{issue.number} - no story key")
                continue

            try:
                await self.sync_story(key, issue)
                result.stories.append(key)
            except (IssueCacheError, OSError) as e:
                self.logger.warning(f"Failed to cache {key}: {e}")
                result.errors.append(SyncFailure(item=key, error=str(e)))

        self.logger.info(f"Epic {group_id} pre-fetched: {len(result.stories)} stories cached")
        return result

    # -------------------------------------------------------------------------
    # Push: Cache -> Remote
    # -------------------------------------------------------------------------

    async def push(
        self,
        key: str,
        comment: Optional[str] = None,
        add_labels: Optional[list[str]] = None,
        remove_labels: Optional[list[str]] = None,
    ) -> PushResult:
        """
        Write local changes through to the remote issue.

        The comment and the label delta are independent commands; both are
        attempted even if one fails. After a settle delay the issue is read
        back as a best-effort check.

        Raises:
            NotSyncedError: If the story has no remote id
            RetryExhaustedError: If a remote write kept failing
        """
        remote_id = self._require_remote_id(key)

        batch = CommandBatch(stop_on_error=False)
        comment_cmd = None
        labels_cmd = None

        if comment:
            comment_cmd = AddCommentCommand(
                self.tracker, remote_id, comment, key=key,
                retry=self.retry, event_bus=self.event_bus, dry_run=self.config.dry_run,
            )
            batch.add(comment_cmd)

        if add_labels or remove_labels:
            labels_cmd = UpdateLabelsCommand(
                self.tracker, remote_id,
                add_labels=add_labels, remove_labels=remove_labels, key=key,
                retry=self.retry, event_bus=self.event_bus, dry_run=self.config.dry_run,
            )
            batch.add(labels_cmd)

        results = await batch.execute_all()

        failure = batch.first_failure
        if failure is not None:
            if failure.exception is not None:
                raise failure.exception
            raise IssueCacheError(failure.error or "Write-through failed", key=key)

        result = PushResult(key=key, remote_id=remote_id, dry_run=self.config.dry_run)
        for cmd, cmd_result in zip(batch.commands, results):
            if cmd is comment_cmd:
                result.comment_added = not cmd_result.dry_run
            elif cmd is labels_cmd and cmd_result.data is not None:
                result.labels = cmd_result.data

        if self.config.dry_run:
            return result

        # Settle, then re-read; eventual consistency makes this best effort
        await self.retry.sleep(self.config.settle_delay_seconds)
        result.issue = await self.retry.run(
            lambda: self.tracker.get_issue(remote_id),
            f"Verify issue #{remote_id}",
        )
        result.verified = True

        self.logger.info(f"Issue #{remote_id} updated and verified")
        return result

    async def sync_progress(
        self,
        key: str,
        task_num: int,
        total_tasks: int,
        description: str,
        percentage: Optional[int] = None,
    ) -> PushResult:
        """Post a task-progress comment on the story's issue."""
        if percentage is None:
            percentage = round(task_num * 100 / total_tasks) if total_tasks else 0

        comment = (
            f"**Task {task_num}/{total_tasks} complete** ({percentage}%)\n\n"
            f"> {description}\n\n"
            f"_Progress synced at {self._clock().isoformat()}_"
        )
        return await self.push(key, comment=comment)

    # -------------------------------------------------------------------------
    # Assignment (Soft Locks)
    # -------------------------------------------------------------------------

    async def assign(self, key: str, holder: str) -> AssignResult:
        """
        Assign a story to ``holder`` and record the soft lock.

        Raises:
            NotFoundError: If the story has no remote issue
            VerificationError: If the re-read issue lacks the assignee
        """
        remote_id = await self._resolve_remote_id(key)

        assign_cmd = SetAssigneesCommand(
            self.tracker, remote_id, [holder],
            retry=self.retry, event_bus=self.event_bus, dry_run=self.config.dry_run,
        )
        outcome = await assign_cmd.execute()
        if not outcome.success:
            raise outcome.exception or IssueCacheError(outcome.error, key=key)

        hours = f"{self.config.lock_ttl_hours:g}"
        pushed = await self.push(
            key,
            add_labels=[status_label(STATUS_IN_PROGRESS)],
            remove_labels=[status_label(STATUS_BACKLOG), status_label(STATUS_READY)],
            comment=f"**Story locked by @{holder}**\n\nLock expires in {hours} hours.",
        )

        if self.config.dry_run:
            return AssignResult(key=key, remote_id=remote_id, assignee=holder, dry_run=True)

        lock = self.cache.acquire_lock(key, holder, self.lock_ttl)

        if pushed.issue is None or holder not in pushed.issue.assignees:
            raise VerificationError(
                f"Assignment verification failed: {holder} not assigned to issue #{remote_id}",
                key=key,
            )

        self.logger.info(f"Story {key} assigned to @{holder}")
        self.event_bus.publish(LockAcquired(
            key=key, holder=holder, expires_at=lock.expires_at, source="local",
        ))

        return AssignResult(
            key=key,
            remote_id=remote_id,
            assignee=holder,
            lock_expiry=lock.expires_at,
        )

    async def unassign(self, key: str, reason: Optional[str] = None) -> AssignResult:
        """
        Remove every assignee from a story and clear the soft lock.

        Raises:
            NotSyncedError: If the story has no remote id
            VerificationError: If the re-read issue still has an assignee
        """
        remote_id = self._require_remote_id(key)

        unassign_cmd = SetAssigneesCommand(
            self.tracker, remote_id, [],
            retry=self.retry, event_bus=self.event_bus, dry_run=self.config.dry_run,
        )
        outcome = await unassign_cmd.execute()
        if not outcome.success:
            raise outcome.exception or IssueCacheError(outcome.error, key=key)

        comment = "**Story unlocked**"
        if reason:
            comment += f"\n\nReason: {reason}"

        pushed = await self.push(
            key,
            add_labels=[status_label(STATUS_READY)],
            remove_labels=[status_label(STATUS_IN_PROGRESS)],
            comment=comment,
        )

        if self.config.dry_run:
            return AssignResult(key=key, remote_id=remote_id, unlocked=True, dry_run=True)

        self.cache.release_lock(key)

        if pushed.issue is None or pushed.issue.assignees:
            raise VerificationError(
                f"Unassignment verification failed: issue #{remote_id} still assigned",
                key=key,
            )

        self.logger.info(f"Story {key} unlocked")
        self.event_bus.publish(LockReleased(key=key, reason=reason))

        return AssignResult(key=key, remote_id=remote_id, unlocked=True)

    async def check_availability(self, key: str, actor: str) -> Availability:
        """
        Check whether ``actor`` may pick up a story.

        A live cached lock held by someone else answers without a remote
        call. Otherwise the remote issue decides, and the cached lock is
        corrected when it disagrees.
        """
        status = self.cache.get_lock_status(key)

        if status and not status.expired and status.holder != actor:
            return Availability(
                available=False,
                holder=status.holder,
                expires_at=status.expires_at,
                source="cache",
            )

        try:
            issue = await self._find_story_issue(key)
        except NotFoundError as e:
            return Availability(available=False, error=str(e))

        assignee = issue.assignee

        if assignee and assignee != actor:
            lock = self.cache.acquire_lock(key, assignee, self.lock_ttl)
            self.event_bus.publish(LockAcquired(
                key=key, holder=assignee, expires_at=lock.expires_at, source="remote",
            ))
            return Availability(
                available=False,
                holder=assignee,
                expires_at=lock.expires_at,
                remote_id=issue.number,
                source="remote",
            )

        if assignee is None and status is not None:
            self.cache.release_lock(key)
        elif assignee == actor and (status is None or status.expired):
            self.cache.acquire_lock(key, actor, self.lock_ttl)

        return Availability(available=True, remote_id=issue.number, source="remote")

    async def get_available_stories(
        self,
        group_id=None,
        status: Optional[str] = None,
    ) -> list[AvailableStory]:
        """
        Unassigned stories open for pickup.

        Defaults to stories in ``ready-for-dev`` or ``backlog``.
        """
        labels = [TYPE_STORY_LABEL]
        if group_id is not None:
            labels.append(epic_label(group_id))
        if status:
            labels.append(status_label(status))

        any_labels = () if status else (status_label(STATUS_READY), status_label(STATUS_BACKLOG))
        query = IssueQuery(labels=tuple(labels), any_labels=any_labels, unassigned=True)

        issues = await self.retry.run(
            lambda: self.tracker.search_issues(query),
            "Search for available stories",
        )

        stories = []
        for issue in issues:
            key = None if issue.malformed else extract_story_key(issue)
            if not key:
                continue
            stories.append(AvailableStory(
                key=key,
                title=issue.title,
                remote_id=issue.number,
                status=extract_status(issue),
                labels=tuple(issue.labels),
                url=issue.url,
            ))
        return stories

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    async def _run_sync_pass(self, force: bool) -> SyncResult:
        previous = self.cache.get_last_sync()
        watermark = None if force else previous

        result = SyncResult(forced=force, watermark=watermark, started_at=self._clock())
        self.event_bus.publish(SyncStarted(watermark=watermark, forced=force))
        self.logger.info(
            f"Starting incremental sync (last sync: {watermark.isoformat() if watermark else 'never'})"
        )

        query = IssueQuery(labels=(TYPE_STORY_LABEL,), updated_since=watermark)
        issues = await self.retry.run(
            lambda: self.tracker.search_issues(query),
            "Search for updated stories",
        )
        self.logger.info(f"Found {len(issues)} stories to sync")

        for issue in issues:
            if issue.malformed:
                self.logger.warning(f"Skipping unparseable issue: {issue.parse_error}")
                result.add_error(f"#{issue.number or '?'}", f"Unparseable issue: {issue.parse_error}")
                continue

            key = extract_story_key(issue)

            if not key:
                self.logger.warning(f"Skipping issue #{issue.number} - no story key found")
                result.add_error(f"#{issue.number}", "No story key")
                continue

            try:
                story = await self.sync_story(key, issue)
            except (IssueCacheError, OSError) as e:
                self.logger.warning(f"Failed to sync {key}: {e}")
                result.add_error(key, str(e))
                continue

            if story.changed:
                result.updated.append(key)
            else:
                result.unchanged.append(key)

        # Watermark is the pass start, and never moves backwards
        committed = result.started_at
        if previous is not None and previous > committed:
            committed = previous
        result.committed_watermark = self.cache.update_last_sync(committed)
        result.finished_at = self._clock()

        self.event_bus.publish(SyncCompleted(
            watermark=result.committed_watermark,
            updated=len(result.updated),
            unchanged=len(result.unchanged),
            errors=len(result.errors),
        ))
        self.logger.info(
            f"Sync complete: {len(result.updated)} updated, "
            f"{len(result.unchanged)} unchanged, {len(result.errors)} errors"
        )
        return result

    async def _find_story_issue(self, key: str) -> RemoteIssue:
        issues = await self.retry.run(
            lambda: self.tracker.search_issues(IssueQuery(labels=(story_label(key),))),
            f"Fetch story {key}",
        )
        issues = [issue for issue in issues if not issue.malformed]
        if not issues:
            raise NotFoundError(f"Story {key} not found in remote tracker", key=key)
        return issues[0]

    def _require_remote_id(self, key: str) -> int:
        metadata = self.cache.get_metadata(key)
        if metadata is None or not metadata.remote_id:
            raise NotSyncedError(f"Story {key} not synced - no remote issue id", key=key)
        return metadata.remote_id

    async def _resolve_remote_id(self, key: str) -> int:
        """Remote id from the cache, else discovered remotely and recorded."""
        metadata = self.cache.get_metadata(key)
        if metadata is not None and metadata.remote_id:
            return metadata.remote_id

        issue = await self._find_story_issue(key)
        self.cache.update_metadata(key, {"remote_id": issue.number})
        return issue.number
