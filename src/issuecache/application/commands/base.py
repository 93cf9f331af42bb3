"""
Command Base - Write operations against the remote tracker.

Commands validate their input, honour dry-run, and report through a
CommandResult instead of raising, so a batch can decide whether one
failure stops the rest.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from ...core.domain.events import EventBus
from ...core.exceptions import IssueCacheError
from ..retry import RetryPolicy


@dataclass
class CommandResult:
    """Outcome of a command execution."""

    success: bool = True
    data: Any = None
    error: Optional[str] = None
    exception: Optional[Exception] = None
    dry_run: bool = False
    skipped: bool = False
    skip_reason: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None, dry_run: bool = False) -> "CommandResult":
        """Successful result."""
        return cls(success=True, data=data, dry_run=dry_run)

    @classmethod
    def fail(cls, error: str, exception: Optional[Exception] = None) -> "CommandResult":
        """Failed result."""
        return cls(success=False, error=error, exception=exception)

    @classmethod
    def skip(cls, reason: str) -> "CommandResult":
        """Nothing to do; counts as success."""
        return cls(success=True, skipped=True, skip_reason=reason)


class Command(ABC):
    """
    Abstract remote write command.

    Subclasses implement ``validate`` and ``_execute``.
    """

    def __init__(
        self,
        tracker,
        retry: Optional[RetryPolicy] = None,
        event_bus: Optional[EventBus] = None,
        dry_run: bool = False,
    ):
        self.tracker = tracker
        self.retry = retry or RetryPolicy()
        self.event_bus = event_bus
        self.dry_run = dry_run
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description used in logs."""
        ...

    @abstractmethod
    def validate(self) -> Optional[str]:
        """Return an error message if the command cannot run, else None."""
        ...

    @abstractmethod
    async def _execute(self) -> CommandResult:
        """Perform the remote write."""
        ...

    async def execute(self) -> CommandResult:
        """Validate, then execute unless in dry-run mode."""
        error = self.validate()
        if error:
            return CommandResult.fail(error)

        if self.dry_run:
            self.logger.info(f"[DRY-RUN] Would {self.description}")
            return CommandResult.ok(dry_run=True)

        try:
            return await self._execute()
        except IssueCacheError as e:
            self.logger.error(f"Failed to {self.description}: {e}")
            return CommandResult.fail(str(e), exception=e)


class CommandBatch:
    """
    Sequential batch of commands.

    Usage:
        batch = CommandBatch(stop_on_error=True)
        batch.add(cmd1).add(cmd2)
        results = await batch.execute_all()
    """

    def __init__(self, stop_on_error: bool = False):
        self.stop_on_error = stop_on_error
        self.commands: list[Command] = []
        self.results: list[CommandResult] = []

    def add(self, command: Command) -> "CommandBatch":
        self.commands.append(command)
        return self

    async def execute_all(self) -> list[CommandResult]:
        """Execute commands in order, stopping on failure if requested."""
        self.results = []
        for command in self.commands:
            result = await command.execute()
            self.results.append(result)
            if not result.success and self.stop_on_error:
                break
        return self.results

    @property
    def all_succeeded(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def executed_count(self) -> int:
        """Commands that succeeded and actually did something."""
        return sum(1 for r in self.results if r.success and not r.skipped and not r.dry_run)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def first_failure(self) -> Optional[CommandResult]:
        return next((r for r in self.results if not r.success), None)
