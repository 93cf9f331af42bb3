"""
Domain Events - Things that happened in the domain.

Events are immutable records of something that occurred.
They enable loose coupling and audit trails.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional
from uuid import uuid4


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def event_type(self) -> str:
        """Get the event type name."""
        return self.__class__.__name__


@dataclass(frozen=True)
class SyncStarted(DomainEvent):
    """Event: A sync pass started."""

    watermark: Optional[datetime] = None
    forced: bool = False


@dataclass(frozen=True)
class SyncCompleted(DomainEvent):
    """Event: A sync pass completed and committed its watermark."""

    watermark: Optional[datetime] = None
    updated: int = 0
    unchanged: int = 0
    errors: int = 0


@dataclass(frozen=True)
class SyncSkipped(DomainEvent):
    """Event: A sync request arrived while another pass was running."""

    reason: str = ""


@dataclass(frozen=True)
class DocumentSynced(DomainEvent):
    """Event: A remote issue was written through to the cache."""

    key: str = ""
    remote_id: Optional[int] = None
    changed: bool = True


@dataclass(frozen=True)
class IssueUpdated(DomainEvent):
    """Event: Local changes were pushed to the remote issue."""

    key: str = ""
    remote_id: Optional[int] = None
    comment_added: bool = False
    labels: tuple = ()


@dataclass(frozen=True)
class LockAcquired(DomainEvent):
    """Event: A document was assigned and its soft lock recorded."""

    key: str = ""
    holder: str = ""
    expires_at: Optional[datetime] = None
    source: str = "local"  # local, remote


@dataclass(frozen=True)
class LockReleased(DomainEvent):
    """Event: A document was unassigned and its soft lock cleared."""

    key: str = ""
    reason: Optional[str] = None


class EventBus:
    """
    Simple event bus for publishing and subscribing to domain events.

    This enables loose coupling between components.
    """

    def __init__(self):
        self._handlers: dict[type, list[Callable]] = {}
        self._history: list[DomainEvent] = []

    def subscribe(self, event_type: type, handler: Callable) -> None:
        """Subscribe a handler to an event type."""
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)

    def publish(self, event: DomainEvent) -> None:
        """Publish an event to all subscribers."""
        self._history.append(event)

        # Call specific handlers
        for handler in self._handlers.get(type(event), []):
            handler(event)

        # Call catch-all handlers
        for handler in self._handlers.get(DomainEvent, []):
            handler(event)

    def get_history(self) -> list[DomainEvent]:
        """Get all published events."""
        return self._history.copy()

    def clear_history(self) -> None:
        """Clear event history."""
        self._history.clear()
