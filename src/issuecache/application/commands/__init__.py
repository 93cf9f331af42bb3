"""
Commands - Individual remote write operations.

Commands represent write operations and can be:
- Validated
- Executed (or previewed in dry-run)
- Batched with stop-on-error semantics
"""

from .base import Command, CommandResult, CommandBatch
from .issue_commands import (
    AddCommentCommand,
    UpdateLabelsCommand,
    SetAssigneesCommand,
)

__all__ = [
    "Command",
    "CommandResult",
    "CommandBatch",
    "AddCommentCommand",
    "UpdateLabelsCommand",
    "SetAssigneesCommand",
]
