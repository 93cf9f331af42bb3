"""
Sync Guard - In-flight token preventing overlapping sync passes.

Each SyncEngine owns one guard by default. Engines that share a cache
directory inside one process can share a guard by passing the same
instance; the guard does nothing across processes.
"""

from typing import Optional
from uuid import uuid4


class SyncGuard:
    """Holds at most one in-flight token at a time."""

    def __init__(self):
        self._token: Optional[str] = None

    @property
    def in_progress(self) -> bool:
        return self._token is not None

    def try_acquire(self) -> Optional[str]:
        """Take the guard, or return None if a pass is already running."""
        if self._token is not None:
            return None
        self._token = uuid4().hex
        return self._token

    def release(self, token: str) -> None:
        """Release the guard if ``token`` is the one currently held."""
        if self._token == token:
            self._token = None
