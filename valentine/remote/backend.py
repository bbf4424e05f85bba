"""Contract for the remote versioned snapshot store.

Backends raise the exceptions in ``valentine.remote.exceptions``; the
SyncClient turns them into user-facing results.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from valentine.content.models import Valentine


@dataclass
class CreatedSnapshot:
    save_id: str
    write_token: str


@dataclass
class StoredSnapshot:
    """A snapshot as returned by a fetch."""

    valentine: Valentine
    version: int
    last_update_timestamp: int  # nanoseconds since epoch

    @property
    def saved_at_ms(self) -> int:
        return self.last_update_timestamp // 1_000_000


class SnapshotBackend(ABC):
    """Async operations offered by the snapshot store."""

    @abstractmethod
    async def create(self, valentine: Valentine) -> CreatedSnapshot:
        """Create a snapshot at version 1 and mint its write token."""

    @abstractmethod
    async def update(
        self,
        save_id: str,
        expected_version: int,
        valentine: Valentine,
        write_token: str,
    ) -> int:
        """Replace a snapshot's content; returns the new version.

        Raises:
            ConflictError: expected_version is not the stored version
            AuthError: write_token does not match
            NotFoundError: save_id does not exist
        """

    @abstractmethod
    async def fetch(self, save_id: str) -> Optional[StoredSnapshot]:
        """Full snapshot, or None if it does not exist."""

    @abstractmethod
    async def fetch_version(self, save_id: str) -> int:
        """Version only, without transferring content."""

    @abstractmethod
    async def save_global_latest(self, valentine: Valentine) -> int:
        """Overwrite the global latest slot; returns its new version."""

    @abstractmethod
    async def fetch_global_latest(self) -> Optional[StoredSnapshot]:
        """Global latest snapshot, or None if nothing was saved."""

    @abstractmethod
    async def fetch_global_latest_version(self) -> int:
        """Global latest version, 0 if nothing was saved."""

    async def close(self) -> None:
        """Release any held connections."""
