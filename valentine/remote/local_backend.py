"""In-process snapshot backend over a service SnapshotStorage."""

import logging
from typing import Optional

from valentine.content.models import Valentine
from valentine.service.storage import (
    InMemorySnapshotStorage,
    InvalidWriteTokenError,
    SnapshotNotFoundError,
    SnapshotRecord,
    SnapshotStorage,
    StorageError,
    VersionConflictError,
)

from .backend import CreatedSnapshot, SnapshotBackend, StoredSnapshot
from .exceptions import AuthError, ConflictError, NotFoundError, TransportError

logger = logging.getLogger(__name__)


def _stored(record: Optional[SnapshotRecord]) -> Optional[StoredSnapshot]:
    if record is None:
        return None
    return StoredSnapshot(
        valentine=record.valentine,
        version=record.version,
        last_update_timestamp=record.last_update_timestamp,
    )


class LocalSnapshotBackend(SnapshotBackend):
    """Talks to storage directly, with the same error mapping as the HTTP API.

    Args:
        storage: Storage to use (a fresh in-memory store if omitted)
    """

    def __init__(self, storage: Optional[SnapshotStorage] = None):
        self.storage = storage if storage is not None else InMemorySnapshotStorage()

    async def create(self, valentine: Valentine) -> CreatedSnapshot:
        try:
            save_id, write_token = self.storage.create(valentine)
        except StorageError as e:
            raise TransportError(f"Storage unavailable: {e}") from e
        return CreatedSnapshot(save_id=save_id, write_token=write_token)

    async def update(
        self,
        save_id: str,
        expected_version: int,
        valentine: Valentine,
        write_token: str,
    ) -> int:
        try:
            return self.storage.update(save_id, expected_version, valentine, write_token)
        except SnapshotNotFoundError as e:
            raise NotFoundError(str(e)) from e
        except InvalidWriteTokenError as e:
            raise AuthError(str(e)) from e
        except VersionConflictError as e:
            raise ConflictError(
                str(e),
                expected_version=e.expected_version,
                current_version=e.current_version,
            ) from e
        except StorageError as e:
            raise TransportError(f"Storage unavailable: {e}") from e

    async def fetch(self, save_id: str) -> Optional[StoredSnapshot]:
        try:
            return _stored(self.storage.get(save_id))
        except StorageError as e:
            raise TransportError(f"Storage unavailable: {e}") from e

    async def fetch_version(self, save_id: str) -> int:
        try:
            return self.storage.get_version(save_id)
        except SnapshotNotFoundError as e:
            raise NotFoundError(str(e)) from e
        except StorageError as e:
            raise TransportError(f"Storage unavailable: {e}") from e

    async def save_global_latest(self, valentine: Valentine) -> int:
        try:
            return self.storage.put_global_latest(valentine)
        except StorageError as e:
            raise TransportError(f"Storage unavailable: {e}") from e

    async def fetch_global_latest(self) -> Optional[StoredSnapshot]:
        try:
            return _stored(self.storage.get_global_latest())
        except StorageError as e:
            raise TransportError(f"Storage unavailable: {e}") from e

    async def fetch_global_latest_version(self) -> int:
        try:
            return self.storage.get_global_latest_version()
        except StorageError as e:
            raise TransportError(f"Storage unavailable: {e}") from e
