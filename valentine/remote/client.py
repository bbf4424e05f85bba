"""Save/restore client for Valentine snapshots.

Every public coroutine returns a result object with ``success`` and, on
failure, a user-facing ``error``. Nothing raised by the codec or the backend
escapes past this module.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from valentine.content.codec import ProgressCallback, decode_content, encode_content
from valentine.content.models import EditableContent, VideoSlot

from .backend import SnapshotBackend, StoredSnapshot
from .errors import (
    CONNECTION_UNAVAILABLE,
    METHOD_UNAVAILABLE,
    NOTHING_SAVED,
    SAVE_NOT_FOUND,
    WRITE_TOKEN_MISSING,
    normalize_error,
)
from .exceptions import TransportError
from .tokens import WriteTokenStore

logger = logging.getLogger(__name__)

MiB = 1024 * 1024
MAX_VIDEO_SIZE = 50 * MiB
MAX_TOTAL_SIZE = 100 * MiB

GLOBAL_LATEST_SAVE_ID = "global_latest"


@dataclass
class SizeValidation:
    valid: bool
    error: Optional[str] = None


@dataclass
class RemoteSaveResult:
    success: bool
    save_id: Optional[str] = None
    write_token: Optional[str] = None
    version: Optional[int] = None
    saved_at: Optional[int] = None  # milliseconds since epoch
    error: Optional[str] = None


@dataclass
class RemoteRestoreResult:
    success: bool
    content: Optional[EditableContent] = None
    version: Optional[int] = None
    saved_at: Optional[int] = None  # milliseconds since epoch
    error: Optional[str] = None


@dataclass
class SnapshotVersionInfo:
    version: int
    saved_at: int  # local clock; the version query carries no timestamp


def validate_video_sizes(video_slots: Sequence[VideoSlot]) -> SizeValidation:
    """Pre-flight check of local video sizes.

    Fails on the first video over MAX_VIDEO_SIZE (named by 1-based index),
    then on the sum of all local videos over MAX_TOTAL_SIZE.
    """
    total_size = 0

    for index, slot in enumerate(video_slots):
        media = slot.local_media
        if media is None:
            continue
        if media.size > MAX_VIDEO_SIZE:
            return SizeValidation(
                valid=False,
                error=(
                    f"Video {index + 1} exceeds the maximum size of 50MB. "
                    "Please use a smaller video."
                ),
            )
        total_size += media.size

    if total_size > MAX_TOTAL_SIZE:
        return SizeValidation(
            valid=False,
            error=(
                "Total video size exceeds 100MB. "
                "Please reduce the number or size of videos."
            ),
        )

    return SizeValidation(valid=True)


class SyncClient:
    """Orchestrates snapshot create/update/fetch against a backend.

    Args:
        backend: Snapshot store (None when no connection is available)
        token_store: Where write tokens are kept, keyed by save id
        clock: Returns the current time in seconds
    """

    def __init__(
        self,
        backend: Optional[SnapshotBackend],
        token_store: Optional[WriteTokenStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.backend = backend
        self.token_store = token_store if token_store is not None else WriteTokenStore()
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _method(self, name: str):
        """Look up a backend operation.

        Raises:
            TransportError: No backend, or it does not offer the operation
        """
        if self.backend is None:
            raise TransportError(CONNECTION_UNAVAILABLE)
        method = getattr(self.backend, name, None)
        if not callable(method):
            raise TransportError(METHOD_UNAVAILABLE)
        return method

    def _restored(self, snapshot: StoredSnapshot) -> RemoteRestoreResult:
        return RemoteRestoreResult(
            success=True,
            content=decode_content(snapshot.valentine),
            version=snapshot.version,
            saved_at=snapshot.saved_at_ms,
        )

    async def create_remote_save(
        self,
        content: EditableContent,
        on_progress: Optional[ProgressCallback] = None,
    ) -> RemoteSaveResult:
        """Create a new snapshot and keep its write token."""
        try:
            create = self._method("create")

            validation = validate_video_sizes(content.video_slots)
            if not validation.valid:
                return RemoteSaveResult(success=False, error=validation.error)

            valentine = encode_content(content, on_progress=on_progress)
            created = await create(valentine)

            self.token_store.store_write_token(created.save_id, created.write_token)
            logger.info(f"Created remote save {created.save_id}")

            return RemoteSaveResult(
                success=True,
                save_id=created.save_id,
                write_token=created.write_token,
                version=1,
                saved_at=self._now_ms(),
            )
        except Exception as e:
            logger.error(f"Failed to create remote save: {e}")
            return RemoteSaveResult(success=False, error=normalize_error(e))

    async def update_remote_save(
        self,
        save_id: str,
        expected_version: int,
        content: EditableContent,
        on_progress: Optional[ProgressCallback] = None,
    ) -> RemoteSaveResult:
        """Update an existing snapshot if this client holds its write token."""
        try:
            update = self._method("update")

            write_token = self.token_store.get_write_token(save_id)
            if not write_token:
                return RemoteSaveResult(success=False, error=WRITE_TOKEN_MISSING)

            validation = validate_video_sizes(content.video_slots)
            if not validation.valid:
                return RemoteSaveResult(success=False, error=validation.error)

            valentine = encode_content(content, on_progress=on_progress)
            version = await update(save_id, expected_version, valentine, write_token)
            logger.info(f"Updated remote save {save_id} to version {version}")

            return RemoteSaveResult(
                success=True,
                save_id=save_id,
                version=version,
                saved_at=self._now_ms(),
            )
        except Exception as e:
            logger.error(f"Failed to update remote save: {e}")
            return RemoteSaveResult(success=False, error=normalize_error(e))

    async def fetch_remote_save(self, save_id: str) -> RemoteRestoreResult:
        try:
            fetch = self._method("fetch")
            snapshot = await fetch(save_id)
            if snapshot is None:
                return RemoteRestoreResult(success=False, error=SAVE_NOT_FOUND)
            return self._restored(snapshot)
        except Exception as e:
            logger.error(f"Failed to fetch remote save: {e}")
            return RemoteRestoreResult(success=False, error=normalize_error(e))

    async def save_global_latest(
        self,
        content: EditableContent,
        on_progress: Optional[ProgressCallback] = None,
    ) -> RemoteSaveResult:
        """Overwrite the shared global latest snapshot (no write token)."""
        try:
            save = self._method("save_global_latest")

            validation = validate_video_sizes(content.video_slots)
            if not validation.valid:
                return RemoteSaveResult(success=False, error=validation.error)

            valentine = encode_content(content, on_progress=on_progress)
            version = await save(valentine)

            return RemoteSaveResult(
                success=True,
                save_id=GLOBAL_LATEST_SAVE_ID,
                version=version,
                saved_at=self._now_ms(),
            )
        except Exception as e:
            logger.error(f"Failed to save global latest: {e}")
            return RemoteSaveResult(success=False, error=normalize_error(e))

    async def fetch_global_latest(self) -> RemoteRestoreResult:
        try:
            fetch = self._method("fetch_global_latest")
            snapshot = await fetch()
            if snapshot is None:
                return RemoteRestoreResult(success=False, error=NOTHING_SAVED)
            return self._restored(snapshot)
        except Exception as e:
            logger.error(f"Failed to fetch global latest: {e}")
            return RemoteRestoreResult(success=False, error=normalize_error(e))

    async def get_snapshot_version(self, save_id: str) -> Optional[SnapshotVersionInfo]:
        """Version-only query for polling; None on any failure."""
        try:
            fetch_version = self._method("fetch_version")
            version = await fetch_version(save_id)
            return SnapshotVersionInfo(version=version, saved_at=self._now_ms())
        except Exception as e:
            logger.error(f"Failed to get snapshot version: {e}")
            return None

    async def get_global_latest_version(self) -> Optional[SnapshotVersionInfo]:
        """Version-only query for the global latest slot; None on any failure."""
        try:
            fetch_version = self._method("fetch_global_latest_version")
            version = await fetch_version()
            return SnapshotVersionInfo(version=version, saved_at=self._now_ms())
        except Exception as e:
            logger.error(f"Failed to get global latest version: {e}")
            return None

    async def close(self) -> None:
        if self.backend is not None:
            await self.backend.close()
