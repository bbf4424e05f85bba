"""
Headless editor session.

Holds the card being edited and decides how to restore and save it:

- restore order: save id from the page URL, then the global latest slot,
  then the local fallback copy
- save: authentication gate, size check, then global latest / update /
  create depending on the active identity, followed by a local copy
- a ConflictWatcher per active identity, recreated when the identity changes
"""

import logging
from enum import Enum, auto
from typing import Callable, Optional

from valentine.content.codec import ProgressCallback
from valentine.content.models import SLOT_COUNT, EditableContent, MediaPayload
from valentine.local_progress import LocalProgressError, LocalProgressStore
from valentine.remote.client import (
    RemoteRestoreResult,
    RemoteSaveResult,
    SyncClient,
    validate_video_sizes,
)
from valentine.remote.errors import LOGIN_REQUIRED
from valentine.remote.share import (
    build_shareable_link,
    get_save_id_from_url,
    remove_save_id_from_url,
    set_save_id_in_url,
)
from valentine.remote.watcher import DEFAULT_POLL_INTERVAL, ConflictWatcher, WatchTarget

logger = logging.getLogger(__name__)

RESTORE_FAILED = "Failed to load saved content from link. Loading local backup..."
SAVE_IN_PROGRESS = "A save is already in progress."

_UNSET = object()


class SaveStatus(Enum):
    IDLE = auto()
    SAVING = auto()
    SAVED = auto()
    ERROR = auto()


class EditorSession:
    """
    State and actions of one editing session.

    Args:
        client: Sync client for the snapshot store
        local_store: Local fallback copy (optional)
        app_url: Application base URL used for shareable links
        is_authenticated: Asked before every save
        poll_interval: Seconds between watcher checks
        watch: Whether to run a ConflictWatcher at all
    """

    def __init__(
        self,
        client: SyncClient,
        local_store: Optional[LocalProgressStore] = None,
        app_url: str = "",
        is_authenticated: Callable[[], bool] = lambda: True,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        watch: bool = True,
    ):
        self.client = client
        self.local_store = local_store
        self.app_url = app_url
        self.is_authenticated = is_authenticated
        self.poll_interval = poll_interval
        self.watch = watch

        self.content = EditableContent()
        self.url = app_url
        self.save_id: Optional[str] = None
        self.global_latest_mode = False
        self.current_version: Optional[int] = None
        self.last_saved_at: Optional[int] = None
        self.shareable_link = ""
        self.restore_error = ""
        self.save_status = SaveStatus.IDLE
        self.save_error = ""

        self.initial_content_loaded = False
        self.has_unsaved_changes = False
        self._edit_count = 0

        self._watcher: Optional[ConflictWatcher] = None
        self._watcher_identity: Optional[tuple] = None

    # =========================================================================
    # Identity and watcher lifecycle
    # =========================================================================

    def _identity(self) -> tuple:
        return (self.save_id, self.global_latest_mode)

    @property
    def watcher_enabled(self) -> bool:
        return (
            self.watch
            and self.initial_content_loaded
            and (bool(self.save_id) or self.global_latest_mode)
        )

    @property
    def has_newer_version(self) -> bool:
        return self._watcher is not None and self._watcher.has_newer_version

    @property
    def newer_version(self) -> Optional[int]:
        return self._watcher.newer_version if self._watcher is not None else None

    async def _sync_watcher(self) -> None:
        """Recreate, rebase or stop the watcher to match the current identity."""
        identity = (*self._identity(), self.watcher_enabled)

        if self._watcher is not None and self._watcher_identity != identity:
            await self._watcher.stop()
            self._watcher = None

        self._watcher_identity = identity
        if not self.watcher_enabled or self.current_version is None:
            return

        if self._watcher is None:
            self._watcher = ConflictWatcher(
                self.client,
                WatchTarget(save_id=self.save_id, global_latest=self.global_latest_mode),
                has_unsaved_changes=lambda: self.has_unsaved_changes,
                current_version=self.current_version,
                interval=self.poll_interval,
            )
            self._watcher.start()
        elif self._watcher.baseline != self.current_version:
            self._watcher.rebase(self.current_version)

    def dismiss_notification(self) -> None:
        if self._watcher is not None:
            self._watcher.dismiss()

    async def close(self) -> None:
        if self._watcher is not None:
            await self._watcher.stop()
            self._watcher = None

    # =========================================================================
    # Restore
    # =========================================================================

    def _apply_restore(self, result: RemoteRestoreResult) -> None:
        self.content = result.content
        self.last_saved_at = result.saved_at
        self.current_version = result.version
        self.has_unsaved_changes = False

    async def load(self, url: Optional[str] = None) -> None:
        """Restore content for the page URL: remote first, then local fallback."""
        self.url = url if url is not None else self.app_url
        save_id = get_save_id_from_url(self.url)

        if save_id:
            self.save_id = save_id
            self.global_latest_mode = False
            result = await self.client.fetch_remote_save(save_id)
            if result.success:
                self._apply_restore(result)
                self.shareable_link = build_shareable_link(self.app_url, save_id)
                await self._finish_load()
                return
            self.restore_error = result.error or RESTORE_FAILED
            logger.warning(f"Remote restore of {save_id} failed: {self.restore_error}")
        else:
            self.save_id = None
            self.global_latest_mode = True
            result = await self.client.fetch_global_latest()
            if result.success:
                self._apply_restore(result)
                await self._finish_load()
                return
            logger.info(f"No global latest restored: {result.error}")

        if self.local_store is not None:
            saved = self.local_store.load_progress()
            if saved is not None:
                self.content = saved.content
                self.last_saved_at = saved.saved_at

        await self._finish_load()

    async def _finish_load(self) -> None:
        self.initial_content_loaded = True
        self.has_unsaved_changes = False
        await self._sync_watcher()

    async def reload_newer_version(self) -> bool:
        """
        Replace local content with the remote copy for the current identity.

        Returns:
            True if content was reloaded
        """
        self.dismiss_notification()
        identity = self._identity()

        if self.global_latest_mode:
            result = await self.client.fetch_global_latest()
        elif self.save_id:
            result = await self.client.fetch_remote_save(self.save_id)
        else:
            return False

        if self._identity() != identity:
            logger.info("Discarding reload for a superseded save identity")
            return False

        if not result.success:
            logger.error(f"Failed to reload newer version: {result.error}")
            return False

        self._apply_restore(result)
        await self._sync_watcher()
        return True

    # =========================================================================
    # Editing
    # =========================================================================

    def _mark_edited(self) -> None:
        self._edit_count += 1
        if self.initial_content_loaded:
            self.has_unsaved_changes = True

    def set_landing_message(self, message: str) -> None:
        self.content.landing_message = message
        self._mark_edited()

    def set_final_message(self, message: str) -> None:
        self.content.final_message = message
        self._mark_edited()

    def update_video_slot(
        self,
        index: int,
        heading=_UNSET,
        local_media=_UNSET,
        remote_url=_UNSET,
    ) -> None:
        """Change any of a slot's heading, local media or remote URL."""
        if not 0 <= index < SLOT_COUNT:
            raise IndexError(f"Video slot index out of range: {index}")

        slot = self.content.video_slots[index]
        if heading is not _UNSET:
            slot.heading = heading
        if local_media is not _UNSET:
            if local_media is not None and not isinstance(local_media, MediaPayload):
                raise TypeError("local_media must be a MediaPayload or None")
            slot.local_media = local_media
        if remote_url is not _UNSET:
            slot.remote_url = remote_url
        self._mark_edited()

    async def set_global_latest_mode(self, enabled: bool) -> None:
        self.global_latest_mode = enabled
        if enabled:
            self.save_id = None
            self.url = remove_save_id_from_url(self.url)
            self.shareable_link = ""
        await self._sync_watcher()

    # =========================================================================
    # Save
    # =========================================================================

    def _fail_save(self, error: str) -> RemoteSaveResult:
        self.save_status = SaveStatus.ERROR
        self.save_error = error
        return RemoteSaveResult(success=False, error=error)

    async def save(self, on_progress: Optional[ProgressCallback] = None) -> RemoteSaveResult:
        """Save to the global latest slot, the active save id, or a new save."""
        if self.save_status is SaveStatus.SAVING:
            return RemoteSaveResult(success=False, error=SAVE_IN_PROGRESS)

        if not self.is_authenticated():
            return self._fail_save(LOGIN_REQUIRED)

        validation = validate_video_sizes(self.content.video_slots)
        if not validation.valid:
            return self._fail_save(validation.error)

        self.save_status = SaveStatus.SAVING
        self.save_error = ""
        content = self.content.copy()
        edits_before = self._edit_count
        identity = self._identity()

        if self.global_latest_mode:
            result = await self.client.save_global_latest(content, on_progress=on_progress)
        elif self.save_id:
            result = await self.client.update_remote_save(
                self.save_id,
                self.current_version or 1,
                content,
                on_progress=on_progress,
            )
        else:
            result = await self.client.create_remote_save(content, on_progress=on_progress)

        if not result.success:
            return self._fail_save(result.error or "Failed to save")

        if self._identity() != identity:
            logger.info("Save finished after the save identity changed; not adopting it")
            self.save_status = SaveStatus.IDLE
            return result

        if not self.global_latest_mode and not self.save_id:
            self.save_id = result.save_id
            self.url = set_save_id_in_url(self.url, result.save_id)
            self.shareable_link = build_shareable_link(self.app_url, result.save_id)

        self.save_status = SaveStatus.SAVED
        self.last_saved_at = result.saved_at
        self.current_version = result.version
        # Edits made while the save was in flight are still unsaved
        self.has_unsaved_changes = self._edit_count != edits_before

        if self.local_store is not None:
            try:
                self.local_store.save_progress(content)
            except LocalProgressError as e:
                logger.error(f"Local save failed: {e}")

        await self._sync_watcher()
        return result
