"""
Polling watcher that reports newer remote versions of the open card.

The watcher never touches local edit state. It only flags that the remote
copy moved past the version the editor was based on, and it stays quiet
while the editor has unsaved changes so a reload prompt cannot clobber them.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional

from .client import SnapshotVersionInfo, SyncClient

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0


class WatcherState(Enum):
    """Observable watcher state."""

    QUIET = auto()
    NOTIFYING = auto()


@dataclass(frozen=True)
class WatchTarget:
    """What a watcher polls: one save id, or the global latest slot."""

    save_id: Optional[str] = None
    global_latest: bool = False

    @property
    def is_valid(self) -> bool:
        return self.global_latest or bool(self.save_id)

    def describe(self) -> str:
        return "global latest" if self.global_latest else f"save {self.save_id}"


class ConflictWatcher:
    """
    Polls the version-only query for one target.

    One instance serves one target for its whole life; callers create a new
    watcher when the save id or mode changes and stop the old one.
    """

    def __init__(
        self,
        client: SyncClient,
        target: WatchTarget,
        has_unsaved_changes: Callable[[], bool],
        current_version: Optional[int] = None,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_newer_version: Optional[Callable[[int], None]] = None,
    ):
        """
        Args:
            client: Client used for version queries
            target: Save id or global latest slot to poll
            has_unsaved_changes: Asked at query time whether local edits are pending
            current_version: Baseline version the editor holds
            interval: Seconds between checks
            on_newer_version: Called when a newer remote version is first seen
        """
        self.client = client
        self.target = target
        self.interval = interval
        self._has_unsaved_changes = has_unsaved_changes
        self._on_newer_version = on_newer_version
        self._baseline = current_version
        self._state = WatcherState.QUIET
        self._newer_version: Optional[int] = None
        self._task: Optional[asyncio.Task] = None
        # Bumped on rebase/stop so in-flight responses can be discarded
        self._generation = 0

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def has_newer_version(self) -> bool:
        return self._state is WatcherState.NOTIFYING

    @property
    def newer_version(self) -> Optional[int]:
        return self._newer_version

    @property
    def baseline(self) -> Optional[int]:
        return self._baseline

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _set_quiet(self) -> None:
        if self._state is not WatcherState.QUIET:
            logger.info(f"Watcher for {self.target.describe()}: NOTIFYING -> QUIET")
        self._state = WatcherState.QUIET
        self._newer_version = None

    def dismiss(self) -> None:
        """Clear the notification without changing the baseline."""
        self._set_quiet()

    def rebase(self, version: int) -> None:
        """Adopt a new baseline (after a save or a reload) and go quiet."""
        self._generation += 1
        self._baseline = version
        self._set_quiet()

    async def _query(self) -> Optional[SnapshotVersionInfo]:
        if self.target.global_latest:
            return await self.client.get_global_latest_version()
        return await self.client.get_snapshot_version(self.target.save_id)

    async def check_now(self) -> Optional[int]:
        """
        Run one version check.

        Returns:
            The remote version seen, or None if the query failed or was discarded
        """
        if self._baseline is None or not self.target.is_valid:
            return None

        generation = self._generation
        try:
            info = await self._query()
        except Exception as e:
            logger.error(f"Polling error for {self.target.describe()}: {e}")
            return None

        if info is None:
            return None

        if generation != self._generation:
            logger.debug(f"Discarding superseded version response ({info.version})")
            return None

        if info.version > self._baseline and not self._has_unsaved_changes():
            first = self._state is WatcherState.QUIET or self._newer_version != info.version
            self._state = WatcherState.NOTIFYING
            self._newer_version = info.version
            if first:
                logger.info(
                    f"Newer version {info.version} available for {self.target.describe()} "
                    f"(baseline {self._baseline})"
                )
                if self._on_newer_version is not None:
                    try:
                        self._on_newer_version(info.version)
                    except Exception as e:
                        logger.error(f"Newer version callback failed: {e}")

        return info.version

    async def _run(self) -> None:
        while True:
            await self.check_now()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        """Check immediately, then every interval, until stopped.

        No-op while there is no baseline version or no valid target.
        """
        if self.running:
            return
        if self._baseline is None or not self.target.is_valid:
            logger.debug(f"Watcher for {self.target.describe()} not started: no baseline")
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the polling task and wait for it to finish."""
        self._generation += 1
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
