"""
Local fallback copy of the last saved card.

Text and slot metadata go to a JSON file; video bytes go to one file per
slot. Used only when no remote snapshot can be resolved.
"""

import errno
import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from valentine.content.models import EditableContent, MediaPayload, VideoSlot

logger = logging.getLogger(__name__)

STORAGE_FILE = "valentine_progress.json"
VIDEO_DIR = "videos"

QUOTA_EXCEEDED = "Storage quota exceeded. Please try removing some videos."
SAVE_FAILED = "Failed to save progress. Please try again."


class LocalProgressError(Exception):
    """Raised when the local copy cannot be written."""


@dataclass
class LocalProgress:
    content: EditableContent
    saved_at: int  # milliseconds since epoch


class LocalProgressStore:
    """
    Directory-backed store for the local fallback copy.

    Args:
        base_path: Directory to keep the progress file and videos in
    """

    def __init__(self, base_path: str | Path):
        self.base_path = Path(base_path)
        self.progress_file = self.base_path / STORAGE_FILE
        self.video_dir = self.base_path / VIDEO_DIR

    def _video_path(self, index: int) -> Path:
        return self.video_dir / f"video_{index}.bin"

    def _write_atomic(self, path: Path, data: bytes) -> None:
        fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, path)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def save_progress(self, content: EditableContent) -> None:
        """
        Write the card and its local videos.

        Raises:
            LocalProgressError: With a user-facing message if writing fails
        """
        snapshot = {
            "landing_message": content.landing_message,
            "video_slots": [
                {
                    "heading": slot.heading,
                    "file_name": slot.local_media.name if slot.local_media else None,
                    "file_type": slot.local_media.mime_type if slot.local_media else None,
                    "remote_url": slot.remote_url,
                }
                for slot in content.video_slots
            ],
            "final_message": content.final_message,
            "saved_at": int(time.time() * 1000),
        }

        try:
            self.video_dir.mkdir(parents=True, exist_ok=True)
            self._write_atomic(self.progress_file, json.dumps(snapshot).encode("utf-8"))

            for index, slot in enumerate(content.video_slots):
                video_path = self._video_path(index)
                if slot.local_media is not None:
                    self._write_atomic(video_path, slot.local_media.data)
                elif video_path.exists():
                    video_path.unlink()
        except OSError as e:
            logger.error(f"Failed to save local progress: {e}")
            if e.errno in (errno.ENOSPC, errno.EDQUOT):
                raise LocalProgressError(QUOTA_EXCEEDED) from e
            raise LocalProgressError(SAVE_FAILED) from e

        logger.debug(f"Saved local progress to {self.progress_file}")

    def _load_slot(self, index: int, data: dict) -> VideoSlot:
        slot = VideoSlot(
            heading=data.get("heading", ""),
            remote_url=data.get("remote_url"),
        )
        file_type = data.get("file_type")
        if file_type:
            video_path = self._video_path(index)
            if video_path.exists():
                slot.local_media = MediaPayload(
                    data=video_path.read_bytes(),
                    mime_type=file_type,
                    name=data.get("file_name"),
                )
            else:
                logger.warning(f"Local video {index + 1} is missing from {self.video_dir}")
        return slot

    def load_progress(self) -> Optional[LocalProgress]:
        """Read the local copy, or None if there is none or it is unreadable."""
        if not self.progress_file.exists():
            return None

        try:
            snapshot = json.loads(self.progress_file.read_text(encoding="utf-8"))
            slots = [
                self._load_slot(index, data)
                for index, data in enumerate(snapshot.get("video_slots", []))
            ]
            content = EditableContent(
                landing_message=snapshot["landing_message"],
                video_slots=slots,
                final_message=snapshot["final_message"],
            )
            return LocalProgress(content=content, saved_at=snapshot.get("saved_at", 0))
        except (OSError, json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"Error loading local progress: {e}")
            return None

    def clear_progress(self) -> None:
        """Remove the local copy and its videos."""
        try:
            if self.progress_file.exists():
                self.progress_file.unlink()
            for video_path in self.video_dir.glob("video_*.bin"):
                video_path.unlink()
        except OSError as e:
            logger.error(f"Error clearing local progress: {e}")
