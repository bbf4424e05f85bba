"""Tests for the local fallback copy."""

import errno
import json
from unittest.mock import patch

import pytest

from valentine.content.models import DEFAULT_SLOT_HEADINGS, EditableContent, MediaPayload, VideoSlot
from valentine.local_progress import (
    QUOTA_EXCEEDED,
    SAVE_FAILED,
    STORAGE_FILE,
    LocalProgressError,
    LocalProgressStore,
)


@pytest.fixture
def store(tmp_path):
    return LocalProgressStore(tmp_path / "progress")


def _content() -> EditableContent:
    return EditableContent(
        landing_message="Hello",
        video_slots=[
            VideoSlot(heading="Clip", local_media=MediaPayload(b"abc", "video/webm", "clip.webm")),
            VideoSlot(heading="Linked", remote_url="https://cdn.example.com/b.mp4"),
        ],
        final_message="Bye",
    )


def test_load_without_saved_copy(store):
    assert store.load_progress() is None


def test_save_and_load(store):
    store.save_progress(_content())

    loaded = store.load_progress()

    assert loaded.content.landing_message == "Hello"
    assert loaded.content.final_message == "Bye"
    clip = loaded.content.video_slots[0]
    assert clip.local_media.data == b"abc"
    assert clip.local_media.mime_type == "video/webm"
    assert clip.local_media.name == "clip.webm"
    assert loaded.content.video_slots[1].remote_url == "https://cdn.example.com/b.mp4"
    assert loaded.content.video_slots[2].heading == DEFAULT_SLOT_HEADINGS[2]
    assert loaded.saved_at > 0


def test_removed_video_is_deleted(store):
    """Test a slot whose video was removed no longer restores it."""
    store.save_progress(_content())
    content = _content()
    content.video_slots[0].local_media = None

    store.save_progress(content)

    assert store.load_progress().content.video_slots[0].local_media is None
    assert not store._video_path(0).exists()


def test_missing_video_file(store):
    store.save_progress(_content())
    store._video_path(0).unlink()

    loaded = store.load_progress()

    assert loaded.content.video_slots[0].heading == "Clip"
    assert loaded.content.video_slots[0].local_media is None


def test_corrupt_file_returns_none(store):
    store.save_progress(_content())
    (store.base_path / STORAGE_FILE).write_text("{broken")

    assert store.load_progress() is None


def test_incomplete_file_returns_none(store):
    store.base_path.mkdir(parents=True, exist_ok=True)
    (store.base_path / STORAGE_FILE).write_text(json.dumps({"video_slots": []}))

    assert store.load_progress() is None


def test_clear(store):
    store.save_progress(_content())

    store.clear_progress()

    assert store.load_progress() is None
    assert list(store.video_dir.glob("*.bin")) == []


def test_quota_exceeded(store):
    """Test a full disk is reported with the quota message."""
    with patch.object(
        LocalProgressStore, "_write_atomic", side_effect=OSError(errno.ENOSPC, "No space left")
    ):
        with pytest.raises(LocalProgressError) as exc_info:
            store.save_progress(_content())

    assert str(exc_info.value) == QUOTA_EXCEEDED


def test_other_write_failure(store):
    with patch.object(
        LocalProgressStore, "_write_atomic", side_effect=OSError(errno.EACCES, "Denied")
    ):
        with pytest.raises(LocalProgressError) as exc_info:
            store.save_progress(_content())

    assert str(exc_info.value) == SAVE_FAILED
