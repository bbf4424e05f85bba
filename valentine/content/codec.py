"""Conversion between EditableContent and the wire Valentine record.

The wire record only has a text field and one optional binary blob, so:

- every unuploaded video is appended to a single combined blob and the slot
  records an ``embedded:<offset>:<length>:<mimeType>`` reference to it
- the per-slot headings and references are JSON-encoded and appended to the
  text after VIDEO_DATA_MARKER
- the text before the marker is ``landing + "\\n\\n" + final``

Text saved before video support existed has no marker and decodes to the
default slots.
"""

import json
import logging
from typing import Any, Callable, Optional, Sequence

from .models import (
    DEFAULT_FINAL_MESSAGE,
    DEFAULT_LANDING_MESSAGE,
    DEFAULT_SLOT_HEADINGS,
    SLOT_COUNT,
    EditableContent,
    EmbeddedRef,
    MediaPayload,
    Valentine,
    VideoSlot,
    default_slots,
)

logger = logging.getLogger(__name__)

VIDEO_DATA_MARKER = "___VIDEO_DATA___"
MESSAGE_SEPARATOR = "\n\n"

# Object references that only make sense inside the editing process
LOCAL_ONLY_SCHEMES = ("blob:", "data:")

ProgressCallback = Callable[[int], None]


def _slot_reference(slot: VideoSlot, offset: int) -> tuple[Optional[str], bytes]:
    if slot.local_media is not None:
        media = slot.local_media
        ref = EmbeddedRef(offset=offset, length=media.size, mime_type=media.mime_type)
        return str(ref), media.data

    if slot.remote_url and not slot.remote_url.startswith(LOCAL_ONLY_SCHEMES):
        return slot.remote_url, b""

    return None, b""


def encode_valentine(
    landing_message: str,
    video_slots: Sequence[VideoSlot],
    final_message: str,
    on_progress: Optional[ProgressCallback] = None,
) -> Valentine:
    """Pack messages and video slots into a wire record.

    Args:
        landing_message: Text for the first step
        video_slots: Slots in display order
        final_message: Text for the last step
        on_progress: Called with 100 once local media has been packed

    Returns:
        Valentine with the combined blob set only when local media is present
    """
    encoded: list[dict[str, Any]] = []
    chunks: list[bytes] = []
    offset = 0

    for slot in video_slots:
        entry: dict[str, Any] = {"heading": slot.heading}
        ref, data = _slot_reference(slot, offset)
        if ref is not None:
            entry["url"] = ref
        chunks.append(data)
        offset += len(data)
        encoded.append(entry)

    has_local_media = any(slot.local_media is not None for slot in video_slots)
    binary_blob = b"".join(chunks) if has_local_media else None

    if has_local_media and on_progress is not None:
        on_progress(100)

    video_data = VIDEO_DATA_MARKER + json.dumps(encoded) if encoded else ""
    text = f"{landing_message}{MESSAGE_SEPARATOR}{final_message}{video_data}"

    return Valentine(text=text, binary_blob=binary_blob)


def encode_content(
    content: EditableContent, on_progress: Optional[ProgressCallback] = None
) -> Valentine:
    return encode_valentine(
        content.landing_message,
        content.video_slots,
        content.final_message,
        on_progress=on_progress,
    )


def split_messages(text: str) -> tuple[str, str]:
    """Return (landing, final) from the text before the video marker."""
    marker_index = text.find(VIDEO_DATA_MARKER)
    content_text = text if marker_index == -1 else text[:marker_index]

    parts = content_text.split(MESSAGE_SEPARATOR, 1)
    landing = parts[0] or DEFAULT_LANDING_MESSAGE
    final = (parts[1] if len(parts) > 1 else "") or DEFAULT_FINAL_MESSAGE
    return landing, final


def decode_video_data(text: str) -> list[dict[str, Any]]:
    """Read the per-slot metadata after the marker.

    Never raises; anything unreadable counts as zero videos.
    """
    marker_index = text.find(VIDEO_DATA_MARKER)
    if marker_index == -1:
        return []

    payload = text[marker_index + len(VIDEO_DATA_MARKER) :]
    try:
        entries = json.loads(payload)
    except (ValueError, RecursionError) as e:
        # RecursionError: nesting deeper than the json decoder can follow
        logger.error(f"Failed to decode video data: {e}")
        return []

    if not isinstance(entries, list):
        logger.error(f"Video data is not a list: {type(entries).__name__}")
        return []

    return [entry if isinstance(entry, dict) else {} for entry in entries]


def _decode_slot(
    entry: dict[str, Any], index: int, blob: Optional[bytes]
) -> VideoSlot:
    heading = entry.get("heading")
    if not isinstance(heading, str):
        heading = DEFAULT_SLOT_HEADINGS[index]

    url = entry.get("url")
    if not isinstance(url, str) or not url:
        return VideoSlot(heading=heading)

    if not EmbeddedRef.is_embedded(url):
        return VideoSlot(heading=heading, remote_url=url)

    ref = EmbeddedRef.parse(url)
    if ref is None:
        logger.warning(f"Malformed embedded reference for slot {index + 1}: {url}")
        return VideoSlot(heading=heading)

    if blob is None:
        logger.warning(f"Slot {index + 1} references a missing blob")
        return VideoSlot(heading=heading)

    try:
        data = ref.extract(blob)
    except ValueError as e:
        logger.error(f"Failed to extract embedded video for slot {index + 1}: {e}")
        return VideoSlot(heading=heading)

    return VideoSlot(
        heading=heading,
        local_media=MediaPayload(data=data, mime_type=ref.mime_type),
    )


def decode_content(valentine: Valentine) -> EditableContent:
    """Rebuild the editable card from a wire record. Never raises."""
    landing, final = split_messages(valentine.text)
    entries = decode_video_data(valentine.text)

    if not entries:
        return EditableContent(
            landing_message=landing, video_slots=default_slots(), final_message=final
        )

    slots = [
        _decode_slot(entry, index, valentine.binary_blob)
        for index, entry in enumerate(entries[:SLOT_COUNT])
    ]
    return EditableContent(landing_message=landing, video_slots=slots, final_message=final)
