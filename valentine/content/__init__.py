"""Editable card content and its wire encoding.

- EditableContent / VideoSlot / MediaPayload: the working document
- encode_content / decode_content: mapping to and from the Valentine record
"""

from valentine.content.codec import (
    VIDEO_DATA_MARKER,
    decode_content,
    encode_content,
    encode_valentine,
)
from valentine.content.models import (
    DEFAULT_FINAL_MESSAGE,
    DEFAULT_LANDING_MESSAGE,
    DEFAULT_SLOT_HEADINGS,
    SLOT_COUNT,
    EditableContent,
    EmbeddedRef,
    MediaPayload,
    Valentine,
    VideoSlot,
)

__all__ = [
    # Models
    "EditableContent",
    "VideoSlot",
    "MediaPayload",
    "EmbeddedRef",
    "Valentine",
    "SLOT_COUNT",
    "DEFAULT_LANDING_MESSAGE",
    "DEFAULT_FINAL_MESSAGE",
    "DEFAULT_SLOT_HEADINGS",
    # Codec
    "VIDEO_DATA_MARKER",
    "encode_content",
    "encode_valentine",
    "decode_content",
]
