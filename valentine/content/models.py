"""Data model for the editable Valentine card.

- MediaPayload: owned video bytes held by the client
- VideoSlot: one of the three video steps
- EditableContent: the working document
- EmbeddedRef: byte range pointer into the combined snapshot blob
- Valentine: the wire record accepted by the snapshot store
"""

import base64
from dataclasses import dataclass, field, replace
from typing import Optional

SLOT_COUNT = 3

DEFAULT_LANDING_MESSAGE = "Happy Valentine's Day!"
DEFAULT_FINAL_MESSAGE = "You are the love of my life. Happy Valentine's Day! ❤️"
DEFAULT_SLOT_HEADINGS = ("Our First Memory", "A Special Moment", "Forever Together")

VALENTINE_COLOR = "#ff1493"

EMBEDDED_PREFIX = "embedded:"


@dataclass
class MediaPayload:
    """Video bytes owned by the client.

    Attributes:
        data: Raw file content
        mime_type: MIME type recorded alongside the bytes
        name: Original file name, if known
    """

    data: bytes
    mime_type: str = "video/mp4"
    name: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)

    def as_data_url(self) -> str:
        """Return a self-contained URL that a player can load directly."""
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


@dataclass
class VideoSlot:
    """A single video step: heading plus either local bytes or a remote URL.

    While editing, a slot may hold both a freshly picked file and the URL it
    replaces; the local file wins when the card is encoded.
    """

    heading: str
    local_media: Optional[MediaPayload] = None
    remote_url: Optional[str] = None

    @property
    def has_video(self) -> bool:
        return self.local_media is not None or bool(self.remote_url)

    def playback_source(self) -> Optional[str]:
        """URL the slot's video can be played from, if any."""
        if self.local_media is not None:
            return self.local_media.as_data_url()
        return self.remote_url


def default_slots() -> list[VideoSlot]:
    return [VideoSlot(heading=heading) for heading in DEFAULT_SLOT_HEADINGS]


@dataclass
class EditableContent:
    """The card being edited: landing message, three videos, closing message."""

    landing_message: str = DEFAULT_LANDING_MESSAGE
    video_slots: list[VideoSlot] = field(default_factory=default_slots)
    final_message: str = DEFAULT_FINAL_MESSAGE

    def __post_init__(self):
        self.video_slots = pad_slots(self.video_slots)

    def copy(self) -> "EditableContent":
        return EditableContent(
            landing_message=self.landing_message,
            video_slots=[replace(slot) for slot in self.video_slots],
            final_message=self.final_message,
        )


def pad_slots(slots: list[VideoSlot]) -> list[VideoSlot]:
    """Trim or pad a slot list to exactly SLOT_COUNT entries."""
    padded = list(slots[:SLOT_COUNT])
    for index in range(len(padded), SLOT_COUNT):
        padded.append(VideoSlot(heading=DEFAULT_SLOT_HEADINGS[index]))
    return padded


@dataclass(frozen=True)
class EmbeddedRef:
    """Pointer to one video inside the combined snapshot blob.

    String form: ``embedded:<offset>:<length>:<mimeType>``
    """

    offset: int
    length: int
    mime_type: str

    def __str__(self) -> str:
        return f"{EMBEDDED_PREFIX}{self.offset}:{self.length}:{self.mime_type}"

    @classmethod
    def is_embedded(cls, ref: str) -> bool:
        return ref.startswith(EMBEDDED_PREFIX)

    @classmethod
    def parse(cls, ref: str) -> Optional["EmbeddedRef"]:
        """Parse the string form, returning None when it is malformed."""
        if not cls.is_embedded(ref):
            return None

        parts = ref[len(EMBEDDED_PREFIX) :].split(":", 2)
        if len(parts) != 3:
            return None

        try:
            offset = int(parts[0])
            length = int(parts[1])
        except ValueError:
            return None

        if offset < 0 or length < 0:
            return None

        return cls(offset=offset, length=length, mime_type=parts[2])

    def extract(self, blob: bytes) -> bytes:
        """Slice this range out of the blob.

        Raises:
            ValueError: If the range falls outside the blob
        """
        end = self.offset + self.length
        if end > len(blob):
            raise ValueError(
                f"Embedded range {self.offset}+{self.length} exceeds blob size {len(blob)}"
            )
        return blob[self.offset : end]


@dataclass
class Valentine:
    """Wire record stored in a snapshot."""

    text: str
    color: str = VALENTINE_COLOR
    binary_blob: Optional[bytes] = None
