"""
Request and response models for the snapshot service HTTP API.

Binary blobs travel base64-encoded inside JSON bodies.
"""

import base64
import binascii
from typing import Optional

from pydantic import BaseModel, Field

from valentine.content.models import VALENTINE_COLOR, Valentine


class ValentinePayload(BaseModel):
    """Wire form of a Valentine record."""

    color: str = Field(VALENTINE_COLOR, description="Card accent color")
    text: str = Field(..., description="Messages plus encoded video metadata")
    binary_blob: Optional[str] = Field(
        None, description="Base64-encoded combined video blob"
    )

    @classmethod
    def from_valentine(cls, valentine: Valentine) -> "ValentinePayload":
        blob = valentine.binary_blob
        return cls(
            color=valentine.color,
            text=valentine.text,
            binary_blob=base64.b64encode(blob).decode("ascii") if blob is not None else None,
        )

    def to_valentine(self) -> Valentine:
        """Decode into a Valentine.

        Raises:
            ValueError: If binary_blob is not valid base64
        """
        blob = None
        if self.binary_blob is not None:
            try:
                blob = base64.b64decode(self.binary_blob, validate=True)
            except binascii.Error as e:
                raise ValueError(f"binary_blob is not valid base64: {e}")
        return Valentine(text=self.text, color=self.color, binary_blob=blob)


class CreateSnapshotRequest(BaseModel):
    valentine: ValentinePayload


class CreateSnapshotResponse(BaseModel):
    """Returned once on create; the write token is never sent again."""

    save_id: str
    write_token: str


class UpdateSnapshotRequest(BaseModel):
    expected_version: int = Field(..., ge=1, description="Version the edit was based on")
    valentine: ValentinePayload


class SaveGlobalLatestRequest(BaseModel):
    valentine: ValentinePayload


class VersionResponse(BaseModel):
    version: int


class SnapshotResponse(BaseModel):
    save_id: Optional[str] = None
    valentine: ValentinePayload
    version: int
    last_update_timestamp: int = Field(..., description="Nanoseconds since epoch")


class HealthResponse(BaseModel):
    status: str
    storage: str


class ErrorResponse(BaseModel):
    detail: str
    error_code: Optional[str] = None


class VersionConflictResponse(BaseModel):
    detail: str
    error_code: str = "snapshot.version_conflict"
    expected_version: int
    current_version: int
