"""Snapshot storage for the Valentine snapshot service.

Each snapshot holds one Valentine record, a version counter that starts at 1
and grows by one per successful update, and the SHA-256 of its write token.
The global latest slot is a singleton snapshot without a token.
"""

import hashlib
import hmac
import json
import logging
import secrets
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

import boto3
from botocore.exceptions import ClientError

from valentine.content.models import VALENTINE_COLOR, Valentine

from .config import Settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base exception for storage operations."""


class SnapshotNotFoundError(StorageError):
    """Snapshot does not exist in storage."""


class VersionConflictError(StorageError):
    """Conditional update failed (version mismatch)."""

    def __init__(self, message: str, expected_version: int, current_version: int):
        super().__init__(message)
        self.expected_version = expected_version
        self.current_version = current_version


class InvalidWriteTokenError(StorageError):
    """Write token does not match the snapshot's stored hash."""


@dataclass
class SnapshotRecord:
    """A stored snapshot."""

    save_id: Optional[str]
    version: int
    write_token_hash: Optional[str]
    valentine: Valentine
    last_update_timestamp: int  # nanoseconds since epoch


def hash_write_token(write_token: str) -> str:
    return hashlib.sha256(write_token.encode("utf-8")).hexdigest()


def mint_write_token() -> str:
    return secrets.token_urlsafe(32)


def new_save_id() -> str:
    return uuid4().hex


class SnapshotStorage(ABC):
    """
    Abstract base class for snapshot storage backends.

    Subclasses provide record persistence; version and token checks live
    here so every backend enforces them the same way.
    """

    def __init__(self):
        # Serializes read-check-write sequences
        self._write_lock = threading.Lock()

    @abstractmethod
    def _load(self, save_id: str) -> Optional[SnapshotRecord]:
        """Load a snapshot record, or None if it does not exist."""

    @abstractmethod
    def _store(self, record: SnapshotRecord) -> None:
        """Persist a snapshot record."""

    @abstractmethod
    def _load_global(self) -> Optional[SnapshotRecord]:
        """Load the global latest record, or None if nothing was saved."""

    @abstractmethod
    def _store_global(self, record: SnapshotRecord) -> None:
        """Persist the global latest record."""

    @abstractmethod
    def health_check(self) -> bool:
        """Check that the backing store is reachable."""

    def create(self, valentine: Valentine) -> tuple[str, str]:
        """
        Create a new snapshot at version 1.

        Returns:
            Tuple of (save_id, write_token); the token is not stored in plaintext
        """
        save_id = new_save_id()
        write_token = mint_write_token()

        with self._write_lock:
            self._store(
                SnapshotRecord(
                    save_id=save_id,
                    version=1,
                    write_token_hash=hash_write_token(write_token),
                    valentine=valentine,
                    last_update_timestamp=time.time_ns(),
                )
            )

        logger.info(f"Created snapshot: {save_id}")
        return save_id, write_token

    def update(
        self,
        save_id: str,
        expected_version: int,
        valentine: Valentine,
        write_token: str,
    ) -> int:
        """
        Replace a snapshot's content if the caller holds its token and version.

        Returns:
            The new version

        Raises:
            SnapshotNotFoundError: If the snapshot doesn't exist
            InvalidWriteTokenError: If the token doesn't match
            VersionConflictError: If expected_version is not the stored version
        """
        with self._write_lock:
            record = self._load(save_id)
            if record is None:
                raise SnapshotNotFoundError(f"Snapshot {save_id} does not exist")

            if not record.write_token_hash or not hmac.compare_digest(
                record.write_token_hash, hash_write_token(write_token)
            ):
                raise InvalidWriteTokenError(f"Invalid write token for snapshot {save_id}")

            if record.version != expected_version:
                raise VersionConflictError(
                    f"Version conflict: expected {expected_version}, current {record.version}",
                    expected_version=expected_version,
                    current_version=record.version,
                )

            record.version += 1
            record.valentine = valentine
            record.last_update_timestamp = time.time_ns()
            self._store(record)

        logger.info(f"Updated snapshot: {save_id} (version={record.version})")
        return record.version

    def get(self, save_id: str) -> Optional[SnapshotRecord]:
        return self._load(save_id)

    def get_version(self, save_id: str) -> int:
        """
        Get a snapshot's current version.

        Raises:
            SnapshotNotFoundError: If the snapshot doesn't exist
        """
        record = self._load(save_id)
        if record is None:
            raise SnapshotNotFoundError(f"Snapshot {save_id} does not exist")
        return record.version

    def put_global_latest(self, valentine: Valentine) -> int:
        """Overwrite the global latest slot unconditionally and return its version."""
        with self._write_lock:
            current = self._load_global()
            version = current.version + 1 if current else 1
            self._store_global(
                SnapshotRecord(
                    save_id=None,
                    version=version,
                    write_token_hash=None,
                    valentine=valentine,
                    last_update_timestamp=time.time_ns(),
                )
            )

        logger.info(f"Saved global latest (version={version})")
        return version

    def get_global_latest(self) -> Optional[SnapshotRecord]:
        return self._load_global()

    def get_global_latest_version(self) -> int:
        """Current global latest version, 0 when nothing has been saved."""
        record = self._load_global()
        return record.version if record else 0


class InMemorySnapshotStorage(SnapshotStorage):
    """Process-local storage, used for development and tests."""

    def __init__(self):
        super().__init__()
        self._records: dict[str, SnapshotRecord] = {}
        self._global: Optional[SnapshotRecord] = None

    def _copy(self, record: Optional[SnapshotRecord]) -> Optional[SnapshotRecord]:
        if record is None:
            return None
        return SnapshotRecord(**record.__dict__)

    def _load(self, save_id: str) -> Optional[SnapshotRecord]:
        return self._copy(self._records.get(save_id))

    def _store(self, record: SnapshotRecord) -> None:
        self._records[record.save_id] = self._copy(record)

    def _load_global(self) -> Optional[SnapshotRecord]:
        return self._copy(self._global)

    def _store_global(self, record: SnapshotRecord) -> None:
        self._global = self._copy(record)

    def health_check(self) -> bool:
        return True


class S3SnapshotStorage(SnapshotStorage):
    """Stores each snapshot as a JSON metadata object plus a blob object in S3.

    Version checks are read-check-write under a process lock; a single
    service instance is assumed per bucket prefix.
    """

    GLOBAL_LATEST_KEY = "global-latest"

    def __init__(self, settings: Settings = None):
        """Initialize S3 client."""
        super().__init__()
        if settings is None:
            settings = Settings()

        self.s3 = boto3.client(
            "s3",
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
            endpoint_url=settings.s3_endpoint_url,
        )
        self.bucket = settings.s3_bucket
        self.prefix = settings.s3_prefix.rstrip("/")

    def _make_key(self, name: str) -> str:
        """Convert an object name to an S3 key with prefix."""
        name = name.lstrip("/")
        return f"{self.prefix}/{name}" if self.prefix else name

    def _snapshot_name(self, save_id: str) -> str:
        return f"snapshots/{save_id}"

    def _read_object(self, key: str) -> Optional[bytes]:
        try:
            response = self.s3.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            if e.response["Error"]["Code"] in ("NoSuchKey", "404"):
                return None
            logger.error(f"Error reading {key}: {e}")
            raise StorageError(f"Failed to read snapshot: {e}")

    def _read_record(self, name: str) -> Optional[SnapshotRecord]:
        raw = self._read_object(self._make_key(f"{name}.json"))
        if raw is None:
            return None

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt snapshot metadata for {name}: {e}")
            raise StorageError(f"Corrupt snapshot metadata: {name}")

        binary_blob = None
        if data.get("has_blob"):
            binary_blob = self._read_object(self._make_key(f"{name}.blob"))
            if binary_blob is None:
                logger.warning(f"Snapshot {name} is missing its blob object")

        return SnapshotRecord(
            save_id=data.get("save_id"),
            version=data["version"],
            write_token_hash=data.get("write_token_hash"),
            valentine=Valentine(
                text=data["text"],
                color=data.get("color", VALENTINE_COLOR),
                binary_blob=binary_blob,
            ),
            last_update_timestamp=data["last_update_timestamp"],
        )

    def _write_record(self, name: str, record: SnapshotRecord) -> None:
        blob = record.valentine.binary_blob
        metadata = {
            "save_id": record.save_id,
            "version": record.version,
            "write_token_hash": record.write_token_hash,
            "text": record.valentine.text,
            "color": record.valentine.color,
            "has_blob": blob is not None,
            "last_update_timestamp": record.last_update_timestamp,
        }

        try:
            if blob is not None:
                self.s3.put_object(
                    Bucket=self.bucket,
                    Key=self._make_key(f"{name}.blob"),
                    Body=blob,
                    ContentType="application/octet-stream",
                )
            self.s3.put_object(
                Bucket=self.bucket,
                Key=self._make_key(f"{name}.json"),
                Body=json.dumps(metadata).encode("utf-8"),
                ContentType="application/json",
                Metadata={"version": str(record.version)},
            )
        except ClientError as e:
            logger.error(f"Error writing snapshot {name}: {e}")
            raise StorageError(f"Failed to write snapshot: {e}")

    def _load(self, save_id: str) -> Optional[SnapshotRecord]:
        return self._read_record(self._snapshot_name(save_id))

    def _store(self, record: SnapshotRecord) -> None:
        self._write_record(self._snapshot_name(record.save_id), record)

    def _load_global(self) -> Optional[SnapshotRecord]:
        return self._read_record(self.GLOBAL_LATEST_KEY)

    def _store_global(self, record: SnapshotRecord) -> None:
        self._write_record(self.GLOBAL_LATEST_KEY, record)

    def health_check(self) -> bool:
        """Check if S3 is accessible."""
        try:
            self.s3.head_bucket(Bucket=self.bucket)
            return True
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False


def create_storage(settings: Settings) -> SnapshotStorage:
    if settings.storage_backend == "s3":
        return S3SnapshotStorage(settings)
    return InMemorySnapshotStorage()
