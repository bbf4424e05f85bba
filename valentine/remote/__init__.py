"""Remote snapshot synchronization.

This module provides:
- SyncClient: create/update/fetch of snapshots with user-facing results
- SnapshotBackend: the versioned store contract, with HTTP and in-process backends
- WriteTokenStore: client-held write tokens keyed by save id
- ConflictWatcher: polling for newer remote versions
"""

from valentine.remote.backend import CreatedSnapshot, SnapshotBackend, StoredSnapshot
from valentine.remote.client import (
    MAX_TOTAL_SIZE,
    MAX_VIDEO_SIZE,
    RemoteRestoreResult,
    RemoteSaveResult,
    SizeValidation,
    SnapshotVersionInfo,
    SyncClient,
    validate_video_sizes,
)
from valentine.remote.errors import normalize_error
from valentine.remote.exceptions import (
    AuthError,
    ConflictError,
    NotFoundError,
    TransportError,
    ValentineSyncError,
    ValidationError,
)
from valentine.remote.http_backend import HttpSnapshotBackend
from valentine.remote.tokens import (
    FileTokenBackend,
    KeyringTokenBackend,
    MemoryTokenBackend,
    TokenBackend,
    WriteTokenStore,
    default_token_backend,
)
from valentine.remote.watcher import ConflictWatcher, WatcherState, WatchTarget

__all__ = [
    # Client
    "SyncClient",
    "RemoteSaveResult",
    "RemoteRestoreResult",
    "SnapshotVersionInfo",
    "SizeValidation",
    "validate_video_sizes",
    "normalize_error",
    "MAX_VIDEO_SIZE",
    "MAX_TOTAL_SIZE",
    # Backends
    "SnapshotBackend",
    "CreatedSnapshot",
    "StoredSnapshot",
    "HttpSnapshotBackend",
    # Tokens
    "WriteTokenStore",
    "TokenBackend",
    "MemoryTokenBackend",
    "FileTokenBackend",
    "KeyringTokenBackend",
    "default_token_backend",
    # Watcher
    "ConflictWatcher",
    "WatcherState",
    "WatchTarget",
    # Exceptions
    "ValentineSyncError",
    "ValidationError",
    "TransportError",
    "AuthError",
    "ConflictError",
    "NotFoundError",
]
