"""Client-side storage for snapshot write tokens.

A write token is minted once when a snapshot is created and is the only
proof that this client may update it, so it is kept keyed by save id.

Usage:
    store = WriteTokenStore(default_token_backend(data_dir / "tokens"))
    store.store_write_token(save_id, write_token)
    token = store.get_write_token(save_id)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

WRITE_TOKEN_PREFIX = "valentine_write_token_"

KEYRING_SERVICE = "valentine-sync"
KEYRING_CHECK_KEY = "valentine_keyring_check"


class TokenBackend(ABC):
    """Abstract base class for token storage backends."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Get a stored value."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete a stored value."""

    @abstractmethod
    def list_keys(self) -> list[str]:
        """List all stored keys."""


class MemoryTokenBackend(TokenBackend):
    """Process-local storage; tokens are lost on exit."""

    def __init__(self):
        self._values: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def list_keys(self) -> list[str]:
        return list(self._values)


class KeyringTokenBackend(TokenBackend):
    """Token storage in the system keyring."""

    def __init__(self, service: str = KEYRING_SERVICE):
        self.service = service
        self._keyring = None

    def _get_keyring(self):
        """Lazy load keyring module."""
        if self._keyring is None:
            import keyring

            self._keyring = keyring
        return self._keyring

    def check_available(self) -> None:
        """Raise if no usable keyring backend is configured."""
        self._get_keyring().get_password(self.service, KEYRING_CHECK_KEY)

    def get(self, key: str) -> Optional[str]:
        try:
            return self._get_keyring().get_password(self.service, key)
        except Exception as e:
            logger.warning(f"Failed to get token from keyring: {e}")
            return None

    def set(self, key: str, value: str) -> None:
        try:
            self._get_keyring().set_password(self.service, key, value)
        except Exception as e:
            logger.warning(f"Failed to store token in keyring: {e}")
            raise

    def delete(self, key: str) -> None:
        try:
            self._get_keyring().delete_password(self.service, key)
        except Exception as e:
            # Ignore if the token doesn't exist
            logger.debug(f"Failed to delete token from keyring: {e}")

    def list_keys(self) -> list[str]:
        # Keyring doesn't support listing
        return []


class FileTokenBackend(TokenBackend):
    """One file per token under a private directory.

    Note: tokens are stored in plaintext with 0600 permissions. Use only
    when no keyring is available.
    """

    def __init__(self, storage_dir: Path):
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def _get_file_path(self, key: str) -> Path:
        """Get token file path for a key."""
        # Sanitize key for filesystem
        safe_name = "".join(c if c.isalnum() or c in "-_" else "_" for c in key)
        return self.storage_dir / f"{safe_name}.token"

    def get(self, key: str) -> Optional[str]:
        path = self._get_file_path(key)
        if not path.exists():
            return None
        try:
            return path.read_text().strip() or None
        except OSError as e:
            logger.warning(f"Failed to read token file: {e}")
            return None

    def set(self, key: str, value: str) -> None:
        path = self._get_file_path(key)
        try:
            path.write_text(value)
            path.chmod(0o600)
        except OSError as e:
            logger.warning(f"Failed to write token file: {e}")
            raise

    def delete(self, key: str) -> None:
        path = self._get_file_path(key)
        try:
            if path.exists():
                path.unlink()
        except OSError as e:
            logger.debug(f"Failed to delete token file: {e}")

    def list_keys(self) -> list[str]:
        return [path.stem for path in self.storage_dir.glob("*.token")]


class WriteTokenStore:
    """Write tokens keyed by save id.

    Storage failures are logged rather than raised: a missing token only
    means the snapshot cannot be updated from this client.
    """

    def __init__(self, backend: Optional[TokenBackend] = None):
        self._backend = backend if backend is not None else MemoryTokenBackend()

    @staticmethod
    def _key(save_id: str) -> str:
        return f"{WRITE_TOKEN_PREFIX}{save_id}"

    def store_write_token(self, save_id: str, write_token: str) -> None:
        try:
            self._backend.set(self._key(save_id), write_token)
        except Exception as e:
            logger.error(f"Failed to store write token: {e}")

    def get_write_token(self, save_id: str) -> Optional[str]:
        try:
            return self._backend.get(self._key(save_id))
        except Exception as e:
            logger.error(f"Failed to get write token: {e}")
            return None

    def has_write_token(self, save_id: str) -> bool:
        return self.get_write_token(save_id) is not None

    def delete_write_token(self, save_id: str) -> None:
        self._backend.delete(self._key(save_id))

    def list_save_ids(self) -> list[str]:
        """Save ids this client can update."""
        prefix_len = len(WRITE_TOKEN_PREFIX)
        return [
            key[prefix_len:]
            for key in self._backend.list_keys()
            if key.startswith(WRITE_TOKEN_PREFIX)
        ]


def default_token_backend(storage_dir: Path, use_keyring: bool = True) -> TokenBackend:
    """Keyring when one is usable, else 0600 files under storage_dir."""
    if use_keyring:
        backend = KeyringTokenBackend()
        try:
            backend.check_available()
        except Exception as e:
            logger.info(f"Keyring unavailable, using file-based token storage: {e}")
        else:
            return backend
    return FileTokenBackend(storage_dir)
