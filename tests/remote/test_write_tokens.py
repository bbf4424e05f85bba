"""Tests for client-side write token storage."""

import stat
from unittest.mock import MagicMock, patch

import pytest

from valentine.remote.tokens import (
    KEYRING_SERVICE,
    WRITE_TOKEN_PREFIX,
    FileTokenBackend,
    KeyringTokenBackend,
    MemoryTokenBackend,
    WriteTokenStore,
    default_token_backend,
)


@pytest.fixture
def temp_storage_dir(tmp_path):
    """Create a temporary storage directory."""
    storage_dir = tmp_path / "tokens"
    storage_dir.mkdir()
    return storage_dir


class TestFileTokenBackend:
    """Tests for FileTokenBackend."""

    def test_set_and_get(self, temp_storage_dir):
        backend = FileTokenBackend(temp_storage_dir)
        backend.set("test-key", "test-value")
        assert backend.get("test-key") == "test-value"

    def test_get_missing(self, temp_storage_dir):
        backend = FileTokenBackend(temp_storage_dir)
        assert backend.get("missing") is None

    def test_file_permissions(self, temp_storage_dir):
        """Test token files are readable only by the owner."""
        backend = FileTokenBackend(temp_storage_dir)
        backend.set("test-key", "secret")

        token_file = next(temp_storage_dir.glob("*.token"))
        assert stat.S_IMODE(token_file.stat().st_mode) == 0o600

    def test_delete(self, temp_storage_dir):
        backend = FileTokenBackend(temp_storage_dir)
        backend.set("test-key", "value")
        backend.delete("test-key")
        assert backend.get("test-key") is None

    def test_delete_missing_is_noop(self, temp_storage_dir):
        backend = FileTokenBackend(temp_storage_dir)
        backend.delete("missing")

    def test_creates_directory(self, tmp_path):
        backend = FileTokenBackend(tmp_path / "nested" / "tokens")
        backend.set("key", "value")
        assert (tmp_path / "nested" / "tokens").is_dir()


class TestKeyringTokenBackend:
    """Tests for KeyringTokenBackend."""

    def test_get_calls_keyring(self):
        mock_keyring = MagicMock()
        mock_keyring.get_password.return_value = "tok"

        backend = KeyringTokenBackend()
        backend._keyring = mock_keyring

        assert backend.get("key") == "tok"
        mock_keyring.get_password.assert_called_once_with(KEYRING_SERVICE, "key")

    def test_set_calls_keyring(self):
        mock_keyring = MagicMock()

        backend = KeyringTokenBackend()
        backend._keyring = mock_keyring

        backend.set("key", "tok")

        mock_keyring.set_password.assert_called_once_with(KEYRING_SERVICE, "key", "tok")

    def test_delete_calls_keyring(self):
        mock_keyring = MagicMock()

        backend = KeyringTokenBackend()
        backend._keyring = mock_keyring

        backend.delete("key")

        mock_keyring.delete_password.assert_called_once_with(KEYRING_SERVICE, "key")

    def test_get_failure_returns_none(self):
        mock_keyring = MagicMock()
        mock_keyring.get_password.side_effect = RuntimeError("locked")

        backend = KeyringTokenBackend()
        backend._keyring = mock_keyring

        assert backend.get("key") is None

    def test_set_failure_raises(self):
        mock_keyring = MagicMock()
        mock_keyring.set_password.side_effect = RuntimeError("locked")

        backend = KeyringTokenBackend()
        backend._keyring = mock_keyring

        with pytest.raises(RuntimeError):
            backend.set("key", "tok")

    def test_store_round_trip(self):
        """Test WriteTokenStore keys tokens by save id in the keyring."""
        saved = {}
        mock_keyring = MagicMock()
        mock_keyring.set_password.side_effect = lambda service, key, value: saved.__setitem__(
            key, value
        )
        mock_keyring.get_password.side_effect = lambda service, key: saved.get(key)
        backend = KeyringTokenBackend()
        backend._keyring = mock_keyring
        store = WriteTokenStore(backend)

        store.store_write_token("abc", "tok")

        assert saved == {f"{WRITE_TOKEN_PREFIX}abc": "tok"}
        assert store.get_write_token("abc") == "tok"


class TestDefaultTokenBackend:
    """Tests for picking a token backend."""

    def test_uses_keyring_when_available(self, temp_storage_dir):
        with patch.object(KeyringTokenBackend, "check_available", return_value=None):
            backend = default_token_backend(temp_storage_dir)

        assert isinstance(backend, KeyringTokenBackend)

    def test_falls_back_to_files(self, temp_storage_dir):
        """Test an unusable keyring falls back to file storage."""
        with patch.object(
            KeyringTokenBackend, "check_available", side_effect=RuntimeError("no keyring")
        ):
            backend = default_token_backend(temp_storage_dir)

        assert isinstance(backend, FileTokenBackend)
        assert backend.storage_dir == temp_storage_dir

    def test_keyring_disabled(self, temp_storage_dir):
        with patch.object(KeyringTokenBackend, "check_available") as check:
            backend = default_token_backend(temp_storage_dir, use_keyring=False)

        assert isinstance(backend, FileTokenBackend)
        check.assert_not_called()


class TestWriteTokenStore:
    """Tests for WriteTokenStore."""

    def test_store_and_get(self):
        store = WriteTokenStore()
        store.store_write_token("abc123", "token-1")

        assert store.get_write_token("abc123") == "token-1"
        assert store.has_write_token("abc123") is True
        assert store.has_write_token("other") is False

    def test_keys_are_prefixed(self):
        backend = MemoryTokenBackend()
        store = WriteTokenStore(backend)

        store.store_write_token("abc123", "token-1")

        assert backend.list_keys() == [f"{WRITE_TOKEN_PREFIX}abc123"]

    def test_list_save_ids(self, temp_storage_dir):
        store = WriteTokenStore(FileTokenBackend(temp_storage_dir))
        store.store_write_token("aaa", "t1")
        store.store_write_token("bbb", "t2")

        assert sorted(store.list_save_ids()) == ["aaa", "bbb"]

    def test_delete(self):
        store = WriteTokenStore()
        store.store_write_token("abc123", "token-1")

        store.delete_write_token("abc123")

        assert store.get_write_token("abc123") is None

    def test_persists_across_instances(self, temp_storage_dir):
        WriteTokenStore(FileTokenBackend(temp_storage_dir)).store_write_token("abc", "tok")

        store = WriteTokenStore(FileTokenBackend(temp_storage_dir))

        assert store.get_write_token("abc") == "tok"

    def test_backend_failures_are_swallowed(self):
        """Test storage errors are logged and reported as a missing token."""
        backend = MagicMock()
        backend.set.side_effect = OSError("read-only filesystem")
        backend.get.side_effect = OSError("read-only filesystem")
        store = WriteTokenStore(backend)

        store.store_write_token("abc", "tok")

        assert store.get_write_token("abc") is None
