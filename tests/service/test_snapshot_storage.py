"""Tests for snapshot storage backends."""

import json

import pytest

from valentine.content.models import Valentine
from valentine.service.storage import (
    InMemorySnapshotStorage,
    InvalidWriteTokenError,
    S3SnapshotStorage,
    SnapshotNotFoundError,
    StorageError,
    VersionConflictError,
    create_storage,
    hash_write_token,
)

TEST_BUCKET = "test-bucket"


@pytest.fixture(params=["memory", "s3"])
def storage(request):
    """Run each contract test against both backends."""
    if request.param == "memory":
        yield InMemorySnapshotStorage()
    else:
        request.getfixturevalue("mock_s3")
        yield S3SnapshotStorage(request.getfixturevalue("s3_settings"))


class TestSnapshotContract:
    """Behavior shared by every storage backend."""

    def test_create_starts_at_version_one(self, storage):
        save_id, write_token = storage.create(Valentine(text="Hello"))

        record = storage.get(save_id)
        assert record.version == 1
        assert record.valentine.text == "Hello"
        assert record.last_update_timestamp > 0
        assert write_token

    def test_write_token_stored_as_hash(self, storage):
        """Test only the token's hash is kept."""
        save_id, write_token = storage.create(Valentine(text="Hello"))

        record = storage.get(save_id)
        assert record.write_token_hash == hash_write_token(write_token)
        assert record.write_token_hash != write_token

    def test_update_increments_version(self, storage):
        save_id, write_token = storage.create(Valentine(text="v1"))

        assert storage.update(save_id, 1, Valentine(text="v2"), write_token) == 2
        assert storage.update(save_id, 2, Valentine(text="v3"), write_token) == 3
        assert storage.get(save_id).valentine.text == "v3"
        assert storage.get_version(save_id) == 3

    def test_stale_update_conflicts_without_mutation(self, storage):
        """Test an update with an old expected version leaves the snapshot alone."""
        save_id, write_token = storage.create(Valentine(text="v1"))
        storage.update(save_id, 1, Valentine(text="v2"), write_token)

        with pytest.raises(VersionConflictError) as exc_info:
            storage.update(save_id, 1, Valentine(text="stale"), write_token)

        assert exc_info.value.expected_version == 1
        assert exc_info.value.current_version == 2
        record = storage.get(save_id)
        assert record.version == 2
        assert record.valentine.text == "v2"

    def test_wrong_token_rejected(self, storage):
        save_id, _ = storage.create(Valentine(text="v1"))

        with pytest.raises(InvalidWriteTokenError):
            storage.update(save_id, 1, Valentine(text="x"), "wrong-token")

        assert storage.get_version(save_id) == 1

    def test_token_checked_before_version(self, storage):
        """Test a wrong token with a stale version reports the token."""
        save_id, write_token = storage.create(Valentine(text="v1"))
        storage.update(save_id, 1, Valentine(text="v2"), write_token)

        with pytest.raises(InvalidWriteTokenError):
            storage.update(save_id, 1, Valentine(text="x"), "wrong-token")

    def test_update_missing(self, storage):
        with pytest.raises(SnapshotNotFoundError) as exc_info:
            storage.update("missing", 1, Valentine(text="x"), "token")
        assert "does not exist" in str(exc_info.value)

    def test_get_missing(self, storage):
        assert storage.get("missing") is None
        with pytest.raises(SnapshotNotFoundError):
            storage.get_version("missing")

    def test_blob_round_trip(self, storage):
        blob = bytes(range(256))
        save_id, _ = storage.create(Valentine(text="Hi", binary_blob=blob))

        assert storage.get(save_id).valentine.binary_blob == blob

    def test_update_can_drop_blob(self, storage):
        save_id, write_token = storage.create(Valentine(text="Hi", binary_blob=b"data"))

        storage.update(save_id, 1, Valentine(text="No videos"), write_token)

        assert storage.get(save_id).valentine.binary_blob is None

    def test_global_latest(self, storage):
        """Test the global slot starts empty and is overwritten unconditionally."""
        assert storage.get_global_latest() is None
        assert storage.get_global_latest_version() == 0

        assert storage.put_global_latest(Valentine(text="one")) == 1
        assert storage.put_global_latest(Valentine(text="two")) == 2

        record = storage.get_global_latest()
        assert record.valentine.text == "two"
        assert record.write_token_hash is None
        assert storage.get_global_latest_version() == 2

    def test_health_check(self, storage):
        assert storage.health_check() is True


class TestS3SnapshotStorage:
    """S3-specific behavior."""

    def test_object_layout(self, mock_s3, s3_settings):
        storage = S3SnapshotStorage(s3_settings)
        save_id, _ = storage.create(Valentine(text="Hi", binary_blob=b"video"))

        metadata = mock_s3.get_object(
            Bucket=TEST_BUCKET, Key=f"valentine/snapshots/{save_id}.json"
        )
        blob = mock_s3.get_object(Bucket=TEST_BUCKET, Key=f"valentine/snapshots/{save_id}.blob")

        data = json.loads(metadata["Body"].read())
        assert data["version"] == 1
        assert data["has_blob"] is True
        assert metadata["Metadata"]["version"] == "1"
        assert blob["Body"].read() == b"video"

    def test_corrupt_metadata(self, mock_s3, s3_settings):
        storage = S3SnapshotStorage(s3_settings)
        mock_s3.put_object(
            Bucket=TEST_BUCKET, Key="valentine/snapshots/broken.json", Body=b"{not json"
        )

        with pytest.raises(StorageError):
            storage.get("broken")

    def test_health_check_missing_bucket(self, mock_s3, s3_settings):
        s3_settings.s3_bucket = "no-such-bucket"
        storage = S3SnapshotStorage(s3_settings)

        assert storage.health_check() is False


def test_create_storage(s3_settings, memory_settings, mock_s3):
    assert isinstance(create_storage(memory_settings), InMemorySnapshotStorage)
    assert isinstance(create_storage(s3_settings), S3SnapshotStorage)
