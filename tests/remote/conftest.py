"""Fixtures for remote sync tests."""

import pytest

from valentine.remote.client import SyncClient
from valentine.remote.local_backend import LocalSnapshotBackend
from valentine.remote.tokens import MemoryTokenBackend, WriteTokenStore
from valentine.service.storage import InMemorySnapshotStorage

FIXED_NOW = 1_700_000_000.0


@pytest.fixture
def storage():
    return InMemorySnapshotStorage()


@pytest.fixture
def backend(storage):
    return LocalSnapshotBackend(storage)


@pytest.fixture
def token_store():
    return WriteTokenStore(MemoryTokenBackend())


@pytest.fixture
def client(backend, token_store):
    return SyncClient(backend, token_store=token_store, clock=lambda: FIXED_NOW)
