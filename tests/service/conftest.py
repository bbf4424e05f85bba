"""
Fixtures for snapshot service tests.

S3 is mocked with moto; the identity provider is mocked by patching httpx.
"""

import os
from unittest.mock import AsyncMock, MagicMock, patch

import boto3
import pytest
from moto import mock_aws

from valentine.service.config import Settings

TEST_BUCKET = "test-bucket"
API_TOKEN = "test-token"


@pytest.fixture
def mock_env_vars():
    """Mock environment variables for testing."""
    with patch.dict(
        os.environ,
        {
            "AWS_ACCESS_KEY_ID": "test-key",
            "AWS_SECRET_ACCESS_KEY": "test-secret",
            "AWS_DEFAULT_REGION": "us-east-1",
            "LOG_LEVEL": "DEBUG",
        },
    ):
        yield


@pytest.fixture
def mock_s3(mock_env_vars):
    """Mock S3 with moto."""
    with mock_aws():
        s3 = boto3.client("s3", region_name="us-east-1")
        s3.create_bucket(Bucket=TEST_BUCKET)
        yield s3


@pytest.fixture
def s3_settings():
    return Settings(
        storage_backend="s3",
        s3_bucket=TEST_BUCKET,
        s3_prefix="valentine",
        aws_access_key_id="test-key",
        aws_secret_access_key="test-secret",
        aws_region="us-east-1",
        api_tokens=API_TOKEN,
    )


@pytest.fixture
def memory_settings():
    return Settings(storage_backend="memory", api_tokens=API_TOKEN, max_blob_bytes=1024)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {API_TOKEN}"}


@pytest.fixture
def mock_auth_provider():
    """Mock a successful identity provider response."""
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.json.return_value = {"user_id": "test-user"}

    with patch("valentine.service.auth.httpx.AsyncClient") as mock_client:
        mock_client.return_value.__aenter__.return_value.post = AsyncMock(
            return_value=mock_response
        )
        yield mock_client
