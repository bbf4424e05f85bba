"""Configuration for the snapshot service."""

from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Snapshot service settings, read from the environment or a .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"

    # Storage
    storage_backend: Literal["memory", "s3"] = "memory"
    s3_bucket: str = "valentine-snapshots"
    s3_prefix: str = "valentine"
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = "us-east-1"
    s3_endpoint_url: Optional[str] = None

    # Authentication: external identity provider, or a static token list
    auth_url: Optional[str] = None
    api_tokens: str = ""

    # Combined video blob limit per snapshot
    max_blob_bytes: int = 100 * 1024 * 1024

    @property
    def token_list(self) -> list[str]:
        return [token.strip() for token in self.api_tokens.split(",") if token.strip()]
