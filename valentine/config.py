"""Client configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Settings for the editor client, read from VALENTINE_* variables."""

    model_config = SettingsConfigDict(env_prefix="VALENTINE_", env_file=".env", extra="ignore")

    base_url: str = "http://localhost:8000"
    api_token: str = ""
    app_url: str = "http://localhost:3000"
    timeout: int = 30
    poll_interval: float = 10.0
    data_dir: Path = Path.home() / ".valentine"
    use_keyring: bool = True

    @property
    def token_dir(self) -> Path:
        return self.data_dir / "tokens"

    @property
    def progress_dir(self) -> Path:
        return self.data_dir / "progress"
