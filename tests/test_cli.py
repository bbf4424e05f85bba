"""Tests for CLI helpers."""

import pytest

from valentine import cli
from valentine.config import ClientSettings
from valentine.remote.tokens import FileTokenBackend


def test_read_video_with_heading(tmp_path):
    video = tmp_path / "first.mp4"
    video.write_bytes(b"frames")

    media, heading = cli._read_video(f"{video}=Our first date")

    assert media.data == b"frames"
    assert media.mime_type == "video/mp4"
    assert media.name == "first.mp4"
    assert heading == "Our first date"


def test_read_video_without_heading(tmp_path):
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"frames")

    media, heading = cli._read_video(str(video))

    assert media.mime_type == "video/mp4"
    assert heading is None


def test_link(monkeypatch, capsys):
    monkeypatch.setenv("VALENTINE_APP_URL", "https://cards.example.com/edit")

    cli.link("abc123")

    assert "https://cards.example.com/?saveId=abc123" in capsys.readouterr().out


def test_client_settings_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("VALENTINE_BASE_URL", "https://api.example.com")
    monkeypatch.setenv("VALENTINE_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("VALENTINE_POLL_INTERVAL", "2.5")

    settings = ClientSettings()

    assert settings.base_url == "https://api.example.com"
    assert settings.poll_interval == 2.5
    assert settings.token_dir == tmp_path / "tokens"
    assert settings.progress_dir == tmp_path / "progress"


@pytest.mark.asyncio
async def test_build_client_without_keyring(monkeypatch, tmp_path):
    monkeypatch.setenv("VALENTINE_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("VALENTINE_USE_KEYRING", "false")

    client = cli._build_client(ClientSettings())
    try:
        client.token_store.store_write_token("abc", "tok")

        assert isinstance(client.token_store._backend, FileTokenBackend)
        assert client.token_store.get_write_token("abc") == "tok"
        assert list((tmp_path / "tokens").glob("*.token"))
    finally:
        await client.close()
