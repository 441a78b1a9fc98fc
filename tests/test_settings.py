"""Configuration settings behaviour tests."""

from __future__ import annotations

import base64
from pathlib import Path

import pytest

from app.config import ENCRYPTION_KEY_BYTES, Settings


def test_defaults() -> None:
    """Unset variables should fall back to sensible defaults."""

    settings = Settings(_env_file=None, ENCRYPTION_KEY="")

    assert settings.server_port == 7000
    assert settings.encryption_key is None
    assert settings.ytdlp_path == "yt-dlp"
    assert settings.google_oauth_configured is False


def test_encryption_key_is_base64_decoded() -> None:
    """The encryption key should be decoded into raw key bytes."""

    key = bytes(range(ENCRYPTION_KEY_BYTES))
    settings = Settings(_env_file=None, ENCRYPTION_KEY=base64.b64encode(key).decode())

    assert settings.encryption_key == key


@pytest.mark.parametrize(
    "value",
    [
        base64.b64encode(b"too short").decode(),
        base64.b64encode(b"x" * 48).decode(),
        "not*base64",
    ],
)
def test_encryption_key_invalid_raises(value: str) -> None:
    """Keys that are not 32 bytes of base64 should be rejected."""

    with pytest.raises(ValueError, match="ENCRYPTION_KEY"):
        Settings(_env_file=None, ENCRYPTION_KEY=value)


def test_google_oauth_requires_id_and_secret() -> None:
    """OAuth should only be considered configured with both credentials."""

    only_id = Settings(_env_file=None, GOOGLE_CLIENT_ID="client", GOOGLE_CLIENT_SECRET="")
    both = Settings(_env_file=None, GOOGLE_CLIENT_ID="client", GOOGLE_CLIENT_SECRET="s")

    assert only_id.google_oauth_configured is False
    assert both.google_oauth_configured is True


def test_tool_settings_from_environment(monkeypatch, tmp_path: Path) -> None:
    """yt-dlp and cookie settings should be read from the environment."""

    monkeypatch.setenv("YTDLP_PATH", "/opt/bin/yt-dlp")
    monkeypatch.setenv("YTDLP_TIMEOUT", "45")
    monkeypatch.setenv("COOKIE_DIR", str(tmp_path))

    settings = Settings(_env_file=None)

    assert settings.ytdlp_path == "/opt/bin/yt-dlp"
    assert settings.ytdlp_timeout_seconds == 45
    assert settings.cookie_dir == tmp_path


def test_timeout_must_be_positive() -> None:
    with pytest.raises(ValueError):
        Settings(_env_file=None, YTDLP_TIMEOUT=0)
