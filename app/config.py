"""Application configuration models."""

from __future__ import annotations

import base64
import binascii
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENCRYPTION_KEY_BYTES = 32


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="YouTubio", alias="APP_NAME")
    addon_id: str = Field(default="com.youtubio.python", alias="ADDON_ID")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=7000, alias="PORT")

    encryption_key: bytes | None = Field(default=None, alias="ENCRYPTION_KEY")

    google_client_id: str | None = Field(default=None, alias="GOOGLE_CLIENT_ID")
    google_client_secret: str | None = Field(
        default=None, alias="GOOGLE_CLIENT_SECRET"
    )
    google_redirect_uri: HttpUrl | None = Field(
        default=None, alias="GOOGLE_REDIRECT_URI"
    )
    google_authorize_url: HttpUrl = Field(
        default="https://accounts.google.com/o/oauth2/v2/auth",
        alias="GOOGLE_AUTHORIZE_URL",
    )
    google_token_url: HttpUrl = Field(
        default="https://oauth2.googleapis.com/token", alias="GOOGLE_TOKEN_URL"
    )

    ytdlp_path: str = Field(default="yt-dlp", alias="YTDLP_PATH")
    ytdlp_timeout_seconds: float = Field(
        default=120.0, alias="YTDLP_TIMEOUT", gt=0, le=3_600
    )
    cookie_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()), alias="COOKIE_DIR"
    )

    browser_headless: bool = Field(default=True, alias="BROWSER_HEADLESS")
    browser_navigation_timeout_seconds: float = Field(
        default=30.0, alias="BROWSER_NAVIGATION_TIMEOUT", gt=0, le=300
    )
    browser_ready_timeout_seconds: float = Field(
        default=10.0, alias="BROWSER_READY_TIMEOUT", gt=0, le=120
    )

    embed_html: str = Field(default="", alias="EMBED")

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("encryption_key", mode="before")
    @classmethod
    def _decode_encryption_key(cls, value: object) -> bytes | None:
        """Decode the base64 ``ENCRYPTION_KEY`` into raw AES-256 key bytes."""

        if value is None or value == "" or value == b"":
            return None
        if isinstance(value, bytes):
            value = value.decode("ascii", errors="replace")
        if not isinstance(value, str):
            raise TypeError("ENCRYPTION_KEY must be a base64 string")
        try:
            key = base64.b64decode(value.strip(), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("ENCRYPTION_KEY must be valid base64") from exc
        if len(key) != ENCRYPTION_KEY_BYTES:
            raise ValueError(
                f"ENCRYPTION_KEY must decode to {ENCRYPTION_KEY_BYTES} bytes"
            )
        return key

    @property
    def google_oauth_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
