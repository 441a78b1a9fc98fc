"""Google OAuth helpers for linking a YouTube account."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx

from ..config import Settings
from ..errors import CredentialHarvestError

logger = logging.getLogger(__name__)

YOUTUBE_READONLY_SCOPE = "https://www.googleapis.com/auth/youtube.readonly"


class GoogleOAuthError(Exception):
    """Raised when Google rejects or fails an authorisation code exchange."""


@dataclass(slots=True)
class GoogleTokens:
    access_token: str | None
    refresh_token: str | None
    expires_in: int | None = None
    scope: str | None = None


class GoogleOAuthClient:
    """Thin wrapper around Google's OAuth 2.0 endpoints."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    @property
    def configured(self) -> bool:
        return self._settings.google_oauth_configured

    def authorization_url(self, redirect_uri: str, state: str = "") -> str:
        query = urlencode(
            {
                "response_type": "code",
                "client_id": self._settings.google_client_id or "",
                "redirect_uri": redirect_uri,
                "scope": YOUTUBE_READONLY_SCOPE,
                "access_type": "offline",
                "prompt": "consent",
                "state": state,
            }
        )
        return f"{self._settings.google_authorize_url}?{query}"

    async def _post_token(self, body: dict[str, str]) -> dict[str, Any]:
        payload = {
            "client_id": self._settings.google_client_id or "",
            "client_secret": self._settings.google_client_secret or "",
            **body,
        }
        response = await self._client.post(
            str(self._settings.google_token_url), data=payload
        )
        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        if response.status_code >= 400:
            description = str(
                data.get("error_description") or data.get("error") or response.text
            )
            raise GoogleOAuthError(
                f"Google token endpoint returned {response.status_code}: {description}"
            )
        return data

    async def exchange_code(self, code: str, redirect_uri: str) -> GoogleTokens:
        """Exchange an authorisation code for access and refresh tokens."""

        try:
            data = await self._post_token(
                {
                    "code": code,
                    "redirect_uri": redirect_uri,
                    "grant_type": "authorization_code",
                }
            )
        except httpx.HTTPError as exc:
            raise GoogleOAuthError(f"Unable to reach Google: {exc}") from exc
        return GoogleTokens(
            access_token=data.get("access_token"),
            refresh_token=data.get("refresh_token"),
            expires_in=_coerce_int(data.get("expires_in")),
            scope=data.get("scope"),
        )

    async def refresh_access_token(self, refresh_token: str) -> str:
        """Return a fresh access token for ``refresh_token``."""

        if not self.configured:
            raise CredentialHarvestError("Google OAuth credentials are not configured")
        try:
            data = await self._post_token(
                {"refresh_token": refresh_token, "grant_type": "refresh_token"}
            )
        except (httpx.HTTPError, GoogleOAuthError) as exc:
            raise CredentialHarvestError(f"Access token refresh failed: {exc}") from exc
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise CredentialHarvestError("Google did not return an access token")
        logger.debug("Refreshed Google access token (expires in %s)", data.get("expires_in"))
        return access_token


def _coerce_int(value: Any, *, default: int | None = None) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
