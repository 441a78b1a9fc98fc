"""Lifecycle of the short-lived cookie files handed to yt-dlp."""

from __future__ import annotations

import logging
import os
import threading
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Callable, Protocol

from ..errors import CredentialHarvestError
from ..models import SessionSecret
from ..utils import fail_open
from .browser import PlaywrightCookieHarvester, format_cookie_jar
from .google import GoogleOAuthClient

logger = logging.getLogger(__name__)

# Largest integer that survives a round trip through a double.
COUNTER_LIMIT = 2**53 - 1


class CookieJarSource(Protocol):
    async def cookie_jar(self, refresh_token: str) -> str:
        """Return a Netscape cookie jar for the account behind ``refresh_token``."""


class GoogleCookieJarSource:
    """Refresh the Google access token, then harvest cookies in a browser."""

    def __init__(
        self, oauth: GoogleOAuthClient, harvester: PlaywrightCookieHarvester
    ) -> None:
        self._oauth = oauth
        self._harvester = harvester

    async def cookie_jar(self, refresh_token: str) -> str:
        access_token = await self._oauth.refresh_access_token(refresh_token)
        cookies = await self._harvester.harvest(access_token)
        return format_cookie_jar(cookies)


class CookieFileNamer:
    """Produce cookie file names unique across coroutines, threads and workers."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._counter = 0
        self._lock = threading.Lock()

    def next_name(self) -> str:
        with self._lock:
            value = self._counter
            self._counter = (self._counter + 1) % COUNTER_LIMIT
        timestamp = int(self._clock() * 1000)
        return f"cookies-{os.getpid()}-{timestamp}-{value}.txt"


class CredentialMaterializer:
    """Write harvested cookies to a private temporary file for one invocation."""

    def __init__(
        self,
        source: CookieJarSource,
        directory: Path,
        namer: CookieFileNamer | None = None,
    ) -> None:
        self._source = source
        self._directory = Path(directory)
        self._namer = namer or CookieFileNamer()

    @fail_open(lambda: None, label="Cookie harvest", errors=(CredentialHarvestError,))
    async def _harvest(self, secret: SessionSecret) -> str | None:
        return await self._source.cookie_jar(secret.auth)

    @fail_open(lambda: None, label="Cookie file creation", errors=(CredentialHarvestError,))
    def _create(self, contents: str) -> Path | None:
        path = self._directory / self._namer.next_name()
        flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL
        try:
            fd = os.open(path, flags, 0o600)
        except OSError as exc:
            raise CredentialHarvestError(f"Unable to create cookie file: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(contents)
        except OSError as exc:
            self._remove(path)
            raise CredentialHarvestError(f"Unable to write cookie file: {exc}") from exc
        return path

    @staticmethod
    def _remove(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Unable to delete cookie file %s: %s", path, exc)

    @asynccontextmanager
    async def materialize(
        self, secret: SessionSecret | None
    ) -> AsyncIterator[Path | None]:
        """Yield a cookie file path for ``secret``, or ``None`` when unavailable.

        The file is removed when the block exits, whatever the outcome.
        """

        if secret is None or not secret.auth:
            yield None
            return

        contents = await self._harvest(secret)
        if contents is None:
            yield None
            return

        path = self._create(contents)
        if path is None:
            yield None
            return
        try:
            yield path
        finally:
            self._remove(path)

