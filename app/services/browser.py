"""Headless browser session used to turn a Google access token into cookies."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from playwright.async_api import BrowserContext
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from ..config import Settings
from ..errors import CredentialHarvestError

logger = logging.getLogger(__name__)

NETSCAPE_HEADER = "# Netscape HTTP Cookie File"
RELEVANT_DOMAIN_MARKERS = ("youtube", "google")

GOOGLE_ACCOUNTS_URL = "https://accounts.google.com/"
WATCH_LATER_URL = "https://www.youtube.com/playlist?list=WL"
YOUTUBE_ROBOTS_URL = "https://www.youtube.com/robots.txt"


@dataclass(frozen=True, slots=True)
class BrowserCookie:
    name: str
    value: str
    domain: str
    path: str = "/"
    secure: bool = False
    expires: float | None = None

    @classmethod
    def from_playwright(cls, cookie: Mapping[str, Any]) -> "BrowserCookie":
        expires = cookie.get("expires")
        return cls(
            name=str(cookie.get("name", "")),
            value=str(cookie.get("value", "")),
            domain=str(cookie.get("domain", "")),
            path=str(cookie.get("path") or "/"),
            secure=bool(cookie.get("secure")),
            expires=float(expires) if isinstance(expires, (int, float)) else None,
        )

    @property
    def is_relevant(self) -> bool:
        return any(marker in self.domain for marker in RELEVANT_DOMAIN_MARKERS)

    def to_netscape_line(self) -> str:
        domain = self.domain if self.domain.startswith(".") else f".{self.domain}"
        expiry = str(int(self.expires)) if self.expires and self.expires > 0 else "0"
        return "\t".join(
            (
                domain,
                "TRUE",
                self.path or "/",
                "TRUE" if self.secure else "FALSE",
                expiry,
                self.name,
                self.value,
            )
        )


def format_cookie_jar(cookies: Iterable[BrowserCookie]) -> str:
    """Render YouTube/Google cookies in the Netscape format yt-dlp reads."""

    lines = [NETSCAPE_HEADER]
    lines.extend(cookie.to_netscape_line() for cookie in cookies if cookie.is_relevant)
    return "\n".join(lines) + "\n"


class PlaywrightCookieHarvester:
    """Sign a Chromium session in with a bearer token and collect its cookies."""

    def __init__(
        self,
        *,
        headless: bool = True,
        navigation_timeout: float = 30.0,
        ready_timeout: float = 10.0,
    ) -> None:
        self._headless = headless
        self._navigation_timeout_ms = navigation_timeout * 1000
        self._ready_timeout = ready_timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "PlaywrightCookieHarvester":
        return cls(
            headless=settings.browser_headless,
            navigation_timeout=settings.browser_navigation_timeout_seconds,
            ready_timeout=settings.browser_ready_timeout_seconds,
        )

    async def harvest(self, access_token: str) -> list[BrowserCookie]:
        try:
            async with async_playwright() as playwright:
                browser = await playwright.chromium.launch(
                    headless=self._headless, args=["--no-sandbox"]
                )
                try:
                    context = await browser.new_context(
                        extra_http_headers={"Authorization": f"Bearer {access_token}"}
                    )
                    context.set_default_navigation_timeout(self._navigation_timeout_ms)
                    page = await context.new_page()
                    await page.goto(GOOGLE_ACCOUNTS_URL, wait_until="networkidle")
                    await self._wait_for_session(context)
                    # The playlist page only primes YouTube cookies; failures are expected.
                    with suppress(PlaywrightError):
                        await page.goto(WATCH_LATER_URL)
                    await page.goto(YOUTUBE_ROBOTS_URL, wait_until="networkidle")
                    raw_cookies = await context.cookies()
                finally:
                    await browser.close()
        except PlaywrightError as exc:
            raise CredentialHarvestError(f"Browser cookie harvest failed: {exc}") from exc

        cookies = [BrowserCookie.from_playwright(cookie) for cookie in raw_cookies]
        logger.info("Harvested %s browser cookies", len(cookies))
        return cookies

    async def _wait_for_session(self, context: BrowserContext) -> None:
        """Poll until the Google session cookies appear or the timeout passes."""

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._ready_timeout
        while True:
            cookies = await context.cookies(GOOGLE_ACCOUNTS_URL)
            if cookies:
                return
            if loop.time() >= deadline:
                logger.info(
                    "No Google session cookies after %.1fs, continuing",
                    self._ready_timeout,
                )
                return
            await asyncio.sleep(0.25)
