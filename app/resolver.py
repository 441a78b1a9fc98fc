"""Mapping of catalog identifiers to yt-dlp queries."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import quote

from .models import CHANNEL_SEARCH_CATALOG_ID, SEARCH_CATALOG_ID, ContentType

PAGE_SIZE = 100

SEARCH_CATALOG_IDS = frozenset({SEARCH_CATALOG_ID, CHANNEL_SEARCH_CATALOG_ID})
VIRTUAL_PLAYLISTS = frozenset(
    {":ytfav", ":ytwatchlater", ":ytsubs", ":ythistory", ":ytrec", ":ytnotif"}
)

CHANNEL_HANDLE_RE = re.compile(r"@[a-zA-Z0-9][a-zA-Z0-9._-]{1,28}[a-zA-Z0-9]")
# The trailing run keeps longer list ids intact when the hex form matches first.
PLAYLIST_ID_RE = re.compile(r"PL(?:[0-9A-F]{16}|[A-Za-z0-9_-]{32})[A-Za-z0-9_-]*")
CHANNEL_ID_RE = re.compile(r"UC[A-Za-z0-9_-]{22}")

YOUTUBE_BASE_URL = "https://www.youtube.com"
# ``sp`` restricts YouTube results to channels.
CHANNEL_SEARCH_URL = f"{YOUTUBE_BASE_URL}/results?sp=EgIQAg%253D%253D&search_query="
# Extra characters left unescaped in search terms, matching browser encoding.
URI_COMPONENT_SAFE = "!*'()"


@dataclass(frozen=True, slots=True)
class ResolvedQuery:
    """A yt-dlp query plus the 1-based inclusive playlist window."""

    query: str
    start: int
    end: int


def search_expression(term: str) -> str:
    return f"ytsearch{PAGE_SIZE}:{term}"


def channel_search_url(term: str) -> str:
    return f"{CHANNEL_SEARCH_URL}{quote(term, safe=URI_COMPONENT_SAFE)}"


def channel_page_url(target: str) -> str:
    """Return the page URL for a channel handle or a ``UC`` channel id."""

    if CHANNEL_ID_RE.fullmatch(target):
        return f"{YOUTUBE_BASE_URL}/channel/{target}"
    return f"{YOUTUBE_BASE_URL}/{target}"


def _free_text_query(term: str, content_type: ContentType) -> str:
    if content_type == "channel":
        return channel_search_url(term)
    return search_expression(term)


def resolve_query(
    catalog_id: str,
    content_type: ContentType,
    skip: int = 0,
    *,
    search: str | None = None,
) -> ResolvedQuery | None:
    """Resolve ``catalog_id`` into a yt-dlp query for the page at ``skip``.

    Returns ``None`` for a search catalog requested without a search term.
    """

    if skip < 0:
        raise ValueError("skip must be a non-negative integer")
    start, end = skip + 1, skip + PAGE_SIZE

    def window(query: str) -> ResolvedQuery:
        return ResolvedQuery(query=query, start=start, end=end)

    if catalog_id in SEARCH_CATALOG_IDS:
        term = (search or "").strip()
        if not term:
            return None
        return window(_free_text_query(term, content_type))

    if catalog_id in VIRTUAL_PLAYLISTS:
        return window(catalog_id)

    handle = CHANNEL_HANDLE_RE.search(catalog_id)
    if handle:
        return window(f"{YOUTUBE_BASE_URL}/{handle.group(0)}/videos")

    playlist = PLAYLIST_ID_RE.search(catalog_id)
    if playlist:
        return window(f"{YOUTUBE_BASE_URL}/playlist?list={playlist.group(0)}")

    return window(_free_text_query(catalog_id, content_type))
