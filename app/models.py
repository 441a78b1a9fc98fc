"""Pydantic models describing configuration tokens and Stremio payloads."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal
from urllib.parse import quote

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    ValidationInfo,
    field_validator,
)

from .utils import coerce_bool

ContentType = Literal["movie", "channel"]

ID_PREFIX = "yt_id:"
SEARCH_CATALOG_ID = ":ytsearch"
CHANNEL_SEARCH_CATALOG_ID = ":ytsearch_channel"
SKIP_EXTRA: dict[str, object] = {"name": "skip", "isRequired": False}


class CatalogSpec(BaseModel):
    """A single user-configured catalog row."""

    type: ContentType
    id: str
    name: str = ""

    def to_manifest_entry(self) -> dict[str, object]:
        return {
            "type": self.type,
            "id": self.id,
            "name": self.name,
            "extra": [dict(SKIP_EXTRA)],
        }


DEFAULT_CATALOGS: tuple[CatalogSpec, ...] = (
    CatalogSpec(type="movie", id=":ytrec", name="Discover"),
    CatalogSpec(type="movie", id=":ytsubs", name="Subscriptions"),
    CatalogSpec(type="movie", id=":ytwatchlater", name="Watch Later"),
    CatalogSpec(type="movie", id=":ythistory", name="History"),
)


def search_manifest_entries(name: str) -> list[dict[str, object]]:
    """Return the manifest entries for the movie and channel search catalogs."""

    extra = [{"name": "search", "isRequired": True}, dict(SKIP_EXTRA)]
    return [
        {"type": "movie", "id": SEARCH_CATALOG_ID, "name": name, "extra": extra},
        {
            "type": "channel",
            "id": CHANNEL_SEARCH_CATALOG_ID,
            "name": name,
            "extra": [dict(entry) for entry in extra],
        },
    ]


class SessionSecret(BaseModel):
    """Plaintext recovered from a token's encrypted blob."""

    auth: str


class ConfigEnvelope(BaseModel):
    """User configuration carried entirely inside the URL token.

    ``catalogs`` keeps the user's order and duplicates. ``None`` means the user
    never configured catalogs, in which case :data:`DEFAULT_CATALOGS` apply.
    The decrypted secret is attached out of band and is never serialized.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    encrypted: str | None = None
    catalogs: list[CatalogSpec] | None = None
    mark_watched_on_load: bool = Field(default=False, alias="markWatchedOnLoad")
    search: bool = True

    _secret: SessionSecret | None = PrivateAttr(default=None)

    @field_validator("mark_watched_on_load", "search", mode="before")
    @classmethod
    def _parse_flag(cls, value: object, info: ValidationInfo) -> object:
        if value is None:
            return cls.model_fields[info.field_name].default
        return coerce_bool(value)

    @field_validator("encrypted", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def secret(self) -> SessionSecret | None:
        return self._secret

    def attach_secret(self, secret: SessionSecret | None) -> None:
        self._secret = secret

    @property
    def settings(self) -> dict[str, bool]:
        return {"markWatchedOnLoad": self.mark_watched_on_load, "search": self.search}

    @property
    def effective_catalogs(self) -> tuple[CatalogSpec, ...]:
        if self.catalogs is None:
            return DEFAULT_CATALOGS
        return tuple(self.catalogs)

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-ready representation embedded in tokens."""

        return self.model_dump(by_alias=True, exclude_none=True)


class VideoInfo(BaseModel):
    """Subset of the yt-dlp info dict used to build Stremio metas."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    title: str | None = None
    uploader_id: str | None = None
    description: str | None = None
    thumbnail: str | None = None
    thumbnails: list[dict[str, Any]] = Field(default_factory=list)
    upload_date: str | None = None
    timestamp: float | None = None
    duration: float | None = None
    tags: list[str] | None = None
    language: str | None = None
    url: str | None = None
    original_url: str | None = None
    webpage_url: str | None = None
    protocol: str | None = None
    video_ext: str | None = None
    filesize_approx: int | float | None = None
    filename: str | None = None
    subtitles: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)
    automatic_captions: dict[str, list[dict[str, Any]]] = Field(
        default_factory=dict
    )

    @field_validator("thumbnails", "subtitles", "automatic_captions", mode="before")
    @classmethod
    def _none_to_empty(cls, value: object, info: ValidationInfo) -> object:
        if value is None:
            return [] if info.field_name == "thumbnails" else {}
        return value

    @property
    def display_title(self) -> str:
        return self.title or "Unknown Title"

    @property
    def release_year(self) -> str | None:
        if not self.upload_date:
            return None
        return self.upload_date[:4]

    @property
    def released(self) -> str:
        moment = datetime.fromtimestamp(self.timestamp or 0, tz=timezone.utc)
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def poster_url(self, scheme: str) -> str | None:
        """Return the best thumbnail, completing protocol-relative URLs."""

        candidate = self.thumbnail
        if not candidate and self.thumbnails:
            last = self.thumbnails[-1]
            candidate = last.get("url") if isinstance(last, dict) else None
        if not candidate:
            return None
        if candidate.startswith("//"):
            return f"{scheme}:{candidate}"
        return candidate

    def to_catalog_stub(
        self, content_type: ContentType, *, scheme: str
    ) -> dict[str, object] | None:
        """Return a Stremio catalog meta, or ``None`` for id-less entries."""

        if not self.id:
            return None
        channel = content_type == "channel"
        target_id = (self.uploader_id or self.id) if channel else self.id
        meta: dict[str, object] = {
            "id": f"{ID_PREFIX}{target_id}",
            "type": content_type,
            "name": self.display_title,
            "posterShape": "square" if channel else "landscape",
        }
        poster = self.poster_url(scheme)
        if poster:
            meta["poster"] = poster
        if self.description:
            meta["description"] = self.description
        if self.release_year:
            meta["releaseInfo"] = self.release_year
        return meta

    def subtitle_tracks(self) -> list[dict[str, str | None]]:
        tracks: list[dict[str, str | None]] = []
        for source, label_prefix in (
            (self.subtitles, ""),
            (self.automatic_captions, "Auto "),
        ):
            for lang, variants in source.items():
                candidates = [entry for entry in variants or [] if isinstance(entry, dict)]
                if not candidates:
                    continue
                chosen = next(
                    (entry for entry in candidates if entry.get("ext") == "srt"),
                    candidates[0],
                )
                name = chosen.get("name") or lang
                tracks.append(
                    {
                        "id": f"{label_prefix}{name}",
                        "url": chosen.get("url"),
                        "lang": lang,
                    }
                )
        return tracks

    def to_meta(
        self,
        meta_id: str,
        content_type: ContentType,
        *,
        scheme: str,
        manifest_url: str,
    ) -> dict[str, object]:
        """Return a full Stremio meta object with a single playable video."""

        channel = content_type == "channel"
        thumbnail = self.poster_url(scheme)
        streams: list[dict[str, object]] = []
        if content_type == "movie":
            behavior_hints: dict[str, object] = {
                "videoSize": self.filesize_approx,
                "filename": self.filename,
            }
            if self.protocol != "https" or self.video_ext != "mp4":
                behavior_hints["notWebReady"] = True
            streams.extend(
                [
                    {
                        "name": "YT-DLP Player",
                        "url": self.url,
                        "description": "Click to watch the scraped video from YT-DLP",
                        "subtitles": self.subtitle_tracks(),
                        "behaviorHints": behavior_hints,
                    },
                    {
                        "name": "Stremio Player",
                        "ytId": meta_id[len(ID_PREFIX):],
                        "description": "Click to watch using Stremio's built-in YouTube Player",
                    },
                    {
                        "name": "YouTube Player",
                        "externalUrl": self.original_url or self.webpage_url,
                        "description": "Click to watch in the official YouTube Player",
                    },
                ]
            )
        uploader = self.uploader_id or ""
        streams.append(
            {
                "name": "View Channel",
                "externalUrl": (
                    f"stremio:///discover/{quote(manifest_url, safe='')}"
                    f"/movie/{quote(uploader, safe='')}"
                ),
                "description": "Click to open the channel as a Catalog",
            }
        )

        return {
            "id": meta_id,
            "type": content_type,
            "name": self.display_title,
            "genres": self.tags,
            "poster": thumbnail,
            "posterShape": "square" if channel else "landscape",
            "background": thumbnail,
            "description": self.description,
            "releaseInfo": self.release_year,
            "released": self.released,
            "videos": [
                {
                    "id": meta_id,
                    "title": self.display_title,
                    "released": self.released,
                    "thumbnail": thumbnail,
                    "streams": streams,
                    "overview": self.description,
                }
            ],
            "runtime": f"{int((self.duration or 0) // 60)} min",
            "language": self.language,
            "website": self.original_url or self.webpage_url,
            "behaviorHints": {"defaultVideoId": meta_id},
        }
