"""High level orchestration of manifest, catalog and meta requests."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence
from urllib.parse import parse_qsl

from pydantic import ValidationError

from ..config import Settings
from ..envelope import decode_envelope, encode_envelope
from ..models import (
    ID_PREFIX,
    ConfigEnvelope,
    ContentType,
    SessionSecret,
    VideoInfo,
    search_manifest_entries,
)
from ..resolver import YOUTUBE_BASE_URL, channel_page_url, resolve_query
from ..security import SessionCipher
from .credentials import CredentialMaterializer
from .ytdlp import ExtractionResult, PlaylistResult, VideoResult, YtDlpRunner

logger = logging.getLogger(__name__)

SUPPORTED_TYPES: tuple[ContentType, ...] = ("movie", "channel")


def parse_catalog_extra(raw: str | None) -> dict[str, str]:
    """Parse Stremio's ``search=...&skip=...`` extra path segment."""

    if not raw:
        return {}
    return dict(parse_qsl(raw, keep_blank_values=True))


def parse_skip(value: str | None) -> int:
    if value is None or value == "":
        return 0
    try:
        skip = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("skip must be an integer") from exc
    if skip < 0:
        raise ValueError("skip must be a non-negative integer")
    return skip


class AddonService:
    """Stateless request handling; every call starts from the client's token."""

    def __init__(
        self,
        settings: Settings,
        cipher: SessionCipher,
        materializer: CredentialMaterializer,
        runner: YtDlpRunner,
    ) -> None:
        self._settings = settings
        self._cipher = cipher
        self._materializer = materializer
        self._runner = runner

    def decode(self, token: str | None, *, decrypt_secret: bool = True) -> ConfigEnvelope:
        return decode_envelope(token, self._cipher, decrypt_secret=decrypt_secret)

    def link_account(self, refresh_token: str, state: str | None = None) -> str:
        """Return a token carrying ``state``'s settings and the encrypted secret."""

        secret = SessionSecret(auth=refresh_token)
        envelope = self.decode(state, decrypt_secret=False)
        envelope.encrypted = self._cipher.encrypt(secret.model_dump_json())
        return encode_envelope(envelope)

    def build_manifest(self, token: str | None) -> dict[str, Any]:
        envelope = self.decode(token, decrypt_secret=False)
        catalogs = [spec.to_manifest_entry() for spec in envelope.effective_catalogs]
        if envelope.search:
            catalogs.extend(search_manifest_entries("YouTube"))
        return {
            "id": self._settings.addon_id,
            "version": "1.0.0",
            "name": self._settings.app_name,
            "description": (
                "Watch YouTube videos, subscriptions, watch later, and history in Stremio."
            ),
            "resources": ["catalog", "meta"],
            "types": list(SUPPORTED_TYPES),
            "idPrefixes": [ID_PREFIX],
            "catalogs": catalogs,
            "behaviorHints": {"configurable": True},
        }

    async def _extract(
        self, envelope: ConfigEnvelope, args: Sequence[str]
    ) -> ExtractionResult:
        async with self._materializer.materialize(envelope.secret) as cookie_file:
            return await self._runner.run(args, cookie_file=cookie_file)

    async def get_catalog(
        self,
        token: str | None,
        content_type: ContentType,
        catalog_id: str,
        extra: Mapping[str, str] | None = None,
        *,
        scheme: str = "https",
    ) -> dict[str, Any]:
        extra = extra or {}
        skip = parse_skip(extra.get("skip"))
        resolved = resolve_query(
            catalog_id, content_type, skip, search=extra.get("search")
        )
        if resolved is None:
            return {"metas": []}

        envelope = self.decode(token)
        result = await self._extract(
            envelope,
            [
                resolved.query,
                "--flat-playlist",
                "--dump-single-json",
                "--playlist-start",
                str(resolved.start),
                "--playlist-end",
                str(resolved.end),
            ],
        )
        if isinstance(result, PlaylistResult):
            entries = result.entries
        elif isinstance(result, VideoResult):
            entries = [result.info]
        else:
            entries = []

        metas: list[dict[str, object]] = []
        for entry in entries:
            try:
                video = VideoInfo.model_validate(entry)
            except ValidationError as exc:
                logger.debug("Skipping malformed yt-dlp entry: %s", exc)
                continue
            stub = video.to_catalog_stub(content_type, scheme=scheme)
            if stub is not None:
                metas.append(stub)
        return {"metas": metas}

    async def get_meta(
        self,
        token: str | None,
        content_type: ContentType,
        meta_id: str,
        *,
        scheme: str = "https",
        manifest_url: str = "",
    ) -> dict[str, Any]:
        if not meta_id.startswith(ID_PREFIX):
            return {"meta": {}}
        target = meta_id[len(ID_PREFIX):]
        if not target:
            return {"meta": {}}

        envelope = self.decode(token)
        if content_type == "movie":
            args = [f"{YOUTUBE_BASE_URL}/watch?v={target}", "-j"]
            if envelope.mark_watched_on_load:
                args.append("--mark-watched")
        else:
            args = [
                channel_page_url(target),
                "--flat-playlist",
                "--dump-single-json",
                "--playlist-end",
                "1",
            ]

        result = await self._extract(envelope, args)
        if isinstance(result, (VideoResult, PlaylistResult)):
            info = result.info
        else:
            return {"meta": {}}

        try:
            video = VideoInfo.model_validate(info)
        except ValidationError as exc:
            logger.warning("yt-dlp returned unusable metadata for %s: %s", meta_id, exc)
            return {"meta": {}}
        if not video.id:
            return {"meta": {}}
        return {
            "meta": video.to_meta(
                meta_id, content_type, scheme=scheme, manifest_url=manifest_url
            )
        }
