"""Subprocess wrapper around the yt-dlp command line tool."""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from ..config import Settings
from ..errors import ExternalToolError
from ..utils import fail_open

logger = logging.getLogger(__name__)

FIXED_FLAGS: tuple[str, ...] = (
    "--skip-download",
    "--ignore-errors",
    "--no-warnings",
    "--no-cache-dir",
)


@dataclass(frozen=True, slots=True)
class VideoResult:
    """yt-dlp described a single entity (a video or a channel page)."""

    info: dict[str, Any]


@dataclass(frozen=True, slots=True)
class PlaylistResult:
    """yt-dlp described a collection; ``info`` holds the top-level fields."""

    info: dict[str, Any]
    entries: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class EmptyResult:
    """yt-dlp failed or returned nothing usable."""


ExtractionResult = VideoResult | PlaylistResult | EmptyResult


def decode_output(stdout: bytes) -> VideoResult | PlaylistResult:
    """Decode yt-dlp's JSON output into a single result variant."""

    text = stdout.decode("utf-8", errors="replace").strip()
    if not text:
        raise ExternalToolError("yt-dlp produced no output")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ExternalToolError(f"yt-dlp output is not JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ExternalToolError("yt-dlp output is not a JSON object")

    entries = data.get("entries")
    if isinstance(entries, list):
        info = {key: value for key, value in data.items() if key != "entries"}
        return PlaylistResult(
            info=info,
            entries=[entry for entry in entries if isinstance(entry, dict)],
        )
    return VideoResult(info=data)


class YtDlpRunner:
    """Run yt-dlp with fixed safety flags and normalise its output."""

    def __init__(
        self,
        executable: str | Sequence[str] = "yt-dlp",
        *,
        timeout: float | None = 120.0,
    ) -> None:
        if isinstance(executable, str):
            self._command: tuple[str, ...] = (executable,)
        else:
            self._command = tuple(executable)
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "YtDlpRunner":
        return cls(settings.ytdlp_path, timeout=settings.ytdlp_timeout_seconds)

    @staticmethod
    def build_arguments(
        args: Sequence[str], cookie_file: Path | None = None
    ) -> list[str]:
        arguments = [*args, *FIXED_FLAGS]
        if cookie_file is not None:
            arguments.extend(["--cookies", str(cookie_file)])
        return arguments

    async def execute(
        self, args: Sequence[str], *, cookie_file: Path | None = None
    ) -> VideoResult | PlaylistResult:
        """Run yt-dlp and decode its output, raising :class:`ExternalToolError`."""

        command = [*self._command, *self.build_arguments(args, cookie_file)]
        logger.debug("Running yt-dlp for %s", args[0] if args else "<no query>")
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as exc:
            raise ExternalToolError(f"Unable to start yt-dlp: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self._timeout
            )
        except asyncio.TimeoutError as exc:
            raise ExternalToolError(
                f"yt-dlp timed out after {self._timeout:.0f}s"
            ) from exc
        finally:
            if process.returncode is None:
                with suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            try:
                result = decode_output(stdout)
            except ExternalToolError as exc:
                raise ExternalToolError(
                    f"yt-dlp exited with status {process.returncode}: "
                    f"{message[-500:] or exc}"
                ) from exc
            logger.info(
                "yt-dlp exited with status %s but returned partial results",
                process.returncode,
            )
            return result
        return decode_output(stdout)

    @fail_open(EmptyResult, label="yt-dlp invocation")
    async def run(
        self, args: Sequence[str], *, cookie_file: Path | None = None
    ) -> ExtractionResult:
        """Run yt-dlp; every failure becomes an :class:`EmptyResult`."""

        return await self.execute(args, cookie_file=cookie_file)
