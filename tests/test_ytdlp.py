"""Tests for the yt-dlp subprocess wrapper."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from app.errors import ExternalToolError
from app.services.ytdlp import (
    FIXED_FLAGS,
    EmptyResult,
    PlaylistResult,
    VideoResult,
    YtDlpRunner,
    decode_output,
)


def test_decode_single_video() -> None:
    result = decode_output(b'{"id": "abc", "title": "Video"}\n')

    assert result == VideoResult(info={"id": "abc", "title": "Video"})


def test_decode_playlist_separates_entries() -> None:
    payload = {
        "id": "PL1",
        "title": "List",
        "entries": [{"id": "a"}, None, {"id": "b"}],
    }

    result = decode_output(json.dumps(payload).encode())

    assert isinstance(result, PlaylistResult)
    assert result.info == {"id": "PL1", "title": "List"}
    assert [entry["id"] for entry in result.entries] == ["a", "b"]


def test_decode_empty_playlist() -> None:
    result = decode_output(b'{"id": "x", "entries": []}')

    assert isinstance(result, PlaylistResult)
    assert result.entries == []


@pytest.mark.parametrize("stdout", [b"", b"   \n", b"ERROR: nope", b"[1, 2]", b"null"])
def test_decode_rejects_unusable_output(stdout: bytes) -> None:
    with pytest.raises(ExternalToolError):
        decode_output(stdout)


def test_build_arguments_appends_fixed_flags_and_cookies(tmp_path: Path) -> None:
    cookie = tmp_path / "cookies.txt"

    arguments = YtDlpRunner.build_arguments([":ytsubs", "--flat-playlist"], cookie)

    assert arguments[:2] == [":ytsubs", "--flat-playlist"]
    for flag in FIXED_FLAGS:
        assert flag in arguments
    assert arguments[-2:] == ["--cookies", str(cookie)]


def test_build_arguments_without_cookies() -> None:
    assert "--cookies" not in YtDlpRunner.build_arguments(["query"])


@pytest.mark.anyio
async def test_run_returns_playlist(stub_ytdlp) -> None:
    tool = stub_ytdlp(json.dumps({"id": "PL", "entries": [{"id": "v1"}]}))
    runner = YtDlpRunner(tool.command, timeout=30)

    result = await runner.run(["https://www.youtube.com/playlist?list=PL"])

    assert isinstance(result, PlaylistResult)
    assert result.entries == [{"id": "v1"}]
    (call,) = tool.calls
    assert call["args"][0] == "https://www.youtube.com/playlist?list=PL"
    assert set(FIXED_FLAGS) <= set(call["args"])
    assert call["cookie"] is None


@pytest.mark.anyio
async def test_run_passes_cookie_file(stub_ytdlp, tmp_path: Path) -> None:
    tool = stub_ytdlp('{"id": "v1"}')
    cookie = tmp_path / "jar.txt"
    cookie.write_text("# Netscape HTTP Cookie File\n", encoding="utf-8")

    result = await YtDlpRunner(tool.command).run(["-j", "v1"], cookie_file=cookie)

    assert result == VideoResult(info={"id": "v1"})
    (call,) = tool.calls
    assert call["cookie"]["path"] == str(cookie)
    assert call["cookie"]["exists"] is True


@pytest.mark.anyio
async def test_nonzero_exit_with_json_is_accepted(stub_ytdlp) -> None:
    tool = stub_ytdlp('{"id": "partial", "entries": [{"id": "a"}]}', exit_code=1)

    result = await YtDlpRunner(tool.command).run(["query"])

    assert isinstance(result, PlaylistResult)
    assert result.info["id"] == "partial"


@pytest.mark.anyio
async def test_nonzero_exit_without_json_is_empty(stub_ytdlp) -> None:
    tool = stub_ytdlp("ERROR: private video", exit_code=1)

    assert await YtDlpRunner(tool.command).run(["query"]) == EmptyResult()


@pytest.mark.anyio
async def test_execute_raises_on_garbage(stub_ytdlp) -> None:
    tool = stub_ytdlp("not json", exit_code=2)

    with pytest.raises(ExternalToolError, match="status 2"):
        await YtDlpRunner(tool.command).execute(["query"])


@pytest.mark.anyio
async def test_timeout_yields_empty_result(stub_ytdlp, caplog) -> None:
    tool = stub_ytdlp('{"id": "late"}', sleep=5.0)

    with caplog.at_level("WARNING"):
        result = await YtDlpRunner(tool.command, timeout=0.5).run(["query"])

    assert result == EmptyResult()
    assert any("timed out" in record.getMessage() for record in caplog.records)


@pytest.mark.anyio
async def test_missing_executable_yields_empty_result(tmp_path: Path) -> None:
    runner = YtDlpRunner(str(tmp_path / "does-not-exist"))

    assert await runner.run(["query"]) == EmptyResult()


@pytest.mark.anyio
async def test_missing_executable_raises_from_execute(tmp_path: Path) -> None:
    runner = YtDlpRunner(str(tmp_path / "does-not-exist"))

    with pytest.raises(ExternalToolError, match="Unable to start"):
        await runner.execute(["query"])


@pytest.mark.anyio
async def test_null_byte_argument_yields_empty_result(stub_ytdlp) -> None:
    tool = stub_ytdlp('{"id": "v"}')

    result = await YtDlpRunner(tool.command).run(
        ["https://www.youtube.com/watch?v=a\x00b", "-j"]
    )

    assert result == EmptyResult()
    assert tool.calls == []
