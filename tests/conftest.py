"""Pytest configuration and test helpers."""

from __future__ import annotations

import asyncio
import json
import sys
import textwrap
from pathlib import Path
from typing import Callable

import pytest


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


COOKIE_JAR = "# Netscape HTTP Cookie File\n.youtube.com\tTRUE\t/\tTRUE\t0\tSID\tsecret\n"


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


class StubTool:
    """A fake yt-dlp executable that records every invocation."""

    def __init__(self, command: list[str], record: Path) -> None:
        self.command = command
        self.record = record

    @property
    def calls(self) -> list[dict[str, object]]:
        if not self.record.exists():
            return []
        return [
            json.loads(line)
            for line in self.record.read_text(encoding="utf-8").splitlines()
            if line.strip()
        ]


@pytest.fixture
def stub_ytdlp(tmp_path: Path) -> Callable[..., StubTool]:
    """Return a factory writing a fake yt-dlp script into ``tmp_path``."""

    counter = {"value": 0}

    def factory(stdout: str = "{}", *, exit_code: int = 0, sleep: float = 0.0) -> StubTool:
        counter["value"] += 1
        script = tmp_path / f"fake_ytdlp_{counter['value']}.py"
        record = tmp_path / f"calls_{counter['value']}.jsonl"
        script.write_text(
            textwrap.dedent(
                f"""
                import json
                import os
                import sys
                import time

                args = sys.argv[1:]
                cookie = None
                if "--cookies" in args:
                    path = args[args.index("--cookies") + 1]
                    exists = os.path.exists(path)
                    contents = None
                    if exists:
                        with open(path, encoding="utf-8") as handle:
                            contents = handle.read()
                    cookie = {{"path": path, "exists": exists, "contents": contents}}
                with open({str(record)!r}, "a", encoding="utf-8") as handle:
                    handle.write(json.dumps({{"args": args, "cookie": cookie}}) + "\\n")
                time.sleep({sleep!r})
                sys.stdout.write({stdout!r})
                sys.exit({exit_code!r})
                """
            ),
            encoding="utf-8",
        )
        return StubTool([sys.executable, str(script)], record)

    return factory


class FakeCookieSource:
    """Cookie jar source that never touches Google or a browser."""

    def __init__(
        self,
        jar: str = COOKIE_JAR,
        *,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.jar = jar
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    async def cookie_jar(self, refresh_token: str) -> str:
        self.calls.append(refresh_token)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.jar


@pytest.fixture
def cookie_source() -> type[FakeCookieSource]:
    return FakeCookieSource
