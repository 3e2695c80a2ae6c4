# Copyright 2026 Firefly Software Solutions Inc
# SPDX-License-Identifier: Apache-2.0

"""Shared fixtures and fakes for DemoReel tests."""

import asyncio
import base64
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest


class FakeCDPSession:
    """Stands in for a Chromium CDP session with screencast flow control.

    After ``Page.startScreencast`` it emits ``frame_count`` frames, one at a
    time, and waits for each frame's ack before emitting the next, the way
    Chromium does. ``Page.stopScreencast`` waits for the emitter to finish so
    tests get a deterministic frame count.
    """

    def __init__(self, frame_count: int = 0, ack_timeout: float = 1.0) -> None:
        self.frame_count = frame_count
        self.ack_timeout = ack_timeout
        self.handlers: Dict[str, List[Callable]] = {}
        self.calls: List[tuple] = []
        self.acked: List[int] = []
        self.emitted = 0
        self.stalled = False
        self.detached = False
        self._ack_event: Optional[asyncio.Event] = None
        self._emitter: Optional[asyncio.Future] = None

    @staticmethod
    def payload_for(i: int) -> bytes:
        return f"frame-{i}".encode()

    def on(self, event: str, handler: Callable) -> None:
        self.handlers.setdefault(event, []).append(handler)

    def methods(self) -> List[str]:
        return [method for method, _ in self.calls]

    async def send(self, method: str, params: Optional[dict] = None) -> dict:
        self.calls.append((method, params))
        if method == "Page.startScreencast":
            if self._emitter is None:
                self._emitter = asyncio.ensure_future(self._emit())
        elif method == "Page.screencastFrameAck":
            self.acked.append(params["sessionId"])
            if self._ack_event is not None:
                self._ack_event.set()
        elif method == "Page.stopScreencast":
            if self._emitter is not None:
                await self._emitter
        return {}

    async def _emit(self) -> None:
        for i in range(self.frame_count):
            self._ack_event = asyncio.Event()
            params = {
                "data": base64.b64encode(self.payload_for(i)).decode(),
                "sessionId": i + 1,
                "metadata": {"timestamp": 1700000000.0 + i},
            }
            self.emitted += 1
            for handler in self.handlers.get("Page.screencastFrame", []):
                handler(params)
            try:
                await asyncio.wait_for(self._ack_event.wait(), timeout=self.ack_timeout)
            except asyncio.TimeoutError:
                self.stalled = True
                return

    async def detach(self) -> None:
        self.calls.append(("detach", None))
        self.detached = True


def make_page(cdp_session: Optional[FakeCDPSession] = None) -> MagicMock:
    """A Playwright Page double whose actions all succeed."""
    page = MagicMock()
    page.url = "about:blank"
    page.context.new_cdp_session = AsyncMock(return_value=cdp_session or FakeCDPSession())
    page.goto = AsyncMock()
    page.set_content = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    page.wait_for_selector = AsyncMock()
    page.evaluate = AsyncMock()
    page.fill = AsyncMock()
    page.title = AsyncMock(return_value="Demo")
    page.locator.return_value.nth.return_value.click = AsyncMock()
    return page


class FakeBrowser:
    """BrowserManager double counting start/stop calls."""

    def __init__(self, page: MagicMock, start_error: Optional[Exception] = None) -> None:
        self.page = page
        self.start = AsyncMock(side_effect=start_error)
        self.stop = AsyncMock()


class FakeStream:
    """Async line stream standing in for a subprocess pipe."""

    def __init__(self, chunks: List[bytes]) -> None:
        self._chunks = list(chunks)

    def __aiter__(self) -> "FakeStream":
        return self

    async def __anext__(self) -> bytes:
        if not self._chunks:
            raise StopAsyncIteration
        return self._chunks.pop(0)

    async def read(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks = []
        return data


class FakeProcess:
    def __init__(
        self,
        returncode: int,
        stdout_lines: List[bytes],
        stderr: bytes,
        on_exit: Optional[Callable[[], None]] = None,
    ) -> None:
        self.stdout = FakeStream(stdout_lines)
        self.stderr = FakeStream([stderr] if stderr else [])
        self.returncode: Optional[int] = None
        self.killed = False
        self._final_returncode = returncode
        self._on_exit = on_exit

    async def wait(self) -> int:
        if self.returncode is None:
            if self._on_exit is not None:
                self._on_exit()
            self.returncode = self._final_returncode
        return self.returncode

    def kill(self) -> None:
        self.killed = True


class FakeFFmpeg:
    """Replacement for asyncio.create_subprocess_exec running a fake ffmpeg.

    On exit code 0 it writes the output file (the last argument) unless
    ``write_output`` is False. On failure it leaves a partial file behind
    when ``leave_partial`` is set.
    """

    def __init__(self) -> None:
        self.returncode = 0
        self.stderr = b""
        self.write_output = True
        self.leave_partial = False
        self.raise_on_start: Optional[Exception] = None
        self.progress_lines: List[bytes] = [
            b"frame=30\n",
            b"out_time_us=1000000\n",
            b"progress=continue\n",
            b"frame=60\n",
            b"out_time_us=2000000\n",
            b"progress=end\n",
        ]
        self.commands: List[List[str]] = []

    @property
    def last_command(self) -> List[str]:
        return self.commands[-1]

    def arg(self, flag: str) -> str:
        cmd = self.last_command
        return cmd[cmd.index(flag) + 1]

    async def __call__(self, *cmd: Any, **kwargs: Any) -> FakeProcess:
        if self.raise_on_start is not None:
            raise self.raise_on_start
        self.commands.append([str(part) for part in cmd])
        output = Path(cmd[-1])

        def on_exit() -> None:
            if self.returncode == 0 and self.write_output:
                output.write_bytes(b"fake video")
            elif self.returncode != 0 and self.leave_partial:
                output.write_bytes(b"partial")

        return FakeProcess(self.returncode, list(self.progress_lines), self.stderr, on_exit)


@pytest.fixture
def temp_dir(tmp_path):
    """Temporary directory as a string path."""
    return str(tmp_path)


@pytest.fixture
def fake_ffmpeg(monkeypatch):
    """Route encoder subprocess launches to a FakeFFmpeg."""
    fake = FakeFFmpeg()
    monkeypatch.setattr("demoreel.core.encoder.asyncio.create_subprocess_exec", fake)
    return fake


@pytest.fixture
def mock_playwright():
    """Playwright instance double with an awaitable chromium launcher."""
    playwright = MagicMock()
    browser = MagicMock()
    context = MagicMock()
    page = MagicMock()

    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()
    page.close = AsyncMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()
    return playwright


@pytest.fixture
def cdp_session_factory():
    """Build FakeCDPSession instances."""
    return FakeCDPSession


@pytest.fixture
def page_factory():
    """Build Page doubles around a CDP session."""
    return make_page


@pytest.fixture
def browser_factory():
    """Build BrowserManager doubles around a page."""
    return FakeBrowser
