# Copyright 2026 Firefly Software Solutions Inc
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""CDP screencast capture for DemoReel.

Chromium pushes screencast frames through the DevTools Protocol and will
not emit the next frame until the previous one has been acknowledged with
``Page.screencastFrameAck``. This module turns that push channel into an
explicit producer/consumer queue:

- ``ScreencastChannel`` opens the CDP session and starts/stops the stream
- ``FrameAckLoop`` numbers each inbound frame, enqueues it and acknowledges
  it immediately, before any disk or encoder work happens
- ``FrameBuffer`` holds the frames in arrival order until they are persisted
"""

from __future__ import annotations

import asyncio
import base64
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from playwright.async_api import CDPSession, Page

from demoreel.exceptions import ScreencastError
from demoreel.utils.logger import logger

SCREENCAST_FORMATS = ("png", "jpeg")


@dataclass
class CapturedFrame:
    """One screencast frame, numbered at receipt.

    Attributes:
        index: Sequence number assigned on arrival, starting at 0
        data: Base64 image payload exactly as delivered by CDP
        session_id: CDP screencast frame session id used for the ack
        received_at: Wall-clock receipt time
        metadata: CDP frame metadata (timestamp, device size, offsets)
    """

    index: int
    data: str
    session_id: Optional[int] = None
    received_at: float = field(default_factory=time.time)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def payload(self) -> bytes:
        """Decoded image bytes."""
        return base64.b64decode(self.data)


class FrameBuffer:
    """Append-only, arrival-ordered frame queue for one session.

    The buffer is unbounded. Once it passes ``high_water_mark`` frames a
    single warning is logged; frames are never dropped.
    """

    def __init__(self, high_water_mark: int = 5000) -> None:
        self.high_water_mark = high_water_mark
        self._queue: asyncio.Queue = asyncio.Queue()
        self._total = 0
        self._warned = False

    def append(self, frame: CapturedFrame) -> None:
        self._queue.put_nowait(frame)
        self._total += 1
        if not self._warned and self._queue.qsize() > self.high_water_mark:
            self._warned = True
            logger.warning(
                f"[CAPTURE] Frame buffer above high-water mark "
                f"({self._queue.qsize()} > {self.high_water_mark} frames held in memory)"
            )

    def drain(self) -> List[CapturedFrame]:
        """Remove and return every queued frame in arrival order."""
        frames = []
        while True:
            try:
                frames.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                break
        return frames

    @property
    def total_received(self) -> int:
        return self._total

    def __len__(self) -> int:
        return self._queue.qsize()


class FrameAckLoop:
    """Receives screencast frames, enqueues them and acknowledges them.

    Each frame is appended to the buffer first and its ack is scheduled
    right after, from the same callback. Nothing downstream (disk, encoder)
    is ever awaited before the ack is sent.
    """

    def __init__(self, buffer: FrameBuffer) -> None:
        self.buffer = buffer
        self._cdp_session: Optional[CDPSession] = None
        self._next_index = 0
        self._ack_tasks: Set[asyncio.Task] = set()
        self._open = True
        self.acknowledged = 0
        self.ack_failures = 0
        self.dropped = 0
        self._last_log_time = time.time()

    def bind(self, cdp_session: CDPSession) -> None:
        """Attach the CDP session acks are sent on."""
        self._cdp_session = cdp_session
        self._open = True

    @property
    def received(self) -> int:
        return self._next_index

    def on_frame(self, params: Dict[str, Any]) -> None:
        """Handle a ``Page.screencastFrame`` event."""
        if not self._open:
            self.dropped += 1
            logger.warning(
                f"[CAPTURE] Frame arrived after capture closed, dropped without ack "
                f"({self.dropped} dropped so far)"
            )
            return

        frame = CapturedFrame(
            index=self._next_index,
            data=params.get("data", ""),
            session_id=params.get("sessionId"),
            metadata=params.get("metadata") or {},
        )
        self._next_index += 1
        self.buffer.append(frame)

        if frame.session_id is None:
            logger.warning(f"[CAPTURE] Frame {frame.index} has no sessionId, cannot acknowledge")
        else:
            task = asyncio.get_event_loop().create_task(self._ack(frame.session_id))
            self._ack_tasks.add(task)
            task.add_done_callback(self._ack_tasks.discard)

        now = time.time()
        if now - self._last_log_time > 10:
            logger.info(f"[CAPTURE] {self._next_index} frames received")
            self._last_log_time = now

    async def _ack(self, session_id: int) -> None:
        """Acknowledge frame receipt to Chrome."""
        try:
            await self._cdp_session.send("Page.screencastFrameAck", {"sessionId": session_id})
            self.acknowledged += 1
        except Exception as e:
            # Ack failures must not stop the stream
            self.ack_failures += 1
            logger.debug(f"[CAPTURE] Frame ack failed for session {session_id}: {e}")

    async def drain_acks(self) -> None:
        """Wait for every scheduled ack to be sent."""
        if self._ack_tasks:
            await asyncio.gather(*list(self._ack_tasks), return_exceptions=True)

    def close(self) -> None:
        """Stop accepting frames."""
        self._open = False


class ScreencastChannel:
    """Control channel for a Chromium screencast.

    The channel only opens and closes the stream; frame data flows to the
    ``FrameAckLoop`` it subscribes to ``Page.screencastFrame``.

    Example:
        >>> loop = FrameAckLoop(FrameBuffer())
        >>> channel = ScreencastChannel(page, loop)
        >>> await channel.open()
        >>> await channel.start(1920, 1080, quality=80, stride=2)
        >>> # ... interact with the page ...
        >>> await channel.stop()
        >>> await channel.close()
    """

    def __init__(self, page: Page, ack_loop: FrameAckLoop) -> None:
        self.page = page
        self.ack_loop = ack_loop
        self._cdp_session: Optional[CDPSession] = None
        self._params: Optional[Dict[str, Any]] = None
        self._restart_tasks: Set[asyncio.Task] = set()

    @property
    def started(self) -> bool:
        return self._params is not None

    async def open(self) -> None:
        """Create the CDP session and subscribe the ack loop."""
        self._cdp_session = await self.page.context.new_cdp_session(self.page)
        self._cdp_session.on("Page.screencastFrame", self.ack_loop.on_frame)
        self.ack_loop.bind(self._cdp_session)
        logger.debug("[CAPTURE] CDP session created")

    async def start(
        self,
        width: int,
        height: int,
        quality: int = 80,
        stride: int = 1,
        format: str = "png",
    ) -> None:
        """
        Begin the screencast.

        Args:
            width: Maximum frame width
            height: Maximum frame height
            quality: Compression quality (0-100, jpeg only)
            stride: Capture every Nth rendered frame
            format: "png" or "jpeg"

        Raises:
            ScreencastError: If the channel is not open or already started
        """
        if self._cdp_session is None:
            raise ScreencastError("Screencast channel not open. Call open() first.")
        if self.started:
            raise ScreencastError("Screencast already started")
        if format not in SCREENCAST_FORMATS:
            raise ScreencastError(f"Unsupported screencast format: {format}")

        params = {
            "format": format,
            "quality": quality,
            "maxWidth": width,
            "maxHeight": height,
            "everyNthFrame": stride,
        }
        logger.info(
            f"[CAPTURE] Starting CDP screencast\n"
            f"  Resolution: {width}x{height}\n"
            f"  Format: {format} (quality {quality})\n"
            f"  Stride: every {stride} frame(s)"
        )
        await self._cdp_session.send("Page.startScreencast", params)
        self._params = params

        # Chromium stops the screencast when the page navigates
        self.page.on("load", self._on_page_load)

    def _on_page_load(self, *args: Any) -> None:
        if not self.started:
            return
        logger.info("[CAPTURE] Page navigation detected, restarting screencast")
        task = asyncio.get_event_loop().create_task(self._restart())
        self._restart_tasks.add(task)
        task.add_done_callback(self._restart_tasks.discard)

    async def _restart(self) -> None:
        try:
            if self._cdp_session is not None and self._params is not None:
                await self._cdp_session.send("Page.startScreencast", self._params)
        except Exception as e:
            logger.warning(f"[CAPTURE] Failed to restart screencast: {e}")

    async def stop(self) -> None:
        """
        End the screencast and wait for outstanding acks.

        Raises:
            ScreencastError: If the screencast was never started
        """
        if not self.started:
            raise ScreencastError("stop() called without a prior start()")

        self._params = None
        try:
            self.page.remove_listener("load", self._on_page_load)
        except Exception as e:
            logger.debug(f"[CAPTURE] Error removing navigation listener: {e}")

        for task in list(self._restart_tasks):
            task.cancel()
        if self._restart_tasks:
            await asyncio.gather(*list(self._restart_tasks), return_exceptions=True)

        try:
            await self._cdp_session.send("Page.stopScreencast")
        finally:
            await self.ack_loop.drain_acks()
            self.ack_loop.close()
        logger.info(
            f"[CAPTURE] Screencast stopped: {self.ack_loop.received} frames received, "
            f"{self.ack_loop.acknowledged} acknowledged"
        )

    async def close(self) -> None:
        """Detach the CDP session."""
        if self._cdp_session is None:
            return
        try:
            await self._cdp_session.detach()
        except Exception as e:
            logger.debug(f"[CAPTURE] Error detaching CDP session: {e}")
        self._cdp_session = None
