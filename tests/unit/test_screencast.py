# Copyright 2026 Firefly Software Solutions Inc
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for the screencast channel and frame acknowledgement loop."""

import asyncio
import base64
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from demoreel.core.screencast import (
    CapturedFrame,
    FrameAckLoop,
    FrameBuffer,
    ScreencastChannel,
)
from demoreel.exceptions import ScreencastError


def _frame_event(i: int) -> dict:
    return {
        "data": base64.b64encode(f"img-{i}".encode()).decode(),
        "sessionId": 100 + i,
        "metadata": {"timestamp": float(i)},
    }


class TestCapturedFrame:
    """Tests for CapturedFrame."""

    def test_payload_decodes_base64(self):
        """Test payload returns the decoded image bytes."""
        frame = CapturedFrame(index=0, data=base64.b64encode(b"\x89PNG data").decode())

        assert frame.payload == b"\x89PNG data"

    def test_default_values(self):
        """Test default frame values."""
        frame = CapturedFrame(index=3, data="")

        assert frame.session_id is None
        assert frame.received_at > 0
        assert frame.metadata == {}


class TestFrameBuffer:
    """Tests for FrameBuffer."""

    def test_drain_preserves_arrival_order(self):
        """Test drain returns frames in the order they were appended."""
        buffer = FrameBuffer()
        for i in range(5):
            buffer.append(CapturedFrame(index=i, data=""))

        frames = buffer.drain()

        assert [f.index for f in frames] == [0, 1, 2, 3, 4]
        assert len(buffer) == 0
        assert buffer.total_received == 5

    def test_drain_empty(self):
        """Test draining an empty buffer."""
        assert FrameBuffer().drain() == []

    def test_high_water_mark_warns_once_and_keeps_frames(self, caplog):
        """Test passing the high-water mark logs once and drops nothing."""
        buffer = FrameBuffer(high_water_mark=2)

        with caplog.at_level(logging.WARNING, logger="demoreel"):
            for i in range(6):
                buffer.append(CapturedFrame(index=i, data=""))

        warnings = [r for r in caplog.records if "high-water mark" in r.getMessage()]
        assert len(warnings) == 1
        assert len(buffer) == 6


class TestFrameAckLoop:
    """Tests for FrameAckLoop."""

    @pytest.mark.asyncio
    async def test_each_frame_indexed_enqueued_and_acked_once(self):
        """Test every frame gets the next index, is buffered and acked exactly once."""
        buffer = FrameBuffer()
        loop = FrameAckLoop(buffer)
        cdp = MagicMock()
        cdp.send = AsyncMock()
        loop.bind(cdp)

        for i in range(4):
            loop.on_frame(_frame_event(i))
        await loop.drain_acks()

        frames = buffer.drain()
        assert [f.index for f in frames] == [0, 1, 2, 3]
        assert [f.session_id for f in frames] == [100, 101, 102, 103]
        assert loop.received == 4
        assert loop.acknowledged == 4
        acked = [c.args[1]["sessionId"] for c in cdp.send.await_args_list]
        assert acked == [100, 101, 102, 103]
        assert all(c.args[0] == "Page.screencastFrameAck" for c in cdp.send.await_args_list)

    @pytest.mark.asyncio
    async def test_frame_is_enqueued_before_ack_is_sent(self):
        """Test a frame is already in the buffer when its ack goes out."""
        buffer = FrameBuffer()
        loop = FrameAckLoop(buffer)
        buffered_at_ack = []

        async def send(method, params):
            buffered_at_ack.append((params["sessionId"], buffer.total_received))

        cdp = MagicMock()
        cdp.send = AsyncMock(side_effect=send)
        loop.bind(cdp)

        loop.on_frame(_frame_event(0))
        await loop.drain_acks()
        loop.on_frame(_frame_event(1))
        await loop.drain_acks()

        assert buffered_at_ack == [(100, 1), (101, 2)]

    @pytest.mark.asyncio
    async def test_ack_failure_does_not_drop_frame(self):
        """Test a failed ack is counted but the frame stays buffered."""
        buffer = FrameBuffer()
        loop = FrameAckLoop(buffer)
        cdp = MagicMock()
        cdp.send = AsyncMock(side_effect=Exception("Target closed"))
        loop.bind(cdp)

        loop.on_frame(_frame_event(0))
        await loop.drain_acks()

        assert len(buffer) == 1
        assert loop.acknowledged == 0
        assert loop.ack_failures == 1

    @pytest.mark.asyncio
    async def test_frame_without_session_id_is_buffered_not_acked(self):
        """Test a frame with no sessionId is kept but cannot be acked."""
        buffer = FrameBuffer()
        loop = FrameAckLoop(buffer)
        cdp = MagicMock()
        cdp.send = AsyncMock()
        loop.bind(cdp)

        loop.on_frame({"data": ""})
        await loop.drain_acks()

        assert len(buffer) == 1
        cdp.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_closed_loop_ignores_frames(self, caplog):
        """Test frames arriving after close are dropped, counted and reported."""
        buffer = FrameBuffer()
        loop = FrameAckLoop(buffer)
        cdp = MagicMock()
        cdp.send = AsyncMock()
        loop.bind(cdp)
        loop.close()

        with caplog.at_level(logging.WARNING, logger="demoreel"):
            loop.on_frame(_frame_event(0))
            loop.on_frame(_frame_event(1))
        await loop.drain_acks()

        assert len(buffer) == 0
        assert loop.received == 0
        assert loop.dropped == 2
        cdp.send.assert_not_awaited()
        dropped = [r for r in caplog.records if "dropped without ack" in r.getMessage()]
        assert len(dropped) == 2
        assert "2 dropped so far" in dropped[-1].getMessage()


class TestScreencastChannel:
    """Tests for ScreencastChannel."""

    @pytest.mark.asyncio
    async def test_start_sends_screencast_parameters(self, cdp_session_factory, page_factory):
        """Test start issues Page.startScreencast with the requested settings."""
        cdp = cdp_session_factory()
        page = page_factory(cdp)
        channel = ScreencastChannel(page, FrameAckLoop(FrameBuffer()))

        await channel.open()
        await channel.start(1920, 1080, quality=80, stride=2, format="png")

        assert channel.started is True
        assert cdp.calls[0] == (
            "Page.startScreencast",
            {
                "format": "png",
                "quality": 80,
                "maxWidth": 1920,
                "maxHeight": 1080,
                "everyNthFrame": 2,
            },
        )
        assert "Page.screencastFrame" in cdp.handlers
        page.on.assert_called_once_with("load", channel._on_page_load)

    @pytest.mark.asyncio
    async def test_start_before_open_raises(self, page_factory):
        """Test start without an open CDP session is rejected."""
        channel = ScreencastChannel(page_factory(), FrameAckLoop(FrameBuffer()))

        with pytest.raises(ScreencastError, match="not open"):
            await channel.start(800, 600)

    @pytest.mark.asyncio
    async def test_start_rejects_unknown_format(self, page_factory):
        """Test unsupported image formats are rejected."""
        channel = ScreencastChannel(page_factory(), FrameAckLoop(FrameBuffer()))
        await channel.open()

        with pytest.raises(ScreencastError, match="Unsupported"):
            await channel.start(800, 600, format="webp")

    @pytest.mark.asyncio
    async def test_stop_without_start_raises(self, page_factory):
        """Test stop before start is a programming error."""
        channel = ScreencastChannel(page_factory(), FrameAckLoop(FrameBuffer()))
        await channel.open()

        with pytest.raises(ScreencastError, match="without a prior start"):
            await channel.stop()

    @pytest.mark.asyncio
    async def test_full_capture_acknowledges_every_frame(self, cdp_session_factory, page_factory):
        """Test the browser never stalls and each frame is acked exactly once."""
        cdp = cdp_session_factory(frame_count=50)
        buffer = FrameBuffer()
        loop = FrameAckLoop(buffer)
        channel = ScreencastChannel(page_factory(cdp), loop)

        await channel.open()
        await channel.start(1280, 720, stride=1)
        await channel.stop()
        await channel.close()

        assert cdp.stalled is False
        assert cdp.emitted == 50
        assert cdp.acked == list(range(1, 51))
        assert loop.acknowledged == 50
        assert [f.index for f in buffer.drain()] == list(range(50))
        methods = cdp.methods()
        assert "Page.stopScreencast" in methods
        assert methods[-1] == "detach"
        assert methods.count("Page.screencastFrameAck") == 50
        assert cdp.detached is True

    @pytest.mark.asyncio
    async def test_stop_closes_ack_loop(self, cdp_session_factory, page_factory):
        """Test frames after stop are ignored."""
        cdp = cdp_session_factory()
        loop = FrameAckLoop(FrameBuffer())
        channel = ScreencastChannel(page_factory(cdp), loop)
        await channel.open()
        await channel.start(800, 600)

        await channel.stop()
        loop.on_frame(_frame_event(0))

        assert loop.received == 0
        assert channel.started is False

    @pytest.mark.asyncio
    async def test_page_load_restarts_screencast(self, cdp_session_factory, page_factory):
        """Test a navigation re-issues startScreencast with the same parameters."""
        cdp = cdp_session_factory()
        channel = ScreencastChannel(page_factory(cdp), FrameAckLoop(FrameBuffer()))
        await channel.open()
        await channel.start(800, 600, quality=70, stride=3)

        channel._on_page_load()
        await asyncio.sleep(0)
        await channel.stop()

        starts = [params for method, params in cdp.calls if method == "Page.startScreencast"]
        assert len(starts) == 2
        assert starts[0] == starts[1]
