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

"""
Recording session lifecycle for DemoReel.

The SessionManager owns the working directories and the browser for one
recording and drives it through these states:

    INITIALIZING -> BROWSER_LAUNCHING -> RECORDING -> INTERACTING
    -> STOPPING_CAPTURE -> PERSISTING -> ENCODING -> CLEANING_UP -> DONE

Stage failures are turned into a SessionResult naming the failing stage.
The browser is released exactly once after a successful launch and the
temp frame directory is removed on every path after initialization.

Example:
    >>> config = SessionConfig(target_url="http://localhost:3000")
    >>> result = await SessionManager(config).run()
    >>> print(result.summary())
"""

from __future__ import annotations

import shutil
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Union

from demoreel.core.browser import BrowserManager
from demoreel.core.encoder import (
    EncodeCompleted,
    EncodeFailed,
    EncodeJob,
    EncodeProgress,
    EncodeStarted,
    EncoderConfig,
    EncoderEvent,
    EncoderOrchestrator,
)
from demoreel.core.interactions import (
    InteractionDriver,
    InteractionReport,
    InteractionStep,
    default_walkthrough,
)
from demoreel.core.page import PageController
from demoreel.core.persister import FramePersister
from demoreel.core.screencast import (
    SCREENCAST_FORMATS,
    FrameAckLoop,
    FrameBuffer,
    ScreencastChannel,
)
from demoreel.exceptions import (
    BrowserError,
    ConfigurationError,
    InteractionError,
    PageError,
    PersistenceError,
    ScreencastError,
    StorageError,
)
from demoreel.utils.logger import logger


class SessionState(str, Enum):
    """States of a recording session."""

    CREATED = "created"
    INITIALIZING = "initializing"
    BROWSER_LAUNCHING = "browser_launching"
    RECORDING = "recording"
    INTERACTING = "interacting"
    STOPPING_CAPTURE = "stopping_capture"
    PERSISTING = "persisting"
    ENCODING = "encoding"
    CLEANING_UP = "cleaning_up"
    DONE = "done"


@dataclass
class SessionConfig:
    """Configuration for one recording session.

    Attributes:
        target_url: Page to record; None records the placeholder page
        output_root: Root of the temp/ and final/ directories
        output_name: File name (without extension) of the finished video
        width: Viewport and screencast width
        height: Viewport and screencast height
        stride: Capture every Nth rendered frame
        screencast_format: "png" or "jpeg"
        quality: Screencast compression quality (0-100)
        input_rate: Rate the still frames are read at; defaults to stride
        navigation_timeout_ms: Bound on navigating to the target
        wait_until: Navigation wait condition
        placeholder_title: Heading of the fallback page
        strict_interactions: Abort the session on the first failing step
        settle_ms: Pause after each scripted step
        headless: Run the browser without a window
        buffer_high_water_mark: Frame count that triggers a memory warning
    """

    target_url: Optional[str] = None
    output_root: Path = Path("videos")
    output_name: str = "walkthrough-demo"
    width: int = 1920
    height: int = 1080
    stride: int = 2
    screencast_format: str = "png"
    quality: int = 80
    input_rate: Optional[float] = None
    navigation_timeout_ms: int = 10000
    wait_until: str = "networkidle"
    placeholder_title: str = "Alchemist Academy"
    strict_interactions: bool = False
    settle_ms: int = 500
    headless: bool = True
    buffer_high_water_mark: int = 5000

    def __post_init__(self) -> None:
        self.output_root = Path(self.output_root)
        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError(f"Invalid resolution {self.width}x{self.height}")
        # yuv420p subsamples chroma 2x2
        if self.width % 2 or self.height % 2:
            raise ConfigurationError(
                f"Resolution must have even dimensions, got {self.width}x{self.height}"
            )
        if self.stride <= 0:
            raise ConfigurationError(f"Stride must be positive, got {self.stride}")
        if self.screencast_format not in SCREENCAST_FORMATS:
            raise ConfigurationError(f"Unsupported screencast format: {self.screencast_format}")
        if not 0 <= self.quality <= 100:
            raise ConfigurationError(f"Quality must be between 0 and 100, got {self.quality}")
        if self.input_rate is not None and self.input_rate <= 0:
            raise ConfigurationError(f"Input rate must be positive, got {self.input_rate}")
        if not self.output_name:
            raise ConfigurationError("Output name must not be empty")

    @property
    def frame_extension(self) -> str:
        return "jpg" if self.screencast_format == "jpeg" else "png"

    @property
    def effective_input_rate(self) -> float:
        return self.input_rate if self.input_rate is not None else float(self.stride)


@dataclass
class CaptureSession:
    """State of one recording run, passed to every stage."""

    config: SessionConfig
    temp_dir: Path
    final_dir: Path
    output_path: Path
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: SessionState = SessionState.CREATED
    started_at: float = field(default_factory=time.time)
    buffer: FrameBuffer = field(default_factory=FrameBuffer)

    @classmethod
    def from_config(cls, config: SessionConfig, video_extension: str) -> "CaptureSession":
        final_dir = config.output_root / "final"
        return cls(
            config=config,
            temp_dir=config.output_root / "temp",
            final_dir=final_dir,
            output_path=final_dir / f"{config.output_name}.{video_extension}",
            buffer=FrameBuffer(high_water_mark=config.buffer_high_water_mark),
        )


@dataclass
class SessionResult:
    """Aggregated outcome of a recording session."""

    session_id: str
    success: bool = False
    state: SessionState = SessionState.CREATED
    failed_stage: Optional[SessionState] = None
    error: Optional[str] = None
    output_path: Optional[Path] = None
    frames_captured: int = 0
    frames_persisted: int = 0
    target_reached: Optional[bool] = None
    interactions: Optional[InteractionReport] = None
    cleanup_warning: Optional[str] = None
    duration_seconds: float = 0.0

    def summary(self) -> str:
        if self.success:
            return f"Demo video created: {self.output_path}"
        stage = self.failed_stage.value if self.failed_stage else "unknown"
        return f"Recording failed during {stage}: {self.error}"


class SessionManager:
    """
    Runs a complete recording session.

    Attributes:
        config: Session configuration
        encoder_config: Encoder configuration
        script: Walkthrough steps replayed during capture
        session: The CaptureSession owned by this manager
    """

    def __init__(
        self,
        config: SessionConfig,
        encoder_config: Optional[EncoderConfig] = None,
        script: Optional[Sequence[InteractionStep]] = None,
        browser_factory: Optional[Callable[[], Any]] = None,
        encoder: Optional[EncoderOrchestrator] = None,
        on_event: Optional[Callable[[EncoderEvent], None]] = None,
    ) -> None:
        self.config = config
        self.encoder_config = encoder_config or EncoderConfig()
        self.script: List[InteractionStep] = (
            list(script) if script is not None else default_walkthrough()
        )
        self.browser_factory = browser_factory or self._default_browser
        self.encoder = encoder or EncoderOrchestrator(self.encoder_config)
        self.on_event = on_event
        self.session = CaptureSession.from_config(config, self.encoder_config.extension)
        self._last_percent = -1

    def _default_browser(self) -> BrowserManager:
        return BrowserManager(
            headless=self.config.headless,
            width=self.config.width,
            height=self.config.height,
        )

    def _transition(self, state: SessionState) -> None:
        logger.debug(f"[SESSION] {self.session.state.value} -> {state.value}")
        self.session.state = state

    def _fail(self, result: SessionResult, stage: SessionState, error: Union[Exception, str]) -> None:
        result.success = False
        result.failed_stage = stage
        result.error = str(error)
        logger.error(f"[SESSION] {stage.value} failed: {error}")

    async def run(self) -> SessionResult:
        """
        Execute the session from initialization to cleanup.

        Returns:
            SessionResult describing success or the failing stage
        """
        session = self.session
        result = SessionResult(session_id=session.session_id)
        logger.info(f"[SESSION] Starting recording session {session.session_id}")

        self._transition(SessionState.INITIALIZING)
        try:
            self._prepare_directories()
        except StorageError as e:
            self._fail(result, SessionState.INITIALIZING, e)
            self._transition(SessionState.DONE)
            result.state = session.state
            return result

        try:
            await self._record_and_encode(result)
        finally:
            self._cleanup(result)
            self._transition(SessionState.DONE)
            result.state = session.state
            result.duration_seconds = time.time() - session.started_at

        if result.success:
            logger.info(f"[SESSION] {result.summary()}")
        else:
            logger.error(f"[SESSION] {result.summary()}")
        return result

    def _prepare_directories(self) -> None:
        session = self.session
        try:
            if session.temp_dir.exists():
                # Stale frames would be picked up by the encoder's input pattern
                shutil.rmtree(session.temp_dir)
            session.temp_dir.mkdir(parents=True, exist_ok=True)
            session.final_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to prepare {self.config.output_root}: {e}") from e
        logger.info(f"[SESSION] Directories ready under {self.config.output_root}")

    async def _record_and_encode(self, result: SessionResult) -> None:
        self._transition(SessionState.BROWSER_LAUNCHING)
        try:
            browser = self.browser_factory()
            await browser.start()
        except BrowserError as e:
            self._fail(result, SessionState.BROWSER_LAUNCHING, e)
            return

        try:
            captured = await self._capture(browser, result)
        finally:
            await self._release_browser(browser)
        if not captured:
            return

        self._transition(SessionState.PERSISTING)
        persister = FramePersister(self.session.temp_dir, self.config.frame_extension)
        try:
            persisted = persister.persist(self.session.buffer)
        except PersistenceError as e:
            self._fail(result, SessionState.PERSISTING, e)
            return
        result.frames_persisted = persisted.count

        self._transition(SessionState.ENCODING)
        output_path = self.session.output_path
        try:
            if output_path.exists():
                output_path.unlink()
        except OSError as e:
            self._fail(result, SessionState.ENCODING, f"Cannot replace {output_path}: {e}")
            return
        job = EncodeJob.from_config(
            self.encoder_config,
            input_pattern=persisted.pattern,
            frame_count=persisted.count,
            input_rate=self.config.effective_input_rate,
            width=self.config.width,
            height=self.config.height,
            output_path=output_path,
        )
        outcome = await self.encoder.run(job, on_event=self._handle_encoder_event)
        if isinstance(outcome, EncodeFailed):
            self._fail(result, SessionState.ENCODING, outcome.message)
            return

        result.success = True
        result.output_path = outcome.output_path

    async def _capture(self, browser: Any, result: SessionResult) -> bool:
        """Record while replaying the script. Returns False if the session failed."""
        self._transition(SessionState.RECORDING)
        page = browser.page
        ack_loop = FrameAckLoop(self.session.buffer)
        channel = ScreencastChannel(page, ack_loop)
        try:
            await channel.open()
            await channel.start(
                self.config.width,
                self.config.height,
                quality=self.config.quality,
                stride=self.config.stride,
                format=self.config.screencast_format,
            )
        except Exception as e:
            self._fail(result, SessionState.RECORDING, e)
            await channel.close()
            return False

        interaction_error: Optional[InteractionError] = None
        try:
            self._transition(SessionState.INTERACTING)
            await self._interact(page, result)
        except InteractionError as e:
            interaction_error = e
        finally:
            self._transition(SessionState.STOPPING_CAPTURE)
            try:
                await channel.stop()
            except ScreencastError:
                raise
            except Exception as e:
                logger.warning(f"[CAPTURE] Error stopping screencast: {e}")
            await channel.close()
            result.frames_captured = ack_loop.received
            logger.info(f"[CAPTURE] Recording completed: {result.frames_captured} frames captured")

        if interaction_error is not None:
            self._fail(result, SessionState.INTERACTING, interaction_error)
            return False
        return True

    async def _interact(self, page: Any, result: SessionResult) -> None:
        controller = PageController(page)
        try:
            result.target_reached = await controller.open_target(
                self.config.target_url,
                self.config.placeholder_title,
                wait_until=self.config.wait_until,
                timeout=self.config.navigation_timeout_ms,
            )
        except PageError as e:
            if self.config.strict_interactions:
                raise InteractionError(f"Could not open a page to record: {e}") from e
            logger.warning(f"[SESSION] Could not open a page to record, continuing: {e}")
            result.target_reached = False

        driver = InteractionDriver(
            controller,
            strict=self.config.strict_interactions,
            settle_ms=self.config.settle_ms,
        )
        result.interactions = await driver.run(self.script)

    async def _release_browser(self, browser: Any) -> None:
        try:
            await browser.stop()
        except Exception as e:
            logger.warning(f"[SESSION] Error releasing browser: {e}")

    def _handle_encoder_event(self, event: EncoderEvent) -> None:
        if isinstance(event, EncodeStarted):
            logger.info("[ENCODE] FFmpeg processing started")
        elif isinstance(event, EncodeProgress):
            if event.percent != self._last_percent:
                self._last_percent = event.percent
                logger.info(f"[ENCODE] Processing: {event.percent}%")
        elif isinstance(event, EncodeCompleted):
            logger.info(
                f"[ENCODE] Video processing completed "
                f"({event.size_bytes / (1024 * 1024):.1f} MB in {event.elapsed_seconds:.1f}s)"
            )
        elif isinstance(event, EncodeFailed):
            logger.error(f"[ENCODE] FFmpeg error: {event.message}")

        if self.on_event is not None:
            self.on_event(event)

    def _cleanup(self, result: SessionResult) -> None:
        self._transition(SessionState.CLEANING_UP)
        try:
            shutil.rmtree(self.session.temp_dir)
            logger.info("[SESSION] Cleanup completed")
        except FileNotFoundError:
            logger.debug("[SESSION] Temp directory already removed")
        except OSError as e:
            result.cleanup_warning = str(e)
            logger.warning(f"[SESSION] Cleanup warning: {e}")
