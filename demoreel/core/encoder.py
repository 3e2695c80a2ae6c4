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

"""FFmpeg encoding of persisted screencast frames.

This module turns a numbered image sequence into one web-playable video:
- ``EncoderConfig`` holds codec, quality profile and output frame rate
- ``EncodeJob`` describes a single encoder invocation
- ``EncoderOrchestrator`` runs ffmpeg and reports a stream of typed events
  (started, progress, completed, failed)

Exactly one terminal event (``EncodeCompleted`` or ``EncodeFailed``) is
produced per job. Encoder failures are reported as events, never raised.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, Callable, Dict, List, Optional, Union

from demoreel.exceptions import ConfigurationError, EncoderError
from demoreel.utils.logger import logger


class VideoCodec(str, Enum):
    """Supported video codecs."""

    H264 = "h264"           # Most compatible, plays everywhere
    H265 = "h265"           # Better compression, weaker browser support
    VP9 = "vp9"             # Open codec, WebM container

    def get_encoder(self) -> str:
        """Get ffmpeg encoder name."""
        encoders = {
            VideoCodec.H264: "libx264",
            VideoCodec.H265: "libx265",
            VideoCodec.VP9: "libvpx-vp9",
        }
        return encoders[self]

    @property
    def container(self) -> str:
        """File extension of the container used for this codec."""
        return "webm" if self == VideoCodec.VP9 else "mp4"

    @property
    def supports_preset(self) -> bool:
        return self in (VideoCodec.H264, VideoCodec.H265)


class QualityProfile(str, Enum):
    """Pre-configured quality profiles for short demo clips."""

    LOW = "low"     # Small files for sharing in chat
    DEMO = "demo"   # Balanced default
    HIGH = "high"   # Sharp text for presentations


_PROFILES: Dict[QualityProfile, Dict[str, object]] = {
    QualityProfile.LOW: {"bitrate": "800k", "crf": 28, "preset": "veryfast"},
    QualityProfile.DEMO: {"bitrate": "2000k", "crf": 23, "preset": "fast"},
    QualityProfile.HIGH: {"bitrate": "5000k", "crf": 19, "preset": "medium"},
}


@dataclass
class EncoderConfig:
    """Configuration for the ffmpeg encode step.

    Attributes:
        codec: Video codec to use
        quality_profile: Pre-configured quality profile
        output_rate: Frame rate of the produced video
        bitrate: Target bitrate (e.g., "2000k"); profile default if None
        crf: Constant Rate Factor; profile default if None
        preset: Encoding preset; profile default if None
        pixel_format: Pixel format for encoding
        faststart: Move the moov atom to the front for progressive download
        ffmpeg_path: Path to ffmpeg binary (auto-detected if None)
    """

    codec: VideoCodec = VideoCodec.H264
    quality_profile: QualityProfile = QualityProfile.DEMO
    output_rate: int = 30
    bitrate: Optional[str] = None
    crf: Optional[int] = None
    preset: Optional[str] = None
    pixel_format: str = "yuv420p"
    faststart: bool = True
    ffmpeg_path: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate and apply quality profile settings."""
        try:
            self.codec = VideoCodec(self.codec)
            self.quality_profile = QualityProfile(self.quality_profile)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        if self.output_rate <= 0:
            raise ConfigurationError(f"Output frame rate must be positive, got {self.output_rate}")

        profile = _PROFILES[self.quality_profile]
        if self.bitrate is None:
            self.bitrate = profile["bitrate"]
        if self.crf is None:
            self.crf = profile["crf"]
        if self.preset is None:
            self.preset = profile["preset"]

    @property
    def extension(self) -> str:
        return self.codec.container

    def resolve_ffmpeg(self) -> str:
        """Find the ffmpeg binary.

        Raises:
            EncoderError: If ffmpeg cannot be found
        """
        candidate = self.ffmpeg_path or os.environ.get("FFMPEG_PATH")
        if candidate:
            return candidate
        found = shutil.which("ffmpeg")
        if not found:
            raise EncoderError(
                "ffmpeg not found in PATH. Please install ffmpeg or set FFMPEG_PATH."
            )
        return found


def _format_rate(rate: float) -> str:
    return f"{rate:g}"


@dataclass
class EncodeJob:
    """A single encoder invocation over a persisted frame sequence."""

    input_pattern: str
    frame_count: int
    input_rate: float
    output_rate: int
    width: int
    height: int
    output_path: Path
    codec: VideoCodec = VideoCodec.H264
    bitrate: Optional[str] = "2000k"
    crf: Optional[int] = 23
    preset: Optional[str] = "fast"
    pixel_format: str = "yuv420p"
    faststart: bool = True

    def __post_init__(self) -> None:
        self.output_path = Path(self.output_path)
        self.codec = VideoCodec(self.codec)

    @classmethod
    def from_config(
        cls,
        config: EncoderConfig,
        input_pattern: str,
        frame_count: int,
        input_rate: float,
        width: int,
        height: int,
        output_path: Path,
    ) -> "EncodeJob":
        return cls(
            input_pattern=input_pattern,
            frame_count=frame_count,
            input_rate=input_rate,
            output_rate=config.output_rate,
            width=width,
            height=height,
            output_path=Path(output_path),
            codec=config.codec,
            bitrate=config.bitrate,
            crf=config.crf,
            preset=config.preset,
            pixel_format=config.pixel_format,
            faststart=config.faststart,
        )

    @property
    def expected_duration(self) -> float:
        """Length of the produced video in seconds."""
        if self.input_rate <= 0:
            return 0.0
        return self.frame_count / self.input_rate

    def build_command(self, ffmpeg_path: str) -> List[str]:
        """Build the ffmpeg command line for this job."""
        cmd = [ffmpeg_path, "-y", "-hide_banner", "-loglevel", "error"]

        # Input: numbered still images read at the capture rate
        cmd.extend([
            "-framerate", _format_rate(self.input_rate),
            "-i", self.input_pattern,
        ])

        # Output: fixed resolution and frame rate, ffmpeg does the rate conversion
        cmd.extend([
            "-c:v", self.codec.get_encoder(),
            "-s", f"{self.width}x{self.height}",
            "-r", _format_rate(self.output_rate),
        ])
        if self.bitrate:
            cmd.extend(["-b:v", self.bitrate])
        if self.preset and self.codec.supports_preset:
            cmd.extend(["-preset", self.preset])
        if self.crf is not None:
            cmd.extend(["-crf", str(self.crf)])
        cmd.extend(["-pix_fmt", self.pixel_format])
        if self.faststart and self.codec.container == "mp4":
            cmd.extend(["-movflags", "+faststart"])

        # Machine-readable progress on stdout
        cmd.extend(["-progress", "pipe:1", "-nostats", str(self.output_path)])
        return cmd


@dataclass(frozen=True)
class EncodeStarted:
    command: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class EncodeProgress:
    fraction: float
    frame: int = 0
    out_time_seconds: float = 0.0

    @property
    def percent(self) -> int:
        return int(round(self.fraction * 100))


@dataclass(frozen=True)
class EncodeCompleted:
    output_path: Path
    size_bytes: int = 0
    elapsed_seconds: float = 0.0


@dataclass(frozen=True)
class EncodeFailed:
    message: str
    returncode: Optional[int] = None


EncoderEvent = Union[EncodeStarted, EncodeProgress, EncodeCompleted, EncodeFailed]
EncodeOutcome = Union[EncodeCompleted, EncodeFailed]


def _parse_out_time(values: Dict[str, str]) -> Optional[float]:
    # ffmpeg reports out_time_ms in microseconds as well
    for key in ("out_time_us", "out_time_ms"):
        raw = values.get(key)
        if raw is None:
            continue
        try:
            return int(raw) / 1_000_000
        except ValueError:
            continue
    return None


def _parse_int(raw: Optional[str]) -> int:
    try:
        return int(raw) if raw is not None else 0
    except ValueError:
        return 0


class EncoderOrchestrator:
    """
    Runs one ffmpeg job and reports its lifecycle as typed events.

    Example:
        >>> orchestrator = EncoderOrchestrator(EncoderConfig())
        >>> outcome = await orchestrator.run(job, on_event=print)
        >>> isinstance(outcome, EncodeCompleted)
        True
    """

    STDERR_TAIL_LINES = 20

    def __init__(self, config: Optional[EncoderConfig] = None) -> None:
        self.config = config or EncoderConfig()

    async def stream(self, job: EncodeJob) -> AsyncIterator[EncoderEvent]:
        """Run the job, yielding events until a terminal one."""
        if job.frame_count <= 0:
            yield EncodeFailed("No frames to encode")
            return

        try:
            ffmpeg_path = self.config.resolve_ffmpeg()
        except EncoderError as e:
            yield EncodeFailed(str(e))
            return

        cmd = job.build_command(ffmpeg_path)
        logger.debug(f"[ENCODE] FFmpeg command: {' '.join(cmd)}")
        started_at = time.time()

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            yield EncodeFailed(f"FFmpeg not found at {ffmpeg_path}. Please install FFmpeg.")
            return
        except OSError as e:
            yield EncodeFailed(f"Failed to start FFmpeg: {e}")
            return

        try:
            yield EncodeStarted(command=cmd)

            # Read stderr concurrently so a chatty encoder never blocks on a full pipe
            stderr_task = asyncio.ensure_future(process.stderr.read())
            values: Dict[str, str] = {}
            async for raw_line in process.stdout:
                line = raw_line.decode("utf-8", errors="ignore").strip()
                if "=" not in line:
                    continue
                key, value = line.split("=", 1)
                values[key] = value
                if key == "progress":
                    yield self._progress_event(values, job)
                    values = {}

            returncode = await process.wait()
            stderr_output = (await stderr_task).decode("utf-8", errors="ignore")
        finally:
            if process.returncode is None:
                process.kill()
                await process.wait()

        if returncode != 0:
            self._remove_partial_output(job.output_path)
            tail = "\n".join(stderr_output.strip().splitlines()[-self.STDERR_TAIL_LINES:])
            yield EncodeFailed(
                f"FFmpeg exited with code {returncode}" + (f": {tail}" if tail else ""),
                returncode=returncode,
            )
            return

        if not job.output_path.exists():
            yield EncodeFailed("FFmpeg exited successfully but produced no output file", returncode=0)
            return

        yield EncodeCompleted(
            output_path=job.output_path,
            size_bytes=job.output_path.stat().st_size,
            elapsed_seconds=time.time() - started_at,
        )

    async def run(
        self,
        job: EncodeJob,
        on_event: Optional[Callable[[EncoderEvent], None]] = None,
    ) -> EncodeOutcome:
        """Run the job to completion and return its terminal event."""
        outcome: Optional[EncodeOutcome] = None
        async for event in self.stream(job):
            if on_event is not None:
                on_event(event)
            if isinstance(event, (EncodeCompleted, EncodeFailed)):
                outcome = event
        if outcome is None:
            outcome = EncodeFailed("Encoder produced no terminal event")
        return outcome

    @staticmethod
    def _progress_event(values: Dict[str, str], job: EncodeJob) -> EncodeProgress:
        frame = _parse_int(values.get("frame"))
        out_time = _parse_out_time(values) or 0.0
        if values.get("progress") == "end":
            fraction = 1.0
        elif job.expected_duration > 0:
            fraction = max(0.0, min(1.0, out_time / job.expected_duration))
        else:
            fraction = 0.0
        return EncodeProgress(fraction=fraction, frame=frame, out_time_seconds=out_time)

    @staticmethod
    def _remove_partial_output(path: Path) -> None:
        try:
            if path.exists():
                path.unlink()
                logger.debug(f"[ENCODE] Removed partial output {path}")
        except OSError as e:
            logger.warning(f"[ENCODE] Could not remove partial output {path}: {e}")
