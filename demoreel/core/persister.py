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

"""Writes captured frames to numbered image files.

Files are named ``frame-<6-digit index>.<ext>`` so that an ascending lexical
sort reproduces capture order, which is what the encoder's image-sequence
input relies on. Writes are strictly sequential.
"""

from __future__ import annotations

import binascii
import errno
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from demoreel.core.screencast import FrameBuffer
from demoreel.exceptions import PersistenceError
from demoreel.utils.logger import logger

FRAME_PREFIX = "frame-"
FRAME_INDEX_WIDTH = 6


def frame_filename(index: int, extension: str) -> str:
    """Name of the file holding the frame with the given index."""
    return f"{FRAME_PREFIX}{index:0{FRAME_INDEX_WIDTH}d}.{extension}"


def frame_pattern(directory: Path, extension: str) -> str:
    """ffmpeg image2 input pattern matching frame_filename()."""
    return str(directory / f"{FRAME_PREFIX}%0{FRAME_INDEX_WIDTH}d.{extension}")


def check_disk_space(path: str, min_bytes: int = 100 * 1024 * 1024) -> bool:
    """Check if there's sufficient disk space.

    Args:
        path: Path to check
        min_bytes: Minimum required bytes (default 100MB)

    Returns:
        True if sufficient space available
    """
    try:
        stat = os.statvfs(path)
        available = stat.f_bavail * stat.f_frsize
        return available >= min_bytes
    except (OSError, AttributeError):
        # On Windows or if statvfs fails, assume OK
        return True


@dataclass
class PersistResult:
    """Outcome of a persistence pass."""

    directory: Path
    extension: str
    paths: List[Path] = field(default_factory=list)
    bytes_written: int = 0

    @property
    def count(self) -> int:
        return len(self.paths)

    @property
    def pattern(self) -> str:
        return frame_pattern(self.directory, self.extension)


class FramePersister:
    """
    Drains a FrameBuffer to disk in capture order.

    Example:
        >>> persister = FramePersister(Path("videos/temp"), extension="png")
        >>> result = persister.persist(buffer)
        >>> result.pattern
        'videos/temp/frame-%06d.png'
    """

    def __init__(self, directory: Path, extension: str = "png") -> None:
        self.directory = Path(directory)
        self.extension = extension

    def persist(self, buffer: FrameBuffer) -> PersistResult:
        """
        Write every buffered frame to its numbered file.

        Zero frames is not an error here; the encoder reports it.

        Raises:
            PersistenceError: On a sequence gap, a bad payload or an I/O error
        """
        frames = buffer.drain()
        result = PersistResult(directory=self.directory, extension=self.extension)

        if not frames:
            logger.warning("[PERSIST] No frames captured, nothing to write")
            return result

        if not check_disk_space(str(self.directory)):
            logger.warning(f"[PERSIST] Low disk space in {self.directory}")

        logger.info(f"[PERSIST] Saving {len(frames)} frames to {self.directory}")

        for expected, frame in enumerate(frames):
            if frame.index != expected:
                raise PersistenceError(
                    f"Frame sequence broken: expected index {expected}, got {frame.index}"
                )
            path = self.directory / frame_filename(frame.index, self.extension)
            try:
                payload = frame.payload
            except (binascii.Error, ValueError) as e:
                raise PersistenceError(f"Frame {frame.index} has an invalid payload: {e}") from e
            try:
                with open(path, "wb") as f:
                    f.write(payload)
            except OSError as e:
                if e.errno == errno.ENOSPC:
                    raise PersistenceError("No space left on device while saving frames") from e
                raise PersistenceError(f"Failed to write {path}: {e}") from e
            result.paths.append(path)
            result.bytes_written += len(payload)

        logger.info(
            f"[PERSIST] Saved {result.count} frames "
            f"({result.bytes_written / (1024 * 1024):.1f} MB)"
        )
        return result
