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

"""Logging configuration for DemoReel.

Every module logs through the shared ``demoreel`` logger with a bracketed
stage tag (``[CAPTURE]``, ``[ENCODE]``, ``[SESSION]``...) so a recording run
reads as one timeline.
"""

import logging
import sys
from typing import IO, Optional, Union

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def resolve_level(level: Union[int, str]) -> int:
    """
    Turn a level name such as "debug" or "WARNING" into its numeric value.

    Raises:
        ValueError: If the name is not a known logging level
    """
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def setup_logger(
    name: str = "demoreel",
    level: Union[int, str] = logging.INFO,
    format_string: Optional[str] = None,
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """
    Setup and configure a DemoReel logger.

    Replaces any handler installed by an earlier call, so the CLI can
    reconfigure the level after import.

    Args:
        name: Logger name
        level: Logging level as an int or a level name
        format_string: Custom format string for log messages
        stream: Output stream (default: stdout)

    Returns:
        Configured logger instance
    """
    level = resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(format_string or DEFAULT_FORMAT))
    logger.addHandler(handler)

    return logger


def configure_logging(
    level: Union[int, str] = logging.INFO,
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """
    Reconfigure the default DemoReel logger with a new level.

    Raises:
        ValueError: If ``level`` is an unknown level name
    """
    return setup_logger(level=level, stream=stream)


# Default logger instance
logger = setup_logger()
