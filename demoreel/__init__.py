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
DemoReel - Record scripted walkthroughs of web applications as video.

This package drives a Chromium browser through a walkthrough script while
capturing its CDP screencast, writes the frames to disk in capture order and
hands them to ffmpeg to produce a web-playable video.
"""

__version__ = "0.1.0"
__author__ = "Firefly Software Solutions Inc"
__license__ = "Apache-2.0"

from demoreel.core.browser import BrowserManager
from demoreel.core.encoder import (
    EncodeCompleted,
    EncodeFailed,
    EncodeJob,
    EncodeProgress,
    EncodeStarted,
    EncoderConfig,
    EncoderOrchestrator,
    QualityProfile,
    VideoCodec,
)
from demoreel.core.interactions import InteractionDriver, default_walkthrough
from demoreel.core.page import PageController
from demoreel.core.persister import FramePersister
from demoreel.core.screencast import CapturedFrame, FrameAckLoop, FrameBuffer, ScreencastChannel
from demoreel.core.session import (
    CaptureSession,
    SessionConfig,
    SessionManager,
    SessionResult,
    SessionState,
)

__all__ = [
    # Core
    "BrowserManager",
    "PageController",
    # Capture
    "CapturedFrame",
    "FrameAckLoop",
    "FrameBuffer",
    "FramePersister",
    "ScreencastChannel",
    # Interactions
    "InteractionDriver",
    "default_walkthrough",
    # Encoding
    "EncodeCompleted",
    "EncodeFailed",
    "EncodeJob",
    "EncodeProgress",
    "EncodeStarted",
    "EncoderConfig",
    "EncoderOrchestrator",
    "QualityProfile",
    "VideoCodec",
    # Session
    "CaptureSession",
    "SessionConfig",
    "SessionManager",
    "SessionResult",
    "SessionState",
]
