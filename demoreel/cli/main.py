#!/usr/bin/env python3
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
DemoReel CLI.

Records a scripted walkthrough of a web application and writes it as a
video file.

Usage:
    demoreel                      # Record the placeholder page
    demoreel docker               # Record the Docker dev setup
    demoreel --url URL            # Record a custom URL
    demoreel --list-presets       # Show the named setups
    demoreel --help               # Show help

Examples:
    # Record the local Vite dev server in a visible browser
    demoreel vite --headed

    # Sharper output written somewhere else
    demoreel --url http://localhost:8080 --profile high --output-root /tmp/reels
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from typing import Dict, List, Optional, Tuple

from demoreel.core.encoder import EncoderConfig, EncodeProgress, EncoderEvent, QualityProfile, VideoCodec
from demoreel.core.session import SessionConfig, SessionManager, SessionResult
from demoreel.exceptions import ConfigurationError
from demoreel.utils.logger import configure_logging

PRESETS: Dict[str, Dict[str, str]] = {
    "docker": {
        "url": "http://localhost:3000",
        "description": "Docker development setup (docker-compose.dev.yml)",
    },
    "vite": {
        "url": "http://localhost:5173",
        "description": "Local Vite development server",
    },
    "production": {
        "url": "http://localhost:80",
        "description": "Docker production setup",
    },
}


def get_version() -> str:
    """Get the DemoReel version."""
    try:
        import demoreel
        return getattr(demoreel, "__version__", "unknown")
    except ImportError:
        return "unknown"


def resolve_target(preset: Optional[str], url: Optional[str]) -> Optional[str]:
    """
    Resolve the URL to record.

    An explicit URL wins over a preset, and a preset wins over
    DEMOREEL_URL. With none of them, None is returned and the session
    records the placeholder page.

    Raises:
        ConfigurationError: If the preset is unknown
    """
    if url:
        return url
    if preset is None:
        return os.environ.get("DEMOREEL_URL") or None
    if preset not in PRESETS:
        raise ConfigurationError(
            f"Unknown setup: {preset} (available: {', '.join(sorted(PRESETS))})"
        )
    return PRESETS[preset]["url"]


def format_presets() -> str:
    lines = ["Available setups:"]
    for name, preset in PRESETS.items():
        lines.append(f"  {name.ljust(12)} - {preset['description']} ({preset['url']})")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="demoreel",
        description="Record a scripted walkthrough of a web application as a video",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=format_presets(),
    )
    parser.add_argument(
        "preset",
        nargs="?",
        help="Named setup resolving to a target URL",
    )
    parser.add_argument(
        "--url",
        default=None,
        help="Custom target URL (overrides the preset and DEMOREEL_URL)",
    )
    parser.add_argument(
        "--output-root",
        default=os.environ.get("DEMOREEL_OUTPUT_ROOT", "videos"),
        help="Directory holding temp/ and final/ (default: videos)",
    )
    parser.add_argument(
        "--output-name",
        default="walkthrough-demo",
        help="File name of the finished video, without extension",
    )
    parser.add_argument("--width", type=int, default=1920, help="Capture width")
    parser.add_argument("--height", type=int, default=1080, help="Capture height")
    parser.add_argument(
        "--stride",
        type=int,
        default=2,
        help="Capture every Nth rendered frame (default: 2)",
    )
    parser.add_argument(
        "--format",
        choices=["png", "jpeg"],
        default="png",
        help="Screencast image format",
    )
    parser.add_argument("--quality", type=int, default=80, help="Screencast quality (0-100)")
    parser.add_argument(
        "--output-rate",
        type=int,
        default=30,
        help="Frame rate of the produced video (default: 30)",
    )
    parser.add_argument(
        "--profile",
        choices=[p.value for p in QualityProfile],
        default=QualityProfile.DEMO.value,
        help="Encoding quality profile",
    )
    parser.add_argument(
        "--codec",
        choices=[c.value for c in VideoCodec],
        default=VideoCodec.H264.value,
        help="Video codec",
    )
    parser.add_argument(
        "--nav-timeout",
        type=int,
        default=10000,
        help="Navigation timeout in milliseconds",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window while recording",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail the session on the first failing walkthrough step",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("DEMOREEL_LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--list-presets",
        action="store_true",
        help="List the named setups and exit",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"DemoReel {get_version()}",
    )
    return parser


def build_configs(args: argparse.Namespace) -> Tuple[SessionConfig, EncoderConfig]:
    """Translate parsed arguments into session and encoder configuration."""
    session_config = SessionConfig(
        target_url=resolve_target(args.preset, args.url),
        output_root=args.output_root,
        output_name=args.output_name,
        width=args.width,
        height=args.height,
        stride=args.stride,
        screencast_format=args.format,
        quality=args.quality,
        navigation_timeout_ms=args.nav_timeout,
        strict_interactions=args.strict,
        headless=not args.headed,
    )
    encoder_config = EncoderConfig(
        codec=VideoCodec(args.codec),
        quality_profile=QualityProfile(args.profile),
        output_rate=args.output_rate,
    )
    return session_config, encoder_config


def _print_progress(event: EncoderEvent) -> None:
    if isinstance(event, EncodeProgress) and sys.stdout.isatty():
        print(f"\rEncoding: {event.percent:3d}%", end="", flush=True)
        if event.fraction >= 1.0:
            print()


def print_result(result: SessionResult) -> None:
    print()
    if result.success:
        print("SUCCESS")
        print(f"Location: {result.output_path}")
        print(f"Frames:   {result.frames_persisted}")
    else:
        print("FAILED")
    print(result.summary())
    if result.cleanup_warning:
        print(f"Cleanup warning: {result.cleanup_warning}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list_presets:
        print(format_presets())
        return 0

    try:
        configure_logging(args.log_level)
    except ValueError as e:
        parser.error(str(e))

    try:
        session_config, encoder_config = build_configs(args)
    except ConfigurationError as e:
        parser.error(str(e))

    if session_config.target_url:
        print(f"Recording {session_config.target_url}")
    else:
        print("No target given, recording the placeholder page")

    manager = SessionManager(session_config, encoder_config, on_event=_print_progress)
    result = asyncio.run(manager.run())
    print_result(result)
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
