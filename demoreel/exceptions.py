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

"""Custom exceptions for DemoReel.

This module defines the exception hierarchy used throughout DemoReel.
All exceptions inherit from DemoReelError for easy catching and handling.

Exception Hierarchy:
    DemoReelError (base)
    ├── BrowserError - Browser launch and lifecycle errors
    ├── PageError - Page interaction errors
    │   ├── NavigationError - Navigation failures
    │   └── ActionError - Click/type/evaluate failures
    ├── ScreencastError - Screencast channel misuse or failures
    ├── InteractionError - Scripted walkthrough aborted (strict mode)
    ├── PersistenceError - Writing captured frames failed
    ├── EncoderError - Encoder could not be configured or run
    ├── StorageError - Working directories could not be prepared
    └── ConfigurationError - Invalid configuration

Example:
    try:
        await channel.stop()
    except ScreencastError:
        # stop() was called before start()
        raise
    except DemoReelError:
        # Catch all DemoReel errors
        pass
"""


class DemoReelError(Exception):
    """Base exception for all DemoReel errors.

    All custom exceptions in DemoReel inherit from this class,
    allowing callers to catch every DemoReel-specific error with
    a single except clause.
    """
    pass


class BrowserError(DemoReelError):
    """Exception raised for browser-related errors.

    Raised when browser launch, context creation or shutdown fails.
    A launch failure is fatal for a recording session.

    Examples:
        - Browser binary missing
        - Browser process crashed during launch
        - Chromium not installed for Playwright
    """
    pass


class PageError(DemoReelError):
    """Exception raised for page-related errors.

    Examples:
        - Page content could not be replaced
        - JavaScript evaluation failed
    """
    pass


class NavigationError(PageError):
    """Exception raised when navigation fails.

    During a recording session this is tolerated: the session falls
    back to a placeholder page.

    Examples:
        - Connection refused
        - Navigation timeout
    """
    pass


class ActionError(PageError):
    """Exception raised when a page action fails to execute.

    Examples:
        - Element is not clickable
        - Selector matched nothing
    """
    pass


class ScreencastError(DemoReelError):
    """Exception raised for screencast channel errors.

    Calling ``stop()`` on a channel that was never started raises this
    error. It indicates a programming error and is not recovered from.
    """
    pass


class InteractionError(DemoReelError):
    """Exception raised when a walkthrough script is aborted.

    Only raised when the interaction driver runs in strict mode;
    otherwise failing steps are logged and skipped.
    """
    pass


class PersistenceError(DemoReelError):
    """Exception raised when captured frames cannot be written.

    Examples:
        - Disk full while writing frames
        - Frame sequence has a gap or is out of order
    """
    pass


class EncoderError(DemoReelError):
    """Exception raised when the encoder cannot be located or configured."""
    pass


class StorageError(DemoReelError):
    """Exception raised when working directories cannot be prepared.

    Fatal for a recording session: nothing can proceed without storage.
    """
    pass


class ConfigurationError(DemoReelError):
    """Exception raised for configuration errors.

    Examples:
        - Non-positive resolution or stride
        - Unknown target preset
        - Unsupported screencast format
    """
    pass
