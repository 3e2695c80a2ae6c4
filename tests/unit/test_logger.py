# Copyright 2026 Firefly Software Solutions Inc
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for logging setup."""

import io
import logging

import pytest

from demoreel.utils.logger import configure_logging, resolve_level, setup_logger


@pytest.fixture
def restore_default_logger():
    """Put the shared demoreel logger back after a test reconfigures it."""
    yield
    setup_logger()


class TestResolveLevel:
    """Tests for resolve_level()."""

    @pytest.mark.parametrize(
        "name,expected",
        [("DEBUG", logging.DEBUG), ("warning", logging.WARNING), (" Error ", logging.ERROR)],
    )
    def test_level_names(self, name, expected):
        """Test names resolve case-insensitively."""
        assert resolve_level(name) == expected

    def test_numeric_level_passes_through(self):
        """Test ints are returned unchanged."""
        assert resolve_level(15) == 15

    def test_unknown_name_raises(self):
        """Test an unknown name is rejected."""
        with pytest.raises(ValueError, match="Unknown log level: CHATTY"):
            resolve_level("CHATTY")


class TestSetupLogger:
    """Tests for setup_logger()."""

    def test_writes_tagged_messages_to_stream(self):
        """Test messages reach the given stream with the default format."""
        stream = io.StringIO()
        logger = setup_logger("demoreel.tests.stream", level="INFO", stream=stream)

        logger.info("[SESSION] Starting recording session abc")

        output = stream.getvalue()
        assert " - demoreel.tests.stream - INFO - [SESSION] Starting recording session abc" in output

    def test_level_filters_messages(self):
        """Test messages below the level are suppressed."""
        stream = io.StringIO()
        logger = setup_logger("demoreel.tests.level", level=logging.WARNING, stream=stream)

        logger.info("[ENCODE] Processing: 50%")
        logger.warning("[ENCODE] FFmpeg slow")

        assert "Processing" not in stream.getvalue()
        assert "FFmpeg slow" in stream.getvalue()

    def test_repeated_setup_keeps_one_handler(self):
        """Test reconfiguring replaces the handler instead of stacking them."""
        setup_logger("demoreel.tests.handlers")
        logger = setup_logger("demoreel.tests.handlers", level="DEBUG")

        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG

    def test_custom_format(self):
        """Test a custom format string is applied."""
        stream = io.StringIO()
        logger = setup_logger("demoreel.tests.format", format_string="%(levelname)s|%(message)s", stream=stream)

        logger.error("boom")

        assert stream.getvalue() == "ERROR|boom\n"


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_reconfigures_default_logger(self, restore_default_logger):
        """Test the shared logger picks up the new level."""
        stream = io.StringIO()

        logger = configure_logging("debug", stream=stream)
        logger.debug("[CAPTURE] CDP session created")

        assert logger.name == "demoreel"
        assert logger.level == logging.DEBUG
        assert "CDP session created" in stream.getvalue()

    def test_unknown_level_raises(self):
        """Test an unknown level name is rejected before reconfiguring."""
        with pytest.raises(ValueError):
            configure_logging("CHATTY")
