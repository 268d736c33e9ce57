# tests/test_logging.py
"""Tests for console helpers and structlog file output."""

import json
import logging

import pytest
import structlog

from taskpulse import logging as console
from taskpulse.config import Config


@pytest.fixture
def restore_logging():
    """Undo global logging configuration after a test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestConsoleHelpers:
    """Tests for Rich console output."""

    def test_poll_failed_goes_to_stderr(self, capsys) -> None:
        """Console output stays off stdout."""
        console.poll_failed("cli", "device busy")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "cli poll failed: device busy" in captured.err
        assert "[err]" in captured.err

    def test_config_created(self, capsys) -> None:
        """config_created names the path."""
        console.config_created("/tmp/taskpulse/config.toml")
        assert "Created config at /tmp/taskpulse/config.toml" in capsys.readouterr().err

    def test_config_exists_is_a_warning(self, capsys) -> None:
        """config_exists is logged at warn level."""
        console.config_exists("/tmp/x.toml")
        err = capsys.readouterr().err
        assert "[warn]" in err
        assert "already exists" in err


class TestConfigure:
    """Tests for structlog file configuration."""

    def test_writes_json_lines(self, restore_logging) -> None:
        """Events land in the log file as JSON with the source field."""
        config = Config()
        console.configure(config, source="test")

        structlog.get_logger().info("poll_published", cycle="processes", groups=3)

        record = json.loads(config.log_path.read_text().strip().splitlines()[-1])
        assert record["event"] == "poll_published"
        assert record["cycle"] == "processes"
        assert record["groups"] == 3
        assert record["source"] == "test"
        assert record["level"] == "info"
        assert "ts" in record

    def test_level_filters(self, restore_logging) -> None:
        """Events below the configured level are dropped."""
        config = Config()
        config.logging.level = "warning"
        console.configure(config)

        log = structlog.get_logger()
        log.info("quiet_event")
        log.warning("loud_event")

        text = config.log_path.read_text()
        assert "quiet_event" not in text
        assert "loud_event" in text
