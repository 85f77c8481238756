"""Tests for structlog configuration."""

from __future__ import annotations

import io
import json
import logging

from posplug.config.logging import configure_logging


class TestConfigureLogging:
    def test_quiet_by_default(self) -> None:
        configure_logging(stream=io.StringIO())
        assert logging.getLogger("posplug").level == logging.WARNING

    def test_verbose_enables_debug(self) -> None:
        configure_logging(verbose=True, stream=io.StringIO())
        assert logging.getLogger("posplug").level == logging.DEBUG

    def test_json_lines(self) -> None:
        stream = io.StringIO()
        configure_logging(log_json=True, stream=stream)
        logging.getLogger("posplug.plugins.manager").warning("Failed to load %s", "sh_test")
        record = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert record["event"] == "Failed to load sh_test"
        assert record["level"] == "warning"
        assert record["logger"] == "posplug.plugins.manager"

    def test_debug_suppressed_when_not_verbose(self) -> None:
        stream = io.StringIO()
        configure_logging(log_json=True, stream=stream)
        logging.getLogger("posplug.plugins.registry").debug("Registered filter")
        assert stream.getvalue() == ""
