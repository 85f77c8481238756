"""Shared pytest fixtures for posplug tests."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest
import structlog
from click.testing import CliRunner

from posplug.config.settings import PosplugSettings
from posplug.plugins.registry import ExtensionRegistry


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def registry() -> ExtensionRegistry:
    """Empty, unfrozen registry."""
    return ExtensionRegistry()


@pytest.fixture
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run in an empty directory with no inherited posplug configuration.

    Use via ``@pytest.mark.usefixtures("_isolated_cwd")``.
    """
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("POSPLUG_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def settings(tmp_path: Path, _isolated_cwd: None) -> PosplugSettings:
    """Settings rooted at an empty temp dir."""
    return PosplugSettings.from_cli(base_dir=tmp_path)


@pytest.fixture(autouse=True)
def _reset_logging():
    """Drop the handler configure_logging() installs on the root logger."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
            root.removeHandler(handler)
    root.setLevel(level)
    logging.getLogger("posplug").setLevel(logging.NOTSET)
