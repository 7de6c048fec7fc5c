"""Shared test fixtures."""

from __future__ import annotations

import io
import subprocess
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from rich.console import Console

from cmdw.config import AppConfig, EngineConfig, HistoryConfig, LoggingConfig, ShellConfig
from cmdw.services.shell import InteractiveShell

ENV_VARS = ("CMDWSIZE", "CMDW_ENABLE", "CMDW_IGNORE", "CMDW_HISTORY_FILE", "CMDW_LOG_LEVEL")


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.cmdw and the caller's environment."""
    import cmdw.config as cfg_module

    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    config_dir = tmp_path / "cmdw-home"
    monkeypatch.setattr(cfg_module, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(cfg_module, "CONFIG_FILE", config_dir / "config.toml")
    return config_dir


@pytest.fixture
def history_file(tmp_path):
    return tmp_path / "cmdw_history"


@pytest.fixture
def app_config(tmp_path, history_file):
    """Create a test configuration."""
    return AppConfig(
        history=HistoryConfig(file=str(history_file), max_records=3000),
        engine=EngineConfig(enabled=True),
        shell=ShellConfig(program="/bin/sh", show_timestamps=False),
        logging=LoggingConfig(level="DEBUG", file=str(tmp_path / "cmdw.log")),
    )


class FakeClock:
    """Returns a strictly increasing UTC time, one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(seconds=1)
        return current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_run():
    """Patch the external shell so commands succeed without running."""
    calls: list[list[str]] = []

    def run(args, *a, **kw):
        calls.append(args)
        return subprocess.CompletedProcess(args, 0)

    with patch("cmdw.services.shell.subprocess.run", side_effect=run):
        yield calls


@pytest.fixture
def make_shell():
    """Build an InteractiveShell fed from a list of input lines."""

    def factory(lines: list[str]) -> InteractiveShell:
        pending = list(lines)

        def reader(prompt: str) -> str:
            if not pending:
                raise EOFError
            return pending.pop(0)

        return InteractiveShell(program="/bin/sh", reader=reader, console=Console(file=io.StringIO()))

    return factory
