"""End-to-end tests: instrumented shell sessions."""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from cmdw.hooks.installer import HookMode, InstallResult
from cmdw.services.query import HistoryQuery
from cmdw.session import create_session, print_history


@pytest.fixture(params=[HookMode.REGISTRY, HookMode.TRAP])
def mode(request):
    return request.param


def run_session(app_config, make_shell, mode, lines):
    shell = make_shell(lines)
    session = create_session(app_config, mode=mode, shell=shell, console=Console(file=io.StringIO()))
    session.shell.run()
    return session


class TestSession:
    def test_install_result(self, app_config, make_shell):
        assert create_session(app_config, shell=make_shell([])).installed is InstallResult.REGISTRY
        assert create_session(app_config, HookMode.TRAP, shell=make_shell([])).installed is InstallResult.SHIM

    def test_list_and_show(self, app_config, make_shell, mode, fake_run):
        session = run_session(app_config, make_shell, mode, ["echo hi", "pwd"])
        assert list(session.query.list()) == [(1, "echo hi"), (2, "pwd")]
        record = session.query.show(2)
        assert record.text == "pwd"
        assert record.start_time <= record.stop_time

    def test_rotation(self, app_config, make_shell, mode, fake_run):
        app_config.history.max_records = 2
        session = run_session(app_config, make_shell, mode, ["a", "b", "c"])
        assert [text for _, text in session.query.list()] == ["b", "c"]
        assert len(app_config_lines(app_config)) == 6

    def test_ignore_rule(self, app_config, make_shell, mode, fake_run):
        app_config.engine.ignore = ["^ls$"]
        session = run_session(app_config, make_shell, mode, ["ls", "ls -la"])
        assert list(session.query.list()) == [(1, "ls -la")]

    def test_control_builtins_not_logged(self, app_config, make_shell, mode, fake_run):
        session = run_session(
            app_config,
            make_shell,
            mode,
            ["echo one", "cmdw_disable", "echo hidden", "cmdw_enable", "echo two", "cmdw_history", "cmdw_history 1"],
        )
        assert [text for _, text in session.query.list()] == ["echo one", "echo two"]

    def test_multiline_round_trip(self, app_config, make_shell, mode, fake_run):
        session = run_session(app_config, make_shell, mode, ['echo "first', 'second"'])
        header = app_config_lines(app_config)[0]
        assert header == '# echo "first\\nsecond"'
        assert session.query.show(1).text == 'echo "first\nsecond"'

    def test_disabled_by_config(self, app_config, make_shell, mode, fake_run):
        app_config.engine.enabled = False
        session = run_session(app_config, make_shell, mode, ["echo hi"])
        assert list(session.query.list()) == []

    def test_timestamps_echoed(self, app_config, make_shell, fake_run):
        app_config.shell.show_timestamps = True
        out = io.StringIO()
        session = create_session(app_config, shell=make_shell(["ls"]), console=Console(file=out, width=200))
        session.shell.run()
        assert "start    " in out.getvalue()
        assert "stop     " in out.getvalue()

    def test_history_builtin_output(self, app_config, make_shell, fake_run):
        out = io.StringIO()
        shell = make_shell(["echo hi", "cmdw_history", "cmdw_history 1", "cmdw_history 9", "cmdw_history x"])
        session = create_session(app_config, shell=shell, console=Console(file=out, width=200))
        session.shell.run()
        text = out.getvalue()
        assert "    1   echo hi" in text
        assert "# echo hi" in text
        assert "no entry 9" in text
        assert "numeric argument required" in text
        assert shell.last_status == 2


def app_config_lines(app_config) -> list[str]:
    from pathlib import Path

    return Path(app_config.history.file).read_text().splitlines()


class TestPrintHistory:
    def test_missing_index(self, history_file):
        console = Console(file=io.StringIO())
        assert print_history(console, HistoryQuery(history_file), 1) is False
