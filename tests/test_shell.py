"""Tests for the interactive host shell."""

from __future__ import annotations

import io
import os
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest
from rich.console import Console

from cmdw.hooks.host import RegistryHost, TrapHost
from cmdw.services.shell import InteractiveShell, has_control_operator, last_word, needs_continuation


class TestHelpers:
    def test_last_word(self):
        assert last_word("echo hello world") == "world"
        assert last_word("echo 'a b'") == "a b"
        assert last_word("echo 'unterminated") == "'unterminated"
        assert last_word("") == ""

    def test_needs_continuation(self):
        assert needs_continuation("echo a \\")
        assert needs_continuation('echo "a')
        assert not needs_continuation('echo "a"')

    def test_quote_in_comment_is_not_continuation(self):
        assert not needs_continuation("echo hi # don't")
        assert needs_continuation("echo 'hi # don't")


class TestInteractiveShell:
    def test_provides_both_hook_primitives(self, make_shell):
        shell = make_shell([])
        assert isinstance(shell, RegistryHost)
        assert isinstance(shell, TrapHost)

    def test_runs_program_with_command(self, make_shell, fake_run):
        shell = make_shell(["echo hi"])
        shell.run()
        assert fake_run == [["/bin/sh", "-c", "echo hi"]]
        assert shell.history == ["echo hi"]
        assert shell.last_argument == "hi"

    def test_records_exit_status(self, make_shell):
        shell = make_shell(["false"])
        with patch("cmdw.services.shell.subprocess.run", return_value=subprocess.CompletedProcess([], 1)):
            assert shell.run() == 1
        assert shell.last_status == 1

    def test_missing_program(self, make_shell):
        shell = make_shell([])
        with patch("cmdw.services.shell.subprocess.run", side_effect=FileNotFoundError("nope")):
            assert shell.eval("ls") == 127

    def test_blank_lines_skipped(self, make_shell, fake_run):
        shell = make_shell(["", "   ", "ls"])
        shell.run()
        assert shell.history == ["ls"]
        assert len(fake_run) == 1

    def test_multiline_entry(self, make_shell, fake_run):
        shell = make_shell(['echo "a', 'b"'])
        shell.run()
        assert shell.history == ['echo "a\nb"']

    def test_backslash_continuation(self, make_shell, fake_run):
        shell = make_shell(["echo a \\", "b"])
        shell.run()
        assert shell.history == ["echo a \\\nb"]

    def test_exit_builtin(self, make_shell, fake_run):
        shell = make_shell(["exit 3", "echo never"])
        assert shell.run() == 3
        assert fake_run == []

    def test_builtin_dispatch(self, make_shell):
        calls = []
        shell = make_shell(["greet a b"])
        shell.builtins["greet"] = lambda args: calls.append(args) or 0
        shell.run()
        assert calls == [["a", "b"]]

    def test_registry_hooks_fire_around_command(self, make_shell, fake_run):
        events = []
        shell = make_shell(["ls"])
        shell.preexec_functions.append(lambda command: events.append(("pre", command)))
        shell.precmd_functions.append(lambda: events.append(("post",)))
        shell.run()
        assert events == [("post",), ("pre", "ls"), ("post",)]

    def test_debug_trap_fires_before_every_instruction(self, make_shell, fake_run):
        seen = []
        shell = make_shell(["ls"])
        shell.functions["trap"] = lambda arg: seen.append(shell.current_command)
        shell.functions["title"] = lambda: None
        shell.debug_trap = "trap"
        shell.prompt_command = ["title"]
        shell.run()
        assert seen == ["title", "ls", "title"]

    def test_hook_errors_do_not_break_loop(self, make_shell, fake_run):
        shell = make_shell(["ls", "pwd"])
        shell.preexec_functions.append(lambda command: 1 / 0)
        shell.run()
        assert shell.history == ["ls", "pwd"]

    def test_history_control(self, make_shell):
        shell = make_shell([])
        shell.history_control = {"ignorespace", "ignoredups"}
        shell.add_history(" secret")
        shell.add_history("ls")
        shell.add_history("ls")
        assert shell.history == ["ls"]
        assert shell.last_history_entry() == "ls"

    def test_interrupt_at_prompt(self, fake_run):
        lines = iter(["ls"])

        def reader(prompt):
            if prompt == "cmdw$ " and not getattr(reader, "interrupted", False):
                reader.interrupted = True
                raise KeyboardInterrupt
            try:
                return next(lines)
            except StopIteration:
                raise EOFError

        shell = InteractiveShell(program="/bin/sh", reader=reader, console=Console(file=io.StringIO()))
        shell.run()
        assert shell.history == ["ls"]


@pytest.fixture
def scratch_env(tmp_path, monkeypatch):
    """Restore cwd and the variables the built-ins touch after each test."""
    monkeypatch.chdir(tmp_path)
    for name in ("OLDPWD", "PWD", "CMDW_TEST_VAR"):
        monkeypatch.setenv(name, "")
    return Path(os.getcwd())


class TestBuiltins:
    def test_has_control_operator(self):
        assert has_control_operator("cd /tmp && ls")
        assert has_control_operator("export A=1; env")
        assert has_control_operator("cd x | cat")
        assert not has_control_operator("cd /tmp")
        assert not has_control_operator("export A=1")

    def test_cd_changes_directory(self, make_shell, scratch_env, fake_run):
        target = scratch_env / "sub"
        target.mkdir()
        shell = make_shell([f"cd {target}", "pwd"])
        shell.run()
        assert os.getcwd() == str(target)
        assert os.environ["OLDPWD"] == str(scratch_env)
        assert os.environ["PWD"] == str(target)
        assert fake_run == [["/bin/sh", "-c", "pwd"]]

    def test_cd_dash_returns(self, make_shell, scratch_env):
        (scratch_env / "sub").mkdir()
        shell = make_shell(["cd sub", "cd -"])
        shell.run()
        assert os.getcwd() == str(scratch_env)

    def test_cd_home(self, make_shell, scratch_env, monkeypatch):
        home = scratch_env / "home"
        home.mkdir()
        monkeypatch.setenv("HOME", str(home))
        shell = make_shell(["cd"])
        shell.run()
        assert os.getcwd() == str(home)

    def test_cd_missing_directory(self, make_shell, scratch_env):
        shell = make_shell([])
        assert shell.eval("cd does-not-exist") == 1
        assert os.getcwd() == str(scratch_env)
        assert "does-not-exist" in shell.console.file.getvalue()

    def test_cd_in_compound_runs_externally(self, make_shell, scratch_env, fake_run):
        shell = make_shell(["cd / && ls"])
        shell.run()
        assert os.getcwd() == str(scratch_env)
        assert fake_run == [["/bin/sh", "-c", "cd / && ls"]]

    def test_export_and_unset(self, make_shell, scratch_env):
        shell = make_shell(["export CMDW_TEST_VAR='a b'"])
        shell.run()
        assert os.environ["CMDW_TEST_VAR"] == "a b"
        assert shell.eval("unset CMDW_TEST_VAR") == 0
        assert "CMDW_TEST_VAR" not in os.environ

    def test_export_invalid_name(self, make_shell, scratch_env):
        shell = make_shell([])
        assert shell.eval("export 1BAD=x") == 1
        assert "1BAD" not in os.environ
