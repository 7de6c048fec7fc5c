"""Interactive command shell that exposes preexec/precmd hooks."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Callable
from typing import Any

from rich.console import Console
from rich.markup import escape

logger = logging.getLogger(__name__)

Builtin = Callable[[list[str]], int]


def last_word(command: str) -> str:
    """Last argument of a command line, as a shell's ``$_`` would hold it."""
    try:
        words = shlex.split(command)
    except ValueError:
        words = command.split()
    return words[-1] if words else ""


def needs_continuation(text: str) -> bool:
    if text.endswith("\\"):
        return True
    try:
        shlex.split(text, comments=True)
    except ValueError:
        return True
    return False


def has_control_operator(command: str) -> bool:
    """True if the line chains, pipes, redirects or groups commands."""
    lexer = shlex.shlex(command, posix=True, punctuation_chars=True)
    lexer.whitespace_split = True
    try:
        return any(token and set(token) <= set(lexer.punctuation_chars) for token in lexer)
    except ValueError:
        return False


class InteractiveShell:
    """Read-eval loop running each entry through an external shell program.

    Fires both hook styles: the ``preexec_functions``/``precmd_functions``
    registries around every interactive command, and the ``debug_trap``
    before every instruction, prompt command entries included.
    """

    def __init__(
        self,
        program: str = "/bin/bash",
        prompt: str = "cmdw$ ",
        continuation_prompt: str = "> ",
        reader: Callable[[str], str] | None = None,
        console: Console | None = None,
    ) -> None:
        self.program = program
        self.prompt = prompt
        self.continuation_prompt = continuation_prompt
        self.console = console or Console()
        self.reader = reader or self.console.input

        self.history: list[str] = []
        self.history_control: set[str] = set()
        self.last_status = 0
        self.last_argument = ""

        self.preexec_functions: list[Callable[..., Any]] = []
        self.precmd_functions: list[Callable[..., Any]] = []

        self.functions: dict[str, Callable[..., Any]] = {}
        self.debug_trap: str | None = None
        self.prompt_command: list[str] = []
        self.current_command = ""
        self.subshell_depth = 0
        self.completing = False
        self.readonly: set[str] = set()

        # Directory and environment belong to this process, not the `program -c` child.
        self.builtins: dict[str, Builtin] = {
            "cd": self._cd,
            "exit": self._exit,
            "export": self._export,
            "unset": self._unset,
        }
        self.running = False

    def last_history_entry(self) -> str:
        return self.history[-1] if self.history else ""

    def add_history(self, entry: str) -> None:
        if "ignorespace" in self.history_control or "ignoreboth" in self.history_control:
            if entry[:1].isspace():
                return
        if "ignoredups" in self.history_control or "ignoreboth" in self.history_control:
            if self.history and self.history[-1] == entry:
                return
        self.history.append(entry)

    def _fire_trap(self) -> None:
        if not self.debug_trap:
            return
        func = self.functions.get(self.debug_trap)
        if func is None:
            return
        try:
            func(self.last_argument)
        except Exception:
            logger.exception("Debug trap %s failed", self.debug_trap)

    def _call_hooks(self, funcs: list[Callable[..., Any]], *args: object) -> None:
        for func in list(funcs):
            try:
                func(*args)
            except Exception:
                logger.exception("Hook %s failed", getattr(func, "__name__", func))

    def run_prompt_command(self) -> None:
        """Run precmd hooks and every prompt command entry before the prompt."""
        self._call_hooks(self.precmd_functions)
        for name in list(self.prompt_command):
            self.current_command = name
            self._fire_trap()
            func = self.functions.get(name)
            if func is None:
                logger.warning("Prompt command not found: %s", name)
                continue
            try:
                func()
            except Exception:
                logger.exception("Prompt command %s failed", name)

    def eval(self, command: str) -> int:
        """Run one instruction, firing the debug trap first."""
        self.current_command = command
        self._fire_trap()
        words = command.split(maxsplit=1)
        builtin = self.builtins.get(words[0]) if words else None
        if builtin is not None and has_control_operator(command):
            builtin = None
        if builtin is not None:
            try:
                status = builtin(shlex.split(command, comments=True)[1:])
            except ValueError as e:
                self.console.print(f"[red]{words[0]}: {e}[/red]")
                status = 2
        else:
            status = self._run_external(command)
        self.last_status = status
        self.last_argument = last_word(command)
        return status

    def _run_external(self, command: str) -> int:
        try:
            proc = subprocess.run([self.program, "-c", command])
        except OSError as e:
            self.console.print(f"[red]cmdw: {escape(self.program)}: {escape(str(e))}[/red]")
            return 127
        except KeyboardInterrupt:
            return 130
        return proc.returncode

    def execute(self, command: str) -> int:
        """Run an interactively issued command with preexec hooks."""
        self._call_hooks(self.preexec_functions, command)
        return self.eval(command)

    def read_command(self) -> str | None:
        """Read one entry, following backslash and open-quote continuations."""
        try:
            text = self.reader(self.prompt)
            while needs_continuation(text):
                text += "\n" + self.reader(self.continuation_prompt)
        except EOFError:
            return None
        except KeyboardInterrupt:
            self.console.print()
            return ""
        return text

    def run(self) -> int:
        """Interactive loop; returns the last command status."""
        self.running = True
        while self.running:
            self.run_prompt_command()
            command = self.read_command()
            if command is None:
                self.console.print()
                break
            if not command.strip():
                continue
            self.add_history(command)
            self.execute(command)
        return self.last_status

    def _exit(self, args: list[str]) -> int:
        self.running = False
        return int(args[0]) if args else self.last_status

    def _cd(self, args: list[str]) -> int:
        target = args[0] if args else "~"
        if target == "-":
            target = os.environ.get("OLDPWD", "")
            if not target:
                self.console.print("[red]cd: OLDPWD not set[/red]")
                return 1
        previous = os.getcwd()
        try:
            os.chdir(os.path.expanduser(os.path.expandvars(target)))
        except OSError as e:
            self.console.print(f"[red]cd: {escape(target)}: {escape(e.strerror or str(e))}[/red]")
            return 1
        os.environ["OLDPWD"] = previous
        os.environ["PWD"] = os.getcwd()
        return 0

    def _export(self, args: list[str]) -> int:
        status = 0
        for arg in args:
            name, sep, value = arg.partition("=")
            if not name.isidentifier():
                self.console.print(f"[red]export: `{escape(arg)}': not a valid identifier[/red]")
                status = 1
            elif sep:
                os.environ[name] = os.path.expandvars(value)
        return status

    def _unset(self, args: list[str]) -> int:
        for name in args:
            os.environ.pop(name, None)
        return 0
