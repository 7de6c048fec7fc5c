"""Assemble an instrumented shell session from configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from rich.console import Console

from cmdw.config import AppConfig
from cmdw.hooks.installer import HookInstaller, HookMode, InstallResult
from cmdw.services.filter import PatternFilter
from cmdw.services.interceptor import InterceptionStateMachine
from cmdw.services.query import HistoryQuery
from cmdw.services.shell import InteractiveShell
from cmdw.storage.history import HistoryStore
from cmdw.storage.models import CommandRecord
from cmdw.utils.formatting import format_record, unescape_command

logger = logging.getLogger(__name__)


@dataclass
class Session:
    shell: InteractiveShell
    machine: InterceptionStateMachine
    query: HistoryQuery
    installed: InstallResult


def print_history(console: Console, query: HistoryQuery, index: int | None = None) -> bool:
    """List logged commands, or print one record. False if ``index`` is missing."""
    if index is None:
        for number, text in query.list():
            console.print(f"{number:>5}   {text}", markup=False, highlight=False)
        return True
    record = query.show(index)
    if record is None:
        return False
    header, start, stop = format_record(record)
    console.print(unescape_command(header), markup=False, highlight=False)
    console.print(start, markup=False, highlight=False)
    console.print(stop, markup=False, highlight=False)
    return True


def create_session(
    config: AppConfig,
    mode: HookMode | None = None,
    shell: InteractiveShell | None = None,
    console: Console | None = None,
) -> Session:
    """Build the shell, engine and hooks for one interactive session."""
    console = console or Console()
    if shell is None:
        shell = InteractiveShell(program=config.shell.program, prompt=config.shell.prompt, console=console)

    def show_timestamps(record: CommandRecord) -> None:
        _, start, stop = format_record(record)
        console.print(f"\n{start}\n{stop}", markup=False, highlight=False)

    store = HistoryStore(config.history.file)
    machine = InterceptionStateMachine(
        store,
        shell.last_history_entry,
        max_records=config.history.max_records,
        ignore=PatternFilter(config.engine.ignore),
        enabled=config.engine.enabled,
        on_record=show_timestamps if config.shell.show_timestamps else None,
    )
    query = HistoryQuery(store.path)

    def cmdw_enable(args: list[str]) -> int:
        machine.enable()
        return 0

    def cmdw_disable(args: list[str]) -> int:
        machine.disable()
        return 0

    def cmdw_history(args: list[str]) -> int:
        if not args:
            print_history(console, query)
            return 0
        try:
            index = int(args[0])
        except ValueError:
            console.print(f"cmdw_history: {args[0]}: numeric argument required", markup=False)
            return 2
        if not print_history(console, query, index):
            console.print(f"cmdw_history: no entry {index}", markup=False)
            return 1
        return 0

    shell.builtins.update(cmdw_enable=cmdw_enable, cmdw_disable=cmdw_disable, cmdw_history=cmdw_history)

    installer = HookInstaller(machine, mode or HookMode(config.shell.hooks))
    installed = installer.install(shell)
    logger.info("Session hooks: %s", installed.value)
    return Session(shell=shell, machine=machine, query=query, installed=installed)
