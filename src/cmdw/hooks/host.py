"""Capabilities the host shell exposes to the engine."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class HostShell(Protocol):
    """State every host shell exposes to the user's own commands."""

    last_status: int
    last_argument: str

    def last_history_entry(self) -> str:
        """Text of the most recently completed history entry."""
        ...


@runtime_checkable
class RegistryHost(HostShell, Protocol):
    """Host that runs ordered callback lists around each interactive command."""

    preexec_functions: list[Callable[..., Any]]
    precmd_functions: list[Callable[..., Any]]


@runtime_checkable
class TrapHost(HostShell, Protocol):
    """Host with a single pre-instruction trap and a pre-prompt command list.

    ``debug_trap`` and ``prompt_command`` hold names from ``functions``.
    The host calls the debug trap before every instruction it runs,
    including the entries of ``prompt_command``, with ``current_command``
    set to that instruction and ``last_argument`` as the only argument.
    """

    functions: dict[str, Callable[..., Any]]
    debug_trap: str | None
    prompt_command: list[str]
    current_command: str
    subshell_depth: int
    completing: bool
    history_control: set[str]
    readonly: set[str]
