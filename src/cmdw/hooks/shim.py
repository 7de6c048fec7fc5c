"""Preexec/precmd emulation on top of a single pre-instruction trap.

The host's debug trap fires before every instruction, including the ones
run while composing the prompt. The shim classifies each firing and only
forwards the first instruction issued from an interactive prompt.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from typing import Any

from cmdw.hooks.host import TrapHost

logger = logging.getLogger(__name__)

PREEXEC_INVOKER = "__cmdw_preexec_invoke"
PRECMD_INVOKER = "__cmdw_precmd_invoke"
INTERACTIVE_MODE = "__cmdw_interactive_mode"
INSTALL_COMMAND = "__cmdw_install"
ORIGINAL_DEBUG_TRAP = "__cmdw_original_debug_trap"

REQUIRED_WRITABLE = ("debug_trap", "prompt_command", "history_control")


class InstallError(Exception):
    """Raised when hooks cannot be installed into the host shell."""


class Classification(enum.Enum):
    INTERACTIVE = "interactive"
    ADMINISTRATIVE = "administrative"
    SUPPRESSED = "suppressed"


class TrapShim:
    """Registry-style hook lists driven by a host's debug trap and prompt command."""

    def __init__(self, host: TrapHost) -> None:
        self.host = host
        self.preexec_functions: list[Callable[..., Any]] = []
        self.precmd_functions: list[Callable[..., Any]] = []
        self.interactive_mode = False
        self.preexec_depth = 0
        self.precmd_depth = 0
        self.last_status = host.last_status
        self.last_argument = host.last_argument

    @staticmethod
    def attached(host: TrapHost) -> TrapShim | None:
        """Return the shim already installed in ``host``, if any."""
        if PRECMD_INVOKER not in host.prompt_command:
            return None
        invoker = host.functions.get(PRECMD_INVOKER)
        shim = getattr(invoker, "__self__", None)
        return shim if isinstance(shim, TrapShim) else None

    def check_writable(self) -> None:
        for name in REQUIRED_WRITABLE:
            if name in self.host.readonly:
                raise InstallError(f"Hook installation requires write access to {name}")

    def install_after_session_init(self) -> None:
        """Defer installation to the first prompt of the session."""
        self.check_writable()
        host = self.host
        host.functions[INSTALL_COMMAND] = self._deferred_install
        host.prompt_command = [c for c in host.prompt_command if c.strip() and c != INSTALL_COMMAND]
        host.prompt_command.append(INSTALL_COMMAND)

    def _deferred_install(self, *_args: object) -> int:
        self.install()
        self.host.functions.pop(INSTALL_COMMAND, None)
        return 0

    def install(self) -> bool:
        """Take over the debug trap and prompt command. False if already installed."""
        host = self.host
        if PRECMD_INVOKER in host.prompt_command:
            return False
        self.check_writable()

        prior_trap = host.debug_trap
        host.functions[PREEXEC_INVOKER] = self.preexec_invoke
        host.functions[PRECMD_INVOKER] = self.precmd_invoke
        host.functions[INTERACTIVE_MODE] = self.set_interactive_mode
        host.debug_trap = PREEXEC_INVOKER

        if prior_trap and prior_trap != PREEXEC_INVOKER and prior_trap in host.functions:
            original = host.functions[prior_trap]
            host.functions[ORIGINAL_DEBUG_TRAP] = original
            self.preexec_functions.append(original)

        self._adjust_history_control()

        existing = [
            c.strip()
            for c in host.prompt_command
            if c.strip() and c.strip() not in (INSTALL_COMMAND, PRECMD_INVOKER, INTERACTIVE_MODE)
        ]
        host.prompt_command = [PRECMD_INVOKER, *existing, INTERACTIVE_MODE]

        self.precmd_invoke()
        self.set_interactive_mode()
        logger.debug("Trap shim installed, prompt command: %s", host.prompt_command)
        return True

    def _adjust_history_control(self) -> None:
        # Commands typed with a leading space must still reach the history.
        control = set(self.host.history_control)
        control.discard("ignorespace")
        if "ignoreboth" in control:
            control.discard("ignoreboth")
            control.add("ignoredups")
        self.host.history_control = control

    def set_interactive_mode(self, *_args: object) -> int:
        self.interactive_mode = True
        return 0

    def in_prompt_command(self, command: str) -> bool:
        target = command.strip()
        return any(entry.strip() == target for entry in self.host.prompt_command)

    def classify(self) -> Classification:
        """Decide whether the pending instruction was issued interactively.

        Consumes the interactive-mode flag at top level.
        """
        host = self.host
        if host.completing:
            return Classification.SUPPRESSED
        if not self.interactive_mode:
            return Classification.SUPPRESSED
        # A subshell never redraws the prompt, so keep the flag for its later commands.
        if host.subshell_depth == 0:
            self.interactive_mode = False
        if self.in_prompt_command(host.current_command):
            self.interactive_mode = False
            return Classification.ADMINISTRATIVE
        return Classification.INTERACTIVE

    def precmd_invoke(self, *_args: object) -> int:
        """Run every precmd function; installed as the first prompt command entry."""
        if self.precmd_depth > 0:
            return 0
        self.last_status = self.host.last_status
        self.last_argument = self.host.last_argument
        self.precmd_depth += 1
        try:
            for func in list(self.precmd_functions):
                self._restore()
                self._call(func)
        finally:
            self.precmd_depth -= 1
            self._restore()
        return self.last_status

    def preexec_invoke(self, last_argument: str = "", *_args: object) -> int:
        """Debug trap body: run every preexec function once per interactive command."""
        if self.preexec_depth > 0:
            return 0
        self.last_status = self.host.last_status
        self.last_argument = last_argument
        self.preexec_depth += 1
        try:
            if self.classify() is not Classification.INTERACTIVE:
                return 0
            this_command = self.host.last_history_entry()
            if not this_command:
                return 0
            ret_value = 0
            for func in list(self.preexec_functions):
                self._restore()
                result = self._call(func, this_command)
                if isinstance(result, int) and result != 0:
                    ret_value = result
            return ret_value
        finally:
            self.preexec_depth -= 1
            self._restore()

    def _restore(self) -> None:
        self.host.last_status = self.last_status
        self.host.last_argument = self.last_argument

    def _call(self, func: Callable[..., Any], *args: object) -> Any:
        try:
            return func(*args)
        except Exception:
            logger.exception("Hook %s failed", getattr(func, "__name__", func))
            return None
