"""Bind the interception engine to whichever hook primitive the host offers."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Iterable
from typing import Any

from cmdw.hooks.host import RegistryHost, TrapHost
from cmdw.hooks.shim import InstallError, TrapShim
from cmdw.services.interceptor import InterceptionStateMachine

logger = logging.getLogger(__name__)

FALLBACK_PREEXEC = "__cmdw_preexec"
FALLBACK_PRECMD = "__cmdw_precmd"


class HookMode(str, enum.Enum):
    AUTO = "auto"
    REGISTRY = "registry"
    TRAP = "trap"


class InstallResult(str, enum.Enum):
    REGISTRY = "registry"
    SHIM = "shim"
    TRAP = "trap"
    ALREADY_INSTALLED = "already-installed"
    FAILED = "failed"


def _is_engine_hook(func: Callable[..., Any]) -> bool:
    return isinstance(getattr(func, "__self__", None), InterceptionStateMachine)


def _has_engine_hook(funcs: Iterable[Callable[..., Any]]) -> bool:
    return any(_is_engine_hook(f) for f in funcs)


class HookInstaller:
    """Install an :class:`InterceptionStateMachine` into a host shell once."""

    def __init__(self, machine: InterceptionStateMachine, mode: HookMode = HookMode.AUTO) -> None:
        self.machine = machine
        self.mode = mode
        self.shim: TrapShim | None = None

    def install(self, host: object) -> InstallResult:
        """Wire the engine into ``host``.

        Never raises: on failure the error is logged once and the engine
        is disabled.
        """
        try:
            return self._install(host)
        except InstallError as e:
            logger.error("cmdw disabled: %s", e)
            self.machine.disable()
            return InstallResult.FAILED

    def _install(self, host: object) -> InstallResult:
        use_registry = self.mode is HookMode.REGISTRY or (
            self.mode is HookMode.AUTO and isinstance(host, RegistryHost)
        )
        if use_registry:
            if not isinstance(host, RegistryHost):
                raise InstallError("Host shell has no preexec/precmd registries")
            return self._install_registry(host.preexec_functions, host.precmd_functions, InstallResult.REGISTRY)

        if not isinstance(host, TrapHost):
            raise InstallError("Host shell exposes neither hook registries nor a debug trap")

        shim = TrapShim.attached(host)
        if shim is None:
            if FALLBACK_PRECMD in host.prompt_command:
                return InstallResult.ALREADY_INSTALLED
            shim = TrapShim(host)
            try:
                shim.install()
            except InstallError as e:
                logger.warning("Trap shim unavailable (%s), binding the debug trap directly", e)
                return self._install_trap(host)
        self.shim = shim
        return self._install_registry(shim.preexec_functions, shim.precmd_functions, InstallResult.SHIM)

    def _install_registry(
        self,
        preexec_functions: list[Callable[..., Any]],
        precmd_functions: list[Callable[..., Any]],
        result: InstallResult,
    ) -> InstallResult:
        if _has_engine_hook(preexec_functions) or _has_engine_hook(precmd_functions):
            logger.debug("cmdw hooks already installed")
            return InstallResult.ALREADY_INSTALLED
        preexec_functions.append(self.machine.on_before_command)
        precmd_functions.append(self.machine.on_after_command)
        logger.debug("cmdw hooks installed (%s)", result.value)
        return result

    def _install_trap(self, host: TrapHost) -> InstallResult:
        """Plain trap binding: the armed flag keeps one start time per command."""
        for name in ("debug_trap", "prompt_command"):
            if name in host.readonly:
                raise InstallError(f"Hook installation requires write access to {name}")

        prior = host.functions.get(host.debug_trap) if host.debug_trap else None
        machine = self.machine

        def preexec(*args: object) -> Any:
            result = prior(*args) if prior is not None else 0
            pending = host.current_command.strip()
            if not any(entry.strip() == pending for entry in host.prompt_command):
                machine.on_before_command()
            return result

        host.functions[FALLBACK_PREEXEC] = preexec
        host.functions[FALLBACK_PRECMD] = machine.on_after_command
        host.debug_trap = FALLBACK_PREEXEC
        # Last, so earlier prompt entries run while the engine is disarmed.
        host.prompt_command = [c for c in host.prompt_command if c != FALLBACK_PRECMD] + [FALLBACK_PRECMD]
        return InstallResult.TRAP
