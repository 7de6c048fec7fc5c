"""Hook installation into host shells."""

from cmdw.hooks.installer import HookInstaller, HookMode, InstallResult
from cmdw.hooks.shim import Classification, InstallError, TrapShim

__all__ = ["Classification", "HookInstaller", "HookMode", "InstallError", "InstallResult", "TrapShim"]
