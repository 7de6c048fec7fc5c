"""Data models for cmdw."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class CommandRecord:
    """One logged command: its text and start/stop timestamps."""

    text: str
    start_time: datetime
    stop_time: datetime


@dataclass
class InterceptionState:
    """Per-session flags of the interception engine."""

    enabled: bool = True
    preexec_armed: bool = True
    login_suppressed: bool = True
    pending_start_time: datetime | None = None
