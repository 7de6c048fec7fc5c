"""Pre/post command interception and logging."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from cmdw.services.filter import PatternFilter
from cmdw.storage.history import HistoryStore, HistoryStoreError
from cmdw.storage.models import CommandRecord, InterceptionState

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InterceptionStateMachine:
    """Pairs before/after notifications into command records.

    One instance per shell session. ``history_reader`` returns the most
    recently completed history entry of the host shell; it is the only
    source of command text.
    """

    def __init__(
        self,
        store: HistoryStore,
        history_reader: Callable[[], str],
        *,
        max_records: int = 3000,
        ignore: PatternFilter | None = None,
        enabled: bool = True,
        clock: Callable[[], datetime] = utcnow,
        on_record: Callable[[CommandRecord], None] | None = None,
    ) -> None:
        self.store = store
        self.history_reader = history_reader
        self.max_records = max_records
        self.ignore = ignore if ignore is not None else PatternFilter()
        self.clock = clock
        self.on_record = on_record
        self.state = InterceptionState(enabled=enabled)

    def enable(self) -> None:
        self.state.enabled = True

    def disable(self) -> None:
        self.state.enabled = False
        self.state.pending_start_time = None

    def on_before_command(self, *_args: object) -> None:
        """Record the start time of the command about to run."""
        state = self.state
        if not state.enabled or not state.preexec_armed:
            return
        state.preexec_armed = False
        state.pending_start_time = self.clock()

    def on_after_command(self, *_args: object) -> CommandRecord | None:
        """Log the command that just completed. Never raises."""
        state = self.state
        state.preexec_armed = True

        if state.login_suppressed:
            state.login_suppressed = False
            state.pending_start_time = None
            return None

        start_time, state.pending_start_time = state.pending_start_time, None
        if not state.enabled or start_time is None:
            return None

        try:
            command = self._last_command()
            if not command or self.ignore.matches(command):
                return None
            record = CommandRecord(text=command, start_time=start_time, stop_time=self.clock())
            self.store.append(record)
            self.store.rotate(self.max_records)
        except HistoryStoreError as e:
            logger.error("Command not logged: %s", e)
            return None
        except Exception:
            logger.exception("Unexpected error while logging command")
            return None

        if self.on_record is not None:
            try:
                self.on_record(record)
            except Exception:
                logger.exception("Record listener failed")
        return record

    def _last_command(self) -> str:
        try:
            text = self.history_reader()
        except Exception:
            logger.debug("History entry unavailable", exc_info=True)
            return ""
        return (text or "").strip()
