"""Read-only access to logged commands."""

from __future__ import annotations

import logging
from collections.abc import Generator, Iterator
from contextlib import closing
from pathlib import Path

from cmdw.storage.models import CommandRecord
from cmdw.utils.formatting import START_LABEL, STOP_LABEL, parse_header, parse_timestamp_line

logger = logging.getLogger(__name__)


class HistoryQuery:
    """Lists and looks up records in a history log file.

    Every call re-reads the file, so results follow rotations made by
    other sessions.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def _lines(self) -> Generator[str, None, None]:
        try:
            with open(self.path, encoding="utf-8", errors="replace", newline="\n") as f:
                for line in f:
                    yield line.rstrip("\n")
        except FileNotFoundError:
            return

    def list(self) -> Iterator[tuple[int, str]]:
        """Yield ``(index, command)`` for each header line, 1-indexed."""
        index = 0
        for line in self._lines():
            text = parse_header(line)
            if text is not None:
                index += 1
                yield index, text

    def show(self, index: int) -> CommandRecord | None:
        """Return the record at header position ``index``, or None if absent."""
        if index < 1:
            return None
        seen = 0
        with closing(self._lines()) as lines:
            for line in lines:
                text = parse_header(line)
                if text is None:
                    continue
                seen += 1
                if seen == index:
                    return self._read_record(text, lines)
        return None

    def _read_record(self, text: str, lines: Iterator[str]) -> CommandRecord | None:
        start_line = next(lines, None)
        stop_line = next(lines, None)
        if start_line is None or stop_line is None:
            return None
        try:
            return CommandRecord(
                text=text,
                start_time=parse_timestamp_line(start_line, START_LABEL),
                stop_time=parse_timestamp_line(stop_line, STOP_LABEL),
            )
        except ValueError as e:
            logger.warning("Incomplete history record %s: %s", text, e)
            return None
