"""Append-only, size-bounded command history log."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from cmdw.storage.models import CommandRecord
from cmdw.utils.formatting import format_record

logger = logging.getLogger(__name__)

LINES_PER_RECORD = 3
_BLOCK_SIZE = 8192


class HistoryStoreError(Exception):
    """Raised when the history log cannot be written or rotated."""


class HistoryStore:
    """Command history kept as repeating three-line records in a text file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def append(self, record: CommandRecord) -> None:
        """Append a record as its three log lines."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8", newline="\n") as f:
                f.write("\n".join(format_record(record)) + "\n")
        except OSError as e:
            raise HistoryStoreError(f"Cannot append to {self.path}: {e}") from e

    def rotate(self, max_records: int) -> None:
        """Keep only the last ``max_records`` records of the log.

        The retained tail is written to a temporary file in the same
        directory and swapped over the log, so readers see either the old
        or the new file.
        """
        if max_records < 0:
            raise ValueError("max_records must be >= 0")
        try:
            if not self.path.exists():
                return
            keep = max_records * LINES_PER_RECORD
            lines, truncated = self._tail(keep)
            if not truncated:
                return
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
            try:
                with os.fdopen(fd, "wb") as f:
                    f.writelines(lines)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise HistoryStoreError(f"Cannot rotate {self.path}: {e}") from e
        logger.debug("Rotated %s to %d records", self.path, max_records)

    def _tail(self, count: int) -> tuple[list[bytes], bool]:
        """Read the last ``count`` lines, streaming backwards from the end.

        Returns the lines and whether anything before them was dropped.
        """
        if count == 0:
            return [], self.path.stat().st_size > 0
        with open(self.path, "rb") as f:
            f.seek(0, os.SEEK_END)
            pos = f.tell()
            buf = b""
            # One extra newline is needed to know where the first kept line starts.
            while pos > 0 and buf.count(b"\n") <= count:
                step = min(_BLOCK_SIZE, pos)
                pos -= step
                f.seek(pos)
                buf = f.read(step) + buf
        # Only LF ends a line; a stray CR inside a command stays in its record.
        pieces = buf.split(b"\n")
        trailing = pieces.pop()
        lines = [piece + b"\n" for piece in pieces]
        if trailing:
            lines.append(trailing)
        return lines[-count:], pos > 0 or len(lines) > count
