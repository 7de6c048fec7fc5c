"""Log line formatting for command records."""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime

from cmdw.storage.models import CommandRecord

HEADER_PREFIX = "#"
START_LABEL = "start"
STOP_LABEL = "stop"
LABEL_WIDTH = 9


def escape_command(text: str) -> str:
    """Collapse a command onto one line, escaping backslashes, newlines and carriage returns."""
    return text.replace("\\", "\\\\").replace("\n", "\\n").replace("\r", "\\r")


def unescape_command(text: str) -> str:
    """Reverse :func:`escape_command`."""
    out: list[str] = []
    chars = iter(text)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, "")
        if nxt == "n":
            out.append("\n")
        elif nxt == "r":
            out.append("\r")
        elif nxt == "\\":
            out.append("\\")
        else:
            # Lone backslash, written by an older log format.
            out.append("\\" + nxt)
    return "".join(out)


def format_timestamp(ts: datetime) -> str:
    """Format a timestamp as an RFC 2822 UTC date string."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return format_datetime(ts.astimezone(timezone.utc), usegmt=True)


def parse_timestamp(value: str) -> datetime:
    """Parse a date written by :func:`format_timestamp`. Raises ValueError."""
    try:
        parsed = parsedate_to_datetime(value.strip())
    except (TypeError, ValueError, IndexError) as e:
        raise ValueError(f"Malformed timestamp: {value!r}") from e
    if parsed is None:
        raise ValueError(f"Malformed timestamp: {value!r}")
    return parsed


def format_header(text: str) -> str:
    return f"{HEADER_PREFIX} {escape_command(text)}"


def parse_header(line: str) -> str | None:
    """Return the command text of a header line, or None for other lines."""
    if not line.startswith(HEADER_PREFIX):
        return None
    body = line[len(HEADER_PREFIX):]
    if body.startswith(" "):
        body = body[1:]
    return unescape_command(body)


def format_record(record: CommandRecord) -> list[str]:
    """Render a record as its header, start and stop lines."""
    return [
        format_header(record.text),
        f"{START_LABEL:<{LABEL_WIDTH}}{format_timestamp(record.start_time)}",
        f"{STOP_LABEL:<{LABEL_WIDTH}}{format_timestamp(record.stop_time)}",
    ]


def parse_timestamp_line(line: str, label: str) -> datetime:
    """Parse a ``start``/``stop`` line. Raises ValueError on mismatch."""
    head, _, value = line.partition(" ")
    if head != label or not value.strip():
        raise ValueError(f"Expected {label!r} line, got {line!r}")
    return parse_timestamp(value)
