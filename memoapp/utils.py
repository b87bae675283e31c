"""Utility functions for Memo Keeper."""

import base64
import math
import re
import threading
import time
from datetime import UTC, datetime
from typing import Final

#: Units used by :func:`format_file_size`.
FILE_SIZE_UNITS: Final[tuple[str, ...]] = ("B", "KB", "MB", "GB")

_id_lock = threading.Lock()
_last_note_id = 0


def now_ms() -> int:
    """
    Get the current time as milliseconds since the UNIX epoch.

    Returns:
        Milliseconds since 1970-01-01 UTC

    """
    return time.time_ns() // 1_000_000


def next_note_id() -> int:
    """
    Get a new, strictly increasing note ID.

    IDs are millisecond timestamps, bumped by one when two notes are created in
    the same millisecond.

    Returns:
        The new note ID

    """
    global _last_note_id  # noqa: PLW0603
    with _id_lock:
        candidate = now_ms()
        if candidate <= _last_note_id:
            candidate = _last_note_id + 1
        _last_note_id = candidate
        return candidate


def to_utc_iso(dt: datetime | None) -> str | None:
    """
    Convert datetime to UTC ISO format string.

    Args:
        dt: Datetime object to convert, or None

    Returns:
        ISO format string with UTC timezone, or None

    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat()


def ms_to_utc_iso(timestamp_ms: int) -> str:
    """
    Convert a millisecond epoch timestamp to a UTC ISO format string.

    Args:
        timestamp_ms: Milliseconds since the UNIX epoch

    Returns:
        ISO format string with UTC timezone

    """
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC).isoformat()


def format_display_date(dt: datetime | None = None) -> str:
    """
    Format a date for display next to a note, e.g. ``2024/03/01 09:05``.

    Args:
        dt: Datetime to format; defaults to now (local time)

    Returns:
        Formatted date string

    """
    if dt is None:
        dt = datetime.now()  # noqa: DTZ005
    return dt.strftime("%Y/%m/%d %H:%M")


def format_filename_date(dt: datetime | None = None) -> str:
    """
    Format a date for use inside a filename, e.g. ``20240301_0905``.

    Args:
        dt: Datetime to format; defaults to now (local time)

    Returns:
        Formatted date string

    """
    if dt is None:
        dt = datetime.now()  # noqa: DTZ005
    return dt.strftime("%Y%m%d_%H%M")


def format_file_size(size_bytes: int | float) -> str:
    """
    Format a byte count as a human readable size.

    Args:
        size_bytes: Number of bytes

    Returns:
        Size string such as ``"1.5 KB"``

    """
    if size_bytes <= 0:
        return "0 B"
    exponent = min(
        int(math.floor(math.log(size_bytes) / math.log(1024))),
        len(FILE_SIZE_UNITS) - 1,
    )
    value = round(size_bytes / math.pow(1024, exponent), 2)
    return f"{value:g} {FILE_SIZE_UNITS[exponent]}"


def display_width(text: str) -> int:
    """
    Get the display width of a string.

    Characters above U+00FF (CJK and friends) count as two units.
    """
    return sum(2 if ord(char) > 0xFF else 1 for char in text)  # noqa: PLR2004


def truncate_display(text: str, max_width: int) -> str:
    """
    Truncate a string so its display width does not exceed ``max_width``.

    Args:
        text: String to truncate
        max_width: Maximum display width

    Returns:
        The truncated string

    """
    width = 0
    result = []
    for char in text:
        char_width = display_width(char)
        if width + char_width > max_width:
            break
        result.append(char)
        width += char_width
    return "".join(result)


def smart_display_name(name: str, index: int) -> str:
    """
    Build the short label shown for a resolved marker.

    - Names up to 12 width units are shown whole (without extension).
    - Names up to 20 units are cut to 10 units followed by ``...``.
    - Longer names are replaced by the 1-based attachment position.

    Args:
        name: The marker tag name
        index: The attachment index in its list

    Returns:
        The display label

    """
    stem = re.sub(r"\.[^/.]+$", "", name)
    width = display_width(stem)
    if width <= 12:  # noqa: PLR2004
        return stem
    if width <= 20:  # noqa: PLR2004
        return truncate_display(stem, 10) + "..."
    return str(index + 1)


def encode_payload(data: bytes, media_type: str = "application/octet-stream") -> str:
    """
    Encode binary attachment data as a base64 data URL.

    Args:
        data: Raw bytes

    Keyword Args:
        media_type: MIME type recorded in the URL

    Returns:
        The data URL

    """
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{media_type};base64,{encoded}"


def decode_payload(payload: str) -> bytes:
    """
    Decode a payload produced by :func:`encode_payload`.

    Bare base64 strings (without the ``data:`` prefix) are accepted too.

    Args:
        payload: The data URL or base64 text

    Returns:
        The raw bytes

    Raises:
        ValueError: If the payload is not valid base64

    """
    if payload.startswith("data:"):
        _, _, payload = payload.partition(",")
    try:
        return base64.b64decode(payload, validate=True)
    except (ValueError, TypeError) as e:
        msg = f"Payload is not valid base64: {e!s}"
        raise ValueError(msg) from e
